"""Infrastructure layer: file readers and exporters."""
