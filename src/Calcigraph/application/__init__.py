"""Application layer: user-facing entry points of Calcigraph."""
