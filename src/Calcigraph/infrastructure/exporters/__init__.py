"""Exporters for analysis results."""
from .csv_exporter import CSVExporter

__all__ = ['CSVExporter']
