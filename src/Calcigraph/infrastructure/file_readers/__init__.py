"""Readers translating experiment files into Calcigraph data models."""
from .experiment_reader import ExperimentReader, ExperimentSource, load_manifest, roi_centroids

__all__ = ['ExperimentReader', 'ExperimentSource', 'load_manifest', 'roi_centroids']
