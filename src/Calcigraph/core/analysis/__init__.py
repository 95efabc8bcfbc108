# src/Calcigraph/core/analysis/__init__.py
"""
Calcigraph Analysis Sub-package.

Provides the analysis stages applied to an experiment: signal alignment,
event detection, connectivity inference and graph metrics. The batch engine
is imported from `Calcigraph.core.analysis.batch_engine` directly.
"""
# Optionally expose key functions for easier import
from .signal_alignment import align_signals
from .event_detection import detect_events
from .connectivity import infer_connectivity, run_connectivity
from .graph_metrics import compute_graph_metrics

__all__ = [
    'align_signals',
    'detect_events',
    'infer_connectivity',
    'run_connectivity',
    'compute_graph_metrics',
]
