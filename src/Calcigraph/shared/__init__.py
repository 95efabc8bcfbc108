# src/Calcigraph/shared/__init__.py
"""
Shared utilities for Calcigraph.

This module contains:
- Analysis defaults
- Logging configuration
- Error and warning classes
"""

from . import constants
from . import error_handling
from . import logging_config

from .error_handling import (
    CalcigraphError,
    FileReadError,
    UnsupportedFormatError,
    ConfigurationError,
    AlignmentError,
    AnalysisError,
    ExportError,
    CalcigraphWarning,
    DegenerateTraceWarning,
    InsufficientSampleWarning,
    EmptyStimulusWarning,
)
from .logging_config import setup_logging, get_logger

__all__ = [
    'constants',
    'error_handling',
    'logging_config',
    'CalcigraphError',
    'FileReadError',
    'UnsupportedFormatError',
    'ConfigurationError',
    'AlignmentError',
    'AnalysisError',
    'ExportError',
    'CalcigraphWarning',
    'DegenerateTraceWarning',
    'InsufficientSampleWarning',
    'EmptyStimulusWarning',
    'setup_logging',
    'get_logger',
]
