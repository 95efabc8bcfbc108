"""
Custom Exception and Warning classes for Calcigraph.

This module defines a hierarchy of exception classes specific to Calcigraph.
All custom exceptions inherit from the base CalcigraphError class, which
itself inherits from Python's Exception class.

Conditions that only degrade the output (a dropped neuron, an edge decision
without enough samples, an experiment without stimuli) are not errors. They
are reported with the warning categories at the bottom of this module.
"""


class CalcigraphError(Exception):
    """Base class for Calcigraph specific errors."""

    pass


class FileReadError(CalcigraphError, IOError):
    """Error occurred while reading or parsing an experiment file."""

    pass


class UnsupportedFormatError(CalcigraphError, ValueError):
    """File format is not supported by the experiment reader."""

    pass


class ConfigurationError(CalcigraphError, ValueError):
    """Invalid analysis parameters."""

    pass


class AlignmentError(CalcigraphError):
    """No imaging-epoch start marker was found in the shutter channel."""

    pass


class AnalysisError(CalcigraphError):
    """Error occurred during data analysis operations."""

    pass


class ExportError(CalcigraphError, IOError):
    """Error occurred during file saving/exporting."""

    pass


class CalcigraphWarning(UserWarning):
    """Base class for non-fatal analysis conditions."""

    pass


class DegenerateTraceWarning(CalcigraphWarning):
    """A trace produced no events and its neuron was removed."""

    pass


class InsufficientSampleWarning(CalcigraphWarning):
    """Too few samples for a hypothesis test; the edge is left absent."""

    pass


class EmptyStimulusWarning(CalcigraphWarning):
    """No stimulus events were detected in the stimulus channel."""

    pass
