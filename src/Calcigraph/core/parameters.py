# src/Calcigraph/core/parameters.py
# -*- coding: utf-8 -*-
"""
Analysis parameters for each pipeline stage.

Every threshold the analysis depends on is a field here, with the defaults
from `Calcigraph.shared.constants`. Parameters can be read from a JSON file
shaped like `PipelineParameters.to_dict()`:

    {
        "alignment": {"shutter_peak_height": 2.5},
        "detection": {"min_distance_ms": 1500, "smoothing_window": 767},
        "connectivity": {"max_lag": 2.0, "n_workers": 4}
    }
"""
import json
import logging
from dataclasses import dataclass, field, asdict, fields
from pathlib import Path
from typing import Any, Dict, Union

from Calcigraph.shared import constants
from Calcigraph.shared.error_handling import ConfigurationError

log = logging.getLogger('Calcigraph.core.parameters')


def _check_positive(name: str, value: float):
    if value is None or value <= 0:
        raise ConfigurationError(f"'{name}' must be positive, got {value}")


def _check_alpha(name: str, value: float):
    if not 0.0 < value < 1.0:
        raise ConfigurationError(f"'{name}' must lie in (0, 1), got {value}")


def _build(cls, values: Dict[str, Any]):
    if values is None:
        return cls()
    if not isinstance(values, dict):
        raise ConfigurationError(f"{cls.__name__} expects a mapping, got {type(values).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        raise ConfigurationError(f"Unknown {cls.__name__} keys: {sorted(unknown)}")
    try:
        return cls(**values)
    except TypeError as e:
        raise ConfigurationError(str(e)) from e


@dataclass
class AlignmentParameters:
    """Peak criteria for the shutter (epoch start) and stimulus channels."""

    shutter_peak_height: float = constants.SHUTTER_PEAK_HEIGHT
    shutter_peak_distance: int = constants.SHUTTER_PEAK_DISTANCE_SAMPLES  # samples
    stimulus_peak_height: float = constants.STIMULUS_PEAK_HEIGHT
    stimulus_peak_distance: float = constants.STIMULUS_PEAK_DISTANCE_S  # seconds

    def __post_init__(self):
        if int(self.shutter_peak_distance) < 1:
            raise ConfigurationError("'shutter_peak_distance' must be at least 1 sample")
        _check_positive('stimulus_peak_distance', self.stimulus_peak_distance)


@dataclass
class DetectionParameters:
    """
    Event detection settings.

    The noise escalation is a policy: when a trace yields more than
    `max_candidate_events` peaks, the threshold is multiplied by
    `escalation_factor` and detection is repeated `max_escalations` times at most.
    """

    min_distance_ms: float = constants.MIN_EVENT_DISTANCE_MS
    min_width_ms: float = constants.MIN_EVENT_WIDTH_MS
    smoothing_polyorder: int = constants.SMOOTHING_POLYORDER
    smoothing_window: int = constants.SMOOTHING_WINDOW
    threshold_sd_factor: float = constants.THRESHOLD_SD_FACTOR
    max_candidate_events: int = constants.MAX_CANDIDATE_EVENTS
    escalation_factor: float = constants.ESCALATION_FACTOR
    max_escalations: int = 1
    relocation_half_window: int = constants.RELOCATION_HALF_WINDOW

    def __post_init__(self):
        _check_positive('min_distance_ms', self.min_distance_ms)
        _check_positive('min_width_ms', self.min_width_ms)
        if self.smoothing_window % 2 != 1:
            raise ConfigurationError(f"'smoothing_window' must be odd, got {self.smoothing_window}")
        if not 0 <= self.smoothing_polyorder < self.smoothing_window:
            raise ConfigurationError("'smoothing_polyorder' must be non-negative and smaller than the window")
        if self.max_candidate_events < 0 or self.max_escalations < 0:
            raise ConfigurationError("Escalation limits must be non-negative")
        _check_positive('escalation_factor', self.escalation_factor)
        if self.relocation_half_window < 0:
            raise ConfigurationError("'relocation_half_window' must be non-negative")

    def distance_samples(self, sampling_rate: float) -> int:
        return max(1, int(round(self.min_distance_ms / 1000.0 * sampling_rate)))

    def width_samples(self, sampling_rate: float) -> float:
        return self.min_width_ms / 1000.0 * sampling_rate


@dataclass
class ConnectivityParameters:
    """Lag window and hypothesis-test thresholds of the connectivity inference."""

    max_lag: float = constants.MAX_LAG_S  # seconds
    pair_min_samples: int = constants.PAIR_MIN_SAMPLES
    pair_alpha: float = constants.PAIR_ALPHA
    stim_min_samples: int = constants.STIM_MIN_SAMPLES
    stim_reference_mean: float = constants.STIM_REFERENCE_MEAN
    stim_mean_alpha: float = constants.STIM_MEAN_ALPHA
    stim_skewness_threshold: float = constants.STIM_SKEWNESS_THRESHOLD
    stim_uniformity_alpha: float = constants.STIM_UNIFORMITY_ALPHA
    cdf_step: float = constants.CDF_TABLE_STEP
    n_workers: int = 1

    def __post_init__(self):
        _check_positive('max_lag', self.max_lag)
        _check_positive('cdf_step', self.cdf_step)
        _check_alpha('pair_alpha', self.pair_alpha)
        _check_alpha('stim_mean_alpha', self.stim_mean_alpha)
        _check_alpha('stim_uniformity_alpha', self.stim_uniformity_alpha)
        if self.pair_min_samples < 0 or self.stim_min_samples < 0:
            raise ConfigurationError("Minimum sample counts must be non-negative")
        if self.n_workers < 1:
            raise ConfigurationError(f"'n_workers' must be at least 1, got {self.n_workers}")


@dataclass
class PipelineParameters:
    """All stage parameters of one pipeline run."""

    alignment: AlignmentParameters = field(default_factory=AlignmentParameters)
    detection: DetectionParameters = field(default_factory=DetectionParameters)
    connectivity: ConnectivityParameters = field(default_factory=ConnectivityParameters)
    compute_metrics: bool = True

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> 'PipelineParameters':
        values = dict(values or {})
        unknown = set(values) - {'alignment', 'detection', 'connectivity', 'compute_metrics'}
        if unknown:
            raise ConfigurationError(f"Unknown parameter sections: {sorted(unknown)}")
        return cls(
            alignment=_build(AlignmentParameters, values.get('alignment')),
            detection=_build(DetectionParameters, values.get('detection')),
            connectivity=_build(ConnectivityParameters, values.get('connectivity')),
            compute_metrics=bool(values.get('compute_metrics', True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_parameters(path: Union[str, Path]) -> PipelineParameters:
    """
    Read pipeline parameters from a JSON file.

    Raises:
        ConfigurationError: If the file is missing, is not valid JSON or holds invalid values.
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            values = json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Parameter file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in parameter file {path}: {e}") from e

    params = PipelineParameters.from_dict(values)
    log.info(f"Loaded analysis parameters from {path}")
    log.debug(f"Parameters: {params.to_dict()}")
    return params
