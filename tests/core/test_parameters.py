import json

import pytest

from Calcigraph.core.parameters import (
    ConnectivityParameters,
    DetectionParameters,
    PipelineParameters,
    load_parameters,
)
from Calcigraph.shared import constants
from Calcigraph.shared.error_handling import ConfigurationError


class TestDefaults:
    def test_detection_defaults(self):
        params = DetectionParameters()
        assert params.min_distance_ms == constants.MIN_EVENT_DISTANCE_MS
        assert params.smoothing_window == 767
        assert params.max_candidate_events == 100
        assert params.escalation_factor == 3.0
        assert params.distance_samples(1000.0) == 1500
        assert params.width_samples(1000.0) == pytest.approx(350.0)

    def test_connectivity_defaults(self):
        params = ConnectivityParameters()
        assert params.max_lag == 2.0
        assert params.pair_min_samples == 5
        assert params.stim_min_samples == 10
        assert params.stim_skewness_threshold == 2.0
        assert params.n_workers == 1


class TestValidation:
    @pytest.mark.parametrize("kwargs", [
        {'smoothing_window': 766},
        {'smoothing_polyorder': 9, 'smoothing_window': 7},
        {'min_width_ms': 0},
        {'escalation_factor': -1},
    ])
    def test_invalid_detection(self, kwargs):
        with pytest.raises(ConfigurationError):
            DetectionParameters(**kwargs)

    @pytest.mark.parametrize("kwargs", [
        {'max_lag': 0},
        {'pair_alpha': 1.5},
        {'n_workers': 0},
    ])
    def test_invalid_connectivity(self, kwargs):
        with pytest.raises(ConfigurationError):
            ConnectivityParameters(**kwargs)


class TestFromDict:
    def test_partial_sections(self):
        params = PipelineParameters.from_dict({
            'detection': {'min_distance_ms': 1000},
            'connectivity': {'max_lag': 1.0, 'n_workers': 2},
        })
        assert params.detection.min_distance_ms == 1000
        assert params.detection.min_width_ms == constants.MIN_EVENT_WIDTH_MS
        assert params.connectivity.max_lag == 1.0
        assert params.alignment.shutter_peak_height == constants.SHUTTER_PEAK_HEIGHT

    def test_unknown_keys_rejected(self):
        with pytest.raises(ConfigurationError):
            PipelineParameters.from_dict({'detection': {'threshold': 3}})
        with pytest.raises(ConfigurationError):
            PipelineParameters.from_dict({'plotting': {}})

    def test_round_trip_through_json(self, tmp_path):
        original = PipelineParameters.from_dict({'connectivity': {'stim_skewness_threshold': 1.5}})
        path = tmp_path / "params.json"
        path.write_text(json.dumps(original.to_dict()))
        assert load_parameters(path) == original


class TestLoadParameters:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_parameters(tmp_path / "absent.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError):
            load_parameters(path)
