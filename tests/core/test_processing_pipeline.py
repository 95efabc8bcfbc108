import numpy as np
import pytest

from Calcigraph.core.data_model import Experiment, FluorescenceMatrix
from Calcigraph.core.parameters import PipelineParameters
from Calcigraph.core.processing_pipeline import ExperimentPipeline
from Calcigraph.shared.error_handling import AlignmentError

from conftest import IMAGING_FS, STIMULUS_TIMES, make_channels


class TestExperimentPipeline:
    def test_end_to_end(self, synthetic_experiment):
        """Leader/follower neurons give one directed edge; the flat neuron is dropped."""
        with pytest.warns(UserWarning):
            result = ExperimentPipeline().run(synthetic_experiment)

        assert result.experiment_id == "exp_001"
        assert result.num_neurons_loaded == 3
        assert result.alignment.num_stimuli == len(STIMULUS_TIMES)
        assert result.detection.num_neurons == 2
        assert result.detection.dropped_ids == [2]
        np.testing.assert_array_equal(result.detection.coordinates, [[10.0, 20.0], [30.0, 40.0]])

        adj = result.adjacency
        assert adj.shape == (3, 3)
        assert adj[0, 1] == 1
        assert adj[1, 0] == 0
        assert np.all(adj[:, 2] == 0)

        assert result.metrics is not None
        np.testing.assert_array_equal(result.metrics.out_degree, [1, 0])
        assert result.state == "Awake" and result.depth == "60"

    def test_metrics_can_be_skipped(self, synthetic_experiment):
        with pytest.warns(UserWarning):
            result = ExperimentPipeline(PipelineParameters(compute_metrics=False)).run(synthetic_experiment)
        assert result.metrics is None

    def test_alignment_error_propagates(self):
        traces = np.ones((2, 300))
        experiment = Experiment("no_shutter", FluorescenceMatrix(traces, IMAGING_FS),
                                make_channels(duration=20.0, shutter_start=None))
        with pytest.raises(AlignmentError):
            ExperimentPipeline().run(experiment)
