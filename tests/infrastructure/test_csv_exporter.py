import pandas as pd
import pytest

from Calcigraph.core.processing_pipeline import ExperimentPipeline
from Calcigraph.infrastructure.exporters.csv_exporter import CSVExporter
from Calcigraph.shared.error_handling import ExportError


@pytest.fixture
def result(synthetic_experiment):
    with pytest.warns(UserWarning):
        return ExperimentPipeline().run(synthetic_experiment)


class TestCSVExporter:
    def test_experiment_tables(self, result, tmp_path):
        written = CSVExporter().export_experiment(result, tmp_path / "out")
        assert set(written) == {'adjacency', 'events', 'stimuli', 'stimulus_responses', 'lags', 'node_metrics'}
        assert all(path.exists() for path in written.values())
        assert written['adjacency'].name == "exp_001_adjacency.csv"

    def test_adjacency_layout(self, result, tmp_path):
        """Rows are sources, columns targets, the stimulus node last."""
        path = CSVExporter().export_experiment(result, tmp_path)['adjacency']
        adjacency = pd.read_csv(path, index_col=0)
        assert list(adjacency.columns) == ['0', '1', 'stimulus']
        assert adjacency.loc['0', '1'] == 1
        assert adjacency.loc['1', '0'] == 0
        assert adjacency['stimulus'].sum() == 0

    def test_events_and_lags(self, result, tmp_path):
        written = CSVExporter().export_experiment(result, tmp_path)
        events = pd.read_csv(written['events'])
        assert set(events['neuron']) == {0, 1}
        assert len(events) == int(result.detection.event_counts.sum())

        lags = pd.read_csv(written['lags'])
        assert len(lags) == 1
        assert lags.loc[0, 'source'] == 0 and lags.loc[0, 'target'] == 1
        assert lags.loc[0, 'mean_lag_s'] == pytest.approx(0.3, abs=0.05)

        stimuli = pd.read_csv(written['stimuli'])
        assert len(stimuli) == result.alignment.num_stimuli

    def test_node_metrics_skipped_without_metrics(self, result, tmp_path):
        result.metrics = None
        written = CSVExporter().export_experiment(result, tmp_path)
        assert 'node_metrics' not in written

    def test_unwritable_target(self, result, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        with pytest.raises(ExportError):
            CSVExporter().export_summary(pd.DataFrame({'a': [1]}), blocker / "summary.csv")

    def test_output_dir_is_a_file(self, result, tmp_path):
        """A directory that cannot be created is reported as an ExportError."""
        blocker = tmp_path / "out"
        blocker.write_text("")
        with pytest.raises(ExportError):
            CSVExporter().export_experiment(result, blocker)

    def test_summary_index_kept_when_named(self, tmp_path):
        df = pd.DataFrame({'num_edges': [1.0, 2.0]}, index=pd.Index(['Awake_60', 'Awake_150'], name='condition'))
        path = CSVExporter().export_summary(df, tmp_path / "by_condition.csv")
        assert pd.read_csv(path).columns.tolist() == ['condition', 'num_edges']
