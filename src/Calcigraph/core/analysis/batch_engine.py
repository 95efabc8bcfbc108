"""
Batch Analysis Engine for Calcigraph.
Runs the connectivity pipeline over many experiments and aggregates a summary per experiment.

Each experiment is analysed with a fresh pipeline run; nothing is shared between
experiments except the ConnectivitySummary accumulator, which is filled
explicitly by the engine.
"""
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Any, Sequence, Union

import numpy as np
import pandas as pd

from Calcigraph.core.data_model import condition_label
from Calcigraph.core.parameters import PipelineParameters
from Calcigraph.core.processing_pipeline import ExperimentPipeline
from Calcigraph.core.results import ExperimentResult
from Calcigraph.infrastructure.file_readers.experiment_reader import ExperimentReader, ExperimentSource
from Calcigraph.shared.error_handling import CalcigraphError

log = logging.getLogger('Calcigraph.core.analysis.batch_engine')

SUMMARY_COLUMNS = [
    'experiment_id',
    'state',
    'depth',
    'condition',
    'neurons_loaded',
    'neurons_active',
    'num_stimuli',
    'num_edges',
    'num_stimulus_edges',
    'density',
    'mean_in_degree',
    'mean_out_degree',
    'largest_component_size',
    'quality_flags',
    'error',
]


class ConnectivitySummary:
    """
    Accumulates one summary row per experiment.

    Example:
        summary = ConnectivitySummary()
        summary.add(result)
        summary.to_dataframe()
        summary.by_condition()  # mean per 'state_depth'
    """

    def __init__(self):
        self._rows: List[Dict[str, Any]] = []
        self._results: Dict[str, ExperimentResult] = {}

    def __len__(self) -> int:
        return len(self._rows)

    @property
    def results(self) -> Dict[str, ExperimentResult]:
        """Full results of the successful experiments, keyed by experiment id."""
        return dict(self._results)

    def add(self, result: ExperimentResult, keep_result: bool = True):
        """Append the summary row of a finished experiment."""
        connectivity = result.connectivity
        metrics = result.metrics
        flags = sorted(set(result.alignment.quality_flags + result.detection.quality_flags
                           + connectivity.quality_flags))
        row = {
            'experiment_id': result.experiment_id,
            'state': result.state,
            'depth': result.depth,
            'condition': condition_label(result.state, result.depth),
            'neurons_loaded': result.num_neurons_loaded,
            'neurons_active': result.detection.num_neurons,
            'num_stimuli': result.alignment.num_stimuli,
            'num_edges': connectivity.num_edges,
            'num_stimulus_edges': connectivity.num_stimulus_edges,
            'density': metrics.density if metrics else np.nan,
            'mean_in_degree': float(np.mean(metrics.in_degree)) if metrics and len(metrics.in_degree) else np.nan,
            'mean_out_degree': float(np.mean(metrics.out_degree)) if metrics and len(metrics.out_degree) else np.nan,
            'largest_component_size': metrics.largest_component_size if metrics else np.nan,
            'quality_flags': ';'.join(flags),
            'error': None,
        }
        self._rows.append(row)
        if keep_result:
            self._results[result.experiment_id] = result

    def add_error(self, experiment_id: str, error: Union[str, Exception],
                  state: Optional[str] = None, depth: Optional[str] = None):
        """Append a row for an experiment that could not be analysed."""
        row = {column: None for column in SUMMARY_COLUMNS}
        row.update({
            'experiment_id': experiment_id,
            'state': state,
            'depth': depth,
            'condition': condition_label(state, depth),
            'error': str(error),
        })
        self._rows.append(row)

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self._rows, columns=SUMMARY_COLUMNS)

    def by_condition(self) -> pd.DataFrame:
        """Mean and count of the numeric columns per condition, failed experiments excluded."""
        df = self.to_dataframe()
        df = df[df['error'].isna()]
        numeric = ['neurons_loaded', 'neurons_active', 'num_stimuli', 'num_edges', 'num_stimulus_edges',
                   'density', 'mean_in_degree', 'mean_out_degree', 'largest_component_size']
        if df.empty:
            return pd.DataFrame(columns=numeric)
        df = df.astype({column: float for column in numeric})
        df['condition'] = df['condition'].fillna('unlabelled')
        grouped = df.groupby('condition')[numeric].mean()
        grouped.insert(0, 'num_experiments', df.groupby('condition').size())
        return grouped


class BatchAnalysisEngine:
    """
    Engine for running the connectivity pipeline across multiple experiment files.

    Example Usage:
        engine = BatchAnalysisEngine(params=load_parameters("params.json"))
        sources, options = load_manifest("manifest.json")
        summary = engine.run_batch(sources)
        summary.to_dataframe()
    """

    def __init__(self, reader: Optional[ExperimentReader] = None,
                 params: Optional[PipelineParameters] = None):
        """
        Initialize the batch analysis engine.

        Args:
            reader: Optional ExperimentReader instance. If None, creates a new one.
            params: Pipeline parameters shared by every experiment.
        """
        self.reader = reader if reader else ExperimentReader()
        self.params = params or PipelineParameters()
        self._cancelled = False

    def cancel(self):
        """Request cancellation of the current batch run."""
        self._cancelled = True
        log.info("Batch analysis cancellation requested.")

    def run_batch(self,
                  sources: Sequence[Union[ExperimentSource, Path, str]],
                  progress_callback: Optional[Callable[[int, int, str], None]] = None,
                  keep_results: bool = True) -> ConnectivitySummary:
        """
        Run the pipeline on every source.

        Args:
            sources: ExperimentSource entries, or plain file paths.
            progress_callback: Optional callback (current, total, status_msg).
            keep_results: Keep the full ExperimentResult of every experiment in the summary.

        Returns:
            ConnectivitySummary with one row per processed experiment. Experiments
            that failed with a CalcigraphError get an error row.
        """
        self._cancelled = False
        summary = ConnectivitySummary()
        sources = [s if isinstance(s, ExperimentSource) else ExperimentSource(path=Path(s)) for s in sources]
        total = len(sources)
        batch_start_time = datetime.now()
        log.info(f"Starting batch of {total} experiments.")

        i = 0
        for i, source in enumerate(sources):
            if self._cancelled:
                log.info("Batch analysis cancelled by user.")
                break

            experiment_id = source.experiment_id or Path(source.path).stem
            if progress_callback:
                progress_callback(i, total, f"Processing {experiment_id}...")

            try:
                experiment = self.reader.read(source.path, experiment_id=experiment_id,
                                              state=source.state, depth=source.depth)
                result = ExperimentPipeline(self.params).run(experiment)
                summary.add(result, keep_result=keep_results)
            except CalcigraphError as e:
                log.error(f"Error processing experiment {experiment_id} ({source.path}): {e}", exc_info=True)
                summary.add_error(experiment_id, e, state=source.state, depth=source.depth)

        if progress_callback:
            if self._cancelled:
                progress_callback(i, total, "Batch analysis cancelled.")
            else:
                progress_callback(total, total, "Batch analysis complete.")

        elapsed = (datetime.now() - batch_start_time).total_seconds()
        log.info(f"Batch finished: {len(summary)} of {total} experiments in {elapsed:.1f} s.")
        return summary
