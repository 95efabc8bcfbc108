# src/Calcigraph/infrastructure/exporters/csv_exporter.py
# -*- coding: utf-8 -*-
"""
CSV Exporter for Calcigraph.
Handles exporting connectivity results and batch summaries to CSV format.
"""

import csv
import logging
from pathlib import Path
from typing import Dict, List, Union

import numpy as np
import pandas as pd

from Calcigraph.core.results import ExperimentResult
from Calcigraph.shared.error_handling import ExportError

log = logging.getLogger('Calcigraph.infrastructure.exporters.csv_exporter')


def _safe_name(name: str) -> str:
    return str(name).replace(" ", "_").replace("/", "-")


class CSVExporter:
    """
    Handles export of analysis results to CSV files.
    """

    def export_experiment(self, result: ExperimentResult, output_dir: Union[str, Path]) -> Dict[str, Path]:
        """
        Export the outputs of one experiment, one CSV file per table.

        Files written (prefixed with the experiment id):
            adjacency.csv, events.csv, stimuli.csv, stimulus_responses.csv, lags.csv
            and, when graph metrics were computed, node_metrics.csv.

        Returns:
            Mapping of table name to written path.

        Raises:
            ExportError: If a file cannot be written.
        """
        output_dir = Path(output_dir)
        prefix = _safe_name(result.experiment_id)
        written = {}

        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            written['adjacency'] = self._export_adjacency(result, output_dir / f"{prefix}_adjacency.csv")
            written['events'] = self._export_events(result, output_dir / f"{prefix}_events.csv")

            stimuli_path = output_dir / f"{prefix}_stimuli.csv"
            np.savetxt(stimuli_path, result.alignment.stimulus_times, delimiter=",", fmt="%.6f",
                       header="Stimulus time (s)", comments="")
            written['stimuli'] = stimuli_path

            written['stimulus_responses'] = self._export_stimulus_responses(
                result, output_dir / f"{prefix}_stimulus_responses.csv")
            written['lags'] = self._export_lags(result, output_dir / f"{prefix}_lags.csv")

            if result.metrics is not None:
                written['node_metrics'] = self._export_node_metrics(
                    result, output_dir / f"{prefix}_node_metrics.csv")
        except OSError as e:
            log.error(f"Failed to export results of {result.experiment_id}: {e}")
            raise ExportError(f"Failed to export results of {result.experiment_id} to {output_dir}: {e}") from e

        log.info(f"Exported {len(written)} tables for {result.experiment_id} to {output_dir}")
        return written

    def export_summary(self, summary: pd.DataFrame, output_path: Union[str, Path]) -> Path:
        """
        Export a batch summary table.

        Raises:
            ExportError: If the file cannot be written.
        """
        output_path = Path(output_path)
        if summary.empty:
            log.warning("Batch summary is empty; writing header only.")
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            summary.to_csv(output_path, index=summary.index.name is not None)
        except OSError as e:
            raise ExportError(f"Failed to write summary to {output_path}: {e}") from e
        log.info(f"Successfully exported batch summary ({len(summary)} rows) to {output_path}")
        return output_path

    def _export_adjacency(self, result: ExperimentResult, path: Path) -> Path:
        # Rows are sources, columns targets; the stimulus node is last.
        labels = [str(i) for i in self._neuron_labels(result)] + ["stimulus"]
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(["source"] + labels)
            for label, row in zip(labels, result.connectivity.adjacency):
                writer.writerow([label] + [int(v) for v in row])
        return path

    def _export_events(self, result: ExperimentResult, path: Path) -> Path:
        detection = result.detection
        labels = self._neuron_labels(result)
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(["neuron", "x", "y", "threshold", "escalated", "event_time_s"])
            for row in range(detection.num_neurons):
                if detection.coordinates is not None:
                    x, y = detection.coordinates[row]
                else:
                    x, y = "", ""
                for t in detection.event_times(row):
                    writer.writerow([labels[row], x, y, f"{detection.thresholds[row]:.6g}",
                                     bool(detection.escalated[row]), f"{t:.6f}"])
        return path

    def _export_stimulus_responses(self, result: ExperimentResult, path: Path) -> Path:
        labels = self._neuron_labels(result)
        rows = []
        for response in result.connectivity.stimulus_responses:
            rows.append({
                'neuron': labels[response.neuron],
                'num_samples': response.num_samples,
                'p_mean': response.p_mean,
                'p_uniform': response.p_uniform,
                'skewness': response.skewness,
                'connected': response.connected,
            })
        pd.DataFrame(rows, columns=['neuron', 'num_samples', 'p_mean', 'p_uniform', 'skewness', 'connected']
                     ).to_csv(path, index=False)
        return path

    def _export_lags(self, result: ExperimentResult, path: Path) -> Path:
        labels = self._neuron_labels(result)
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(["source", "target", "p_uniform", "p_mean", "mean_lag_s", "num_lags", "lags_s"])
            for record in result.connectivity.lag_records:
                writer.writerow([
                    labels[record.source], labels[record.target],
                    f"{record.p_uniform:.6g}", f"{record.p_mean:.6g}", f"{record.mean_lag:.6f}",
                    record.num_samples, " ".join(f"{lag:.3f}" for lag in record.lags),
                ])
        return path

    def _export_node_metrics(self, result: ExperimentResult, path: Path) -> Path:
        metrics = result.metrics
        in_component = np.zeros(len(metrics.in_degree), dtype=bool)
        if metrics.largest_component is not None:
            in_component[metrics.largest_component] = True
        pd.DataFrame({
            'neuron': self._neuron_labels(result),
            'in_degree': metrics.in_degree,
            'out_degree': metrics.out_degree,
            'betweenness': metrics.betweenness,
            'community': metrics.communities,
            'largest_component': in_component,
        }).to_csv(path, index=False)
        return path

    @staticmethod
    def _neuron_labels(result: ExperimentResult) -> List:
        ids = result.detection.neuron_ids
        if ids is None:
            return list(range(result.detection.num_neurons))
        return [ident.item() if hasattr(ident, 'item') else ident for ident in ids]
