# src/Calcigraph/core/processing_pipeline.py
# -*- coding: utf-8 -*-
"""
Single-experiment analysis pipeline.

Fixes the order of the stages (alignment -> event detection -> connectivity ->
graph metrics) and hands each stage's typed result to the next one. Fatal
errors (CalcigraphError subclasses) propagate to the caller; degraded
conditions are carried in the `quality_flags` of the stage results.
"""
import logging
from typing import Optional

from Calcigraph.core.analysis.connectivity import run_connectivity
from Calcigraph.core.analysis.event_detection import detect_events
from Calcigraph.core.analysis.graph_metrics import compute_graph_metrics
from Calcigraph.core.analysis.signal_alignment import align_signals
from Calcigraph.core.data_model import Experiment
from Calcigraph.core.parameters import PipelineParameters
from Calcigraph.core.results import ExperimentResult

log = logging.getLogger('Calcigraph.core.processing_pipeline')


class ExperimentPipeline:
    """
    Runs every analysis stage on one Experiment.

    Example:
        pipeline = ExperimentPipeline(load_parameters("params.json"))
        result = pipeline.run(experiment)
        result.adjacency  # (N+1) x (N+1), stimulus node last
    """

    def __init__(self, params: Optional[PipelineParameters] = None):
        self.params = params or PipelineParameters()

    def run(self, experiment: Experiment) -> ExperimentResult:
        """
        Analyse one experiment.

        Raises:
            AlignmentError: If the shutter channel has no pulse.
            AnalysisError: If a stage receives inconsistent inputs.
        """
        log.info(f"Processing experiment '{experiment.experiment_id}' "
                 f"({experiment.fluorescence.num_neurons} neurons).")

        alignment = align_signals(experiment.fluorescence, experiment.channels, self.params.alignment)
        detection = detect_events(
            alignment,
            self.params.detection,
            coordinates=experiment.fluorescence.coordinates,
            neuron_ids=experiment.fluorescence.neuron_ids,
        )
        connectivity = run_connectivity(detection, self.params.connectivity)

        metrics = None
        if self.params.compute_metrics:
            metrics = compute_graph_metrics(connectivity)

        result = ExperimentResult(
            experiment_id=experiment.experiment_id,
            num_neurons_loaded=experiment.fluorescence.num_neurons,
            alignment=alignment,
            detection=detection,
            connectivity=connectivity,
            metrics=metrics,
            state=experiment.state,
            depth=experiment.depth,
        )
        log.info(f"Finished '{experiment.experiment_id}': {result!r}")
        return result
