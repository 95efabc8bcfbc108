# src/Calcigraph/core/data_model.py
# -*- coding: utf-8 -*-
"""
Core Domain Data Models for Calcigraph.

Defines the input records of one imaging experiment: the fluorescence traces
of the segmented neurons at the imaging rate, and the two analog channels
(stimulus marker and microscope shutter) recorded on the reference clock.
"""

import logging
from pathlib import Path
from typing import Optional, Dict, Any

import numpy as np

from Calcigraph.shared.error_handling import AnalysisError

log = logging.getLogger('Calcigraph.core.data_model')


def _frozen(array: np.ndarray) -> np.ndarray:
    array = np.array(array, dtype=float, copy=True)
    array.flags.writeable = False
    return array


def condition_label(state: Optional[str], depth: Optional[str]) -> Optional[str]:
    """Grouping label such as 'Awake_150', or the state alone when depth is unknown."""
    if state and depth:
        return f"{state}_{depth}"
    return state


class RawChannelSet:
    """
    The stimulus-marker and shutter channels sampled on the shared reference clock.
    """
    def __init__(self, stimulus: np.ndarray, shutter: np.ndarray, sampling_rate: float):
        """
        Args:
            stimulus: 1D array of the stimulus-marker channel (e.g. air-puff valve).
            shutter: 1D array of the two-photon shutter channel.
            sampling_rate: Sampling rate of both channels in Hz.
        """
        stimulus = np.ravel(np.asarray(stimulus, dtype=float))
        shutter = np.ravel(np.asarray(shutter, dtype=float))
        if stimulus.shape != shutter.shape:
            raise AnalysisError(
                f"Stimulus ({stimulus.size} samples) and shutter ({shutter.size} samples) "
                "channels must span the same time base."
            )
        if stimulus.size == 0:
            raise AnalysisError("Analog channels are empty.")
        if not sampling_rate or sampling_rate <= 0:
            raise AnalysisError(f"Invalid analog sampling rate: {sampling_rate}")

        self.stimulus: np.ndarray = _frozen(stimulus)
        self.shutter: np.ndarray = _frozen(shutter)
        self.sampling_rate: float = float(sampling_rate)

    @property
    def num_samples(self) -> int:
        return self.shutter.shape[0]

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return self.num_samples / self.sampling_rate

    def get_time_vector(self) -> np.ndarray:
        """Reference time base, starting at 0 s."""
        return np.arange(self.num_samples) / self.sampling_rate

    def __repr__(self):
        return f"RawChannelSet(samples={self.num_samples}, fs={self.sampling_rate} Hz)"


class FluorescenceMatrix:
    """
    Per-neuron fluorescence traces at the imaging rate. Rows map 1:1 to neurons.
    """
    def __init__(self, traces: np.ndarray, sampling_rate: float,
                 coordinates: Optional[np.ndarray] = None,
                 neuron_ids: Optional[np.ndarray] = None):
        """
        Args:
            traces: 2D array (neurons x frames).
            sampling_rate: Imaging frame rate in Hz.
            coordinates: Optional (neurons x 2) array of ROI centroids in pixels.
            neuron_ids: Optional identifiers of the rows. Defaults to 0..N-1.
        """
        traces = np.asarray(traces, dtype=float)
        if traces.ndim == 1:
            traces = traces[np.newaxis, :]
        if traces.ndim != 2:
            raise AnalysisError(f"Fluorescence traces must be 2D (neurons x frames), got {traces.ndim}D.")
        if not sampling_rate or sampling_rate <= 0:
            raise AnalysisError(f"Invalid imaging sampling rate: {sampling_rate}")

        n_neurons = traces.shape[0]
        if coordinates is not None:
            coordinates = np.asarray(coordinates, dtype=float)
            if coordinates.shape != (n_neurons, 2):
                raise AnalysisError(
                    f"Coordinates shape {coordinates.shape} does not match {n_neurons} neurons."
                )
            coordinates = _frozen(coordinates)
        if neuron_ids is None:
            neuron_ids = np.arange(n_neurons)
        neuron_ids = np.asarray(neuron_ids)
        if neuron_ids.shape != (n_neurons,):
            raise AnalysisError("neuron_ids must have one entry per trace.")
        neuron_ids = neuron_ids.copy()
        neuron_ids.flags.writeable = False

        self.traces: np.ndarray = _frozen(traces)
        self.sampling_rate: float = float(sampling_rate)
        self.coordinates: Optional[np.ndarray] = coordinates
        self.neuron_ids: np.ndarray = neuron_ids

    @property
    def num_neurons(self) -> int:
        return self.traces.shape[0]

    @property
    def num_frames(self) -> int:
        return self.traces.shape[1]

    @property
    def duration(self) -> float:
        return self.num_frames / self.sampling_rate

    def get_time_vector(self) -> np.ndarray:
        """Native imaging grid: frame k is at k / fs."""
        return np.arange(self.num_frames) / self.sampling_rate

    def __repr__(self):
        return (f"FluorescenceMatrix(neurons={self.num_neurons}, frames={self.num_frames}, "
                f"fs={self.sampling_rate} Hz)")


class Experiment:
    """
    Represents one imaging experiment: fluorescence, analog channels and metadata.
    """
    def __init__(self, experiment_id: str, fluorescence: FluorescenceMatrix, channels: RawChannelSet,
                 state: Optional[str] = None, depth: Optional[str] = None,
                 source_file: Optional[Path] = None):
        self.experiment_id: str = str(experiment_id)
        self.fluorescence: FluorescenceMatrix = fluorescence
        self.channels: RawChannelSet = channels
        self.state: Optional[str] = state
        self.depth: Optional[str] = depth
        self.source_file: Optional[Path] = Path(source_file) if source_file else None
        self.metadata: Dict[str, Any] = {}

        if fluorescence.duration > channels.duration:
            log.warning(
                f"Experiment '{self.experiment_id}': imaging ({fluorescence.duration:.2f} s) is longer "
                f"than the analog recording ({channels.duration:.2f} s); the aligned traces will be truncated."
            )

    @property
    def condition(self) -> Optional[str]:
        return condition_label(self.state, self.depth)

    def __repr__(self):
        return (f"Experiment(id='{self.experiment_id}', neurons={self.fluorescence.num_neurons}, "
                f"state={self.state}, depth={self.depth})")
