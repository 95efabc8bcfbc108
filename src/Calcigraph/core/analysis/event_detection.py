# src/Calcigraph/core/analysis/event_detection.py
# -*- coding: utf-8 -*-
"""
Calcium event detection on aligned fluorescence traces.

Each trace is smoothed with a Savitzky-Golay filter and thresholded at
mean + k * SD of the smoothed trace. Traces producing too many candidates are
treated as noise-dominated and re-detected at an escalated threshold. Peaks
found on the smoothed trace are moved to the maximum of the raw trace nearby,
which undoes the phase shift of the filter. Neurons left without events are
removed from every per-neuron array.
"""
import logging
import warnings
from typing import Optional, Tuple, Any

import numpy as np
from scipy import signal

from Calcigraph.core.parameters import DetectionParameters
from Calcigraph.core.results import AlignedSignal, EventDetectionResult
from Calcigraph.shared.error_handling import AnalysisError, DegenerateTraceWarning

log = logging.getLogger('Calcigraph.core.analysis.event_detection')


def smooth_trace(trace: np.ndarray, polyorder: int, window: int) -> np.ndarray:
    """
    Savitzky-Golay smoothing. The window is shortened to the trace length for short traces;
    a trace too short for the polynomial order is returned unchanged.
    """
    n = trace.shape[0]
    if window > n:
        window = n if n % 2 == 1 else n - 1
        log.debug(f"Smoothing window shortened to {window} samples for a {n}-sample trace.")
    if window <= polyorder:
        log.debug("Trace too short to smooth; using the raw trace.")
        return trace.astype(float, copy=True)
    return signal.savgol_filter(trace, window_length=window, polyorder=polyorder, mode='interp')


def adaptive_threshold(filtered: np.ndarray, sd_factor: float) -> float:
    """mean + sd_factor * SD (one degree of freedom correction) of the smoothed trace."""
    ddof = 1 if filtered.size > 1 else 0
    return float(np.mean(filtered) + sd_factor * np.std(filtered, ddof=ddof))


def relocate_peaks(trace: np.ndarray, locations: np.ndarray, half_window: int) -> np.ndarray:
    """
    Moves each location to the maximum of `trace` within +/- half_window samples.

    Returns:
        Sorted unique indices into `trace`.
    """
    n = trace.shape[0]
    relocated = []
    for loc in locations:
        lo = max(0, int(loc) - half_window)
        hi = min(n, int(loc) + half_window + 1)
        relocated.append(lo + int(np.argmax(trace[lo:hi])))
    return np.unique(np.asarray(relocated, dtype=int))


def detect_trace_events(
    trace: np.ndarray,
    sampling_rate: float,
    params: Optional[DetectionParameters] = None,
) -> Tuple[np.ndarray, np.ndarray, float, bool]:
    """
    Detects calcium events in a single trace.

    Args:
        trace: 1D aligned fluorescence trace.
        sampling_rate: Sampling rate of the trace in Hz.
        params: Detection settings. Defaults to DetectionParameters().

    Returns:
        A tuple containing:
            - indices: Sorted event indices in the unfiltered trace (may be empty).
            - filtered: The smoothed trace.
            - threshold: The final detection threshold.
            - escalated: Whether the noise escalation was applied.
    """
    params = params or DetectionParameters()
    trace = np.asarray(trace, dtype=float)
    if trace.ndim != 1 or trace.size < 2:
        raise AnalysisError("detect_trace_events: trace must be a 1D array with at least 2 samples")

    filtered = smooth_trace(trace, params.smoothing_polyorder, params.smoothing_window)
    threshold = adaptive_threshold(filtered, params.threshold_sd_factor)
    distance = params.distance_samples(sampling_rate)
    width = params.width_samples(sampling_rate)

    locations, _ = signal.find_peaks(filtered, height=threshold, distance=distance, width=width)

    escalated = False
    for _ in range(params.max_escalations):
        if len(locations) <= params.max_candidate_events:
            break
        log.debug(f"{len(locations)} candidate events exceed {params.max_candidate_events}; "
                  f"escalating threshold by x{params.escalation_factor}.")
        threshold *= params.escalation_factor
        escalated = True
        locations, _ = signal.find_peaks(filtered, height=threshold, distance=distance, width=width)

    if len(locations) == 0:
        return np.array([], dtype=int), filtered, threshold, escalated

    indices = relocate_peaks(trace, locations, params.relocation_half_window)
    return indices, filtered, threshold, escalated


def detect_events(
    aligned: AlignedSignal,
    params: Optional[DetectionParameters] = None,
    coordinates: Optional[np.ndarray] = None,
    neuron_ids: Optional[Any] = None,
) -> EventDetectionResult:
    """
    Detects events in every aligned trace and builds the one-hot event matrix.

    Args:
        aligned: Output of the signal alignment.
        params: Detection settings. Defaults to DetectionParameters().
        coordinates: Optional (neurons x 2) ROI centroids, pruned with the traces.
        neuron_ids: Optional identifiers of the rows. Defaults to 0..N-1.

    Returns:
        EventDetectionResult in which every row has at least one event.
    """
    params = params or DetectionParameters()
    data = np.asarray(aligned.data, dtype=float)
    n_neurons, n_samples = data.shape

    if coordinates is not None:
        coordinates = np.asarray(coordinates, dtype=float)
        if coordinates.shape[0] != n_neurons:
            raise AnalysisError(f"{coordinates.shape[0]} coordinates for {n_neurons} traces")
    neuron_ids = np.arange(n_neurons) if neuron_ids is None else np.asarray(neuron_ids)
    if neuron_ids.shape[0] != n_neurons:
        raise AnalysisError(f"{neuron_ids.shape[0]} neuron ids for {n_neurons} traces")

    events = np.zeros((n_neurons, n_samples), dtype=np.uint8)
    filtered = np.zeros((n_neurons, n_samples))
    thresholds = np.zeros(n_neurons)
    escalated = np.zeros(n_neurons, dtype=bool)
    keep = np.ones(n_neurons, dtype=bool)

    for row in range(n_neurons):
        indices, filtered[row], thresholds[row], escalated[row] = detect_trace_events(
            data[row], aligned.sampling_rate, params
        )
        if indices.size == 0:
            keep[row] = False
            log.info(f"Neuron {neuron_ids[row]}: no events after thresholding; removing it.")
            continue
        events[row, indices] = 1
        log.debug(f"Neuron {neuron_ids[row]}: {indices.size} events (threshold {thresholds[row]:.4g}"
                  f"{', escalated' if escalated[row] else ''}).")

    dropped = [ident.item() if hasattr(ident, 'item') else ident for ident in neuron_ids[~keep]]

    result = EventDetectionResult(
        events=events[keep],
        filtered=filtered[keep],
        traces=data[keep],
        time=aligned.time,
        sampling_rate=aligned.sampling_rate,
        neuron_ids=neuron_ids[keep],
        coordinates=coordinates[keep] if coordinates is not None else None,
        thresholds=thresholds[keep],
        escalated=escalated[keep],
        dropped_ids=dropped,
        stimulus_times=aligned.stimulus_times,
        parameters={
            'min_distance_ms': params.min_distance_ms,
            'min_width_ms': params.min_width_ms,
            'smoothing': [params.smoothing_polyorder, params.smoothing_window],
            'threshold_sd_factor': params.threshold_sd_factor,
            'max_candidate_events': params.max_candidate_events,
            'escalation_factor': params.escalation_factor,
        },
    )

    if dropped:
        msg = f"{len(dropped)} of {n_neurons} neurons produced no events and were removed: {dropped}"
        log.warning(msg)
        warnings.warn(msg, DegenerateTraceWarning, stacklevel=2)
        result.add_flag('neurons_dropped')

    log.info(f"Event detection: {result.num_neurons} neurons kept, {len(dropped)} dropped, "
             f"{int(result.event_counts.sum())} events.")
    return result
