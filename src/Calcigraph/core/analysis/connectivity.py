# src/Calcigraph/core/analysis/connectivity.py
# -*- coding: utf-8 -*-
"""
Directed functional connectivity from calcium event trains.

Two kinds of edges are inferred:

* stimulus -> neuron, when the delays of a neuron's events after the preceding
  stimulus are many, right-skewed and far from uniform over the
  inter-stimulus interval;
* neuron -> neuron, when the cross-correlation lags between the events of two
  neurons (pooled over inter-stimulus intervals, within +/- max_lag) are both
  non-uniform and not centred on zero. The neuron whose events come first on
  average is the source.

The adjacency matrix has one extra row/column for the stimulus node, placed
last. Only its row is ever set.
"""
import logging
import math
import warnings
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Tuple

import numpy as np

from Calcigraph.core.analysis import stat_tests
from Calcigraph.core.parameters import ConnectivityParameters
from Calcigraph.core.results import (
    ConnectivityResult,
    EventDetectionResult,
    LagRecord,
    StimulusResponse,
)
from Calcigraph.shared.error_handling import AnalysisError, InsufficientSampleWarning

log = logging.getLogger('Calcigraph.core.analysis.connectivity')


def interval_bounds(stimulus_times: Sequence[float], sampling_rate: float, n_samples: int) -> List[Tuple[int, int]]:
    """
    Sample ranges [start, stop) between consecutive stimuli, plus the range after the last one.

    Without stimuli the whole trace is a single range.
    """
    onsets = [int(round(t * sampling_rate)) for t in stimulus_times]
    if not onsets:
        return [(0, n_samples)]
    bounds = [(onsets[r], onsets[r + 1]) for r in range(len(onsets) - 1)]
    bounds.append((onsets[-1], n_samples))
    return bounds


def stimulus_offsets(event_times: np.ndarray, stimulus_times: Sequence[float]) -> np.ndarray:
    """
    Delays of events after the stimulus that precedes them.

    Only events inside [stimulus_times[r], stimulus_times[r+1]) contribute;
    events after the last stimulus have no closing bound and are ignored.
    """
    stimulus_times = np.asarray(stimulus_times, dtype=float)
    event_times = np.asarray(event_times, dtype=float)
    offsets = []
    for start, stop in zip(stimulus_times[:-1], stimulus_times[1:]):
        in_interval = event_times[(event_times >= start) & (event_times < stop)]
        if in_interval.size:
            offsets.append(in_interval - start)
    if not offsets:
        return np.array([])
    return np.concatenate(offsets)


def event_cross_correlation(x_indices: np.ndarray, y_indices: np.ndarray, max_lag: int) -> np.ndarray:
    """
    Cross-correlation of two one-hot event trains at lags -max_lag..max_lag.

    Entry m + max_lag counts the event pairs with x_index - y_index == m, i.e. the
    value of sum_n x[n + m] * y[n] for binary trains.
    """
    counts = np.zeros(2 * max_lag + 1, dtype=int)
    if len(x_indices) == 0 or len(y_indices) == 0:
        return counts
    diffs = np.subtract.outer(np.asarray(x_indices), np.asarray(y_indices)).ravel()
    diffs = diffs[np.abs(diffs) <= max_lag]
    if diffs.size:
        counts += np.bincount(diffs + max_lag, minlength=2 * max_lag + 1)
    return counts


def expand_lag_histogram(counts: np.ndarray, max_lag: int, sampling_rate: float) -> np.ndarray:
    """Repeats each lag by its count; returns lags in seconds, sorted."""
    lags = np.arange(-max_lag, max_lag + 1)
    return np.repeat(lags, counts) / sampling_rate


def pair_lags(x_indices: np.ndarray, y_indices: np.ndarray, bounds: Sequence[Tuple[int, int]],
              max_lag: int, sampling_rate: float) -> np.ndarray:
    """
    Lag multiset of two neurons pooled over intervals.

    Events are only paired with events of the same interval.

    Args:
        x_indices: Sorted event indices of the first neuron.
        y_indices: Sorted event indices of the second neuron.
        bounds: Interval sample ranges from `interval_bounds`.
        max_lag: Lag window in samples.
        sampling_rate: Reference clock rate in Hz.

    Returns:
        Lags in seconds, negative where the first neuron's event comes first.
    """
    counts = np.zeros(2 * max_lag + 1, dtype=int)
    for start, stop in bounds:
        x_seg = x_indices[np.searchsorted(x_indices, start):np.searchsorted(x_indices, stop)]
        if x_seg.size == 0:
            continue
        y_seg = y_indices[np.searchsorted(y_indices, start):np.searchsorted(y_indices, stop)]
        if y_seg.size == 0:
            continue
        counts += event_cross_correlation(x_seg, y_seg, max_lag)
    return expand_lag_histogram(counts, max_lag, sampling_rate)


def evaluate_stimulus_response(neuron: int, offsets: np.ndarray, cdf_table: Optional[np.ndarray],
                               params: ConnectivityParameters) -> StimulusResponse:
    """Applies the stimulus-edge criteria to one neuron's stimulus offsets."""
    response = StimulusResponse(neuron=neuron, num_samples=int(len(offsets)))
    if cdf_table is None or response.num_samples <= params.stim_min_samples:
        return response

    response.p_mean = stat_tests.mean_offset_test(offsets, params.stim_reference_mean)
    response.p_uniform = stat_tests.uniformity_test(offsets, cdf_table)
    response.skewness = stat_tests.skewness(offsets)
    response.connected = bool(
        response.p_mean > params.stim_mean_alpha
        and response.skewness > params.stim_skewness_threshold
        and response.p_uniform < params.stim_uniformity_alpha
    )
    return response


def evaluate_pair(lags: np.ndarray, cdf_table: np.ndarray,
                  params: ConnectivityParameters) -> Tuple[bool, Optional[float], Optional[float]]:
    """
    Applies the pairwise-edge criteria to a lag multiset.

    Returns:
        (connected, p_uniform, p_mean); the p-values are None when there were too few lags.
    """
    if len(lags) <= params.pair_min_samples:
        return False, None, None
    p_uniform = stat_tests.uniformity_test(lags, cdf_table)
    p_mean = stat_tests.mean_offset_test(lags, 0.0)
    connected = p_uniform < params.pair_alpha and p_mean < params.pair_alpha
    return bool(connected), p_uniform, p_mean


def infer_connectivity(
    events: np.ndarray,
    sampling_rate: float,
    stimulus_times: Sequence[float],
    params: Optional[ConnectivityParameters] = None,
    neuron_ids: Optional[np.ndarray] = None,
) -> ConnectivityResult:
    """
    Builds the directed adjacency matrix of a population, stimulus node included.

    Args:
        events: (neurons x samples) binary event matrix on the reference clock.
        sampling_rate: Reference clock rate in Hz.
        stimulus_times: Stimulus onsets in seconds (may be empty).
        params: Lag window and test thresholds. Defaults to ConnectivityParameters().
        neuron_ids: Optional identifiers of the rows, stored on the result.

    Returns:
        ConnectivityResult with a read-only (N+1) x (N+1) adjacency matrix.
    """
    params = params or ConnectivityParameters()
    events = np.asarray(events)
    if events.ndim != 2:
        raise AnalysisError(f"Event matrix must be 2D, got {events.ndim}D")
    if not sampling_rate or sampling_rate <= 0:
        raise AnalysisError(f"Invalid sampling rate: {sampling_rate}")
    stimulus_times = np.sort(np.asarray(stimulus_times, dtype=float))

    n_neurons, n_samples = events.shape
    adjacency = np.zeros((n_neurons + 1, n_neurons + 1), dtype=np.uint8)
    stimulus_node = n_neurons

    event_indices = [np.flatnonzero(events[row]) for row in range(n_neurons)]
    max_lag_samples = int(round(params.max_lag * sampling_rate))
    bounds = interval_bounds(stimulus_times, sampling_rate, n_samples)
    pair_cdf = stat_tests.uniform_cdf_table(-params.max_lag, params.max_lag, params.cdf_step)

    # --- Stimulus -> neuron ---
    stim_cdf = None
    if stimulus_times.size >= 2:
        max_interval = math.ceil(float(np.max(np.diff(stimulus_times))))
        stim_cdf = stat_tests.uniform_cdf_table(0.0, max_interval, params.cdf_step)
    else:
        log.info(f"{stimulus_times.size} stimuli: no inter-stimulus interval, skipping stimulus edges.")

    stimulus_responses = []
    for row in range(n_neurons):
        offsets = stimulus_offsets(event_indices[row] / sampling_rate, stimulus_times)
        response = evaluate_stimulus_response(row, offsets, stim_cdf, params)
        stimulus_responses.append(response)
        if response.connected:
            adjacency[stimulus_node, row] = 1
    stim_insufficient = sum(1 for r in stimulus_responses
                            if stim_cdf is not None and r.num_samples <= params.stim_min_samples)

    # --- Neuron -> neuron ---
    def evaluate_row(i: int) -> List[Tuple[int, np.ndarray, Optional[float], Optional[float], bool]]:
        outcomes = []
        for j in range(i + 1, n_neurons):
            lags = pair_lags(event_indices[i], event_indices[j], bounds, max_lag_samples, sampling_rate)
            connected, p_uniform, p_mean = evaluate_pair(lags, pair_cdf, params)
            outcomes.append((j, lags, p_uniform, p_mean, connected))
        return outcomes

    if params.n_workers > 1 and n_neurons > 2:
        with ThreadPoolExecutor(max_workers=params.n_workers) as executor:
            row_outcomes = list(executor.map(evaluate_row, range(n_neurons)))
    else:
        row_outcomes = [evaluate_row(i) for i in range(n_neurons)]

    lag_records = []
    pairs_tested = 0
    pairs_insufficient = 0
    for i, outcomes in enumerate(row_outcomes):
        for j, lags, p_uniform, p_mean, connected in outcomes:
            pairs_tested += 1
            if p_uniform is None:
                pairs_insufficient += 1
            if not connected:
                continue
            mean_lag = float(np.mean(lags))
            if mean_lag < 0:
                source, target, oriented = i, j, -lags
            else:
                source, target, oriented = j, i, lags
            adjacency[source, target] = 1
            record = LagRecord(source=source, target=target, p_uniform=p_uniform, p_mean=p_mean,
                               mean_lag=float(np.mean(oriented)), lags=oriented)
            lag_records.append(record)
            log.debug(f"Edge {source} -> {target}: {record.num_samples} lags, mean {record.mean_lag:.3f} s, "
                      f"p_uniform={p_uniform:.3g}, p_mean={p_mean:.3g}")

    adjacency.flags.writeable = False
    result = ConnectivityResult(
        adjacency=adjacency,
        lag_records=lag_records,
        stimulus_responses=stimulus_responses,
        neuron_ids=neuron_ids,
        max_lag=params.max_lag,
        pairs_tested=pairs_tested,
        pairs_insufficient=pairs_insufficient,
        parameters={
            'max_lag': params.max_lag,
            'pair_alpha': params.pair_alpha,
            'stim_skewness_threshold': params.stim_skewness_threshold,
            'n_workers': params.n_workers,
        },
    )

    if stimulus_times.size == 0:
        result.add_flag('no_stimulus')
    if pairs_insufficient or stim_insufficient:
        result.add_flag('insufficient_samples')
        msg = (f"Too few samples for {pairs_insufficient} of {pairs_tested} neuron pairs and "
               f"{stim_insufficient} stimulus tests; those edges are absent.")
        log.info(msg)
        warnings.warn(msg, InsufficientSampleWarning, stacklevel=2)

    log.info(f"Connectivity: {result.num_edges} neuron edges, {result.num_stimulus_edges} stimulus edges "
             f"among {n_neurons} neurons.")
    return result


def run_connectivity(detection: EventDetectionResult,
                     params: Optional[ConnectivityParameters] = None) -> ConnectivityResult:
    """Connectivity inference on the output of the event detection."""
    return infer_connectivity(
        detection.events,
        detection.sampling_rate,
        detection.stimulus_times,
        params=params,
        neuron_ids=detection.neuron_ids,
    )
