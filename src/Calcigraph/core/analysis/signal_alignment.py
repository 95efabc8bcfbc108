# src/Calcigraph/core/analysis/signal_alignment.py
# -*- coding: utf-8 -*-
"""
Alignment of imaging-rate fluorescence onto the analog reference clock.

The traces are linearly upsampled to the analog rate and placed at the first
shutter pulse, so that reference sample `shift` holds the first imaging frame.
Stimulus onsets are read from the stimulus-marker channel on the same clock.
"""
import logging
import warnings
from typing import Optional

import numpy as np
from scipy import signal
from scipy.interpolate import interp1d

from Calcigraph.core.data_model import FluorescenceMatrix, RawChannelSet
from Calcigraph.core.parameters import AlignmentParameters
from Calcigraph.core.results import AlignedSignal
from Calcigraph.shared.error_handling import AlignmentError, EmptyStimulusWarning

log = logging.getLogger('Calcigraph.core.analysis.signal_alignment')


def upsample_traces(traces: np.ndarray, fs: float, analog_fs: float) -> np.ndarray:
    """
    Linearly interpolates traces from the imaging grid onto the analog grid.

    Args:
        traces: 2D array (neurons x frames) sampled at `fs`.
        fs: Imaging rate in Hz. Frame k sits at k / fs.
        analog_fs: Target rate in Hz.

    Returns:
        2D array (neurons x samples) covering [0, frames / fs] at 1 / analog_fs,
        extrapolated linearly past the last frame.
    """
    traces = np.atleast_2d(np.asarray(traces, dtype=float))
    n_frames = traces.shape[1]
    frame_times = np.arange(n_frames) / fs
    n_samples = int(np.floor(n_frames / fs * analog_fs + 1e-9)) + 1
    target_times = np.arange(n_samples) / analog_fs

    if n_frames == 1:
        return np.repeat(traces, n_samples, axis=1)

    interpolator = interp1d(frame_times, traces, kind='linear', axis=1,
                            fill_value='extrapolate', assume_sorted=True)
    return interpolator(target_times)


def find_epoch_start(shutter: np.ndarray, min_height: float, min_distance: int) -> int:
    """
    Index of the first shutter pulse.

    Raises:
        AlignmentError: If the channel has no peak satisfying the criteria.
    """
    peaks, _ = signal.find_peaks(np.asarray(shutter, dtype=float),
                                 height=min_height, distance=max(1, int(min_distance)))
    if peaks.size == 0:
        raise AlignmentError(
            f"No shutter pulse of height >= {min_height} found; cannot locate the imaging start."
        )
    return int(peaks[0])


def detect_stimulus_times(stimulus: np.ndarray, sampling_rate: float,
                          min_height: float, min_distance: float) -> np.ndarray:
    """
    Stimulus onsets in seconds on the reference clock.

    Args:
        stimulus: Stimulus-marker channel.
        sampling_rate: Channel rate in Hz.
        min_height: Minimum peak height.
        min_distance: Minimum separation between stimuli in seconds.

    Returns:
        Strictly increasing array of times; empty if no stimulus was found.
    """
    distance = max(1, int(round(min_distance * sampling_rate)))
    peaks, _ = signal.find_peaks(np.asarray(stimulus, dtype=float), height=min_height, distance=distance)
    return peaks / sampling_rate


def align_signals(fluorescence: FluorescenceMatrix, channels: RawChannelSet,
                  params: Optional[AlignmentParameters] = None) -> AlignedSignal:
    """
    Upsamples and shifts the fluorescence onto the reference clock and extracts stimulus times.

    Args:
        fluorescence: Traces at the imaging rate.
        channels: Stimulus and shutter channels at the analog rate.
        params: Peak criteria. Defaults to AlignmentParameters().

    Returns:
        AlignedSignal whose rows have the length of the reference channels.

    Raises:
        AlignmentError: If the shutter channel has no pulse.
    """
    params = params or AlignmentParameters()
    analog_fs = channels.sampling_rate
    n_reference = channels.num_samples

    upsampled = upsample_traces(fluorescence.traces, fluorescence.sampling_rate, analog_fs)
    shift = find_epoch_start(channels.shutter, params.shutter_peak_height, params.shutter_peak_distance)

    aligned = np.zeros((fluorescence.num_neurons, n_reference))
    n_fit = min(upsampled.shape[1], n_reference - shift)
    if n_fit < upsampled.shape[1]:
        log.warning(
            f"Upsampled traces ({upsampled.shape[1]} samples) overrun the reference channel after the "
            f"shift of {shift} samples; dropping the last {upsampled.shape[1] - n_fit} samples."
        )
    aligned[:, shift:shift + n_fit] = upsampled[:, :n_fit]

    stimulus_times = detect_stimulus_times(channels.stimulus, analog_fs,
                                           params.stimulus_peak_height, params.stimulus_peak_distance)

    result = AlignedSignal(
        data=aligned,
        time=channels.get_time_vector(),
        sampling_rate=analog_fs,
        shift=shift,
        upsampled_length=n_fit,
        stimulus_times=stimulus_times,
        parameters={
            'shutter_peak_height': params.shutter_peak_height,
            'shutter_peak_distance': params.shutter_peak_distance,
            'stimulus_peak_height': params.stimulus_peak_height,
            'stimulus_peak_distance': params.stimulus_peak_distance,
        },
    )
    if stimulus_times.size == 0:
        msg = "No stimulus events detected; stimulus-driven edges cannot be inferred."
        log.warning(msg)
        warnings.warn(msg, EmptyStimulusWarning, stacklevel=2)
        result.add_flag('no_stimulus')

    log.info(f"Aligned {fluorescence.num_neurons} traces at shift {shift} "
             f"({shift / analog_fs:.3f} s); {stimulus_times.size} stimuli detected.")
    return result
