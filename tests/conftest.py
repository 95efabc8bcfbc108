import sys
from pathlib import Path

import numpy as np
import pytest

# Make sure src directory is included for imports if running pytest from root
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from Calcigraph.core.data_model import Experiment, FluorescenceMatrix, RawChannelSet  # noqa: E402

IMAGING_FS = 30.9
ANALOG_FS = 1000.0
SHUTTER_START = 500  # Reference sample of the first imaging frame
STIMULUS_TIMES = [10.0 * k for k in range(1, 12)]


def gaussian_bumps(time: np.ndarray, centres, sigma: float = 0.3, height: float = 1.0) -> np.ndarray:
    """Sum of Gaussian transients centred at `centres` (seconds)."""
    trace = np.zeros_like(time, dtype=float)
    for c in centres:
        trace += height * np.exp(-0.5 * ((time - c) / sigma) ** 2)
    return trace


def make_channels(duration: float = 120.0, stimulus_times=STIMULUS_TIMES,
                  shutter_start: int = SHUTTER_START, analog_fs: float = ANALOG_FS) -> RawChannelSet:
    """Stimulus channel with one-sample pulses; shutter pulse train starting at `shutter_start`."""
    n = int(duration * analog_fs)
    stimulus = np.zeros(n)
    for t in stimulus_times:
        stimulus[int(round(t * analog_fs))] = 5.0
    shutter = np.zeros(n)
    if shutter_start is not None:
        shutter[shutter_start::32] = 5.0
    return RawChannelSet(stimulus, shutter, analog_fs)


@pytest.fixture
def channels():
    return make_channels()


@pytest.fixture
def synthetic_experiment():
    """
    Three neurons imaged for 100 s, starting 0.5 s into a 120 s analog recording.

    Neuron 0 fires 3 s after each of the first nine stimuli, neuron 1 fires 0.3 s
    after neuron 0, neuron 2 is flat and yields no events.
    """
    n_frames = int(100.0 * IMAGING_FS)
    frame_time = np.arange(n_frames) / IMAGING_FS
    offset = SHUTTER_START / ANALOG_FS
    leader = [t + 3.0 - offset for t in STIMULUS_TIMES[:9]]
    follower = [t + 0.3 for t in leader]
    traces = np.vstack([
        gaussian_bumps(frame_time, leader),
        gaussian_bumps(frame_time, follower),
        np.zeros(n_frames),
    ])
    coordinates = np.array([[10.0, 20.0], [30.0, 40.0], [50.0, 60.0]])
    fluorescence = FluorescenceMatrix(traces, IMAGING_FS, coordinates=coordinates)
    return Experiment("exp_001", fluorescence, make_channels(), state="Awake", depth="60")


@pytest.fixture
def lagged_event_matrix():
    """
    (3 x 300000) event matrix at 1 kHz with stimuli every 30 s.

    Neuron 0 fires 5 s into each interval, neuron 1 0.3 s later, neuron 2 fires once.
    """
    fs = 1000.0
    stimulus_times = np.arange(10) * 30.0
    events = np.zeros((3, 300000), dtype=np.uint8)
    for t in stimulus_times:
        events[0, int((t + 5.0) * fs)] = 1
        events[1, int((t + 5.3) * fs)] = 1
    events[2, 150000] = 1
    return events, fs, stimulus_times
