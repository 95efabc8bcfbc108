# -*- coding: utf-8 -*-
"""Shared constants and analysis defaults for Calcigraph."""
from pathlib import Path

# Acquisition
DEFAULT_IMAGING_FS = 30.9       # Hz, two-photon frame rate
DEFAULT_ANALOG_FS = 1000.0      # Hz, shutter and stimulus channels

# Logging
LOG_DIR = Path.home() / '.calcigraph' / 'logs'
LATEST_LOG_NAME = 'app.log'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEV_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'

# Signal alignment
SHUTTER_PEAK_HEIGHT = 2.5
SHUTTER_PEAK_DISTANCE_SAMPLES = 20
STIMULUS_PEAK_HEIGHT = 3.5
STIMULUS_PEAK_DISTANCE_S = 5.0

# Event detection
MIN_EVENT_DISTANCE_MS = 1500.0
MIN_EVENT_WIDTH_MS = 350.0
SMOOTHING_POLYORDER = 3
SMOOTHING_WINDOW = 767          # samples, must be odd
THRESHOLD_SD_FACTOR = 1.5
MAX_CANDIDATE_EVENTS = 100      # more candidates than this means a noisy trace
ESCALATION_FACTOR = 3.0
RELOCATION_HALF_WINDOW = 200    # samples

# Connectivity
MAX_LAG_S = 2.0
PAIR_MIN_SAMPLES = 5            # strictly more lag samples are required
PAIR_ALPHA = 0.05
STIM_MIN_SAMPLES = 10           # strictly more offsets are required
STIM_REFERENCE_MEAN = 1.0
STIM_MEAN_ALPHA = 0.05
STIM_SKEWNESS_THRESHOLD = 2.0
STIM_UNIFORMITY_ALPHA = 0.05
CDF_TABLE_STEP = 1.0            # seconds between points of the reference CDF table

# Graph metrics
MODULARITY_RESOLUTION = 1.0

# Experiment file keys (.mat as exported by the imaging rig, .npz bundles)
MAT_FLUORESCENCE_KEY = 'F_dff'
MAT_STIMULUS_KEY = 'adc4'
MAT_SHUTTER_KEY = 'adc5'
MAT_CONTOURS_KEY = 'Coor'
SUPPORTED_EXTENSIONS = ('.mat', '.npz')

__all__ = [
    'LOG_DIR',
    'LATEST_LOG_NAME',
    'LOG_FORMAT',
    'DEV_LOG_FORMAT',
    'DEFAULT_IMAGING_FS',
    'DEFAULT_ANALOG_FS',
    'SHUTTER_PEAK_HEIGHT',
    'SHUTTER_PEAK_DISTANCE_SAMPLES',
    'STIMULUS_PEAK_HEIGHT',
    'STIMULUS_PEAK_DISTANCE_S',
    'MIN_EVENT_DISTANCE_MS',
    'MIN_EVENT_WIDTH_MS',
    'SMOOTHING_POLYORDER',
    'SMOOTHING_WINDOW',
    'THRESHOLD_SD_FACTOR',
    'MAX_CANDIDATE_EVENTS',
    'ESCALATION_FACTOR',
    'RELOCATION_HALF_WINDOW',
    'MAX_LAG_S',
    'PAIR_MIN_SAMPLES',
    'PAIR_ALPHA',
    'STIM_MIN_SAMPLES',
    'STIM_REFERENCE_MEAN',
    'STIM_MEAN_ALPHA',
    'STIM_SKEWNESS_THRESHOLD',
    'STIM_UNIFORMITY_ALPHA',
    'CDF_TABLE_STEP',
    'MODULARITY_RESOLUTION',
    'MAT_FLUORESCENCE_KEY',
    'MAT_STIMULUS_KEY',
    'MAT_SHUTTER_KEY',
    'MAT_CONTOURS_KEY',
    'SUPPORTED_EXTENSIONS',
]
