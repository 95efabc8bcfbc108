# src/Calcigraph/infrastructure/file_readers/experiment_reader.py
# -*- coding: utf-8 -*-
"""
Reader translating experiment files into Calcigraph Experiment objects.

Two formats are supported:

* MATLAB `.mat` files holding `F_dff` (neurons x frames dF/F), `adc4`
  (stimulus channel), `adc5` (shutter channel) and optionally `Coor`, a cell
  array of ROI perimeters (2 x K pixel coordinates each);
* NumPy `.npz` bundles holding `fluorescence`, `stimulus`, `shutter` and
  optionally `coordinates` (neurons x 2), `fs` and `analog_fs`.

ROIs whose perimeter is empty are dropped together with their trace. Batch
runs are described by a JSON manifest, see `load_manifest`.
"""
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np
import scipy.io

from Calcigraph.core.data_model import Experiment, FluorescenceMatrix, RawChannelSet
from Calcigraph.shared import constants
from Calcigraph.shared.error_handling import (
    AnalysisError,
    ConfigurationError,
    FileReadError,
    UnsupportedFormatError,
)

log = logging.getLogger('Calcigraph.infrastructure.file_readers.experiment_reader')


@dataclass
class ExperimentSource:
    """One entry of a batch manifest."""

    path: Path
    experiment_id: Optional[str] = None
    state: Optional[str] = None
    depth: Optional[str] = None


def _dense(value) -> np.ndarray:
    # loadmat returns MATLAB sparse matrices as scipy.sparse objects
    if hasattr(value, 'toarray'):
        value = value.toarray()
    return np.asarray(value, dtype=float)


def roi_centroids(contours) -> Tuple[np.ndarray, np.ndarray]:
    """
    Centroids of ROI perimeters.

    Args:
        contours: Sequence (or MATLAB cell array) of perimeter point arrays,
            either 2 x K or K x 2.

    Returns:
        (centroids, keep): (M x 2) centroids of the non-empty ROIs and a boolean
        mask over all ROIs marking which ones were kept.
    """
    if isinstance(contours, np.ndarray):
        cells = list(contours.ravel())
    else:
        cells = list(contours)
    keep = np.zeros(len(cells), dtype=bool)
    centroids = []
    for i, cell in enumerate(cells):
        points = np.asarray(cell, dtype=float)
        if points.size == 0:
            continue
        if points.ndim != 2:
            points = points.reshape(2, -1)
        elif points.shape[0] != 2 and points.shape[1] == 2:
            points = points.T
        centroids.append(points.mean(axis=1))
        keep[i] = True
    return np.array(centroids, dtype=float).reshape(-1, 2), keep


class ExperimentReader:
    """
    Reads experiment files into Experiment objects.

    Args:
        fs: Imaging frame rate in Hz, used when the file does not store one.
        analog_fs: Analog channel rate in Hz, used when the file does not store one.
    """

    def __init__(self, fs: float = constants.DEFAULT_IMAGING_FS,
                 analog_fs: float = constants.DEFAULT_ANALOG_FS):
        self.fs = fs
        self.analog_fs = analog_fs

    def get_supported_extensions(self) -> List[str]:
        return list(constants.SUPPORTED_EXTENSIONS)

    def read(self, filepath: Union[str, Path], experiment_id: Optional[str] = None,
             state: Optional[str] = None, depth: Optional[str] = None) -> Experiment:
        """
        Read one experiment file.

        Raises:
            FileReadError: If the file is missing, unreadable or lacks a required field.
            UnsupportedFormatError: If the extension is not supported.
        """
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileReadError(f"File not found: {filepath}")
        extension = filepath.suffix.lower()
        supported = self.get_supported_extensions()
        if extension not in supported:
            raise UnsupportedFormatError(
                f"Unsupported file extension '{extension}'. Supported: {', '.join(supported)}"
            )

        log.info(f"Reading experiment file: {filepath}")
        if extension == '.mat':
            traces, stimulus, shutter, coordinates, fs, analog_fs = self._read_mat(filepath)
        else:
            traces, stimulus, shutter, coordinates, fs, analog_fs = self._read_npz(filepath)

        try:
            fluorescence = FluorescenceMatrix(traces, fs, coordinates=coordinates)
            channels = RawChannelSet(stimulus, shutter, analog_fs)
        except AnalysisError as e:
            raise FileReadError(f"Invalid experiment data in {filepath}: {e}") from e

        experiment = Experiment(
            experiment_id=experiment_id or filepath.stem,
            fluorescence=fluorescence,
            channels=channels,
            state=state,
            depth=depth,
            source_file=filepath,
        )
        experiment.metadata.update({'imaging_fs': fs, 'analog_fs': analog_fs})
        log.info(f"Loaded {experiment!r}")
        return experiment

    def _read_mat(self, filepath: Path):
        try:
            contents = scipy.io.loadmat(str(filepath))
        except (OSError, ValueError, NotImplementedError) as e:
            raise FileReadError(f"Could not read MATLAB file {filepath}: {e}") from e

        missing = [key for key in (constants.MAT_FLUORESCENCE_KEY, constants.MAT_STIMULUS_KEY,
                                   constants.MAT_SHUTTER_KEY) if key not in contents]
        if missing:
            raise FileReadError(f"{filepath.name} is missing required variables: {missing}")

        traces = _dense(contents[constants.MAT_FLUORESCENCE_KEY])
        stimulus = _dense(contents[constants.MAT_STIMULUS_KEY]).ravel()
        shutter = _dense(contents[constants.MAT_SHUTTER_KEY]).ravel()

        coordinates = None
        if constants.MAT_CONTOURS_KEY in contents:
            contours = contents[constants.MAT_CONTOURS_KEY]
            if contours.size != traces.shape[0]:
                raise FileReadError(
                    f"{filepath.name}: {contours.size} ROI contours for {traces.shape[0]} traces"
                )
            coordinates, keep = roi_centroids(contours)
            if not keep.all():
                log.info(f"{filepath.name}: dropping {int((~keep).sum())} ROIs with an empty perimeter.")
                traces = traces[keep]

        return traces, stimulus, shutter, coordinates, self.fs, self.analog_fs

    def _read_npz(self, filepath: Path):
        try:
            with np.load(filepath, allow_pickle=False) as bundle:
                contents = {key: bundle[key] for key in bundle.files}
        except (OSError, ValueError) as e:
            raise FileReadError(f"Could not read NumPy bundle {filepath}: {e}") from e

        missing = [key for key in ('fluorescence', 'stimulus', 'shutter') if key not in contents]
        if missing:
            raise FileReadError(f"{filepath.name} is missing required arrays: {missing}")

        fs = float(contents['fs']) if 'fs' in contents else self.fs
        analog_fs = float(contents['analog_fs']) if 'analog_fs' in contents else self.analog_fs
        coordinates = contents.get('coordinates')
        return (contents['fluorescence'], contents['stimulus'].ravel(), contents['shutter'].ravel(),
                coordinates, fs, analog_fs)


def load_manifest(path: Union[str, Path]) -> Tuple[List[ExperimentSource], dict]:
    """
    Read a batch manifest.

    The manifest is a JSON object; relative paths are resolved against its directory:

        {
            "fs": 30.9,
            "analog_fs": 1000,
            "experiments": [
                {"path": "250223_001.mat", "state": "Anesthetized", "depth": "60"},
                {"path": "250223_006.mat", "id": "aw60", "state": "Awake", "depth": "60"}
            ]
        }

    Returns:
        (sources, reader_options) where reader_options holds the optional
        'fs' and 'analog_fs' entries.

    Raises:
        ConfigurationError: If the manifest is missing, malformed or has no experiments.
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            manifest = json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Manifest not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in manifest {path}: {e}") from e

    if not isinstance(manifest, dict) or not manifest.get('experiments'):
        raise ConfigurationError(f"Manifest {path} must hold a non-empty 'experiments' list")

    sources = []
    for entry in manifest['experiments']:
        if isinstance(entry, str):
            entry = {'path': entry}
        if 'path' not in entry:
            raise ConfigurationError(f"Manifest entry without 'path': {entry}")
        file_path = Path(entry['path'])
        if not file_path.is_absolute():
            file_path = path.parent / file_path
        depth = entry.get('depth')
        sources.append(ExperimentSource(
            path=file_path,
            experiment_id=entry.get('id'),
            state=entry.get('state'),
            depth=str(depth) if depth is not None else None,
        ))

    reader_options = {key: float(manifest[key]) for key in ('fs', 'analog_fs') if key in manifest}
    log.info(f"Manifest {path.name}: {len(sources)} experiments.")
    return sources, reader_options
