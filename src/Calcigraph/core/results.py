from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np


@dataclass
class AnalysisResult:
    """Base class for analysis results."""

    quality_flags: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    parameters: Dict[str, Any] = field(default_factory=dict)  # Analysis parameters used

    def add_flag(self, flag: str):
        if flag not in self.quality_flags:
            self.quality_flags.append(flag)


@dataclass
class AlignedSignal(AnalysisResult):
    """
    Fluorescence resampled onto the reference clock.
    `data` has one row per neuron and exactly as many columns as the reference channel;
    samples outside the imaging window are zero.
    """

    data: np.ndarray = None  # (neurons x reference samples)
    time: np.ndarray = None  # Reference time base in seconds
    sampling_rate: float = 0.0  # Reference clock rate in Hz
    shift: int = 0  # Reference sample of the first imaging frame
    upsampled_length: int = 0  # Samples of the upsampled segment actually embedded
    stimulus_times: np.ndarray = field(default_factory=lambda: np.array([]))  # Seconds, strictly increasing

    @property
    def num_neurons(self) -> int:
        return self.data.shape[0]

    @property
    def num_samples(self) -> int:
        return self.data.shape[1]

    @property
    def num_stimuli(self) -> int:
        return len(self.stimulus_times)

    def __repr__(self):
        return (f"AlignedSignal(neurons={self.num_neurons}, samples={self.num_samples}, "
                f"shift={self.shift}, stimuli={self.num_stimuli})")


@dataclass
class EventDetectionResult(AnalysisResult):
    """
    Result of per-neuron calcium event detection.
    All per-neuron arrays share the same first dimension; neurons whose trace
    produced no events have been removed from every one of them.
    """

    events: np.ndarray = None  # (neurons x samples) one-hot event matrix, uint8
    filtered: np.ndarray = None  # Smoothed traces
    traces: np.ndarray = None  # Unfiltered aligned traces
    time: np.ndarray = None
    sampling_rate: float = 0.0
    neuron_ids: np.ndarray = None  # Identifiers of the surviving neurons
    coordinates: Optional[np.ndarray] = None  # (neurons x 2) centroids, if known
    thresholds: np.ndarray = None  # Final detection threshold per neuron
    escalated: np.ndarray = None  # True where the noise escalation was applied
    dropped_ids: List[Any] = field(default_factory=list)
    stimulus_times: np.ndarray = field(default_factory=lambda: np.array([]))

    @property
    def num_neurons(self) -> int:
        return self.events.shape[0]

    @property
    def event_counts(self) -> np.ndarray:
        return self.events.sum(axis=1).astype(int)

    def event_indices(self, row: int) -> np.ndarray:
        return np.flatnonzero(self.events[row])

    def event_times(self, row: int) -> np.ndarray:
        return self.time[self.event_indices(row)]

    def __repr__(self):
        return (f"EventDetectionResult(neurons={self.num_neurons}, dropped={len(self.dropped_ids)}, "
                f"events={int(self.event_counts.sum())})")


@dataclass
class LagRecord:
    """Lag distribution of an accepted directed edge (source leads target)."""

    source: int  # Row index of the leading neuron
    target: int
    p_uniform: float
    p_mean: float
    mean_lag: float  # Seconds
    lags: np.ndarray = field(default_factory=lambda: np.array([]))  # Target event time minus source event time

    @property
    def num_samples(self) -> int:
        return len(self.lags)


@dataclass
class StimulusResponse:
    """Statistics of one neuron's event offsets from the preceding stimulus."""

    neuron: int
    num_samples: int
    p_mean: Optional[float] = None
    p_uniform: Optional[float] = None
    skewness: Optional[float] = None
    connected: bool = False


@dataclass
class ConnectivityResult(AnalysisResult):
    """
    Directed functional connectivity of one experiment.
    `adjacency` is (N+1) x (N+1); the last index is the stimulus node, which only
    has outgoing edges.
    """

    adjacency: np.ndarray = None
    lag_records: List[LagRecord] = field(default_factory=list)
    stimulus_responses: List[StimulusResponse] = field(default_factory=list)
    neuron_ids: Optional[np.ndarray] = None
    max_lag: float = 0.0
    pairs_tested: int = 0
    pairs_insufficient: int = 0

    @property
    def num_neurons(self) -> int:
        return self.adjacency.shape[0] - 1

    @property
    def stimulus_node(self) -> int:
        return self.adjacency.shape[0] - 1

    @property
    def neuron_adjacency(self) -> np.ndarray:
        """Neuron-to-neuron block without the stimulus node."""
        return self.adjacency[:-1, :-1]

    @property
    def stimulus_edges(self) -> np.ndarray:
        """Row of the stimulus node: 1 where the stimulus drives the neuron."""
        return self.adjacency[-1, :-1]

    @property
    def num_edges(self) -> int:
        return int(self.neuron_adjacency.sum())

    @property
    def num_stimulus_edges(self) -> int:
        return int(self.stimulus_edges.sum())

    def __repr__(self):
        return (f"ConnectivityResult(neurons={self.num_neurons}, edges={self.num_edges}, "
                f"stimulus_edges={self.num_stimulus_edges})")


@dataclass
class GraphMetrics(AnalysisResult):
    """Graph metrics of the neuron-only connectivity graph."""

    in_degree: np.ndarray = None
    out_degree: np.ndarray = None
    betweenness: np.ndarray = None
    communities: np.ndarray = None  # Community label per neuron
    largest_component: Optional[np.ndarray] = None  # Neuron rows, None if no component of size > 1
    num_edges: int = 0
    density: float = 0.0

    @property
    def largest_component_size(self) -> int:
        return 0 if self.largest_component is None else len(self.largest_component)


@dataclass
class ExperimentResult:
    """Outputs of every stage for one experiment."""

    experiment_id: str
    num_neurons_loaded: int
    alignment: AlignedSignal
    detection: EventDetectionResult
    connectivity: ConnectivityResult
    metrics: Optional[GraphMetrics] = None
    state: Optional[str] = None
    depth: Optional[str] = None

    @property
    def adjacency(self) -> np.ndarray:
        return self.connectivity.adjacency

    def __repr__(self):
        return (f"ExperimentResult(id='{self.experiment_id}', neurons={self.detection.num_neurons}/"
                f"{self.num_neurons_loaded}, edges={self.connectivity.num_edges})")
