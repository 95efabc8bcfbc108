# src/Calcigraph/core/analysis/graph_metrics.py
# -*- coding: utf-8 -*-
"""
Graph metrics of the neuron-to-neuron connectivity graph, computed with networkx.

The stimulus node is excluded: metrics describe the block
`adjacency[:N, :N]` of a ConnectivityResult.
"""
import logging
from typing import Optional

import networkx as nx
import numpy as np

from Calcigraph.core.results import ConnectivityResult, GraphMetrics
from Calcigraph.shared import constants
from Calcigraph.shared.error_handling import AnalysisError

log = logging.getLogger('Calcigraph.core.analysis.graph_metrics')


def build_graph(adjacency: np.ndarray) -> nx.DiGraph:
    """Directed graph with one node per row of a square 0/1 matrix."""
    adjacency = np.asarray(adjacency)
    if adjacency.ndim != 2 or adjacency.shape[0] != adjacency.shape[1]:
        raise AnalysisError(f"Adjacency matrix must be square, got shape {adjacency.shape}")
    return nx.from_numpy_array(adjacency.astype(int), create_using=nx.DiGraph)


def community_labels(graph: nx.DiGraph, resolution: float = constants.MODULARITY_RESOLUTION) -> np.ndarray:
    """
    Community index per node from greedy directed-modularity maximisation.

    Communities are numbered by decreasing size. A graph without edges puts
    every node in its own community.
    """
    n = graph.number_of_nodes()
    labels = np.arange(n)
    if n == 0 or graph.number_of_edges() == 0:
        return labels
    communities = nx.community.greedy_modularity_communities(graph, resolution=resolution)
    for label, members in enumerate(communities):
        for node in members:
            labels[node] = label
    return labels


def largest_component(graph: nx.DiGraph) -> Optional[np.ndarray]:
    """Sorted nodes of the largest weakly connected component; None when no component has 2+ nodes."""
    if graph.number_of_nodes() == 0:
        return None
    nodes = max(nx.weakly_connected_components(graph), key=len)
    if len(nodes) <= 1:
        return None
    return np.array(sorted(nodes), dtype=int)


def compute_graph_metrics(connectivity: ConnectivityResult,
                          resolution: float = constants.MODULARITY_RESOLUTION) -> GraphMetrics:
    """
    Degree, betweenness, modularity and connected-component summary of the neuron graph.

    Args:
        connectivity: Output of the connectivity inference.
        resolution: Modularity resolution parameter (gamma).

    Returns:
        GraphMetrics with one entry per neuron row in the per-node arrays.
    """
    graph = build_graph(connectivity.neuron_adjacency)
    n = graph.number_of_nodes()

    in_degree = np.array([graph.in_degree(node) for node in range(n)], dtype=int)
    out_degree = np.array([graph.out_degree(node) for node in range(n)], dtype=int)
    centrality = nx.betweenness_centrality(graph, normalized=False)
    betweenness = np.array([centrality[node] for node in range(n)], dtype=float)

    metrics = GraphMetrics(
        in_degree=in_degree,
        out_degree=out_degree,
        betweenness=betweenness,
        communities=community_labels(graph, resolution),
        largest_component=largest_component(graph),
        num_edges=graph.number_of_edges(),
        density=float(nx.density(graph)) if n > 1 else 0.0,
        parameters={'resolution': resolution},
    )
    if metrics.num_edges == 0:
        metrics.add_flag('no_edges')

    n_communities = len(np.unique(metrics.communities)) if n else 0
    log.info(f"Graph metrics: {n} nodes, {metrics.num_edges} edges, density {metrics.density:.3f}, "
             f"{n_communities} communities, largest component {metrics.largest_component_size}.")
    return metrics
