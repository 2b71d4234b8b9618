"""
Experimental filters diffusing weights over the supervoxel adjacency graph.

Both filters read a snapshot of the weights taken at the start of the pass,
so the result does not depend on the visiting order.
"""

import numpy as np


def _snapshot(relevance_map, class_lbl):
    return {label: float(weights[class_lbl]) for label, weights in relevance_map.items()}


def neighbor_bluring(relevance_map, supervoxels, cst, class_lbl, threshold=0.5):
    """
    Propagate the interest of each supervoxel to its neighbors, in place.

    Every neighbor of an interesting supervoxel gains ``cst`` on its weight for
    ``class_lbl``, every neighbor of a non interesting one loses ``cst``.
    Weights are not clipped.

    Args:
        relevance_map (dict): Label to probability vector, modified in place.
        supervoxels (SupervoxelSet): Provides ``neighbors_of``.
        cst (float): Increment or decrement applied to the neighbors.
        class_lbl (int): Index of the class in the probability vectors.
        threshold (float): Weight from which a supervoxel is interesting.
    """
    before = _snapshot(relevance_map, class_lbl)
    delta = dict.fromkeys(before, 0.0)
    for label, weight in before.items():
        step = cst if weight >= threshold else -cst
        for neighbor in supervoxels.neighbors_of(label):
            if neighbor in delta:
                delta[neighbor] += step
    for label, change in delta.items():
        relevance_map[label][class_lbl] = before[label] + change


def adaptive_threshold(relevance_map, supervoxels, class_lbl, threshold=0.5):
    """
    Binarize the weights for a class against the mean weight of the neighborhood, in place.

    Supervoxels without neighbors are compared with ``threshold``.

    Args:
        relevance_map (dict): Label to probability vector, modified in place.
        supervoxels (SupervoxelSet): Provides ``neighbors_of``.
        class_lbl (int): Index of the class in the probability vectors.
        threshold (float): Fallback threshold for isolated supervoxels.
    """
    before = _snapshot(relevance_map, class_lbl)
    for label, weight in before.items():
        neighbors = [before[n] for n in supervoxels.neighbors_of(label) if n in before]
        local = np.mean(neighbors) if neighbors else threshold
        relevance_map[label][class_lbl] = 1.0 if weight >= local else 0.0
