"""
Region and background extraction over the supervoxel adjacency graph.

A region is a connected set of salient supervoxels, i.e. supervoxels whose
weight for a class is at least a saliency threshold. Non salient supervoxels
never join a region and never connect two regions.
"""

from collections import deque

import numpy as np


def salient_labels(relevance_map, labels, threshold, class_lbl):
    """Labels, in the given order, whose weight for ``class_lbl`` is at least ``threshold``."""
    return [label for label in labels if relevance_map[label][class_lbl] >= threshold]


def extract_regions(relevance_map, supervoxels, threshold, class_lbl):
    """
    Compute the connected components of the salient supervoxels.

    Args:
        relevance_map (dict): Label to probability vector.
        supervoxels (SupervoxelSet): Provides iteration order and ``neighbors_of``.
        threshold (float): Saliency threshold.
        class_lbl (int): Index of the class in the probability vectors.

    Returns:
        list: Regions as sets of labels, in discovery order.
    """
    salient = set(salient_labels(relevance_map, supervoxels.labels(), threshold, class_lbl))
    visited = set()
    regions = []
    for seed in supervoxels.labels():
        if seed not in salient or seed in visited:
            continue
        region = {seed}
        visited.add(seed)
        queue = deque([seed])
        while queue:
            current = queue.popleft()
            for neighbor in sorted(supervoxels.neighbors_of(current)):
                if neighbor in salient and neighbor not in visited:
                    visited.add(neighbor)
                    region.add(neighbor)
                    queue.append(neighbor)
        regions.append(region)
    return regions


def extract_background(relevance_map, supervoxels, threshold, class_lbl):
    """Labels whose weight for ``class_lbl`` is below ``threshold``."""
    return {label for label in supervoxels.labels() if relevance_map[label][class_lbl] < threshold}


def region_centroid(supervoxels, region):
    """Mean of the centroids of the supervoxels of a region."""
    return np.mean([supervoxels.centroid_of(label)[:3] for label in region], axis=0)


def get_closest_region(supervoxels, regions, center):
    """
    Find the region whose centroid is the closest to a point.

    Args:
        supervoxels (SupervoxelSet): Provides supervoxel centroids.
        regions (list): Regions as sets of labels.
        center (array-like): Query point, only the first three components are used.

    Returns:
        int: Index of the closest non empty region, -1 if there is none.
    """
    center = np.asarray(center, dtype=float)[:3]
    distances = [
        np.linalg.norm(region_centroid(supervoxels, region) - center) if region else np.inf for region in regions
    ]
    if not distances or np.isinf(min(distances)):
        return -1
    return int(np.argmin(distances))
