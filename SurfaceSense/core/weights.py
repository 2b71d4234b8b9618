"""
Parallel computation of per-supervoxel estimations.

Labels are re-indexed densely into a pre-allocated arena of shape
(num_labels, num_classes) and the relevance map is built from views on the
arena rows before any worker starts. Workers only overwrite their own row, so
the map never changes shape while the pool is running.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor

import numpy as np

log = logging.getLogger(__name__)


def allocate_relevance_map(labels, nbr_class, value):
    """
    Pre-allocate a relevance map with one constant entry per label.

    Args:
        labels (list): Supervoxel labels, in iteration order.
        nbr_class (int): Length of every probability vector.
        value (float): Initial value of every entry.

    Returns:
        tuple: (arena, relevance_map) where ``relevance_map[labels[i]]`` is a
            view on ``arena[i]``.
    """
    if nbr_class <= 0:
        raise ValueError(f"Number of classes must be positive, got {nbr_class}")
    arena = np.full((len(labels), nbr_class), value, dtype=float)
    relevance_map = {label: arena[index] for index, label in enumerate(labels)}
    return arena, relevance_map


def compute_estimations(labels, feature_getter, classifier, value, n_workers=None):
    """
    Run a classifier on the feature of every label with a pool of threads.

    Args:
        labels (list): Supervoxel labels, in iteration order.
        feature_getter (callable): Maps a label to the input of ``classifier.compute_estimation``.
        classifier (Classifier): Provides ``get_nbr_class`` and ``compute_estimation``.
        value (float): Value of the entries before estimation.
        n_workers (int, optional): Size of the thread pool.

    Returns:
        dict: Label to probability vector.

    Raises:
        ValueError: If an estimation does not have ``get_nbr_class()`` entries.
    """
    nbr_class = classifier.get_nbr_class()
    arena, relevance_map = allocate_relevance_map(labels, nbr_class, value)

    def estimate(index):
        estimation = np.asarray(classifier.compute_estimation(feature_getter(labels[index])), dtype=float)
        if estimation.shape != (nbr_class,):
            raise ValueError(
                f"Classifier returned {estimation.shape} estimation for supervoxel "
                f"{labels[index]}, expected ({nbr_class},)"
            )
        arena[index] = estimation

    start = time.perf_counter()
    if labels:
        with ThreadPoolExecutor(max_workers=n_workers) as executor:
            # consuming the iterator re-raises worker exceptions
            for _ in executor.map(estimate, range(len(labels))):
                pass
    log.debug("Estimated %d supervoxels in %.3f s", len(labels), time.perf_counter() - start)
    return relevance_map
