"""
Object hypotheses fitted on the regions of a relevance map.

Each region of salient supervoxels is gathered into a point set and a sphere
is fitted on it with RANSAC followed by a least squares refinement on the
inliers.
"""

import logging
from dataclasses import dataclass
from typing import Set

import numpy as np

log = logging.getLogger(__name__)

MIN_SUPERVOXELS = 2
MIN_POINTS = 20


@dataclass
class ObjectHypothesis:
    region: Set[int]
    points: np.ndarray
    center: np.ndarray
    radius: float
    inliers: np.ndarray


def region_points(supervoxels, region):
    """Stack the input points of the supervoxels of a region."""
    blocks = [supervoxels.points_of(label) for label in sorted(region)]
    if not blocks:
        return np.empty((0, 3))
    return np.concatenate(blocks)


def fit_sphere(points):
    """
    Least squares sphere through a set of points.

    Solves ``|p|^2 = 2 c.p + d`` for the center ``c`` and ``d = r^2 - |c|^2``.

    Args:
        points (np.ndarray): Array of shape (num_points, 3), at least 4 points.

    Returns:
        tuple: (center, radius).
    """
    points = np.asarray(points, dtype=float)
    if len(points) < 4:
        raise ValueError(f"At least 4 points are needed to fit a sphere, got {len(points)}")
    A = np.hstack([2 * points, np.ones((len(points), 1))])
    b = np.sum(points ** 2, axis=1)
    solution, *_ = np.linalg.lstsq(A, b, rcond=None)
    center = solution[:3]
    radius = float(np.sqrt(max(solution[3] + center @ center, 0.0)))
    return center, radius


def ransac_sphere(points, distance_threshold=0.005, max_iterations=500, rng=None):
    """
    Fit a sphere robustly with RANSAC.

    Args:
        points (np.ndarray): Array of shape (num_points, 3).
        distance_threshold (float): Maximum distance of an inlier to the sphere surface.
        max_iterations (int): Number of random minimal samples.
        rng (np.random.Generator, optional): Random generator.

    Returns:
        tuple: (center, radius, inliers) where ``inliers`` indexes ``points``.
    """
    points = np.asarray(points, dtype=float)
    rng = rng if rng is not None else np.random.default_rng()
    best_inliers = np.zeros(0, dtype=int)
    for _ in range(max_iterations):
        sample = points[rng.choice(len(points), 4, replace=False)]
        try:
            center, radius = fit_sphere(sample)
        except np.linalg.LinAlgError:
            continue
        residuals = np.abs(np.linalg.norm(points - center, axis=1) - radius)
        inliers = np.flatnonzero(residuals <= distance_threshold)
        if len(inliers) > len(best_inliers):
            best_inliers = inliers
    if len(best_inliers) < 4:
        best_inliers = np.arange(len(points))
    center, radius = fit_sphere(points[best_inliers])
    return center, radius, best_inliers


def extract_object_hypotheses(soi, modality, saliency_threshold=0.5, class_lbl=1, distance_threshold=0.005, rng=None):
    """
    Fit one sphere per region of salient supervoxels.

    Regions made of a single supervoxel or gathering fewer than ``MIN_POINTS``
    points are skipped.

    Args:
        soi (SurfaceOfInterest): Engine holding the relevance map.
        modality (str): Relevance map to use.
        saliency_threshold (float): Saliency threshold of the regions.
        class_lbl (int): Index of the class of interest.
        distance_threshold (float): RANSAC inlier distance.
        rng (np.random.Generator, optional): Random generator for RANSAC.

    Returns:
        list: ObjectHypothesis per kept region.
    """
    hypotheses = []
    for index, region in enumerate(soi.extract_regions(modality, saliency_threshold, class_lbl)):
        if len(region) < MIN_SUPERVOXELS:
            log.debug("Skipping hypothesis %d: %d supervoxel(s)", index, len(region))
            continue
        points = region_points(soi.supervoxels, region)
        if len(points) < MIN_POINTS:
            log.debug("Skipping hypothesis %d: %d point(s)", index, len(points))
            continue
        center, radius, inliers = ransac_sphere(points, distance_threshold, rng=rng)
        hypotheses.append(ObjectHypothesis(region, points, center, radius, inliers))
    log.debug("%d object hypotheses kept", len(hypotheses))
    return hypotheses
