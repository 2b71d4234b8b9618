"""
Core utility functions for point cloud processing and relevance map rendering.

This module contains helpers for converting between open3d point clouds and
numpy arrays, cropping and matching points, and mapping supervoxel weights to
colors for visualization.
"""

import matplotlib
import numpy as np
import open3d as o3d
from scipy.spatial import cKDTree


def cloud_to_arrays(pcd):
    """
    Extract points and colors from an open3d point cloud.

    Args:
        pcd (o3d.geometry.PointCloud): The input point cloud.

    Returns:
        tuple: (points, colors) as float arrays of shape (num_points, 3). Colors
            are zeros when the cloud carries none.
    """
    points = np.asarray(pcd.points, dtype=float)
    if pcd.has_colors():
        colors = np.asarray(pcd.colors, dtype=float)
    else:
        colors = np.zeros_like(points)
    return points, colors


def arrays_to_cloud(points, colors=None):
    """
    Build an open3d point cloud from numpy arrays.

    Args:
        points (np.ndarray): Array of shape (num_points, 3).
        colors (np.ndarray, optional): Array of shape (num_points, 3) in [0, 1].

    Returns:
        o3d.geometry.PointCloud: The point cloud.
    """
    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(np.asarray(points, dtype=float).reshape(-1, 3))
    if colors is not None:
        pcd.colors = o3d.utility.Vector3dVector(np.asarray(colors, dtype=float).reshape(-1, 3))
    return pcd


def select_points(pcd, mask):
    """
    Keep the points of a cloud selected by a boolean mask.

    Args:
        pcd (o3d.geometry.PointCloud): The input point cloud.
        mask (np.ndarray): Boolean array of length num_points.

    Returns:
        o3d.geometry.PointCloud: A new point cloud with the selected points.
    """
    indices = np.flatnonzero(mask)
    return pcd.select_by_index(indices.tolist())


def points_within_distance(center, points, distance):
    """
    Find all 3D points within a specified distance from a given location.

    Args:
        center (array-like): The (x, y, z) coordinates of the reference location.
        points (np.ndarray): Array of shape (num_points, 3) representing 3D points.
        distance (float): The maximum distance for points to be considered within.

    Returns:
        np.ndarray: Boolean mask of the points within the distance.
    """
    distances = np.linalg.norm(points - np.asarray(center, dtype=float)[:3], axis=1)
    return distances <= distance


def matching_points_mask(points, reference_points, tolerance=0.0):
    """
    Flag the points that have a counterpart in a reference set.

    A point matches when its nearest reference point lies within ``tolerance``.
    A tolerance of 0 only accepts identical coordinates.

    Args:
        points (np.ndarray): Array of shape (num_points, 3) to test.
        reference_points (np.ndarray): Array of shape (num_ref, 3).
        tolerance (float): Maximum matching distance.

    Returns:
        np.ndarray: Boolean mask of length num_points, True for matched points.
    """
    if len(points) == 0 or len(reference_points) == 0:
        return np.zeros(len(points), dtype=bool)
    kdtree = cKDTree(reference_points)
    dist, _ = kdtree.query(points, k=1)
    return dist <= tolerance


def remove_matching_points(pcd, reference_pcd, tolerance=0.0):
    """
    Remove from a point cloud every point present in a reference cloud.

    Args:
        pcd (o3d.geometry.PointCloud): The working point cloud.
        reference_pcd (o3d.geometry.PointCloud): Points to remove, e.g. a background scan.
        tolerance (float): Maximum matching distance.

    Returns:
        o3d.geometry.PointCloud: The remaining points.
    """
    points = np.asarray(pcd.points, dtype=float)
    reference_points = np.asarray(reference_pcd.points, dtype=float)
    matched = matching_points_mask(points, reference_points, tolerance)
    return select_points(pcd, ~matched)


def weights_to_colors(intensities, colormap="jet"):
    """
    Map weights to RGB colors with a matplotlib colormap.

    Args:
        intensities (np.ndarray): 1D array of weights, clipped to [0, 1].
        colormap (str): Name of the matplotlib colormap.

    Returns:
        np.ndarray: Array of shape (num_points, 3) with RGB values in [0, 1].
    """
    cmap = matplotlib.colormaps[colormap]
    clipped = np.clip(np.asarray(intensities, dtype=float), 0.0, 1.0)
    return cmap(clipped)[:, :3]


def random_color(seed):
    """Deterministic color for a cluster id."""
    rng = np.random.default_rng(seed + 1)
    return rng.random(3)
