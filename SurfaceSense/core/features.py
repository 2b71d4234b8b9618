"""
Histogram features computed per supervoxel.

Each modality maps the points of one supervoxel to a fixed-length feature
vector. Histogram blocks are normalised to sum to one so that supervoxels of
different sizes stay comparable.
"""

import numpy as np

COLOR_HIST = "colorHist"
NORMAL_HIST = "normalHist"
COLOR_NORMAL_HIST = "colorNormalHist"

MODALITIES = (COLOR_HIST, NORMAL_HIST, COLOR_NORMAL_HIST)


def channel_histogram(values, bins, value_range):
    """
    Concatenate one normalised histogram per column of ``values``.

    Args:
        values (np.ndarray): Array of shape (num_points, num_channels).
        bins (int): Number of bins per channel.
        value_range (tuple): (min, max) range of every channel.

    Returns:
        np.ndarray: Array of length num_channels * bins.
    """
    blocks = []
    for channel in range(values.shape[1]):
        hist, _ = np.histogram(values[:, channel], bins=bins, range=value_range)
        hist = hist.astype(float)
        total = hist.sum()
        if total > 0:
            hist /= total
        blocks.append(hist)
    return np.concatenate(blocks)


def color_histogram(colors, bins=5):
    return channel_histogram(colors, bins, (0.0, 1.0))


def normal_histogram(normals, bins=5):
    return channel_histogram(normals, bins, (-1.0, 1.0))


def compute_features(colors, normals, color_bins=5, normal_bins=5):
    """
    Compute every modality for the points of one supervoxel.

    Args:
        colors (np.ndarray): RGB colors in [0, 1], shape (num_points, 3).
        normals (np.ndarray): Unit normals, shape (num_points, 3).
        color_bins (int): Bins per color channel.
        normal_bins (int): Bins per normal axis.

    Returns:
        dict: Modality name to read-only feature vector.
    """
    color = color_histogram(colors, color_bins)
    normal = normal_histogram(normals, normal_bins)
    features = {
        COLOR_HIST: color,
        NORMAL_HIST: normal,
        COLOR_NORMAL_HIST: np.concatenate([color, normal]),
    }
    for feature in features.values():
        feature.setflags(write=False)
    return features
