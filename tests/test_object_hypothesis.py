"""
Tests for sphere fitting on salient regions

Run with: pytest tests/test_object_hypothesis.py
"""

import numpy as np
import pytest

from SurfaceSense.core.object_hypothesis import extract_object_hypotheses, fit_sphere, ransac_sphere
from SurfaceSense.core.supervoxel_set import Workspace
from SurfaceSense.core.surface_of_interest import NAIVE, SoiParameters, SurfaceOfInterest
from SurfaceSense.utils import utils

CENTER = np.array([0.0, 0.0, 0.5])
RADIUS = 0.05


def sphere_points(n_points=600, center=CENTER, radius=RADIUS):
    """Evenly spread points on a sphere (Fibonacci lattice)."""
    index = np.arange(n_points) + 0.5
    phi = np.arccos(1 - 2 * index / n_points)
    theta = np.pi * (1 + 5 ** 0.5) * index
    directions = np.stack([np.cos(theta) * np.sin(phi), np.sin(theta) * np.sin(phi), np.cos(phi)], axis=1)
    return center + radius * directions


class TestFitSphere:
    """Tests for the least squares sphere"""

    def test_exact(self):
        center, radius = fit_sphere(sphere_points(50))
        assert np.allclose(center, CENTER)
        assert radius == pytest.approx(RADIUS)

    def test_too_few_points(self):
        with pytest.raises(ValueError):
            fit_sphere(np.zeros((3, 3)))


class TestRansacSphere:
    """Tests for the robust sphere fit"""

    def test_outliers_rejected(self):
        rng = np.random.default_rng(0)
        inliers = sphere_points(200)
        outliers = rng.uniform(-0.5, 0.5, (20, 3)) + np.array([0.0, 0.0, 1.5])
        points = np.vstack([inliers, outliers])

        center, radius, kept = ransac_sphere(points, 0.002, max_iterations=200, rng=rng)
        assert np.allclose(center, CENTER, atol=1e-3)
        assert radius == pytest.approx(RADIUS, abs=1e-3)
        assert set(range(200)) <= set(kept.tolist())
        assert len(kept) < len(points)


class TestExtractObjectHypotheses:
    """Tests for hypotheses on a segmented scene"""

    def test_sphere_scene(self, workspace):
        soi = SurfaceOfInterest(
            utils.arrays_to_cloud(sphere_points(2000)), parameters=SoiParameters(seed=0, n_workers=1)
        )
        assert soi.generate(workspace)

        hypotheses = extract_object_hypotheses(soi, NAIVE, rng=np.random.default_rng(0))
        assert len(hypotheses) == 1
        hypothesis = hypotheses[0]
        assert hypothesis.region == set(soi.supervoxels.labels())
        assert np.allclose(hypothesis.center, CENTER, atol=5e-3)
        assert hypothesis.radius == pytest.approx(RADIUS, abs=5e-3)

    def test_no_regions(self, workspace):
        soi = SurfaceOfInterest(utils.arrays_to_cloud(sphere_points(2000)), parameters=SoiParameters(seed=0))
        soi.generate_from_keypoints(np.empty((0, 3)), workspace)
        assert extract_object_hypotheses(soi, "keypoints") == []

    def test_empty_workspace(self):
        assert extract_object_hypotheses(SurfaceOfInterest(parameters=SoiParameters(seed=0)), NAIVE) == []

    def test_outside_workspace(self):
        soi = SurfaceOfInterest(utils.arrays_to_cloud(sphere_points(2000)), parameters=SoiParameters(seed=0))
        assert not soi.generate(Workspace(cuboid=(2, 3, 2, 3, 2, 3)))
