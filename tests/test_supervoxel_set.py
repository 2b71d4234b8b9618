"""
Tests for supervoxel construction and the workspace

Run with: pytest tests/test_supervoxel_set.py
"""

import numpy as np
import open3d as o3d
import pytest

from SurfaceSense.core.features import MODALITIES
from SurfaceSense.core.supervoxel_set import SupervoxelSet, Workspace


class TestWorkspace:
    """Tests for the workspace filter"""

    def test_cuboid(self):
        workspace = Workspace(cuboid=(0.0, 1.0, 0.0, 1.0, 0.0, 1.0))
        points = np.array([[0.5, 0.5, 0.5], [1.5, 0.5, 0.5], [0.5, -0.1, 0.5]])
        assert list(workspace.filter(points)) == [True, False, False]

    def test_sphere_intersection(self):
        workspace = Workspace(
            use_sphere=True, sphere_center=(0.0, 0.0, 0.0), sphere_radius=0.5, cuboid=(-1, 1, -1, 1, -1, 1)
        )
        points = np.array([[0.1, 0.0, 0.0], [0.9, 0.0, 0.0]])
        assert list(workspace.filter(points)) == [True, False]


class TestComputeSupervoxels:
    """Tests for the segmentation of a cloud"""

    def test_two_blobs(self, two_blob_cloud, workspace, sv_parameters):
        """Supervoxels never span both blobs and adjacency is symmetric"""
        cloud, points_a, _ = two_blob_cloud
        svs = SupervoxelSet(cloud, sv_parameters)
        assert svs.compute_supervoxels(workspace)

        assert len(svs) >= 2
        assert svs.modalities == set(MODALITIES)
        for label, supervoxel in svs:
            sv_points = svs.points_of(label)
            in_a = sv_points[:, 0] < 0.3
            assert in_a.all() or not in_a.any()
            for neighbor in svs.neighbors_of(label):
                assert label in svs.neighbors_of(neighbor)
        labeled = svs.point_labels > 0
        assert labeled.all()

    def test_blobs_not_adjacent(self, two_blob_cloud, workspace, sv_parameters):
        cloud, _, _ = two_blob_cloud
        svs = SupervoxelSet(cloud, sv_parameters)
        svs.compute_supervoxels(workspace)

        for label, supervoxel in svs:
            side = supervoxel.centroid[0] < 0.3
            for neighbor in svs.neighbors_of(label):
                assert (svs.centroid_of(neighbor)[0] < 0.3) == side

    def test_labels_not_reused(self, two_blob_cloud, workspace, sv_parameters):
        """Segmenting again produces new labels"""
        cloud, _, _ = two_blob_cloud
        svs = SupervoxelSet(cloud, sv_parameters)
        svs.compute_supervoxels(workspace)
        first = set(svs.labels())
        svs.compute_supervoxels(workspace)
        assert not first & set(svs.labels())
        assert min(svs.labels()) > max(first)

    def test_workspace_crop(self, two_blob_cloud, sv_parameters):
        cloud, points_a, _ = two_blob_cloud
        svs = SupervoxelSet(cloud, sv_parameters)
        assert svs.compute_supervoxels(Workspace(cuboid=(-0.1, 0.3, -0.1, 0.3, 0.0, 1.0)))

        assert (svs.point_labels > 0).sum() == len(points_a)

    def test_empty_cloud(self, workspace):
        svs = SupervoxelSet(o3d.geometry.PointCloud())
        assert not svs.compute_supervoxels(workspace)
        assert len(svs) == 0

    def test_failure_keeps_segmentation(self, two_blob_cloud, workspace, sv_parameters):
        """A failed construction leaves the current supervoxels untouched"""
        cloud, _, _ = two_blob_cloud
        svs = SupervoxelSet(cloud, sv_parameters)
        svs.compute_supervoxels(workspace)
        labels = svs.labels()

        assert not svs.compute_supervoxels(Workspace(cuboid=(5, 6, 5, 6, 5, 6)))
        assert svs.labels() == labels


class TestFromGraph:
    """Tests for segmentations built from explicit data"""

    def test_symmetric_adjacency(self):
        svs = SupervoxelSet.from_graph({1: (0, 0, 0), 2: (1, 0, 0)}, {1: [2]})
        assert svs.neighbors_of(2) == {1}

    def test_invalid_label(self):
        with pytest.raises(ValueError):
            SupervoxelSet.from_graph({0: (0, 0, 0)})

    def test_unknown_neighbor(self):
        with pytest.raises(ValueError):
            SupervoxelSet.from_graph({1: (0, 0, 0)}, {1: [7]})

    def test_features_read_only(self):
        svs = SupervoxelSet.from_graph({1: (0, 0, 0)}, features={1: {"color": [0.1, 0.2]}})
        with pytest.raises(ValueError):
            svs.feature_of(1, "color")[0] = 1.0

    def test_revision_follows_changes(self):
        svs = SupervoxelSet.from_graph({1: (0, 0, 0), 2: (1, 0, 0)})
        revision = svs.revision
        svs.remove_supervoxels([9])
        assert svs.revision == revision
        svs.remove_supervoxels([2])
        assert svs.revision > revision

    def test_remove_supervoxels(self):
        svs = SupervoxelSet.from_graph({1: (0, 0, 0), 2: (1, 0, 0), 3: (2, 0, 0)}, {1: [2], 2: [3]})
        assert svs.remove_supervoxels([2, 9]) == {2}
        assert svs.labels() == [1, 3]
        assert svs.neighbors_of(1) == set()

    def test_nearest_supervoxel_uses_centroids(self):
        svs = SupervoxelSet.from_graph({1: (0, 0, 0), 2: (1, 0, 0)})
        labels = svs.nearest_supervoxel(np.array([[0.9, 0.0, 0.0], [5.0, 0.0, 0.0]]), 0.5)
        assert list(labels) == [2, 0]
