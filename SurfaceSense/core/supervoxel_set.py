"""
Supervoxel segmentation of a point cloud.

A SupervoxelSet partitions the points of an input cloud lying inside a
workspace into spatially coherent clusters, keeps the adjacency between
clusters and a feature vector per cluster and modality. Labels are positive
integers that are never reused by the same instance, even after the cloud is
segmented again.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Set, Tuple

import numpy as np
import open3d as o3d
from scipy.spatial import cKDTree
from sklearn.cluster import KMeans

from SurfaceSense.core.features import compute_features
from SurfaceSense.utils import utils

log = logging.getLogger(__name__)


@dataclass
class SupervoxelParameters:
    voxel_resolution: float = 0.008
    seed_resolution: float = 0.05
    n_iterations: int = 2
    normal_radius: float = 0.03
    normal_max_nn: int = 30
    color_bins: int = 5
    normal_bins: int = 5


@dataclass
class Workspace:
    """Region of the scene considered for segmentation: a cuboid, optionally intersected with a sphere."""

    use_sphere: bool = False
    sphere_center: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    sphere_radius: float = 1.5
    sphere_threshold: float = 0.0
    cuboid: Tuple[float, ...] = (-1.0, 1.0, -1.0, 1.0, -0.5, 2.0)

    def filter(self, points):
        """
        Select the points inside the workspace.

        Args:
            points (np.ndarray): Array of shape (num_points, 3).

        Returns:
            np.ndarray: Boolean mask of length num_points.
        """
        points = np.asarray(points, dtype=float).reshape(-1, 3)
        x_min, x_max, y_min, y_max, z_min, z_max = self.cuboid
        mask = (
            (points[:, 0] >= x_min)
            & (points[:, 0] <= x_max)
            & (points[:, 1] >= y_min)
            & (points[:, 1] <= y_max)
            & (points[:, 2] >= z_min)
            & (points[:, 2] <= z_max)
        )
        if self.use_sphere:
            mask &= utils.points_within_distance(
                self.sphere_center, points, self.sphere_radius + self.sphere_threshold
            )
        return mask


@dataclass
class Supervoxel:
    label: int
    centroid: np.ndarray
    point_indices: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=int))
    normal: Optional[np.ndarray] = None


class SupervoxelSet:
    def __init__(self, cloud=None, parameters=None):
        self.parameters = parameters or SupervoxelParameters()
        self._input_cloud = cloud if cloud is not None else o3d.geometry.PointCloud()
        self._supervoxels: Dict[int, Supervoxel] = {}
        self._adjacency: Dict[int, Set[int]] = {}
        self._features: Dict[int, Dict[str, np.ndarray]] = {}
        self._point_labels = np.zeros(len(self._input_cloud.points), dtype=int)
        self._next_label = 1
        self._revision = 0

    @classmethod
    def from_graph(cls, centroids, adjacency=None, features=None, parameters=None):
        """
        Build a supervoxel set from an already computed segmentation.

        Args:
            centroids (dict): Label to (x, y, z) centroid.
            adjacency (dict, optional): Label to iterable of neighbor labels. Made symmetric.
            features (dict, optional): Label to dict of modality name to feature vector.
            parameters (SupervoxelParameters, optional): Construction parameters.

        Returns:
            SupervoxelSet: The populated set, without input cloud.

        Raises:
            ValueError: If a label is not a positive integer or a neighbor is unknown.
        """
        svs = cls(parameters=parameters)
        adjacency = adjacency or {}
        features = features or {}
        for label in centroids:
            if int(label) != label or label <= 0:
                raise ValueError(f"Supervoxel labels must be positive integers, got {label}")
        for label, centroid in centroids.items():
            svs._supervoxels[label] = Supervoxel(label, np.asarray(centroid, dtype=float)[:3])
            svs._adjacency[label] = set()
            record = {}
            for modality, feature in features.get(label, {}).items():
                feature = np.array(feature, dtype=float)
                feature.setflags(write=False)
                record[modality] = feature
            svs._features[label] = record
        for label, neighbors in adjacency.items():
            for neighbor in neighbors:
                if label not in svs._supervoxels or neighbor not in svs._supervoxels:
                    raise ValueError(f"Unknown supervoxel in adjacency: {label}-{neighbor}")
                if neighbor != label:
                    svs._adjacency[label].add(neighbor)
                    svs._adjacency[neighbor].add(label)
        svs._next_label = max(centroids, default=0) + 1
        return svs

    def __len__(self):
        return len(self._supervoxels)

    def __iter__(self):
        return iter(self._supervoxels.items())

    def __contains__(self, label):
        return label in self._supervoxels

    @property
    def input_cloud(self):
        return self._input_cloud

    def set_input_cloud(self, cloud):
        """Replace the input cloud. Any previous segmentation is dropped."""
        self._input_cloud = cloud
        self.clear()

    @property
    def revision(self):
        """Counter increased every time the set of supervoxels changes."""
        return self._revision

    @property
    def point_labels(self):
        """Supervoxel label of every input point, 0 for points outside any supervoxel."""
        return self._point_labels

    @property
    def modalities(self):
        if not self._features:
            return set()
        return set(next(iter(self._features.values())).keys())

    def labels(self):
        return list(self._supervoxels.keys())

    def supervoxel(self, label):
        return self._supervoxels[label]

    def centroid_of(self, label):
        return self._supervoxels[label].centroid

    def neighbors_of(self, label):
        return set(self._adjacency.get(label, ()))

    def feature_of(self, label, modality):
        return self._features[label][modality]

    def features_of(self, label):
        return dict(self._features[label])

    def points_of(self, label):
        """Coordinates of the input points belonging to a supervoxel."""
        points = np.asarray(self._input_cloud.points, dtype=float)
        return points[self._supervoxels[label].point_indices]

    def clear(self):
        self._supervoxels = {}
        self._adjacency = {}
        self._features = {}
        self._point_labels = np.zeros(len(self._input_cloud.points), dtype=int)
        self._revision += 1

    def compute_supervoxels(self, workspace=None, cloud=None):
        """
        Segment the input cloud into supervoxels.

        The points inside the workspace are seeded on a voxel grid of
        ``seed_resolution`` and refined by k-means started from the seeds for
        ``n_iterations`` iterations. Two supervoxels are adjacent when they own
        points closer than a voxel diagonal.

        Args:
            workspace (Workspace, optional): Bounds of the scene, the whole cloud if None.
            cloud (o3d.geometry.PointCloud, optional): New input cloud, kept only on success.

        Returns:
            bool: True on success, False if no point is available. On failure
                the current segmentation is left unchanged.
        """
        cloud = self._input_cloud if cloud is None else cloud
        points, colors = utils.cloud_to_arrays(cloud)
        if len(points) == 0:
            log.warning("Supervoxel construction failed: empty input cloud")
            return False

        mask = workspace.filter(points) if workspace is not None else np.ones(len(points), dtype=bool)
        indices = np.flatnonzero(mask)
        if len(indices) == 0:
            log.warning("Supervoxel construction failed: no point inside the workspace")
            return False

        pts = points[indices]
        normals = self._normals(cloud, indices, pts)
        clusters = self._cluster(pts)
        n_clusters = int(clusters.max()) + 1
        first_label = self._next_label

        supervoxels = {}
        features = {}
        for cluster in range(n_clusters):
            members = np.flatnonzero(clusters == cluster)
            label = first_label + cluster
            normal = normals[members].mean(axis=0)
            norm = np.linalg.norm(normal)
            supervoxels[label] = Supervoxel(
                label,
                pts[members].mean(axis=0),
                indices[members],
                normal / norm if norm > 0 else normal,
            )
            features[label] = compute_features(
                colors[indices[members]],
                normals[members],
                self.parameters.color_bins,
                self.parameters.normal_bins,
            )

        adjacency = {label: set() for label in supervoxels}
        radius = np.sqrt(3) * self.parameters.voxel_resolution
        pairs = cKDTree(pts).query_pairs(radius, output_type="ndarray")
        if len(pairs):
            edges = clusters[pairs] + first_label
            edges = edges[edges[:, 0] != edges[:, 1]]
            for a, b in np.unique(np.sort(edges, axis=1), axis=0):
                adjacency[int(a)].add(int(b))
                adjacency[int(b)].add(int(a))

        point_labels = np.zeros(len(points), dtype=int)
        point_labels[indices] = clusters + first_label

        self._input_cloud = cloud
        self._supervoxels = supervoxels
        self._adjacency = adjacency
        self._features = features
        self._point_labels = point_labels
        self._next_label = first_label + n_clusters
        self._revision += 1
        log.debug("Computed %d supervoxels from %d points", n_clusters, len(pts))
        return True

    def _normals(self, cloud, indices, pts):
        if cloud.has_normals():
            return np.asarray(cloud.normals, dtype=float)[indices]
        work = utils.arrays_to_cloud(pts)
        work.estimate_normals(
            o3d.geometry.KDTreeSearchParamHybrid(
                radius=self.parameters.normal_radius, max_nn=self.parameters.normal_max_nn
            )
        )
        return np.asarray(work.normals, dtype=float)

    def _cluster(self, pts):
        """Dense cluster id per point."""
        cells = np.floor(pts / self.parameters.seed_resolution).astype(np.int64)
        _, assignment = np.unique(cells, axis=0, return_inverse=True)
        assignment = assignment.reshape(-1)
        if self.parameters.n_iterations <= 0:
            return assignment
        seeds = _cluster_means(pts, assignment)
        model = KMeans(
            n_clusters=len(seeds), init=seeds, n_init=1, max_iter=self.parameters.n_iterations
        ).fit(pts)
        # relabel densely, a seed may lose all its points
        _, assignment = np.unique(model.labels_, return_inverse=True)
        return assignment.reshape(-1)

    def remove_supervoxels(self, labels):
        """
        Remove supervoxels and their edges. Unknown labels are ignored.

        Args:
            labels (iterable): Labels to remove.
        """
        removed = set(labels) & set(self._supervoxels)
        for label in removed:
            del self._supervoxels[label]
            del self._features[label]
            for neighbor in self._adjacency.pop(label, ()):
                if neighbor in self._adjacency:
                    self._adjacency[neighbor].discard(label)
        if removed and len(self._point_labels):
            self._point_labels[np.isin(self._point_labels, list(removed))] = 0
        if removed:
            self._revision += 1
        return removed

    def nearest_supervoxel(self, points, max_distance):
        """
        Find the supervoxel owning the input point nearest to each query point.

        Falls back to supervoxel centroids when the set has no input points.

        Args:
            points (np.ndarray): Array of shape (num_queries, 3).
            max_distance (float): Queries farther than this get label 0.

        Returns:
            np.ndarray: Label per query point, 0 when none is close enough.
        """
        points = np.asarray(points, dtype=float).reshape(-1, 3)
        result = np.zeros(len(points), dtype=int)
        if len(points) == 0 or not self._supervoxels:
            return result

        labeled = np.flatnonzero(self._point_labels)
        if len(labeled):
            reference = np.asarray(self._input_cloud.points, dtype=float)[labeled]
            reference_labels = self._point_labels[labeled]
        else:
            reference_labels = np.array(self.labels(), dtype=int)
            reference = np.array([self.centroid_of(label) for label in reference_labels])

        dist, idx = cKDTree(reference).query(points, k=1)
        close = dist <= max_distance
        result[close] = reference_labels[idx[close]]
        return result


def _cluster_means(pts, assignment):
    n_clusters = int(assignment.max()) + 1
    sums = np.zeros((n_clusters, 3))
    np.add.at(sums, assignment, pts)
    counts = np.bincount(assignment, minlength=n_clusters)[:, None]
    return sums / counts
