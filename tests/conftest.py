import numpy as np
import pytest

from SurfaceSense.core.classifiers import Classifier
from SurfaceSense.core.supervoxel_set import SupervoxelParameters, SupervoxelSet, Workspace
from SurfaceSense.core.surface_of_interest import SoiParameters, SurfaceOfInterest
from SurfaceSense.utils import utils

SCENARIO_WEIGHTS = {1: 0.9, 2: 0.8, 3: 0.2, 4: 0.95}


class EchoClassifier(Classifier):
    """Returns the feature itself, so features can encode the expected weights."""

    def __init__(self, nbr_class):
        self.nbr_class = nbr_class

    def get_nbr_class(self):
        return self.nbr_class

    def compute_estimation(self, feature):
        return np.asarray(feature, dtype=float)


class FeatureStatsClassifier(Classifier):
    """Deterministic estimation depending on the feature values."""

    def __init__(self, scale=1.0):
        self.scale = scale

    def get_nbr_class(self):
        return 2

    def compute_estimation(self, feature):
        feature = np.asarray(feature, dtype=float)
        return np.array([feature.min(), feature.max()]) * self.scale


def scenario_set():
    """Supervoxels 1-2-3 chained, 4 isolated, weights of class 0 stored in the 'score' modality."""
    centroids = {1: (0.0, 0.0, 0.0), 2: (1.0, 0.0, 0.0), 3: (2.0, 0.0, 0.0), 4: (10.0, 0.0, 0.0)}
    adjacency = {1: [2], 2: [3]}
    features = {
        label: {"score": [weight], "color": [0.1 * label, 0.2, 0.3], "normal": [0.0, 1.0 / label]}
        for label, weight in SCENARIO_WEIGHTS.items()
    }
    return SupervoxelSet.from_graph(centroids, adjacency, features)


@pytest.fixture
def scenario_soi():
    soi = SurfaceOfInterest(supervoxels=scenario_set(), parameters=SoiParameters(seed=0, n_workers=2))
    soi.compute_weights("score", EchoClassifier(1))
    return soi


def grid_blob(origin, size=0.1, spacing=0.005, color=(0.8, 0.1, 0.1)):
    """Flat square of points on the z = origin[2] plane."""
    steps = np.arange(0.0, size, spacing)
    xx, yy = np.meshgrid(steps, steps)
    points = np.stack([xx.ravel(), yy.ravel(), np.zeros(xx.size)], axis=1) + np.asarray(origin)
    colors = np.tile(color, (len(points), 1))
    return points, colors


@pytest.fixture
def two_blob_cloud():
    points_a, colors_a = grid_blob((0.0, 0.0, 0.5))
    points_b, colors_b = grid_blob((0.6, 0.0, 0.5), color=(0.1, 0.1, 0.8))
    cloud = utils.arrays_to_cloud(np.vstack([points_a, points_b]), np.vstack([colors_a, colors_b]))
    return cloud, points_a, points_b


@pytest.fixture
def workspace():
    return Workspace(cuboid=(-1.0, 1.0, -1.0, 1.0, -0.5, 2.0))


@pytest.fixture
def sv_parameters():
    return SupervoxelParameters(voxel_resolution=0.008, seed_resolution=0.05)
