"""
Tests for the relevance map viewer helpers

Run with: pytest tests/test_view_relevance_map.py
"""

import pickle
from argparse import Namespace

import numpy as np
import pytest
from sklearn.naive_bayes import GaussianNB

from SurfaceSense.core.classifiers import SklearnClassifier
from SurfaceSense.utils.config import ConfigManager
from SurfaceSense.utils.view_relevance_map import compute_relevance_map, list_clouds, load_classifiers


def policy_args(policy, **kwargs):
    return Namespace(policy=policy, keypoints=None, background=None, class_lbl=1, **kwargs)


class TestViewerHelpers:
    """Tests for file handling and policy dispatch"""

    def test_list_clouds_natsorted(self, tmp_path):
        for name in ["scan10.pcd", "scan2.pcd", "scan1.ply", "notes.txt"]:
            (tmp_path / name).write_text("")
        names = [p.split("/")[-1] for p in list_clouds(str(tmp_path))]
        assert names == ["scan1.ply", "scan2.pcd", "scan10.pcd"]

    def test_list_single_file(self):
        assert list_clouds("scene.pcd") == ["scene.pcd"]

    def test_load_classifiers(self, tmp_path):
        estimator = GaussianNB().fit(np.array([[0.0], [1.0]]), np.array([0, 1]))
        path = tmp_path / "color.pkl"
        with open(path, "wb") as f:
            pickle.dump(estimator, f)

        classifiers = load_classifiers([str(path)], ["colorHist"])
        assert isinstance(classifiers["colorHist"], SklearnClassifier)
        assert classifiers["colorHist"].get_nbr_class() == 2

    def test_load_classifiers_needs_modalities(self):
        with pytest.raises(ValueError):
            load_classifiers(["a.pkl"], [])

    def test_naive_relevance_map(self, two_blob_cloud):
        cloud, _, _ = two_blob_cloud
        soi, modalities, relevance = compute_relevance_map(cloud, ConfigManager(), policy_args("naive"), {})

        assert modalities == ["naive"]
        points, intensities = relevance
        assert points.shape == (len(cloud.points), 3)
        assert (intensities == 1.0).all()
        assert len(soi.supervoxels) > 0

    def test_learning_without_classifiers(self, two_blob_cloud):
        cloud, _, _ = two_blob_cloud
        _, modalities, relevance = compute_relevance_map(cloud, ConfigManager(), policy_args("learning"), {})
        assert modalities == []
        assert relevance is None

    def test_learning_relevance_map(self, two_blob_cloud):
        """A fitted estimator drives the learning policy"""
        cloud, _, _ = two_blob_cloud
        config = ConfigManager()
        n_features = 3 * config.supervoxel.color_bins
        rng = np.random.default_rng(0)
        estimator = GaussianNB().fit(rng.random((20, n_features)), np.array([0, 1] * 10))

        soi, modalities, relevance = compute_relevance_map(
            cloud, config, policy_args("learning"), {"colorHist": SklearnClassifier(estimator)}
        )

        assert modalities == ["colorHist"]
        points, intensities = relevance
        assert points.shape == (len(cloud.points), 3)
        assert ((intensities >= 0.0) & (intensities <= 1.0)).all()
        assert sorted(soi.get_weights()["colorHist"]) == sorted(soi.supervoxels.labels())
