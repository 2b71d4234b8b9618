"""
Relevance map over the supervoxels of a scene.

A relevance map associates to each supervoxel a vector of probabilities, one
per class, for a given modality. The maps are generated either by simple
policies (every supervoxel, keypoints, background removal) or by classifiers,
and are then used to select the next supervoxel to explore or to extract
object hypotheses as regions of salient supervoxels.
"""

import copy
import logging
import time
from dataclasses import dataclass
from typing import Optional

import numpy as np

from SurfaceSense.core import diffusion, regions
from SurfaceSense.core.classifiers import CompositeClassifier
from SurfaceSense.core.supervoxel_set import SupervoxelSet
from SurfaceSense.core.weights import allocate_relevance_map, compute_estimations
from SurfaceSense.utils import utils

log = logging.getLogger(__name__)

NAIVE = "naive"
KEYPOINTS = "keypoints"
EXPERT = "expert"
MERGE = "merge"

NEUTRAL_VALUE = 0.5
INTERESTING = 1


@dataclass
class SoiParameters:
    interest_threshold: float = 0.5
    init_value: float = 1.0
    n_workers: Optional[int] = None
    seed: Optional[int] = None
    background_tolerance: float = 0.005
    colormap: str = "jet"


def _as_points(cloud):
    if hasattr(cloud, "points"):
        return np.asarray(cloud.points, dtype=float)
    return np.asarray(cloud, dtype=float).reshape(-1, 3)


def _as_cloud(cloud):
    if hasattr(cloud, "points"):
        return cloud
    return utils.arrays_to_cloud(cloud)


class SurfaceOfInterest:
    """
    Build relevance maps, a segmentation of the supervoxels between categories.

    Args:
        cloud (o3d.geometry.PointCloud, optional): Input cloud of the scene.
        supervoxels (SupervoxelSet, optional): Existing segmentation to work on.
        parameters (SoiParameters, optional): Engine parameters.
        sv_parameters (SupervoxelParameters, optional): Parameters of a new SupervoxelSet.
    """

    def __init__(self, cloud=None, supervoxels=None, parameters=None, sv_parameters=None):
        self.parameters = parameters or SoiParameters()
        if supervoxels is None:
            supervoxels = SupervoxelSet(cloud, sv_parameters)
        elif cloud is not None:
            supervoxels.set_input_cloud(cloud)
        self.supervoxels = supervoxels
        self._weights = {}
        self._revision = supervoxels.revision

        # the generator is only used from the calling thread
        seed = self.parameters.seed if self.parameters.seed is not None else time.time_ns()
        self._gen = np.random.default_rng(seed)

    @classmethod
    def from_config(cls, config, cloud=None):
        """Create an engine from a loaded ConfigManager."""
        return cls(cloud, parameters=config.soi, sv_parameters=config.supervoxel)

    def compute_supervoxels(self, workspace, cloud=None):
        """
        Compute the supervoxels of the input cloud, or of ``cloud`` when given.

        Every relevance map is dropped on success.

        Args:
            workspace (Workspace): Bounds of the scene.
            cloud (o3d.geometry.PointCloud, optional): New input cloud.

        Returns:
            bool: True if the supervoxels were computed, the maps are untouched otherwise.
        """
        if not self.supervoxels.compute_supervoxels(workspace, cloud):
            return False
        self._weights.clear()
        self._revision = self.supervoxels.revision
        return True

    def _set_policy_weights(self, modality, interesting=None):
        """Two-class map: ``[0, 1]`` for interesting supervoxels, ``[1, 0]`` for the others."""
        labels = self.supervoxels.labels()
        _, relevance_map = allocate_relevance_map(labels, 2, 0.0)
        for label in labels:
            weight = 1.0 if interesting is None or label in interesting else 0.0
            relevance_map[label][:] = (1.0 - weight, weight)
        self._weights[modality] = relevance_map

    def generate(self, workspace):
        """
        NAIVE POLICY: every supervoxel is a surface of interest.

        Args:
            workspace (Workspace): Bounds of the scene.

        Returns:
            bool: True if the supervoxels were computed.
        """
        if not self.compute_supervoxels(workspace):
            return False
        self._set_policy_weights(NAIVE)
        return True

    def generate_with_classifier(self, modality, classifier, workspace, init_val=None):
        """
        LEARNING POLICY: weights given by a classifier on one modality.

        Args:
            modality (str): Feature modality fed to the classifier.
            classifier (Classifier): Classifier of the modality.
            workspace (Workspace): Bounds of the scene.
            init_val (float, optional): Initial weight, ``init_value`` of the parameters by default.

        Returns:
            bool: True if the supervoxels were computed.
        """
        if not self.compute_supervoxels(workspace):
            return False
        if init_val is None:
            init_val = self.parameters.init_value
        self.init_weights(modality, classifier.get_nbr_class(), init_val)
        self.compute_weights(modality, classifier)
        return True

    def generate_from_keypoints(self, key_pts, workspace):
        """
        KEY POINTS POLICY: surfaces of interest are supervoxels containing at least one keypoint.

        Args:
            key_pts: Keypoints as a point cloud or an array of shape (num_points, 3).
            workspace (Workspace): Bounds of the scene.

        Returns:
            bool: True if the supervoxels were computed.
        """
        if not self.compute_supervoxels(workspace):
            return False
        self.find_soi(key_pts, workspace)
        return True

    def generate_from_background(self, background, workspace):
        """
        EXPERT POLICY: surfaces of interest are what remains once the background is deleted.

        Args:
            background: Point cloud of the background.
            workspace (Workspace): Bounds of the scene.

        Returns:
            bool: True if the supervoxels were computed on the remaining points.
        """
        remaining = utils.remove_matching_points(
            self.supervoxels.input_cloud, _as_cloud(background), self.parameters.background_tolerance
        )
        if not self.compute_supervoxels(workspace, remaining):
            return False
        self._set_policy_weights(EXPERT)
        return True

    def find_soi(self, key_pts, workspace=None):
        """
        Mark the supervoxels containing keypoints as interesting.

        A keypoint belongs to the supervoxel owning the nearest input point,
        provided it is closer than the seed resolution.

        Args:
            key_pts: Keypoints as a point cloud or an array of shape (num_points, 3).
            workspace (Workspace, optional): Keypoints outside are ignored.

        Returns:
            set: Labels of the supervoxels containing keypoints.
        """
        points = _as_points(key_pts)
        if workspace is not None and len(points):
            points = points[workspace.filter(points)]
        labels = self.supervoxels.nearest_supervoxel(points, self.supervoxels.parameters.seed_resolution)
        interesting = {int(label) for label in labels if label > 0}
        self._set_policy_weights(KEYPOINTS, interesting)
        log.debug("%d keypoints fell in %d supervoxels", len(points), len(interesting))
        return interesting

    def reduce_to_soi(self, modality, threshold=0.5, cat=INTERESTING):
        """
        Reduce the set of supervoxels to the surfaces of interest.

        Supervoxels whose weight for ``cat`` is below ``threshold`` are removed
        from the segmentation and from every relevance map.

        Returns:
            set: Removed labels.
        """
        relevance_map = self._relevance_map(modality)
        if relevance_map is None:
            return set()
        removed = self.supervoxels.remove_supervoxels(
            regions.extract_background(relevance_map, self.supervoxels, threshold, cat)
        )
        self._sync_weights()
        return removed

    def _sync_weights(self):
        """
        Drop the relevance map entries left stale by a change of the supervoxels.

        Entries of removed supervoxels are deleted, maps missing a current
        supervoxel are dropped.
        """
        revision = self.supervoxels.revision
        if revision == self._revision:
            return
        labels = set(self.supervoxels.labels())
        for modality in list(self._weights):
            relevance_map = self._weights[modality]
            for label in [label for label in relevance_map if label not in labels]:
                del relevance_map[label]
            if len(relevance_map) != len(labels):
                log.info("Relevance map %s dropped, the supervoxels changed", modality)
                del self._weights[modality]
        self._revision = revision

    def delete_background(self, background):
        """
        Delete the background from the input cloud.

        Every input point matching a background point within
        ``background_tolerance`` is removed. The segmentation and every
        relevance map are dropped, the supervoxels have to be computed again.

        Args:
            background: Point cloud of the background.
        """
        remaining = utils.remove_matching_points(
            self.supervoxels.input_cloud, _as_cloud(background), self.parameters.background_tolerance
        )
        log.debug(
            "Background deletion kept %d of %d points",
            len(remaining.points),
            len(self.supervoxels.input_cloud.points),
        )
        self.supervoxels.set_input_cloud(remaining)
        self._weights.clear()
        self._revision = self.supervoxels.revision

    def init_weights(self, modality, nbr_class, value=1.0):
        """Set every supervoxel of ``modality`` to a constant probability vector."""
        _, self._weights[modality] = allocate_relevance_map(self.supervoxels.labels(), nbr_class, value)

    def _known_modality(self, modality):
        if modality not in self.supervoxels.modalities:
            log.error("Unknown modality: %s", modality)
            return False
        return True

    def compute_weights(self, modality, classifier, comp_classifier=None):
        """
        Compute the weight of each supervoxel with a classifier.

        With ``comp_classifier`` the weights are the element-wise product of
        both estimations. The estimations run in parallel, one per supervoxel.

        Args:
            modality (str): Feature modality fed to the classifier.
            classifier (Classifier): Main classifier.
            comp_classifier (Classifier, optional): Classifier composed with the main one.

        Returns:
            bool: False if the modality is unknown, the maps are then left untouched.
        """
        if not self._known_modality(modality):
            return False
        if comp_classifier is not None:
            classifier = CompositeClassifier(classifier, comp_classifier)

        self._weights[modality] = compute_estimations(
            self.supervoxels.labels(),
            lambda label: self.supervoxels.feature_of(label, modality),
            classifier,
            NEUTRAL_VALUE,
            self.parameters.n_workers,
        )
        return True

    def compute_merged_weights(self, classifier):
        """
        Compute the ``merge`` relevance map with a classifier using every modality.

        Args:
            classifier (Classifier): Receives the full feature record of a supervoxel.
        """
        self._weights[MERGE] = compute_estimations(
            self.supervoxels.labels(),
            self.supervoxels.features_of,
            classifier,
            0.0,
            self.parameters.n_workers,
        )

    def compute_weights_per_modality(self, classifiers):
        """
        Compute weights with one classifier per modality.

        Unknown modalities are skipped and do not prevent the others.

        Args:
            classifiers (dict): Modality name to classifier.

        Returns:
            list: Modalities whose relevance map was computed.
        """
        return [
            modality
            for modality, classifier in classifiers.items()
            if self.compute_weights(modality, classifier)
        ]

    def get_weights(self):
        """Copy of the relevance maps of every modality."""
        self._sync_weights()
        return copy.deepcopy(self._weights)

    def _relevance_map(self, modality):
        self._sync_weights()
        relevance_map = self._weights.get(modality)
        if relevance_map is None:
            log.error("No relevance map for modality: %s", modality)
        return relevance_map

    def choice_of_soi(self, modality, cat=INTERESTING, threshold=None):
        """
        Choose randomly one surface of interest.

        Args:
            modality (str): Relevance map to use.
            cat (int): Index of the class of interest.
            threshold (float, optional): Minimum weight, ``interest_threshold`` by default.

        Returns:
            tuple: (label, supervoxel) of the chosen supervoxel, None if no
                supervoxel is interesting.
        """
        relevance_map = self._relevance_map(modality)
        if relevance_map is None:
            return None
        if threshold is None:
            threshold = self.parameters.interest_threshold
        candidates = regions.salient_labels(relevance_map, self.supervoxels.labels(), threshold, cat)
        if not candidates:
            log.warning("No surface of interest for modality %s", modality)
            return None
        label = candidates[int(self._gen.integers(len(candidates)))]
        return label, self.supervoxels.supervoxel(label)

    def choice_of_soi_by_uncertainty(self, modality, cat=INTERESTING):
        """
        Choose the supervoxel whose weight is the closest to 0.5.

        Ties go to the first supervoxel in iteration order.

        Returns:
            tuple: (label, supervoxel), None if the relevance map is empty.
        """
        relevance_map = self._relevance_map(modality)
        if relevance_map is None:
            return None
        best_label = None
        best_distance = np.inf
        for label in self.supervoxels.labels():
            distance = abs(relevance_map[label][cat] - NEUTRAL_VALUE)
            if distance < best_distance:
                best_label, best_distance = label, distance
        if best_label is None:
            log.warning("No supervoxel to choose for modality %s", modality)
            return None
        return best_label, self.supervoxels.supervoxel(best_label)

    def extract_regions(self, modality, saliency_threshold, class_lbl):
        """
        Compute regions of salient supervoxels.

        Returns:
            list: Regions as sets of labels, empty if the modality has no map.
        """
        relevance_map = self._relevance_map(modality)
        if relevance_map is None:
            return []
        return regions.extract_regions(relevance_map, self.supervoxels, saliency_threshold, class_lbl)

    def extract_background(self, modality, saliency_threshold, class_lbl):
        """Set of the labels of the non salient supervoxels."""
        relevance_map = self._relevance_map(modality)
        if relevance_map is None:
            return set()
        return regions.extract_background(relevance_map, self.supervoxels, saliency_threshold, class_lbl)

    def get_closest_region(self, regions_list, center):
        """Index of the region closest to ``center``, -1 if there is none."""
        return regions.get_closest_region(self.supervoxels, regions_list, center)

    def get_supervoxels_clusters(self, modality, saliency_threshold, class_lbl):
        """Map each salient supervoxel label to the index of its region."""
        clusters = {}
        for index, region in enumerate(self.extract_regions(modality, saliency_threshold, class_lbl)):
            for label in region:
                clusters[label] = index
        return clusters

    def neighbor_bluring(self, modality, cst, lbl):
        """Propagate the interest of each supervoxel to its neighbors. Experimental."""
        relevance_map = self._relevance_map(modality)
        if relevance_map is None:
            return
        diffusion.neighbor_bluring(
            relevance_map, self.supervoxels, cst, lbl, self.parameters.interest_threshold
        )

    def adaptive_threshold(self, modality, lbl):
        """Binarize the relevance map against the neighborhood mean. Experimental."""
        relevance_map = self._relevance_map(modality)
        if relevance_map is None:
            return
        diffusion.adaptive_threshold(relevance_map, self.supervoxels, lbl, self.parameters.interest_threshold)

    def get_weighted_cloud(self, modality, lbl):
        """
        Points of the supervoxels with the weight of their supervoxel.

        Supervoxels without input points are represented by their centroid.

        Args:
            modality (str): Relevance map to use.
            lbl (int): Index of the class.

        Returns:
            tuple: (points, intensities) arrays of shape (num_points, 3) and (num_points,).
        """
        relevance_map = self._relevance_map(modality)
        if relevance_map is None:
            return np.empty((0, 3)), np.empty(0)
        points = []
        intensities = []
        for label, supervoxel in self.supervoxels:
            sv_points = self.supervoxels.points_of(label)
            if len(sv_points) == 0:
                sv_points = supervoxel.centroid[None, :3]
            points.append(sv_points)
            intensities.append(np.full(len(sv_points), relevance_map[label][lbl]))
        if not points:
            return np.empty((0, 3)), np.empty(0)
        return np.concatenate(points), np.concatenate(intensities)

    def get_colored_weighted_cloud(self, modality, lbl):
        """Point cloud colored by the weights of the given modality and class."""
        points, intensities = self.get_weighted_cloud(modality, lbl)
        return utils.arrays_to_cloud(points, utils.weights_to_colors(intensities, self.parameters.colormap))

    @staticmethod
    def cumulative_relevance_map(list_weights):
        """
        Average several weighted clouds computed on the same points.

        Args:
            list_weights (list): (points, intensities) tuples as returned by ``get_weighted_cloud``.

        Returns:
            tuple: (points, mean_intensities).

        Raises:
            ValueError: If the list is empty or the clouds differ in size.
        """
        if not list_weights:
            raise ValueError("No relevance map to accumulate")
        points = list_weights[0][0]
        sizes = {len(intensities) for _, intensities in list_weights}
        if len(sizes) != 1:
            raise ValueError(f"Relevance maps differ in size: {sorted(sizes)}")
        return points, np.mean([intensities for _, intensities in list_weights], axis=0)
