"""
Classifiers turning feature vectors into per-class probability estimates.

Every classifier exposes ``get_nbr_class()`` and ``compute_estimation()``.
The relevance map engine only relies on these two methods, so classifier
kinds can be mixed at runtime.
"""

import numpy as np


class Classifier:
    """Base class of the classifier capability used by the relevance map engine."""

    def get_nbr_class(self):
        raise NotImplementedError

    def compute_estimation(self, feature):
        """
        Estimate the probability of each class for one feature.

        Args:
            feature (np.ndarray): Feature vector of one supervoxel, or for
                multi-modal classifiers a dict of modality name to feature vector.

        Returns:
            np.ndarray: Array of length ``get_nbr_class()``.
        """
        raise NotImplementedError


class ConstantClassifier(Classifier):
    """Returns the same estimation for every feature."""

    def __init__(self, estimation):
        self._estimation = np.asarray(estimation, dtype=float)

    def get_nbr_class(self):
        return len(self._estimation)

    def compute_estimation(self, feature):
        return self._estimation.copy()


class SklearnClassifier(Classifier):
    """
    Adapter around a fitted scikit-learn estimator exposing ``predict_proba``.

    Args:
        estimator: A fitted estimator, e.g. ``GaussianMixture`` or ``RandomForestClassifier``.
        nbr_class (int, optional): Class count, read from the estimator when omitted.
    """

    def __init__(self, estimator, nbr_class=None):
        if not hasattr(estimator, "predict_proba"):
            raise ValueError("Estimator must implement predict_proba")
        self.estimator = estimator
        if nbr_class is None:
            if hasattr(estimator, "classes_"):
                nbr_class = len(estimator.classes_)
            elif hasattr(estimator, "n_components"):
                nbr_class = estimator.n_components
            else:
                raise ValueError("Unable to infer the number of classes, pass nbr_class")
        self._nbr_class = int(nbr_class)

    def get_nbr_class(self):
        return self._nbr_class

    def compute_estimation(self, feature):
        feature = np.asarray(feature, dtype=float).reshape(1, -1)
        return np.asarray(self.estimator.predict_proba(feature)[0], dtype=float)


class CompositeClassifier(Classifier):
    """
    Combination of two classifiers working on the same modality.

    The estimation is the element-wise product of both estimations, the joint
    confidence of two independent estimators.
    """

    def __init__(self, classifier, comp_classifier):
        if classifier.get_nbr_class() != comp_classifier.get_nbr_class():
            raise ValueError(
                "Composed classifiers must have the same number of classes: "
                f"{classifier.get_nbr_class()} != {comp_classifier.get_nbr_class()}"
            )
        self.classifier = classifier
        self.comp_classifier = comp_classifier

    def get_nbr_class(self):
        return self.classifier.get_nbr_class()

    def compute_estimation(self, feature):
        comp_est = np.asarray(self.comp_classifier.compute_estimation(feature), dtype=float)
        estimations = np.asarray(self.classifier.compute_estimation(feature), dtype=float)
        return comp_est * estimations


class MultiModalClassifier(Classifier):
    """
    Classifier over the full feature record of a supervoxel.

    Holds one classifier per modality and averages the estimations of the
    modalities present in the record.
    """

    def __init__(self, classifiers):
        if not classifiers:
            raise ValueError("MultiModalClassifier needs at least one classifier")
        counts = {classifier.get_nbr_class() for classifier in classifiers.values()}
        if len(counts) != 1:
            raise ValueError(f"All classifiers must have the same number of classes, got {sorted(counts)}")
        self.classifiers = dict(classifiers)
        self._nbr_class = counts.pop()

    def get_nbr_class(self):
        return self._nbr_class

    def compute_estimation(self, feature):
        estimations = [
            np.asarray(classifier.compute_estimation(feature[modality]), dtype=float)
            for modality, classifier in self.classifiers.items()
            if modality in feature
        ]
        if not estimations:
            return np.zeros(self._nbr_class)
        return np.mean(estimations, axis=0)
