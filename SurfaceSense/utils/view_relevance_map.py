"""
Script for computing and visualizing relevance maps.

This script loads a point cloud (or every cloud of a directory), segments it
into supervoxels, generates a relevance map with the selected policy and
displays the map colored by weight together with the object hypotheses.
When a directory is given, the colored maps are written to an output
directory instead of being displayed.
"""

import argparse
import logging
import os
import pickle

import numpy as np
import open3d as o3d
from natsort import natsorted
from tqdm.auto import tqdm

from SurfaceSense.core.classifiers import SklearnClassifier
from SurfaceSense.core.object_hypothesis import extract_object_hypotheses
from SurfaceSense.core.surface_of_interest import EXPERT, KEYPOINTS, NAIVE, SurfaceOfInterest
from SurfaceSense.utils import utils
from SurfaceSense.utils.config import ConfigManager

log = logging.getLogger(__name__)

CLOUD_EXTENSIONS = (".pcd", ".ply")


def parse_args():
    parser = argparse.ArgumentParser(description="Compute and display the relevance map of a scene")
    parser.add_argument("cloud", help="Point cloud file or directory of point clouds")
    parser.add_argument("--config", default=None, help="YAML configuration, the packaged default if omitted")
    parser.add_argument(
        "--policy", choices=["naive", "learning", "keypoints", "expert"], default="naive"
    )
    parser.add_argument("--classifier", action="append", default=[], help="Pickled scikit-learn estimator")
    parser.add_argument("--modality", action="append", default=[], help="Modality of each classifier")
    parser.add_argument("--keypoints", default=None, help="Point cloud of keypoints (keypoints policy)")
    parser.add_argument("--background", default=None, help="Point cloud of the background (expert policy)")
    parser.add_argument("--class-lbl", type=int, default=1, help="Index of the class of interest")
    parser.add_argument("--output", default="relevance_maps", help="Output directory for directory inputs")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args()


def load_classifiers(paths, modalities):
    """
    Load pickled estimators and pair them with their modality.

    Returns:
        dict: Modality name to SklearnClassifier.
    """
    if len(paths) != len(modalities):
        raise ValueError("Each --classifier needs a matching --modality")
    classifiers = {}
    for path, modality in zip(paths, modalities):
        with open(path, "rb") as f:
            classifiers[modality] = SklearnClassifier(pickle.load(f))
    return classifiers


def list_clouds(path):
    if os.path.isdir(path):
        names = natsorted(n for n in os.listdir(path) if n.lower().endswith(CLOUD_EXTENSIONS))
        return [os.path.join(path, n) for n in names]
    return [path]


def compute_relevance_map(cloud, config, args, classifiers):
    """
    Run the selected policy on one cloud.

    Returns:
        tuple: (soi, modalities, (points, intensities)), the last item is None
            if the generation failed.
    """
    soi = SurfaceOfInterest.from_config(config, cloud)
    workspace = config.workspace

    if args.policy == "naive":
        ok, modalities = soi.generate(workspace), [NAIVE]
    elif args.policy == "keypoints":
        key_pts = o3d.io.read_point_cloud(args.keypoints)
        ok, modalities = soi.generate_from_keypoints(key_pts, workspace), [KEYPOINTS]
    elif args.policy == "expert":
        background = o3d.io.read_point_cloud(args.background)
        ok, modalities = soi.generate_from_background(background, workspace), [EXPERT]
    else:
        ok = soi.compute_supervoxels(workspace)
        modalities = soi.compute_weights_per_modality(classifiers) if ok else []

    if not ok or not modalities:
        return soi, modalities, None

    weighted = [soi.get_weighted_cloud(modality, args.class_lbl) for modality in modalities]
    return soi, modalities, soi.cumulative_relevance_map(weighted)


def hypotheses_geometries(soi, modality, class_lbl):
    geometries = []
    for index, hypothesis in enumerate(extract_object_hypotheses(soi, modality, class_lbl=class_lbl)):
        sphere = o3d.geometry.TriangleMesh.create_sphere(radius=hypothesis.radius)
        sphere.translate(hypothesis.center)
        lines = o3d.geometry.LineSet.create_from_triangle_mesh(sphere)
        lines.paint_uniform_color(utils.random_color(index))
        geometries.append(lines)
    return geometries


def main():
    """Main function to run the relevance map visualization."""
    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    config = ConfigManager(args.config)
    classifiers = load_classifiers(args.classifier, args.modality) if args.policy == "learning" else {}
    cloud_files = list_clouds(args.cloud)

    if len(cloud_files) == 1:
        cloud = o3d.io.read_point_cloud(cloud_files[0])
        soi, modalities, relevance = compute_relevance_map(cloud, config, args, classifiers)
        if relevance is None:
            log.error("Unable to compute a relevance map for %s", cloud_files[0])
            return
        points, intensities = relevance
        pcd = utils.arrays_to_cloud(points, utils.weights_to_colors(intensities, config.soi.colormap))
        coor = o3d.geometry.TriangleMesh.create_coordinate_frame(size=0.1)
        o3d.visualization.draw_geometries([pcd, coor] + hypotheses_geometries(soi, modalities[0], args.class_lbl))
        return

    os.makedirs(args.output, exist_ok=True)
    for cloud_file in tqdm(cloud_files):
        cloud = o3d.io.read_point_cloud(cloud_file)
        _, _, relevance = compute_relevance_map(cloud, config, args, classifiers)
        if relevance is None:
            log.warning("Skipping %s: no relevance map", cloud_file)
            continue
        points, intensities = relevance
        pcd = utils.arrays_to_cloud(points, utils.weights_to_colors(intensities, config.soi.colormap))
        name = os.path.splitext(os.path.basename(cloud_file))[0] + "_relevance.pcd"
        o3d.io.write_point_cloud(os.path.join(args.output, name), pcd)
        log.info("%s: mean weight %.3f", name, float(np.mean(intensities)) if len(intensities) else 0.0)


if __name__ == "__main__":
    main()
