"""
SurfaceSense.core - Core functionality for relevance maps over supervoxels

This module contains the core components of the SurfaceSense package,
including supervoxel segmentation, classifiers, and the relevance map engine
used to select surfaces of interest and extract object hypotheses.

Classes:
    SupervoxelSet: Segmentation of a point cloud into adjacent supervoxels with features.
    SurfaceOfInterest: Relevance maps, selection, diffusion and region extraction.
    Classifier: Base of the classifiers producing per-class estimations.
"""
