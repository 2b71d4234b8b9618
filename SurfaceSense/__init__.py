"""
SurfaceSense - Relevance maps over supervoxel segmented point clouds

Subpackages:
    core: Supervoxel segmentation, classifiers and the relevance map engine
    utils: Point cloud helpers, configuration loading and visualization scripts
"""
