"""
SurfaceSense.utils - Utility functions for point clouds and configuration

This module provides utility functions for working with point clouds,
loading YAML configurations and visualizing relevance maps.

Functions:
    cloud_to_arrays: Extract points and colors from a point cloud
    arrays_to_cloud: Build a point cloud from arrays
    remove_matching_points: Remove the points present in a reference cloud
    weights_to_colors: Map weights to colors with a colormap

Classes:
    ConfigManager: Load supervoxel, relevance map and workspace parameters
"""
