"""
Configuration loading for supervoxel, relevance map and workspace parameters.

The YAML layout follows the experiment files used to record babbling
sessions: an ``sv`` section for supervoxel construction, a ``soi`` section for
the relevance map engine and a ``workspace`` section bounding the scene.
"""

import logging
import os
from typing import Any, Dict

import yaml

from SurfaceSense.core.supervoxel_set import SupervoxelParameters, Workspace
from SurfaceSense.core.surface_of_interest import SoiParameters

log = logging.getLogger(__name__)

DEFAULT_CONFIG = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "config", "default.yaml")


class ConfigManager:
    def __init__(self, path: str = None):
        cfg_file = path or DEFAULT_CONFIG

        if not os.path.exists(cfg_file):
            raise FileNotFoundError(f"Config file not found: {cfg_file}")

        with open(cfg_file, "r", encoding="utf-8") as f:
            self._cfg: Dict[str, Any] = yaml.safe_load(f) or {}

        self.supervoxel = SupervoxelParameters(**self._section("sv"))
        self.soi = SoiParameters(**self._section("soi"))
        self.workspace = self._load_workspace(self._cfg.get("workspace", {}))

        log.debug("Loaded config from %s", cfg_file)

    def _section(self, name):
        section = self._cfg.get(name) or {}
        if not isinstance(section, dict):
            raise ValueError(f"Config section '{name}' must be a mapping")
        return section

    @staticmethod
    def _load_workspace(node: Dict[str, Any]) -> Workspace:
        """
        Build a workspace from the ``sphere`` and ``csg_intersect_cuboid`` entries.

        Missing entries fall back to the workspace defaults.
        """
        sphere = node.get("sphere", {})
        cuboid = node.get("csg_intersect_cuboid", {})
        defaults = Workspace()
        return Workspace(
            use_sphere=bool(node.get("use_sphere", defaults.use_sphere)),
            sphere_center=(
                float(sphere.get("x", defaults.sphere_center[0])),
                float(sphere.get("y", defaults.sphere_center[1])),
                float(sphere.get("z", defaults.sphere_center[2])),
            ),
            sphere_radius=float(sphere.get("radius", defaults.sphere_radius)),
            sphere_threshold=float(sphere.get("threshold", defaults.sphere_threshold)),
            cuboid=tuple(
                float(cuboid.get(key, default))
                for key, default in zip(
                    ("x_min", "x_max", "y_min", "y_max", "z_min", "z_max"), defaults.cuboid
                )
            ),
        )
