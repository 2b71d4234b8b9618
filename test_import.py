from SurfaceSense.core.surface_of_interest import SurfaceOfInterest
from SurfaceSense.utils import view_relevance_map
from SurfaceSense.utils.config import ConfigManager

print("Successfully imported SurfaceSense modules!")

# Create a SurfaceOfInterest instance with the packaged configuration
config = ConfigManager()  # Pass the path of your own YAML file to override it
soi = SurfaceOfInterest.from_config(config)

# The actual relevance map computation can be done when a cloud is available:
# soi.supervoxels.set_input_cloud(o3d.io.read_point_cloud("scene.pcd"))
# soi.generate(config.workspace)
# weighted_cloud = soi.get_colored_weighted_cloud("naive", 1)
