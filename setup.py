from setuptools import find_packages, setup

setup(
    name="SurfaceSense",
    version="0.1.0",
    packages=find_packages(exclude=["tests"]),
    package_data={"SurfaceSense": ["config/*.yaml"]},
    install_requires=[
        "open3d",
        "natsort",
        "numpy",
        "scipy",
        "scikit-learn",
        "matplotlib",
        "pyyaml",
        "tqdm",
    ],
    extras_require={
        "test": ["pytest"],
    },
    authors="Alec Reed, Lorin Achey and, Brendan Crowe",
    description="Relevance maps over supervoxel segmented point clouds for active exploration",
    python_requires=">=3.8",
)
