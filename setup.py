"""Packaging of xTrackDEM"""
from setuptools import find_packages, setup

setup(
    name="xtrackdem",
    version="0.1.0",
    description="Footprint-based coregistration of altimetry tracks to reference DTMs",
    python_requires=">=3.10",
    packages=find_packages(include=["xtrackdem", "xtrackdem.*"]),
    install_requires=[
        "numpy",
        "scipy",
        "pandas",
        "shapely>=2.0",
        "pyproj",
        "geoutils",
        "tqdm",
        "pyyaml",
        "cerberus",
        "argcomplete",
    ],
    extras_require={
        "test": ["pytest", "rasterio", "affine<3"],
    },
    entry_points={
        "console_scripts": [
            "xtrackdem = xtrackdem.xtrackdem_cli:main",
        ],
    },
)
