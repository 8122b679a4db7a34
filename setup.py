"""Setup script for memgraft."""

from setuptools import find_packages, setup

setup(
    name="memgraft",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=[
        "kuzu>=0.3.0",
        "numpy>=1.24",
        "cachetools>=5.3",
    ],
    extras_require={
        "embeddings": ["sentence-transformers>=2.2"],
        "test": ["pytest>=7.0"],
    },
)
