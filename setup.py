"""Setup configuration for highway_planner package."""

from setuptools import setup, find_packages
from pathlib import Path

# Read the contents of README file
ROOT = Path(__file__).parent
README = (ROOT / "README.md").read_text(encoding='utf-8')

setup(
    name="highway_planner",
    version="0.1.0",
    description="Highway motion planner with cost-based lane selection and spline trajectories",
    long_description=README,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["highway_planner", "highway_planner.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.23.0",
        "matplotlib>=3.5.0",
        "pyyaml>=6.0",
        "loguru>=0.7.0",
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=3.0.0",
            "httpx>=0.24.0",
        ],
    },
)
