[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fictrac"
version = "2.1.2"
description = "Core geometry, configuration and image processing for trackball-based fictive path tracking"
requires-python = ">=3.10"
keywords = ["tracking", "trackball", "camera model", "image processing", "rotation"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Processing",
]
dependencies = [
    "numpy",
    "scipy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["fictrac"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
