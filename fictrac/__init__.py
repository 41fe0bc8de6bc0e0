"""Trackball tracking core: rotations, camera models, configuration files and frame processing."""

__version__ = "2.1.2"