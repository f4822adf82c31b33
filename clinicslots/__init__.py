"""Clinic slot booking core."""

__version__ = "0.1.0"
