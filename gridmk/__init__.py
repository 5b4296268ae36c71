"""Parametric grid storage boxes and baseplates for OpenSCAD."""

__version__ = "0.3.0"
