"""Incremental GLSL to SPIR-V build pipeline."""

__version__ = "0.1.0"
