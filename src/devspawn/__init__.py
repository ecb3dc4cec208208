"""Spawn volume-backed devcontainers through a bootstrap container."""

__version__ = "0.1.0"
