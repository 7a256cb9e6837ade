"""Staged blueprint planning: keep every stage's world in line with one model."""

__version__ = "0.1.0"
