"""Spatial and identity lookup over project entities."""

from .spatial_grid import SpatialGrid
from .entity_index import EntityIndex, directions_match

__all__ = ["SpatialGrid", "EntityIndex", "directions_match"]
