"""Common utilities shared across the planner."""

from .diagnostics import ProjectDiagnostics, DiagnosticSeverity
from .exceptions import IndexCorruptionError, PlannerError
from .entity_data import (
    EntityDataHelper,
    RotationType,
    get_entity_footprint,
    get_rotation_type,
    is_directional_pair,
)
from .geometry import BoundingBox, Position, parse_direction, opposite_direction
from .constants import DEFAULT_CONFIG, PlannerConfig

__all__ = [
    "ProjectDiagnostics",
    "DiagnosticSeverity",
    "IndexCorruptionError",
    "PlannerError",
    "EntityDataHelper",
    "RotationType",
    "get_entity_footprint",
    "get_rotation_type",
    "is_directional_pair",
    "BoundingBox",
    "Position",
    "parse_direction",
    "opposite_direction",
    "DEFAULT_CONFIG",
    "PlannerConfig",
]
