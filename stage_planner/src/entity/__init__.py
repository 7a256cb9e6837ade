"""Staged entity model: staged values, configs, entities, wires and tiles."""

from .staged_value import StagedValue
from .config import (
    EntityConfig,
    apply_config_diff,
    config_from_dict,
    config_to_dict,
    configs_equal,
    diff_configs,
)
from .project_entity import PlacementError, ProjectEntity, StageError
from .tile import ProjectTile
from .wires import WireConnection, lifespans_overlap

__all__ = [
    "StagedValue",
    "EntityConfig",
    "apply_config_diff",
    "config_from_dict",
    "config_to_dict",
    "configs_equal",
    "diff_configs",
    "PlacementError",
    "ProjectEntity",
    "StageError",
    "ProjectTile",
    "WireConnection",
    "lifespans_overlap",
]
