"""Entity prototype data extraction from draftsman."""

import math
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from draftsman.data import entities as entity_data

from .constants import (
    DIRECTION_AGNOSTIC_TYPES,
    DIRECTIONAL_PAIR_TYPES,
    PASTE_ROTATABLE_TYPES,
)


class RotationType(Enum):
    """How a prototype's direction affects placement compatibility."""

    ANY_DIRECTION = "any-direction"
    FLIPPABLE = "flippable"


class EntityDataHelper:
    """Helper to extract entity information from draftsman data."""

    @staticmethod
    def get_prototype(prototype: str) -> Dict[str, Any]:
        return entity_data.raw.get(prototype, {})

    @staticmethod
    def get_footprint(prototype: str) -> Tuple[int, int]:
        """Get entity footprint size from draftsman, facing north.

        Args:
            prototype: Entity prototype name (e.g., "assembling-machine-1")

        Returns:
            (width, height) in tiles
        """
        entity_info = EntityDataHelper.get_prototype(prototype)

        width = entity_info.get("tile_width")
        height = entity_info.get("tile_height")
        if width is not None and height is not None:
            return (max(1, int(width)), max(1, int(height)))

        collision_box = entity_info.get("collision_box")
        if collision_box:
            width = max(1, math.ceil(collision_box[1][0] - collision_box[0][0]))
            height = max(1, math.ceil(collision_box[1][1] - collision_box[0][1]))
            return (width, height)

        return (1, 1)

    @staticmethod
    def get_type(prototype: str) -> Optional[str]:
        """Get the prototype type (e.g. "transport-belt"), or None if unknown."""
        return EntityDataHelper.get_prototype(prototype).get("type")

    @staticmethod
    def get_rotation_type(prototype: str) -> Optional[RotationType]:
        """Classify how direction matters for matching this prototype.

        Returns None for ordinary directional prototypes, where only the exact
        direction matches.
        """
        entity_info = EntityDataHelper.get_prototype(prototype)
        entity_type = entity_info.get("type")
        flags = entity_info.get("flags") or []

        if entity_type in DIRECTIONAL_PAIR_TYPES:
            return RotationType.FLIPPABLE
        if entity_type in DIRECTION_AGNOSTIC_TYPES or "not-rotatable" in flags:
            return RotationType.ANY_DIRECTION
        if entity_type in PASTE_ROTATABLE_TYPES:
            width, height = EntityDataHelper.get_footprint(prototype)
            if width == height:
                return RotationType.ANY_DIRECTION
            return RotationType.FLIPPABLE
        return None

    @staticmethod
    def is_directional_pair(prototype: str) -> bool:
        """Underground belts and pipes-to-ground come in oriented pairs."""
        return EntityDataHelper.get_type(prototype) in DIRECTIONAL_PAIR_TYPES

    @staticmethod
    def get_category(prototype: str) -> Optional[Tuple]:
        """Placement category shared by prototypes that can replace each other.

        Prototypes without a fast-replaceable group have no category and are
        only compatible with themselves.
        """
        entity_info = EntityDataHelper.get_prototype(prototype)
        group = entity_info.get("fast_replaceable_group")
        if not group:
            return None
        collision_box = entity_info.get("collision_box") or ((0, 0), (0, 0))
        box = tuple(round(coord, 3) for corner in collision_box for coord in corner)
        return (entity_info.get("type"), group, box)

    @staticmethod
    def are_compatible(prototype_a: str, prototype_b: str) -> bool:
        """Check whether one prototype can stand in for the other in place."""
        if prototype_a == prototype_b:
            return True
        category = EntityDataHelper.get_category(prototype_a)
        return category is not None and category == EntityDataHelper.get_category(
            prototype_b
        )


get_entity_footprint = EntityDataHelper.get_footprint
get_entity_type = EntityDataHelper.get_type
get_rotation_type = EntityDataHelper.get_rotation_type
is_directional_pair = EntityDataHelper.is_directional_pair
are_compatible_prototypes = EntityDataHelper.are_compatible
