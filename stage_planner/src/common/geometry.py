"""Positions, bounding boxes and direction helpers."""

import math
from typing import Iterator, NamedTuple, Tuple, Union

from draftsman.constants import Direction

from .entity_data import get_entity_footprint

Position = Tuple[float, float]
TilePosition = Tuple[int, int]


class BoundingBox(NamedTuple):
    """Axis-aligned box in world coordinates, right/bottom exclusive."""

    left: float
    top: float
    right: float
    bottom: float

    def intersects(self, other: "BoundingBox") -> bool:
        return (
            self.left < other.right
            and other.left < self.right
            and self.top < other.bottom
            and other.top < self.bottom
        )

    def contains(self, position: Position) -> bool:
        x, y = position
        return self.left <= x < self.right and self.top <= y < self.bottom

    def tiles(self) -> Iterator[TilePosition]:
        """Yield every tile the box covers."""
        for tile_x in range(math.floor(self.left), math.ceil(self.right)):
            for tile_y in range(math.floor(self.top), math.ceil(self.bottom)):
                yield (tile_x, tile_y)


def parse_direction(value: Union[str, int, Direction, None]) -> Direction:
    """Accept a Direction, its name ("east") or its integer value."""
    if value is None:
        return Direction.NORTH
    if isinstance(value, Direction):
        return value
    if isinstance(value, str):
        return Direction[value.upper()]
    return Direction(value)


def opposite_direction(direction: Direction) -> Direction:
    return Direction(direction).opposite()


def is_horizontal(direction: Direction) -> bool:
    return Direction(direction) in (Direction.EAST, Direction.WEST)


def rotated_footprint(kind: str, direction: Direction) -> Tuple[int, int]:
    """Footprint of a prototype once rotated to face direction."""
    width, height = get_entity_footprint(kind)
    if is_horizontal(direction):
        return (height, width)
    return (width, height)


def tile_origin(position: Position, footprint: Tuple[int, int]) -> TilePosition:
    """Top-left tile of an entity centred on position."""
    return (
        math.floor(position[0] - footprint[0] / 2.0),
        math.floor(position[1] - footprint[1] / 2.0),
    )


def entity_bounding_box(
    kind: str, position: Position, direction: Direction
) -> BoundingBox:
    """Tile-aligned box an entity of kind covers when centred on position."""
    width, height = rotated_footprint(kind, direction)
    left, top = tile_origin(position, (width, height))
    return BoundingBox(left, top, left + width, top + height)


def point_box(position: Position) -> BoundingBox:
    """Box covering the single tile containing position."""
    tile_x, tile_y = math.floor(position[0]), math.floor(position[1])
    return BoundingBox(tile_x, tile_y, tile_x + 1, tile_y + 1)
