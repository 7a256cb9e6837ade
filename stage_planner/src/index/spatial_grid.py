"""Tile-keyed occupancy buckets for point and area queries."""

from typing import Dict, Generic, Hashable, Iterable, Set, Tuple, TypeVar

from ..common.geometry import BoundingBox, TilePosition

K = TypeVar("K", bound=Hashable)


class SpatialGrid(Generic[K]):
    """Tracks which items occupy which tiles.

    Several items may share a tile (entities that live in disjoint stage
    ranges overlap freely). Callers that need exclusive tiles check
    ``is_available`` first.
    """

    def __init__(self):
        self._buckets: Dict[TilePosition, Set[K]] = {}
        self._tiles: Dict[K, Tuple[TilePosition, ...]] = {}

    def __contains__(self, item: K) -> bool:
        return item in self._tiles

    def __len__(self) -> int:
        return len(self._tiles)

    @staticmethod
    def footprint_tiles(
        tile_pos: TilePosition, footprint: Tuple[int, int]
    ) -> Tuple[TilePosition, ...]:
        width, height = footprint
        return tuple(
            (tile_pos[0] + dx, tile_pos[1] + dy)
            for dx in range(width)
            for dy in range(height)
        )

    def is_available(
        self, tile_pos: TilePosition, footprint: Tuple[int, int]
    ) -> bool:
        """Check if every tile of the footprint is free.

        Args:
            tile_pos: (tile_x, tile_y) top-left corner position
            footprint: (width, height) in tiles
        """
        return not any(
            self._buckets.get(tile) for tile in self.footprint_tiles(tile_pos, footprint)
        )

    def mark_occupied(
        self, item: K, tile_pos: TilePosition, footprint: Tuple[int, int]
    ) -> None:
        """Record item as covering the footprint, replacing any earlier record."""
        self.release(item)
        tiles = self.footprint_tiles(tile_pos, footprint)
        for tile in tiles:
            self._buckets.setdefault(tile, set()).add(item)
        self._tiles[item] = tiles

    def mark_box(self, item: K, box: BoundingBox) -> None:
        self.release(item)
        tiles = tuple(box.tiles())
        for tile in tiles:
            self._buckets.setdefault(tile, set()).add(item)
        self._tiles[item] = tiles

    def release(self, item: K) -> bool:
        tiles = self._tiles.pop(item, None)
        if tiles is None:
            return False
        for tile in tiles:
            bucket = self._buckets.get(tile)
            if bucket is None:
                continue
            bucket.discard(item)
            if not bucket:
                del self._buckets[tile]
        return True

    def tiles_of(self, item: K) -> Tuple[TilePosition, ...]:
        return self._tiles.get(item, ())

    def items_in_area(self, box: BoundingBox) -> Set[K]:
        found: Set[K] = set()
        for tile in box.tiles():
            found.update(self._buckets.get(tile, ()))
        return found

    def items(self) -> Iterable[K]:
        return list(self._tiles)

    def clear(self) -> None:
        self._buckets.clear()
        self._tiles.clear()
