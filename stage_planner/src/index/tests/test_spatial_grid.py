"""Tests for index/spatial_grid.py - tile occupancy buckets."""

from stage_planner.src.common.geometry import BoundingBox
from stage_planner.src.index.spatial_grid import SpatialGrid


def items_on_tile(grid, x, y):
    return grid.items_in_area(BoundingBox(x, y, x + 1, y + 1))


class TestSpatialGrid:
    """Tests for SpatialGrid."""

    def test_footprint_tiles(self):
        """A 2x2 footprint covers four tiles."""
        assert set(SpatialGrid.footprint_tiles((0, 0), (2, 2))) == {
            (0, 0),
            (0, 1),
            (1, 0),
            (1, 1),
        }

    def test_mark_and_query(self):
        """Marked items are found at their tiles."""
        grid = SpatialGrid()
        grid.mark_occupied("a", (0, 0), (2, 1))
        assert items_on_tile(grid, 1, 0) == {"a"}
        assert items_on_tile(grid, 0, 1) == set()
        assert "a" in grid
        assert len(grid) == 1

    def test_items_may_share_tiles(self):
        """mark_occupied allows overlap."""
        grid = SpatialGrid()
        grid.mark_occupied("a", (0, 0), (1, 1))
        grid.mark_occupied("b", (0, 0), (1, 1))
        assert items_on_tile(grid, 0, 0) == {"a", "b"}

    def test_is_available(self):
        """Only fully free footprints are available."""
        grid = SpatialGrid()
        grid.mark_occupied("a", (0, 0), (2, 2))
        assert grid.is_available((1, 1), (1, 1)) is False
        assert grid.is_available((1, 1), (2, 2)) is False
        assert grid.is_available((2, 2), (1, 1)) is True

    def test_remark_replaces_previous_tiles(self):
        """Marking an item again moves it."""
        grid = SpatialGrid()
        grid.mark_box("a", BoundingBox(0, 0, 1, 1))
        grid.mark_box("a", BoundingBox(5, 5, 6, 6))
        assert items_on_tile(grid, 0, 0) == set()
        assert grid.tiles_of("a") == ((5, 5),)

    def test_release(self):
        """Released items leave no trace."""
        grid = SpatialGrid()
        grid.mark_occupied("a", (0, 0), (1, 1))
        assert grid.release("a") is True
        assert grid.release("a") is False
        assert grid.is_available((0, 0), (1, 1)) is True

    def test_items_in_area(self):
        """Area queries collect every overlapping item once."""
        grid = SpatialGrid()
        grid.mark_occupied("a", (0, 0), (2, 2))
        grid.mark_occupied("b", (4, 4), (1, 1))
        assert grid.items_in_area(BoundingBox(1, 1, 3, 3)) == {"a"}
        assert grid.items_in_area(BoundingBox(0, 0, 5, 5)) == {"a", "b"}

    def test_clear(self):
        """clear empties the grid."""
        grid = SpatialGrid()
        grid.mark_occupied("a", (0, 0), (1, 1))
        grid.clear()
        assert len(grid) == 0
        assert list(grid.items()) == []
