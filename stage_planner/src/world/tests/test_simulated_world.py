"""Tests for world/simulated.py - the in-memory host."""

import pytest
from draftsman.constants import Direction

from stage_planner.src.common.geometry import BoundingBox
from stage_planner.src.entity.config import EntityConfig
from stage_planner.src.world.host import HostEventType, HostWire, RemovalCause
from stage_planner.src.world.simulated import SimulatedWorld


@pytest.fixture
def world():
    return SimulatedWorld(num_stages=3)


class TestSimulatedWorldStages:
    """Tests for stage bookkeeping."""

    def test_num_stages(self, world):
        """The world starts with the requested stages."""
        assert world.num_stages() == 3

    def test_unknown_stage_rejected(self, world):
        """Stages outside the range raise ValueError."""
        with pytest.raises(ValueError):
            world.instances_at(4)

    def test_delete_stage_invalidates_instances(self, world):
        """Instances of a deleted stage are no longer valid."""
        ref = world.create_instance(
            2, "iron-chest", (0.5, 0.5), Direction.NORTH, EntityConfig("iron-chest")
        )
        world.delete_stage(2)
        assert world.is_valid(ref) is False
        assert world.num_stages() == 2

    def test_insert_stage_shifts_surfaces(self, world):
        """Existing instances move to the next stage number."""
        ref = world.create_instance(
            2, "iron-chest", (0.5, 0.5), Direction.NORTH, EntityConfig("iron-chest")
        )
        world.insert_stage(1)
        assert world.stage_of(ref) == 3


class TestSimulatedWorldPlacement:
    """Tests for collision checked placement."""

    def test_instances_collide(self, world):
        """A second instance on the same tiles is refused."""
        config = EntityConfig("assembling-machine-1")
        assert world.create_instance(1, config.name, (1.5, 1.5), Direction.NORTH, config)
        assert (
            world.create_instance(1, "iron-chest", (2.5, 2.5), Direction.NORTH, EntityConfig("iron-chest"))
            is None
        )

    def test_previews_never_collide(self, world):
        """Previews fit anywhere and do not block real instances."""
        preview = world.create_preview(1, "iron-chest", (0.5, 0.5), Direction.NORTH)
        assert preview.preview is True
        assert world.build(1, "iron-chest", (0.5, 0.5)) is not None

    def test_obstruction_blocks(self, world):
        """Obstructed tiles refuse placement until cleared."""
        world.add_obstruction(1, (0.5, 0.5))
        assert world.build(1, "iron-chest", (0.5, 0.5)) is None
        world.remove_obstruction(1, (0.5, 0.5))
        assert world.build(1, "iron-chest", (0.5, 0.5)) is not None

    def test_placement_rule(self, world):
        """Rules can veto a direction."""
        world.add_placement_rule(1, lambda kind, position, direction: direction != Direction.EAST)
        assert world.can_place(1, "inserter", (0.5, 0.5), Direction.EAST) is False
        assert world.can_place(1, "inserter", (0.5, 0.5), Direction.NORTH) is True
        world.clear_placement_rules(1)
        assert world.can_place(1, "inserter", (0.5, 0.5), Direction.EAST) is True

    def test_update_instance_requires_same_kind(self, world):
        """update_instance refuses a prototype change."""
        ref = world.build(1, "transport-belt", (0.5, 0.5)).instance
        assert world.update_instance(ref, EntityConfig("fast-transport-belt")) is False
        assert world.update_instance(ref, EntityConfig("transport-belt", settings={"a": 1})) is True
        assert world.read_config(ref).settings == {"a": 1}

    def test_query_instances_in_area(self, world):
        """Area queries return overlapping instances."""
        ref = world.build(1, "assembling-machine-1", (1.5, 1.5)).instance
        assert world.query_instances_in_area(1, BoundingBox(2, 2, 3, 3)) == [ref]
        assert world.query_instances_in_area(1, BoundingBox(5, 5, 6, 6)) == []


class TestSimulatedWorldUserActions:
    """Tests for the user action helpers."""

    def test_build_event(self, world):
        """build returns a BUILT event for the new instance."""
        event = world.build(2, "inserter", (0.5, 0.5), "east")
        assert event.type is HostEventType.BUILT
        assert event.stage == 2
        assert event.instance.direction == Direction.EAST

    def test_mine_and_kill(self, world):
        """Removals destroy the instance and carry their cause."""
        ref = world.build(1, "iron-chest", (0.5, 0.5)).instance
        event = world.kill(ref)
        assert event.cause is RemovalCause.DIED
        assert world.is_valid(ref) is False
        with pytest.raises(ValueError):
            world.mine(ref)

    def test_change_settings(self, world):
        """Settings changes update the instance and report its stage."""
        ref = world.build(3, "assembling-machine-1", (1.5, 1.5)).instance
        event = world.change_settings(ref, recipe="iron-gear-wheel", unstaged={"x": 1})
        assert event.type is HostEventType.SETTINGS_CHANGED
        assert event.stage == 3
        assert world.read_config(ref).recipe == "iron-gear-wheel"
        assert world.read_unstaged(ref) == {"x": 1}

    def test_rotate_keeps_identity(self, world):
        """Rotating keeps the instance id and reports the old direction."""
        ref = world.build(1, "inserter", (0.5, 0.5)).instance
        event = world.rotate(ref)
        assert event.instance.instance_id == ref.instance_id
        assert event.instance.direction == Direction.EAST
        assert event.previous_direction == Direction.NORTH
        assert world.current_ref(ref) == event.instance

    def test_fast_replace(self, world):
        """Fast replacing swaps the prototype and keeps settings."""
        ref = world.build(1, "transport-belt", (0.5, 0.5), "east").instance
        event = world.fast_replace(ref, "fast-transport-belt")
        assert event.type is HostEventType.FAST_REPLACED
        assert world.is_valid(ref) is False
        assert event.instance.kind == "fast-transport-belt"
        assert event.instance.direction == Direction.EAST

    def test_wires_are_symmetric(self, world):
        """Connecting a wire shows up on both instances."""
        a = world.build(1, "small-electric-pole", (0.5, 0.5)).instance
        b = world.build(1, "small-electric-pole", (3.5, 0.5)).instance
        world.connect_wire(a, b, "green")
        assert world.get_wire_connections(a) == [HostWire(b, "green", 1, 1)]
        assert world.get_wire_connections(b) == [HostWire(a, "green", 1, 1)]
        world.disconnect_wire(b, a, "green")
        assert world.get_wire_connections(a) == []

    def test_destroy_drops_wires(self, world):
        """Destroying an instance removes its wires from neighbours."""
        a = world.build(1, "small-electric-pole", (0.5, 0.5)).instance
        b = world.build(1, "small-electric-pole", (3.5, 0.5)).instance
        world.connect_wire(a, b)
        world.destroy_instance(b)
        assert world.get_wire_connections(a) == []

    def test_tiles(self, world):
        """Tile helpers set and clear materials."""
        event = world.place_tile(2, (1, 1), "concrete")
        assert event.type is HostEventType.TILE_BUILT
        assert world.get_tile(2, (1, 1)) == "concrete"
        world.mine_tile(2, (1, 1))
        assert world.get_tile(2, (1, 1)) is None

    def test_visuals(self, world):
        """Visuals are created per stage and can be destroyed."""
        ref = world.create_visual("last-stage", 2, (0.5, 0.5), "style")
        assert world.visuals_at(2) == [("last-stage", (0.5, 0.5), "style")]
        world.destroy_visual(ref)
        assert world.is_visual_valid(ref) is False
        assert world.visuals_at(2) == []
