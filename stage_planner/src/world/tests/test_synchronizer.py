"""Tests for world/synchronizer.py - keeping each stage's world in line with the model."""

import pytest
from draftsman.constants import Direction

from stage_planner.src.common.constants import PlannerConfig
from stage_planner.src.entity.config import EntityConfig
from stage_planner.src.entity.project_entity import StageError
from stage_planner.src.project.project import Project
from stage_planner.src.world.highlights import HighlightKind, HighlightManager
from stage_planner.src.world.simulated import SimulatedWorld


@pytest.fixture
def world():
    return SimulatedWorld(num_stages=4)


@pytest.fixture
def project(world):
    return Project(world)


def machine(recipe=None):
    return EntityConfig("assembling-machine-1", recipe=recipe)


class TestRefresh:
    """Tests for refresh_stage and refresh_all."""

    def test_instances_in_every_stage_of_lifespan(self, world, project):
        """An entity gets a real instance in each stage it exists in."""
        entity = project.add_entity(machine(), (1.5, 1.5), stage=2)
        assert entity.get_world_instance(1) is None
        assert world.instances_at(1) == []
        for stage in (2, 3, 4):
            assert entity.has_real_instance_at(stage) is True
        project.assert_consistent()

    def test_blocked_stage_gets_preview_and_error(self, world, project):
        """A collision leaves a preview and an error flag, not an exception."""
        world.add_obstruction(3, (0.5, 0.5))
        entity = project.add_entity(machine(), (1.5, 1.5), stage=1)
        ref = entity.get_world_instance(3)
        assert ref.preview is True
        assert entity.get_error_at(3).kind is StageError.COLLISION
        assert entity.has_real_instance_at(2) is True
        assert HighlightManager.highlights_at(entity, 3) == {HighlightKind.ERROR_OUTLINE}
        assert HighlightManager.highlights_at(entity, 2) == {HighlightKind.ERROR_ELSEWHERE}

    def test_rebuild_after_obstruction_cleared(self, world, project):
        """Rebuilding a stage replaces the preview once the way is clear."""
        world.add_obstruction(3, (0.5, 0.5))
        entity = project.add_entity(machine(), (1.5, 1.5), stage=1)
        world.remove_obstruction(3, (0.5, 0.5))
        project.synchronizer.rebuild_stage(3)
        assert entity.has_real_instance_at(3) is True
        assert entity.error_stages() == []
        assert entity.highlights == {}
        project.assert_consistent()

    def test_destroyed_instance_is_recreated(self, world, project):
        """A refresh notices an instance the world lost."""
        entity = project.add_entity(machine(), (1.5, 1.5))
        world.destroy_instance(entity.get_world_instance(2))
        project.synchronizer.refresh_stage(entity, 2)
        assert world.is_valid(entity.get_world_instance(2)) is True
        project.assert_consistent()


class TestPropagation:
    """Tests for propagate_config_forward."""

    def test_change_reaches_later_stages(self, world, project):
        """A change at stage 2 shows up in stages 2 through 4."""
        entity = project.add_entity(machine(), (1.5, 1.5))
        project.synchronizer.propagate_config_forward(entity, 2, machine("copper-cable"))
        assert world.read_config(entity.get_world_instance(1)).recipe is None
        for stage in (2, 3, 4):
            assert world.read_config(entity.get_world_instance(stage)).recipe == "copper-cable"

    def test_later_divergence_is_kept(self, world, project):
        """Propagation stops before a later stage's own override."""
        entity = project.add_entity(machine(), (1.5, 1.5))
        project.set_value_at_stage(entity, 3, machine("iron-gear-wheel"))
        project.set_value_at_stage(entity, 1, machine("copper-cable"))
        recipes = [
            world.read_config(entity.get_world_instance(stage)).recipe for stage in (1, 2, 3, 4)
        ]
        assert recipes == ["copper-cable", "copper-cable", "iron-gear-wheel", "iron-gear-wheel"]

    def test_outside_lifespan_rejected(self, project):
        """Changing a stage the entity does not exist in is an error."""
        entity = project.add_entity(machine(), (1.5, 1.5), stage=3)
        with pytest.raises(ValueError):
            project.synchronizer.propagate_config_forward(entity, 1, machine("copper-cable"))

    def test_no_change_returns_false(self, project):
        """Setting the same config reports no change."""
        entity = project.add_entity(machine(), (1.5, 1.5))
        assert project.synchronizer.propagate_config_forward(entity, 2, machine()) is False

    def test_prototype_change_recreates_instance(self, world, project):
        """An upgrade replaces the world instance with the new prototype."""
        entity = project.add_entity(machine(), (1.5, 1.5))
        old_ref = entity.get_world_instance(3)
        project.synchronizer.propagate_config_forward(
            entity, 3, EntityConfig("assembling-machine-2")
        )
        assert world.is_valid(old_ref) is False
        assert entity.get_world_instance(3).kind == "assembling-machine-2"
        assert entity.get_world_instance(2).kind == "assembling-machine-1"
        project.assert_consistent()


class TestDirectionalPairs:
    """Tests for flipping undergrounds that cannot be placed as modelled."""

    def forbid_north(self, world, stage):
        world.add_placement_rule(
            stage,
            lambda kind, position, direction: not (
                kind == "underground-belt" and direction == Direction.NORTH
            ),
        )

    def test_flipped_placement(self, world, project):
        """A blocked underground is placed flipped with an orientation error."""
        self.forbid_north(world, 2)
        entity = project.add_entity(
            EntityConfig("underground-belt", belt_type="input"), (0.5, 0.5), Direction.NORTH
        )
        ref = entity.get_world_instance(2)
        assert ref.preview is False
        assert ref.direction == Direction.SOUTH
        assert world.read_config(ref).belt_type == "output"
        error = entity.get_error_at(2)
        assert error.kind is StageError.ORIENTATION
        assert error.placed_direction == Direction.SOUTH

    def test_flip_disabled(self, world):
        """Without flipping, the blocked stage gets a preview."""
        self.forbid_north(world, 2)
        project = Project(world, PlannerConfig(flip_directional_pairs=False))
        entity = project.add_entity(
            EntityConfig("underground-belt", belt_type="input"), (0.5, 0.5), Direction.NORTH
        )
        assert entity.get_world_instance(2).preview is True
        assert entity.get_error_at(2).kind is StageError.COLLISION


class TestMissing:
    """Tests for mark_missing."""

    def test_mark_missing(self, world, project):
        """A destroyed instance is replaced by a preview with a missing error."""
        entity = project.add_entity(machine(), (1.5, 1.5))
        world.destroy_instance(entity.get_world_instance(2))
        project.synchronizer.mark_missing(entity, 2)
        assert entity.get_world_instance(2).preview is True
        assert entity.get_error_at(2).kind is StageError.MISSING
        project.synchronizer.refresh_stage(entity, 2)
        assert entity.has_real_instance_at(2) is True
        assert entity.get_error_at(2) is None


class TestWires:
    """Tests for wire syncing."""

    def test_wires_pushed_to_every_shared_stage(self, world, project):
        """A wire appears wherever both ends exist."""
        a = project.add_entity(EntityConfig("small-electric-pole"), (0.5, 0.5))
        b = project.add_entity(EntityConfig("small-electric-pole"), (3.5, 0.5), stage=2)
        assert project.add_wire_connection(a, b, "green") is True
        assert world.get_wire_connections(a.get_world_instance(1)) == []
        for stage in (2, 3, 4):
            wires = world.get_wire_connections(a.get_world_instance(stage))
            assert [wire.other for wire in wires] == [b.get_world_instance(stage)]
        project.assert_consistent()
