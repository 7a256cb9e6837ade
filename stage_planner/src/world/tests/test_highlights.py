"""
Tests for world/highlights.py - derived indicators and their visuals.
"""

from stage_planner.src.entity.config import EntityConfig
from stage_planner.src.entity.project_entity import (
    PlacementError,
    ProjectEntity,
    StageError,
)
from stage_planner.src.world.highlights import (
    HighlightKind,
    HighlightManager,
    compute_highlights,
)
from stage_planner.src.world.simulated import SimulatedWorld


def belt(first_stage=1, last_stage=None):
    return ProjectEntity(
        EntityConfig("transport-belt"), (0.5, 0.5), first_stage=first_stage, last_stage=last_stage
    )


class TestComputeHighlights:
    """Tests for compute_highlights."""

    def test_plain_entity_has_none(self):
        """An entity with no history shows nothing."""
        assert compute_highlights(belt(), 1) == set()

    def test_outside_lifespan(self):
        """Stages outside the lifespan never show anything."""
        entity = belt(first_stage=2, last_stage=3)
        entity.set_error_at(2, PlacementError(StageError.COLLISION))
        assert compute_highlights(entity, 1) == set()
        assert compute_highlights(entity, 4) == set()

    def test_error_outline_and_elsewhere(self):
        """The failing stage is outlined, the others point at it."""
        entity = belt()
        entity.set_error_at(2, PlacementError(StageError.COLLISION))
        assert compute_highlights(entity, 2) == {HighlightKind.ERROR_OUTLINE}
        assert compute_highlights(entity, 1) == {HighlightKind.ERROR_ELSEWHERE}

    def test_config_changed(self):
        """An override shows as a change at its stage and later marker before."""
        entity = belt()
        entity.set_value_at_stage(3, EntityConfig("transport-belt", settings={"a": 1}))
        assert compute_highlights(entity, 3) == {HighlightKind.CONFIG_CHANGED}
        assert compute_highlights(entity, 2) == {HighlightKind.CONFIG_CHANGED_LATER}
        assert compute_highlights(entity, 4) == set()

    def test_upgraded(self):
        """A prototype change shows as an upgrade."""
        entity = belt()
        entity.apply_upgrade_at_stage(2, "fast-transport-belt")
        assert compute_highlights(entity, 2) == {HighlightKind.UPGRADED}

    def test_last_stage(self):
        """The last stage of a bounded lifespan is marked."""
        entity = belt(last_stage=2)
        assert compute_highlights(entity, 2) == {HighlightKind.LAST_STAGE}

    def test_settings_remnant_only(self):
        """A remnant shows only the remnant marker."""
        entity = belt(last_stage=2)
        entity.set_value_at_stage(2, EntityConfig("transport-belt", settings={"a": 1}))
        entity.is_settings_remnant = True
        assert compute_highlights(entity, 1) == {HighlightKind.SETTINGS_REMNANT}
        assert compute_highlights(entity, 2) == {HighlightKind.SETTINGS_REMNANT}


class TestHighlightManager:
    """Tests for HighlightManager visual syncing."""

    def test_update_creates_matching_visuals(self):
        """Visuals on the host match compute_highlights for every stage."""
        world = SimulatedWorld(3)
        manager = HighlightManager(world)
        entity = belt(last_stage=2)
        manager.update(entity, 3)
        assert HighlightManager.highlights_at(entity, 2) == {HighlightKind.LAST_STAGE}
        assert [kind for kind, _pos, _style in world.visuals_at(2)] == ["last-stage"]
        assert world.visuals_at(1) == []

    def test_update_removes_stale_visuals(self):
        """Clearing the cause removes the visual."""
        world = SimulatedWorld(3)
        manager = HighlightManager(world)
        entity = belt(last_stage=2)
        manager.update(entity, 3)
        entity.set_last_stage(None)
        manager.update(entity, 3)
        assert entity.highlights == {}
        assert world.visuals_at(2) == []

    def test_destroyed_visual_is_recreated(self):
        """A visual the host lost is created again."""
        world = SimulatedWorld(2)
        manager = HighlightManager(world)
        entity = belt(last_stage=1)
        manager.update(entity, 2)
        world.destroy_visual(entity.highlights["last-stage"][1])
        manager.update(entity, 2)
        assert world.is_visual_valid(entity.highlights["last-stage"][1]) is True

    def test_style_comes_from_config(self):
        """Visual styles are looked up in the planner config."""
        world = SimulatedWorld(1)
        manager = HighlightManager(world)
        entity = belt(last_stage=1)
        manager.update(entity, 1)
        assert world.visuals_at(1)[0][2] == "item/deconstruction-planner"

    def test_delete_all(self):
        """delete_all removes every visual of the entity."""
        world = SimulatedWorld(2)
        manager = HighlightManager(world)
        entity = belt()
        entity.set_error_at(1, PlacementError(StageError.COLLISION))
        manager.update(entity, 2)
        manager.delete_all(entity)
        assert entity.highlights == {}
        assert world.visuals_at(1) == []
        assert world.visuals_at(2) == []
