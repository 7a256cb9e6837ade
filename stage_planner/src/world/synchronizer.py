"""Reconcile each stage's world with the staged entity model."""

from typing import TYPE_CHECKING, Callable, Iterable, Optional

from ..common.constants import DEFAULT_CONFIG, PlannerConfig
from ..common.diagnostics import ProjectDiagnostics
from ..common.geometry import opposite_direction
from ..entity.config import EntityConfig
from ..entity.project_entity import PlacementError, ProjectEntity, StageError
from ..entity.tile import ProjectTile
from .highlights import HighlightManager
from .host import HostWire, HostWorld, InstanceRef

if TYPE_CHECKING:
    from ..index.entity_index import EntityIndex

_SWAPPED_BELT_TYPES = {"input": "output", "output": "input"}


class WorldSynchronizer:
    """Pushes the model into the host worlds, one stage at a time.

    Placement failures never raise: a blocked stage gets a preview and a
    collision error flag instead. Nothing is re-evaluated on its own; callers
    refresh in response to events.
    """

    def __init__(
        self,
        host: HostWorld,
        index: "EntityIndex",
        highlights: HighlightManager,
        stage_count: Callable[[], int],
        config: PlannerConfig = DEFAULT_CONFIG,
        diagnostics: Optional[ProjectDiagnostics] = None,
    ):
        self.host = host
        self.index = index
        self.highlights = highlights
        self.stage_count = stage_count
        self.config = config
        self.diagnostics = diagnostics or ProjectDiagnostics()

    # -- entity refresh --------------------------------------------------

    def refresh_stage(self, entity: ProjectEntity, stage: int) -> None:
        """Make stage's world match the model for entity, then its highlights."""
        self._sync_stage(entity, stage)
        self._sync_wires(entity, stage)
        self.highlights.update(entity, self.stage_count())

    def refresh_range(self, entity: ProjectEntity, start: int, end: int) -> None:
        for stage in range(max(start, 1), min(end, self.stage_count()) + 1):
            self._sync_stage(entity, stage)
            self._sync_wires(entity, stage)
        self.highlights.update(entity, self.stage_count())

    def refresh_all(self, entity: ProjectEntity) -> None:
        self.refresh_range(entity, 1, self.stage_count())

    def rebuild_stage(self, stage: int) -> None:
        """Refresh every entity at stage, e.g. after an obstruction cleared."""
        entities = self.index.all_entities()
        for entity in entities:
            self._sync_stage(entity, stage)
        for entity in entities:
            self._sync_wires(entity, stage)
            self.highlights.update(entity, self.stage_count())

    def refresh_wires(self, entity: ProjectEntity) -> None:
        """Push entity's wire edges to its instances in every stage it exists in."""
        for stage in range(
            entity.first_stage, entity.last_stage_within(self.stage_count()) + 1
        ):
            self._sync_wires(entity, stage)

    def propagate_config_forward(
        self, entity: ProjectEntity, from_stage: int, config: EntityConfig
    ) -> bool:
        """Set config at from_stage and refresh the stages that inherit it.

        Refreshing stops before the next stage with its own override, so
        later divergence is never touched. Returns False if nothing changed.
        """
        if not entity.is_in_stage(from_stage):
            raise ValueError(
                f"stage {from_stage} is outside the lifespan of {entity!r}"
            )
        if not entity.set_value_at_stage(from_stage, config):
            return False
        next_override = entity.values.next_override_after(from_stage)
        if next_override is not None:
            end = next_override - 1
        else:
            end = entity.last_stage_within(self.stage_count())
        self.diagnostics.debug(
            f"Propagating {config.name} settings over stages {from_stage}..{end}",
            phase="sync",
            stage=from_stage,
            entity_id=entity.entity_id,
        )
        self.refresh_range(entity, from_stage, end)
        return True

    def on_last_stage_changed(
        self, entity: ProjectEntity, old_last_stage: Optional[int]
    ) -> None:
        count = self.stage_count()
        old_last = old_last_stage if old_last_stage is not None else count
        new_last = entity.last_stage if entity.last_stage is not None else count
        low, high = sorted((old_last, new_last))
        if low == high:
            self.highlights.update(entity, count)
            return
        self.refresh_range(entity, low + 1, high)

    def mark_missing(self, entity: ProjectEntity, stage: int) -> None:
        """Stand a preview in for an instance the world destroyed.

        The next refresh of the stage tries to place it again.
        """
        existing = entity.get_world_instance(stage)
        if existing is not None:
            self._clear_stage(entity, stage, existing)
        config = entity.get_value_at_stage(stage)
        if config is None:
            return
        preview = self.host.create_preview(
            stage, config.name, entity.position, entity.direction
        )
        self._attach(entity, stage, preview, PlacementError(StageError.MISSING))
        self.highlights.update(entity, self.stage_count())

    # -- settings remnants -----------------------------------------------

    def make_settings_remnant(self, entity: ProjectEntity) -> None:
        """Leave only previews and remnant markers behind for entity."""
        entity.is_settings_remnant = True
        entity.stage_errors.clear()
        self.refresh_all(entity)

    def revive_settings_remnant(self, entity: ProjectEntity) -> None:
        entity.is_settings_remnant = False
        self.refresh_all(entity)

    def delete_world_entities(self, entity: ProjectEntity) -> None:
        for stage, ref in list(entity.iter_world_instances()):
            self._clear_stage(entity, stage, ref)
        entity.stage_errors.clear()
        self.highlights.delete_all(entity)

    # -- stage renumbering -----------------------------------------------

    def prepare_stage_deletion(self, stage: int) -> None:
        """Destroy everything the project placed in stage before it goes."""
        for entity in self.index.all_entities():
            ref = entity.get_world_instance(stage)
            if ref is not None:
                self._clear_stage(entity, stage, ref)
            self.highlights.delete_stage_visuals(entity, stage)

    def on_stage_deleted(self, stage: int) -> None:
        """Rebuild after stage's contents merged into its neighbour."""
        for entity in self.index.all_entities():
            self.refresh_all(entity)

    def on_stage_inserted(self, stage: int) -> None:
        entities = self.index.all_entities()
        for entity in entities:
            self._sync_stage(entity, stage)
        for entity in entities:
            self._sync_wires(entity, stage)
            self.highlights.update(entity, self.stage_count())

    # -- tiles -----------------------------------------------------------

    def refresh_tile(self, tile: ProjectTile, stage: int) -> None:
        self.host.set_tile(stage, tile.position, tile.get_value_at_stage(stage))

    def refresh_tile_all(self, tile: ProjectTile) -> None:
        for stage in range(1, self.stage_count() + 1):
            self.refresh_tile(tile, stage)

    def clear_tile(self, tile: ProjectTile) -> None:
        for stage in range(1, self.stage_count() + 1):
            self.host.set_tile(stage, tile.position, None)

    # -- internals -------------------------------------------------------

    def _clear_stage(self, entity: ProjectEntity, stage: int, ref: InstanceRef) -> None:
        self.host.destroy_instance(ref)
        self.index.unregister_instance(ref)
        entity.set_world_instance(stage, None)

    def _attach(
        self,
        entity: ProjectEntity,
        stage: int,
        ref: InstanceRef,
        error: Optional[PlacementError],
    ) -> None:
        entity.set_world_instance(stage, ref)
        self.index.register_instance(entity, ref)
        entity.set_error_at(stage, error)

    def _sync_stage(self, entity: ProjectEntity, stage: int) -> None:
        existing = entity.get_world_instance(stage)
        if existing is not None and not self.host.is_valid(existing):
            self.index.unregister_instance(existing)
            entity.set_world_instance(stage, None)
            existing = None

        config = entity.get_value_at_stage(stage)
        if config is None:
            if existing is not None:
                self._clear_stage(entity, stage, existing)
            entity.set_error_at(stage, None)
            return

        if entity.is_settings_remnant:
            if existing is None or not existing.preview or existing.kind != config.name:
                if existing is not None:
                    self._clear_stage(entity, stage, existing)
                preview = self.host.create_preview(
                    stage, config.name, entity.position, entity.direction
                )
                self._attach(entity, stage, preview, None)
            entity.set_error_at(stage, None)
            return

        unstaged = entity.get_unstaged_value(stage)
        if (
            existing is not None
            and not existing.preview
            and existing.kind == config.name
            and existing.direction == entity.direction
            and self.host.update_instance(existing, config, unstaged)
        ):
            entity.set_error_at(stage, None)
            return

        if existing is not None:
            self._clear_stage(entity, stage, existing)
        self._place(entity, stage, config, unstaged)

    def _place(self, entity, stage, config, unstaged) -> None:
        ref = self.host.create_instance(
            stage, config.name, entity.position, entity.direction, config, unstaged
        )
        if ref is not None:
            self._attach(entity, stage, ref, None)
            return

        if entity.is_directional_pair() and self.config.flip_directional_pairs:
            flipped = opposite_direction(entity.direction)
            flipped_config = config.with_changes(
                belt_type=_SWAPPED_BELT_TYPES.get(config.belt_type, config.belt_type)
            )
            ref = self.host.create_instance(
                stage, config.name, entity.position, flipped, flipped_config, unstaged
            )
            if ref is not None:
                self.diagnostics.info(
                    f"{config.name} placed facing {flipped.name} instead of "
                    f"{entity.direction.name}",
                    phase="sync",
                    stage=stage,
                    entity_id=entity.entity_id,
                )
                self._attach(
                    entity, stage, ref, PlacementError(StageError.ORIENTATION, flipped)
                )
                return

        self.diagnostics.info(
            f"{config.name} at {entity.position} is blocked; showing a preview",
            phase="sync",
            stage=stage,
            entity_id=entity.entity_id,
        )
        preview = self.host.create_preview(
            stage, config.name, entity.position, entity.direction
        )
        self._attach(entity, stage, preview, PlacementError(StageError.COLLISION))

    def _sync_wires(self, entity: ProjectEntity, stage: int) -> None:
        ref = entity.get_world_instance(stage)
        if ref is None or ref.preview or not self.host.is_valid(ref):
            return
        self.host.set_wire_connections(ref, self._host_wires(entity, stage))

    def _host_wires(self, entity: ProjectEntity, stage: int) -> Iterable[HostWire]:
        wires = []
        for connection in entity.wire_connections_at_stage(stage):
            other = connection.other_entity(entity)
            other_ref = other.get_world_instance(stage)
            if other_ref is None or other_ref.preview or not self.host.is_valid(other_ref):
                continue
            wires.append(
                HostWire(
                    other_ref,
                    connection.color,
                    connection.side_of(entity),
                    connection.other_side(entity),
                )
            )
        return wires
