"""A staged blueprint project and its mutation entry points."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from draftsman.constants import Direction

from ..common.constants import DEFAULT_CONFIG, PlannerConfig
from ..common.diagnostics import ProjectDiagnostics
from ..common.entity_data import RotationType, are_compatible_prototypes
from ..common.exceptions import IndexCorruptionError
from ..common.geometry import Position, parse_direction
from ..entity.config import EntityConfig
from ..entity.project_entity import ProjectEntity
from ..entity.tile import ProjectTile, TileKey
from ..entity.wires import WireConnection
from ..index.entity_index import EntityIndex
from ..world.highlights import HighlightManager
from ..world.host import HostWorld, InstanceRef
from ..world.synchronizer import WorldSynchronizer


class StageMoveResult(Enum):
    """Outcome of moving an entity's first or last stage."""

    UPDATED = "updated"
    NO_CHANGE = "no-change"
    CANNOT_MOVE_PAST_LAST_STAGE = "cannot-move-past-last-stage"
    CANNOT_MOVE_BEFORE_FIRST_STAGE = "cannot-move-before-first-stage"
    HAS_DIVERGENCE_BEFORE_TARGET = "has-divergence-before-target"
    INTERSECTS_ANOTHER_ENTITY = "intersects-another-entity"


class EntityUpdateResult(Enum):
    """Outcome of rotating or upgrading an entity."""

    UPDATED = "updated"
    NO_CHANGE = "no-change"
    CANNOT_ROTATE = "cannot-rotate"
    CANNOT_UPGRADE = "cannot-upgrade"


@dataclass
class Stage:
    number: int
    name: str
    has_custom_name: bool = False


class Project:
    """An ordered list of stages and the entities built across them.

    The project owns the entity index, the tiles, the synchronizer and the
    highlight manager. Every mutation here updates the model first and then
    refreshes the affected stages of the host before returning.

    Usage:
        world = SimulatedWorld(num_stages=3)
        project = Project(world)
        entity = project.add_entity(EntityConfig("iron-chest"), (0.5, 0.5), stage=1)
        project.set_value_at_stage(entity, 2, entity.first_value.with_changes(...))
    """

    def __init__(
        self,
        host: HostWorld,
        config: PlannerConfig = DEFAULT_CONFIG,
        diagnostics: Optional[ProjectDiagnostics] = None,
    ):
        if host.num_stages() < 1:
            raise ValueError("a project needs at least one stage")
        self.host = host
        self.config = config
        self.diagnostics = diagnostics or ProjectDiagnostics()
        self.stages: List[Stage] = [
            Stage(number, f"Stage {number}") for number in range(1, host.num_stages() + 1)
        ]
        self.index = EntityIndex(self.diagnostics)
        self.tiles: Dict[TileKey, ProjectTile] = {}
        self.highlights = HighlightManager(host, config, self.diagnostics)
        self.synchronizer = WorldSynchronizer(
            host, self.index, self.highlights, self.num_stages, config, self.diagnostics
        )

    # -- stages ----------------------------------------------------------

    def num_stages(self) -> int:
        return len(self.stages)

    def get_stage(self, number: int) -> Stage:
        if not 1 <= number <= len(self.stages):
            raise ValueError(f"stage {number} does not exist")
        return self.stages[number - 1]

    def _renumber_stages(self) -> None:
        for number, stage in enumerate(self.stages, start=1):
            stage.number = number
            if not stage.has_custom_name:
                stage.name = f"Stage {number}"

    def insert_stage(self, number: int, name: Optional[str] = None) -> Stage:
        """Insert an empty stage so that it becomes stage number."""
        if not 1 <= number <= len(self.stages) + 1:
            raise ValueError(f"cannot insert a stage at {number}")
        self.host.insert_stage(number)
        stage = Stage(number, name or "", has_custom_name=name is not None)
        self.stages.insert(number - 1, stage)
        self._renumber_stages()
        self.index.insert_stage(number)
        for tile in self.tiles.values():
            tile.insert_stage(number)
        self.synchronizer.on_stage_inserted(number)
        for tile in self.tiles.values():
            self.synchronizer.refresh_tile(tile, number)
        self.diagnostics.info(f"Inserted stage {number}", phase="project", stage=number)
        return stage

    def delete_stage(self, number: int) -> None:
        """Delete stage number, merging its contents into its neighbour."""
        if len(self.stages) == 1:
            raise ValueError("cannot delete the only stage")
        self.get_stage(number)
        self.synchronizer.prepare_stage_deletion(number)
        self.host.delete_stage(number)
        del self.stages[number - 1]
        self._renumber_stages()
        self.index.delete_stage(number)
        for tile in self.tiles.values():
            tile.delete_stage(number)
        for entity in self.index.all_entities():
            entity.prune_wire_connections()
        self.synchronizer.on_stage_deleted(number)
        for tile in self.tiles.values():
            self.synchronizer.refresh_tile_all(tile)
        self.diagnostics.info(f"Deleted stage {number}", phase="project", stage=number)

    def last_stage_for(self, entity: ProjectEntity) -> int:
        return entity.last_stage_within(self.num_stages())

    # -- entity lifecycle ------------------------------------------------

    def add_entity(
        self,
        config: EntityConfig,
        position: Position,
        direction: Any = Direction.NORTH,
        stage: int = 1,
        unstaged: Optional[Dict[str, Any]] = None,
        existing_instance: Optional[InstanceRef] = None,
    ) -> ProjectEntity:
        """Create an entity starting at stage and build it in every stage.

        ``existing_instance`` is a world instance already standing for the
        entity at stage, such as the one a user just built.
        """
        self.get_stage(stage)
        entity = ProjectEntity(config, position, parse_direction(direction), stage)
        if unstaged:
            entity.set_unstaged_value(stage, unstaged)
        if existing_instance is not None:
            entity.set_world_instance(stage, existing_instance)
        self.index.add(entity)
        self.synchronizer.refresh_all(entity)
        self.diagnostics.info(
            f"Added {config.name} at {entity.position}",
            phase="project",
            stage=stage,
            entity_id=entity.entity_id,
        )
        return entity

    def delete_entity(
        self, entity: ProjectEntity, from_stage: Optional[int] = None
    ) -> StageMoveResult:
        """Delete entity entirely, or only from from_stage onwards."""
        if from_stage is not None and from_stage > entity.first_stage:
            return self.set_entity_last_stage(entity, from_stage - 1)
        self._remove(entity)
        return StageMoveResult.UPDATED

    def force_delete_entity(self, entity: ProjectEntity) -> None:
        self._remove(entity)

    def delete_entity_or_make_remnant(self, entity: ProjectEntity, stage: int) -> bool:
        """Delete entity, or keep it as a settings remnant if that loses data.

        Returns True when a remnant was left behind.
        """
        if self.config.make_settings_remnants and (
            entity.has_history() or self._has_dangling_wires(entity, stage)
        ):
            self.synchronizer.make_settings_remnant(entity)
            self.diagnostics.info(
                f"Kept {entity.name} as a settings remnant",
                phase="project",
                stage=stage,
                entity_id=entity.entity_id,
            )
            return True
        self._remove(entity)
        return False

    def revive_settings_remnant(self, entity: ProjectEntity, stage: int) -> bool:
        """Bring a remnant back to life starting at stage."""
        if not entity.is_settings_remnant:
            return False
        if stage < entity.first_stage and self._intersects_between(
            entity, stage, entity.first_stage - 1
        ):
            return False
        if entity.is_past_last_stage(stage):
            entity.set_last_stage(None)
        entity.set_first_stage(stage)
        entity.prune_wire_connections()
        self.synchronizer.revive_settings_remnant(entity)
        return True

    def _remove(self, entity: ProjectEntity) -> None:
        if not self.index.contains(entity):
            raise IndexCorruptionError(f"{entity!r} is not part of this project")
        self.synchronizer.delete_world_entities(entity)
        self.index.remove(entity)
        self.diagnostics.info(
            f"Deleted {entity.name} at {entity.position}",
            phase="project",
            entity_id=entity.entity_id,
        )

    @staticmethod
    def _has_dangling_wires(entity: ProjectEntity, stage: int) -> bool:
        return any(
            not connection.other_entity(entity).is_in_stage(stage)
            for connection in entity.all_wire_connections()
        )

    def _intersects_between(self, entity: ProjectEntity, start: int, end: int) -> bool:
        """Whether another entity holds entity's slot anywhere in [start, end]."""
        for stage in range(start, end + 1):
            other = self.index.find_compatible_with_entity(entity, stage)
            if other is not None and other.is_in_stage(stage):
                return True
        return False

    # -- values ----------------------------------------------------------

    def set_value_at_stage(
        self, entity: ProjectEntity, stage: int, config: EntityConfig
    ) -> bool:
        """Change entity's config from stage on, up to its next own override."""
        return self.synchronizer.propagate_config_forward(entity, stage, config)

    def set_unstaged_value(
        self, entity: ProjectEntity, stage: int, value: Optional[Dict[str, Any]]
    ) -> bool:
        if not entity.set_unstaged_value(stage, value):
            return False
        self.synchronizer.refresh_stage(entity, stage)
        return True

    def reset_value(self, entity: ProjectEntity, stage: int) -> bool:
        """Drop entity's override at stage so it inherits again."""
        if not entity.reset_value(stage):
            return False
        next_override = entity.values.next_override_after(stage)
        end = next_override - 1 if next_override else self.last_stage_for(entity)
        self.synchronizer.refresh_range(entity, stage, end)
        return True

    def move_value_down(self, entity: ProjectEntity, stage: int) -> Optional[int]:
        """Apply the override at stage from the previous changing stage instead."""
        target = entity.move_value_down(stage)
        if target is None:
            return None
        next_override = entity.values.next_override_after(target)
        end = next_override - 1 if next_override else self.last_stage_for(entity)
        self.synchronizer.refresh_range(entity, target, end)
        return target

    def upgrade_entity(
        self, entity: ProjectEntity, stage: int, new_name: str
    ) -> EntityUpdateResult:
        current = entity.values.get(stage)
        if current.name == new_name:
            return EntityUpdateResult.NO_CHANGE
        if not are_compatible_prototypes(current.name, new_name):
            return EntityUpdateResult.CANNOT_UPGRADE
        self.synchronizer.propagate_config_forward(
            entity, stage, current.with_changes(name=new_name)
        )
        return EntityUpdateResult.UPDATED

    def rotate_entity(
        self, entity: ProjectEntity, stage: int, direction: Direction
    ) -> EntityUpdateResult:
        """Rotate entity in every stage. Only allowed at its first stage."""
        direction = parse_direction(direction)
        if entity.rotation_type is RotationType.ANY_DIRECTION:
            return EntityUpdateResult.NO_CHANGE
        if direction == entity.direction:
            return EntityUpdateResult.NO_CHANGE
        if stage != entity.first_stage:
            return EntityUpdateResult.CANNOT_ROTATE
        entity.direction = direction
        self.index.refresh_footprint(entity)
        self.synchronizer.refresh_all(entity)
        return EntityUpdateResult.UPDATED

    # -- stage ranges ----------------------------------------------------

    def move_entity_start(self, entity: ProjectEntity, new_first: int) -> StageMoveResult:
        """Move the stage entity is first built in.

        Moving later is refused if a divergence lies strictly between the old
        and new first stage; an override exactly at the target becomes the
        new baseline. Moving earlier is refused where another entity already
        holds the slot. Refusals change nothing.
        """
        self.get_stage(new_first)
        if entity.is_settings_remnant or new_first == entity.first_stage:
            return StageMoveResult.NO_CHANGE
        if entity.is_past_last_stage(new_first):
            return StageMoveResult.CANNOT_MOVE_PAST_LAST_STAGE

        old_first = entity.first_stage
        if new_first > old_first:
            if entity.values.prev_override_before(new_first) is not None:
                return StageMoveResult.HAS_DIVERGENCE_BEFORE_TARGET
        elif self._intersects_between(entity, new_first, old_first - 1):
            return StageMoveResult.INTERSECTS_ANOTHER_ENTITY

        entity.set_first_stage(new_first)
        entity.prune_wire_connections()
        low, high = sorted((old_first, new_first))
        self.synchronizer.refresh_range(entity, low, high)
        self.diagnostics.info(
            f"Moved {entity.name} to start at stage {new_first}",
            phase="project",
            stage=new_first,
            entity_id=entity.entity_id,
        )
        return StageMoveResult.UPDATED

    def set_entity_last_stage(
        self, entity: ProjectEntity, last_stage: Optional[int]
    ) -> StageMoveResult:
        """Bound entity's lifespan at last_stage, or unbound it with None."""
        if last_stage is not None:
            self.get_stage(last_stage)
        if entity.is_settings_remnant or last_stage == entity.last_stage:
            return StageMoveResult.NO_CHANGE
        if last_stage is not None and last_stage < entity.first_stage:
            return StageMoveResult.CANNOT_MOVE_BEFORE_FIRST_STAGE

        old_last = entity.last_stage
        old_end = self.last_stage_for(entity)
        new_end = last_stage if last_stage is not None else self.num_stages()
        if new_end > old_end and self._intersects_between(entity, old_end + 1, new_end):
            return StageMoveResult.INTERSECTS_ANOTHER_ENTITY

        entity.set_last_stage(last_stage)
        entity.prune_wire_connections()
        self.synchronizer.on_last_stage_changed(entity, old_last)
        return StageMoveResult.UPDATED

    # -- wires -----------------------------------------------------------

    def add_wire_connection(
        self,
        entity: ProjectEntity,
        other: ProjectEntity,
        color: str = "red",
        side: int = 1,
        other_side: int = 1,
    ) -> bool:
        connection = WireConnection(entity, other, color, side, other_side)
        if not entity.add_wire_connection(connection, self.config.max_wire_connections):
            return False
        self.refresh_wires(entity)
        return True

    def remove_wire_connection(
        self, entity: ProjectEntity, connection: WireConnection
    ) -> bool:
        if not entity.remove_wire_connection(connection):
            return False
        self.refresh_wires(entity)
        return True

    def set_wires_from_world(
        self,
        entity: ProjectEntity,
        stage: int,
        wanted: Iterable[Tuple[ProjectEntity, str, int, int]],
    ) -> bool:
        """Replace entity's edges to entities present at stage with wanted.

        Each wanted item is (other entity, color, own side, other side).
        """
        wanted_connections = {
            WireConnection(entity, other, color, side, other_side)
            for other, color, side, other_side in wanted
        }
        current = set(entity.wire_connections_at_stage(stage))
        changed = False
        for connection in current - wanted_connections:
            changed |= entity.remove_wire_connection(connection)
        for connection in wanted_connections - current:
            changed |= entity.add_wire_connection(
                connection, self.config.max_wire_connections
            )
        self.refresh_wires(entity)
        return changed

    def refresh_wires(self, entity: ProjectEntity) -> None:
        self.synchronizer.refresh_wires(entity)

    # -- tiles -----------------------------------------------------------

    def set_tile_at_stage(
        self, position: TileKey, stage: int, material: Optional[str]
    ) -> bool:
        position = (int(position[0]), int(position[1]))
        self.get_stage(stage)
        tile = self.tiles.get(position)
        if tile is None:
            if material is None:
                return False
            tile = ProjectTile(position, stage, material)
            self.tiles[position] = tile
            changed = True
        else:
            changed = tile.set_value_at_stage(stage, material)
        if tile.is_empty():
            del self.tiles[position]
            self.synchronizer.clear_tile(tile)
        elif changed:
            self.synchronizer.refresh_tile_all(tile)
        return changed

    # -- queries ---------------------------------------------------------

    def entities_with_errors(self, stage: int) -> List[ProjectEntity]:
        return [
            entity for entity in self.index.entities_at_stage(stage) if entity.has_error_at(stage)
        ]

    def assert_consistent(self) -> None:
        """Raise IndexCorruptionError if the project bookkeeping disagrees."""
        if self.host.num_stages() != len(self.stages):
            raise IndexCorruptionError(
                f"host has {self.host.num_stages()} stages, project has {len(self.stages)}"
            )
        for number, stage in enumerate(self.stages, start=1):
            if stage.number != number:
                raise IndexCorruptionError(f"stage {stage.name} is numbered {stage.number}")
        self.index.assert_consistent()
