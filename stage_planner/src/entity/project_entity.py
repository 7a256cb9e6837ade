"""Logical entities that persist across the stages of a project."""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Set, Tuple

from draftsman.constants import Direction

from ..common.constants import DEFAULT_CONFIG
from ..common.entity_data import RotationType, get_rotation_type, is_directional_pair
from ..common.geometry import BoundingBox, Position, entity_bounding_box, parse_direction
from .config import EntityConfig, configs_equal
from .staged_value import StagedValue
from .wires import WireConnection, lifespans_overlap

if TYPE_CHECKING:
    from ..world.host import InstanceRef, VisualRef


class StageError(Enum):
    """Why a stage's world does not hold the entity as modelled."""

    COLLISION = "collision"  # only a preview could be placed
    ORIENTATION = "orientation"  # placed, but facing the other way
    MISSING = "missing"  # the world instance was destroyed


@dataclass(frozen=True)
class PlacementError:
    kind: StageError
    placed_direction: Optional[Direction] = None


def _shift_keys(mapping: Dict[int, Any], stage: int, delta: int) -> Dict[int, Any]:
    """Renumber integer stage keys at or after stage by delta."""
    return {
        (key + delta if key >= stage else key): value for key, value in mapping.items()
    }


class ProjectEntity:
    """One logical entity of a staged project.

    The entity keeps its identity from the stage it is first built until it
    is deleted. Position is fixed. Direction only changes by rotating at the
    first stage. Configuration is a ``StagedValue`` of ``EntityConfig``.

    World instances, placement errors and highlight visuals are per-stage
    bookkeeping owned by the synchronizer and highlight manager; they are
    weak references into the host and never define the model.
    """

    def __init__(
        self,
        first_value: EntityConfig,
        position: Position,
        direction: Any = Direction.NORTH,
        first_stage: int = 1,
        last_stage: Optional[int] = None,
    ):
        self.entity_id: Optional[int] = None
        self.position: Position = (float(position[0]), float(position[1]))
        self.direction = parse_direction(direction)
        self.values: StagedValue[EntityConfig] = StagedValue(
            first_stage, first_value, last_stage, equals=configs_equal
        )
        self.unstaged_values: Dict[int, Dict[str, Any]] = {}
        self.is_settings_remnant = False
        self.wire_connections: Dict["ProjectEntity", Set[WireConnection]] = {}
        self.world_instances: Dict[int, "InstanceRef"] = {}
        self.stage_errors: Dict[int, PlacementError] = {}
        self.highlights: Dict[str, Dict[int, "VisualRef"]] = {}

    # -- basic properties ------------------------------------------------

    @property
    def first_stage(self) -> int:
        return self.values.first_stage

    @property
    def last_stage(self) -> Optional[int]:
        return self.values.last_stage

    @property
    def first_value(self) -> EntityConfig:
        return self.values.first_value

    @property
    def name(self) -> str:
        """Prototype name at the first stage."""
        return self.values.first_value.name

    @property
    def rotation_type(self) -> Optional[RotationType]:
        return get_rotation_type(self.name)

    def is_directional_pair(self) -> bool:
        return is_directional_pair(self.name)

    def bounding_box(self, stage: Optional[int] = None) -> BoundingBox:
        kind = self.name if stage is None else self.get_name_at_stage(stage)
        return entity_bounding_box(kind, self.position, self.direction)

    def is_in_stage(self, stage: int) -> bool:
        return self.values.is_in_stage(stage)

    def is_past_last_stage(self, stage: int) -> bool:
        return self.values.is_past_last_stage(stage)

    def last_stage_within(self, num_stages: int) -> int:
        """Last stage the entity exists in, bounded by the project length."""
        if self.last_stage is None:
            return num_stages
        return min(self.last_stage, num_stages)

    # -- staged values ---------------------------------------------------

    def get_value_at_stage(self, stage: int) -> Optional[EntityConfig]:
        """Effective config at stage, or None outside the lifespan."""
        if not self.is_in_stage(stage):
            return None
        return self.values.get(stage)

    def get_name_at_stage(self, stage: int) -> str:
        """Prototype name at stage; stages outside the lifespan clamp to it."""
        if stage < self.first_stage:
            return self.name
        if self.last_stage is not None and stage > self.last_stage:
            stage = self.last_stage
        return self.values.get(stage).name

    def get_prop_at_stage(self, stage: int, prop: str) -> Tuple[Any, int]:
        """Value of one config field at stage and the stage it was last set."""
        value = getattr(self.values.first_value, prop)
        set_at = self.first_stage
        for override_stage, config in sorted(self.values.overrides.items()):
            if override_stage > stage:
                break
            override_value = getattr(config, prop)
            if override_value != value:
                value, set_at = override_value, override_stage
        return value, set_at

    def has_override(self, stage: Optional[int] = None) -> bool:
        return self.values.has_override(stage)

    def has_history(self) -> bool:
        """Whether deleting this entity would lose staged information."""
        return self.values.has_override() or bool(self.unstaged_values)

    def set_value_at_stage(self, stage: int, config: EntityConfig) -> bool:
        return self.values.set(stage, config)

    def apply_upgrade_at_stage(self, stage: int, new_name: str) -> bool:
        current = self.values.get(stage)
        return self.values.set(stage, current.with_changes(name=new_name))

    def reset_value(self, stage: int) -> bool:
        """Drop the override at stage so it inherits from earlier stages."""
        if stage == self.first_stage:
            return False
        return self.values.unset(stage)

    def move_value_down(self, stage: int) -> Optional[int]:
        """Apply the override at stage to the previous changing stage instead.

        Returns the stage the value moved to, or None if stage has no override.
        """
        if not self.values.has_override(stage):
            return None
        target = self.values.prev_override_before(stage) or self.first_stage
        self.values.set(target, self.values.get(stage))
        return target

    def set_first_stage(self, stage: int) -> None:
        self.values.set_first_stage(stage)
        self._trim_unstaged()

    def set_last_stage(self, stage: Optional[int]) -> None:
        self.values.set_last_stage(stage)
        self._trim_unstaged()

    def get_unstaged_value(self, stage: int) -> Optional[Dict[str, Any]]:
        return self.unstaged_values.get(stage)

    def set_unstaged_value(self, stage: int, value: Optional[Dict[str, Any]]) -> bool:
        """Store transient per-stage settings that never inherit."""
        current = self.unstaged_values.get(stage)
        if not value:
            if current is None:
                return False
            del self.unstaged_values[stage]
            return True
        if current == value:
            return False
        self.unstaged_values[stage] = dict(value)
        return True

    def _trim_unstaged(self) -> None:
        for stage in list(self.unstaged_values):
            if not self.is_in_stage(stage):
                del self.unstaged_values[stage]

    # -- stage renumbering -----------------------------------------------

    def insert_stage(self, stage: int) -> None:
        self.values.insert_stage(stage)
        self.unstaged_values = _shift_keys(self.unstaged_values, stage, 1)
        self.world_instances = _shift_keys(self.world_instances, stage, 1)
        self.stage_errors = _shift_keys(self.stage_errors, stage, 1)
        for kind, visuals in self.highlights.items():
            self.highlights[kind] = _shift_keys(visuals, stage, 1)

    def delete_stage(self, stage: int) -> None:
        """Renumber after stage is deleted.

        World instances and visuals in the deleted stage must already have
        been destroyed; their bookkeeping is discarded here.
        """
        self.values.delete_stage(stage)
        self.unstaged_values.pop(stage, None)
        self.unstaged_values = _shift_keys(self.unstaged_values, stage + 1, -1)
        self._trim_unstaged()

        self.world_instances.pop(stage, None)
        self.world_instances = _shift_keys(self.world_instances, stage + 1, -1)
        self.stage_errors.pop(stage, None)
        self.stage_errors = _shift_keys(self.stage_errors, stage + 1, -1)
        for kind, visuals in self.highlights.items():
            visuals.pop(stage, None)
            self.highlights[kind] = _shift_keys(visuals, stage + 1, -1)

    # -- world bookkeeping -----------------------------------------------

    def get_world_instance(self, stage: int) -> Optional["InstanceRef"]:
        return self.world_instances.get(stage)

    def set_world_instance(self, stage: int, ref: Optional["InstanceRef"]) -> None:
        if ref is None:
            self.world_instances.pop(stage, None)
        else:
            self.world_instances[stage] = ref

    def iter_world_instances(self) -> Iterator[Tuple[int, "InstanceRef"]]:
        yield from sorted(self.world_instances.items(), key=lambda item: item[0])

    def has_real_instance_at(self, stage: int) -> bool:
        ref = self.world_instances.get(stage)
        return ref is not None and not ref.preview

    def has_error_at(self, stage: int) -> bool:
        """In lifespan at stage but not placed there as modelled."""
        return self.is_in_stage(stage) and stage in self.stage_errors

    def get_error_at(self, stage: int) -> Optional[PlacementError]:
        if not self.is_in_stage(stage):
            return None
        return self.stage_errors.get(stage)

    def set_error_at(self, stage: int, error: Optional[PlacementError]) -> None:
        if error is None:
            self.stage_errors.pop(stage, None)
        else:
            self.stage_errors[stage] = error

    def error_stages(self) -> List[int]:
        return sorted(stage for stage in self.stage_errors if self.is_in_stage(stage))

    # -- wires -----------------------------------------------------------

    def add_wire_connection(
        self, connection: WireConnection, limit: int = DEFAULT_CONFIG.max_wire_connections
    ) -> bool:
        """Add a symmetric wire edge. Rejected if the ends never coexist."""
        if connection.from_entity is not self and connection.to_entity is not self:
            raise ValueError("connection does not involve this entity")
        other = connection.other_entity(self)
        if not lifespans_overlap(self, other):
            return False
        if connection in self.wire_connections.get(other, ()):
            return False
        if not connection.is_self_connection() and (
            len(self.all_wire_connections()) >= limit
            or len(other.all_wire_connections()) >= limit
        ):
            return False
        self.wire_connections.setdefault(other, set()).add(connection)
        other.wire_connections.setdefault(self, set()).add(connection)
        return True

    def remove_wire_connection(self, connection: WireConnection) -> bool:
        other = connection.other_entity(self)
        existing = self.wire_connections.get(other)
        if not existing or connection not in existing:
            return False
        existing.discard(connection)
        if not existing:
            del self.wire_connections[other]
        other_existing = other.wire_connections.get(self)
        if other_existing is not None:
            other_existing.discard(connection)
            if not other_existing:
                del other.wire_connections[self]
        return True

    def all_wire_connections(self) -> Set[WireConnection]:
        return {
            connection
            for connections in self.wire_connections.values()
            for connection in connections
        }

    def wire_connections_at_stage(self, stage: int) -> List[WireConnection]:
        """Edges whose other end also exists at stage."""
        return [
            connection
            for other, connections in self.wire_connections.items()
            if other.is_in_stage(stage)
            for connection in connections
        ]

    def detach_wires(self) -> None:
        """Remove this entity from its neighbours' edge maps, keeping its own."""
        for other in list(self.wire_connections):
            if other is not self:
                other.wire_connections.pop(self, None)

    def reattach_wires(self, is_present) -> None:
        """Restore edges to neighbours still present; drop the rest."""
        for other, connections in list(self.wire_connections.items()):
            if other is self:
                continue
            if not is_present(other) or not lifespans_overlap(self, other):
                del self.wire_connections[other]
                continue
            other.wire_connections.setdefault(self, set()).update(connections)

    def prune_wire_connections(self) -> List[WireConnection]:
        """Drop edges to entities that no longer share any stage with this one."""
        removed = []
        for other in list(self.wire_connections):
            if not lifespans_overlap(self, other):
                for connection in list(self.wire_connections.get(other, ())):
                    self.remove_wire_connection(connection)
                    removed.append(connection)
        return removed

    def __repr__(self) -> str:
        return (
            f"ProjectEntity(id={self.entity_id}, name={self.name!r}, "
            f"position={self.position}, direction={self.direction.name}, "
            f"stages={self.first_stage}..{self.last_stage or ''})"
        )
