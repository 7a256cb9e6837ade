"""Lookup structures over the entities of a project."""

from typing import Dict, Iterator, List, Optional

from draftsman.constants import Direction

from ..common.diagnostics import ProjectDiagnostics
from ..common.entity_data import (
    RotationType,
    are_compatible_prototypes,
    get_rotation_type,
)
from ..common.exceptions import IndexCorruptionError
from ..common.geometry import BoundingBox, Position, opposite_direction, point_box
from ..entity.project_entity import ProjectEntity
from ..entity.wires import lifespans_overlap
from ..world.host import InstanceRef
from .spatial_grid import SpatialGrid


def directions_match(kind: str, candidate: Direction, wanted: Direction) -> bool:
    """Whether an entity facing candidate can stand for one facing wanted."""
    rotation_type = get_rotation_type(kind)
    if rotation_type is RotationType.ANY_DIRECTION or candidate == wanted:
        return True
    if rotation_type is RotationType.FLIPPABLE:
        return candidate == opposite_direction(wanted)
    return False


class EntityIndex:
    """Identity, spatial and reverse-instance lookup for project entities.

    The reverse map goes from host instance id to the owning entity; nothing
    is ever stored on the host instances themselves. Every mutation keeps all
    three maps in agreement, and any disagreement found later is raised as
    ``IndexCorruptionError``.
    """

    def __init__(self, diagnostics: Optional[ProjectDiagnostics] = None):
        self.diagnostics = diagnostics or ProjectDiagnostics()
        self._entities: Dict[int, ProjectEntity] = {}
        self._grid: SpatialGrid[ProjectEntity] = SpatialGrid()
        self._instances: Dict[int, ProjectEntity] = {}
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[ProjectEntity]:
        return iter(list(self._entities.values()))

    def all_entities(self) -> List[ProjectEntity]:
        return list(self._entities.values())

    def contains(self, entity: ProjectEntity) -> bool:
        return (
            entity.entity_id is not None
            and self._entities.get(entity.entity_id) is entity
        )

    def get(self, entity_id: int) -> Optional[ProjectEntity]:
        return self._entities.get(entity_id)

    def _require(self, entity: ProjectEntity) -> None:
        if not self.contains(entity):
            raise IndexCorruptionError(f"{entity!r} is not in the index")

    # -- membership ------------------------------------------------------

    def add(self, entity: ProjectEntity) -> None:
        """Index an entity, assigning its id on first add."""
        if self.contains(entity):
            return
        if entity.entity_id is None:
            entity.entity_id = self._next_id
            self._next_id += 1
        elif entity.entity_id in self._entities:
            raise IndexCorruptionError(
                f"entity id {entity.entity_id} is already taken"
            )
        else:
            self._next_id = max(self._next_id, entity.entity_id + 1)

        self._entities[entity.entity_id] = entity
        self._grid.mark_box(entity, entity.bounding_box())
        entity.reattach_wires(self.contains)
        for _stage, ref in entity.iter_world_instances():
            self._instances[ref.instance_id] = entity
        self.diagnostics.debug(
            f"Indexed {entity.name} at {entity.position}",
            phase="index",
            entity_id=entity.entity_id,
        )

    def remove(self, entity: ProjectEntity) -> None:
        """Drop an entity and the wire edges pointing at it."""
        self._require(entity)
        del self._entities[entity.entity_id]
        self._grid.release(entity)
        entity.detach_wires()
        for instance_id in [
            instance_id
            for instance_id, owner in self._instances.items()
            if owner is entity
        ]:
            del self._instances[instance_id]
        self.diagnostics.debug(
            f"Removed {entity.name} from index", phase="index", entity_id=entity.entity_id
        )

    def change_position(self, entity: ProjectEntity, position: Position) -> None:
        self._require(entity)
        entity.position = (float(position[0]), float(position[1]))
        self._grid.mark_box(entity, entity.bounding_box())

    def refresh_footprint(self, entity: ProjectEntity) -> None:
        """Re-bucket an entity whose direction or prototype changed."""
        self._require(entity)
        self._grid.mark_box(entity, entity.bounding_box())

    # -- spatial queries -------------------------------------------------

    def entities_at_stage(self, stage: int) -> List[ProjectEntity]:
        return [entity for entity in self._entities.values() if entity.is_in_stage(stage)]

    def entities_in_area(
        self, area: BoundingBox, stage: Optional[int] = None
    ) -> List[ProjectEntity]:
        found = [
            entity
            for entity in self._grid.items_in_area(area)
            if entity.bounding_box().intersects(area)
            and (stage is None or entity.is_in_stage(stage))
        ]
        return sorted(found, key=lambda entity: entity.entity_id)

    def entities_at_point(
        self, position: Position, stage: Optional[int] = None
    ) -> List[ProjectEntity]:
        return self.entities_in_area(point_box(position), stage)

    def find_compatible_entity(
        self,
        kind: str,
        position: Position,
        direction: Direction,
        stage: int,
        exclude: Optional[ProjectEntity] = None,
    ) -> Optional[ProjectEntity]:
        """The entity a world instance of kind at position stands for.

        Candidates sit exactly at position, share the placement category of
        kind and have not ended before stage. An exact direction match wins,
        then an entity already tracked at stage, then the earliest start.
        """
        position = (float(position[0]), float(position[1]))
        candidates = [
            entity
            for entity in self._grid.items_in_area(point_box(position))
            if entity is not exclude
            and entity.position == position
            and not entity.is_past_last_stage(stage)
            and are_compatible_prototypes(entity.get_name_at_stage(stage), kind)
            and directions_match(kind, entity.direction, direction)
        ]
        if not candidates:
            return None
        candidates.sort(
            key=lambda entity: (
                entity.direction != direction,
                entity.get_world_instance(stage) is None,
                entity.first_stage,
                entity.entity_id,
            )
        )
        return candidates[0]

    def find_compatible_with_entity(
        self, entity: ProjectEntity, stage: int
    ) -> Optional[ProjectEntity]:
        """Another entity occupying the same slot as entity at stage."""
        return self.find_compatible_entity(
            entity.get_name_at_stage(stage),
            entity.position,
            entity.direction,
            stage,
            exclude=entity,
        )

    def find_same_kind_other_direction(
        self, kind: str, position: Position, direction: Direction, stage: int
    ) -> Optional[ProjectEntity]:
        """A same-prototype entity at position that faces an incompatible way."""
        position = (float(position[0]), float(position[1]))
        for entity in self._grid.items_in_area(point_box(position)):
            if (
                entity.position == position
                and not entity.is_past_last_stage(stage)
                and entity.get_name_at_stage(stage) == kind
                and not directions_match(kind, entity.direction, direction)
            ):
                return entity
        return None

    # -- reverse instance map --------------------------------------------

    def register_instance(self, entity: ProjectEntity, ref: InstanceRef) -> None:
        self._require(entity)
        self._instances[ref.instance_id] = entity

    def unregister_instance(self, ref: InstanceRef) -> None:
        self._instances.pop(ref.instance_id, None)

    def find_by_instance(self, ref: Optional[InstanceRef]) -> Optional[ProjectEntity]:
        if ref is None:
            return None
        entity = self._instances.get(ref.instance_id)
        if entity is not None and not self.contains(entity):
            raise IndexCorruptionError(
                f"instance {ref.instance_id} maps to unindexed {entity!r}"
            )
        return entity

    # -- stage renumbering -----------------------------------------------

    def insert_stage(self, stage: int) -> None:
        for entity in self._entities.values():
            entity.insert_stage(stage)

    def delete_stage(self, stage: int) -> None:
        for entity in self._entities.values():
            entity.delete_stage(stage)
        # Refs held only for the deleted stage are gone now
        live_ids = {
            ref.instance_id
            for entity in self._entities.values()
            for _stage, ref in entity.iter_world_instances()
        }
        for instance_id in list(self._instances):
            if instance_id not in live_ids:
                del self._instances[instance_id]

    # -- consistency -----------------------------------------------------

    def assert_consistent(self) -> None:
        """Raise IndexCorruptionError unless every map agrees."""
        for entity_id, entity in self._entities.items():
            if entity.entity_id != entity_id:
                raise IndexCorruptionError(f"{entity!r} is filed under id {entity_id}")
            expected = tuple(entity.bounding_box().tiles())
            if self._grid.tiles_of(entity) != expected:
                raise IndexCorruptionError(f"{entity!r} is bucketed at stale tiles")
            for _stage, ref in entity.iter_world_instances():
                if self._instances.get(ref.instance_id) is not entity:
                    raise IndexCorruptionError(
                        f"instance {ref.instance_id} of {entity!r} is not registered"
                    )
            for other, connections in entity.wire_connections.items():
                if other is entity:
                    continue
                if not self.contains(other):
                    raise IndexCorruptionError(
                        f"{entity!r} is wired to unindexed {other!r}"
                    )
                if other.wire_connections.get(entity) != connections:
                    raise IndexCorruptionError(
                        f"wires between {entity!r} and {other!r} are not symmetric"
                    )
                if not lifespans_overlap(entity, other):
                    raise IndexCorruptionError(
                        f"{entity!r} is wired to {other!r} but they never coexist"
                    )

        for entity in self._grid.items():
            if not self.contains(entity):
                raise IndexCorruptionError(f"grid holds unindexed {entity!r}")

        for instance_id, entity in self._instances.items():
            if not self.contains(entity):
                raise IndexCorruptionError(
                    f"instance {instance_id} maps to unindexed {entity!r}"
                )
            if not any(
                ref.instance_id == instance_id
                for _stage, ref in entity.iter_world_instances()
            ):
                raise IndexCorruptionError(
                    f"instance {instance_id} is not held by {entity!r}"
                )
