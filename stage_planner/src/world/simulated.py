"""In-memory host with one collision-checked world per stage."""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from draftsman.constants import Direction

from ..common.geometry import (
    BoundingBox,
    Position,
    TilePosition,
    entity_bounding_box,
    parse_direction,
    rotated_footprint,
    tile_origin,
)
from ..entity.config import EntityConfig
from ..index.spatial_grid import SpatialGrid
from .host import (
    HostEvent,
    HostEventType,
    HostWire,
    HostWorld,
    InstanceRef,
    RemovalCause,
    VisualRef,
)

PlacementRule = Callable[[str, Position, Direction], bool]

_CLOCKWISE = [Direction.NORTH, Direction.EAST, Direction.SOUTH, Direction.WEST]

# (other instance id, color, own side, other side)
_WireKey = Tuple[int, str, int, int]


def _as_position(position: Position) -> Position:
    return (float(position[0]), float(position[1]))


@dataclass
class _Instance:
    ref: InstanceRef
    config: EntityConfig
    unstaged: Optional[Dict[str, Any]] = None
    wires: Set[_WireKey] = field(default_factory=set)


@dataclass
class _Visual:
    ref: VisualRef
    position: Position
    style: str


class _Surface:
    """The world of a single stage."""

    def __init__(self):
        self.grid: SpatialGrid[int] = SpatialGrid()
        self.obstructions: Set[TilePosition] = set()
        self.rules: List[PlacementRule] = []
        self.instances: Dict[int, _Instance] = {}
        self.visuals: Dict[int, _Visual] = {}
        self.tiles: Dict[TilePosition, str] = {}


class SimulatedWorld(HostWorld):
    """A host engine simulation for tests and scenario replays.

    Real instances collide with each other and with obstructions; previews
    never collide. Placement rules can veto a kind/position/direction. The
    ``build``, ``mine`` and similar helpers play the part of a user: they
    change the world and return the HostEvent the engine would send.
    """

    def __init__(self, num_stages: int = 1):
        self._surfaces: List[_Surface] = [_Surface() for _ in range(num_stages)]
        self._owners: Dict[int, _Surface] = {}
        self._visual_owners: Dict[int, _Surface] = {}
        self._next_id = 1

    def _new_id(self) -> int:
        new_id = self._next_id
        self._next_id += 1
        return new_id

    def _surface(self, stage: int) -> _Surface:
        if not 1 <= stage <= len(self._surfaces):
            raise ValueError(f"stage {stage} does not exist")
        return self._surfaces[stage - 1]

    def _instance(self, ref: InstanceRef) -> Optional[_Instance]:
        surface = self._owners.get(ref.instance_id)
        if surface is None:
            return None
        return surface.instances.get(ref.instance_id)

    def stage_of(self, ref: InstanceRef) -> Optional[int]:
        surface = self._owners.get(ref.instance_id)
        if surface is None:
            return None
        return self._surfaces.index(surface) + 1

    # -- stages ----------------------------------------------------------

    def num_stages(self) -> int:
        return len(self._surfaces)

    def insert_stage(self, stage: int) -> None:
        self._surfaces.insert(stage - 1, _Surface())

    def delete_stage(self, stage: int) -> None:
        surface = self._surfaces.pop(stage - 1)
        for instance_id in surface.instances:
            self._owners.pop(instance_id, None)
        for visual_id in surface.visuals:
            self._visual_owners.pop(visual_id, None)

    # -- instances -------------------------------------------------------

    def can_place(
        self, stage: int, kind: str, position: Position, direction: Direction
    ) -> bool:
        surface = self._surface(stage)
        footprint = rotated_footprint(kind, direction)
        origin = tile_origin(position, footprint)
        tiles = SpatialGrid.footprint_tiles(origin, footprint)
        if any(tile in surface.obstructions for tile in tiles):
            return False
        if not surface.grid.is_available(origin, footprint):
            return False
        return all(rule(kind, position, direction) for rule in surface.rules)

    def create_instance(
        self,
        stage: int,
        kind: str,
        position: Position,
        direction: Direction,
        config: EntityConfig,
        unstaged: Optional[Dict[str, Any]] = None,
    ) -> Optional[InstanceRef]:
        if not self.can_place(stage, kind, position, direction):
            return None
        surface = self._surface(stage)
        ref = InstanceRef(self._new_id(), kind, _as_position(position), direction)
        footprint = rotated_footprint(kind, direction)
        surface.grid.mark_occupied(ref.instance_id, tile_origin(position, footprint), footprint)
        surface.instances[ref.instance_id] = _Instance(
            ref, config, dict(unstaged) if unstaged else None
        )
        self._owners[ref.instance_id] = surface
        return ref

    def create_preview(
        self, stage: int, kind: str, position: Position, direction: Direction
    ) -> InstanceRef:
        surface = self._surface(stage)
        ref = InstanceRef(
            self._new_id(), kind, _as_position(position), direction, preview=True
        )
        surface.instances[ref.instance_id] = _Instance(ref, EntityConfig(name=kind))
        self._owners[ref.instance_id] = surface
        return ref

    def update_instance(
        self,
        ref: InstanceRef,
        config: EntityConfig,
        unstaged: Optional[Dict[str, Any]] = None,
    ) -> bool:
        instance = self._instance(ref)
        if instance is None or instance.ref.preview or config.name != instance.ref.kind:
            return False
        instance.config = config
        instance.unstaged = dict(unstaged) if unstaged else None
        return True

    def destroy_instance(self, ref: InstanceRef) -> None:
        surface = self._owners.pop(ref.instance_id, None)
        if surface is None:
            return
        instance = surface.instances.pop(ref.instance_id)
        surface.grid.release(ref.instance_id)
        for other_id, color, side, other_side in instance.wires:
            other = surface.instances.get(other_id)
            if other is not None:
                other.wires.discard((ref.instance_id, color, other_side, side))

    def is_valid(self, ref: Optional[InstanceRef]) -> bool:
        return ref is not None and ref.instance_id in self._owners

    def current_ref(self, ref: InstanceRef) -> Optional[InstanceRef]:
        """The up-to-date handle for ref, after rotations."""
        instance = self._instance(ref)
        return instance.ref if instance is not None else None

    def query_instances_in_area(self, stage: int, area: BoundingBox) -> List[InstanceRef]:
        surface = self._surface(stage)
        return [
            instance.ref
            for instance in surface.instances.values()
            if entity_bounding_box(
                instance.ref.kind, instance.ref.position, instance.ref.direction
            ).intersects(area)
        ]

    def instances_at(self, stage: int, include_previews: bool = True) -> List[InstanceRef]:
        return [
            instance.ref
            for instance in self._surface(stage).instances.values()
            if include_previews or not instance.ref.preview
        ]

    def find_instance(
        self,
        stage: int,
        position: Position,
        kind: Optional[str] = None,
        include_previews: bool = False,
    ) -> Optional[InstanceRef]:
        position = _as_position(position)
        for ref in self.instances_at(stage, include_previews):
            if ref.position == position and (kind is None or ref.kind == kind):
                return ref
        return None

    def read_config(self, ref: InstanceRef) -> EntityConfig:
        instance = self._instance(ref)
        if instance is None:
            raise ValueError(f"instance {ref.instance_id} is not valid")
        return instance.config

    def read_unstaged(self, ref: InstanceRef) -> Optional[Dict[str, Any]]:
        instance = self._instance(ref)
        if instance is None or not instance.unstaged:
            return None
        return dict(instance.unstaged)

    # -- wires -----------------------------------------------------------

    def set_wire_connections(self, ref: InstanceRef, wires: Iterable[HostWire]) -> None:
        instance = self._instance(ref)
        if instance is None or instance.ref.preview:
            return
        surface = self._owners[ref.instance_id]
        for other_id, color, side, other_side in instance.wires:
            other = surface.instances.get(other_id)
            if other is not None:
                other.wires.discard((ref.instance_id, color, other_side, side))
        instance.wires = set()
        for wire in wires:
            other = surface.instances.get(wire.other.instance_id)
            if other is None or other.ref.preview:
                continue
            instance.wires.add((wire.other.instance_id, wire.color, wire.side, wire.other_side))
            other.wires.add((ref.instance_id, wire.color, wire.other_side, wire.side))

    def get_wire_connections(self, ref: InstanceRef) -> List[HostWire]:
        instance = self._instance(ref)
        if instance is None:
            return []
        surface = self._owners[ref.instance_id]
        return [
            HostWire(surface.instances[other_id].ref, color, side, other_side)
            for other_id, color, side, other_side in sorted(instance.wires)
            if other_id in surface.instances
        ]

    # -- visuals and tiles -----------------------------------------------

    def create_visual(
        self, kind: str, stage: int, position: Position, style: str
    ) -> VisualRef:
        surface = self._surface(stage)
        ref = VisualRef(self._new_id(), kind)
        surface.visuals[ref.visual_id] = _Visual(ref, tuple(position), style)
        self._visual_owners[ref.visual_id] = surface
        return ref

    def destroy_visual(self, ref: VisualRef) -> None:
        surface = self._visual_owners.pop(ref.visual_id, None)
        if surface is not None:
            surface.visuals.pop(ref.visual_id, None)

    def is_visual_valid(self, ref: Optional[VisualRef]) -> bool:
        return ref is not None and ref.visual_id in self._visual_owners

    def visuals_at(self, stage: int) -> List[Tuple[str, Position, str]]:
        return [
            (visual.ref.kind, visual.position, visual.style)
            for visual in self._surface(stage).visuals.values()
        ]

    def set_tile(
        self, stage: int, position: Tuple[int, int], material: Optional[str]
    ) -> None:
        tiles = self._surface(stage).tiles
        if material is None:
            tiles.pop(tuple(position), None)
        else:
            tiles[tuple(position)] = material

    def get_tile(self, stage: int, position: Tuple[int, int]) -> Optional[str]:
        return self._surface(stage).tiles.get(tuple(position))

    # -- world setup -----------------------------------------------------

    def add_obstruction(
        self, stage: int, position: Position, footprint: Tuple[int, int] = (1, 1)
    ) -> None:
        origin = tile_origin(position, footprint)
        self._surface(stage).obstructions.update(
            SpatialGrid.footprint_tiles(origin, footprint)
        )

    def remove_obstruction(
        self, stage: int, position: Position, footprint: Tuple[int, int] = (1, 1)
    ) -> None:
        origin = tile_origin(position, footprint)
        self._surface(stage).obstructions.difference_update(
            SpatialGrid.footprint_tiles(origin, footprint)
        )

    def add_placement_rule(self, stage: int, rule: PlacementRule) -> None:
        self._surface(stage).rules.append(rule)

    def clear_placement_rules(self, stage: int) -> None:
        self._surface(stage).rules.clear()

    # -- user actions ----------------------------------------------------

    def build(
        self,
        stage: int,
        kind: str,
        position: Position,
        direction: Any = Direction.NORTH,
        config: Optional[EntityConfig] = None,
        actor_id: int = 1,
    ) -> Optional[HostEvent]:
        """Place an instance as a user would. None if it does not fit."""
        direction = parse_direction(direction)
        ref = self.create_instance(
            stage, kind, position, direction, config or EntityConfig(name=kind)
        )
        if ref is None:
            return None
        return HostEvent(HostEventType.BUILT, stage, ref, actor_id=actor_id)

    def _removal(self, ref: InstanceRef, cause: RemovalCause, actor_id: int) -> HostEvent:
        stage = self.stage_of(ref)
        if stage is None:
            raise ValueError(f"instance {ref.instance_id} is not valid")
        ref = self.current_ref(ref)
        self.destroy_instance(ref)
        return HostEvent(HostEventType.REMOVED, stage, ref, actor_id=actor_id, cause=cause)

    def mine(self, ref: InstanceRef, actor_id: int = 1) -> HostEvent:
        return self._removal(ref, RemovalCause.MINED, actor_id)

    def kill(self, ref: InstanceRef) -> HostEvent:
        return self._removal(ref, RemovalCause.DIED, None)

    def force_delete(self, ref: InstanceRef, actor_id: int = 1) -> HostEvent:
        return self._removal(ref, RemovalCause.FORCE_DELETED, actor_id)

    def change_settings(self, ref: InstanceRef, actor_id: int = 1, **changes: Any) -> HostEvent:
        instance = self._instance(ref)
        if instance is None:
            raise ValueError(f"instance {ref.instance_id} is not valid")
        unstaged = changes.pop("unstaged", None)
        if changes:
            instance.config = instance.config.with_changes(**changes)
        if unstaged is not None:
            instance.unstaged = dict(unstaged) or None
        return HostEvent(
            HostEventType.SETTINGS_CHANGED, self.stage_of(ref), instance.ref, actor_id=actor_id
        )

    def paste_settings(
        self, ref: InstanceRef, config: EntityConfig, actor_id: int = 1
    ) -> HostEvent:
        instance = self._instance(ref)
        if instance is None:
            raise ValueError(f"instance {ref.instance_id} is not valid")
        instance.config = config.with_changes(name=instance.ref.kind)
        return HostEvent(
            HostEventType.PASTED, self.stage_of(ref), instance.ref, actor_id=actor_id
        )

    def rotate(self, ref: InstanceRef, actor_id: int = 1) -> HostEvent:
        """Turn an instance a quarter clockwise in place."""
        instance = self._instance(ref)
        if instance is None:
            raise ValueError(f"instance {ref.instance_id} is not valid")
        surface = self._owners[ref.instance_id]
        previous = instance.ref.direction
        turn = (_CLOCKWISE.index(previous) + 1) % 4 if previous in _CLOCKWISE else 0
        new_ref = InstanceRef(
            instance.ref.instance_id,
            instance.ref.kind,
            instance.ref.position,
            _CLOCKWISE[turn],
            instance.ref.preview,
        )
        instance.ref = new_ref
        if not new_ref.preview:
            footprint = rotated_footprint(new_ref.kind, new_ref.direction)
            surface.grid.mark_occupied(
                new_ref.instance_id, tile_origin(new_ref.position, footprint), footprint
            )
        return HostEvent(
            HostEventType.ROTATED,
            self.stage_of(new_ref),
            new_ref,
            actor_id=actor_id,
            previous_direction=previous,
        )

    def mark_for_upgrade(self, ref: InstanceRef, target: str, actor_id: int = 1) -> HostEvent:
        stage = self.stage_of(ref)
        if stage is None:
            raise ValueError(f"instance {ref.instance_id} is not valid")
        return HostEvent(
            HostEventType.UPGRADED,
            stage,
            self.current_ref(ref),
            actor_id=actor_id,
            upgrade_target=target,
        )

    def fast_replace(
        self, ref: InstanceRef, new_kind: str, actor_id: int = 1
    ) -> Optional[HostEvent]:
        """Swap an instance for another prototype, keeping its settings."""
        instance = self._instance(ref)
        if instance is None:
            raise ValueError(f"instance {ref.instance_id} is not valid")
        stage = self.stage_of(ref)
        old_ref = instance.ref
        config = instance.config.with_changes(name=new_kind)
        self.destroy_instance(old_ref)
        new_ref = self.create_instance(
            stage, new_kind, old_ref.position, old_ref.direction, config, instance.unstaged
        )
        if new_ref is None:
            restored = self.create_instance(
                stage, old_ref.kind, old_ref.position, old_ref.direction,
                instance.config, instance.unstaged,
            )
            if restored is None:
                raise ValueError("could not restore the replaced instance")
            return None
        return HostEvent(HostEventType.FAST_REPLACED, stage, new_ref, actor_id=actor_id)

    def connect_wire(
        self,
        ref: InstanceRef,
        other: InstanceRef,
        color: str = "red",
        side: int = 1,
        other_side: int = 1,
        actor_id: int = 1,
    ) -> HostEvent:
        wires = self.get_wire_connections(ref)
        wires.append(HostWire(other, color, side, other_side))
        self.set_wire_connections(ref, wires)
        return HostEvent(
            HostEventType.WIRES_CHANGED, self.stage_of(ref), self.current_ref(ref), actor_id=actor_id
        )

    def disconnect_wire(
        self, ref: InstanceRef, other: InstanceRef, color: str = "red", actor_id: int = 1
    ) -> HostEvent:
        wires = [
            wire
            for wire in self.get_wire_connections(ref)
            if not (wire.other.instance_id == other.instance_id and wire.color == color)
        ]
        self.set_wire_connections(ref, wires)
        return HostEvent(
            HostEventType.WIRES_CHANGED, self.stage_of(ref), self.current_ref(ref), actor_id=actor_id
        )

    def move_to_stage(self, ref: InstanceRef, target_stage: int, actor_id: int = 1) -> HostEvent:
        stage = self.stage_of(ref)
        if stage is None:
            raise ValueError(f"instance {ref.instance_id} is not valid")
        return HostEvent(
            HostEventType.MOVE_TO_STAGE,
            stage,
            self.current_ref(ref),
            actor_id=actor_id,
            target_stage=target_stage,
        )

    def place_tile(
        self, stage: int, position: Tuple[int, int], material: str, actor_id: int = 1
    ) -> HostEvent:
        self.set_tile(stage, position, material)
        return HostEvent(
            HostEventType.TILE_BUILT,
            stage,
            actor_id=actor_id,
            position=tuple(position),
            material=material,
        )

    def mine_tile(self, stage: int, position: Tuple[int, int], actor_id: int = 1) -> HostEvent:
        self.set_tile(stage, position, None)
        return HostEvent(
            HostEventType.TILE_MINED, stage, actor_id=actor_id, position=tuple(position)
        )
