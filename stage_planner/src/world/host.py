"""Abstract interface to the host engine that holds each stage's world."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from draftsman.constants import Direction

from ..common.geometry import BoundingBox, Position
from ..entity.config import EntityConfig


@dataclass(frozen=True)
class InstanceRef:
    """Handle to an instance in one stage's world.

    The handle stays hashable and comparable after the instance is gone;
    ``HostWorld.is_valid`` tells whether it still refers to something.
    """

    instance_id: int
    kind: str
    position: Position
    direction: Direction
    preview: bool = False


@dataclass(frozen=True)
class VisualRef:
    """Handle to a purely visual marker."""

    visual_id: int
    kind: str


@dataclass(frozen=True)
class HostWire:
    """A wire between two live instances, as the host reports it."""

    other: InstanceRef
    color: str = "red"
    side: int = 1
    other_side: int = 1


class HostEventType(Enum):
    BUILT = "built"
    REMOVED = "removed"
    SETTINGS_CHANGED = "settings-changed"
    PASTED = "pasted"
    FAST_REPLACED = "fast-replaced"
    UPGRADED = "upgraded"
    ROTATED = "rotated"
    MOVE_TO_STAGE = "move-to-stage"
    WIRES_CHANGED = "wires-changed"
    TILE_BUILT = "tile-built"
    TILE_MINED = "tile-mined"


class RemovalCause(Enum):
    MINED = "mined"
    DIED = "died"
    FORCE_DELETED = "force-deleted"


@dataclass(frozen=True)
class HostEvent:
    """A notification from the host about something an actor did."""

    type: HostEventType
    stage: int
    instance: Optional[InstanceRef] = None
    actor_id: Optional[int] = None
    cause: Optional[RemovalCause] = None
    previous_direction: Optional[Direction] = None
    target_stage: Optional[int] = None
    upgrade_target: Optional[str] = None
    position: Optional[Tuple[int, int]] = None
    material: Optional[str] = None


class HostWorld(ABC):
    """Operations the planner needs from the host engine.

    The host keeps one isolated world per stage and renumbers them when the
    project inserts or deletes a stage. Placement failures are reported by
    returning None, never by raising.
    """

    @abstractmethod
    def num_stages(self) -> int: ...

    @abstractmethod
    def insert_stage(self, stage: int) -> None: ...

    @abstractmethod
    def delete_stage(self, stage: int) -> None: ...

    @abstractmethod
    def create_instance(
        self,
        stage: int,
        kind: str,
        position: Position,
        direction: Direction,
        config: EntityConfig,
        unstaged: Optional[Dict[str, Any]] = None,
    ) -> Optional[InstanceRef]:
        """Place a real instance, or return None if it cannot be placed."""

    @abstractmethod
    def create_preview(
        self, stage: int, kind: str, position: Position, direction: Direction
    ) -> InstanceRef:
        """Place a non-colliding preview. Always succeeds."""

    @abstractmethod
    def update_instance(
        self,
        ref: InstanceRef,
        config: EntityConfig,
        unstaged: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Apply settings to a live instance of the same kind."""

    @abstractmethod
    def destroy_instance(self, ref: InstanceRef) -> None: ...

    @abstractmethod
    def is_valid(self, ref: Optional[InstanceRef]) -> bool: ...

    @abstractmethod
    def query_instances_in_area(self, stage: int, area: BoundingBox) -> List[InstanceRef]: ...

    @abstractmethod
    def read_config(self, ref: InstanceRef) -> EntityConfig: ...

    @abstractmethod
    def read_unstaged(self, ref: InstanceRef) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def set_wire_connections(self, ref: InstanceRef, wires: Iterable[HostWire]) -> None:
        """Replace every wire on ref with exactly the given set."""

    @abstractmethod
    def get_wire_connections(self, ref: InstanceRef) -> List[HostWire]: ...

    @abstractmethod
    def create_visual(
        self, kind: str, stage: int, position: Position, style: str
    ) -> VisualRef: ...

    @abstractmethod
    def destroy_visual(self, ref: VisualRef) -> None: ...

    @abstractmethod
    def is_visual_valid(self, ref: Optional[VisualRef]) -> bool: ...

    @abstractmethod
    def set_tile(
        self, stage: int, position: Tuple[int, int], material: Optional[str]
    ) -> None: ...
