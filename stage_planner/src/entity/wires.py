"""Wire connections between project entities."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, FrozenSet, Tuple

from ..common.constants import WIRE_COLORS

if TYPE_CHECKING:
    from .project_entity import ProjectEntity


@dataclass(frozen=True, eq=False)
class WireConnection:
    """An undirected wire edge between two entity connection points.

    Two connections are equal when they join the same points with the same
    color, regardless of which end is called ``from``.
    """

    from_entity: "ProjectEntity"
    to_entity: "ProjectEntity"
    color: str = "red"
    from_side: int = 1
    to_side: int = 1

    def __post_init__(self):
        if self.color not in WIRE_COLORS:
            raise ValueError(f"Unknown wire color: {self.color}")

    def _endpoints(self) -> FrozenSet[Tuple[int, int]]:
        return frozenset(
            {
                (id(self.from_entity), self.from_side),
                (id(self.to_entity), self.to_side),
            }
        )

    def __eq__(self, other):
        if not isinstance(other, WireConnection):
            return NotImplemented
        return self.color == other.color and self._endpoints() == other._endpoints()

    def __hash__(self):
        return hash((self.color, self._endpoints()))

    def other_entity(self, entity: "ProjectEntity") -> "ProjectEntity":
        return self.to_entity if self.from_entity is entity else self.from_entity

    def side_of(self, entity: "ProjectEntity") -> int:
        return self.from_side if self.from_entity is entity else self.to_side

    def other_side(self, entity: "ProjectEntity") -> int:
        return self.to_side if self.from_entity is entity else self.from_side

    def is_self_connection(self) -> bool:
        return self.from_entity is self.to_entity

    def __repr__(self) -> str:
        return (
            f"WireConnection({self.from_entity.entity_id}:{self.from_side} -> "
            f"{self.to_entity.entity_id}:{self.to_side}, {self.color})"
        )


def lifespans_overlap(a: "ProjectEntity", b: "ProjectEntity") -> bool:
    """Whether two entities exist together in at least one stage."""
    a_last = a.last_stage if a.last_stage is not None else float("inf")
    b_last = b.last_stage if b.last_stage is not None else float("inf")
    return a.first_stage <= b_last and b.first_stage <= a_last
