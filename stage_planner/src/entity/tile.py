"""Ground tiles that can change material from stage to stage."""

from typing import Optional, Tuple

from .staged_value import StagedValue

TileKey = Tuple[int, int]


class ProjectTile:
    """A staged ground material at one tile position.

    ``None`` means no tile. Tiles never end: they have no last stage.
    """

    def __init__(self, position: TileKey, first_stage: int, material: Optional[str]):
        self.position: TileKey = (int(position[0]), int(position[1]))
        self.values: StagedValue[Optional[str]] = StagedValue(first_stage, material)

    @property
    def first_stage(self) -> int:
        return self.values.first_stage

    def get_value_at_stage(self, stage: int) -> Optional[str]:
        if stage < self.first_stage:
            return None
        return self.values.get(stage)

    def set_value_at_stage(self, stage: int, material: Optional[str]) -> bool:
        """Set the material from stage on; earlier stages move the start down."""
        if stage < self.first_stage:
            if material is None:
                return False
            old = self.values
            self.values = StagedValue(stage, material)
            self.values.set(old.first_stage, old.first_value)
            for override_stage, value in sorted(old.overrides.items()):
                self.values.set(override_stage, value)
            return True
        return self.values.set(stage, material)

    def is_empty(self) -> bool:
        """A tile that never has a material anywhere."""
        return self.values.first_value is None and not self.values.has_override()

    def insert_stage(self, stage: int) -> None:
        self.values.insert_stage(stage)

    def delete_stage(self, stage: int) -> None:
        self.values.delete_stage(stage)

    def __repr__(self) -> str:
        return f"ProjectTile(position={self.position}, values={self.values!r})"
