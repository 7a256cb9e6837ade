"""Sparse per-stage values with inheritance from the nearest earlier stage."""

import operator
from bisect import bisect_left, bisect_right
from typing import Any, Callable, Dict, Generic, Iterator, List, Optional, Tuple, TypeVar

T = TypeVar("T")


class StagedValue(Generic[T]):
    """A value that can differ per stage, stored as a baseline plus overrides.

    The baseline applies from ``first_stage`` onwards. ``overrides`` maps a
    stage number (always greater than ``first_stage``) to the value that takes
    effect there. ``get(stage)`` returns the override with the greatest key not
    above ``stage``, or the baseline when there is none.

    The map is kept canonical: no override ever equals the value inherited
    from the stage before it. Every mutator restores this before returning.

    Usage:
        staged = StagedValue(1, "A")
        staged.set(3, "B")
        staged.get(4)  # "B"
        staged.set(3, "A")  # override removed, staged.overrides == {}
    """

    def __init__(
        self,
        first_stage: int,
        first_value: T,
        last_stage: Optional[int] = None,
        equals: Callable[[T, T], bool] = operator.eq,
    ):
        if last_stage is not None and last_stage < first_stage:
            raise ValueError(
                f"last stage {last_stage} is before first stage {first_stage}"
            )
        self._first_stage = first_stage
        self._first_value = first_value
        self._last_stage = last_stage
        self._equals = equals
        self._overrides: Dict[int, T] = {}

    @property
    def first_stage(self) -> int:
        return self._first_stage

    @property
    def first_value(self) -> T:
        return self._first_value

    @property
    def last_stage(self) -> Optional[int]:
        return self._last_stage

    @property
    def overrides(self) -> Dict[int, T]:
        """A copy of the override map."""
        return dict(self._overrides)

    def _keys(self) -> List[int]:
        return sorted(self._overrides)

    # -- queries ---------------------------------------------------------

    def get(self, stage: int) -> T:
        """Value in effect at stage. Stages below first_stage see the baseline."""
        keys = self._keys()
        index = bisect_right(keys, stage)
        if index == 0:
            return self._first_value
        return self._overrides[keys[index - 1]]

    def has_override(self, stage: Optional[int] = None) -> bool:
        """Whether stage holds its own override, or any stage does if None."""
        if stage is None:
            return bool(self._overrides)
        return stage in self._overrides

    def next_override_after(self, stage: int) -> Optional[int]:
        """Smallest override stage strictly greater than stage."""
        keys = self._keys()
        index = bisect_right(keys, stage)
        return keys[index] if index < len(keys) else None

    def first_override_at_or_after(self, stage: int) -> Optional[int]:
        keys = self._keys()
        index = bisect_left(keys, stage)
        return keys[index] if index < len(keys) else None

    def prev_override_before(self, stage: int) -> Optional[int]:
        """Greatest override stage strictly less than stage."""
        keys = self._keys()
        index = bisect_left(keys, stage)
        return keys[index - 1] if index > 0 else None

    def last_override_stage(self) -> Optional[int]:
        keys = self._keys()
        return keys[-1] if keys else None

    def is_in_stage(self, stage: int) -> bool:
        return stage >= self._first_stage and not self.is_past_last_stage(stage)

    def is_past_last_stage(self, stage: int) -> bool:
        return self._last_stage is not None and stage > self._last_stage

    def iterate_values(self, start: int, end: int) -> Iterator[Tuple[int, T, bool]]:
        """Yield (stage, value, changed) for each stage in [start, end].

        ``changed`` is True when the value differs from the previous stage's,
        which holds at the first stage and at every override.
        """
        for stage in range(start, end + 1):
            changed = stage == self._first_stage or stage in self._overrides
            yield stage, self.get(stage), changed

    # -- mutation --------------------------------------------------------

    def set(self, stage: int, value: T) -> bool:
        """Set the value at stage. Returns whether any stage's value changed.

        A value equal to the one inherited from the stage below removes the
        override instead. Later overrides made redundant are trimmed.
        """
        if stage < self._first_stage:
            raise ValueError(
                f"cannot set stage {stage} before first stage {self._first_stage}"
            )
        if self.is_past_last_stage(stage):
            raise ValueError(
                f"cannot set stage {stage} after last stage {self._last_stage}"
            )

        if stage == self._first_stage:
            if self._equals(self._first_value, value):
                return False
            self._first_value = value
        elif self._equals(self.get(stage - 1), value):
            if stage not in self._overrides:
                return False
            del self._overrides[stage]
        else:
            existing = self._overrides.get(stage)
            if stage in self._overrides and self._equals(existing, value):
                return False
            self._overrides[stage] = value

        self._normalize_after(stage)
        return True

    def unset(self, stage: int) -> bool:
        """Remove the override at stage so it inherits again."""
        if stage == self._first_stage:
            raise ValueError("the baseline stage cannot be unset")
        if stage not in self._overrides:
            return False
        del self._overrides[stage]
        self._normalize_after(stage)
        return True

    def set_first_stage(self, stage: int) -> None:
        """Move the start of the lifespan.

        Moving later folds the overrides at or before the new first stage
        into the baseline. Moving earlier extends the baseline downwards.
        """
        if self.is_past_last_stage(stage):
            raise ValueError(
                f"first stage {stage} would be after last stage {self._last_stage}"
            )
        if stage > self._first_stage:
            for key in self._keys():
                if key > stage:
                    break
                self._first_value = self._overrides.pop(key)
        self._first_stage = stage
        self._normalize_after(stage)

    def set_last_stage(self, stage: Optional[int]) -> None:
        """Bound (or unbound, with None) the lifespan, dropping later overrides."""
        if stage is not None:
            if stage < self._first_stage:
                raise ValueError(
                    f"last stage {stage} is before first stage {self._first_stage}"
                )
            for key in self._keys():
                if key > stage:
                    del self._overrides[key]
        self._last_stage = stage

    def insert_stage(self, stage: int) -> None:
        """Renumber for a new stage inserted at stage; everything at or after shifts up."""
        self._overrides = {
            (key + 1 if key >= stage else key): value
            for key, value in self._overrides.items()
        }
        if self._first_stage >= stage:
            self._first_stage += 1
        if self._last_stage is not None and self._last_stage >= stage:
            self._last_stage += 1

    def delete_stage(self, stage: int) -> None:
        """Renumber for stage being deleted, merging it into its neighbour.

        Deleting stage 1 promotes stage 2's value to the new baseline. Deleting
        any later stage drops its override, so the earlier configuration wins,
        and a lifespan that started there starts one stage earlier. Last stage
        moves down with the numbering but never below the first stage.
        """
        if stage == self._first_stage == 1:
            if 2 in self._overrides:
                self._first_value = self._overrides.pop(2)
        else:
            self._overrides.pop(stage, None)

        self._overrides = {
            (key - 1 if key > stage else key): value
            for key, value in self._overrides.items()
        }
        if self._first_stage > stage or (self._first_stage == stage and stage > 1):
            self._first_stage -= 1
        if self._last_stage is not None and self._last_stage >= stage:
            self._last_stage = max(self._last_stage - 1, self._first_stage)
        self._normalize_after(self._first_stage)

    def _normalize_after(self, stage: int) -> None:
        """Drop overrides after stage that equal the value they would inherit."""
        previous = self.get(stage)
        for key in self._keys():
            if key <= stage:
                continue
            value = self._overrides[key]
            if self._equals(previous, value):
                del self._overrides[key]
            else:
                previous = value

    # -- serialization ---------------------------------------------------

    def to_dict(self, serialize: Callable[[T], Any] = lambda value: value) -> dict:
        """Plain-data form for an external persistence layer."""
        return {
            "first_stage": self._first_stage,
            "first_value": serialize(self._first_value),
            "last_stage": self._last_stage,
            "overrides": {
                stage: serialize(value)
                for stage, value in sorted(self._overrides.items())
            },
        }

    @classmethod
    def from_dict(
        cls,
        data: dict,
        deserialize: Callable[[Any], T] = lambda value: value,
        equals: Callable[[T, T], bool] = operator.eq,
    ) -> "StagedValue[T]":
        staged = cls(
            data["first_stage"],
            deserialize(data["first_value"]),
            data.get("last_stage"),
            equals=equals,
        )
        overrides = {int(stage): value for stage, value in data.get("overrides", {}).items()}
        for stage, value in sorted(overrides.items()):
            staged.set(stage, deserialize(value))
        return staged

    def __repr__(self) -> str:
        return (
            f"StagedValue(first_stage={self._first_stage}, "
            f"first_value={self._first_value!r}, last_stage={self._last_stage}, "
            f"overrides={dict(sorted(self._overrides.items()))!r})"
        )
