"""Visual indicators derived from entity state."""

from enum import Enum
from typing import Optional, Set

from ..common.constants import DEFAULT_CONFIG, PlannerConfig
from ..common.diagnostics import ProjectDiagnostics
from ..entity.project_entity import ProjectEntity
from .host import HostWorld


class HighlightKind(Enum):
    ERROR_OUTLINE = "error-outline"
    ERROR_ELSEWHERE = "error-elsewhere"
    CONFIG_CHANGED = "config-changed"
    UPGRADED = "upgraded"
    CONFIG_CHANGED_LATER = "config-changed-later"
    LAST_STAGE = "last-stage"
    SETTINGS_REMNANT = "settings-remnant"


def compute_highlights(entity: ProjectEntity, stage: int) -> Set[HighlightKind]:
    """Indicators that belong on entity at stage, from its state alone."""
    if not entity.is_in_stage(stage):
        return set()
    if entity.is_settings_remnant:
        return {HighlightKind.SETTINGS_REMNANT}

    kinds = set()
    if entity.has_error_at(stage):
        kinds.add(HighlightKind.ERROR_OUTLINE)
    elif entity.error_stages():
        kinds.add(HighlightKind.ERROR_ELSEWHERE)

    if entity.has_override(stage):
        if entity.values.get(stage).name != entity.values.get(stage - 1).name:
            kinds.add(HighlightKind.UPGRADED)
        else:
            kinds.add(HighlightKind.CONFIG_CHANGED)

    last_override = entity.values.last_override_stage()
    if last_override is not None and stage < last_override:
        kinds.add(HighlightKind.CONFIG_CHANGED_LATER)

    if entity.last_stage is not None and stage == entity.last_stage:
        kinds.add(HighlightKind.LAST_STAGE)
    return kinds


class HighlightManager:
    """Keeps an entity's visuals in line with ``compute_highlights``.

    Every update recomputes all stages from scratch, so there is no
    incremental state to drift.
    """

    def __init__(
        self,
        host: HostWorld,
        config: PlannerConfig = DEFAULT_CONFIG,
        diagnostics: Optional[ProjectDiagnostics] = None,
    ):
        self.host = host
        self.config = config
        self.diagnostics = diagnostics or ProjectDiagnostics()

    def update(self, entity: ProjectEntity, num_stages: int) -> None:
        for stage in range(1, num_stages + 1):
            self._sync_stage(entity, stage, compute_highlights(entity, stage))
        # Nothing may linger past the end of the project
        for visuals in entity.highlights.values():
            for stage in [stage for stage in visuals if stage > num_stages]:
                self.host.destroy_visual(visuals.pop(stage))
        self._drop_empty(entity)

    def _sync_stage(
        self, entity: ProjectEntity, stage: int, wanted: Set[HighlightKind]
    ) -> None:
        for kind in HighlightKind:
            visuals = entity.highlights.setdefault(kind.value, {})
            existing = visuals.get(stage)
            if existing is not None and not self.host.is_visual_valid(existing):
                del visuals[stage]
                existing = None

            if kind in wanted and existing is None:
                visuals[stage] = self.host.create_visual(
                    kind.value, stage, entity.position, self.config.style_for(kind.value)
                )
            elif kind not in wanted and existing is not None:
                self.host.destroy_visual(existing)
                del visuals[stage]

    def delete_stage_visuals(self, entity: ProjectEntity, stage: int) -> None:
        for visuals in entity.highlights.values():
            visual = visuals.pop(stage, None)
            if visual is not None:
                self.host.destroy_visual(visual)
        self._drop_empty(entity)

    def delete_all(self, entity: ProjectEntity) -> None:
        for visuals in entity.highlights.values():
            for visual in visuals.values():
                self.host.destroy_visual(visual)
        entity.highlights.clear()

    @staticmethod
    def _drop_empty(entity: ProjectEntity) -> None:
        for kind in [kind for kind, visuals in entity.highlights.items() if not visuals]:
            del entity.highlights[kind]

    @staticmethod
    def highlights_at(entity: ProjectEntity, stage: int) -> Set[HighlightKind]:
        """Kinds currently shown on entity at stage."""
        return {
            HighlightKind(kind)
            for kind, visuals in entity.highlights.items()
            if stage in visuals
        }
