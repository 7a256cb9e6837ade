"""Translate host notifications into project operations."""

from typing import Callable, Dict, Iterable, List, Optional

from ..entity.config import EntityConfig
from ..entity.project_entity import ProjectEntity, StageError
from ..world.host import HostEvent, HostEventType, InstanceRef, RemovalCause
from .project import EntityUpdateResult, Project, StageMoveResult

Notifier = Callable[[Optional[ProjectEntity], Optional[int], str, bool], None]

_SWAPPED_BELT_TYPES = {"input": "output", "output": "input"}

MOVE_REJECTION_MESSAGES = {
    StageMoveResult.CANNOT_MOVE_PAST_LAST_STAGE: "Cannot move past the entity's last stage",
    StageMoveResult.CANNOT_MOVE_BEFORE_FIRST_STAGE: "Cannot end before the entity's first stage",
    StageMoveResult.HAS_DIVERGENCE_BEFORE_TARGET: (
        "Cannot move: the entity has settings changes before the target stage"
    ),
    StageMoveResult.INTERSECTS_ANOTHER_ENTITY: "Cannot move: another entity is in the way",
}


class EventTranslator:
    """Turns each host notification into model operations.

    ``handle`` processes one event to completion, world and highlights
    included, before returning the entity it touched (or None).
    Rejected actions are reported through ``notifier(entity, actor_id,
    message, is_error)``; by default they become project diagnostics.
    """

    def __init__(self, project: Project, notifier: Optional[Notifier] = None):
        self.project = project
        self.host = project.host
        self.index = project.index
        self.synchronizer = project.synchronizer
        self.notifier = notifier or self._notify_diagnostics
        self._handlers: Dict[HostEventType, Callable[[HostEvent], Optional[ProjectEntity]]] = {
            HostEventType.BUILT: self._on_built,
            HostEventType.REMOVED: self._on_removed,
            HostEventType.SETTINGS_CHANGED: self._on_settings_changed,
            HostEventType.PASTED: self._on_settings_changed,
            HostEventType.FAST_REPLACED: self._on_settings_changed,
            HostEventType.UPGRADED: self._on_upgraded,
            HostEventType.ROTATED: self._on_rotated,
            HostEventType.MOVE_TO_STAGE: self._on_move_to_stage,
            HostEventType.WIRES_CHANGED: self._on_wires_changed,
            HostEventType.TILE_BUILT: self._on_tile_changed,
            HostEventType.TILE_MINED: self._on_tile_changed,
        }

    def handle(self, event: HostEvent) -> Optional[ProjectEntity]:
        self.project.diagnostics.debug(
            f"Handling {event.type.value}", phase="events", stage=event.stage
        )
        return self._handlers[event.type](event)

    def handle_all(self, events: Iterable[Optional[HostEvent]]) -> List[Optional[ProjectEntity]]:
        return [self.handle(event) for event in events if event is not None]

    def _notify_diagnostics(
        self,
        entity: Optional[ProjectEntity],
        actor_id: Optional[int],
        message: str,
        is_error: bool,
    ) -> None:
        entity_id = entity.entity_id if entity is not None else None
        if is_error:
            self.project.diagnostics.warning(message, phase="events", entity_id=entity_id)
        else:
            self.project.diagnostics.info(message, phase="events", entity_id=entity_id)

    # -- lookup helpers --------------------------------------------------

    def _find_entity(self, ref: Optional[InstanceRef], stage: int) -> Optional[ProjectEntity]:
        if ref is None:
            return None
        entity = self.index.find_by_instance(ref)
        if entity is not None:
            return entity
        return self.index.find_compatible_entity(ref.kind, ref.position, ref.direction, stage)

    def _adopt(self, entity: ProjectEntity, stage: int, ref: InstanceRef) -> None:
        """Make ref the world instance standing for entity at stage."""
        old = entity.get_world_instance(stage)
        if old is not None and old.instance_id != ref.instance_id:
            self.host.destroy_instance(old)
            self.index.unregister_instance(old)
        entity.set_world_instance(stage, ref)
        self.index.register_instance(entity, ref)

    def _release(self, entity: ProjectEntity, stage: int, ref: InstanceRef) -> None:
        """Undo an adoption and remove ref from the world."""
        current = entity.get_world_instance(stage)
        if current is not None and current.instance_id == ref.instance_id:
            entity.set_world_instance(stage, None)
        self.index.unregister_instance(ref)
        self.host.destroy_instance(ref)

    def _rederive(self, ref: InstanceRef, stage: int) -> Optional[ProjectEntity]:
        """The instance went away before we got to it: refresh from the model."""
        entity = self.index.find_by_instance(ref) or self.index.find_compatible_entity(
            ref.kind, ref.position, ref.direction, stage
        )
        if entity is not None:
            self.synchronizer.refresh_stage(entity, stage)
        return entity

    def _restore_preview(self, ref: InstanceRef, stage: int) -> Optional[ProjectEntity]:
        """Previews carry no settings of their own: put the stage back as modelled."""
        entity = self.index.find_by_instance(ref)
        if entity is not None:
            self.synchronizer.refresh_stage(entity, stage)
        return entity

    # -- handlers --------------------------------------------------------

    def _on_built(self, event: HostEvent) -> Optional[ProjectEntity]:
        ref, stage = event.instance, event.stage
        if ref is None or ref.preview:
            return None
        if not self.host.is_valid(ref):
            return self._rederive(ref, stage)

        entity = self.index.find_compatible_entity(ref.kind, ref.position, ref.direction, stage)
        if entity is not None:
            return self._on_overbuilt(entity, ref, stage, event.actor_id)

        other = self.index.find_same_kind_other_direction(
            ref.kind, ref.position, ref.direction, stage
        )
        if other is not None:
            self.host.destroy_instance(ref)
            self.notifier(
                other,
                event.actor_id,
                f"Cannot build {ref.kind}: it faces a different way than the existing one",
                True,
            )
            return None

        config = self.host.read_config(ref).with_changes(name=ref.kind)
        return self.project.add_entity(
            config,
            ref.position,
            ref.direction,
            stage,
            unstaged=self.host.read_unstaged(ref),
            existing_instance=ref,
        )

    def _on_overbuilt(
        self,
        entity: ProjectEntity,
        ref: InstanceRef,
        stage: int,
        actor_id: Optional[int],
    ) -> Optional[ProjectEntity]:
        if entity.is_settings_remnant:
            self._adopt(entity, stage, ref)
            if not self.project.revive_settings_remnant(entity, stage):
                self._release(entity, stage, ref)
                self.notifier(entity, actor_id, "Cannot revive: another entity is in the way", True)
                self.synchronizer.refresh_all(entity)
            return entity

        if stage < entity.first_stage:
            self._adopt(entity, stage, ref)
            result = self.project.move_entity_start(entity, stage)
            if result is not StageMoveResult.UPDATED:
                self._release(entity, stage, ref)
                self.notifier(entity, actor_id, MOVE_REJECTION_MESSAGES[result], True)
            return entity

        self._adopt(entity, stage, ref)
        if ref.kind != entity.get_name_at_stage(stage):
            result = self.project.upgrade_entity(entity, stage, ref.kind)
            if result is EntityUpdateResult.UPDATED:
                return entity
        self.synchronizer.refresh_stage(entity, stage)
        return entity

    def _on_removed(self, event: HostEvent) -> Optional[ProjectEntity]:
        ref, stage = event.instance, event.stage
        entity = self._find_entity(ref, stage)
        if entity is None:
            return None
        current = entity.get_world_instance(stage)
        if current is not None and current.instance_id == ref.instance_id:
            entity.set_world_instance(stage, None)
        self.index.unregister_instance(ref)

        cause = event.cause or RemovalCause.MINED
        if cause is RemovalCause.FORCE_DELETED:
            self.project.force_delete_entity(entity)
            return entity
        if cause is RemovalCause.DIED:
            self.synchronizer.mark_missing(entity, stage)
            return entity

        if ref.preview or entity.is_settings_remnant or not entity.is_in_stage(stage):
            self.synchronizer.refresh_stage(entity, stage)
            return entity
        if stage == entity.first_stage:
            self.project.delete_entity_or_make_remnant(entity, stage)
        else:
            self.project.set_entity_last_stage(entity, stage - 1)
        return entity

    def _read_config(self, entity: ProjectEntity, ref: InstanceRef, stage: int) -> EntityConfig:
        config = self.host.read_config(ref)
        error = entity.get_error_at(stage)
        if error is not None and error.kind is StageError.ORIENTATION:
            # The world holds the flipped half of the pair
            config = config.with_changes(
                belt_type=_SWAPPED_BELT_TYPES.get(config.belt_type, config.belt_type)
            )
        return config

    def _on_settings_changed(self, event: HostEvent) -> Optional[ProjectEntity]:
        ref, stage = event.instance, event.stage
        if ref is None:
            return None
        if not self.host.is_valid(ref):
            return self._rederive(ref, stage)
        if ref.preview:
            return self._restore_preview(ref, stage)

        entity = self._find_entity(ref, stage)
        if entity is None:
            if event.type is HostEventType.FAST_REPLACED:
                return self._on_built(event)
            return None
        if entity.is_settings_remnant or not entity.is_in_stage(stage):
            self.synchronizer.refresh_stage(entity, stage)
            return entity
        self._adopt(entity, stage, ref)

        config = self._read_config(entity, ref, stage)
        current_name = entity.get_name_at_stage(stage)
        if config.name != current_name:
            if self.project.upgrade_entity(entity, stage, config.name) is (
                EntityUpdateResult.CANNOT_UPGRADE
            ):
                self.notifier(
                    entity, event.actor_id, f"Cannot upgrade {current_name} to {config.name}", True
                )
                self.synchronizer.refresh_stage(entity, stage)
                return entity

        changed = self.synchronizer.propagate_config_forward(entity, stage, config)
        unstaged_changed = self.project.set_unstaged_value(
            entity, stage, self.host.read_unstaged(ref)
        )
        if not changed and not unstaged_changed:
            self.synchronizer.refresh_stage(entity, stage)
        return entity

    def _on_upgraded(self, event: HostEvent) -> Optional[ProjectEntity]:
        ref, stage = event.instance, event.stage
        if ref is not None and ref.preview:
            return self._restore_preview(ref, stage)
        entity = self._find_entity(ref, stage)
        if entity is None or event.upgrade_target is None:
            return None
        if entity.is_settings_remnant or not entity.is_in_stage(stage):
            return entity
        result = self.project.upgrade_entity(entity, stage, event.upgrade_target)
        if result is EntityUpdateResult.CANNOT_UPGRADE:
            self.notifier(
                entity,
                event.actor_id,
                f"Cannot upgrade {entity.get_name_at_stage(stage)} to {event.upgrade_target}",
                True,
            )
            self.synchronizer.refresh_stage(entity, stage)
        return entity

    def _on_rotated(self, event: HostEvent) -> Optional[ProjectEntity]:
        ref, stage = event.instance, event.stage
        if ref is None:
            return None
        if not self.host.is_valid(ref):
            return self._rederive(ref, stage)
        if ref.preview:
            return self._restore_preview(ref, stage)
        entity = self._find_entity(ref, stage)
        if entity is None:
            return None
        entity.set_world_instance(stage, ref)
        self.index.register_instance(entity, ref)
        if entity.is_settings_remnant or not entity.is_in_stage(stage):
            self.synchronizer.refresh_stage(entity, stage)
            return entity

        result = self.project.rotate_entity(entity, stage, ref.direction)
        if result is EntityUpdateResult.CANNOT_ROTATE:
            self.notifier(
                entity,
                event.actor_id,
                f"Cannot rotate {entity.name}: it can only be rotated in its "
                f"first stage ({entity.first_stage})",
                True,
            )
        if result is not EntityUpdateResult.UPDATED:
            self.synchronizer.refresh_stage(entity, stage)
        return entity

    def _on_move_to_stage(self, event: HostEvent) -> Optional[ProjectEntity]:
        entity = self._find_entity(event.instance, event.stage)
        if entity is None or event.target_stage is None:
            return None
        result = self.project.move_entity_start(entity, event.target_stage)
        if result in MOVE_REJECTION_MESSAGES:
            self.notifier(entity, event.actor_id, MOVE_REJECTION_MESSAGES[result], True)
        return entity

    def _on_wires_changed(self, event: HostEvent) -> Optional[ProjectEntity]:
        ref, stage = event.instance, event.stage
        entity = self._find_entity(ref, stage)
        if entity is None or ref.preview or entity.is_settings_remnant:
            return entity
        wanted = []
        for wire in self.host.get_wire_connections(ref):
            other = self.index.find_by_instance(wire.other)
            if other is not None:
                wanted.append((other, wire.color, wire.side, wire.other_side))
        self.project.set_wires_from_world(entity, stage, wanted)
        return entity

    def _on_tile_changed(self, event: HostEvent) -> None:
        if event.position is None:
            return None
        material = event.material if event.type is HostEventType.TILE_BUILT else None
        self.project.set_tile_at_stage(event.position, event.stage, material)
        return None
