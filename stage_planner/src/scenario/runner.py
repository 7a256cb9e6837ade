"""Replay recorded user actions against a simulated project."""

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..common.constants import PlannerConfig
from ..common.diagnostics import ProjectDiagnostics
from ..common.geometry import parse_direction
from ..entity.config import config_from_dict, config_to_dict
from ..entity.project_entity import ProjectEntity
from ..project.event_translator import EventTranslator
from ..project.project import Project
from ..world.host import HostEvent, InstanceRef
from ..world.simulated import SimulatedWorld


class MissingInstanceError(LookupError):
    """An action named a spot with no instance on it."""


def load_scenario(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as handle:
        return json.load(handle)


class ScenarioRunner:
    """Builds a project on a SimulatedWorld and feeds it scenario actions.

    A scenario is a dict with ``stages``, optional ``config`` overrides for
    PlannerConfig, optional ``setup`` actions applied before the project
    exists, and ``actions``. Each action has an ``op`` such as ``build``,
    ``mine``, ``settings``, ``rotate``, ``upgrade`` or ``delete_stage``;
    actions on an existing instance name it by ``stage`` and ``position``.
    """

    def __init__(
        self,
        scenario: Dict[str, Any],
        diagnostics: Optional[ProjectDiagnostics] = None,
        check_consistency: bool = True,
    ):
        self.scenario = scenario
        self.diagnostics = diagnostics or ProjectDiagnostics()
        self.diagnostics.default_phase = "scenario"
        self.check_consistency = check_consistency
        self.world = SimulatedWorld(int(scenario.get("stages", 1)))
        self.config = PlannerConfig(**scenario.get("config", {}))
        for action in scenario.get("setup", []):
            self._apply_world_action(action)
        self.project = Project(self.world, self.config, self.diagnostics)
        self.translator = EventTranslator(self.project)
        self._ops: Dict[str, Callable[[Dict[str, Any]], Optional[HostEvent]]] = {
            "build": self._build,
            "mine": lambda action: self.world.mine(self._instance(action)),
            "kill": lambda action: self.world.kill(self._instance(action)),
            "force_delete": lambda action: self.world.force_delete(self._instance(action)),
            "settings": self._settings,
            "paste": self._paste,
            "rotate": lambda action: self.world.rotate(self._instance(action)),
            "upgrade": lambda action: self.world.mark_for_upgrade(
                self._instance(action), action["target"]
            ),
            "fast_replace": lambda action: self.world.fast_replace(
                self._instance(action), action["target"]
            ),
            "move_to_stage": lambda action: self.world.move_to_stage(
                self._instance(action), int(action["target"])
            ),
            "connect": self._connect,
            "disconnect": self._disconnect,
            "tile": lambda action: self.world.place_tile(
                int(action["stage"]), tuple(action["position"]), action["material"]
            ),
            "mine_tile": lambda action: self.world.mine_tile(
                int(action["stage"]), tuple(action["position"])
            ),
        }

    # -- running ---------------------------------------------------------

    def run(self) -> Project:
        for number, action in enumerate(self.scenario.get("actions", []), start=1):
            self.apply(action, number)
        return self.project

    def apply(self, action: Dict[str, Any], number: int = 0) -> None:
        op = action.get("op")
        if op in ("insert_stage", "delete_stage", "rebuild_stage"):
            self._apply_project_action(action)
        elif op in ("obstruct", "clear_obstruction", "forbid_direction", "allow_all"):
            self._apply_world_action(action)
        elif op in self._ops:
            try:
                event = self._ops[op](action)
            except MissingInstanceError as e:
                self.diagnostics.warning(f"Action {number} ({op}) skipped: {e}")
                return
            if event is None:
                self.diagnostics.warning(
                    f"Action {number} ({op}) was refused by the world",
                    stage=int(action.get("stage", 0)),
                )
                return
            self.translator.handle(event)
        else:
            self.diagnostics.error(f"Action {number} has unknown op {op!r}")
            return
        if self.check_consistency:
            self.project.assert_consistent()

    def _apply_project_action(self, action: Dict[str, Any]) -> None:
        stage = int(action["stage"])
        if action["op"] == "insert_stage":
            self.project.insert_stage(stage, action.get("name"))
        elif action["op"] == "delete_stage":
            self.project.delete_stage(stage)
        else:
            self.project.synchronizer.rebuild_stage(stage)

    def _apply_world_action(self, action: Dict[str, Any]) -> None:
        stage = int(action["stage"])
        op = action["op"]
        if op == "obstruct":
            self.world.add_obstruction(
                stage, tuple(action["position"]), tuple(action.get("size", (1, 1)))
            )
        elif op == "clear_obstruction":
            self.world.remove_obstruction(
                stage, tuple(action["position"]), tuple(action.get("size", (1, 1)))
            )
        elif op == "forbid_direction":
            kind = action["kind"]
            forbidden = parse_direction(action["direction"])
            self.world.add_placement_rule(
                stage,
                lambda rule_kind, _position, direction: not (
                    rule_kind == kind and direction == forbidden
                ),
            )
        elif op == "allow_all":
            self.world.clear_placement_rules(stage)
        else:
            raise ValueError(f"unknown world action {op!r}")

    # -- ops -------------------------------------------------------------

    def _instance(self, action: Dict[str, Any], key: str = "position") -> InstanceRef:
        stage = int(action["stage"])
        ref = self.world.find_instance(stage, tuple(action[key]), action.get("kind"))
        if ref is None:
            raise MissingInstanceError(f"no instance at {tuple(action[key])} in stage {stage}")
        return ref

    def _build(self, action: Dict[str, Any]) -> Optional[HostEvent]:
        kind = action["kind"]
        config = config_from_dict(action.get("config", {}), name=kind)
        return self.world.build(
            int(action["stage"]),
            kind,
            tuple(action["position"]),
            action.get("direction", "north"),
            config,
        )

    def _settings(self, action: Dict[str, Any]) -> HostEvent:
        changes = dict(action.get("changes", {}))
        return self.world.change_settings(self._instance(action), **changes)

    def _paste(self, action: Dict[str, Any]) -> HostEvent:
        ref = self._instance(action)
        return self.world.paste_settings(ref, config_from_dict(action["config"], name=ref.kind))

    def _connect(self, action: Dict[str, Any]) -> HostEvent:
        return self.world.connect_wire(
            self._instance(action),
            self._instance(action, "other"),
            action.get("color", "red"),
            int(action.get("side", 1)),
            int(action.get("other_side", 1)),
        )

    def _disconnect(self, action: Dict[str, Any]) -> HostEvent:
        return self.world.disconnect_wire(
            self._instance(action), self._instance(action, "other"), action.get("color", "red")
        )

    # -- reporting -------------------------------------------------------

    def report(self) -> Dict[str, Any]:
        """Plain-data summary of the project and of every stage's world."""
        entities = sorted(self.project.index.all_entities(), key=lambda e: e.entity_id)
        return {
            "name": self.scenario.get("name", "scenario"),
            "entities": [describe_entity(entity) for entity in entities],
            "stages": [self._describe_stage(stage.number) for stage in self.project.stages],
            "tiles": {
                f"{x},{y}": tile.values.to_dict()
                for (x, y), tile in sorted(self.project.tiles.items())
            },
        }

    def _describe_stage(self, number: int) -> Dict[str, Any]:
        instances = []
        for ref in sorted(self.world.instances_at(number), key=lambda r: r.position):
            entity = self.project.index.find_by_instance(ref)
            instances.append(
                {
                    "kind": ref.kind,
                    "position": list(ref.position),
                    "direction": ref.direction.name.lower(),
                    "preview": ref.preview,
                    "entity": entity.entity_id if entity is not None else None,
                }
            )
        return {
            "number": number,
            "name": self.project.get_stage(number).name,
            "instances": instances,
            "errors": [
                entity.entity_id for entity in self.project.entities_with_errors(number)
            ],
            "highlights": sorted(
                f"{kind}@{position[0]},{position[1]}"
                for kind, position, _style in self.world.visuals_at(number)
            ),
        }


def describe_entity(entity: ProjectEntity) -> Dict[str, Any]:
    return {
        "id": entity.entity_id,
        "name": entity.name,
        "position": list(entity.position),
        "direction": entity.direction.name.lower(),
        "values": entity.values.to_dict(config_to_dict),
        "settings_remnant": entity.is_settings_remnant,
        "errors": {
            stage: error.kind.value for stage, error in sorted(entity.stage_errors.items())
        },
        "wires": sorted(
            [
                connection.other_entity(entity).entity_id,
                connection.color,
                connection.side_of(entity),
                connection.other_side(entity),
            ]
            for connection in entity.all_wire_connections()
        ),
    }


def format_report(report: Dict[str, Any]) -> str:
    """Human-readable rendering of ScenarioRunner.report()."""
    lines: List[str] = [f"Scenario: {report['name']}"]
    for stage in report["stages"]:
        lines.append(f"{stage['name']}:")
        if not stage["instances"]:
            lines.append("  (empty)")
        for instance in stage["instances"]:
            marker = " [preview]" if instance["preview"] else ""
            error = " [error]" if instance["entity"] in stage["errors"] else ""
            lines.append(
                f"  #{instance['entity']} {instance['kind']} at "
                f"({instance['position'][0]}, {instance['position'][1]}) "
                f"facing {instance['direction']}{marker}{error}"
            )
    lines.append("Entities:")
    for entity in report["entities"]:
        values = entity["values"]
        last = values["last_stage"] if values["last_stage"] is not None else "end"
        remnant = " (settings remnant)" if entity["settings_remnant"] else ""
        lines.append(
            f"  #{entity['id']} {entity['name']} stages {values['first_stage']}..{last}"
            f", {len(values['overrides'])} override(s){remnant}"
        )
    return "\n".join(lines)
