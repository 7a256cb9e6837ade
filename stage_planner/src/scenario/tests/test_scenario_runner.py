"""
Tests for scenario/runner.py - replaying recorded actions.
"""

import json

import pytest

from stage_planner.src.common.diagnostics import ProjectDiagnostics
from stage_planner.src.common.exceptions import PlannerError
from stage_planner.src.scenario.runner import ScenarioRunner, format_report, load_scenario


def run(actions, stages=3, **extra):
    runner = ScenarioRunner({"stages": stages, "actions": actions, **extra})
    runner.run()
    return runner


class TestScenarioRunner:
    """Tests for ScenarioRunner."""

    def test_build_and_settings(self):
        """Build and settings actions reach the project."""
        runner = run(
            [
                {"op": "build", "stage": 1, "kind": "assembling-machine-1", "position": [1.5, 1.5]},
                {
                    "op": "settings",
                    "stage": 2,
                    "position": [1.5, 1.5],
                    "changes": {"recipe": "copper-cable"},
                },
            ]
        )
        (entity,) = runner.project.index.all_entities()
        assert entity.values.overrides.keys() == {2}

    def test_setup_obstruction_creates_error(self):
        """Setup actions shape the world before the project exists."""
        runner = run(
            [{"op": "build", "stage": 1, "kind": "iron-chest", "position": [0.5, 0.5]}],
            setup=[{"op": "obstruct", "stage": 3, "position": [0.5, 0.5]}],
        )
        report = runner.report()
        assert report["stages"][2]["errors"] == [1]
        assert report["stages"][2]["instances"][0]["preview"] is True

    def test_clear_obstruction_and_rebuild(self):
        """Clearing an obstruction then rebuilding the stage fixes the error."""
        runner = run(
            [
                {"op": "build", "stage": 1, "kind": "iron-chest", "position": [0.5, 0.5]},
                {"op": "clear_obstruction", "stage": 2, "position": [0.5, 0.5]},
                {"op": "rebuild_stage", "stage": 2},
            ],
            setup=[{"op": "obstruct", "stage": 2, "position": [0.5, 0.5]}],
        )
        assert runner.report()["stages"][1]["errors"] == []

    def test_config_overrides(self):
        """The config block overrides planner settings."""
        runner = run([], config={"make_settings_remnants": False})
        assert runner.project.config.make_settings_remnants is False

    def test_missing_instance_is_skipped(self):
        """Actions naming an empty spot are skipped with a warning."""
        runner = run([{"op": "mine", "stage": 1, "position": [9.5, 9.5]}])
        assert runner.diagnostics.warning_count() == 1
        assert "skipped" in runner.diagnostics.get_messages()[0]

    def test_refused_build_warns(self):
        """A build the world refuses is reported."""
        runner = run(
            [
                {"op": "build", "stage": 1, "kind": "iron-chest", "position": [0.5, 0.5]},
                {"op": "build", "stage": 1, "kind": "wooden-chest", "position": [0.5, 0.5]},
            ]
        )
        assert "refused" in runner.diagnostics.get_messages()[0]

    def test_unknown_op(self):
        """Unknown ops are errors."""
        diagnostics = ProjectDiagnostics(raise_errors=True)
        runner = ScenarioRunner({"stages": 1, "actions": [{"op": "teleport"}]}, diagnostics)
        with pytest.raises(PlannerError):
            runner.run()

    def test_stage_actions(self):
        """Stage insertion and deletion renumber the report."""
        runner = run(
            [
                {"op": "build", "stage": 2, "kind": "iron-chest", "position": [0.5, 0.5]},
                {"op": "insert_stage", "stage": 1, "name": "Prep"},
                {"op": "delete_stage", "stage": 4},
            ]
        )
        report = runner.report()
        assert [stage["name"] for stage in report["stages"]] == ["Prep", "Stage 2", "Stage 3"]
        assert report["entities"][0]["values"]["first_stage"] == 3

    def test_forbid_direction(self):
        """Direction rules flip undergrounds."""
        runner = run(
            [
                {
                    "op": "build",
                    "stage": 1,
                    "kind": "underground-belt",
                    "position": [0.5, 0.5],
                    "config": {"belt_type": "input"},
                },
            ],
            setup=[
                {
                    "op": "forbid_direction",
                    "stage": 2,
                    "kind": "underground-belt",
                    "direction": "north",
                }
            ],
        )
        entity = runner.report()["entities"][0]
        assert entity["errors"] == {2: "orientation"}

    def test_wires_and_tiles(self):
        """Connect and tile actions are replayed."""
        runner = run(
            [
                {"op": "build", "stage": 1, "kind": "small-electric-pole", "position": [0.5, 0.5]},
                {"op": "build", "stage": 1, "kind": "small-electric-pole", "position": [3.5, 0.5]},
                {
                    "op": "connect",
                    "stage": 1,
                    "position": [0.5, 0.5],
                    "other": [3.5, 0.5],
                    "color": "green",
                },
                {"op": "tile", "stage": 2, "position": [5, 5], "material": "concrete"},
            ]
        )
        report = runner.report()
        assert report["entities"][0]["wires"] == [[2, "green", 1, 1]]
        assert report["tiles"]["5,5"]["first_value"] == "concrete"


class TestReporting:
    """Tests for report formatting and loading."""

    def test_format_report(self):
        """The text report lists stages and entities."""
        runner = run(
            [
                {"op": "build", "stage": 1, "kind": "iron-chest", "position": [0.5, 0.5]},
                {"op": "mine", "stage": 3, "position": [0.5, 0.5]},
            ]
        )
        text = format_report(runner.report())
        assert "Stage 3:\n  (empty)" in text
        assert "#1 iron-chest stages 1..2, 0 override(s)" in text

    def test_report_is_json_serializable(self):
        """Reports can be dumped as JSON."""
        runner = run([{"op": "build", "stage": 1, "kind": "iron-chest", "position": [0.5, 0.5]}])
        assert json.loads(json.dumps(runner.report()))["name"] == "scenario"

    def test_load_scenario(self, tmp_path):
        """Scenarios load from JSON files."""
        path = tmp_path / "scenario.json"
        path.write_text(json.dumps({"stages": 2, "actions": []}), encoding="utf-8")
        assert load_scenario(path) == {"stages": 2, "actions": []}
