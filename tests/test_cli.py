"""
Tests for the CLI module (stage_planner/cli.py).

These tests cover the command-line interface and the run_scenario function.
"""

import json

import pytest
from click.testing import CliRunner

from stage_planner.cli import main, run_scenario, setup_logging

SIMPLE_SCENARIO = {
    "name": "cli test",
    "stages": 2,
    "actions": [
        {"op": "build", "stage": 1, "kind": "iron-chest", "position": [0.5, 0.5]},
    ],
}


class TestRunScenario:
    """Tests for the run_scenario function."""

    def test_simple_scenario(self):
        """A valid scenario produces a text report."""
        success, result, messages = run_scenario(SIMPLE_SCENARIO)
        assert success is True
        assert result.startswith("Scenario: cli test")
        assert messages == []

    def test_json_output(self):
        """JSON output is valid JSON."""
        success, result, _messages = run_scenario(SIMPLE_SCENARIO, use_json=True)
        assert success is True
        data = json.loads(result)
        assert len(data["stages"]) == 2
        assert data["entities"][0]["name"] == "iron-chest"

    def test_unknown_op_fails(self):
        """Unknown ops abort the replay."""
        success, result, messages = run_scenario({"stages": 1, "actions": [{"op": "warp"}]})
        assert success is False
        assert "Replay failed" in result
        assert any("warp" in message for message in messages)

    def test_malformed_action_fails(self):
        """Missing fields are reported as an invalid scenario."""
        success, result, _messages = run_scenario(
            {"stages": 1, "actions": [{"op": "build", "stage": 1}]}
        )
        assert success is False
        assert "Invalid scenario" in result

    def test_warnings_returned(self):
        """Warnings are returned alongside a successful report."""
        scenario = {
            "stages": 1,
            "actions": [{"op": "mine", "stage": 1, "position": [3.5, 3.5]}],
        }
        success, _result, messages = run_scenario(scenario)
        assert success is True
        assert len(messages) == 1


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_valid_log_level(self):
        """Known levels are accepted."""
        setup_logging("debug")

    def test_invalid_log_level(self):
        """Unknown levels raise ValueError."""
        with pytest.raises(ValueError):
            setup_logging("chatty")


class TestMainCommand:
    """Tests for the click command."""

    @pytest.fixture
    def runner(self):
        return CliRunner()

    @pytest.fixture
    def scenario_file(self, tmp_path):
        file = tmp_path / "scenario.json"
        file.write_text(json.dumps(SIMPLE_SCENARIO), encoding="utf-8")
        return file

    def test_replay_file(self, runner, scenario_file):
        """Replaying a file prints the report."""
        result = runner.invoke(main, [str(scenario_file)])
        assert result.exit_code == 0
        assert "iron-chest" in result.output

    def test_json_flag(self, runner, scenario_file):
        """--json prints a JSON report."""
        result = runner.invoke(main, [str(scenario_file), "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["name"] == "cli test"

    def test_output_to_file(self, runner, scenario_file, tmp_path):
        """-o writes the report to a file."""
        output_file = tmp_path / "out" / "report.txt"
        result = runner.invoke(main, [str(scenario_file), "-o", str(output_file)])
        assert result.exit_code == 0
        assert output_file.read_text(encoding="utf-8").startswith("Scenario:")

    def test_missing_file(self, runner, tmp_path):
        """A missing scenario file is a usage error."""
        result = runner.invoke(main, [str(tmp_path / "nope.json")])
        assert result.exit_code != 0

    def test_invalid_json(self, runner, tmp_path):
        """Unparseable files fail with exit code 1."""
        file = tmp_path / "broken.json"
        file.write_text("{not json", encoding="utf-8")
        result = runner.invoke(main, [str(file)])
        assert result.exit_code == 1
        assert "Failed to read scenario file" in result.output

    def test_failed_replay(self, runner, tmp_path):
        """A failing replay exits with code 1."""
        file = tmp_path / "bad.json"
        file.write_text(json.dumps({"stages": 1, "actions": [{"op": "warp"}]}), encoding="utf-8")
        result = runner.invoke(main, [str(file)])
        assert result.exit_code == 1

    def test_log_level_option(self, runner, scenario_file):
        """Verbose log levels still succeed."""
        result = runner.invoke(main, [str(scenario_file), "--log-level", "info", "--no-checks"])
        assert result.exit_code == 0
