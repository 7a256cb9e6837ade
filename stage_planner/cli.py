#!/usr/bin/env python3
"""
Stage planner CLI - Command-line interface for scenario replays.

This module provides the entry point for the 'stage-planner' command installed via pip.

Usage:
    stage-planner scenario.json                 # Replay and print a per-stage report
    stage-planner scenario.json --json          # Print the report as JSON
    stage-planner scenario.json -o report.txt   # Save the report to a file
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict

import click

from stage_planner.src.common.diagnostics import ProjectDiagnostics
from stage_planner.src.common.exceptions import PlannerError
from stage_planner.src.scenario.runner import ScenarioRunner, format_report, load_scenario


def run_scenario(
    scenario: Dict[str, Any],
    log_level: str = "warning",
    use_json: bool = False,
    check_consistency: bool = True,
) -> tuple[bool, str, list]:
    """
    Replay a scenario against a simulated project.

    Args:
        scenario: Parsed scenario document
        log_level: Minimum severity of diagnostics to keep
        use_json: If True, return the report as JSON instead of text
        check_consistency: Verify index consistency after every action

    Returns:
        (success: bool, result: str, diagnostics: list)
    """
    diagnostics = ProjectDiagnostics(log_level=log_level, raise_errors=True)

    try:
        runner = ScenarioRunner(
            scenario, diagnostics=diagnostics, check_consistency=check_consistency
        )
        runner.run()
    except PlannerError as e:
        return False, f"Replay failed: {e}", diagnostics.get_messages()
    except (KeyError, ValueError, TypeError) as e:
        return False, f"Invalid scenario: {e}", diagnostics.get_messages()

    report = runner.report()
    if use_json:
        result = json.dumps(report, indent=2)
    else:
        result = format_report(report)
    return True, result, diagnostics.get_messages()


def setup_logging(level: str) -> None:
    """Setup logging configuration."""
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")
    logging.basicConfig(level=numeric_level, format="%(levelname)s: %(message)s")


@click.command()
@click.argument("scenario_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    help="Output file for the report (default: stdout)",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default="warning",
    help="Set the logging level",
)
@click.option("--json", "use_json", is_flag=True, help="Output the report as JSON")
@click.option(
    "--no-checks",
    is_flag=True,
    help="Skip index consistency checks after each action",
)
def main(scenario_file, output, log_level, use_json, no_checks):
    """Replay a staged-planning scenario and report every stage's world."""
    setup_logging(log_level)
    verbose = log_level in ["debug", "info"]

    try:
        scenario = load_scenario(scenario_file)
    except (OSError, json.JSONDecodeError) as e:
        click.echo(f"Failed to read scenario file: {e}", err=True)
        sys.exit(1)

    if verbose:
        click.echo(f"Replaying {scenario_file}...", err=True)

    success, result, diagnostic_messages = run_scenario(
        scenario,
        log_level=log_level,
        use_json=use_json,
        check_consistency=not no_checks,
    )

    if not success:
        click.echo(result, err=True)
        for message in diagnostic_messages:
            click.echo(message, err=True)
        sys.exit(1)

    if output:
        try:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(result, encoding="utf-8")
            if verbose:
                click.echo(f"Report saved to {output}", err=True)
        except OSError as e:
            click.echo(f"Failed to write output file: {e}", err=True)
            sys.exit(1)
    else:
        click.echo(result)

    for message in diagnostic_messages:
        click.echo(message, err=True)


if __name__ == "__main__":
    main()
