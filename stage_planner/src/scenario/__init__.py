"""Scenario replay against the simulated host."""

from .runner import (
    MissingInstanceError,
    ScenarioRunner,
    describe_entity,
    format_report,
    load_scenario,
)

__all__ = [
    "MissingInstanceError",
    "ScenarioRunner",
    "describe_entity",
    "format_report",
    "load_scenario",
]
