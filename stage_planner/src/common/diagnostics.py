import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .exceptions import PlannerError

"""Unified diagnostic collection for the staged planner."""

logger = logging.getLogger("stage_planner")


class DiagnosticSeverity(Enum):
    """Severity levels for planner diagnostics."""

    DEBUG = "debug"  # Internal bookkeeping
    INFO = "info"  # Informational messages for users
    WARNING = "warning"  # Rejected actions, recoverable conflicts
    ERROR = "error"  # Broken invariants or unusable input


SEVERITY_ORDER = [
    DiagnosticSeverity.DEBUG,
    DiagnosticSeverity.INFO,
    DiagnosticSeverity.WARNING,
    DiagnosticSeverity.ERROR,
]

_LOGGING_LEVELS = {
    DiagnosticSeverity.DEBUG: logging.DEBUG,
    DiagnosticSeverity.INFO: logging.INFO,
    DiagnosticSeverity.WARNING: logging.WARNING,
    DiagnosticSeverity.ERROR: logging.ERROR,
}


@dataclass
class Diagnostic:
    """A single diagnostic message with context."""

    severity: DiagnosticSeverity
    message: str
    phase: str  # index, sync, highlight, events, project, scenario
    stage: int = 0  # project stage number, 0 when not tied to one
    entity_id: Optional[int] = None


class ProjectDiagnostics:
    """Central diagnostic collection for a staged project.

    Every diagnostic is stored and mirrored to the ``stage_planner`` logger.
    Diagnostics below ``log_level`` are dropped.

    Usage:
        diagnostics = ProjectDiagnostics(log_level="info")
        diagnostics.warning("Cannot rotate", phase="events", stage=2)
        print(diagnostics.format_for_user())
    """

    def __init__(self, log_level: str = "warning", raise_errors: bool = False):
        self.diagnostics: List[Diagnostic] = []
        self.min_severity = DiagnosticSeverity(log_level.lower())
        self.raise_errors = raise_errors
        self._error_count = 0
        self._warning_count = 0
        self.default_phase = "unknown"

    def debug(
        self,
        message: str,
        phase: str | None = None,
        stage: int = 0,
        entity_id: Optional[int] = None,
    ) -> None:
        """Add a debug message (internal bookkeeping)."""
        self._add(DiagnosticSeverity.DEBUG, message, phase, stage, entity_id)

    def info(
        self,
        message: str,
        phase: str | None = None,
        stage: int = 0,
        entity_id: Optional[int] = None,
    ) -> None:
        """Add an informational message."""
        self._add(DiagnosticSeverity.INFO, message, phase, stage, entity_id)

    def warning(
        self,
        message: str,
        phase: str | None = None,
        stage: int = 0,
        entity_id: Optional[int] = None,
    ) -> None:
        """Add a warning (a rejected action or a recoverable conflict)."""
        self._warning_count += 1
        self._add(DiagnosticSeverity.WARNING, message, phase, stage, entity_id)

    def error(
        self,
        message: str,
        phase: str | None = None,
        stage: int = 0,
        entity_id: Optional[int] = None,
    ) -> None:
        """Add an error. Raises PlannerError when raise_errors is set."""
        self._error_count += 1
        self._add(DiagnosticSeverity.ERROR, message, phase, stage, entity_id)
        if self.raise_errors:
            raise PlannerError(message)

    def _add(
        self,
        severity: DiagnosticSeverity,
        message: str,
        phase: str | None,
        stage: int,
        entity_id: Optional[int],
    ) -> None:
        diag = Diagnostic(
            severity=severity,
            message=message,
            phase=phase or self.default_phase,
            stage=stage,
            entity_id=entity_id,
        )
        logger.log(_LOGGING_LEVELS[severity], self._format_diagnostic(diag))
        if SEVERITY_ORDER.index(severity) < SEVERITY_ORDER.index(self.min_severity):
            return
        self.diagnostics.append(diag)

    def has_errors(self) -> bool:
        """Check if any errors have been recorded."""
        return self._error_count > 0

    def error_count(self) -> int:
        return self._error_count

    def warning_count(self) -> int:
        return self._warning_count

    def get_messages(
        self, min_severity: DiagnosticSeverity = DiagnosticSeverity.WARNING
    ) -> List[str]:
        """Get formatted messages at or above the specified severity level."""
        threshold = SEVERITY_ORDER.index(min_severity)
        return [
            self._format_diagnostic(diag)
            for diag in self.diagnostics
            if SEVERITY_ORDER.index(diag.severity) >= threshold
        ]

    def _format_diagnostic(self, diag: Diagnostic) -> str:
        # Format: SEVERITY [phase:stage N:entity M]: message
        location_parts = [diag.phase]
        if diag.stage > 0:
            location_parts.append(f"stage {diag.stage}")
        if diag.entity_id is not None:
            location_parts.append(f"entity {diag.entity_id}")
        location = ":".join(location_parts)
        return f"{diag.severity.value.upper()} [{location}]: {diag.message}"

    def format_for_user(self) -> str:
        """Format all recorded diagnostics for user-friendly output."""
        if not self.diagnostics:
            return "No diagnostics."

        messages = self.get_messages(self.min_severity)
        summary = (
            f"\nReplay summary: {self._error_count} error(s), "
            f"{self._warning_count} warning(s)"
        )
        return "\n".join(messages) + summary

    def merge(self, other: "ProjectDiagnostics") -> None:
        """Merge diagnostics from another collector."""
        self.diagnostics.extend(other.diagnostics)
        self._error_count += other._error_count
        self._warning_count += other._warning_count
