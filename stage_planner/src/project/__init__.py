"""Project ownership of stages and entities, and host event translation."""

from .project import EntityUpdateResult, Project, Stage, StageMoveResult
from .event_translator import EventTranslator

__all__ = [
    "EntityUpdateResult",
    "Project",
    "Stage",
    "StageMoveResult",
    "EventTranslator",
]
