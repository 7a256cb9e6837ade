"""Host worlds and the model-to-world synchronization layer."""

from .host import (
    HostEvent,
    HostEventType,
    HostWire,
    HostWorld,
    InstanceRef,
    RemovalCause,
    VisualRef,
)
from .simulated import SimulatedWorld
from .highlights import HighlightKind, HighlightManager, compute_highlights
from .synchronizer import WorldSynchronizer

__all__ = [
    "HostEvent",
    "HostEventType",
    "HostWire",
    "HostWorld",
    "InstanceRef",
    "RemovalCause",
    "VisualRef",
    "SimulatedWorld",
    "HighlightKind",
    "HighlightManager",
    "compute_highlights",
    "WorldSynchronizer",
]
