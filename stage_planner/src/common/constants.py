"""Shared constants and planner configuration."""

from dataclasses import dataclass, field
from typing import Dict

# Wire colors
WIRE_COLORS = ("red", "green", "copper")

# Prototype types whose two halves pair up along a direction
DIRECTIONAL_PAIR_TYPES = frozenset({"underground-belt", "pipe-to-ground"})

# Types that can be rotated but where all four directions are equivalent
PASTE_ROTATABLE_TYPES = frozenset({"assembling-machine", "boiler", "generator"})

# Types that never care about direction
DIRECTION_AGNOSTIC_TYPES = frozenset(
    {
        "container",
        "logistic-container",
        "electric-pole",
        "lamp",
        "radar",
        "roboport",
        "beacon",
        "solar-panel",
        "accumulator",
        "wall",
        "pipe",
        "heat-pipe",
        "furnace",
        "lab",
        "reactor",
        "rocket-silo",
    }
)

DEFAULT_HIGHLIGHT_STYLES: Dict[str, str] = {
    "error-outline": "not-allowed",
    "error-elsewhere": "utility/danger_icon",
    "config-changed": "utility/reassign",
    "upgraded": "item/upgrade-planner",
    "config-changed-later": "utility/down_arrow",
    "last-stage": "item/deconstruction-planner",
    "settings-remnant": "train-visualization",
}


@dataclass
class PlannerConfig:
    """Tunable policies for the staged planner."""

    # Place a directional pair in the opposite orientation when the natural
    # one is blocked, recording an orientation error instead of a preview
    flip_directional_pairs: bool = True

    # Keep deleted entities with history around as settings remnants
    make_settings_remnants: bool = True

    # Upper bound on wire edges per entity
    max_wire_connections: int = 5

    highlight_styles: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_HIGHLIGHT_STYLES)
    )

    def style_for(self, highlight_kind: str) -> str:
        return self.highlight_styles.get(highlight_kind, highlight_kind)


DEFAULT_CONFIG = PlannerConfig()
