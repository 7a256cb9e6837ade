#!/usr/bin/env python3
"""
Stage planner CLI - Entry point for scenario replays.

This module allows running the planner as:
    python -m stage_planner scenario.json
    stage-planner scenario.json  (when installed via pip)
"""

from stage_planner.cli import main

if __name__ == "__main__":
    main()
