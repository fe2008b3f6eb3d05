"""
Grid Rescue Environment Package
===============================

A turn-based simulation of an emergency inside a building grid. This
package models:

1. Building tiles (walls, doors, entrances, toilets, furniture, ...)
2. Fire spread, smoke diffusion and hazard damage
3. Firefighter, rescuer and victim agents with rule-based behaviour
4. An action executor that returns rewards for learned agents

Usage:
    from rescue_env import GridRescueEnvironment

    env = GridRescueEnvironment()
    env.reset()

    turn = 0
    while not env.is_simulation_complete(turn):
        env.tick()
        turn += 1
    print(env.get_stats())
"""

# Main environment class
from .env import GridRescueEnvironment

# Pre-built layouts and named scenarios
from .layouts import BuildingLayout, build_default_layout, parse_ascii_layout, validate_layout
from .scenarios import build_scenario, scenario_layout

# Configuration constants
from .config import DEFAULT_CONFIG, ACTIONS, ACTION_NAMES, NUM_ACTIONS, TILE_TYPES, AGENT_TEMPLATES

# Entity data classes (for type hints and inspection)
from .entities import Tile, Agent, make_agent
from .grid import Grid
from .carry import CarryRegistry

# Version info
__version__ = "1.0.0"

# Public API
__all__ = [
    "GridRescueEnvironment",
    "BuildingLayout",
    "build_default_layout",
    "parse_ascii_layout",
    "validate_layout",
    "build_scenario",
    "scenario_layout",
    "DEFAULT_CONFIG",
    "ACTIONS",
    "ACTION_NAMES",
    "NUM_ACTIONS",
    "TILE_TYPES",
    "AGENT_TEMPLATES",
    "Tile",
    "Agent",
    "make_agent",
    "Grid",
    "CarryRegistry",
]
