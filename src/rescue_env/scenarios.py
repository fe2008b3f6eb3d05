import random
from typing import Dict, Optional

from .configs import CONFIGS
from .env import GridRescueEnvironment
from .layouts import BuildingLayout, build_default_layout, parse_ascii_layout


def scenario_layout(name: str) -> BuildingLayout:
    """
    Layout of a named scenario from configs.yaml.

    Raises:
        ValueError: unknown scenario or layout kind
    """
    if name not in CONFIGS:
        raise ValueError(f"Unknown scenario: {name}. Must be one of {list(CONFIGS.keys())}")
    entry = CONFIGS[name]

    kind = entry.get("layout", "default")
    if kind == "default":
        return build_default_layout(width=entry.get("width", 20), height=entry.get("height", 15))
    if kind == "ascii":
        toxic = [tuple(cell) for cell in entry.get("toxic_cells", [])]
        return parse_ascii_layout(entry["map"], toxic_cells=toxic)
    raise ValueError(f"Scenario {name}: invalid layout kind {kind!r}, expected 'default' or 'ascii'")


def build_scenario(
    name: str,
    config: Optional[Dict] = None,
    policy=None,
    use_rl_agents: bool = False,
    rng: Optional[random.Random] = None,
    verbose: bool = False,
) -> GridRescueEnvironment:
    """
    Build an environment for a named scenario.

    Scenario env overrides are applied first, then the caller's config.

    Returns:
        Initialized (and reset) GridRescueEnvironment
    """
    layout = scenario_layout(name)
    env_config = {**CONFIGS[name].get("env", {}), **(config or {})}
    env = GridRescueEnvironment(
        config=env_config,
        layout=layout,
        policy=policy,
        use_rl_agents=use_rl_agents,
        rng=rng,
        verbose=verbose,
    )
    env.reset()
    return env


def training_overrides(name: str) -> Dict:
    """Training hyperparameter overrides of a scenario (empty if none)."""
    if name not in CONFIGS:
        return {}
    return dict(CONFIGS[name].get("training", {}) or {})
