import random
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .config import DEFAULT_CONFIG
from .entities import Agent
from .grid import Grid

# fire and smoke set up

def ignite_tile(grid: Grid, row: int, col: int,
                fuel: int = 30, dampness_limit: float = 5.0) -> bool:
    """
    Start a fire at the specified cell.

    Returns:
        True if the tile caught fire, False if it is out of bounds or refused
    """
    tile = grid.get_tile(row, col)
    if tile is None:
        return False
    return tile.ignite(fuel=fuel, dampness_limit=dampness_limit)


def advance_fire(
    grid: Grid,
    rng: random.Random,
    ignition_base_prob: float = 0.05,
    ignition_fuel: int = 30,
    dampness_decay: float = 0.5,
    dampness_limit: float = 5.0,
) -> List[Tuple[int, int]]:
    """
    Burn fuel and spread fire to neighbouring cells.

    Logic:
    1. Every burning tile loses one unit of fuel; it smokes Heavy while it
       still burns and Light once burnt out
    2. Each flammable, non-burning, non-wall neighbour catches with chance
       base * flammability * (1 - dampness / 10), never below 0
    3. Dampness evaporates from every tile
    4. Ignitions are applied only after the sweep, so a fire started this
       tick cannot spread again in the same call

    Args:
        grid: Building grid
        rng: Random source for the spread rolls
        ignition_base_prob: Base spread probability per flammability point
        ignition_fuel: Fuel given to newly ignited tiles
        dampness_decay: Dampness removed from every tile
        dampness_limit: Dampness at which a tile refuses to ignite

    Returns:
        Cells that caught fire this tick
    """
    candidates: List[Tuple[int, int]] = []

    for r, c, tile in grid.iter_cells():
        if not tile.on_fire:
            continue

        tile.fire_fuel = max(0, tile.fire_fuel - 1)
        tile.smoke_level = "Light" if tile.fire_fuel == 0 else "Heavy"

        for nr, nc, target in grid.neighbors4(r, c):
            if target.on_fire or target.flammability <= 0 or target.type == "wall":
                continue
            chance = ignition_base_prob * target.flammability * (1.0 - target.dampness / 10.0)
            if rng.random() < max(0.0, chance):
                candidates.append((nr, nc))

    for _, _, tile in grid.iter_cells():
        tile.dampness = max(0.0, tile.dampness - dampness_decay)

    ignited = []
    for r, c in candidates:
        if grid.tiles[r][c].ignite(fuel=ignition_fuel, dampness_limit=dampness_limit):
            ignited.append((r, c))
    return ignited


def advance_smoke(
    grid: Grid,
    rng: random.Random,
    heavy_decay_prob: float = 0.1,
    light_decay_prob: float = 0.15,
    spread_heavy_prob: float = 0.25,
    spread_light_prob: float = 0.15,
) -> None:
    """
    Decay and diffuse smoke using a double buffer.

    Every tile's new level is computed from the levels at the start of the
    tick, then all tiles are updated at once.

    Logic:
    - Burning tiles are always Heavy
    - Heavy thins to Light, Light clears to None (probabilistic decay)
    - A Heavy passable neighbour may push the tile to Heavy
    - A Light passable neighbour may push a clear tile to Light only
    """
    next_levels = [[tile.smoke_level for tile in row] for row in grid.tiles]

    for r, c, tile in grid.iter_cells():
        if tile.on_fire:
            next_levels[r][c] = "Heavy"
            continue

        if tile.smoke_level == "Heavy" and rng.random() < heavy_decay_prob:
            next_levels[r][c] = "Light"
        elif tile.smoke_level == "Light" and rng.random() < light_decay_prob:
            next_levels[r][c] = "None"

        for _, _, neighbor in grid.neighbors4(r, c):
            if not neighbor.is_passable:
                continue
            if neighbor.smoke_level == "Heavy" and rng.random() < spread_heavy_prob:
                next_levels[r][c] = "Heavy"
            elif neighbor.smoke_level == "Light" and rng.random() < spread_light_prob:
                if next_levels[r][c] == "None":
                    next_levels[r][c] = "Light"

    for r, c, tile in grid.iter_cells():
        tile.smoke_level = next_levels[r][c]


def update_panic(agent: Agent, grid: Grid, being_led: bool = False,
                 config: Optional[Dict] = None) -> None:
    """
    Raise panic from frightening surroundings, or let it settle.

    Increases are additive and capped at 100. A victim being led out calms
    down by a fixed amount; anyone else calms slowly only on a tick without
    any frightening condition.
    """
    cfg = config or DEFAULT_CONFIG
    if agent.dead:
        agent.panic = 0
        return

    increase = 0
    if grid.has_adjacent_fire(agent.row, agent.col):
        increase += cfg["panic_adjacent_fire"]
    tile = grid.get_tile(agent.row, agent.col)
    if tile is not None:
        if tile.on_fire:
            increase += cfg["panic_on_fire"]
        if tile.smoke_level == "Heavy":
            increase += cfg["panic_heavy_smoke"]
        elif tile.smoke_level == "Light":
            increase += cfg["panic_light_smoke"]
    if agent.hp < agent.max_hp * 0.25:
        increase += cfg["panic_low_hp"]

    agent.panic = min(100, agent.panic + increase)

    if agent.kind == "victim" and being_led:
        agent.panic = max(0, agent.panic - cfg["panic_led_relief"])
    elif increase == 0 and agent.panic > 0:
        agent.panic = max(0, agent.panic - cfg["panic_decay"])


def apply_hazard_damage(
    grid: Grid,
    agents: Iterable[Agent],
    led_ids: Optional[Set[int]] = None,
    config: Optional[Dict] = None,
    time_step: int = 0,
    verbose: bool = False,
) -> Dict[int, float]:
    """
    Damage agents standing in or next to hazards.

    Logic:
    - Heat: 10 hp on a burning tile, otherwise 2 hp next to one (max, not sum)
    - Air: Heavy smoke 3 hp, Light smoke 1 hp, toxic fumes 5 hp (max of the
      three), only for victims or agents whose breathing charge is exhausted
    - Heat and air damage add up
    - Breathing apparatus loses one charge per tick of smoke/fume exposure,
      whether or not it prevented damage
    - Panic is updated afterwards; dead agents are calmed to 0

    Args:
        grid: Building grid
        agents: Agents to process
        led_ids: Ids of victims currently being led by a rescuer
        config: Damage and panic constants (DEFAULT_CONFIG if omitted)
        time_step: Current time step, for messages
        verbose: If True, print death messages

    Returns:
        Damage dealt per agent id (only agents that took damage)
    """
    cfg = config or DEFAULT_CONFIG
    led_ids = led_ids or set()
    damages: Dict[int, float] = {}

    for agent in agents:
        if agent.rescued:
            continue  # Already out of the building
        if agent.dead:
            agent.panic = 0
            continue
        if agent.unconscious:
            continue

        tile = grid.get_tile(agent.row, agent.col)
        if tile is None:
            if verbose:
                print(f"[T={time_step}] Warning: Agent {agent.agent_id} is off the grid at {agent.position}")
            continue

        heat = 0
        if tile.on_fire:
            heat = cfg["damage_on_fire"]
        elif grid.has_adjacent_fire(agent.row, agent.col):
            heat = cfg["damage_adjacent_fire"]

        unprotected = agent.kind == "victim" or agent.breathing_charge <= 0
        exposed = False
        air = 0
        if tile.smoke_level == "Heavy":
            exposed = True
            if unprotected:
                air = max(air, cfg["damage_heavy_smoke"])
        elif tile.smoke_level == "Light":
            exposed = True
            if unprotected:
                air = max(air, cfg["damage_light_smoke"])
        if tile.is_toxic_fumes:
            exposed = True
            if unprotected:
                air = max(air, cfg["damage_toxic_fumes"])

        damage = heat + air
        if damage > 0:
            agent.take_damage(damage)
            damages[agent.agent_id] = damage
            if verbose and agent.dead:
                print(f"[T={time_step}] Agent {agent.agent_id} ({agent.kind}) died at {agent.position}")

        if exposed and agent.kind != "victim" and agent.breathing_charge > 0:
            agent.breathing_charge -= 1

        update_panic(agent, grid, being_led=agent.agent_id in led_ids, config=cfg)

    return damages
