import math
from typing import Optional, Tuple, TYPE_CHECKING

import networkx as nx

from .entities import Agent
from .grid import DIRECTIONS

if TYPE_CHECKING:
    from .env import GridRescueEnvironment

Cell = Tuple[int, int]


def perform_rule_based_actions(env: 'GridRescueEnvironment') -> None:
    """
    Let every rule-based agent act once.

    Agents act in a shuffled order and each one sees the grid as left by the
    agents before it, so the first to claim a cell blocks the rest.
    """
    controlled = [a for a in env.agents.values() if not a.is_learning]
    env._rng.shuffle(controlled)

    for agent in controlled:
        if not agent.is_active or agent.rescued:
            continue
        if agent.kind == "firefighter":
            firefighter_ai(env, agent)
        elif agent.kind == "rescuer":
            rescuer_ai(env, agent)
        elif agent.kind == "victim":
            victim_ai(env, agent)


# Behaviours

def firefighter_ai(env: 'GridRescueEnvironment', agent: Agent) -> None:
    """
    Refill when low on water, otherwise fight the nearest fire, otherwise
    return to the nearest entrance.
    """
    cfg = env.config
    agent.spend_stamina(cfg["rule_based_upkeep"])

    if agent.max_water > 0 and agent.water <= agent.max_water * cfg["ff_low_water_frac"]:
        toilet = env.grid.find_nearest_tile(agent.row, agent.col, "toilet")
        if toilet is not None:
            if _on_or_adjacent(agent.position, toilet):
                agent.water = min(agent.max_water, agent.water + cfg["ff_refill_amount"])
                agent.spend_stamina(cfg["ff_refill_stamina"])
            else:
                step_toward(env, agent, toilet)
            return

    fire = env.grid.find_nearest_fire(agent.row, agent.col)
    if fire is not None:
        if _on_or_adjacent(agent.position, fire):
            if agent.water >= cfg["ff_spray_water"]:
                agent.water -= cfg["ff_spray_water"]
                agent.spend_stamina(cfg["ff_spray_stamina"])
                tile = env.grid.get_tile(*fire)
                tile.fire_fuel = max(0, tile.fire_fuel - cfg["ff_spray_fuel"])
                tile.dampness = cfg["ff_spray_dampness"]
        else:
            step_toward(env, agent, fire)
        return

    entrance = env.grid.find_nearest_tile(agent.row, agent.col, "entrance")
    if entrance is not None:
        step_toward(env, agent, env.grid.exit_cell(entrance))
    else:
        move_randomly(env, agent)


def rescuer_ai(env: 'GridRescueEnvironment', agent: Agent) -> None:
    """
    Lead a victim to the exit, or go and pick up the nearest free victim.
    """
    cfg = env.config
    agent.spend_stamina(cfg["rule_based_upkeep"])

    entrance = env.grid.find_nearest_tile(agent.row, agent.col, "entrance")
    exit_target = env.grid.exit_cell(entrance) if entrance is not None else (env.grid.height - 2, 1)

    victim_id = env.carry.victim_of(agent.agent_id)
    if victim_id is not None:
        victim = env.agents[victim_id]
        if env.is_exit_cell(agent.row, agent.col):
            env.complete_rescue(agent, victim)
            agent.spend_stamina(cfg["rescuer_dropoff_stamina"])
        else:
            step_toward(env, agent, exit_target)
            if not victim.dead and not victim.rescued:
                _reposition_led_victim(env, agent, victim)
        return

    victim = _find_nearest_free_victim(env, agent)
    if victim is None:
        step_toward(env, agent, exit_target)
    elif _on_or_adjacent(agent.position, victim.position):
        if env.carry.establish(agent.agent_id, victim.agent_id):
            agent.spend_stamina(cfg["rescuer_pickup_stamina"])
            if env.verbose:
                print(f"[T={env.time_step}] Rescuer {agent.agent_id} picked up victim {victim.agent_id}")
    else:
        step_toward(env, agent, victim.position)


def victim_ai(env: 'GridRescueEnvironment', agent: Agent) -> None:
    """
    Flee hazards, otherwise walk toward a nearby rescuer or the exit.
    """
    cfg = env.config
    agent.spend_stamina(cfg["rule_based_upkeep"])
    if agent.rescued or env.carry.is_paired(agent.agent_id):
        return  # The rescuer moves us

    tile = env.grid.get_tile(agent.row, agent.col)
    in_danger = (
        tile is not None
        and (tile.on_fire or tile.smoke_level == "Heavy" or env.grid.has_adjacent_fire(agent.row, agent.col))
    )
    if in_danger:
        move_to_safety(env, agent)
        return

    rescuer = _find_nearest_free_rescuer(env, agent)
    if rescuer is not None and _distance(agent.position, rescuer.position) < cfg["victim_follow_radius"]:
        step_toward(env, agent, rescuer.position)
        return

    entrance = env.grid.find_nearest_tile(agent.row, agent.col, "entrance")
    if entrance is not None:
        step_toward(env, agent, env.grid.exit_cell(entrance))
    else:
        move_randomly(env, agent)


# Movement

def step_toward(env: 'GridRescueEnvironment', agent: Agent, target: Cell) -> bool:
    """
    Take one goal-directed step.

    Follows the cheapest walkable route; if the next cell on it is taken (or
    there is no route) the agent falls back to the free neighbour closest
    to the target.

    Returns:
        True if the agent moved
    """
    if agent.position == tuple(target):
        return False
    if agent.effective_speed < 0.5:
        return False

    next_cell = _route_next(env, agent.position, tuple(target))
    if next_cell is None or env.get_agent_at(*next_cell) is not None:
        next_cell = _greedy_next(env, agent, tuple(target))
    if next_cell is None:
        return False
    return _try_move(env, agent, next_cell, env.config["move_cost_goal"])


def move_randomly(env: 'GridRescueEnvironment', agent: Agent) -> bool:
    moves = [
        (agent.row + dr, agent.col + dc)
        for dr, dc in DIRECTIONS
        if env.is_free(agent.row + dr, agent.col + dc)
    ]
    if not moves:
        return False
    return _try_move(env, agent, env._rng.choice(moves), env.config["move_cost_wander"])


def move_to_safety(env: 'GridRescueEnvironment', agent: Agent) -> bool:
    """
    Step to the free neighbour with the best safety score.

    Score: not burning +5 / burning -10, smoke None +3 / Light +1 / Heavy -2,
    no adjacent fire +2 / adjacent fire -3. Equal scores replace the current
    pick half of the time. Wanders randomly if boxed in.
    """
    best = None
    best_score = -math.inf
    for dr, dc in DIRECTIONS:
        r, c = agent.row + dr, agent.col + dc
        if not env.is_free(r, c):
            continue
        tile = env.grid.get_tile(r, c)
        score = 5 if not tile.on_fire else -10
        if tile.smoke_level == "None":
            score += 3
        elif tile.smoke_level == "Light":
            score += 1
        else:
            score -= 2
        score += 2 if not env.grid.has_adjacent_fire(r, c) else -3

        if score > best_score:
            best_score = score
            best = (r, c)
        elif score == best_score and env._rng.random() < env.config["safety_tie_swap_prob"]:
            best = (r, c)

    if best is None:
        return move_randomly(env, agent)
    return _try_move(env, agent, best, env.config["move_cost_flee"])


def _try_move(env: 'GridRescueEnvironment', agent: Agent, cell: Cell, cost_mult: float) -> bool:
    """Move if the agent can pay passability * cost_mult in stamina."""
    tile = env.grid.get_tile(*cell)
    cost = tile.passability * cost_mult
    if agent.stamina < cost:
        return False
    agent.row, agent.col = cell
    agent.stamina -= cost
    return True


def _route_next(env: 'GridRescueEnvironment', source: Cell, target: Cell) -> Optional[Cell]:
    """Next cell on the cheapest walkable route, ignoring other agents."""
    if source not in env.G or target not in env.G:
        return None
    try:
        path = nx.shortest_path(env.G, source, target, weight="weight")
    except nx.NetworkXNoPath:
        return None
    return path[1] if len(path) > 1 else None


def _greedy_next(env: 'GridRescueEnvironment', agent: Agent, target: Cell) -> Optional[Cell]:
    best = None
    best_dist = math.inf
    for dr, dc in DIRECTIONS:
        r, c = agent.row + dr, agent.col + dc
        if not env.is_free(r, c):
            continue
        dist = _distance((r, c), target)
        if dist < best_dist:
            best_dist = dist
            best = (r, c)
        elif dist == best_dist and env._rng.random() < env.config["greedy_tie_swap_prob"]:
            best = (r, c)
    return best


def _reposition_led_victim(env: 'GridRescueEnvironment', rescuer: Agent, victim: Agent) -> None:
    """Place the led victim on a free cell next to its rescuer."""
    directions = list(DIRECTIONS)
    env._rng.shuffle(directions)
    for dr, dc in directions:
        r, c = rescuer.row + dr, rescuer.col + dc
        if not env.grid.is_valid_position(r, c):
            continue
        occupant = env.get_agent_at(r, c)
        if occupant is None or occupant is victim:
            victim.row, victim.col = r, c
            return


def _find_nearest_free_victim(env: 'GridRescueEnvironment', rescuer: Agent) -> Optional[Agent]:
    candidates = [
        a for a in env.agents.values()
        if a.kind == "victim" and not a.dead and not a.rescued and not env.carry.is_paired(a.agent_id)
    ]
    return min(candidates, key=lambda a: _distance(a.position, rescuer.position), default=None)


def _find_nearest_free_rescuer(env: 'GridRescueEnvironment', victim: Agent) -> Optional[Agent]:
    candidates = [
        a for a in env.agents.values()
        if a.kind == "rescuer" and not a.dead and not env.carry.is_paired(a.agent_id)
    ]
    return min(candidates, key=lambda a: _distance(a.position, victim.position), default=None)


def _on_or_adjacent(a: Cell, b: Cell) -> bool:
    return abs(a[0] - b[0]) + abs(a[1] - b[1]) <= 1


def _distance(a: Cell, b: Cell) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])
