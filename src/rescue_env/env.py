from dataclasses import asdict
from typing import Dict, List, Optional
import math
import random

import networkx as nx

from .config import (
    DEFAULT_CONFIG, ACTION_NAMES, MOVE_DELTAS,
    EXTINGUISH, REFILL_WATER, WAIT,
)
from .carry import CarryRegistry
from .entities import Agent, make_agent
from .grid import Grid
from .layouts import BuildingLayout, build_default_layout, validate_layout
from .hazards import advance_fire as _advance_fire
from .hazards import advance_smoke as _advance_smoke
from .hazards import apply_hazard_damage as _apply_hazard_damage
from .controllers import perform_rule_based_actions as _perform_rule_based_actions


#main environment class

class GridRescueEnvironment:
    """
    Turn-based rescue simulation on a building grid.

    This class manages:
    - The tile grid and its fire/smoke/hazard dynamics
    - Firefighter, rescuer and victim agents
    - Rescuer/victim carry pairings
    - The action executor used by learned agents (with reward signal)
    - Episode statistics and termination checks

    Learned agents are driven by an injected policy object exposing
    abstract_state(env, agent) and choose_action(state, legal, epsilon).
    The policy (and its Q-table) survives reset(); the grid and agents do not.
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        layout: Optional[BuildingLayout] = None,
        policy=None,
        use_rl_agents: bool = False,
        rng: Optional[random.Random] = None,
        verbose: bool = False,
    ):
        """
        Initialize the environment.

        Args:
            config: Optional configuration overrides (merged over DEFAULT_CONFIG)
            layout: Building layout (default two-wing building if omitted)
            policy: Tabular policy for learned agents
            use_rl_agents: Spawn learned agents outside of training too
            rng: Random source for hazards, shuffling and tie-breaks
            verbose: Print events as they happen
        """
        self.config = {**DEFAULT_CONFIG, **(config or {})}
        self.layout = layout or build_default_layout()
        validate_layout(self.layout, verbose=verbose)

        self.policy = policy
        self.use_rl_agents = use_rl_agents
        self.verbose = verbose

        # RNG for determinism
        self._rng = rng or random.Random()

        # World state (rebuilt on reset)
        self.grid: Grid = self.layout.build_grid()
        self.G: nx.Graph = self.grid.to_graph()
        self.agents: Dict[int, Agent] = {}
        self.carry = CarryRegistry()
        self.time_step = 0
        self.is_training = False
        self.last_damage: Dict[int, float] = {}

    def seed(self, seed: Optional[int] = None) -> None:
        """Set random seed for deterministic behavior."""
        if seed is not None:
            self._rng.seed(seed)

    @property
    def rng(self) -> random.Random:
        return self._rng

    #all of the functions
    def reset(self, is_training: bool = False) -> None:
        """
        Start a new episode: fresh grid, fresh agents, initial fires.

        Args:
            is_training: Training episodes always spawn learned agents
        """
        self.time_step = 0
        self.is_training = is_training
        self.last_damage = {}

        self.grid = self.layout.build_grid()
        self.G = self.grid.to_graph()
        self.carry.clear()

        learned = self.use_rl_agents or is_training
        if learned and self.policy is None:
            print("Warning: learned control requested but no policy was given, using rule-based agents")
            learned = False

        self.agents = {}
        for kind, cells in self.layout.spawns.items():
            for r, c in cells:
                agent_id = len(self.agents)
                is_learning = learned and kind == self.config["learning_kind"]
                self.agents[agent_id] = make_agent(agent_id, kind, r, c, is_learning=is_learning)

        for r, c in self.layout.fire_cells:
            tile = self.grid.get_tile(r, c)
            if tile is not None and tile.type != "wall":
                tile.ignite(fuel=self.config["ignition_fuel"],
                            dampness_limit=self.config["ignition_dampness_limit"])

        if is_training and self.verbose:
            print("Env reset for training episode.")

    # Queries

    def get_tile(self, row: int, col: int):
        return self.grid.get_tile(row, col)

    def get_agent_at(self, row: int, col: int) -> Optional[Agent]:
        """Agent occupying a cell (dead and evacuated agents do not occupy)."""
        for agent in self.agents.values():
            if agent.row == row and agent.col == col and not agent.dead and not agent.rescued:
                return agent
        return None

    def is_free(self, row: int, col: int) -> bool:
        return self.grid.is_valid_position(row, col) and self.get_agent_at(row, col) is None

    def is_exit_cell(self, row: int, col: int) -> bool:
        """A cell is an exit cell when the tile just below it is an entrance."""
        below = self.grid.get_tile(row + 1, col)
        return below is not None and below.type == "entrance"

    def learning_agents(self) -> List[Agent]:
        return [a for a in self.agents.values() if a.is_learning]

    def victims(self) -> List[Agent]:
        return [a for a in self.agents.values() if a.kind == "victim"]

    # Carry relation

    def complete_rescue(self, rescuer: Agent, victim: Agent) -> None:
        """Hand a led victim over at the exit and dissolve the pairing."""
        if victim.rescued:
            return
        victim.rescued = True
        self.carry.release(rescuer.agent_id)
        if self.verbose:
            print(f"[T={self.time_step}] Victim {victim.agent_id} rescued by rescuer {rescuer.agent_id}!")

    def _release_dead_pairs(self) -> None:
        for rescuer_id, victim_id in self.carry.pairs():
            if self.agents[rescuer_id].dead or self.agents[victim_id].dead:
                self.carry.release(rescuer_id)
                if self.verbose:
                    print(f"[T={self.time_step}] Carry of victim {victim_id} by rescuer {rescuer_id} released")

    # Agent Actions

    def get_possible_actions(self, agent: Agent) -> List[int]:
        """
        Legal action ids for an agent (action masking).

        WAIT is always legal; moves need a free walkable destination;
        EXTINGUISH needs a firefighter with water next to or on a fire;
        REFILL_WATER needs a firefighter on a toilet with room for water.
        """
        actions = [WAIT]
        for action_id, (dr, dc) in MOVE_DELTAS.items():
            if self.is_free(agent.row + dr, agent.col + dc):
                actions.append(action_id)

        if agent.kind == "firefighter":
            if agent.water > 0 and self._fire_in_reach(agent):
                actions.append(EXTINGUISH)
            tile = self.grid.get_tile(agent.row, agent.col)
            if tile is not None and tile.type == "toilet" and agent.water < agent.max_water:
                actions.append(REFILL_WATER)
        return actions

    def _reach_cells(self, agent: Agent):
        yield agent.row, agent.col
        for dr, dc in MOVE_DELTAS.values():
            yield agent.row + dr, agent.col + dc

    def _fire_in_reach(self, agent: Agent) -> bool:
        for r, c in self._reach_cells(agent):
            tile = self.grid.get_tile(r, c)
            if tile is not None and tile.on_fire:
                return True
        return False

    def execute_action(self, agent: Agent, action_id: int, training: bool = True) -> float:
        """
        Apply one discrete action and return its reward.

        Never raises for illegal requests: they are no-ops that earn a
        penalty in training mode. Outside training every reward term is 0.

        Args:
            agent: Acting agent
            action_id: One of the ACTIONS ids
            training: Whether rewards are being collected

        Returns:
            Reward for this action (including the per-step penalty)
        """
        cfg = self.config
        reward = cfg["step_penalty"] if training else 0.0
        taken = False
        cost = cfg["move_cost"]

        if action_id in MOVE_DELTAS:
            dr, dc = MOVE_DELTAS[action_id]
            if self.is_free(agent.row + dr, agent.col + dc):
                agent.row += dr
                agent.col += dc
                taken = True
            elif training:
                reward += cfg["invalid_move_penalty"]

        elif action_id == EXTINGUISH:
            cost = cfg["extinguish_cost"]
            if agent.kind == "firefighter" and agent.water > 0:
                hit = False
                for r, c in list(self._reach_cells(agent)):
                    tile = self.grid.get_tile(r, c)
                    if tile is None or not tile.on_fire:
                        continue
                    tile.fire_fuel = max(0, tile.fire_fuel - cfg["extinguish_fuel"])
                    tile.dampness = cfg["extinguish_dampness"]
                    hit = True
                    if training:
                        reward += cfg["reward_extinguished"] if not tile.on_fire else cfg["reward_reduced"]
                if hit:
                    agent.water = max(0, agent.water - cfg["extinguish_water"])
                    taken = True
                elif training:
                    reward += cfg["reward_missed_spray"]
            elif training:
                reward += cfg["reward_failed_action"]

        elif action_id == REFILL_WATER:
            cost = cfg["refill_cost"]
            tile = self.grid.get_tile(agent.row, agent.col)
            if (agent.kind == "firefighter" and tile is not None and tile.type == "toilet"
                    and agent.water < agent.max_water):
                agent.water = agent.max_water
                taken = True
                if training:
                    reward += cfg["reward_refill"]
            elif training:
                reward += cfg["reward_failed_action"]

        elif action_id == WAIT:
            cost = 0
            taken = True

        elif training:
            reward += cfg["invalid_action_penalty"]

        if taken:
            passability = 0.0
            if action_id in MOVE_DELTAS:
                passability = self.grid.get_tile(agent.row, agent.col).passability
            agent.spend_stamina(cost + passability)

        if self.verbose and not taken:
            print(f"[T={self.time_step}] Agent {agent.agent_id}: {ACTION_NAMES.get(action_id, action_id)} had no effect")
        return reward

    def perform_learned_actions(self, exploration_rate: float = 0.01) -> None:
        """Learned agents pick an action from the policy and execute it (no rewards)."""
        if self.policy is None:
            return
        for agent in self.learning_agents():
            if not agent.is_active:
                continue
            state = self.policy.abstract_state(self, agent)
            action = self.policy.choose_action(state, self.get_possible_actions(agent), exploration_rate)
            self.execute_action(agent, action, training=False)

    def perform_rule_based_actions(self) -> None:
        _perform_rule_based_actions(self)

    # Simulation step

    def update_world_state(self) -> None:
        """
        Advance hazards and their consequences by one tick:
        fire, smoke, hazard damage, carry releases, exhaustion and recovery.
        """
        cfg = self.config
        _advance_fire(
            self.grid, self._rng,
            ignition_base_prob=cfg["ignition_base_prob"],
            ignition_fuel=cfg["ignition_fuel"],
            dampness_decay=cfg["dampness_decay"],
            dampness_limit=cfg["ignition_dampness_limit"],
        )
        _advance_smoke(
            self.grid, self._rng,
            heavy_decay_prob=cfg["smoke_heavy_decay_prob"],
            light_decay_prob=cfg["smoke_light_decay_prob"],
            spread_heavy_prob=cfg["smoke_spread_heavy_prob"],
            spread_light_prob=cfg["smoke_spread_light_prob"],
        )
        led_ids = {victim_id for _, victim_id in self.carry.pairs()}
        self.last_damage = _apply_hazard_damage(
            self.grid, self.agents.values(),
            led_ids=led_ids, config=cfg,
            time_step=self.time_step, verbose=self.verbose,
        )
        self._release_dead_pairs()

        for agent in self.agents.values():
            if agent.dead or agent.rescued:
                continue
            agent.exhaust()
            agent.recover_stamina(cfg["stamina_recovery"])

    def step_world(self) -> None:
        """Everything in a tick after the learned agents have acted."""
        self.perform_rule_based_actions()
        self.update_world_state()
        self.time_step += 1

    def tick(self, exploration_rate: float = 0.01) -> None:
        """
        Advance the simulation by one turn.

        Args:
            exploration_rate: Epsilon used by learned agents when choosing actions
        """
        self.perform_learned_actions(exploration_rate)
        self.step_world()

    # Statistics and termination

    def get_stats(self) -> Dict:
        """
        Current episode statistics.

        Returns:
            Dictionary with victims_rescued, victims_remaining, victims_dead,
            fires_active and total_score (0-100)
        """
        victims = self.victims()
        stats = {
            "victims_rescued": sum(1 for v in victims if v.rescued),
            "victims_remaining": sum(1 for v in victims if not v.rescued and not v.dead),
            "victims_dead": sum(1 for v in victims if v.dead),
            "fires_active": self.grid.count_fires(),
            "total_score": 0,
        }
        if victims:
            raw = (100 * stats["victims_rescued"] / len(victims)
                   - 75 * stats["victims_dead"] / len(victims))
            # Halves round up (12.5 -> 13), not to even
            score = math.floor(raw + 0.5)
        elif stats["fires_active"] == 0:
            score = 100
        else:
            score = 100 - 10 * stats["fires_active"]
        stats["total_score"] = max(0, score)
        return stats

    def is_simulation_complete(self, turn: int, max_turns: Optional[int] = None) -> bool:
        """
        Check if a (non-training) run is over.

        Over when the turn limit is reached, when every victim is rescued or
        dead, or (without victims) when every fire is out.
        """
        if max_turns is None:
            max_turns = self.config["max_turns"]
        if turn >= max_turns:
            return True

        victims = self.victims()
        fires_out = self.grid.count_fires() == 0
        if not victims:
            return fires_out
        return all(v.rescued or v.dead for v in victims)

    def is_episode_complete(self, step_index: int, max_steps: int, agent: Optional[Agent] = None) -> bool:
        """
        Check if a training episode should end.

        Args:
            step_index: Zero-based step within the episode
            max_steps: Episode step limit
            agent: If given, only this agent's terminal conditions are checked
                   (dead, or a firefighter with no fires left)
        """
        if step_index >= max_steps - 1:
            return True

        fires_active = self.grid.count_fires()
        if agent is not None:
            if agent.dead:
                return True
            return agent.kind == "firefighter" and fires_active == 0

        victims = self.victims()
        live_victims = any(not v.dead and not v.rescued for v in victims)
        if fires_active == 0 and (not victims or not live_victims):
            return True

        learners = self.learning_agents()
        return bool(learners) and all(a.dead for a in learners)

    # Read-only snapshots

    def get_state(self) -> Dict:
        """
        Copy of the full world state for renderers and loggers.

        Mutating the returned structures does not affect the simulation.
        """
        return {
            "time_step": self.time_step,
            "width": self.grid.width,
            "height": self.grid.height,
            "tiles": [[{**asdict(tile), "on_fire": tile.on_fire} for tile in row] for row in self.grid.tiles],
            "agents": {aid: asdict(agent) for aid, agent in self.agents.items()},
            "carry": self.carry.pairs(),
            "stats": self.get_stats(),
        }

    def print_status(self) -> None:
        """Print current environment status for debugging."""
        print(f"\n{'='*60}")
        print(f"Time Step: {self.time_step}")
        print(f"{'='*60}")

        symbols = {"wall": "#", "door": "D", "window": "W", "toilet": "T",
                   "chemcab": "C", "furniture": "F", "entrance": "E", "debris": "x"}
        agent_symbols = {"firefighter": "f", "rescuer": "r", "victim": "v"}
        print("\nMap:")
        for r in range(self.grid.height):
            line = []
            for c in range(self.grid.width):
                agent = self.get_agent_at(r, c)
                tile = self.grid.tiles[r][c]
                if agent is not None:
                    line.append(agent_symbols.get(agent.kind, "?"))
                elif tile.on_fire:
                    line.append("*")
                elif tile.smoke_level == "Heavy":
                    line.append("%")
                else:
                    line.append(symbols.get(tile.type, "."))
            print("  " + "".join(line))

        print("\nAgents:")
        for agent in self.agents.values():
            if agent.dead:
                status = "DEAD"
            elif agent.rescued:
                status = "RESCUED"
            elif agent.unconscious:
                status = "UNCONSCIOUS"
            else:
                status = "OK"
            print(f"  Agent {agent.agent_id} [{agent.kind:11s}] at {agent.position}: "
                  f"hp={agent.hp:.0f}/{agent.max_hp:.0f} sp={agent.stamina:.0f} "
                  f"water={agent.water} panic={agent.panic:.0f} ({status})")

        print("\nStatistics:")
        for key, value in self.get_stats().items():
            print(f"  {key}: {value}")
        print()
