"""
Tabular Q-learning / SARSA policy for learned agents.

The policy is stateless apart from the shared QTable and its random
source, so one instance can drive every learned agent in an environment.
"""

import math
import random
from typing import List, Optional, TYPE_CHECKING

from rescue_env.config import WAIT

from .q_config import ALGORITHMS
from .q_table import QTable

if TYPE_CHECKING:
    from rescue_env.entities import Agent
    from rescue_env.env import GridRescueEnvironment


# Nearest-fire direction buckets
FIRE_NORTH = 0
FIRE_EAST = 1
FIRE_SOUTH = 2
FIRE_WEST = 3
FIRE_HERE = 4
FIRE_NONE = 5


def _level(value: float, maximum: float, levels: int) -> int:
    """Discretize value/maximum into 0..levels-1 (0 when maximum is 0)."""
    if maximum <= 0:
        return 0
    return max(0, min(levels - 1, math.floor(value / maximum * levels)))


def fire_direction(row: int, col: int, fire: Optional[tuple]) -> int:
    """Bucket of the dominant axis towards a fire cell."""
    if fire is None:
        return FIRE_NONE
    r, c = fire
    dr = abs(row - r)
    dc = abs(col - c)
    if r < row and dr >= dc:
        return FIRE_NORTH
    if c > col and dc > dr:
        return FIRE_EAST
    if r > row and dr >= dc:
        return FIRE_SOUTH
    if c < col and dc > dr:
        return FIRE_WEST
    return FIRE_HERE


class TabularPolicy:
    """
    Epsilon-greedy tabular policy with a Q-learning or SARSA update.

    Args:
        q_table: Shared value table (created empty if omitted)
        algorithm: "qlearning" or "sarsa"
        learning_rate: alpha
        discount_factor: gamma
        rng: Random source for exploration and tie-breaks
    """

    def __init__(
        self,
        q_table: Optional[QTable] = None,
        algorithm: str = "qlearning",
        learning_rate: float = 0.1,
        discount_factor: float = 0.9,
        rng: Optional[random.Random] = None,
    ):
        if algorithm not in ALGORITHMS:
            raise ValueError(f"Invalid algorithm: {algorithm}. Must be one of {list(ALGORITHMS)}")
        self.q_table = q_table if q_table is not None else QTable()
        self.algorithm = algorithm
        self.learning_rate = learning_rate
        self.discount_factor = discount_factor
        self._rng = rng or random.Random()

    def abstract_state(self, env: "GridRescueEnvironment", agent: "Agent") -> str:
        """
        Compact key of an agent's situation:
        r{row}c{col}_w{water}_h{hp}_s{breathing}_fd{fire direction}_smk{smoke}
        """
        fire = env.grid.find_nearest_fire(agent.row, agent.col)
        direction = fire_direction(agent.row, agent.col, fire)

        water = _level(agent.water, agent.max_water, 3)
        hp = _level(agent.hp, agent.max_hp, 3)
        breathing = _level(agent.breathing_charge, agent.max_breathing_charge, 2)

        tile = env.grid.get_tile(agent.row, agent.col)
        smoke = tile.smoke_level[0] if tile is not None else "U"

        return f"r{agent.row}c{agent.col}_w{water}_h{hp}_s{breathing}_fd{direction}_smk{smoke}"

    def choose_action(
        self,
        state: str,
        legal_actions: List[int],
        epsilon: float,
        force_exploit: bool = False,
    ) -> int:
        """
        Epsilon-greedy selection over the legal actions.

        Exact ties in the greedy scan are resolved by replacing the current
        best with probability 0.5, scanning in the given order.
        """
        if not legal_actions:
            return WAIT

        if not force_exploit and self._rng.random() < epsilon:
            return self._rng.choice(legal_actions)

        values = self.q_table.state_values(state)
        best_action = legal_actions[0]
        best_value = values.get(best_action, 0.0)
        for action in legal_actions[1:]:
            value = values.get(action, 0.0)
            if value > best_value:
                best_value = value
                best_action = action
            elif value == best_value and self._rng.random() < 0.5:
                best_action = action
        return best_action

    def q_learning_target(self, reward: float, next_state: str, next_legal_actions: List[int]) -> float:
        best_next = -math.inf
        for action in next_legal_actions:
            best_next = max(best_next, self.q_table.get(next_state, action))
        if best_next == -math.inf:
            best_next = 0.0
        return reward + self.discount_factor * best_next

    def sarsa_target(self, reward: float, next_state: str, next_action: int) -> float:
        return reward + self.discount_factor * self.q_table.get(next_state, next_action)

    def learn(
        self,
        state: str,
        action: int,
        reward: float,
        next_state: str,
        next_legal_actions: List[int],
        next_action: Optional[int] = None,
    ) -> float:
        """
        One temporal-difference update of Q(state, action).

        SARSA uses the supplied next action; without one (terminal or
        death transitions) the Q-learning target is used.

        Returns:
            The new value of Q(state, action)
        """
        if self.algorithm == "sarsa" and next_action is not None:
            target = self.sarsa_target(reward, next_state, next_action)
        else:
            target = self.q_learning_target(reward, next_state, next_legal_actions)

        old = self.q_table.get(state, action)
        new = old + self.learning_rate * (target - old)
        self.q_table.set(state, action, new)
        return new
