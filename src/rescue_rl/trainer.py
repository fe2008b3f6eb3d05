"""
Tabular Q-learning / SARSA training loop.

One training step:
1. Every active learner observes its state and picks an action
2. Every learner executes its action (rewards collected)
3. Rule-based agents act and the world advances one tick
4. Every learner gets its shaped reward and updates the shared Q-table

The Q-table is shared by all learners and survives episode resets.
Cancellation is only checked between steps, so a stopped run never leaves
a half-applied update behind.
"""

import random
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import numpy as np

from rescue_env.env import GridRescueEnvironment
from rescue_env.scenarios import build_scenario

from .q_config import QLearningConfig
from .q_table import QTable
from .reward_shaper import StepRewardShaper
from .tabular_agent import TabularPolicy
from .logging_utils import ExperimentLogger


class NoLearningAgentsError(RuntimeError):
    """A training episode started without any learned agent to train."""


class TrainingStopped(Exception):
    """Raised inside an episode when cancellation was requested."""


@dataclass
class TrainingResult:
    """Outcome of TabularTrainer.train()."""

    episodes_completed: int = 0
    episode_rewards: List[float] = field(default_factory=list)
    episode_summaries: List[Dict] = field(default_factory=list)
    final_epsilon: float = 1.0
    stopped: bool = False
    errors: List[str] = field(default_factory=list)
    q_states: int = 0

    def average_reward(self, last: int = 100) -> Optional[float]:
        """Mean reward over the last `last` finished episodes (None if none)."""
        if not self.episode_rewards:
            return None
        return float(np.mean(self.episode_rewards[-last:]))


class TabularTrainer:
    """
    Trains learned agents of one scenario with a shared tabular policy.

    Args:
        config: Training hyperparameters
        env: Environment to train in (built from config.scenario if omitted)
        q_table: Existing table to keep training (a new one if omitted)
        logger: Optional ExperimentLogger receiving one row per episode
        verbose: Print per-episode progress every config.log_interval episodes
    """

    def __init__(
        self,
        config: QLearningConfig,
        env: Optional[GridRescueEnvironment] = None,
        q_table: Optional[QTable] = None,
        logger: Optional[ExperimentLogger] = None,
        verbose: bool = True,
    ):
        self.config = config
        self.verbose = verbose
        self._rng = random.Random(config.seed)

        self.q_table = q_table if q_table is not None else QTable()
        self.policy = TabularPolicy(
            self.q_table,
            algorithm=config.algorithm,
            learning_rate=config.learning_rate,
            discount_factor=config.discount_factor,
            rng=self._rng,
        )

        if env is None:
            env = build_scenario(config.scenario, policy=self.policy, rng=self._rng)
        else:
            env.policy = self.policy
        self.env = env

        self.shaper = StepRewardShaper.from_config(config)
        self.logger = logger

        self.epsilon = config.epsilon_start
        self._stop_requested = False

    def stop(self) -> None:
        """Request cancellation; honoured at the next step boundary."""
        self._stop_requested = True

    def _should_stop(self, should_stop: Optional[Callable[[], bool]]) -> bool:
        if self._stop_requested:
            return True
        return should_stop is not None and bool(should_stop())

    def decay_epsilon(self) -> float:
        self.epsilon = max(self.config.epsilon_min, self.epsilon * self.config.epsilon_decay)
        return self.epsilon

    def run_episode(
        self,
        episode: int,
        epsilon: Optional[float] = None,
        should_stop: Optional[Callable[[], bool]] = None,
        on_progress: Optional[Callable[[Dict], None]] = None,
    ) -> Dict:
        """
        Run one training episode.

        Args:
            episode: 1-based episode number (for logs)
            epsilon: Exploration rate (current schedule value if omitted)
            should_stop: Polled before every step
            on_progress: Called every config.progress_interval steps

        Returns:
            Episode summary dict (reward, steps, epsilon, final stats, ...)

        Raises:
            NoLearningAgentsError: the reset environment has no learned agent
            TrainingStopped: cancellation was requested mid-episode
        """
        env = self.env
        policy = self.policy
        cfg = self.config
        eps = self.epsilon if epsilon is None else epsilon
        max_steps = cfg.max_steps_per_episode

        env.reset(is_training=True)
        self.shaper.reset()

        learners = env.learning_agents()
        if not learners:
            raise NoLearningAgentsError(f"No learning agents found to train in episode {episode}")

        total_reward = 0.0
        steps = 0
        for step in range(max_steps):
            if self._should_stop(should_stop):
                raise TrainingStopped(f"Training stopped in episode {episode} at step {step + 1}")
            steps = step + 1

            self.shaper.begin_step(env, learners)

            pending = {}
            for agent in learners:
                if agent.dead or agent.unconscious:
                    continue
                state = policy.abstract_state(env, agent)
                action = policy.choose_action(state, env.get_possible_actions(agent), eps)
                pending[agent.agent_id] = (state, action)

            action_rewards = {}
            for agent in learners:
                if agent.agent_id in pending:
                    action_rewards[agent.agent_id] = env.execute_action(agent, pending[agent.agent_id][1], training=True)

            env.step_world()

            episode_over = False
            for agent in learners:
                if agent.agent_id not in pending:
                    continue
                state, action = pending[agent.agent_id]
                reward, died = self.shaper.shape(agent, action_rewards[agent.agent_id], env)

                if died:
                    total_reward += reward
                    next_state = policy.abstract_state(env, agent)
                    policy.learn(state, action, reward, next_state, env.get_possible_actions(agent))
                    if self.verbose:
                        print(f"[Ep {episode}] Agent {agent.agent_id} died. Reward this step: {reward:.2f}")
                    episode_over = episode_over or env.is_episode_complete(step, max_steps, agent)
                    continue
                if agent.dead or agent.unconscious:
                    continue

                total_reward += reward
                next_state = policy.abstract_state(env, agent)
                next_legal = env.get_possible_actions(agent)
                next_action = None
                if policy.algorithm == "sarsa":
                    next_action = policy.choose_action(next_state, next_legal, eps)
                policy.learn(state, action, reward, next_state, next_legal, next_action)

                if env.is_episode_complete(step, max_steps, agent):
                    episode_over = True

            if episode_over or env.is_episode_complete(step, max_steps):
                break

            if on_progress is not None and step > 0 and step % cfg.progress_interval == 0:
                on_progress({
                    "episode": episode,
                    "step": step + 1,
                    "epsilon": eps,
                    "reward": total_reward,
                    **env.get_stats(),
                })

        bonus = self.shaper.episode_bonus(env, learners)
        if bonus and self.verbose:
            print(f"Episode {episode}: All fires extinguished! +{bonus:.0f} bonus.")
        total_reward += bonus

        return {
            "episode": episode,
            "reward": total_reward,
            "steps": steps,
            "epsilon": eps,
            "q_states": len(self.q_table),
            **env.get_stats(),
            **self.shaper.get_episode_summary(),
        }

    def train(
        self,
        num_episodes: Optional[int] = None,
        should_stop: Optional[Callable[[], bool]] = None,
        on_progress: Optional[Callable[[Dict], None]] = None,
    ) -> TrainingResult:
        """
        Main training loop.

        Epsilon decays once after every finished episode. An episode without
        learned agents is recorded as an error and skipped; training goes on.
        A stopped episode is discarded (no reward recorded, no decay).
        """
        if num_episodes is None:
            num_episodes = self.config.num_episodes
        self._stop_requested = False
        result = TrainingResult(final_epsilon=self.epsilon)

        if self.verbose:
            print(f"\n{'='*60}")
            print(f"Starting training: {self.config.experiment_name}")
            print(f"Algorithm: {self.config.algorithm} | Episodes: {num_episodes} | "
                  f"Max steps: {self.config.max_steps_per_episode}")
            print(f"{'='*60}\n")

        for episode in range(1, num_episodes + 1):
            if self._should_stop(should_stop):
                result.stopped = True
                break

            try:
                summary = self.run_episode(episode, should_stop=should_stop, on_progress=on_progress)
            except TrainingStopped as e:
                if self.verbose:
                    print(str(e))
                result.stopped = True
                break
            except NoLearningAgentsError as e:
                print(f"Error in training episode {episode}: {e}")
                result.errors.append(str(e))
                continue

            result.episodes_completed += 1
            result.episode_rewards.append(summary["reward"])
            result.episode_summaries.append(summary)
            self.decay_epsilon()

            if self.logger is not None:
                self.logger.log_episode(summary)

            if self.verbose and episode % self.config.log_interval == 0:
                print(f"Ep {episode:5d} | "
                      f"Reward: {summary['reward']:8.2f} | "
                      f"Avg(100): {result.average_reward():8.2f} | "
                      f"eps: {self.epsilon:.4f} | "
                      f"Rescued: {summary['victims_rescued']:2d} | "
                      f"Fires: {summary['fires_active']:2d} | "
                      f"States: {summary['q_states']}")

        result.final_epsilon = self.epsilon
        result.q_states = len(self.q_table)

        if self.verbose:
            status = "stopped" if result.stopped else "complete"
            print(f"\nTraining {status} after {result.episodes_completed} episodes, "
                  f"{result.q_states} states in table")
        return result

    def evaluate(self, num_episodes: int = 5, max_turns: Optional[int] = None) -> Dict[str, float]:
        """
        Run full simulations with the learned policy in control (no learning).

        Learned agents explore with a small fixed rate, as in tick().

        Returns:
            summary: Aggregated statistics over the runs
        """
        env = self.env
        if max_turns is None:
            max_turns = env.config["max_turns"]

        previous = env.use_rl_agents
        env.use_rl_agents = True
        scores, rescued, dead, fires, turns = [], [], [], [], []
        try:
            for _ in range(num_episodes):
                env.reset()
                turn = 0
                while not env.is_simulation_complete(turn, max_turns):
                    env.tick()
                    turn += 1
                stats = env.get_stats()
                scores.append(stats["total_score"])
                rescued.append(stats["victims_rescued"])
                dead.append(stats["victims_dead"])
                fires.append(stats["fires_active"])
                turns.append(turn)
        finally:
            env.use_rl_agents = previous

        summary = {
            'score_mean': float(np.mean(scores)),
            'score_std': float(np.std(scores)),
            'victims_rescued_mean': float(np.mean(rescued)),
            'victims_dead_mean': float(np.mean(dead)),
            'fires_active_mean': float(np.mean(fires)),
            'turns_mean': float(np.mean(turns)),
        }
        if self.verbose:
            print(f"Eval complete: score={summary['score_mean']:.1f}±{summary['score_std']:.1f}")
        return summary
