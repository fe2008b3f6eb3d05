"""
Per-step reward shaping for learned rescue agents.

The action executor already returns a reward for each action. This module
adds the world-level terms that only make sense once the world has
advanced for the tick:

1. HP loss penalty: -hp_loss_weight per hp lost during the tick
2. Fire reduction: +bonus per fire that went out (firefighters only)
3. All fires out: +bonus when the last fire dies during the tick (firefighters only)
4. Death penalty: -death_penalty for the step an agent dies in
5. Episode success: +bonus at the end if no fire is left and a learned
   firefighter survived
"""

from typing import Dict, Iterable, TYPE_CHECKING

if TYPE_CHECKING:
    from rescue_env.entities import Agent
    from rescue_env.env import GridRescueEnvironment


class StepRewardShaper:
    """
    Computes shaped rewards around one world update.

    Usage per tick:
        shaper.begin_step(env, learners)   # before any learner acts
        ... learners act, world updates ...
        reward, died = shaper.shape(agent, action_reward, env)
    """

    def __init__(
        self,
        hp_loss_weight: float = 1.5,
        fire_reduction_bonus: float = 3.0,
        all_fires_out_bonus: float = 50.0,
        death_penalty: float = 50.0,
        episode_success_bonus: float = 200.0,
    ):
        self.w_hp_loss = hp_loss_weight
        self.fire_reduction_bonus = fire_reduction_bonus
        self.all_fires_out_bonus = all_fires_out_bonus
        self.death_penalty = death_penalty
        self.episode_success_bonus = episode_success_bonus

        self.fires_before = 0
        self.hp_before: Dict[int, float] = {}
        self.reset()

    @classmethod
    def from_config(cls, config) -> "StepRewardShaper":
        """Build from a QLearningConfig."""
        return cls(
            hp_loss_weight=config.hp_loss_weight,
            fire_reduction_bonus=config.fire_reduction_bonus,
            all_fires_out_bonus=config.all_fires_out_bonus,
            death_penalty=config.death_penalty,
            episode_success_bonus=config.episode_success_bonus,
        )

    def reset(self):
        """Reset internal state for new episode."""
        self.fires_before = 0
        self.hp_before = {}
        self.episode_deaths = 0
        self.episode_hp_lost = 0.0
        self.episode_fires_put_out = 0

    def begin_step(self, env: "GridRescueEnvironment", learners: Iterable["Agent"]) -> None:
        """Remember fire count and learner hp before anything happens this tick."""
        self.fires_before = env.grid.count_fires()
        self.hp_before = {agent.agent_id: agent.hp for agent in learners}

    def shape(self, agent: "Agent", action_reward: float, env: "GridRescueEnvironment"):
        """
        Shaped reward of one learner for the tick that just ended.

        Returns:
            (reward, died): died is True when the agent died during this tick
        """
        hp_before = self.hp_before.get(agent.agent_id, agent.hp)

        if agent.dead and hp_before > 0:
            self.episode_deaths += 1
            return action_reward - self.death_penalty, True

        reward = action_reward
        if agent.hp < hp_before:
            lost = hp_before - agent.hp
            reward -= lost * self.w_hp_loss
            self.episode_hp_lost += lost

        if agent.kind == "firefighter":
            fires_now = env.grid.count_fires()
            if fires_now < self.fires_before:
                reward += (self.fires_before - fires_now) * self.fire_reduction_bonus
                self.episode_fires_put_out += self.fires_before - fires_now
            if fires_now == 0 and self.fires_before > 0:
                reward += self.all_fires_out_bonus

        return reward, False

    def episode_bonus(self, env: "GridRescueEnvironment", learners: Iterable["Agent"]) -> float:
        """End-of-episode bonus: no fire left and a learned firefighter still alive."""
        if env.grid.count_fires() > 0:
            return 0.0
        if any(a.kind == "firefighter" and not a.dead for a in learners):
            return self.episode_success_bonus
        return 0.0

    def get_episode_summary(self) -> Dict[str, float]:
        return {
            "learner_deaths": self.episode_deaths,
            "learner_hp_lost": self.episode_hp_lost,
            "fires_put_out": self.episode_fires_put_out,
        }
