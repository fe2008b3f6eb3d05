"""
Configuration dataclass for tabular Q-learning / SARSA training.

Keeps training runs reproducible: every hyperparameter lives here and is
dumped next to the logs of each experiment.
"""

from dataclasses import dataclass, asdict
import json

ALGORITHMS = ("qlearning", "sarsa")


@dataclass
class QLearningConfig:
    """
    Complete training configuration for reproducible experiments.
    """

    # Experiment metadata
    scenario: str = "office"               # Scenario name in configs.yaml
    experiment_name: str = "baseline"      # Name for logging
    seed: int = 42                         # Random seed for reproducibility

    # Learning rule
    algorithm: str = "qlearning"           # "qlearning" or "sarsa"
    learning_rate: float = 0.1             # alpha
    discount_factor: float = 0.9           # gamma

    # Exploration schedule (decayed once per finished episode)
    epsilon_start: float = 1.0
    epsilon_decay: float = 0.995
    epsilon_min: float = 0.01

    # Training configuration
    num_episodes: int = 1000
    max_steps_per_episode: int = 200

    # Reward shaping (on top of the action executor's rewards)
    hp_loss_weight: float = 1.5            # Penalty per hp lost in a step
    fire_reduction_bonus: float = 3.0      # Per fire that went out this step (firefighters)
    all_fires_out_bonus: float = 50.0      # When the last fire goes out during a step
    death_penalty: float = 50.0
    episode_success_bonus: float = 200.0   # All fires out and a learning firefighter alive

    # Logging configuration
    log_interval: int = 10                 # Print every N episodes
    progress_interval: int = 30            # Progress callback every N steps inside an episode
    use_tensorboard: bool = False          # Enable TensorBoard logging

    def __post_init__(self):
        if self.algorithm not in ALGORITHMS:
            raise ValueError(f"Invalid algorithm: {self.algorithm}. Must be one of {list(ALGORITHMS)}")

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return asdict(self)

    def save(self, path: str):
        """Save config to JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: str) -> 'QLearningConfig':
        """Load config from JSON file."""
        with open(path, 'r') as f:
            config_dict = json.load(f)
        return cls(**config_dict)

    @classmethod
    def get_default(cls, scenario: str) -> 'QLearningConfig':
        """
        Get default config for a scenario.

        Scenario-specific training overrides come from configs.yaml.
        """
        from rescue_env.scenarios import training_overrides

        overrides = training_overrides(scenario)
        return cls(scenario=scenario, experiment_name=f"{scenario}_baseline", **overrides)

    def __repr__(self) -> str:
        """Pretty print config."""
        lines = ["QLearningConfig("]
        for key, value in self.to_dict().items():
            lines.append(f"  {key}={value},")
        lines.append(")")
        return "\n".join(lines)
