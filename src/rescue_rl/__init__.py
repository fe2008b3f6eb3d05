"""
Tabular reinforcement learning for the grid rescue environment.

Usage:
    from rescue_rl import QLearningConfig, TabularTrainer

    config = QLearningConfig.get_default("small_room")
    trainer = TabularTrainer(config)
    result = trainer.train()
    print(result.average_reward())
"""

from .q_config import QLearningConfig
from .q_table import QTable, SnapshotFormatError
from .tabular_agent import TabularPolicy
from .reward_shaper import StepRewardShaper
from .trainer import TabularTrainer, TrainingResult, NoLearningAgentsError

__all__ = [
    "QLearningConfig",
    "QTable",
    "SnapshotFormatError",
    "TabularPolicy",
    "StepRewardShaper",
    "TabularTrainer",
    "TrainingResult",
    "NoLearningAgentsError",
]
