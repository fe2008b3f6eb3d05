"""
Experiment logging utilities for tabular rescue training.

This module provides:
1. CSV logging for training/evaluation metrics
2. Optional TensorBoard integration
3. Plotting utilities for analysis (reward curves, learned value map)
"""

import os
import csv
import re
from typing import Dict, Optional
from datetime import datetime
import matplotlib.pyplot as plt
import seaborn as sns
import numpy as np

try:
    from torch.utils.tensorboard import SummaryWriter
    TENSORBOARD_AVAILABLE = True
except ImportError:
    TENSORBOARD_AVAILABLE = False


TRAIN_COLUMNS = [
    'episode',
    'reward',
    'steps',
    'epsilon',
    'victims_rescued',
    'victims_dead',
    'fires_active',
    'total_score',
    'learner_deaths',
    'fires_put_out',
    'q_states',
]

EVAL_COLUMNS = [
    'episode',
    'eval_score_mean',
    'eval_score_std',
    'eval_victims_rescued_mean',
    'eval_victims_dead_mean',
    'eval_fires_active_mean',
    'eval_turns_mean',
]

_STATE_POSITION = re.compile(r"^r(\d+)c(\d+)_")


def moving_average(values, window: int = 100) -> np.ndarray:
    """Trailing mean over at most `window` values (shorter at the start)."""
    values = np.asarray(values, dtype=float)
    if values.size == 0:
        return values
    cumsum = np.cumsum(np.insert(values, 0, 0.0))
    out = np.empty_like(values)
    for i in range(values.size):
        start = max(0, i + 1 - window)
        out[i] = (cumsum[i + 1] - cumsum[start]) / (i + 1 - start)
    return out


class ExperimentLogger:
    """
    Logs training and evaluation metrics to CSV and optionally TensorBoard.
    """

    def __init__(
        self,
        log_dir: str,
        experiment_name: str,
        use_tensorboard: bool = False,
    ):
        """
        Initialize experiment logger.

        Args:
            log_dir: Base directory for logs (e.g., "logs/")
            experiment_name: Name of experiment (e.g., "office_baseline")
            use_tensorboard: Whether to use TensorBoard logging
        """
        self.log_dir = log_dir
        self.experiment_name = experiment_name
        self.use_tensorboard = use_tensorboard

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.exp_dir = os.path.join(log_dir, f"{experiment_name}_{timestamp}")
        os.makedirs(self.exp_dir, exist_ok=True)

        self.train_csv_path = os.path.join(self.exp_dir, "train_metrics.csv")
        self.eval_csv_path = os.path.join(self.exp_dir, "eval_metrics.csv")
        self._write_header(self.train_csv_path, TRAIN_COLUMNS)
        self._write_header(self.eval_csv_path, EVAL_COLUMNS)

        self.tb_writer = None
        if use_tensorboard:
            if TENSORBOARD_AVAILABLE:
                self.tb_writer = SummaryWriter(os.path.join(self.exp_dir, "tensorboard"))
            else:
                print("Warning: TensorBoard requested but torch is not installed, logging to CSV only")

        print(f"📊 Experiment logger initialized: {self.exp_dir}")

    @staticmethod
    def _write_header(path: str, columns):
        with open(path, 'w', newline='') as f:
            csv.writer(f).writerow(columns)

    def log_episode(self, summary: Dict):
        """
        Log training metrics for one finished episode.

        Args:
            summary: Episode summary from TabularTrainer.run_episode()
        """
        with open(self.train_csv_path, 'a', newline='') as f:
            writer = csv.writer(f)
            writer.writerow([summary.get(col, 0) for col in TRAIN_COLUMNS])

        if self.tb_writer:
            episode = summary['episode']
            self.tb_writer.add_scalar('Episode/reward', summary['reward'], episode)
            self.tb_writer.add_scalar('Episode/steps', summary['steps'], episode)
            self.tb_writer.add_scalar('Episode/epsilon', summary['epsilon'], episode)
            self.tb_writer.add_scalar('Rescue/victims_rescued', summary.get('victims_rescued', 0), episode)
            self.tb_writer.add_scalar('Fire/fires_active', summary.get('fires_active', 0), episode)
            self.tb_writer.add_scalar('Table/q_states', summary.get('q_states', 0), episode)

    def log_eval(self, episode: int, eval_summary: Dict[str, float]):
        """
        Log evaluation metrics.

        Args:
            episode: Training episode when eval was performed
            eval_summary: Dict from TabularTrainer.evaluate()
        """
        with open(self.eval_csv_path, 'a', newline='') as f:
            writer = csv.writer(f)
            writer.writerow([
                episode,
                eval_summary['score_mean'],
                eval_summary['score_std'],
                eval_summary['victims_rescued_mean'],
                eval_summary['victims_dead_mean'],
                eval_summary['fires_active_mean'],
                eval_summary['turns_mean'],
            ])

        if self.tb_writer:
            self.tb_writer.add_scalar('Eval/score_mean', eval_summary['score_mean'], episode)
            self.tb_writer.add_scalar('Eval/victims_rescued_mean', eval_summary['victims_rescued_mean'], episode)

    def close(self):
        """Close logger and save final plots."""
        if self.tb_writer:
            self.tb_writer.close()

        self.plot_training_curves()
        print(f"✅ Logs saved to: {self.exp_dir}")

    def plot_training_curves(self, window: int = 100) -> Optional[str]:
        """
        Generate training curve plots from logged data.

        Returns:
            Path of the saved figure, or None when nothing was logged
        """
        with open(self.train_csv_path, 'r') as f:
            train_data = list(csv.DictReader(f))

        if not train_data:
            return None

        episodes = [int(row['episode']) for row in train_data]
        rewards = [float(row['reward']) for row in train_data]
        rescued = [int(row['victims_rescued']) for row in train_data]
        fires = [int(row['fires_active']) for row in train_data]
        epsilons = [float(row['epsilon']) for row in train_data]

        sns.set_style("whitegrid")
        fig, axes = plt.subplots(2, 2, figsize=(12, 8))
        fig.suptitle(f'Training Curves: {self.experiment_name}', fontsize=14, fontweight='bold')

        axes[0, 0].plot(episodes, rewards, alpha=0.3, label='episode')
        axes[0, 0].plot(episodes, moving_average(rewards, window), linewidth=2, label=f'mean (last {window})')
        axes[0, 0].set_xlabel('Episode')
        axes[0, 0].set_ylabel('Reward')
        axes[0, 0].set_title('Episode Reward')
        axes[0, 0].legend()

        axes[0, 1].plot(episodes, rescued, linewidth=2, color='green')
        axes[0, 1].set_xlabel('Episode')
        axes[0, 1].set_ylabel('Victims Rescued')
        axes[0, 1].set_title('Rescue Performance')

        axes[1, 0].plot(episodes, fires, linewidth=2, color='orange')
        axes[1, 0].set_xlabel('Episode')
        axes[1, 0].set_ylabel('Active Fires at End')
        axes[1, 0].set_title('Fire Suppression')

        axes[1, 1].plot(episodes, epsilons, linewidth=2, color='red')
        axes[1, 1].set_xlabel('Episode')
        axes[1, 1].set_ylabel('Epsilon')
        axes[1, 1].set_title('Exploration Rate')
        axes[1, 1].set_ylim([0, 1.05])

        plt.tight_layout()
        plot_path = os.path.join(self.exp_dir, 'training_curves.png')
        plt.savefig(plot_path, dpi=150, bbox_inches='tight')
        plt.close(fig)

        print(f"📈 Training curves saved to: {plot_path}")
        return plot_path

    def plot_value_map(self, q_table, height: int, width: int, save_name: str = "value_map.png") -> str:
        """
        Heatmap of the best learned value per grid cell.

        States are grouped by the position encoded in their key; each cell
        shows the maximum value over all its states and actions (NaN if the
        cell was never visited).
        """
        grid = np.full((height, width), np.nan)
        for state in q_table.states():
            match = _STATE_POSITION.match(state)
            if not match:
                continue
            r, c = int(match.group(1)), int(match.group(2))
            if not (0 <= r < height and 0 <= c < width):
                continue
            values = q_table.state_values(state).values()
            if not values:
                continue
            best = max(values)
            grid[r, c] = best if np.isnan(grid[r, c]) else max(grid[r, c], best)

        plt.figure(figsize=(max(6, width * 0.5), max(4, height * 0.5)))
        sns.heatmap(grid, cmap="RdYlGn", center=0.0, square=True, cbar_kws={'label': 'max Q'})
        plt.title(f"Learned values: {self.experiment_name}", fontsize=14)
        plt.tight_layout()
        save_path = os.path.join(self.exp_dir, save_name)
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        plt.close()

        print(f"📊 Value map saved to: {save_path}")
        return save_path
