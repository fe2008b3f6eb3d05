"""
Command-line entry point for tabular training.

Examples:
    gridrescue-train --scenario small_room --episodes 300
    gridrescue-train --algorithm sarsa --load-table office.json --save-table office.json
"""

import argparse
import os
import sys

from .q_config import QLearningConfig, ALGORITHMS
from .q_table import QTable, SnapshotFormatError
from .trainer import TabularTrainer
from .logging_utils import ExperimentLogger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Train rescue agents with tabular Q-learning / SARSA')
    parser.add_argument('--scenario', type=str, default='office', help='Scenario name from configs.yaml (default: office)')
    parser.add_argument('--algorithm', type=str, choices=list(ALGORITHMS), default=None,
                        help='Learning rule (default: qlearning)')
    parser.add_argument('--episodes', type=int, default=None, help='Training episodes (default: scenario setting)')
    parser.add_argument('--max-steps', type=int, default=None, help='Steps per episode (default: scenario setting)')
    parser.add_argument('--seed', type=int, default=None, help='Random seed (default: 42)')
    parser.add_argument('--config', type=str, default=None, help='QLearningConfig JSON file (overrides scenario defaults)')
    parser.add_argument('--log-dir', type=str, default='logs', help='Base directory for experiment logs')
    parser.add_argument('--tensorboard', action='store_true', help='Also log to TensorBoard (needs torch)')
    parser.add_argument('--load-table', type=str, default=None, help='Continue from a JSON Q-table snapshot')
    parser.add_argument('--save-table', type=str, default=None, help='Write the trained Q-table as JSON')
    parser.add_argument('--eval-episodes', type=int, default=5, help='Evaluation runs after training (0 to skip)')
    parser.add_argument('--quiet', action='store_true', help='Only print errors and the final summary')
    return parser


def load_table(path: str) -> QTable:
    with open(path, 'r') as f:
        return QTable.from_json(f.read())


def save_table(q_table: QTable, path: str) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, 'w') as f:
        f.write(q_table.to_json())


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.config:
        config = QLearningConfig.load(args.config)
    else:
        config = QLearningConfig.get_default(args.scenario)
    if args.algorithm is not None:
        config.algorithm = args.algorithm
    if args.episodes is not None:
        config.num_episodes = args.episodes
    if args.max_steps is not None:
        config.max_steps_per_episode = args.max_steps
    if args.seed is not None:
        config.seed = args.seed
    if args.tensorboard:
        config.use_tensorboard = True
    config.experiment_name = f"{config.scenario}_{config.algorithm}"

    q_table = None
    if args.load_table:
        try:
            q_table = load_table(args.load_table)
        except (OSError, SnapshotFormatError) as e:
            print(f"Error: could not load Q-table from {args.load_table}: {e}")
            return 1
        print(f"Loaded Q-table with {len(q_table)} states from {args.load_table}")

    logger = ExperimentLogger(args.log_dir, config.experiment_name, use_tensorboard=config.use_tensorboard)
    config.save(os.path.join(logger.exp_dir, "config.json"))

    trainer = TabularTrainer(config, q_table=q_table, logger=logger, verbose=not args.quiet)
    try:
        result = trainer.train()
    except KeyboardInterrupt:
        print("\n\n⚠️ Training interrupted by user")
        trainer.stop()
        result = None

    if args.save_table:
        save_table(trainer.q_table, args.save_table)
        print(f"Q-table saved to: {args.save_table}")

    if result is not None and args.eval_episodes > 0:
        eval_summary = trainer.evaluate(num_episodes=args.eval_episodes)
        logger.log_eval(result.episodes_completed, eval_summary)
        print(f"\nFinal Results:")
        print(f"   Score: {eval_summary['score_mean']:.1f} ± {eval_summary['score_std']:.1f}")
        print(f"   Victims Rescued: {eval_summary['victims_rescued_mean']:.1f}")
        print(f"   Fires Left: {eval_summary['fires_active_mean']:.1f}")

    logger.plot_value_map(trainer.q_table, trainer.env.grid.height, trainer.env.grid.width)
    logger.close()

    if result is not None and result.errors:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
