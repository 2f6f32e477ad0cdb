"""
Headless training demo: generates a maze, trains one policy in the chosen game mode and
prints a stats snapshot. Episode summaries can be appended to a JSON-lines log.
"""

import argparse
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT / "src"))

import numpy as np

from maze_rl import (
    AutoEpsilonScheduler,
    EnvConfig,
    EpisodeRunner,
    EpsilonSchedule,
    GameMode,
    HybridPolicy,
    LinearQPolicy,
    MazeEnv,
    PlannerConfig,
    PolicyConfig,
    TabularQPolicy,
    generate_maze,
)
from maze_rl.logging_config import setup_logging


def build_policy(args: argparse.Namespace, grid, mode: GameMode, schedule):
    config = PolicyConfig(
        learning_rate=args.learning_rate,
        gamma=args.gamma,
        epsilon=schedule.start if schedule else None,
        epsilon_min=schedule.end if schedule else None,
        epsilon_decay=schedule.decay if schedule else None,
        planner=PlannerConfig(enabled=args.planner, budget_ms=args.planner_budget_ms),
        seed=args.seed,
    )
    if args.policy == "tabular":
        return TabularQPolicy(grid, config)
    if args.policy == "hybrid":
        return HybridPolicy(grid, config)
    return LinearQPolicy(mode, config)


def main() -> None:
    parser = argparse.ArgumentParser(description="Train a maze policy headlessly.")
    parser.add_argument("--size", type=int, default=15, help="Odd maze side length (>= 5).")
    parser.add_argument("--mode", type=str, default="classic", choices=[m.value for m in GameMode])
    parser.add_argument("--policy", type=str, default="tabular", choices=["tabular", "hybrid", "linear"])
    parser.add_argument("--episodes", type=int, default=200)
    parser.add_argument("--max-steps", type=int, default=None)
    parser.add_argument("--epsilon-start", type=float, default=None)
    parser.add_argument("--epsilon-end", type=float, default=0.05)
    parser.add_argument("--horizon", type=int, default=None, help="Episodes over which epsilon decays to its end value.")
    parser.add_argument("--learning-rate", type=float, default=None)
    parser.add_argument("--gamma", type=float, default=None)
    parser.add_argument("--auto-tune", action="store_true", help="Adapt epsilon from recent success.")
    parser.add_argument("--planner", action="store_true", help="Use the UCB1 planner for action choice.")
    parser.add_argument("--planner-budget-ms", type=float, default=20.0)
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--log-path", type=str, default=None, help="Append JSON-lines episode summaries here.")
    parser.add_argument("--log-level", type=str, default="INFO")
    args = parser.parse_args()

    setup_logging(args.log_level)

    mode = GameMode.parse(args.mode)
    grid = generate_maze(args.size, args.size, np.random.default_rng(args.seed))
    env = MazeEnv(grid, EnvConfig(mode=mode, seed=args.seed))

    scheduler = AutoEpsilonScheduler(mode, maze_size=args.size) if args.auto_tune else None
    schedule = scheduler.initial_defaults() if scheduler else None
    if schedule is None and args.epsilon_start is not None:
        horizon = args.horizon or args.episodes
        schedule = EpsilonSchedule.from_horizon(args.epsilon_start, args.epsilon_end, horizon)
    policy = build_policy(args, grid, mode, schedule)

    runner = EpisodeRunner(env, policy, scheduler=scheduler, log_path=args.log_path)
    summaries = runner.train(args.episodes, max_steps=args.max_steps)
    wins = sum(1 for s in summaries if s["won"])
    print(f"{args.policy} on {args.size}x{args.size} {mode.value}: {wins}/{len(summaries)} wins")
    print(policy.stats())


if __name__ == "__main__":
    main()
