from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np

from .env import Action, MazeEnv, StepResult
from .stats import EpisodeStats, PolicyStats

logger = logging.getLogger(__name__)

MIN_DECAY = 0.9
MAX_DECAY = 0.9999


def clamp_decay(decay: float) -> float:
    return min(MAX_DECAY, max(MIN_DECAY, decay))


@dataclass
class PlannerConfig:
    enabled: bool = False
    budget_ms: float = 20.0
    max_depth: int = 25
    c: float = 1.2


@dataclass
class PolicyConfig:
    """Caller overrides; ``None`` falls back to the policy's own default."""

    epsilon: Optional[float] = None
    epsilon_min: Optional[float] = None
    epsilon_decay: Optional[float] = None
    gamma: Optional[float] = None
    learning_rate: Optional[float] = None
    planner: PlannerConfig = field(default_factory=PlannerConfig)
    seed: Optional[int] = None


class BasePolicy:
    """Shared epsilon bookkeeping, training switch and episode statistics.

    Subclasses implement ``encode``, ``select_action``, ``update`` and ``_table_size`` /
    ``_buffer_size``; the episode runner drives them in that order every tick.
    """

    strategy = "base"
    default_epsilon = 0.9
    default_decay = 0.995
    default_gamma = 0.95
    default_learning_rate = 0.1
    decay_per_episode = True

    def __init__(self, config: Optional[PolicyConfig] = None):
        self.config = config or PolicyConfig()
        cfg = self.config
        self.rng = np.random.default_rng(cfg.seed)
        self.epsilon = self.default_epsilon if cfg.epsilon is None else cfg.epsilon
        if not 0.0 <= self.epsilon <= 1.0:
            raise ValueError(f"epsilon must be within [0, 1], got {self.epsilon}")
        self.epsilon_start = self.epsilon
        self.epsilon_decay = clamp_decay(self.default_decay if cfg.epsilon_decay is None else cfg.epsilon_decay)
        self.epsilon_min = min(self.epsilon, 0.01 if cfg.epsilon_min is None else cfg.epsilon_min)
        self.gamma = cfg.gamma if cfg.gamma is not None else self.default_gamma
        self.learning_rate = self.default_learning_rate if cfg.learning_rate is None else cfg.learning_rate
        self.training = False
        self.episode_stats = EpisodeStats()

    def start_training(self) -> None:
        self.training = True

    def stop_training(self) -> None:
        self.training = False

    def decay_epsilon(self, rate: Optional[float] = None) -> None:
        rate = self.epsilon_decay if rate is None else rate
        self.epsilon = max(self.epsilon_min, self.epsilon * rate)

    # Tick interface -------------------------------------------------------
    def begin_episode(self, env: MazeEnv) -> None:
        return

    def encode(self, env: MazeEnv) -> Any:
        raise NotImplementedError

    def select_action(self, env: MazeEnv) -> Action:
        raise NotImplementedError

    def update(self, env: MazeEnv, state: Any, action: Action, result: StepResult) -> None:
        raise NotImplementedError

    # Episode bookkeeping --------------------------------------------------
    def finish_episode(self, won: bool, moves: int, reward: float = 0.0) -> None:
        self.episode_stats.record(won, moves, reward)
        if self.decay_per_episode:
            self.decay_epsilon()
        logger.debug(
            "%s episode %d: won=%s moves=%d epsilon=%.4f",
            self.strategy,
            self.episode_stats.episodes,
            won,
            moves,
            self.epsilon,
        )

    def stats(self) -> PolicyStats:
        return self.episode_stats.snapshot(
            epsilon=self.epsilon,
            gamma=self.gamma,
            table_size=self._table_size(),
            buffer_size=self._buffer_size(),
            strategy=self._strategy_label(),
            extra=self._extra_stats(),
        )

    def reset_stats(self) -> None:
        self.episode_stats.reset()
        self.epsilon = self.epsilon_start

    def _strategy_label(self) -> str:
        return self.strategy

    def _table_size(self) -> int:
        return 0

    def _buffer_size(self) -> int:
        return 0

    def _extra_stats(self) -> Dict[str, Any]:
        return {}
