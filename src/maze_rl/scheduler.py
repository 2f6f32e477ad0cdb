from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Deque, Dict, NamedTuple, Union

from .modes import GameMode, mode_spec
from .policy import MAX_DECAY, MIN_DECAY, clamp_decay

if TYPE_CHECKING:
    from .policy import BasePolicy

logger = logging.getLogger(__name__)

TINY_MAZE_SIZE = 21
HIGH_SUCCESS = 0.8
LOW_SUCCESS = 0.1
MAX_BUMPED_EPSILON = 0.95


def decay_for_horizon(start: float, end: float, horizon: int) -> float:
    """Per-episode multiplicative decay taking ``start`` to ``end`` over ``horizon`` episodes."""
    horizon = max(1, int(horizon))
    if end > 0 and start > 0:
        decay = (end / start) ** (1.0 / horizon)
    else:
        decay = (0.01 / max(start, 0.01)) ** (1.0 / horizon)
    return clamp_decay(decay)


@dataclass(frozen=True)
class EpsilonSchedule:
    start: float
    end: float
    horizon: int
    decay: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.end <= self.start <= 1.0:
            raise ValueError(f"Epsilon schedule needs 0 <= end <= start <= 1, got start={self.start} end={self.end}")
        if not MIN_DECAY <= self.decay <= MAX_DECAY:
            object.__setattr__(self, "decay", clamp_decay(self.decay))

    @classmethod
    def from_horizon(cls, start: float, end: float, horizon: int) -> "EpsilonSchedule":
        return cls(start=start, end=end, horizon=horizon, decay=decay_for_horizon(start, end, horizon))

    def value_at(self, episode: int) -> float:
        return max(self.end, self.start * self.decay ** episode)


class WindowStats(NamedTuple):
    success: float
    median_moves: int
    avg_reward: float
    n: int


class AutoEpsilonScheduler:
    """Retunes a policy's epsilon and decay from its recent success rate.

    Sustained success speeds up the move to exploitation; sustained failure bumps
    epsilon back up and slows the decay. Nothing changes until half a window of
    episodes has been recorded.
    """

    def __init__(self, mode: Union[str, GameMode] = GameMode.CLASSIC, maze_size: int = 21, window: int = 20):
        self.mode = GameMode.parse(mode)
        self.maze_size = maze_size
        self.window = window
        self.history: Deque[Dict[str, float]] = deque(maxlen=window)
        spec = mode_spec(self.mode)
        self.target_end = spec.target_epsilon_end
        self.bump = spec.low_success_bump

    def initial_defaults(self) -> EpsilonSchedule:
        if self.mode == GameMode.CLASSIC and self.maze_size <= TINY_MAZE_SIZE:
            start, end, decay = 0.6, 0.05, 0.97
        else:
            start, end, decay = mode_spec(self.mode).schedule_seed
        return EpsilonSchedule(start=start, end=end, horizon=0, decay=decay)

    def record_episode(self, won: bool, moves: int, reward: float) -> None:
        self.history.append({"win": bool(won), "moves": int(moves), "reward": float(reward)})

    def window_stats(self) -> WindowStats:
        history = list(self.history)
        n = len(history) or 1
        success = sum(1 for h in history if h["win"]) / n
        moves = sorted(h["moves"] for h in history if h["moves"] > 0)
        median_moves = int(moves[len(moves) // 2]) if moves else 0
        avg_reward = sum(h["reward"] for h in history) / n
        return WindowStats(success, median_moves, avg_reward, len(history))

    def on_episode_end(self, policy: "BasePolicy", won: bool, moves: int, reward: float) -> WindowStats:
        self.record_episode(won, moves, reward)
        stats = self.window_stats()
        epsilon = policy.epsilon
        decay = policy.epsilon_decay

        if stats.n >= self.window / 2:
            if stats.success >= HIGH_SUCCESS:
                decay = clamp_decay(decay * 0.97)
                policy.epsilon = max(policy.epsilon_min, epsilon * 0.9)
                logger.info("High success %.2f: epsilon %.4f -> %.4f", stats.success, epsilon, policy.epsilon)
            elif stats.success <= LOW_SUCCESS:
                decay = clamp_decay((decay + 1) / 2)
                policy.epsilon = min(MAX_BUMPED_EPSILON, epsilon + self.bump)
                logger.info("Low success %.2f: epsilon %.4f -> %.4f", stats.success, epsilon, policy.epsilon)

        policy.epsilon_min = min(policy.epsilon, max(0.01, self.target_end))
        policy.epsilon_decay = clamp_decay(decay)
        return stats
