from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Optional


@dataclass(frozen=True)
class PolicyStats:
    """Read-only summary of a policy, recomputed on every ``stats()`` call."""

    episodes: int
    epsilon: float
    gamma: float
    win_rate: float  # percent
    avg_moves: float
    min_moves: int
    max_moves: int
    avg_reward: float
    table_size: int = 0
    buffer_size: int = 0
    strategy: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)


class EpisodeStats:
    """Aggregates per-episode outcomes; keeps full counts and a bounded recent history."""

    def __init__(self, history: int = 1000):
        self.history = history
        self.reset()

    def reset(self) -> None:
        self.episodes = 0
        self.wins = 0
        self.total_moves = 0
        self.min_moves: Optional[int] = None
        self.max_moves: Optional[int] = None
        self.outcomes: Deque[bool] = deque(maxlen=self.history)
        self.moves: Deque[int] = deque(maxlen=self.history)
        self.rewards: Deque[float] = deque(maxlen=self.history)

    def record(self, won: bool, moves: int, reward: float = 0.0) -> None:
        self.episodes += 1
        self.wins += int(won)
        self.total_moves += moves
        self.min_moves = moves if self.min_moves is None else min(self.min_moves, moves)
        self.max_moves = moves if self.max_moves is None else max(self.max_moves, moves)
        self.outcomes.append(bool(won))
        self.moves.append(int(moves))
        self.rewards.append(float(reward))

    @property
    def win_rate(self) -> float:
        return self.wins / self.episodes if self.episodes else 0.0

    def recent_win_rate(self, window: int) -> float:
        recent = list(self.outcomes)[-window:]
        return sum(recent) / len(recent) if recent else 0.0

    def recent_mean(self, values: Deque, window: int) -> float:
        recent = list(values)[-window:]
        return float(sum(recent) / len(recent)) if recent else 0.0

    def snapshot(self, *, epsilon: float, gamma: float, **kwargs: Any) -> PolicyStats:
        avg_moves = self.total_moves / self.episodes if self.episodes else 0.0
        return PolicyStats(
            episodes=self.episodes,
            epsilon=epsilon,
            gamma=gamma,
            win_rate=round(self.win_rate * 100, 2),
            avg_moves=round(avg_moves, 2),
            min_moves=self.min_moves or 0,
            max_moves=self.max_moves or 0,
            avg_reward=round(self.recent_mean(self.rewards, 100), 2),
            **kwargs,
        )
