from __future__ import annotations

import json
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Deque, Dict, List, Optional

import numpy as np

from .env import Action, MazeEnv

if TYPE_CHECKING:
    from .policy import BasePolicy
    from .scheduler import AutoEpsilonScheduler

logger = logging.getLogger(__name__)


@dataclass
class Experience:
    state: np.ndarray
    action: Action
    reward: float
    next_state: np.ndarray
    terminal: bool


class ReplayBuffer:
    """Capacity-bounded FIFO of experiences; the oldest entries fall off first."""

    def __init__(self, capacity: int = 10000):
        self.capacity = capacity
        self.buffer: Deque[Experience] = deque(maxlen=capacity)

    def push(self, experience: Experience) -> None:
        self.buffer.append(experience)

    def sample(self, batch_size: int, rng: Optional[np.random.Generator] = None) -> List[Experience]:
        rng = rng if rng is not None else np.random.default_rng()
        indices = rng.integers(len(self.buffer), size=batch_size)
        return [self.buffer[i] for i in indices]

    def __len__(self) -> int:
        return len(self.buffer)


class EpisodeRunner:
    """Headless tick loop binding one environment to one policy.

    Each tick: encode, select, step, update, then check the verdict. When an episode
    ends the policy records it and, if present, the scheduler retunes exploration.
    """

    def __init__(
        self,
        env: MazeEnv,
        policy: "BasePolicy",
        scheduler: Optional["AutoEpsilonScheduler"] = None,
        log_path: Optional[str] = None,
    ) -> None:
        self.env = env
        self.policy = policy
        self.scheduler = scheduler
        self.log_path = log_path

    def run_episode(self, max_steps: Optional[int] = None) -> Dict[str, Any]:
        env, policy = self.env, self.policy
        max_steps = max_steps or env.max_moves + 1
        start_ts = time.time()
        env.reset()
        policy.begin_episode(env)
        total_reward = 0.0
        result = None
        for _ in range(max_steps):
            state = policy.encode(env)
            action = policy.select_action(env)
            result = env.step(action)
            policy.update(env, state, action, result)
            total_reward += result.reward
            if result.terminal:
                break

        won = bool(result is not None and result.won)
        moves = env.state.moves
        policy.finish_episode(won, moves, total_reward)
        if self.scheduler is not None:
            self.scheduler.on_episode_end(policy, won, moves, total_reward)

        episode_summary = {
            "episode": env.episode,
            "mode": env.mode.value,
            "won": won,
            "verdict": result.verdict.value if result is not None else "ongoing",
            "moves": moves,
            "reward": round(total_reward, 3),
            "epsilon": round(policy.epsilon, 6),
            "seconds": round(time.time() - start_ts, 4),
        }
        if self.log_path:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(episode_summary) + "\n")
        return episode_summary

    def train(self, episodes: int, max_steps: Optional[int] = None) -> List[Dict[str, Any]]:
        self.policy.start_training()
        summaries = []
        try:
            for _ in range(episodes):
                summaries.append(self.run_episode(max_steps))
        finally:
            self.policy.stop_training()
        wins = sum(1 for s in summaries if s["won"])
        logger.info("Trained %d episodes in %s mode: %d wins", episodes, self.env.mode.value, wins)
        return summaries
