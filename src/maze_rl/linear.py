from __future__ import annotations

import dataclasses
import logging
import math
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, Optional, Sequence, Union

import numpy as np

from .encoding import encode_state, manhattan_progress, state_vector_size
from .env import Action, MazeEnv, StepResult
from .modes import GameMode, mode_spec
from .policy import BasePolicy, PolicyConfig
from .rl import Experience, ReplayBuffer
from .world import Cell

logger = logging.getLogger(__name__)


@dataclass
class LinearConfig:
    batch_size: int = 32
    memory_size: int = 10000
    train_every: int = 4
    td_error_clip: float = 100.0
    loss_history: int = 1000


class LinearQHead:
    """``Q(s, a) = w_a . s + b_a`` with one weight row per action."""

    def __init__(self, input_size: int, n_actions: int, rng: np.random.Generator):
        limit = math.sqrt(6.0 / input_size)
        self.weights = rng.uniform(-limit, limit, size=(n_actions, input_size))
        self.biases = np.zeros(n_actions, dtype=np.float64)

    def predict(self, state: np.ndarray) -> np.ndarray:
        return self.weights @ state + self.biases

    def q(self, state: np.ndarray, action: int) -> float:
        return float(self.weights[action] @ state + self.biases[action])

    def apply_td(self, state: np.ndarray, action: int, error: float, learning_rate: float) -> None:
        self.weights[action] += learning_rate * error * state
        self.biases[action] += learning_rate * error


class LinearQPolicy(BasePolicy):
    """Linear function approximation over encoded state vectors with experience replay.

    Fog, survival and competitive modes act through a goal-seeking scorer instead of
    the linear head; every mode still trains the head from replay.
    """

    strategy = "linear"
    default_gamma = 0.99
    decay_per_episode = False

    def __init__(
        self,
        mode: Union[str, GameMode] = GameMode.CLASSIC,
        config: Optional[PolicyConfig] = None,
        linear: Optional[LinearConfig] = None,
    ):
        self.mode = GameMode.parse(mode)
        self.spec = mode_spec(self.mode)
        self.default_epsilon = self.spec.initial_epsilon
        self.default_decay = self.spec.epsilon_decay
        self.default_learning_rate = self.spec.learning_rate
        config = config or PolicyConfig()
        if self.mode == GameMode.FOG:
            config = dataclasses.replace(
                config,
                epsilon=self.spec.initial_epsilon,
                epsilon_decay=self.spec.epsilon_decay,
                learning_rate=self.spec.learning_rate,
            )
        super().__init__(config)
        self.linear = linear or LinearConfig()
        self.input_size = state_vector_size(self.mode)
        self.head = LinearQHead(self.input_size, len(Action), self.rng)
        self.memory = ReplayBuffer(self.linear.memory_size)
        self.losses: Deque[float] = deque(maxlen=self.linear.loss_history)
        self.total_steps = 0
        self.exploration_efficiency = 0.0

    # Tick interface -------------------------------------------------------
    def encode(self, env: MazeEnv) -> np.ndarray:
        return encode_state(env)

    def select_action(self, env: MazeEnv) -> Action:
        actions = env.valid_actions(extended=True)
        if not actions:
            return Action.MOVE_UP
        if self.spec.goal_seeking:
            return self._goal_seeking(env, actions)
        if self.training and self.rng.random() < self.epsilon:
            return actions[int(self.rng.integers(len(actions)))]
        q = self.head.predict(encode_state(env))
        best = actions[0]
        for action in actions[1:]:
            if q[action.value] > q[best.value]:
                best = action
        return best

    def update(self, env: MazeEnv, state: np.ndarray, action: Action, result: StepResult) -> None:
        if not self.training:
            return
        self.store_experience(state, action, result.reward, encode_state(env), result.terminal)
        self.total_steps += 1
        if self.total_steps % self.linear.train_every == 0 and len(self.memory) >= self.linear.batch_size:
            self.train_on_batch()
        if result.terminal and self.spec.partial_observability:
            self.exploration_efficiency = len(env.state.explored) / max(1, env.state.moves)

    # Goal-seeking scorer --------------------------------------------------
    def exploration_weight(self, progress: float) -> float:
        """Weight of the exploration term; raised only when long-run progress stalls."""
        episode = self.episode_stats.episodes
        weight = self.spec.exploration_weight
        if self.mode == GameMode.FOG:
            if episode > 200 and progress < 0.02:
                weight = max(weight, 0.4)
            elif episode > 100 and progress < 0.05:
                weight = max(weight, 0.25)
        elif episode > 50 and progress < 0.1:
            weight = max(weight, 0.8)
        elif episode > 20 and progress < 0.3:
            weight = max(weight, 0.6)
        return weight

    def _goal_seeking(self, env: MazeEnv, actions: Sequence[Action]) -> Action:
        if self.rng.random() < self.spec.random_action_rate:
            return actions[int(self.rng.integers(len(actions)))]
        state = env.state
        row, col = state.position
        d_now = state.distance_to_goal()
        weight = self.exploration_weight(max(0.0, manhattan_progress(env)))
        recent = state.path[-5:]

        best = actions[0]
        best_score = -math.inf
        for action in actions:
            dr, dc = action.displacement
            target: Cell = (row + dr, col + dc)
            goal = (d_now - state.distance_to_goal(target)) * self.spec.goal_weight
            exploration = 0.0
            if self.spec.partial_observability:
                if target not in state.visited:
                    exploration += 20.0
                exploration += state.unexplored_around(env.grid, target)
            revisit = recent.count(target) * self.spec.revisit_penalty
            score = goal * (1 - weight) + exploration * weight + revisit
            if score > best_score:
                best, best_score = action, score
        return best

    # Replay ---------------------------------------------------------------
    def store_experience(
        self, state: np.ndarray, action: Action, reward: float, next_state: np.ndarray, terminal: bool
    ) -> None:
        self.memory.push(Experience(state, action, float(reward), next_state, bool(terminal)))

    def train_on_batch(self) -> Optional[float]:
        """Fit the head on one uniformly sampled batch; returns the batch loss."""
        cfg = self.linear
        if len(self.memory) < cfg.batch_size:
            return None
        errors = []
        for exp in self.memory.sample(cfg.batch_size, self.rng):
            target = exp.reward
            if not exp.terminal:
                target += self.gamma * float(np.max(self.head.predict(exp.next_state)))
            error = target - self.head.q(exp.state, exp.action.value)
            clipped = float(np.clip(error, -cfg.td_error_clip, cfg.td_error_clip))
            self.head.apply_td(exp.state, exp.action.value, clipped, self.learning_rate)
            errors.append(error * error)
        loss = float(np.mean(errors))
        self.losses.append(loss)
        self.decay_epsilon()
        return loss

    def reset_stats(self) -> None:
        super().reset_stats()
        self.memory.buffer.clear()
        self.losses.clear()
        self.total_steps = 0

    def _buffer_size(self) -> int:
        return len(self.memory)

    def _extra_stats(self) -> Dict[str, Any]:
        stats = self.episode_stats
        recent_losses = list(self.losses)[-10:]
        return {
            "total_steps": self.total_steps,
            "average_loss": round(float(np.mean(recent_losses)), 4) if recent_losses else 0.0,
            "average_reward": round(stats.recent_mean(stats.rewards, 100), 2),
            "average_episode_length": round(stats.recent_mean(stats.moves, 100), 2),
            "exploration_efficiency": round(self.exploration_efficiency, 4),
            "input_size": self.input_size,
        }
