from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from .env import CARDINAL_ACTIONS, Action, MazeEnv, StepResult
from .planner import mcts_plan
from .policy import BasePolicy, PolicyConfig
from .world import Cell, GridWorld, manhattan, offset

logger = logging.getLogger(__name__)

PLAN_GOAL_REWARD = 100.0
PLAN_STEP_REWARD = -1.0


def bellman_update(q_sa: float, reward: float, next_max: float, learning_rate: float, gamma: float) -> float:
    return q_sa + learning_rate * (reward + gamma * next_max - q_sa)


class TabularQPolicy(BasePolicy):
    """Q-learning over grid cells with the four cardinal moves.

    Rows are created lazily at zero the first time a cell is looked up and survive
    across episodes; only :meth:`reset_stats` clears them.
    """

    strategy = "qlearning"

    def __init__(self, grid: GridWorld, config: Optional[PolicyConfig] = None):
        super().__init__(config)
        self.grid = grid
        self.q_table: Dict[int, np.ndarray] = {}

    def q_values(self, cell: Cell) -> np.ndarray:
        key = self.grid.key(cell)
        row = self.q_table.get(key)
        if row is None:
            row = np.zeros(len(CARDINAL_ACTIONS), dtype=np.float64)
            self.q_table[key] = row
        return row

    def best_action(self, cell: Cell, actions: Sequence[Action]) -> Action:
        q = self.q_values(cell)
        best = actions[0]
        for action in actions[1:]:
            if q[action.value] > q[best.value]:
                best = action
        return best

    def q_update(
        self,
        cell: Cell,
        action: Action,
        reward: float,
        next_cell: Cell,
        next_actions: Sequence[Action],
        terminal: bool = False,
    ) -> float:
        """Apply one Q-learning step and return the new ``Q(cell, action)``."""
        next_max = 0.0
        if not terminal and next_actions:
            next_q = self.q_values(next_cell)
            next_max = max(float(next_q[a.value]) for a in next_actions)
        q = self.q_values(cell)
        q[action.value] = bellman_update(float(q[action.value]), reward, next_max, self.learning_rate, self.gamma)
        return float(q[action.value])

    # Tick interface -------------------------------------------------------
    def encode(self, env: MazeEnv) -> Cell:
        return env.state.position

    def select_action(self, env: MazeEnv) -> Action:
        if self.config.planner.enabled:
            return self.plan(env)
        actions = env.valid_actions()
        if not actions:
            return CARDINAL_ACTIONS[0]
        if self.training and self.rng.random() < self.epsilon:
            return actions[int(self.rng.integers(len(actions)))]
        return self.best_action(env.state.position, actions)

    def update(self, env: MazeEnv, state: Cell, action: Action, result: StepResult) -> None:
        if not self.training or action not in CARDINAL_ACTIONS:
            return
        next_actions = [] if result.terminal else env.valid_actions()
        self.q_update(state, action, result.reward, result.position, next_actions, result.terminal)

    def plan(self, env: MazeEnv) -> Action:
        """Pick a cardinal move by tree search over the current static and dynamic layout."""
        goal = env.grid.goal

        def actions_at(cell: Cell) -> Sequence[Action]:
            return env.valid_actions(position=cell)

        def step(cell: Cell, action: Action) -> Tuple[Cell, float, bool]:
            nxt = offset(cell, action.direction)
            if nxt == goal:
                return nxt, PLAN_GOAL_REWARD, True
            return nxt, PLAN_STEP_REWARD, False

        planner = self.config.planner
        return mcts_plan(
            env.state.position,
            actions_at,
            step,
            lambda cell: -float(manhattan(cell, goal)),
            budget_ms=planner.budget_ms,
            max_depth=planner.max_depth,
            c=planner.c,
            default_action=CARDINAL_ACTIONS[0],
            rng=self.rng,
        )

    def reset_stats(self) -> None:
        super().reset_stats()
        self.q_table.clear()

    def _table_size(self) -> int:
        return len(self.q_table)
