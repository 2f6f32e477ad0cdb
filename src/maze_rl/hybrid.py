from __future__ import annotations

import logging
import time
from typing import AbstractSet, Any, Callable, Dict, List, Optional, Sequence

from .env import CARDINAL_ACTIONS, Action, MazeEnv, StepResult
from .pathfinding import solve_astar
from .policy import PolicyConfig
from .tabular import TabularQPolicy
from .world import CARDINALS, Cell, GridWorld, offset

logger = logging.getLogger(__name__)

LARGE_MAZE_CELLS = 1000
SWITCH_WINDOW = 20
SWITCH_SUCCESS_RATE = 0.8
SWITCH_MAX_EPSILON = 0.1
LARGE_MAZE_DECAY_CAP = 0.99

Solver = Callable[..., Optional[List[Cell]]]


class HybridPolicy(TabularQPolicy):
    """Tabular Q-learning that hands control to a path oracle once it stops paying to learn.

    Mazes above ``LARGE_MAZE_CELLS`` cells go straight to the oracle. Smaller mazes
    switch once the recent success rate is high and epsilon is low, and switch back if
    either condition stops holding.
    """

    strategy = "hybrid"

    def __init__(self, grid: GridWorld, config: Optional[PolicyConfig] = None, solver: Solver = solve_astar):
        self.is_large_maze = grid.cell_count > LARGE_MAZE_CELLS
        self.default_epsilon = 0.1 if self.is_large_maze else 0.6
        self.default_decay = 0.995 if self.is_large_maze else 0.98
        super().__init__(grid, config)
        self.solver = solver
        self.current_strategy = "qlearning"
        self.route: Optional[List[Cell]] = None
        self._route_index: Dict[Cell, int] = {}
        self.pathfinding_time_ms = 0.0

    def begin_episode(self, env: MazeEnv) -> None:
        self.route = None
        self._route_index = {}

    def select_strategy(self) -> str:
        stats = self.episode_stats
        confident = (
            stats.episodes >= SWITCH_WINDOW
            and stats.recent_win_rate(SWITCH_WINDOW) > SWITCH_SUCCESS_RATE
            and self.epsilon < SWITCH_MAX_EPSILON
        )
        strategy = "pathfinding" if self.is_large_maze or confident else "qlearning"
        if strategy != self.current_strategy:
            logger.info("Hybrid policy switching from %s to %s", self.current_strategy, strategy)
            self.current_strategy = strategy
        return strategy

    def select_action(self, env: MazeEnv) -> Action:
        if self.select_strategy() == "pathfinding":
            return self.follow_route(env)
        if self.config.planner.enabled:
            return self.plan(env)
        actions = env.valid_actions()
        if not actions:
            return CARDINAL_ACTIONS[0]
        if self.training and self.rng.random() < self.epsilon:
            return self._explore(env, actions)
        best = actions[0]
        best_score = self._score(env, best)
        for action in actions[1:]:
            score = self._score(env, action)
            if score > best_score:
                best, best_score = action, score
        return best

    def update(self, env: MazeEnv, state: Cell, action: Action, result: StepResult) -> None:
        if self.current_strategy == "pathfinding":
            return
        super().update(env, state, action, result)

    def decay_epsilon(self, rate: Optional[float] = None) -> None:
        if rate is None and self.is_large_maze:
            rate = min(self.epsilon_decay, LARGE_MAZE_DECAY_CAP)
        super().decay_epsilon(rate)

    # Q-learning side ------------------------------------------------------
    def _score(self, env: MazeEnv, action: Action) -> float:
        state = env.state
        position = state.position
        target = offset(position, action.direction)
        gain = state.distance_to_goal(position) - state.distance_to_goal(target)
        unvisited = 0.0 if target in state.visited else 1.0
        reverse = 1.0 if self._reverses(env, action) else 0.0
        q = self.q_values(position)
        return float(q[action.value]) + 0.05 * gain + 0.1 * unvisited - 0.05 * reverse

    def _reverses(self, env: MazeEnv, action: Action) -> bool:
        last = env.state.last_direction
        return last is not None and action.direction == last.opposite

    def _explore(self, env: MazeEnv, actions: Sequence[Action]) -> Action:
        state = env.state
        if self.is_large_maze:
            ranked = sorted(actions, key=lambda a: state.distance_to_goal(offset(state.position, a.direction)))
            candidates = ranked[:2]
        else:
            candidates = [a for a in actions if not self._reverses(env, a)] or list(actions)
        return candidates[int(self.rng.integers(len(candidates)))]

    # Oracle side ------------------------------------------------------------
    def follow_route(self, env: MazeEnv) -> Action:
        position = env.state.position
        if self.route is None or position not in self._route_index:
            self._compute_route(env, position)
        if self.route is None:
            return Action.WAIT
        index = self._route_index[position]
        if index + 1 >= len(self.route):
            return Action.WAIT
        nxt = self.route[index + 1]
        for direction in CARDINALS:
            if offset(position, direction) == nxt:
                return Action.move(direction)
        return Action.WAIT

    def get_solution(
        self, grid: GridWorld, start: Optional[Cell] = None, blocked: Optional[AbstractSet[Cell]] = None
    ) -> Optional[List[Cell]]:
        """Solve ``grid`` outright with the oracle; the time is charged to ``pathfinding_time_ms``."""
        started = time.perf_counter()
        route = self.solver(grid, start=start, blocked=blocked)
        self.pathfinding_time_ms += (time.perf_counter() - started) * 1000.0
        return route

    def _compute_route(self, env: MazeEnv, position: Cell) -> None:
        spent = self.pathfinding_time_ms
        route = self.get_solution(env.grid, start=position, blocked=env.dynamics.occupied_cells())
        elapsed = self.pathfinding_time_ms - spent
        self.route = route
        self._route_index = {cell: i for i, cell in enumerate(route)} if route else {}
        if route is None:
            logger.debug("No route from %s to %s", position, env.grid.goal)
        else:
            logger.debug("Route of %d cells computed in %.2f ms", len(route), elapsed)

    def _strategy_label(self) -> str:
        return self.current_strategy

    def _extra_stats(self) -> Dict[str, Any]:
        return {
            "current_strategy": self.current_strategy,
            "is_large_maze": self.is_large_maze,
            "pathfinding_time_ms": round(self.pathfinding_time_ms, 3),
        }
