import pathlib
import sys

import numpy as np
import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT / "src"))

from maze_rl.env import Action, MazeEnv  # noqa: E402
from maze_rl.hybrid import HybridPolicy  # noqa: E402
from maze_rl.maze import generate_maze  # noqa: E402
from maze_rl.pathfinding import solve_astar  # noqa: E402
from maze_rl.policy import PolicyConfig  # noqa: E402
from maze_rl.world import offset  # noqa: E402


@pytest.fixture
def large_maze():
    return generate_maze(33, 33, np.random.default_rng(0))


def test_large_maze_starts_on_the_oracle_route(large_maze):
    env = MazeEnv(large_maze)
    env.reset()
    policy = HybridPolicy(large_maze)
    policy.begin_episode(env)
    assert policy.is_large_maze
    action = policy.select_action(env)
    assert policy.current_strategy == "pathfinding"
    route = solve_astar(large_maze)
    result = env.step(action)
    assert result.position == route[1]


def test_large_maze_defaults_and_decay_cap(large_maze):
    policy = HybridPolicy(large_maze, PolicyConfig(epsilon_decay=0.999))
    assert policy.epsilon == 0.1
    policy.finish_episode(False, 100)
    assert policy.epsilon == pytest.approx(0.1 * 0.99)


def test_small_maze_defaults():
    grid = generate_maze(11, 11, np.random.default_rng(1))
    policy = HybridPolicy(grid)
    assert not policy.is_large_maze
    assert policy.epsilon == 0.6
    assert policy.epsilon_decay == 0.98
    assert policy.select_strategy() == "qlearning"


def test_switch_is_reevaluated_and_can_revert():
    grid = generate_maze(11, 11, np.random.default_rng(2))
    policy = HybridPolicy(grid)
    for _ in range(19):
        policy.episode_stats.record(True, 20)
    policy.epsilon = 0.05
    assert policy.select_strategy() == "qlearning"
    policy.episode_stats.record(True, 20)
    assert policy.select_strategy() == "pathfinding"
    policy.epsilon = 0.2
    assert policy.select_strategy() == "qlearning"
    policy.epsilon = 0.05
    for _ in range(5):
        policy.episode_stats.record(False, 200)
    assert policy.select_strategy() == "qlearning"


def test_updates_are_suppressed_while_pathfinding(large_maze):
    env = MazeEnv(large_maze)
    env.reset()
    policy = HybridPolicy(large_maze)
    policy.start_training()
    policy.begin_episode(env)
    for _ in range(5):
        state = policy.encode(env)
        action = policy.select_action(env)
        policy.update(env, state, action, env.step(action))
    assert policy.q_table == {}


def test_off_route_position_triggers_a_new_route(large_maze):
    env = MazeEnv(large_maze)
    env.reset()
    policy = HybridPolicy(large_maze)
    policy.begin_episode(env)
    policy.select_action(env)
    route = set(policy.route)
    detour = next(c for c in large_maze.open_cells() if c not in route)
    env.state.move_to(detour)
    action = policy.select_action(env)
    fresh = solve_astar(large_maze, start=detour)
    assert offset(detour, action.direction) == fresh[1]
    assert policy.route == fresh


def test_no_route_holds_position(large_maze):
    env = MazeEnv(large_maze)
    env.reset()
    policy = HybridPolicy(large_maze, solver=lambda grid, **kwargs: None)
    policy.begin_episode(env)
    assert policy.select_action(env) is Action.WAIT


def test_qlearning_exploitation_prefers_unvisited_progress():
    grid = generate_maze(11, 11, np.random.default_rng(3))
    env = MazeEnv(grid)
    env.reset()
    policy = HybridPolicy(grid, PolicyConfig(epsilon=0.0))
    action = policy.select_action(env)
    assert action in env.valid_actions()
    first = env.step(action)
    assert first.moved


def test_hybrid_stats_extras(large_maze):
    env = MazeEnv(large_maze)
    env.reset()
    policy = HybridPolicy(large_maze)
    policy.begin_episode(env)
    policy.select_action(env)
    extra = policy.stats().extra
    assert extra["current_strategy"] == "pathfinding"
    assert extra["is_large_maze"] is True
    assert extra["pathfinding_time_ms"] >= 0
    assert policy.stats().strategy == "pathfinding"


def test_small_maze_reports_qlearning_as_active_strategy():
    grid = generate_maze(11, 11, np.random.default_rng(4))
    policy = HybridPolicy(grid)
    policy.select_strategy()
    assert policy.stats().strategy == "qlearning"


def test_get_solution_returns_the_oracle_route_and_charges_time(large_maze):
    calls = []

    def timed_solver(grid, **kwargs):
        calls.append(kwargs)
        return solve_astar(grid, **kwargs)

    policy = HybridPolicy(large_maze, solver=timed_solver)
    route = policy.get_solution(large_maze)
    assert route == solve_astar(large_maze)
    assert route[0] == large_maze.start and route[-1] == large_maze.goal
    assert len(calls) == 1
    assert policy.pathfinding_time_ms > 0
    assert policy.route is None


def test_get_solution_signals_no_path(large_maze):
    policy = HybridPolicy(large_maze, solver=lambda grid, **kwargs: None)
    assert policy.get_solution(large_maze) is None
