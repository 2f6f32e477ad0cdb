import pathlib
import sys

import numpy as np
import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT / "src"))

from maze_rl.dynamics import DynamicElements  # noqa: E402
from maze_rl.maze import generate_maze  # noqa: E402
from maze_rl.modes import GameMode  # noqa: E402
from maze_rl.objects import MovingWall  # noqa: E402
from maze_rl.pathfinding import solve_astar, solve_bfs  # noqa: E402
from maze_rl.world import AgentState, Direction, GridWorld, Item, is_valid_move, valid_directions  # noqa: E402


def open_grid(size: int) -> GridWorld:
    cells = np.ones((size, size), dtype=np.int8)
    cells[1:-1, 1:-1] = 0
    return GridWorld(cells)


def test_grid_rejects_even_or_small_dimensions():
    with pytest.raises(ValueError):
        GridWorld(np.zeros((6, 7)))
    with pytest.raises(ValueError):
        GridWorld(np.zeros((3, 3)))
    with pytest.raises(ValueError):
        GridWorld(np.zeros(9))


def test_grid_start_goal_and_keys():
    grid = open_grid(7)
    assert grid.start == (1, 1)
    assert grid.goal == (5, 5)
    assert grid.key((2, 3)) == 2 * 7 + 3
    assert grid.cell_count == 49
    assert not grid.cells.flags.writeable


def test_is_valid_move_checks_bounds_walls_and_dynamic_blockers():
    grid = open_grid(9)
    assert is_valid_move((1, 1), Direction.RIGHT, grid)
    assert not is_valid_move((1, 1), Direction.UP, grid)  # border wall
    assert not is_valid_move((0, 0), Direction.UP, grid)  # out of bounds

    dynamics = DynamicElements(grid, GameMode.DYNAMIC, np.random.default_rng(0))
    dynamics.moving_walls[:] = [MovingWall(position=(1, 2), direction=Direction.DOWN, length=2)]
    assert not is_valid_move((1, 1), Direction.RIGHT, grid, dynamics)
    assert is_valid_move((1, 1), Direction.DOWN, grid, dynamics)
    assert valid_directions((1, 1), grid, dynamics) == [Direction.DOWN]


def test_direction_helpers():
    assert Direction.UP.opposite is Direction.DOWN
    assert Direction.LEFT.opposite is Direction.RIGHT
    assert Direction.RIGHT.is_horizontal
    assert [d.delta for d in Direction] == [(-1, 0), (0, 1), (1, 0), (0, -1)]


def test_agent_state_reset_restores_episode_fields():
    state = AgentState(start=(1, 1), goal=(5, 5))
    state.move_to((1, 2))
    state.health = 10
    state.inventory.append(Item(kind="key", key_type="key_0"))
    state.explored.add((1, 1))
    state.stagnation = 7
    state.reset()
    assert state.position == (1, 1)
    assert state.path == [(1, 1)]
    assert state.visited == {(1, 1)}
    assert state.health == state.max_health
    assert state.inventory == []
    assert state.explored == set()
    assert state.stagnation == 0


def test_update_exploration_uses_manhattan_radius():
    grid = open_grid(9)
    state = AgentState(start=(4, 4), goal=(7, 7))
    state.update_exploration(grid, 2)
    assert (4, 6) in state.explored
    assert (2, 4) in state.explored
    assert (3, 3) in state.explored
    assert (2, 2) not in state.explored
    assert state.unexplored_around(grid, (4, 4)) == 0


def test_generated_maze_is_solvable_and_walled():
    for seed in range(5):
        grid = generate_maze(15, 21, np.random.default_rng(seed))
        assert grid.height == 15 and grid.width == 21
        assert grid.is_open(*grid.start) and grid.is_open(*grid.goal)
        assert np.all(grid.cells[0, :] == 1) and np.all(grid.cells[:, -1] == 1)
        route = solve_bfs(grid)
        assert route is not None
        assert route[0] == grid.start and route[-1] == grid.goal
        astar = solve_astar(grid)
        assert len(astar) == len(route)


def test_generate_maze_rejects_even_size():
    with pytest.raises(ValueError):
        generate_maze(10, 11)


def test_solvers_respect_blocked_cells():
    grid = GridWorld.from_rows(
        [
            [1, 1, 1, 1, 1],
            [1, 0, 0, 0, 1],
            [1, 1, 1, 0, 1],
            [1, 1, 1, 0, 1],
            [1, 1, 1, 1, 1],
        ]
    )
    assert solve_astar(grid) == [(1, 1), (1, 2), (1, 3), (2, 3), (3, 3)]
    assert solve_bfs(grid, blocked={(1, 3)}) is None
    assert solve_astar(grid, blocked={(1, 3)}) is None
