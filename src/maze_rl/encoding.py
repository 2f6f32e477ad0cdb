"""Fixed-length state vectors for the linear policy.

Layout: a 38-value base block, a zero-padded mode block whose size comes from the
mode table, and a 13-value temporal block. The length depends only on the mode.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Union

import numpy as np

from .env import MazeEnv
from .modes import GameMode, mode_spec
from .world import Cell, manhattan

BASE_SIZE = 38
TEMPORAL_SIZE = 13
VIEW_RADIUS = 2
PATH_HISTORY = 5

UNKNOWN = 0.5
OUT_OF_BOUNDS = -1.0

# Kind codes for the survival block.
HAZARD_CODE = 1.0
FOOD_CODE = 0.5
KEY_CODE = 0.75
COLLECTIBLE_CODE = 0.25


def state_vector_size(mode: Union[str, GameMode]) -> int:
    return BASE_SIZE + mode_spec(mode).dynamic_block_size + TEMPORAL_SIZE


def _relative(env: MazeEnv, cell: Cell) -> List[float]:
    row, col = env.state.position
    return [(cell[0] - row) / env.grid.height, (cell[1] - col) / env.grid.width]


def _base_block(env: MazeEnv) -> List[float]:
    grid, state = env.grid, env.state
    row, col = state.position
    fogged = env.spec.partial_observability
    values = [row / (grid.height - 1), col / (grid.width - 1)]
    values += [
        state.health / state.max_health,
        state.energy / state.max_energy,
        state.oxygen / state.max_oxygen,
    ]
    for dr in range(-VIEW_RADIUS, VIEW_RADIUS + 1):
        for dc in range(-VIEW_RADIUS, VIEW_RADIUS + 1):
            r, c = row + dr, col + dc
            if not grid.in_bounds(r, c):
                values.append(OUT_OF_BOUNDS)
            elif fogged and (r, c) not in state.explored:
                values.append(UNKNOWN)
            elif not grid.is_open(r, c) or env.dynamics.is_blocked(r, c):
                values.append(1.0)
            else:
                values.append(0.0)
    goal_row, goal_col = grid.goal
    vec = np.array([goal_row - row, goal_col - col], dtype=np.float64)
    norm = float(np.linalg.norm(vec))
    values += list(vec / norm) if norm > 0 else [0.0, 0.0]
    values += [
        len(state.keys) / 10.0,
        len(state.inventory) / 20.0,
        1.0 if "jump" in state.abilities else 0.0,
        1.0 if "dash" in state.abilities else 0.0,
    ]
    values += [min(state.time_alive / 1000.0, 1.0), min(state.stagnation / 50.0, 1.0)]
    return values


def _dynamic_block(env: MazeEnv) -> List[float]:
    values: List[float] = []
    for wall in env.dynamics.moving_walls[:5]:
        values += _relative(env, wall.position) + [float(v) for v in wall.velocity]
    values += [0.0] * (20 - len(values))
    for section in env.dynamics.rotating_sections[:3]:
        values += _relative(env, section.center) + [section.angle / 360.0, 1.0 / section.rotation_speed]
    return values


def _competitive_block(env: MazeEnv) -> List[float]:
    values: List[float] = []
    for agent in env.dynamics.other_agents[:4]:
        values += _relative(env, agent.position) + [agent.health / 100.0, agent.score / 100.0]
    return values


def _survival_block(env: MazeEnv) -> List[float]:
    dynamics = env.dynamics
    codes: Dict[Cell, float] = {}
    codes.update({cell: COLLECTIBLE_CODE for cell in dynamics.collectibles})
    codes.update({cell: KEY_CODE for cell in dynamics.keys})
    codes.update({cell: FOOD_CODE for cell in dynamics.food})
    codes.update({cell: HAZARD_CODE for cell in dynamics.hazards})
    values: List[float] = []
    for cell in dynamics.nearest(codes, env.state.position, 5):
        values += _relative(env, cell) + [codes[cell]]
    return values


def _procedural_block(env: MazeEnv) -> List[float]:
    dynamics = env.dynamics
    values = [dynamics.difficulty, len(dynamics.generated_sections) / 100.0]
    for cell in dynamics.nearest(dynamics.hazards, env.state.position, 4):
        values += _relative(env, cell) + [1.0 if dynamics.hazards[cell].active else 0.0]
    return values


def _fog_block(env: MazeEnv) -> List[float]:
    grid, explored = env.grid, env.state.explored
    frontier = {n for cell in explored if grid.is_open(*cell) for n in grid.neighbours(cell) if n not in explored}
    return [len(explored) / grid.cell_count, len(frontier) / max(1, len(explored))]


_MODE_BLOCKS: Dict[GameMode, Callable[[MazeEnv], List[float]]] = {
    GameMode.CLASSIC: lambda env: [],
    GameMode.DYNAMIC: _dynamic_block,
    GameMode.COMPETITIVE: _competitive_block,
    GameMode.FOG: _fog_block,
    GameMode.SURVIVAL: _survival_block,
    GameMode.PROCEDURAL: _procedural_block,
}


def _temporal_block(env: MazeEnv) -> List[float]:
    state = env.state
    values: List[float] = []
    for cell in state.path[-PATH_HISTORY:]:
        values += _relative(env, cell)
    values += [0.0] * (2 * PATH_HISTORY - len(values))
    tick = env.dynamics.tick
    values += [tick / 1000.0, state.stagnation / 50.0, (tick - state.last_damage_tick) / 100.0]
    return values


def encode_state(env: MazeEnv) -> np.ndarray:
    size = env.spec.dynamic_block_size
    block = _MODE_BLOCKS[env.mode](env)[:size]
    block += [0.0] * (size - len(block))
    vector = np.array(_base_block(env) + block + _temporal_block(env), dtype=np.float64)
    return vector


def manhattan_progress(env: MazeEnv) -> float:
    """Fraction of the start-to-goal distance already covered."""
    total = manhattan(env.grid.start, env.grid.goal)
    return 1.0 - env.state.distance_to_goal() / total if total else 1.0
