from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np

if TYPE_CHECKING:
    from .dynamics import DynamicElements

Cell = Tuple[int, int]

OPEN = 0
WALL = 1


class Direction(Enum):
    UP = 0
    RIGHT = 1
    DOWN = 2
    LEFT = 3

    @property
    def delta(self) -> Cell:
        return _DELTAS[self]

    @property
    def opposite(self) -> "Direction":
        return Direction((self.value + 2) % 4)

    @property
    def is_horizontal(self) -> bool:
        return self in (Direction.LEFT, Direction.RIGHT)


_DELTAS: Dict[Direction, Cell] = {
    Direction.UP: (-1, 0),
    Direction.RIGHT: (0, 1),
    Direction.DOWN: (1, 0),
    Direction.LEFT: (0, -1),
}

CARDINALS: Tuple[Direction, ...] = tuple(Direction)


def manhattan(a: Cell, b: Cell) -> int:
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


def offset(cell: Cell, direction: Direction, steps: int = 1) -> Cell:
    dr, dc = direction.delta
    return (cell[0] + dr * steps, cell[1] + dc * steps)


class GridWorld:
    """Immutable 0/1 occupancy grid with the start at (1, 1) and the goal at (h-2, w-2)."""

    def __init__(self, cells: np.ndarray):
        cells = np.asarray(cells, dtype=np.int8)
        if cells.ndim != 2:
            raise ValueError("Maze grid must be two dimensional")
        height, width = cells.shape
        if height < 5 or width < 5:
            raise ValueError("Maze height and width must be at least 5")
        if height % 2 == 0 or width % 2 == 0:
            raise ValueError("Maze height and width must be odd")
        self.cells = cells.copy()
        self.cells.setflags(write=False)
        self.height = height
        self.width = width
        self.start: Cell = (1, 1)
        self.goal: Cell = (height - 2, width - 2)

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[int]]) -> "GridWorld":
        return cls(np.array(rows, dtype=np.int8))

    @property
    def cell_count(self) -> int:
        return self.height * self.width

    def in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < self.height and 0 <= col < self.width

    def in_interior(self, row: int, col: int) -> bool:
        return 0 < row < self.height - 1 and 0 < col < self.width - 1

    def is_open(self, row: int, col: int) -> bool:
        if not self.in_bounds(row, col):
            return False
        return self.cells[row, col] == OPEN

    def key(self, cell: Cell) -> int:
        """Stable per-cell identifier used as a Q-table key."""
        return cell[0] * self.width + cell[1]

    def distance_to_goal(self, cell: Cell) -> int:
        return manhattan(cell, self.goal)

    def open_cells(self) -> List[Cell]:
        rows, cols = np.nonzero(self.cells == OPEN)
        return [(int(r), int(c)) for r, c in zip(rows, cols)]

    def neighbours(self, cell: Cell) -> Iterable[Cell]:
        for direction in CARDINALS:
            nxt = offset(cell, direction)
            if self.is_open(*nxt):
                yield nxt


def is_valid_move(
    position: Cell,
    direction: Direction,
    grid: GridWorld,
    dynamics: Optional["DynamicElements"] = None,
) -> bool:
    row, col = offset(position, direction)
    if not grid.is_open(row, col):
        return False
    if dynamics is not None and dynamics.is_blocked(row, col):
        return False
    return True


def valid_directions(
    position: Cell, grid: GridWorld, dynamics: Optional["DynamicElements"] = None
) -> List[Direction]:
    return [d for d in CARDINALS if is_valid_move(position, d, grid, dynamics)]


@dataclass
class Item:
    kind: str  # "health_potion", "energy_potion" or "key"
    value: float = 0.0
    key_type: Optional[str] = None


@dataclass
class AgentState:
    start: Cell
    goal: Cell
    max_health: float = 100.0
    max_energy: float = 100.0
    max_oxygen: float = 100.0
    abilities: Set[str] = field(default_factory=lambda: {"move"})
    position: Cell = (1, 1)
    path: List[Cell] = field(default_factory=list)
    visited: Set[Cell] = field(default_factory=set)
    moves: int = 0
    health: float = 100.0
    energy: float = 100.0
    oxygen: float = 100.0
    score: float = 0.0
    inventory: List[Item] = field(default_factory=list)
    keys: Set[str] = field(default_factory=set)
    explored: Set[Cell] = field(default_factory=set)
    time_alive: int = 0
    stagnation: int = 0
    last_damage_tick: int = 0
    last_direction: Optional[Direction] = None

    def __post_init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.position = self.start
        self.path = [self.start]
        self.visited = {self.start}
        self.moves = 0
        self.health = self.max_health
        self.energy = self.max_energy
        self.oxygen = self.max_oxygen
        self.score = 0.0
        self.inventory = []
        self.keys = set()
        self.explored = set()
        self.time_alive = 0
        self.stagnation = 0
        self.last_damage_tick = 0
        self.last_direction = None

    def move_to(self, cell: Cell) -> None:
        self.position = cell
        self.path.append(cell)
        self.visited.add(cell)

    def distance_to_goal(self, cell: Optional[Cell] = None) -> int:
        return manhattan(self.position if cell is None else cell, self.goal)

    def heal(self, amount: float) -> None:
        self.health = min(self.max_health, max(0.0, self.health + amount))

    def restore_energy(self, amount: float) -> None:
        self.energy = min(self.max_energy, max(0.0, self.energy + amount))

    def update_exploration(self, grid: GridWorld, radius: int) -> None:
        """Mark every in-bounds cell within Manhattan ``radius`` as explored."""
        row, col = self.position
        for dr in range(-radius, radius + 1):
            for dc in range(-radius, radius + 1):
                if abs(dr) + abs(dc) > radius:
                    continue
                r, c = row + dr, col + dc
                if grid.in_bounds(r, c):
                    self.explored.add((r, c))

    def unexplored_around(self, grid: GridWorld, cell: Cell) -> int:
        """Unexplored in-bounds cells in the 3x3 block centred on ``cell``."""
        count = 0
        for dr in (-1, 0, 1):
            for dc in (-1, 0, 1):
                r, c = cell[0] + dr, cell[1] + dc
                if grid.in_bounds(r, c) and (r, c) not in self.explored:
                    count += 1
        return count
