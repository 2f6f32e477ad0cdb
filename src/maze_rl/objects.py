from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

import numpy as np

from .world import Cell, Direction, GridWorld, offset


class DynamicElement:
    """Base class for anything placed in the maze that changes over time."""

    def occupied_cells(self, grid: GridWorld) -> List[Cell]:
        return []

    def on_tick(self, tick: int, grid: GridWorld) -> bool:
        """Advance one tick; return True when the element changed the maze layout."""
        return False


@dataclass
class MovingWall(DynamicElement):
    position: Cell
    direction: Direction
    speed: int = 3
    length: int = 2
    last_move_tick: int = 0

    def on_tick(self, tick: int, grid: GridWorld) -> bool:
        if tick - self.last_move_tick < self.speed:
            return False
        self.last_move_tick = tick
        row, col = offset(self.position, self.direction)
        if row <= 1 or row >= grid.height - 2 or col <= 1 or col >= grid.width - 2:
            self.direction = self.direction.opposite
            return False
        self.position = (row, col)
        return True

    def occupied_cells(self, grid: GridWorld) -> List[Cell]:
        row, col = self.position
        cells = []
        for i in range(max(1, self.length)):
            cell = (row, col + i) if self.direction.is_horizontal else (row + i, col)
            if grid.in_interior(*cell):
                cells.append(cell)
        return cells

    @property
    def velocity(self) -> tuple:
        dr, dc = self.direction.delta
        return (dr / self.speed, dc / self.speed)


@dataclass
class RotatingSection(DynamicElement):
    center: Cell
    radius: int = 2
    rotation_speed: int = 8
    angle: int = 0
    last_rotation_tick: int = 0

    def on_tick(self, tick: int, grid: GridWorld) -> bool:
        if tick - self.last_rotation_tick < self.rotation_speed:
            return False
        self.angle = (self.angle + 90) % 360
        self.last_rotation_tick = tick
        return True

    def occupied_cells(self, grid: GridWorld) -> List[Cell]:
        r = self.radius
        if (self.angle % 360) // 90 % 2 == 0:
            offsets = [(-r, 0), (r, 0), (0, -r), (0, r)]
        else:
            offsets = [(-r, -r), (-r, r), (r, -r), (r, r)]
        cr, cc = self.center
        return [(cr + dr, cc + dc) for dr, dc in offsets if grid.in_interior(cr + dr, cc + dc)]


class HazardPattern(Enum):
    ALWAYS = 0
    PERIODIC = 1
    RANDOM = 2


@dataclass
class Hazard(DynamicElement):
    kind: str
    damage: float
    pattern: HazardPattern = HazardPattern.ALWAYS
    last_activation: int = 0
    active: bool = False
    active_ticks: int = 3

    def should_activate(self, tick: int, rng: np.random.Generator) -> bool:
        if self.pattern == HazardPattern.ALWAYS:
            return True
        if self.pattern == HazardPattern.PERIODIC:
            return tick % 10 < 3
        return bool(rng.random() < 0.3)

    def trigger(self, tick: int) -> None:
        self.last_activation = tick
        self.active = True

    def on_tick(self, tick: int, grid: GridWorld) -> bool:
        if self.active and tick - self.last_activation > self.active_ticks:
            self.active = False
        return False


@dataclass
class Pickup(DynamicElement):
    """An item that disappears when taken and respawns after ``respawn_time`` ticks."""

    respawn_time: Optional[int] = None
    last_taken: Optional[int] = None

    def is_available(self, tick: int) -> bool:
        if self.last_taken is None:
            return True
        if self.respawn_time is None:
            return False
        return tick - self.last_taken > self.respawn_time

    def take(self, tick: int) -> None:
        self.last_taken = tick


@dataclass
class Food(Pickup):
    healing: float = 20.0
    energy: float = 15.0


@dataclass
class Key(Pickup):
    key_type: str = "key_0"


@dataclass
class Collectible(Pickup):
    value: float = 10.0
    kind: str = "coin"
    hidden: bool = False


@dataclass
class OtherAgent(DynamicElement):
    agent_id: int
    position: Cell
    strategy: str = "greedy"
    health: float = 100.0
    score: float = 0.0
    last_move_tick: int = 0
    move_every: int = 2

    def choose_step(self, goal: Cell, grid: GridWorld, rng: np.random.Generator) -> Cell:
        """Greedy step toward ``goal`` along a random improving axis; stay if that cell is a wall."""
        row, col = self.position
        options = []
        if goal[0] > row:
            options.append((1, 0))
        if goal[0] < row:
            options.append((-1, 0))
        if goal[1] > col:
            options.append((0, 1))
        if goal[1] < col:
            options.append((0, -1))
        if not options:
            return self.position
        dr, dc = options[int(rng.integers(len(options)))]
        target = (row + dr, col + dc)
        if grid.is_open(*target):
            return target
        return self.position
