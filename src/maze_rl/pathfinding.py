"""Shortest-path oracles over the static grid.

Both solvers return the route as an ordered list of cells from ``start`` to ``end``
inclusive, or ``None`` when the end cannot be reached. ``blocked`` marks extra cells
(usually the dynamic occupancy at planning time) that count as walls.
"""

from __future__ import annotations

import heapq
import itertools
from collections import deque
from typing import AbstractSet, Dict, List, Optional

from .world import Cell, GridWorld, manhattan


def _passable(grid: GridWorld, cell: Cell, blocked: AbstractSet[Cell]) -> bool:
    return grid.is_open(*cell) and cell not in blocked


def _walk_back(came_from: Dict[Cell, Optional[Cell]], end: Cell) -> List[Cell]:
    path = [end]
    node = came_from[end]
    while node is not None:
        path.append(node)
        node = came_from[node]
    path.reverse()
    return path


def solve_astar(
    grid: GridWorld,
    start: Optional[Cell] = None,
    end: Optional[Cell] = None,
    blocked: Optional[AbstractSet[Cell]] = None,
) -> Optional[List[Cell]]:
    """A* with the Manhattan heuristic."""
    start = grid.start if start is None else start
    end = grid.goal if end is None else end
    blocked = blocked or frozenset()
    if not grid.is_open(*start) or not _passable(grid, end, blocked):
        return None

    counter = itertools.count()
    frontier = [(manhattan(start, end), next(counter), start)]
    came_from: Dict[Cell, Optional[Cell]] = {start: None}
    cost: Dict[Cell, int] = {start: 0}

    while frontier:
        _, _, current = heapq.heappop(frontier)
        if current == end:
            return _walk_back(came_from, end)
        for nxt in grid.neighbours(current):
            if nxt in blocked:
                continue
            new_cost = cost[current] + 1
            if new_cost < cost.get(nxt, new_cost + 1):
                cost[nxt] = new_cost
                came_from[nxt] = current
                heapq.heappush(frontier, (new_cost + manhattan(nxt, end), next(counter), nxt))
    return None


def solve_bfs(
    grid: GridWorld,
    start: Optional[Cell] = None,
    end: Optional[Cell] = None,
    blocked: Optional[AbstractSet[Cell]] = None,
) -> Optional[List[Cell]]:
    start = grid.start if start is None else start
    end = grid.goal if end is None else end
    blocked = blocked or frozenset()
    if not grid.is_open(*start) or not _passable(grid, end, blocked):
        return None

    came_from: Dict[Cell, Optional[Cell]] = {start: None}
    q = deque([start])
    while q:
        current = q.popleft()
        if current == end:
            return _walk_back(came_from, end)
        for nxt in grid.neighbours(current):
            if nxt in came_from or nxt in blocked:
                continue
            came_from[nxt] = current
            q.append(nxt)
    return None
