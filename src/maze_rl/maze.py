from __future__ import annotations

from typing import List, Optional

import numpy as np

from .world import CARDINALS, OPEN, WALL, Cell, GridWorld


def generate_maze(height: int, width: int, rng: Optional[np.random.Generator] = None) -> GridWorld:
    """Carve a perfect maze with an iterative recursive backtracker.

    Passages run through odd coordinates, so every odd cell, including the start
    ``(1, 1)`` and the goal ``(height-2, width-2)``, ends up connected.
    """
    if height < 5 or width < 5 or height % 2 == 0 or width % 2 == 0:
        raise ValueError("Maze height and width must be odd and at least 5")
    rng = rng if rng is not None else np.random.default_rng()
    cells = np.full((height, width), WALL, dtype=np.int8)

    start: Cell = (1, 1)
    cells[start] = OPEN
    stack: List[Cell] = [start]
    while stack:
        row, col = stack[-1]
        options = []
        for direction in CARDINALS:
            dr, dc = direction.delta
            r, c = row + 2 * dr, col + 2 * dc
            if 0 < r < height - 1 and 0 < c < width - 1 and cells[r, c] == WALL:
                options.append((r, c, dr, dc))
        if not options:
            stack.pop()
            continue
        r, c, dr, dc = options[int(rng.integers(len(options)))]
        cells[row + dr, col + dc] = OPEN
        cells[r, c] = OPEN
        stack.append((r, c))

    return GridWorld(cells)
