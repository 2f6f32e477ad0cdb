from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set

import numpy as np

from .modes import GameMode
from .objects import (
    Collectible,
    Food,
    Hazard,
    HazardPattern,
    Key,
    MovingWall,
    OtherAgent,
    RotatingSection,
)
from .world import CARDINALS, AgentState, Cell, GridWorld, manhattan

logger = logging.getLogger(__name__)

HAZARD_KINDS = ("spikes", "fire", "poison", "electricity", "ice")
COLLECTIBLE_KINDS = ("gem", "coin", "powerup", "energy", "tool")
OPPONENT_STRATEGIES = ("aggressive", "defensive", "greedy", "explorer")


@dataclass
class StepEvents:
    adapted_to_change: bool = False
    caught_by_moving_wall: bool = False
    found_food: bool = False
    found_key: bool = False
    hit_trap: bool = False
    collectible_taken: bool = False
    blocked_other_agent: bool = False
    was_blocked: bool = False
    # Payloads for the pickups above, consumed by the environment.
    food: Optional[Food] = None
    key: Optional[Key] = None
    hazard: Optional[Hazard] = None
    collectible: Optional[Collectible] = None


@dataclass
class _Populations:
    moving_walls: List[MovingWall] = field(default_factory=list)
    rotating_sections: List[RotatingSection] = field(default_factory=list)
    hazards: Dict[Cell, Hazard] = field(default_factory=dict)
    food: Dict[Cell, Food] = field(default_factory=dict)
    keys: Dict[Cell, Key] = field(default_factory=dict)
    collectibles: Dict[Cell, Collectible] = field(default_factory=dict)
    other_agents: List[OtherAgent] = field(default_factory=list)


class DynamicElements:
    """Everything in the maze that changes between ticks for one game mode.

    The element set is built once per episode and advanced with :meth:`advance`, which
    returns the :class:`StepEvents` raised at the learner's position. Randomness comes
    from the generator passed in so that a seeded run is reproducible.
    """

    def __init__(self, grid: GridWorld, mode: GameMode, rng: Optional[np.random.Generator] = None):
        self.grid = grid
        self.mode = mode
        self.rng = rng if rng is not None else np.random.default_rng()
        self.tick = 0
        self.vision_radius = 3
        self.difficulty = 1.0
        self.generated_sections: Set[Cell] = set()
        self._items = _Populations()
        self._initializers: Dict[GameMode, Callable[[], None]] = {
            GameMode.CLASSIC: lambda: None,
            GameMode.DYNAMIC: self._init_dynamic,
            GameMode.COMPETITIVE: self._init_competitive,
            GameMode.FOG: self._init_fog,
            GameMode.SURVIVAL: self._init_survival,
            GameMode.PROCEDURAL: lambda: None,
        }
        self._updaters: Dict[GameMode, Callable[[AgentState, StepEvents], None]] = {
            GameMode.CLASSIC: lambda state, events: None,
            GameMode.DYNAMIC: self._update_dynamic,
            GameMode.COMPETITIVE: self._update_competitive,
            GameMode.FOG: self._update_fog,
            GameMode.SURVIVAL: self._update_survival,
            GameMode.PROCEDURAL: self._update_procedural,
        }
        self._initializers[mode]()

    # Accessors -----------------------------------------------------------
    @property
    def moving_walls(self) -> List[MovingWall]:
        return self._items.moving_walls

    @property
    def rotating_sections(self) -> List[RotatingSection]:
        return self._items.rotating_sections

    @property
    def hazards(self) -> Dict[Cell, Hazard]:
        return self._items.hazards

    @property
    def food(self) -> Dict[Cell, Food]:
        return self._items.food

    @property
    def keys(self) -> Dict[Cell, Key]:
        return self._items.keys

    @property
    def collectibles(self) -> Dict[Cell, Collectible]:
        return self._items.collectibles

    @property
    def other_agents(self) -> List[OtherAgent]:
        return self._items.other_agents

    def occupied_cells(self) -> Set[Cell]:
        cells: Set[Cell] = set()
        for wall in self.moving_walls:
            cells.update(wall.occupied_cells(self.grid))
        for section in self.rotating_sections:
            cells.update(section.occupied_cells(self.grid))
        return cells

    def is_blocked(self, row: int, col: int) -> bool:
        cell = (row, col)
        for wall in self.moving_walls:
            if cell in wall.occupied_cells(self.grid):
                return True
        for section in self.rotating_sections:
            if cell in section.occupied_cells(self.grid):
                return True
        return False

    # Tick ------------------------------------------------------------------
    def advance(self, state: AgentState) -> StepEvents:
        """Move every element forward one tick and report what happened at the learner."""
        self.tick += 1
        events = StepEvents()
        self._updaters[self.mode](state, events)
        return events

    def _update_dynamic(self, state: AgentState, events: StepEvents) -> None:
        for wall in self.moving_walls:
            if wall.on_tick(self.tick, self.grid):
                events.adapted_to_change = True
                if state.position in wall.occupied_cells(self.grid):
                    events.caught_by_moving_wall = True
        for section in self.rotating_sections:
            if section.on_tick(self.tick, self.grid):
                events.adapted_to_change = True

    def _update_survival(self, state: AgentState, events: StepEvents) -> None:
        self._collect_at(state.position, events)
        for hazard in self.hazards.values():
            hazard.on_tick(self.tick, self.grid)

    def _update_competitive(self, state: AgentState, events: StepEvents) -> None:
        for agent in self.other_agents:
            if self.tick - agent.last_move_tick < agent.move_every:
                continue
            agent.last_move_tick = self.tick
            target = agent.choose_step(self.grid.goal, self.grid, self.rng)
            if target == state.position and target != agent.position:
                events.blocked_other_agent = True
                continue
            agent.position = target
            item = self.collectibles.get(target)
            if item is not None and item.is_available(self.tick):
                item.take(self.tick)
                agent.score += item.value
        for agent in self.other_agents:
            if agent.position == state.position:
                events.was_blocked = True
        self._collect_at(state.position, events)

    def _update_fog(self, state: AgentState, events: StepEvents) -> None:
        self._collect_at(state.position, events)

    def _update_procedural(self, state: AgentState, events: StepEvents) -> None:
        ratio = state.score / max(1, state.moves)
        if ratio > 0.8:
            self.difficulty += 0.1
        elif ratio < 0.3:
            self.difficulty = max(0.5, self.difficulty - 0.05)

        row, col = state.position
        section = (row // 10, col // 10)
        if section not in self.generated_sections:
            self.generated_sections.add(section)
            self._generate_section()
        self._collect_at(state.position, events)
        for hazard in self.hazards.values():
            hazard.on_tick(self.tick, self.grid)

    def _collect_at(self, cell: Cell, events: StepEvents) -> None:
        hazard = self.hazards.get(cell)
        if hazard is not None and hazard.should_activate(self.tick, self.rng):
            hazard.trigger(self.tick)
            events.hit_trap = True
            events.hazard = hazard

        food = self.food.get(cell)
        if food is not None and food.is_available(self.tick):
            food.take(self.tick)
            events.found_food = True
            events.food = food

        key = self.keys.get(cell)
        if key is not None and key.is_available(self.tick):
            key.take(self.tick)
            events.found_key = True
            events.key = key

        item = self.collectibles.get(cell)
        if item is not None and item.is_available(self.tick):
            item.take(self.tick)
            events.collectible_taken = True
            events.collectible = item

    # Population ------------------------------------------------------------
    def _init_dynamic(self) -> None:
        h, w = self.grid.height, self.grid.width
        for _ in range(w // 8):
            self.moving_walls.append(
                MovingWall(
                    position=(int(self.rng.integers(2, h - 2)), int(self.rng.integers(2, w - 2))),
                    direction=CARDINALS[int(self.rng.integers(4))],
                    speed=int(self.rng.integers(3, 6)),
                    length=int(self.rng.integers(2, 5)),
                )
            )
        if min(h, w) >= 9:
            for _ in range(min(h, w) // 15):
                self.rotating_sections.append(
                    RotatingSection(
                        center=(int(self.rng.integers(4, h - 4)), int(self.rng.integers(4, w - 4))),
                        radius=int(self.rng.integers(2, 4)),
                        rotation_speed=int(self.rng.integers(8, 12)),
                    )
                )
        self._keep_endpoints_clear()

    def _init_survival(self) -> None:
        n = (self.grid.height * self.grid.width) // 100
        for _ in range(n):
            cell = self.random_open_cell()
            if cell is not None:
                self.hazards[cell] = self._make_hazard(15 + int(self.rng.integers(15)))
        for _ in range(n * 2):
            cell = self.random_open_cell()
            if cell is not None:
                self.food[cell] = Food(
                    healing=float(20 + self.rng.integers(20)),
                    energy=float(15 + self.rng.integers(15)),
                    respawn_time=50 + int(self.rng.integers(50)),
                )
        for i in range(max(2, n // 2)):
            cell = self.random_open_cell()
            if cell is not None:
                self.keys[cell] = Key(key_type=f"key_{i}", respawn_time=100)
        for _ in range(n * 3):
            cell = self.random_open_cell()
            if cell is not None:
                self.collectibles[cell] = Collectible(
                    value=float(5 + self.rng.integers(15)),
                    kind=str(self.rng.choice(COLLECTIBLE_KINDS)),
                    respawn_time=60,
                )

    def _init_competitive(self) -> None:
        for i in range(2 + int(self.rng.integers(3))):
            cell = self.random_open_cell()
            if cell is not None:
                self.other_agents.append(
                    OtherAgent(agent_id=i, position=cell, strategy=str(self.rng.choice(OPPONENT_STRATEGIES)))
                )
        for _ in range((self.grid.height * self.grid.width) // 80):
            cell = self.random_open_cell()
            if cell is not None:
                self.collectibles[cell] = Collectible(
                    value=float(10 + self.rng.integers(20)),
                    respawn_time=30 + int(self.rng.integers(30)),
                )

    def _init_fog(self) -> None:
        self.vision_radius = 2 + int(self.rng.integers(2))
        for _ in range((self.grid.height * self.grid.width) // 150):
            cell = self.random_open_cell()
            if cell is not None:
                self.collectibles[cell] = Collectible(
                    value=float(25 + self.rng.integers(25)), kind="treasure", hidden=True
                )

    def _generate_section(self) -> None:
        for _ in range(int(self.difficulty * 3)):
            cell = self.random_open_cell()
            if cell is None:
                continue
            if self.rng.random() < 0.4:
                self.hazards[cell] = self._make_hazard(int(15 * self.difficulty))
            else:
                self.collectibles[cell] = Collectible(
                    value=float(int(10 * self.difficulty)), kind=str(self.rng.choice(COLLECTIBLE_KINDS))
                )
        logger.debug("Generated section %d at difficulty %.2f", len(self.generated_sections), self.difficulty)

    def _make_hazard(self, damage: float) -> Hazard:
        return Hazard(
            kind=str(self.rng.choice(HAZARD_KINDS)),
            damage=float(damage),
            pattern=HazardPattern(int(self.rng.integers(3))),
        )

    def _keep_endpoints_clear(self) -> None:
        """Drop generated walls whose footprint starts on the start or goal cell."""
        endpoints = {self.grid.start, self.grid.goal}
        self._items.moving_walls = [
            w for w in self.moving_walls if not endpoints & set(w.occupied_cells(self.grid))
        ]
        self._items.rotating_sections = [
            s for s in self.rotating_sections if not endpoints & set(s.occupied_cells(self.grid))
        ]

    def random_open_cell(self, attempts: int = 50) -> Optional[Cell]:
        """Random open interior cell not already holding an item, start or goal."""
        h, w = self.grid.height, self.grid.width
        if h <= 4 or w <= 4:
            return None
        taken = set(self.hazards) | set(self.food) | set(self.keys) | set(self.collectibles)
        taken.update(a.position for a in self.other_agents)
        taken.update((self.grid.start, self.grid.goal))
        for _ in range(attempts):
            cell = (int(self.rng.integers(1, h - 1)), int(self.rng.integers(1, w - 1)))
            if self.grid.is_open(*cell) and cell not in taken:
                return cell
        return None

    def nearest(self, cells, origin: Cell, count: int) -> List[Cell]:
        return sorted(cells, key=lambda c: manhattan(c, origin))[:count]
