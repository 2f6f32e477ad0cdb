from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

import numpy as np

from .dynamics import DynamicElements, StepEvents
from .modes import GameMode, ModeSpec, mode_spec
from .rewards import RewardConfig, Transition, Verdict, shape_reward
from .world import (
    AgentState,
    Cell,
    Direction,
    GridWorld,
    Item,
    is_valid_move,
    offset,
)

logger = logging.getLogger(__name__)


class Action(Enum):
    MOVE_UP = 0
    MOVE_RIGHT = 1
    MOVE_DOWN = 2
    MOVE_LEFT = 3
    WAIT = 4
    DASH_UP = 5
    DASH_RIGHT = 6
    DASH_DOWN = 7
    DASH_LEFT = 8
    JUMP_UP = 9
    JUMP_RIGHT = 10
    JUMP_DOWN = 11
    JUMP_LEFT = 12
    USE_ITEM = 13
    REST = 14

    @classmethod
    def move(cls, direction: Direction) -> "Action":
        return cls(direction.value)

    @property
    def direction(self) -> Optional[Direction]:
        return _ACTION_DIRECTIONS.get(self)

    @property
    def kind(self) -> str:
        return self.name.split("_")[0].lower()

    @property
    def displacement(self) -> Cell:
        direction = self.direction
        if direction is None:
            return (0, 0)
        dr, dc = direction.delta
        steps = 2 if self.kind == "dash" else 1
        return (dr * steps, dc * steps)


_ACTION_DIRECTIONS = {
    Action.MOVE_UP: Direction.UP,
    Action.MOVE_RIGHT: Direction.RIGHT,
    Action.MOVE_DOWN: Direction.DOWN,
    Action.MOVE_LEFT: Direction.LEFT,
    Action.DASH_UP: Direction.UP,
    Action.DASH_RIGHT: Direction.RIGHT,
    Action.DASH_DOWN: Direction.DOWN,
    Action.DASH_LEFT: Direction.LEFT,
    Action.JUMP_UP: Direction.UP,
    Action.JUMP_RIGHT: Direction.RIGHT,
    Action.JUMP_DOWN: Direction.DOWN,
    Action.JUMP_LEFT: Direction.LEFT,
}

CARDINAL_ACTIONS = (Action.MOVE_UP, Action.MOVE_RIGHT, Action.MOVE_DOWN, Action.MOVE_LEFT)

ENERGY_COST = {"move": 1.0, "dash": 3.0, "jump": 2.0}
WAIT_RECOVERY = 0.5
REST_RECOVERY = 5.0


@dataclass
class EnvConfig:
    mode: GameMode = GameMode.CLASSIC
    max_moves: Optional[int] = None  # defaults to h*w (classic) or 2*h*w (other modes)
    seed: Optional[int] = None
    reward: RewardConfig = field(default_factory=RewardConfig)

    def __post_init__(self) -> None:
        self.mode = GameMode.parse(self.mode)


@dataclass
class StepResult:
    action: Action
    position: Cell
    moved: bool
    reward: float
    verdict: Verdict
    events: StepEvents

    @property
    def terminal(self) -> bool:
        return self.verdict.terminal

    @property
    def won(self) -> bool:
        return self.verdict is Verdict.WIN


class MazeEnv:
    """Single-learner maze environment.

    Binds the static grid, the mode's dynamic elements, the learner's episodic
    :class:`AgentState` and the reward shaper. ``step`` runs one full tick: execute the
    action, advance dynamic elements, apply pickups, score the transition.
    """

    def __init__(self, grid: GridWorld, config: Optional[EnvConfig] = None):
        self.grid = grid
        self.config = config or EnvConfig()
        self.mode: GameMode = self.config.mode
        self.spec: ModeSpec = mode_spec(self.mode)
        self.rng = np.random.default_rng(self.config.seed)
        self.max_moves = self.config.max_moves or self._default_max_moves()
        self.state = AgentState(start=grid.start, goal=grid.goal, abilities=set(self.spec.abilities))
        self.dynamics = DynamicElements(grid, self.mode, self.rng)
        self.episode = 0

    @classmethod
    def for_mode(cls, grid: GridWorld, mode: Union[str, GameMode], seed: Optional[int] = None) -> "MazeEnv":
        return cls(grid, EnvConfig(mode=GameMode.parse(mode), seed=seed))

    def _default_max_moves(self) -> int:
        cells = self.grid.cell_count
        return cells if self.mode == GameMode.CLASSIC else cells * 2

    def reset(self) -> AgentState:
        self.state.reset()
        self.state.abilities = set(self.spec.abilities)
        self.dynamics = DynamicElements(self.grid, self.mode, self.rng)
        if self.spec.partial_observability:
            self.state.update_exploration(self.grid, self.dynamics.vision_radius)
        self.episode += 1
        return self.state

    # Validity -------------------------------------------------------------
    def is_valid_move(self, position: Cell, direction: Direction) -> bool:
        return is_valid_move(position, direction, self.grid, self.dynamics)

    def can_perform(self, action: Action, position: Optional[Cell] = None) -> bool:
        state = self.state
        position = state.position if position is None else position
        kind = action.kind
        if action in (Action.WAIT, Action.REST):
            return True
        if action == Action.USE_ITEM:
            return bool(state.inventory)
        if kind != "move" and kind not in state.abilities:
            return False
        if self.spec.drains_energy and state.energy < ENERGY_COST[kind]:
            return False
        direction = action.direction
        if kind == "jump":
            return self.grid.is_open(*offset(position, direction))
        if kind == "dash":
            return self.is_valid_move(position, direction) and self.is_valid_move(
                offset(position, direction), direction
            )
        return self.is_valid_move(position, direction)

    def valid_actions(self, extended: bool = False, position: Optional[Cell] = None) -> List[Action]:
        if not extended:
            position = self.state.position if position is None else position
            return [a for a in CARDINAL_ACTIONS if self.is_valid_move(position, a.direction)]
        return [a for a in Action if self.can_perform(a, position)]

    # Tick -----------------------------------------------------------------
    def step(self, action: Action) -> StepResult:
        state = self.state
        old_position = state.position
        visited_before = len(state.visited)
        moved = self._perform(action)

        if state.distance_to_goal() < state.distance_to_goal(old_position):
            state.stagnation = 0
        else:
            state.stagnation += 1

        events = self.dynamics.advance(state)
        self._apply_events(events)

        discovered = False
        unexplored = 0
        if self.spec.partial_observability:
            discovered = len(state.visited) > visited_before
            unexplored = state.unexplored_around(self.grid, state.position)
            state.update_exploration(self.grid, self.dynamics.vision_radius)

        state.moves += 1
        state.time_alive += 1
        reward, verdict = shape_reward(
            Transition(
                mode=self.mode,
                old_position=old_position,
                new_position=state.position,
                state=state,
                events=events,
                max_moves=self.max_moves,
                discovered=discovered,
                unexplored_neighbours=unexplored,
                resource_pressure=self.spec.drains_energy,
            ),
            self.config.reward,
        )
        state.score += reward
        if verdict.terminal:
            logger.debug(
                "Episode %d ended with %s after %d moves (score %.1f)",
                self.episode,
                verdict.value,
                state.moves,
                state.score,
            )
        return StepResult(
            action=action,
            position=state.position,
            moved=moved,
            reward=reward,
            verdict=verdict,
            events=events,
        )

    def _perform(self, action: Action) -> bool:
        state = self.state
        if action == Action.WAIT:
            state.restore_energy(WAIT_RECOVERY)
            return False
        if action == Action.REST:
            state.restore_energy(REST_RECOVERY)
            return False
        if action == Action.USE_ITEM:
            self._use_item()
            return False
        if not self.can_perform(action):
            return False
        dr, dc = action.displacement
        state.move_to((state.position[0] + dr, state.position[1] + dc))
        state.last_direction = action.direction
        if self.spec.drains_energy:
            state.energy = max(0.0, state.energy - ENERGY_COST[action.kind])
        return True

    def _use_item(self) -> None:
        state = self.state
        if not state.inventory:
            return
        item = state.inventory.pop()
        if item.kind == "health_potion":
            state.heal(item.value)
        elif item.kind == "energy_potion":
            state.restore_energy(item.value)
        elif item.kind == "key" and item.key_type is not None:
            state.keys.add(item.key_type)

    def _apply_events(self, events: StepEvents) -> None:
        state = self.state
        if events.found_food and events.food is not None:
            state.heal(events.food.healing)
            state.restore_energy(events.food.energy)
        if events.found_key and events.key is not None:
            state.inventory.append(Item(kind="key", key_type=events.key.key_type))
        if events.collectible_taken and events.collectible is not None:
            item = events.collectible
            if item.kind == "energy":
                state.inventory.append(Item(kind="energy_potion", value=item.value))
            elif item.kind == "powerup":
                state.inventory.append(Item(kind="health_potion", value=item.value))
        if events.hit_trap and events.hazard is not None:
            state.health = max(0.0, state.health - events.hazard.damage)
            state.last_damage_tick = self.dynamics.tick
