"""Reward shaping shared by every policy.

``shape_reward`` is a pure function of a :class:`Transition`: it never mutates the agent
state. The per-mode bonus blocks are selected through ``_MODE_BLOCKS`` and the terminal
override is applied last so that a win always scores at least ``win_reward`` and a loss
at most ``timeout_penalty``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from .dynamics import StepEvents
from .modes import GameMode
from .world import AgentState, Cell, manhattan


class Verdict(Enum):
    ONGOING = "ongoing"
    WIN = "win"
    DEATH = "death"
    EXHAUSTION = "exhaustion"
    SUFFOCATION = "suffocation"
    TIMEOUT = "timeout"

    @property
    def terminal(self) -> bool:
        return self is not Verdict.ONGOING


@dataclass
class RewardConfig:
    step_cost: float = -0.5
    closer_min: float = 3.0
    closer_max: float = 15.0
    closer_slope: float = 0.5
    sideways_penalty: float = -0.1
    away_penalty: float = -1.0
    stagnation_threshold: int = 15
    stagnation_rate: float = 0.5
    low_health: float = 20.0
    low_health_penalty: float = -3.0
    low_energy: float = 10.0
    low_energy_penalty: float = -2.0
    discovery_bonus: float = 8.0
    frontier_bonus: float = 1.5
    food_bonus: float = 20.0
    key_bonus: float = 15.0
    trap_penalty: float = -30.0
    collectible_bonus: float = 25.0
    block_bonus: float = 10.0
    blocked_penalty: float = -5.0
    adapt_bonus: float = 8.0
    caught_penalty: float = -15.0
    procedural_collectible_bonus: float = 10.0
    procedural_trap_penalty: float = -15.0
    win_reward: float = 100.0
    efficiency_budget: int = 1000
    efficiency_scale: float = 0.1
    death_penalty: float = -100.0
    timeout_penalty: float = -50.0


@dataclass
class Transition:
    """Everything the shaper needs to score one tick."""

    mode: GameMode
    old_position: Cell
    new_position: Cell
    state: AgentState
    events: StepEvents
    max_moves: int
    discovered: bool = False
    unexplored_neighbours: int = 0
    resource_pressure: bool = False


def judge(transition: Transition) -> Verdict:
    state = transition.state
    if transition.new_position == state.goal:
        return Verdict.WIN
    if state.health <= 0:
        return Verdict.DEATH
    if state.energy <= 0:
        return Verdict.EXHAUSTION
    if state.oxygen <= 0:
        return Verdict.SUFFOCATION
    if state.moves > transition.max_moves:
        return Verdict.TIMEOUT
    return Verdict.ONGOING


def distance_term(old_position: Cell, new_position: Cell, goal: Cell, config: RewardConfig) -> float:
    old_distance = manhattan(old_position, goal)
    new_distance = manhattan(new_position, goal)
    if new_distance < old_distance:
        return max(config.closer_min, config.closer_max - new_distance * config.closer_slope)
    if new_distance == old_distance:
        return config.sideways_penalty
    return config.away_penalty


def _fog_block(t: Transition, config: RewardConfig) -> float:
    reward = config.frontier_bonus * t.unexplored_neighbours
    if t.discovered:
        reward += config.discovery_bonus
    return reward


def _survival_block(t: Transition, config: RewardConfig) -> float:
    reward = 0.0
    if t.events.found_food:
        reward += config.food_bonus
    if t.events.found_key:
        reward += config.key_bonus
    if t.events.hit_trap:
        reward += config.trap_penalty
    return reward


def _competitive_block(t: Transition, config: RewardConfig) -> float:
    reward = 0.0
    if t.events.collectible_taken:
        reward += config.collectible_bonus
    if t.events.blocked_other_agent:
        reward += config.block_bonus
    if t.events.was_blocked:
        reward += config.blocked_penalty
    return reward


def _dynamic_block(t: Transition, config: RewardConfig) -> float:
    reward = 0.0
    if t.events.adapted_to_change:
        reward += config.adapt_bonus
    if t.events.caught_by_moving_wall:
        reward += config.caught_penalty
    return reward


def _procedural_block(t: Transition, config: RewardConfig) -> float:
    reward = 0.0
    if t.events.collectible_taken:
        reward += config.procedural_collectible_bonus
    if t.events.hit_trap:
        reward += config.procedural_trap_penalty
    return reward


_MODE_BLOCKS: Dict[GameMode, Callable[[Transition, RewardConfig], float]] = {
    GameMode.CLASSIC: lambda t, config: 0.0,
    GameMode.DYNAMIC: _dynamic_block,
    GameMode.COMPETITIVE: _competitive_block,
    GameMode.FOG: _fog_block,
    GameMode.SURVIVAL: _survival_block,
    GameMode.PROCEDURAL: _procedural_block,
}


def shape_reward(transition: Transition, config: Optional[RewardConfig] = None) -> Tuple[float, Verdict]:
    """Score one transition and classify it as ongoing, a win or a loss."""
    config = config or RewardConfig()
    state = transition.state

    reward = config.step_cost
    reward += distance_term(transition.old_position, transition.new_position, state.goal, config)
    if state.stagnation > config.stagnation_threshold:
        reward -= state.stagnation * config.stagnation_rate
    if transition.resource_pressure:
        if state.health <= config.low_health:
            reward += config.low_health_penalty
        if state.energy <= config.low_energy:
            reward += config.low_energy_penalty
    reward += _MODE_BLOCKS[transition.mode](transition, config)

    verdict = judge(transition)
    if verdict is Verdict.WIN:
        efficiency = max(0, config.efficiency_budget - state.moves) * config.efficiency_scale
        reward = config.win_reward + efficiency + max(0.0, reward)
    elif verdict is Verdict.TIMEOUT:
        reward = config.timeout_penalty + min(0.0, reward)
    elif verdict.terminal:
        reward = config.death_penalty + min(0.0, reward)
    return float(reward), verdict
