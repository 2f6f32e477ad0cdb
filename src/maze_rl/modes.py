from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Tuple, Union


class GameMode(Enum):
    CLASSIC = "classic"
    DYNAMIC = "dynamic"
    COMPETITIVE = "competitive"
    FOG = "fog"
    SURVIVAL = "survival"
    PROCEDURAL = "procedural"

    @classmethod
    def parse(cls, value: Union[str, "GameMode"]) -> "GameMode":
        if isinstance(value, GameMode):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unknown game mode {value!r}; expected one of {[m.value for m in cls]}") from None


@dataclass(frozen=True)
class ModeSpec:
    mode: GameMode
    description: str
    # Linear policy defaults.
    learning_rate: float
    initial_epsilon: float
    epsilon_decay: float
    # Goal-seeking scorer (fog / survival / competitive).
    goal_seeking: bool = False
    goal_weight: float = 10.0
    exploration_weight: float = 0.3
    revisit_penalty: float = -5.0
    random_action_rate: float = 0.2
    # Exploration scheduler.
    target_epsilon_end: float = 0.05
    low_success_bump: float = 0.1
    schedule_seed: Tuple[float, float, float] = (0.85, 0.08, 0.992)
    # Environment.
    partial_observability: bool = False
    drains_energy: bool = False
    abilities: FrozenSet[str] = frozenset({"move"})
    dynamic_block_size: int = 0


def mode_presets() -> Dict[GameMode, ModeSpec]:
    """Return the per-mode defaults, one entry for every game mode."""
    return {
        GameMode.CLASSIC: ModeSpec(
            mode=GameMode.CLASSIC,
            description="Static maze, single goal, perfect information.",
            learning_rate=0.001,
            initial_epsilon=0.7,
            epsilon_decay=0.995,
            target_epsilon_end=0.05,
            schedule_seed=(0.8, 0.05, 0.99),
        ),
        GameMode.DYNAMIC: ModeSpec(
            mode=GameMode.DYNAMIC,
            description="Walls move and rotate while the agent navigates.",
            learning_rate=0.15,
            initial_epsilon=0.85,
            epsilon_decay=0.992,
            target_epsilon_end=0.08,
            abilities=frozenset({"move", "jump"}),
            dynamic_block_size=32,
        ),
        GameMode.COMPETITIVE: ModeSpec(
            mode=GameMode.COMPETITIVE,
            description="Race scripted opponents for shared collectibles and the exit.",
            learning_rate=0.05,
            initial_epsilon=0.9,
            epsilon_decay=0.995,
            goal_seeking=True,
            target_epsilon_end=0.08,
            abilities=frozenset({"move", "dash"}),
            dynamic_block_size=16,
        ),
        GameMode.FOG: ModeSpec(
            mode=GameMode.FOG,
            description="Limited vision; the agent must explore and remember the maze.",
            learning_rate=0.2,
            initial_epsilon=0.95,
            epsilon_decay=0.98,
            goal_seeking=True,
            goal_weight=50.0,
            exploration_weight=0.1,
            revisit_penalty=-20.0,
            random_action_rate=0.05,
            target_epsilon_end=0.1,
            low_success_bump=0.05,
            schedule_seed=(0.95, 0.1, 0.98),
            partial_observability=True,
            dynamic_block_size=2,
        ),
        GameMode.SURVIVAL: ModeSpec(
            mode=GameMode.SURVIVAL,
            description="Manage health and energy while avoiding traps and collecting items.",
            learning_rate=0.1,
            initial_epsilon=0.8,
            epsilon_decay=0.99,
            goal_seeking=True,
            target_epsilon_end=0.08,
            drains_energy=True,
            abilities=frozenset({"move", "dash", "jump"}),
            dynamic_block_size=15,
        ),
        GameMode.PROCEDURAL: ModeSpec(
            mode=GameMode.PROCEDURAL,
            description="Hazards and rewards spawn as the agent explores; difficulty adapts.",
            learning_rate=0.1,
            initial_epsilon=0.9,
            epsilon_decay=0.994,
            target_epsilon_end=0.05,
            drains_energy=True,
            abilities=frozenset({"move", "dash", "jump"}),
            dynamic_block_size=14,
        ),
    }


_PRESETS = mode_presets()


def mode_spec(mode: Union[str, GameMode]) -> ModeSpec:
    return _PRESETS[GameMode.parse(mode)]
