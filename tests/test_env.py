import dataclasses
import pathlib
import sys

import numpy as np
import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT / "src"))

from maze_rl.env import CARDINAL_ACTIONS, Action, EnvConfig, MazeEnv  # noqa: E402
from maze_rl.modes import GameMode  # noqa: E402
from maze_rl import env as env_module  # noqa: E402
from maze_rl.rewards import Verdict, shape_reward  # noqa: E402
from maze_rl.world import GridWorld, Item  # noqa: E402


def open_grid(size: int) -> GridWorld:
    cells = np.ones((size, size), dtype=np.int8)
    cells[1:-1, 1:-1] = 0
    return GridWorld(cells)


def quiet_env(size: int, mode: str) -> MazeEnv:
    env = MazeEnv.for_mode(open_grid(size), mode, seed=0)
    env.reset()
    dynamics = env.dynamics
    for pool in (dynamics.hazards, dynamics.food, dynamics.keys, dynamics.collectibles):
        pool.clear()
    dynamics.other_agents.clear()
    dynamics.moving_walls.clear()
    dynamics.rotating_sections.clear()
    return env


def test_action_indices_are_fixed():
    assert len(Action) == 15
    assert [a.value for a in CARDINAL_ACTIONS] == [0, 1, 2, 3]
    assert Action.WAIT.value == 4
    assert Action.DASH_UP.value == 5 and Action.JUMP_LEFT.value == 12
    assert Action.USE_ITEM.value == 13 and Action.REST.value == 14
    assert Action.DASH_RIGHT.displacement == (0, 2)
    assert Action.JUMP_DOWN.displacement == (1, 0)


def test_reaching_goal_wins_with_dominant_reward():
    env = MazeEnv(open_grid(5))
    env.reset()
    results = [env.step(a) for a in (Action.MOVE_RIGHT, Action.MOVE_RIGHT, Action.MOVE_DOWN, Action.MOVE_DOWN)]
    assert [r.terminal for r in results] == [False, False, False, True]
    assert results[-1].won
    assert results[-1].reward >= 100
    assert env.state.moves == 4


def test_invalid_move_holds_position_and_is_scored():
    env = MazeEnv(open_grid(5))
    env.reset()
    result = env.step(Action.MOVE_UP)
    assert not result.moved
    assert result.position == (1, 1)
    assert result.reward < 0
    assert env.state.moves == 1
    assert env.state.stagnation == 1


def test_timeout_after_max_moves():
    env = MazeEnv(open_grid(7), EnvConfig(max_moves=2))
    env.reset()
    verdicts = [env.step(Action.MOVE_UP).verdict for _ in range(3)]
    assert verdicts == [Verdict.ONGOING, Verdict.ONGOING, Verdict.TIMEOUT]


def test_default_move_budget_depends_on_mode():
    grid = open_grid(7)
    assert MazeEnv(grid).max_moves == 49
    assert MazeEnv.for_mode(grid, "fog").max_moves == 98


def test_classic_valid_actions_are_cardinal_only():
    env = MazeEnv(open_grid(7))
    env.reset()
    assert env.valid_actions() == [Action.MOVE_RIGHT, Action.MOVE_DOWN]
    extended = env.valid_actions(extended=True)
    assert Action.DASH_RIGHT not in extended
    assert Action.JUMP_RIGHT not in extended
    assert Action.USE_ITEM not in extended
    assert Action.WAIT in extended and Action.REST in extended


def test_dash_spends_energy_in_survival():
    env = quiet_env(7, "survival")
    assert env.can_perform(Action.DASH_RIGHT)
    result = env.step(Action.DASH_RIGHT)
    assert result.position == (1, 3)
    assert env.state.energy == 97
    env.step(Action.JUMP_DOWN)
    assert env.state.position == (2, 3)
    assert env.state.energy == 95
    env.step(Action.REST)
    assert env.state.energy == 100


def test_dash_needs_both_cells_open():
    env = quiet_env(5, "survival")
    env.state.position = (1, 2)
    assert not env.can_perform(Action.DASH_RIGHT)
    assert env.can_perform(Action.MOVE_RIGHT)


def test_energy_not_spent_outside_resource_modes():
    env = quiet_env(7, "competitive")
    env.step(Action.DASH_DOWN)
    assert env.state.position == (3, 1)
    assert env.state.energy == env.state.max_energy


def test_use_item_applies_last_inventory_item():
    env = quiet_env(7, "survival")
    env.state.health = 40
    env.state.inventory.append(Item(kind="health_potion", value=25))
    env.state.inventory.append(Item(kind="key", key_type="key_3"))
    env.step(Action.USE_ITEM)
    assert env.state.keys == {"key_3"}
    env.step(Action.USE_ITEM)
    assert env.state.health == 65
    assert not env.can_perform(Action.USE_ITEM)


def test_fog_reset_explores_around_start():
    env = MazeEnv.for_mode(open_grid(11), GameMode.FOG, seed=3)
    env.reset()
    assert (1, 1) in env.state.explored
    assert len(env.state.explored) > 1
    before = len(env.state.explored)
    env.step(Action.MOVE_RIGHT)
    assert len(env.state.explored) > before


def test_reset_rebuilds_episode_state():
    env = MazeEnv.for_mode(open_grid(9), "survival", seed=1)
    env.reset()
    env.step(Action.MOVE_RIGHT)
    env.reset()
    assert env.state.position == (1, 1)
    assert env.state.moves == 0
    assert env.dynamics.tick == 0
    assert env.episode == 2


def test_fog_first_visit_earns_the_discovery_bonus(monkeypatch):
    env = MazeEnv.for_mode(open_grid(11), GameMode.FOG, seed=3)
    env.reset()
    env.dynamics.collectibles.clear()
    bonuses = []

    def recording_shaper(transition, config):
        reward, verdict = shape_reward(transition, config)
        plain, _ = shape_reward(dataclasses.replace(transition, discovered=False), config)
        bonuses.append((transition.discovered, reward - plain))
        return reward, verdict

    monkeypatch.setattr(env_module, "shape_reward", recording_shaper)
    env.step(Action.MOVE_RIGHT)
    env.step(Action.MOVE_LEFT)
    env.step(Action.WAIT)
    assert bonuses[0][0] is True
    assert bonuses[0][1] == pytest.approx(env.config.reward.discovery_bonus)
    assert bonuses[1] == (False, 0.0)
    assert bonuses[2] == (False, 0.0)


def test_move_energy_cost_is_flat_in_survival():
    env = quiet_env(7, "survival")
    env.step(Action.MOVE_RIGHT)
    env.step(Action.MOVE_DOWN)
    assert env.state.energy == 98
