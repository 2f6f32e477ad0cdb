import pathlib
import sys

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT / "src"))

from maze_rl.policy import PolicyConfig  # noqa: E402
from maze_rl.scheduler import AutoEpsilonScheduler, EpsilonSchedule, decay_for_horizon  # noqa: E402
from maze_rl.tabular import TabularQPolicy  # noqa: E402
from maze_rl.world import GridWorld  # noqa: E402

GRID = GridWorld.from_rows(
    [
        [1, 1, 1, 1, 1],
        [1, 0, 0, 0, 1],
        [1, 0, 1, 0, 1],
        [1, 0, 0, 0, 1],
        [1, 1, 1, 1, 1],
    ]
)


def test_decay_for_horizon():
    assert decay_for_horizon(1.0, 0.1, 100) == pytest.approx(0.1 ** 0.01)
    assert decay_for_horizon(1.0, 0.0, 200) == pytest.approx(0.01 ** (1 / 200))
    assert decay_for_horizon(1.0, 0.0001, 1) == 0.9
    assert decay_for_horizon(0.5, 0.5, 10) == 0.9999


def test_schedule_validation():
    with pytest.raises(ValueError):
        EpsilonSchedule.from_horizon(0.1, 0.5, 100)
    with pytest.raises(ValueError):
        EpsilonSchedule.from_horizon(1.5, 0.1, 100)
    with pytest.raises(ValueError):
        EpsilonSchedule.from_horizon(0.5, -0.1, 100)


def test_schedule_values_decrease_to_floor():
    schedule = EpsilonSchedule.from_horizon(0.9, 0.05, 300)
    values = [schedule.value_at(t) for t in range(0, 2000, 50)]
    assert values[0] == 0.9
    assert all(b <= a for a, b in zip(values, values[1:]))
    assert values[-1] == 0.05
    assert schedule.value_at(300) == pytest.approx(0.05, rel=1e-6)


def test_initial_defaults_per_mode():
    fog = AutoEpsilonScheduler("fog").initial_defaults()
    assert (fog.start, fog.end, fog.decay) == (0.95, 0.1, 0.98)
    dynamic = AutoEpsilonScheduler("dynamic", maze_size=31).initial_defaults()
    assert (dynamic.start, dynamic.end, dynamic.decay) == (0.85, 0.08, 0.992)
    tiny = AutoEpsilonScheduler("classic", maze_size=21).initial_defaults()
    assert (tiny.start, tiny.end, tiny.decay) == (0.6, 0.05, 0.97)
    big = AutoEpsilonScheduler("classic", maze_size=41).initial_defaults()
    assert (big.start, big.end, big.decay) == (0.8, 0.05, 0.99)


def test_sustained_success_never_raises_epsilon_or_decay():
    policy = TabularQPolicy(GRID, PolicyConfig(epsilon=0.6, epsilon_decay=0.99))
    scheduler = AutoEpsilonScheduler("classic")
    for _ in range(20):
        epsilon, decay = policy.epsilon, policy.epsilon_decay
        scheduler.on_episode_end(policy, True, 4, 120.0)
        assert policy.epsilon <= epsilon
        assert policy.epsilon_decay <= decay
    assert policy.epsilon < 0.6
    assert policy.epsilon_decay < 0.99


def test_sustained_failure_bumps_epsilon_after_half_window():
    policy = TabularQPolicy(GRID, PolicyConfig(epsilon=0.5, epsilon_decay=0.95))
    scheduler = AutoEpsilonScheduler("survival")
    for _ in range(9):
        scheduler.on_episode_end(policy, False, 50, -60.0)
    assert policy.epsilon == 0.5
    scheduler.on_episode_end(policy, False, 50, -60.0)
    assert policy.epsilon == pytest.approx(0.6)
    assert policy.epsilon_decay == pytest.approx(0.975)
    for _ in range(10):
        scheduler.on_episode_end(policy, False, 50, -60.0)
    assert policy.epsilon == 0.95


def test_fog_bump_is_smaller_and_floor_tracks_target():
    policy = TabularQPolicy(GRID, PolicyConfig(epsilon=0.5))
    scheduler = AutoEpsilonScheduler("fog")
    for _ in range(10):
        scheduler.on_episode_end(policy, False, 50, -60.0)
    assert policy.epsilon == pytest.approx(0.55)
    assert policy.epsilon_min == 0.1


def test_window_stats():
    scheduler = AutoEpsilonScheduler("classic", window=4)
    for won, moves, reward in [(True, 10, 100.0), (False, 0, -50.0), (True, 30, 80.0), (False, 20, -40.0), (True, 40, 90.0)]:
        scheduler.record_episode(won, moves, reward)
    stats = scheduler.window_stats()
    assert stats.n == 4
    assert stats.success == 0.5
    assert stats.median_moves == 30
    assert stats.avg_reward == pytest.approx(20.0)
