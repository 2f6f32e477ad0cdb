"""Grid-maze reinforcement learning: environment, policies, planner and exploration scheduling."""

from .env import Action, EnvConfig, MazeEnv, StepResult  # noqa: F401
from .hybrid import HybridPolicy  # noqa: F401
from .linear import LinearConfig, LinearQPolicy  # noqa: F401
from .maze import generate_maze  # noqa: F401
from .modes import GameMode, ModeSpec, mode_presets  # noqa: F401
from .pathfinding import solve_astar, solve_bfs  # noqa: F401
from .planner import mcts_plan  # noqa: F401
from .policy import PlannerConfig, PolicyConfig  # noqa: F401
from .rewards import RewardConfig, Verdict  # noqa: F401
from .rl import EpisodeRunner, ReplayBuffer  # noqa: F401
from .scheduler import AutoEpsilonScheduler, EpsilonSchedule, decay_for_horizon  # noqa: F401
from .tabular import TabularQPolicy  # noqa: F401
from .world import Direction, GridWorld  # noqa: F401
