"""Time-boxed UCB1 tree search usable in place of a policy's direct action choice."""

from __future__ import annotations

import math
import time
from collections import defaultdict
from typing import Callable, Dict, Hashable, Optional, Sequence, Tuple, TypeVar

import numpy as np

S = TypeVar("S", bound=Hashable)
A = TypeVar("A")

StepFn = Callable[[S, A], Tuple[S, float, bool]]


def mcts_plan(
    state: S,
    valid_actions_fn: Callable[[S], Sequence[A]],
    step_fn: StepFn,
    evaluate_fn: Callable[[S], float],
    *,
    budget_ms: float = 30.0,
    max_depth: int = 25,
    c: float = 1.4,
    default_action: Optional[A] = None,
    rng: Optional[np.random.Generator] = None,
    clock: Callable[[], float] = time.perf_counter,
) -> Optional[A]:
    """Return the root action with the best mean simulated return.

    ``step_fn(state, action)`` must return ``(next_state, reward, terminal)``. Statistics
    live only for the duration of this call. At least one simulation runs even when the
    budget is already spent; the loop stops at the first deadline check after that.
    """
    rng = rng if rng is not None else np.random.default_rng()
    root_actions = list(valid_actions_fn(state))
    if not root_actions:
        return default_action

    state_visits: Dict[S, int] = {}
    action_visits: Dict[Tuple[S, A], int] = defaultdict(int)
    returns: Dict[Tuple[S, A], float] = defaultdict(float)

    def backup(s: S, a: A, value: float) -> None:
        action_visits[(s, a)] += 1
        returns[(s, a)] += value
        state_visits[s] = state_visits.get(s, 0) + 1

    def rollout(s: S, depth: int) -> float:
        while depth < max_depth:
            actions = valid_actions_fn(s)
            if not actions:
                break
            a = actions[int(rng.integers(len(actions)))]
            s, reward, terminal = step_fn(s, a)
            if terminal:
                return reward
            depth += 1
        return evaluate_fn(s)

    def simulate(s: S, depth: int) -> float:
        if depth >= max_depth:
            return evaluate_fn(s)
        actions = valid_actions_fn(s)
        if not actions:
            return evaluate_fn(s)

        if s not in state_visits:
            state_visits[s] = 0
            a = actions[int(rng.integers(len(actions)))]
            nxt, reward, terminal = step_fn(s, a)
            value = reward if terminal else rollout(nxt, depth + 1)
            backup(s, a, value)
            return value

        log_total = math.log(state_visits[s] + 1e-9 + 1)
        best_a = actions[0]
        best_score = -math.inf
        for a in actions:
            n = action_visits[(s, a)]
            mean = returns[(s, a)] / n if n else 0.0
            score = mean + c * math.sqrt(log_total / (1 + n))
            if score > best_score:
                best_score = score
                best_a = a

        nxt, reward, terminal = step_fn(s, best_a)
        value = reward if terminal else simulate(nxt, depth + 1)
        backup(s, best_a, value)
        return value

    deadline = clock() + budget_ms / 1000.0
    while True:
        simulate(state, 0)
        if clock() >= deadline:
            break

    best_action = root_actions[0]
    best_mean = -math.inf
    for a in root_actions:
        n = action_visits[(state, a)]
        mean = returns[(state, a)] / n if n else -math.inf
        if mean > best_mean:
            best_mean = mean
            best_action = a
    return best_action
