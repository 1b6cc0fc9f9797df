from __future__ import annotations
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from .distance import DistanceModel, Number, check_tour, tour_length

logger = logging.getLogger(__name__)

Dist = Callable[[int, int], Number]
POLICIES = ("best", "first")


@dataclass
class ImproveConfig:
    max_passes: int = 10_000
    time_budget: Optional[float] = None  # seconds, checked between passes
    or_opt: bool = True
    or_opt_max_segment: int = 3
    policy: str = "best"                 # "best": one best move per pass, "first": apply as found
    tolerance: float = 1e-9              # a move must gain more than this
    record_tours: bool = False           # keep a copy of the tour after every pass


@dataclass
class ImproveResult:
    tour: List[int]
    cost: Number
    initial_cost: Number
    passes: int
    two_opt_moves: int
    or_opt_moves: int
    converged: bool
    history: List[Number] = field(default_factory=list, repr=False)  # cost after every pass
    history_tours: List[List[int]] = field(default_factory=list, repr=False)


def two_opt_pass(tour: List[int], d: Dist, policy: str = "best",
                 tolerance: float = 1e-9) -> Tuple[Number, int]:
    """One sweep over all pairs of non-adjacent edges, reversing segments in place.

    Returns ``(total delta, moves applied)``. The best policy applies only the
    most negative move, ties going to the smallest ``(i, j)``.
    """
    n = len(tour)
    if n < 4:
        return 0, 0

    if policy == "first":
        total, moves = 0, 0
        for i in range(n - 2):
            for j in range(i + 2, n if i > 0 else n - 1):
                a, b = tour[i], tour[i + 1]
                c, e = tour[j], tour[(j + 1) % n]
                delta = d(a, c) + d(b, e) - d(a, b) - d(c, e)
                if delta < -tolerance:
                    tour[i + 1:j + 1] = reversed(tour[i + 1:j + 1])
                    total += delta
                    moves += 1
        return total, moves

    best_delta, best_move = -tolerance, None
    for i in range(n - 2):
        a, b = tour[i], tour[i + 1]
        d_ab = d(a, b)
        for j in range(i + 2, n if i > 0 else n - 1):
            c, e = tour[j], tour[(j + 1) % n]
            delta = d(a, c) + d(b, e) - d_ab - d(c, e)
            if delta < best_delta:
                best_delta, best_move = delta, (i, j)
    if best_move is None:
        return 0, 0
    i, j = best_move
    tour[i + 1:j + 1] = reversed(tour[i + 1:j + 1])
    return best_delta, 1


def relocate(tour: List[int], s: int, length: int, p: int, reverse: bool = False):
    """Move the chain of ``length`` nodes starting at position ``s`` (cyclic)
    to sit between ``tour[p]`` and its successor."""
    n = len(tour)
    seg = [tour[(s + k) % n] for k in range(length)]
    a = tour[p]
    rest = [tour[(s + length + k) % n] for k in range(n - length)]
    idx = rest.index(a)
    if reverse:
        seg.reverse()
    tour[:] = rest[:idx + 1] + seg + rest[idx + 1:]


def or_opt_pass(tour: List[int], d: Dist, max_segment: int = 3, policy: str = "best",
                tolerance: float = 1e-9) -> Tuple[Number, int]:
    """One sweep of chain relocations (chains of 1..max_segment nodes, either orientation).

    Scan order is chain length, then start position, then target edge, forward
    before reversed; the best policy keeps the first of equally good moves.
    """
    n = len(tour)
    if n < 4:
        return 0, 0
    total, moves = 0, 0
    best_delta, best_move = -tolerance, None
    for length in range(1, min(max_segment, n - 2) + 1):
        for s in range(n):
            e = (s + length - 1) % n
            prev, first, last, nxt = tour[s - 1], tour[s], tour[e], tour[(e + 1) % n]
            removed = d(prev, first) + d(last, nxt) - d(prev, nxt)
            for k in range(1, n - length):
                p = (e + k) % n
                a, b = tour[p], tour[(p + 1) % n]
                d_ab = d(a, b)
                delta = d(a, first) + d(last, b) - d_ab - removed
                rev = False
                if length > 1:
                    delta_rev = d(a, last) + d(first, b) - d_ab - removed
                    if delta_rev < delta:
                        delta, rev = delta_rev, True
                if policy == "first":
                    if delta < -tolerance:
                        relocate(tour, s, length, p, rev)
                        total += delta
                        moves += 1
                        break
                elif delta < best_delta:
                    best_delta, best_move = delta, (s, length, p, rev)
    if best_move is not None:
        relocate(tour, *best_move)
        return best_delta, 1
    return total, moves


def _resync(tour: Sequence[int], model: DistanceModel, cost: Number, passes: int) -> Number:
    actual = tour_length(tour, model)
    if abs(actual - cost) > 1e-6 * max(1.0, abs(actual)):
        logger.warning("running cost %s drifted from recomputed %s after pass %d; resynchronising",
                       cost, actual, passes)
    return actual


def improve(tour: Sequence[int], model: DistanceModel, config: Optional[ImproveConfig] = None) -> ImproveResult:
    """2-opt to a local optimum, then Or-opt, alternating until neither helps.

    The caller's sequence is not modified. Budgets are checked between
    passes only, so the tour is a valid permutation at every step.
    """
    config = config or ImproveConfig()
    if config.policy not in POLICIES:
        raise ValueError(f"unknown improvement policy {config.policy!r}, expected one of {POLICIES}")
    tour = list(tour)
    check_tour(tour, model.n)
    d = model.distance

    cost = tour_length(tour, model)
    result = ImproveResult(tour=tour, cost=cost, initial_cost=cost, passes=0,
                           two_opt_moves=0, or_opt_moves=0, converged=False, history=[cost])
    if config.record_tours:
        result.history_tours.append(list(tour))

    def record(c: Number):
        result.history.append(c)
        if config.record_tours:
            result.history_tours.append(list(tour))

    if len(tour) < 4:
        result.converged = True
        return result

    start = time.time()

    def budget_left() -> bool:
        if result.passes >= config.max_passes:
            return False
        return config.time_budget is None or time.time() - start < config.time_budget

    while budget_left():
        delta, moves = two_opt_pass(tour, d, config.policy, config.tolerance)
        result.passes += 1
        cost = _resync(tour, model, cost + delta, result.passes)
        record(cost)
        if moves:
            result.two_opt_moves += moves
            logger.debug("pass %d: 2-opt %d move(s), cost %s", result.passes, moves, cost)
            continue
        if not config.or_opt:
            result.converged = True
            break
        if not budget_left():
            break
        delta, moves = or_opt_pass(tour, d, config.or_opt_max_segment, config.policy, config.tolerance)
        result.passes += 1
        cost = _resync(tour, model, cost + delta, result.passes)
        record(cost)
        if not moves:
            result.converged = True
            break
        result.or_opt_moves += moves
        logger.debug("pass %d: or-opt %d move(s), cost %s", result.passes, moves, cost)

    result.cost = cost
    if not result.converged:
        logger.info("improvement stopped by budget after %d passes (cost %s)", result.passes, cost)
    return result
