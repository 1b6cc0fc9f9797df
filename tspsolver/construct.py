from __future__ import annotations
import logging
import multiprocessing as mp
from typing import Iterable, List, Optional, Tuple

from .distance import DistanceModel, Number, tour_length

logger = logging.getLogger(__name__)

_worker_model: Optional[DistanceModel] = None


def nearest_neighbor(model: DistanceModel, start: int = 0) -> List[int]:
    """Greedy tour: always move to the closest unvisited node.

    Ties go to the smallest node index, so the result depends only on the
    instance and ``start``.
    """
    n = model.n
    if n == 0:
        return []
    if not 0 <= start < n:
        raise ValueError(f"start node {start} out of range for dimension {n}")
    d = model.distance
    remaining = [j for j in range(n) if j != start]
    tour = [start]
    current = start
    while remaining:
        best_pos = 0
        best_d = d(current, remaining[0])
        for pos in range(1, len(remaining)):
            dj = d(current, remaining[pos])
            if dj < best_d:
                best_pos, best_d = pos, dj
        current = remaining.pop(best_pos)
        tour.append(current)
    return tour


def _init_worker(model: DistanceModel):
    global _worker_model
    _worker_model = model


def _build_in_worker(start: int) -> Tuple[int, List[int], Number]:
    tour = nearest_neighbor(_worker_model, start)
    return start, tour, tour_length(tour, _worker_model)


def multi_start_nearest_neighbor(model: DistanceModel, starts: Iterable[int],
                                 workers: int = 1) -> Tuple[List[int], Number, int]:
    """Nearest neighbour from several start nodes; keep the cheapest tour.

    Returns ``(tour, cost, start)``. Equal costs keep the earliest start.
    With ``workers > 1`` every tour is built in its own process on a private
    copy of the model.
    """
    starts = list(starts)
    if not starts:
        raise ValueError("at least one start node is required")
    if model.n == 0:
        return [], 0, starts[0]

    if workers > 1 and len(starts) > 1:
        with mp.Pool(min(workers, len(starts)), initializer=_init_worker, initargs=(model,)) as pool:
            results = pool.map(_build_in_worker, starts)
    else:
        results = []
        for s in starts:
            tour = nearest_neighbor(model, s)
            results.append((s, tour, tour_length(tour, model)))

    start, tour, cost = min(results, key=lambda r: r[2])
    logger.debug("multi-start nearest neighbour: %d starts, best start %d cost %s", len(starts), start, cost)
    return tour, cost, start
