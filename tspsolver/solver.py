from __future__ import annotations
import datetime
import logging
import os
import time
from dataclasses import dataclass, field
from typing import List, Optional, Union

from .colony import ACOConfig, AntColony, MaxMinAntColony
from .construct import multi_start_nearest_neighbor, nearest_neighbor
from .distance import DistanceModel, Number, tour_length
from .improve import ImproveConfig, ImproveResult, improve
from .tsplib import EdgeWeightType, Instance, load_instance, parse_tsplib

logger = logging.getLogger(__name__)

CONSTRUCTORS = ("nearest_neighbor", "aco", "mmas")


@dataclass
class SolverConfig:
    max_passes: int = 10_000
    time_budget: Optional[Union[float, datetime.timedelta]] = None
    start_node: Optional[int] = None    # 0-based; defaults to node 0
    edge_weight_type: Optional[Union[EdgeWeightType, str]] = None  # override a coordinate metric
    constructor: str = "nearest_neighbor"
    n_starts: int = 1                   # nearest neighbour from this many consecutive start nodes
    workers: int = 1
    or_opt: bool = True
    policy: str = "best"
    precompute: Optional[bool] = None
    matrix_limit: int = 2000
    aco: Optional[ACOConfig] = None
    record_tours: bool = False

    def budget_seconds(self) -> Optional[float]:
        if isinstance(self.time_budget, datetime.timedelta):
            return self.time_budget.total_seconds()
        return self.time_budget


@dataclass
class Solution:
    name: str
    tour: List[int]          # 0-based node indices
    tour_ids: List[int]      # node numbers as written in the file
    cost: Number
    initial_cost: Number
    elapsed_sec: float
    improvement: Optional[ImproveResult] = field(default=None, repr=False)


def _rotate(tour: List[int], node: int) -> List[int]:
    i = tour.index(node)
    return tour[i:] + tour[:i]


def _construct(model: DistanceModel, config: SolverConfig, start_node: int,
               time_budget: Optional[float] = None) -> List[int]:
    n = model.n
    if config.constructor == "nearest_neighbor":
        if config.n_starts > 1:
            starts = [(start_node + k) % n for k in range(min(config.n_starts, n))]
            tour, _, _ = multi_start_nearest_neighbor(model, starts, workers=config.workers)
            return tour
        return nearest_neighbor(model, start_node)
    colony_cls = MaxMinAntColony if config.constructor == "mmas" else AntColony
    return colony_cls(model, config.aco or ACOConfig()).run(time_budget=time_budget).best_tour


def solve_instance(instance: Instance, config: Optional[SolverConfig] = None) -> Solution:
    """Build a tour for ``instance`` and improve it to a local optimum.

    ``ParseError`` and ``UnsupportedMetric`` pass through unchanged; bad
    configuration values raise ``ValueError``.
    """
    config = config or SolverConfig()
    if config.constructor not in CONSTRUCTORS:
        raise ValueError(f"unknown constructor {config.constructor!r}, expected one of {CONSTRUCTORS}")
    start = time.time()

    if config.edge_weight_type is not None:
        override = config.edge_weight_type
        if not isinstance(override, EdgeWeightType):
            override = EdgeWeightType(override.upper())
        instance = instance.with_edge_weight_type(override)
    model = DistanceModel(instance, precompute=config.precompute, matrix_limit=config.matrix_limit)

    n = instance.dimension
    if n == 0:
        logger.info("%s: empty instance, nothing to solve", instance.name)
        return Solution(name=instance.name, tour=[], tour_ids=[], cost=0, initial_cost=0,
                        elapsed_sec=time.time() - start)

    start_node = 0 if config.start_node is None else config.start_node
    if not 0 <= start_node < n:
        raise ValueError(f"start node {start_node} out of range for dimension {n}")

    budget = config.budget_seconds()

    def remaining() -> Optional[float]:
        if budget is None:
            return None
        return max(0.0, budget - (time.time() - start))

    tour = _construct(model, config, start_node, remaining())
    initial_cost = tour_length(tour, model)
    logger.info("%s: %s tour, n=%d, cost %s", instance.name, config.constructor, n, initial_cost)

    result = improve(tour, model, ImproveConfig(max_passes=config.max_passes, time_budget=remaining(),
                                                or_opt=config.or_opt, policy=config.policy,
                                                record_tours=config.record_tours))
    tour = _rotate(result.tour, start_node)
    elapsed = time.time() - start
    logger.info("%s: improved to %s in %d passes (%d 2-opt, %d or-opt moves), %.2fs",
                instance.name, result.cost, result.passes, result.two_opt_moves,
                result.or_opt_moves, elapsed)
    return Solution(name=instance.name, tour=tour, tour_ids=[instance.node_id(i) for i in tour],
                    cost=result.cost, initial_cost=initial_cost, elapsed_sec=elapsed,
                    improvement=result)


def solve_text(text: str, config: Optional[SolverConfig] = None, source: str = "<string>") -> Solution:
    return solve_instance(parse_tsplib(text, source=source), config)


def solve_file(path: Union[str, os.PathLike], config: Optional[SolverConfig] = None) -> Solution:
    instance = load_instance(path)
    logger.info("parsed %s: %s, dimension %d, %s", os.fspath(path), instance.name,
                instance.dimension, instance.edge_weight_type.value)
    return solve_instance(instance, config)
