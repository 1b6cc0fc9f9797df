from __future__ import annotations
import logging
import math
import random
import time
from dataclasses import dataclass, field
from typing import List, Optional

from .distance import DistanceModel, Number, tour_length

logger = logging.getLogger(__name__)


@dataclass
class ACOConfig:
    alpha: float = 1.0             # pheromone influence
    beta: float = 3.0              # heuristic influence
    rho: float = 0.1               # evaporation rate
    Q: float = 100.0               # pheromone deposit factor
    tau0: Optional[float] = 0.1    # initial pheromone; if None, 1 / (n * avg_dist)
    elitist_weight: float = 1.0    # extra deposit on the best-so-far tour, in units of one ant
    tau_min: float = 1e-5          # pheromone floor after evaporation
    tau_max: Optional[float] = None  # MaxMinAntColony only
    n_ants: int = 50
    n_iterations: int = 1000
    seed: Optional[int] = None
    log_every: int = 100


@dataclass
class ACOResult:
    best_tour: List[int]
    best_length: Number
    history_best_lengths: List[float]
    config: ACOConfig
    elapsed_sec: float
    history_best_tours: List[List[int]] = field(default_factory=list, repr=False)


class AntColony:
    """Elitist Ant System over a :class:`DistanceModel`.

    Every ant deposits ``Q / L`` on its tour; the best tour found so far gets
    another ``elitist_weight * Q / L_best``. Pheromone never evaporates below
    ``tau_min``.
    """

    def __init__(self, model: DistanceModel, cfg: ACOConfig):
        self.model = model
        self.D = model.matrix().astype(float).tolist()
        self.n = model.n
        self.cfg = cfg
        self.rng = random.Random(cfg.seed)

        # heuristic 1/d; coincident nodes get a very attractive value
        self.eta = [[0.0] * self.n for _ in range(self.n)]
        for i in range(self.n):
            for j in range(self.n):
                if i != j:
                    self.eta[i][j] = 1.0 / max(self.D[i][j], 1e-9)

        tau0 = cfg.tau0 if cfg.tau0 is not None else self._default_tau0()
        self.tau = [[tau0 if i != j else 0.0 for j in range(self.n)] for i in range(self.n)]

        self.best_tour: Optional[List[int]] = None
        self.best_length = math.inf
        self.history_best_lengths: List[float] = []
        self.history_best_tours: List[List[int]] = []

    def _default_tau0(self) -> float:
        total = 0.0; count = 0
        for i in range(self.n):
            for j in range(i + 1, self.n):
                total += self.D[i][j]; count += 1
        avg = total / max(1, count)
        return 1.0 / (self.n * avg) if avg > 0 else 1.0

    def _prob_next(self, current: int, unvisited: set) -> int:
        alpha, beta = self.cfg.alpha, self.cfg.beta
        weights = []
        total = 0.0
        for j in unvisited:
            w = (self.tau[current][j] ** alpha) * (self.eta[current][j] ** beta)
            if w > 0.0 and math.isfinite(w):
                weights.append((j, w))
                total += w
        if total == 0.0 or not math.isfinite(total):
            return self.rng.choice(sorted(unvisited))
        r = self.rng.random() * total
        acc = 0.0
        for j, w in weights:
            acc += w
            if acc >= r:
                return j
        return weights[-1][0]

    def _tour_construction(self) -> List[int]:
        n = self.n
        start = self.rng.randrange(n)
        tour = [start]
        unvisited = set(range(n))
        unvisited.remove(start)
        current = start
        while unvisited:
            nxt = self._prob_next(current, unvisited)
            tour.append(nxt)
            unvisited.remove(nxt)
            current = nxt
        return tour

    def _evaporate(self):
        keep, floor = 1.0 - self.cfg.rho, self.cfg.tau_min
        for i in range(self.n):
            row = self.tau[i]
            for j in range(self.n):
                if i != j:
                    row[j] = max(row[j] * keep, floor)

    def _lay(self, tour: List[int], amount: float):
        for k in range(self.n):
            i, j = tour[k], tour[(k + 1) % self.n]
            self.tau[i][j] += amount
            self.tau[j][i] += amount

    def _deposit(self, tours: List[List[int]], lengths: List[float]):
        Q = self.cfg.Q
        for tour, L in zip(tours, lengths):
            if L > 0:
                self._lay(tour, Q / L)

    def _reinforce_best(self):
        w = self.cfg.elitist_weight
        if w > 0 and self.best_tour is not None and self.best_length > 0:
            self._lay(self.best_tour, w * self.cfg.Q / self.best_length)

    def _apply_bounds_if_needed(self):
        # Overridden by MaxMinAntColony
        pass

    def run(self, time_budget: Optional[float] = None) -> ACOResult:
        """Run up to ``n_iterations`` iterations.

        ``time_budget`` (seconds) is checked before each iteration; an
        iteration that has started always completes.
        """
        start = time.time()
        self.history_best_lengths = []
        self.history_best_tours = []

        if self.n <= 1:
            tour = list(range(self.n))
            return ACOResult(best_tour=tour, best_length=0, history_best_lengths=[],
                             config=self.cfg, elapsed_sec=time.time() - start)

        n_ants = min(self.cfg.n_ants, self.n)
        for it in range(self.cfg.n_iterations):
            if time_budget is not None and time.time() - start >= time_budget:
                logger.info("time budget reached after %d iterations", it)
                break
            tours = [self._tour_construction() for _ in range(n_ants)]
            lengths = [self._tour_length(t) for t in tours]
            for t, L in zip(tours, lengths):
                if L < self.best_length:
                    self.best_length = L
                    self.best_tour = t

            self._evaporate()
            self._deposit(tours, lengths)
            self._reinforce_best()
            self._apply_bounds_if_needed()

            self.history_best_lengths.append(self.best_length)
            self.history_best_tours.append(list(self.best_tour))
            if self.cfg.log_every and (it % self.cfg.log_every == 0 or it == self.cfg.n_iterations - 1):
                logger.info("iter %d: best tour length so far %.2f", it, self.best_length)

        if self.best_tour is None:
            # no iteration ran (zero requested or no time left)
            self.best_tour = self._tour_construction()
        elapsed = time.time() - start
        return ACOResult(best_tour=self.best_tour, best_length=tour_length(self.best_tour, self.model),
                         history_best_lengths=self.history_best_lengths, config=self.cfg,
                         elapsed_sec=elapsed, history_best_tours=self.history_best_tours)

    def _tour_length(self, tour: List[int]) -> float:
        dist = 0.0
        for k in range(self.n):
            i, j = tour[k], tour[(k + 1) % self.n]
            dist += self.D[i][j]
        return dist


class MaxMinAntColony(AntColony):
    """Max-Min Ant System: only the iteration-best ant deposits, tau_min <= tau <= tau_max."""

    def __init__(self, model: DistanceModel, cfg: ACOConfig):
        if cfg.tau_max is None:
            raise ValueError("MaxMinAntColony requires tau_max.")
        if cfg.tau_min > cfg.tau_max:
            raise ValueError("tau_min must be <= tau_max.")
        super().__init__(model, cfg)
        for i in range(self.n):
            for j in range(self.n):
                if i != j:
                    self.tau[i][j] = min(max(self.tau[i][j], cfg.tau_min), cfg.tau_max)

    def _deposit(self, tours: List[List[int]], lengths: List[float]):
        best_idx = min(range(len(tours)), key=lambda k: lengths[k])
        best_L = lengths[best_idx]
        if best_L > 0:
            self._lay(tours[best_idx], self.cfg.Q / best_L)

    def _reinforce_best(self):
        pass

    def _apply_bounds_if_needed(self):
        tau_min, tau_max = self.cfg.tau_min, self.cfg.tau_max
        for i in range(self.n):
            row = self.tau[i]
            for j in range(self.n):
                if i != j:
                    if row[j] < tau_min:
                        row[j] = tau_min
                    elif row[j] > tau_max:
                        row[j] = tau_max
