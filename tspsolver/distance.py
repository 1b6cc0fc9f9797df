from __future__ import annotations
import logging
import math
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import UnsupportedMetric
from .tsplib import EdgeWeightType, Instance

logger = logging.getLogger(__name__)

Number = Union[int, float]
Point = Tuple[float, float]

# TSPLIB95 reference constants for GEO
PI = 3.141592
RRR = 6378.388


def nint(x: float) -> int:
    return int(x + 0.5)


def euc_2d(a: Point, b: Point) -> int:
    dx = a[0] - b[0]
    dy = a[1] - b[1]
    return nint(math.sqrt(dx * dx + dy * dy))


def ceil_2d(a: Point, b: Point) -> int:
    dx = a[0] - b[0]
    dy = a[1] - b[1]
    return int(math.ceil(math.sqrt(dx * dx + dy * dy)))


def man_2d(a: Point, b: Point) -> int:
    return nint(abs(a[0] - b[0]) + abs(a[1] - b[1]))


def max_2d(a: Point, b: Point) -> int:
    return max(nint(abs(a[0] - b[0])), nint(abs(a[1] - b[1])))


def geo_radians(v: float) -> float:
    """DDD.MM (degrees, minutes) to radians, as TSPLIB defines it."""
    deg = int(v)
    minutes = v - deg
    return PI * (deg + 5.0 * minutes / 3.0) / 180.0


def geo(a: Point, b: Point) -> int:
    # x is latitude, y is longitude
    lat_i, lon_i = geo_radians(a[0]), geo_radians(a[1])
    lat_j, lon_j = geo_radians(b[0]), geo_radians(b[1])
    q1 = math.cos(lon_i - lon_j)
    q2 = math.cos(lat_i - lat_j)
    q3 = math.cos(lat_i + lat_j)
    c = min(1.0, max(-1.0, 0.5 * ((1.0 + q1) * q2 - (1.0 - q1) * q3)))
    return int(RRR * math.acos(c) + 1.0)


def att(a: Point, b: Point) -> int:
    dx = a[0] - b[0]
    dy = a[1] - b[1]
    rij = math.sqrt((dx * dx + dy * dy) / 10.0)
    tij = nint(rij)
    return tij + 1 if tij < rij else tij


METRICS: Dict[EdgeWeightType, Callable[[Point, Point], Number]] = {
    EdgeWeightType.EUC_2D: euc_2d,
    EdgeWeightType.CEIL_2D: ceil_2d,
    EdgeWeightType.MAN_2D: man_2d,
    EdgeWeightType.MAX_2D: max_2d,
    EdgeWeightType.GEO: geo,
    EdgeWeightType.ATT: att,
}


class DistanceModel:
    """Symmetric distance queries over an :class:`Instance`.

    Coordinate metrics are answered from a dense table when the instance has
    at most ``matrix_limit`` nodes (or ``precompute=True``), otherwise each
    query calls the metric function. Both paths go through the same function,
    so they agree exactly. EXPLICIT instances always use their table.
    """

    def __init__(self, instance: Instance, precompute: Optional[bool] = None, matrix_limit: int = 2000):
        self.instance = instance
        self.n = instance.dimension
        self.edge_weight_type = instance.edge_weight_type
        self._coords: Sequence[Point] = instance.coordinates or ()
        self._rows: Optional[List[List[Number]]] = None

        if self.edge_weight_type is EdgeWeightType.EXPLICIT:
            self._metric = None
            self._rows = instance.explicit_weights.tolist()
            self.integral = instance.explicit_weights.dtype.kind in "iu"
        else:
            try:
                self._metric = METRICS[self.edge_weight_type]
            except KeyError:
                raise UnsupportedMetric(self.edge_weight_type) from None
            self.integral = True
            if precompute is None:
                precompute = self.n <= matrix_limit
            if precompute:
                self._rows = self._build_rows()
        logger.debug("distance model for %s: %s, %s", instance.name, self.edge_weight_type.value,
                     "table" if self.precomputed else "on demand")

    @property
    def precomputed(self) -> bool:
        return self._rows is not None

    def _build_rows(self) -> List[List[Number]]:
        n, coords, metric = self.n, self._coords, self._metric
        rows: List[List[Number]] = [[0] * n for _ in range(n)]
        for i in range(n):
            ci = coords[i]
            row_i = rows[i]
            for j in range(i + 1, n):
                d = metric(ci, coords[j])
                row_i[j] = d
                rows[j][i] = d
        return rows

    def distance(self, i: int, j: int) -> Number:
        if i < 0 or j < 0:
            raise IndexError(f"node index out of range: ({i}, {j}) for dimension {self.n}")
        rows = self._rows
        if rows is not None:
            return rows[i][j]
        if i == j:
            return 0
        return self._metric(self._coords[i], self._coords[j])

    __call__ = distance

    def matrix(self) -> np.ndarray:
        if self._rows is not None:
            return np.array(self._rows, dtype=np.int64 if self.integral else np.float64).reshape(self.n, self.n)
        return np.array(self._build_rows(), dtype=np.int64).reshape(self.n, self.n)


def tour_length(tour: Sequence[int], model: DistanceModel) -> Number:
    n = len(tour)
    if n < 2:
        return 0
    d = model.distance
    total = 0
    for k in range(n):
        total += d(tour[k], tour[(k + 1) % n])
    return total


def check_tour(tour: Sequence[int], n: int) -> None:
    """Raise ValueError unless ``tour`` is a permutation of 0..n-1."""
    if len(tour) != n or sorted(tour) != list(range(n)):
        raise ValueError(f"not a permutation of 0..{n - 1}: {list(tour)[:20]}")
