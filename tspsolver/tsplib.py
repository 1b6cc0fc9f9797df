from __future__ import annotations
import logging
import os
import random
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from .errors import ParseError

logger = logging.getLogger(__name__)


class EdgeWeightType(str, Enum):
    EUC_2D = "EUC_2D"      # berlin52
    CEIL_2D = "CEIL_2D"    # dsj1000
    GEO = "GEO"            # ulysses16
    ATT = "ATT"            # att48
    MAN_2D = "MAN_2D"
    MAX_2D = "MAX_2D"
    EXPLICIT = "EXPLICIT"  # gr17, bayg29, bays29
    EUC_3D = "EUC_3D"
    MAN_3D = "MAN_3D"
    MAX_3D = "MAX_3D"
    XRAY1 = "XRAY1"
    XRAY2 = "XRAY2"
    SPECIAL = "SPECIAL"

    @property
    def uses_coordinates(self) -> bool:
        return self is not EdgeWeightType.EXPLICIT


class EdgeWeightFormat(str, Enum):
    FUNCTION = "FUNCTION"
    FULL_MATRIX = "FULL_MATRIX"
    UPPER_ROW = "UPPER_ROW"
    LOWER_ROW = "LOWER_ROW"
    UPPER_DIAG_ROW = "UPPER_DIAG_ROW"
    LOWER_DIAG_ROW = "LOWER_DIAG_ROW"
    UPPER_COL = "UPPER_COL"
    LOWER_COL = "LOWER_COL"
    UPPER_DIAG_COL = "UPPER_DIAG_COL"
    LOWER_DIAG_COL = "LOWER_DIAG_COL"


# Column-major layouts walk the transposed triangle in row-major order, and
# the table is symmetric, so each one shares the index pattern of its mirror.
_TRIANGLES = {
    EdgeWeightFormat.UPPER_ROW: ("upper", 1),
    EdgeWeightFormat.LOWER_COL: ("upper", 1),
    EdgeWeightFormat.UPPER_DIAG_ROW: ("upper", 0),
    EdgeWeightFormat.LOWER_DIAG_COL: ("upper", 0),
    EdgeWeightFormat.LOWER_ROW: ("lower", -1),
    EdgeWeightFormat.UPPER_COL: ("lower", -1),
    EdgeWeightFormat.LOWER_DIAG_ROW: ("lower", 0),
    EdgeWeightFormat.UPPER_DIAG_COL: ("lower", 0),
}

_DATA_SECTIONS = {"NODE_COORD_SECTION", "EDGE_WEIGHT_SECTION"}
_SKIPPED_SECTIONS = {
    "DISPLAY_DATA_SECTION", "TOUR_SECTION", "FIXED_EDGES_SECTION",
    "DEPOT_SECTION", "DEMAND_SECTION",
}
_REQUIRED_KEYS = ("NAME", "TYPE", "DIMENSION", "EDGE_WEIGHT_TYPE")


@dataclass(frozen=True)
class Instance:
    """A parsed symmetric TSP problem.

    Nodes are addressed by their 0-based position; ``node_ids`` keeps the
    number each node had in the file. Exactly one of ``coordinates`` and
    ``explicit_weights`` is set, matching ``edge_weight_type``.
    """
    name: str
    dimension: int
    edge_weight_type: EdgeWeightType
    coordinates: Optional[Tuple[Tuple[float, float], ...]] = None
    explicit_weights: Optional[np.ndarray] = field(default=None, repr=False, compare=False)
    edge_weight_format: Optional[EdgeWeightFormat] = None
    node_ids: Tuple[int, ...] = ()
    problem_type: str = "TSP"
    comment: str = ""

    def __post_init__(self):
        n = self.dimension
        if n < 0:
            raise ValueError(f"dimension must be >= 0, got {n}")
        if not self.node_ids:
            object.__setattr__(self, "node_ids", tuple(range(1, n + 1)))
        if len(self.node_ids) != n:
            raise ValueError(f"expected {n} node ids, got {len(self.node_ids)}")

        if self.edge_weight_type.uses_coordinates:
            if self.explicit_weights is not None:
                raise ValueError(f"{self.edge_weight_type.value} instance cannot carry explicit weights")
            if self.coordinates is None or len(self.coordinates) != n:
                found = None if self.coordinates is None else len(self.coordinates)
                raise ValueError(f"expected {n} coordinates, got {found}")
        else:
            if self.coordinates is not None:
                raise ValueError("EXPLICIT instance cannot carry coordinates")
            if self.explicit_weights is None or self.explicit_weights.shape != (n, n):
                raise ValueError(f"EXPLICIT instance needs a {n}x{n} weight table")
            self.explicit_weights.setflags(write=False)

    @staticmethod
    def random_euclidean(n: int, seed: Optional[int] = None, square_size: float = 100.0,
                         name: str = "random_euclidean") -> "Instance":
        rng = random.Random(seed)
        coords = tuple((rng.uniform(0, square_size), rng.uniform(0, square_size)) for _ in range(n))
        return Instance(name=name, dimension=n, edge_weight_type=EdgeWeightType.EUC_2D,
                        coordinates=coords, comment=f"random uniform points, seed={seed}")

    def with_edge_weight_type(self, edge_weight_type: EdgeWeightType) -> "Instance":
        """Same nodes measured with another coordinate metric."""
        if edge_weight_type is self.edge_weight_type:
            return self
        if not (edge_weight_type.uses_coordinates and self.edge_weight_type.uses_coordinates):
            raise ValueError(
                f"cannot switch {self.name} from {self.edge_weight_type.value} to {edge_weight_type.value}"
            )
        return replace(self, edge_weight_type=edge_weight_type)

    def node_id(self, index: int) -> int:
        return self.node_ids[index]


def _number(token: str, lineno: int, source: str, what: str) -> float:
    try:
        value = float(token)
    except ValueError:
        raise ParseError(f"invalid {what} {token!r}", lineno, source) from None
    if not np.isfinite(value):
        raise ParseError(f"invalid {what} {token!r}", lineno, source)
    return value


def _enum_value(enum_cls, key: str, value: str, lineno: int, source: str):
    try:
        return enum_cls(value.strip().upper())
    except ValueError:
        raise ParseError(f"unknown {key} {value!r}", lineno, source) from None


def expected_weight_count(fmt: EdgeWeightFormat, n: int) -> int:
    if fmt is EdgeWeightFormat.FULL_MATRIX:
        return n * n
    if fmt not in _TRIANGLES:
        raise ValueError(f"{fmt.value} does not describe a weight table")
    _, k = _TRIANGLES[fmt]
    return n * (n + 1) // 2 if k == 0 else n * (n - 1) // 2


def _weight_table(values: List[float], n: int, fmt: EdgeWeightFormat,
                  lineno: Optional[int], source: str) -> np.ndarray:
    if fmt is EdgeWeightFormat.FUNCTION:
        raise ParseError("EDGE_WEIGHT_FORMAT FUNCTION has no weight table for EXPLICIT", lineno, source)
    expected = expected_weight_count(fmt, n)
    if len(values) != expected:
        raise ParseError(
            f"{fmt.value} with DIMENSION {n}: expected {expected} weights, found {len(values)}",
            lineno, source,
        )
    data = np.asarray(values, dtype=np.float64)
    if fmt is EdgeWeightFormat.FULL_MATRIX:
        table = data.reshape(n, n).copy()
        if not np.array_equal(table, table.T):
            i, j = np.argwhere(table != table.T)[0]
            raise ParseError(
                f"FULL_MATRIX is not symmetric: w({i + 1},{j + 1})={table[i, j]:g} "
                f"but w({j + 1},{i + 1})={table[j, i]:g}",
                lineno, source,
            )
    else:
        side, k = _TRIANGLES[fmt]
        rows, cols = np.triu_indices(n, k) if side == "upper" else np.tril_indices(n, k)
        table = np.zeros((n, n), dtype=np.float64)
        table[rows, cols] = data
        table[cols, rows] = data
    np.fill_diagonal(table, 0.0)
    if (table < 0).any():
        raise ParseError("edge weights must be non-negative", lineno, source)
    if np.all(np.mod(table, 1.0) == 0.0):
        table = table.astype(np.int64)
    return table


def parse_tsplib(text: str, source: str = "<string>") -> Instance:
    """Parse TSPLIB text into an :class:`Instance`.

    Raises :class:`ParseError` on missing header fields, malformed records,
    or a record count that disagrees with ``DIMENSION``.
    """
    header: Dict[str, str] = {}
    header_line: Dict[str, int] = {}
    comments: List[str] = []
    coord_records: List[Tuple[int, int, float, float]] = []
    weights: List[float] = []
    section_line: Dict[str, int] = {}
    section: Optional[str] = None

    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line:
            continue
        if line == "EOF":
            break

        head, colon, rest = line.partition(":")
        head = head.strip()
        if head in _DATA_SECTIONS or head in _SKIPPED_SECTIONS:
            if rest.strip():
                raise ParseError(f"unexpected data after {head}", lineno, source)
            if head in section_line and head in _DATA_SECTIONS:
                raise ParseError(f"duplicate {head}", lineno, source)
            section = head
            section_line[head] = lineno
            continue

        if colon and head.replace("_", "").isalpha():
            # a header keyword closes whatever data section was open
            section = None
            value = rest.strip()
            if head == "COMMENT":
                comments.append(value)
            else:
                header[head] = value
                header_line[head] = lineno
            continue

        if section == "NODE_COORD_SECTION":
            parts = line.split()
            if len(parts) < 3:
                raise ParseError(f"malformed node coordinate line (expected 'id x y'): {line!r}",
                                 lineno, source)
            try:
                node_id = int(parts[0])
            except ValueError:
                raise ParseError(f"invalid node id {parts[0]!r}", lineno, source) from None
            x = _number(parts[1], lineno, source, "x coordinate")
            y = _number(parts[2], lineno, source, "y coordinate")
            coord_records.append((lineno, node_id, x, y))
        elif section == "EDGE_WEIGHT_SECTION":
            weights.extend(_number(tok, lineno, source, "edge weight") for tok in line.split())
        elif section is None:
            raise ParseError(f"expected 'KEY : VALUE' or a section keyword, found {line!r}",
                             lineno, source)

    for key in _REQUIRED_KEYS:
        if key not in header:
            raise ParseError(f"missing required header field {key}", None, source)

    type_value = header["TYPE"].split()
    if not type_value or type_value[0].upper() != "TSP":
        raise ParseError(f"unsupported problem TYPE {header['TYPE']!r} (only TSP)",
                         header_line["TYPE"], source)

    try:
        dimension = int(header["DIMENSION"])
    except ValueError:
        raise ParseError(f"invalid DIMENSION {header['DIMENSION']!r}",
                         header_line["DIMENSION"], source) from None
    if dimension < 0:
        raise ParseError(f"DIMENSION must be >= 0, found {dimension}", header_line["DIMENSION"], source)

    ewt = _enum_value(EdgeWeightType, "EDGE_WEIGHT_TYPE", header["EDGE_WEIGHT_TYPE"],
                      header_line["EDGE_WEIGHT_TYPE"], source)
    ewf = None
    if "EDGE_WEIGHT_FORMAT" in header:
        ewf = _enum_value(EdgeWeightFormat, "EDGE_WEIGHT_FORMAT", header["EDGE_WEIGHT_FORMAT"],
                          header_line["EDGE_WEIGHT_FORMAT"], source)

    if coord_records and len(coord_records) != dimension:
        if len(coord_records) > dimension:
            lineno = coord_records[dimension][0]
        else:
            lineno = coord_records[-1][0]
        raise ParseError(
            f"DIMENSION is {dimension} but NODE_COORD_SECTION has {len(coord_records)} records",
            lineno, source,
        )
    seen = set()
    for lineno, node_id, _, _ in coord_records:
        if node_id in seen:
            raise ParseError(f"duplicate node id {node_id}", lineno, source)
        seen.add(node_id)

    common = dict(name=header["NAME"], dimension=dimension, edge_weight_type=ewt,
                  edge_weight_format=ewf, problem_type=header["TYPE"], comment="; ".join(comments))

    if ewt is EdgeWeightType.EXPLICIT:
        if ewf is None:
            raise ParseError("EDGE_WEIGHT_FORMAT is required when EDGE_WEIGHT_TYPE is EXPLICIT",
                             header_line["EDGE_WEIGHT_TYPE"], source)
        if dimension > 0 and "EDGE_WEIGHT_SECTION" not in section_line:
            raise ParseError("EXPLICIT instance has no EDGE_WEIGHT_SECTION", None, source)
        table = _weight_table(weights, dimension, ewf, section_line.get("EDGE_WEIGHT_SECTION"), source)
        # coordinates in an explicit file are display-only
        instance = Instance(explicit_weights=table, node_ids=tuple(r[1] for r in coord_records),
                            **common)
    else:
        if weights:
            raise ParseError(f"EDGE_WEIGHT_SECTION given for {ewt.value} instance",
                             section_line["EDGE_WEIGHT_SECTION"], source)
        if dimension > 0 and not coord_records:
            raise ParseError(f"{ewt.value} instance has no NODE_COORD_SECTION", None, source)
        instance = Instance(
            coordinates=tuple((x, y) for _, _, x, y in coord_records),
            node_ids=tuple(r[1] for r in coord_records),
            **common,
        )

    logger.debug("parsed %s from %s: n=%d type=%s format=%s", instance.name, source,
                 dimension, ewt.value, ewf.value if ewf else None)
    return instance


def load_instance(path: Union[str, os.PathLike]) -> Instance:
    source = os.fspath(path)
    try:
        with open(source, "r", encoding="utf-8") as f:
            text = f.read()
    except UnicodeDecodeError:
        with open(source, "r", encoding="latin-1") as f:
            text = f.read()
    return parse_tsplib(text, source=source)
