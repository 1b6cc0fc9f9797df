from __future__ import annotations
from typing import Optional


class TSPError(Exception):
    """Base class for errors raised by tspsolver."""


class ParseError(TSPError, ValueError):
    """Malformed or incomplete TSPLIB input."""

    def __init__(self, message: str, line: Optional[int] = None, source: str = "<string>"):
        self.message = message
        self.line = line
        self.source = source
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.line is None:
            return f"{self.source}: {self.message}"
        return f"{self.source}:{self.line}: {self.message}"


class UnsupportedMetric(TSPError, NotImplementedError):
    """Edge weight type is known to TSPLIB but has no distance function here."""

    def __init__(self, edge_weight_type, reason: str = "no distance function"):
        self.edge_weight_type = edge_weight_type
        name = getattr(edge_weight_type, "value", edge_weight_type)
        super().__init__(f"unsupported edge weight type {name}: {reason}")
