from __future__ import annotations
import csv
import glob
import itertools
import logging
import math
import os
import statistics
from dataclasses import asdict, fields, replace
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from .colony import ACOConfig
from .errors import TSPError
from .solver import Solution, SolverConfig, solve_file, solve_instance
from .tsplib import Instance

logger = logging.getLogger(__name__)

_SOLVER_FIELDS = {f.name for f in fields(SolverConfig)}
_ACO_FIELDS = {f.name for f in fields(ACOConfig)}


def load_optimal_solutions(path: str) -> Dict[str, float]:
    """Read ``name : value`` lines (TSPLIB's solutions file) into a dict keyed by lower-case name."""
    solutions: Dict[str, float] = {}
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            parts = [p.strip() for p in line.split(":")]
            if len(parts) != 2 or not parts[0] or not parts[1]:
                continue
            name = parts[0].split()[0].lower()
            token = parts[1].split()[0]
            try:
                solutions[name] = float(token)
            except ValueError:
                raise ValueError(f"{path}:{lineno}: invalid solution value for {name}: {parts[1]!r}") from None
    return solutions


def evaluate_solution(problem_name: str, found_length: float,
                      optimal_solutions: Dict[str, float]) -> Tuple[Optional[float], Optional[float]]:
    """Return ``(optimal, percent above optimal)``, or ``(None, None)`` when the name is unknown."""
    key = problem_name.split(".")[0].lower()
    optimal = optimal_solutions.get(key)
    if optimal is None:
        return None, None
    if optimal == 0:
        return optimal, 0.0 if found_length == 0 else math.inf
    return optimal, (found_length - optimal) / optimal * 100.0


def _with_params(cfg: SolverConfig, params: Dict[str, Any]) -> SolverConfig:
    solver_params = {k: v for k, v in params.items() if k in _SOLVER_FIELDS}
    aco_params = {k: v for k, v in params.items() if k not in _SOLVER_FIELDS}
    unknown = set(aco_params) - _ACO_FIELDS
    if unknown:
        raise ValueError(f"Unknown parameters {sorted(unknown)}")
    cfg = replace(cfg, **solver_params)
    if aco_params:
        cfg = replace(cfg, aco=ACOConfig(**{**asdict(cfg.aco or ACOConfig()), **aco_params}))
    return cfg


def run_repeated_trials(instance: Instance, cfg: SolverConfig, n_runs: int = 10, base_seed: int = 42):
    """Solve ``instance`` ``n_runs`` times.

    Ant-colony runs differ by seed; nearest-neighbour runs differ by start node.
    """
    lengths: List[float] = []
    times: List[float] = []
    best_tours: List[List[int]] = []
    n = max(1, instance.dimension)
    for r in range(n_runs):
        if cfg.constructor == "nearest_neighbor":
            cfg_r = replace(cfg, start_node=(base_seed + r) % n)
        else:
            cfg_r = _with_params(cfg, {"seed": base_seed + r})
        sol = solve_instance(instance, cfg_r)
        lengths.append(sol.cost)
        times.append(sol.elapsed_sec)
        best_tours.append(sol.tour)
    stats = {
        "mean_length": statistics.mean(lengths),
        "std_length": statistics.stdev(lengths) if len(lengths) > 1 else 0.0,
        "min_length": min(lengths),
        "max_length": max(lengths),
        "median_length": statistics.median(lengths),
        "mean_time": statistics.mean(times),
        "constructor": cfg.constructor,
        "n_runs": n_runs,
    }
    return stats, list(zip(lengths, times, best_tours))


def run_parameter_sweep(instance: Instance, param_grid: Dict[str, List[Any]],
                        base_cfg: Optional[SolverConfig] = None, n_runs: int = 5, base_seed: int = 100,
                        csv_path: Optional[str] = None):
    """Repeated trials for every combination in ``param_grid``.

    Keys name :class:`SolverConfig` fields or, failing that, :class:`ACOConfig` fields.
    """
    base_cfg = base_cfg or SolverConfig()
    keys = sorted(param_grid.keys())
    rows = []
    for values in itertools.product(*[param_grid[k] for k in keys]):
        params = dict(zip(keys, values))
        cfg = _with_params(base_cfg, params)
        stats, _ = run_repeated_trials(instance, cfg, n_runs=n_runs, base_seed=base_seed)
        row = {**params, **stats}
        rows.append(row)
        if csv_path is not None:
            write_header = not os.path.exists(csv_path)
            with open(csv_path, "a", newline="") as f:
                w = csv.DictWriter(f, fieldnames=row.keys())
                if write_header:
                    w.writeheader()
                w.writerow(row)
    return rows


def solution_record(sol: Solution, optimal_solutions: Optional[Dict[str, float]] = None) -> Dict[str, Any]:
    optimal, gap = evaluate_solution(sol.name, sol.cost, optimal_solutions or {})
    imp = sol.improvement
    return {
        "instance": sol.name,
        "n": len(sol.tour),
        "status": "ok",
        "initial_cost": sol.initial_cost,
        "cost": sol.cost,
        "optimal": optimal,
        "gap_pct": gap,
        "passes": imp.passes if imp else 0,
        "two_opt_moves": imp.two_opt_moves if imp else 0,
        "or_opt_moves": imp.or_opt_moves if imp else 0,
        "converged": imp.converged if imp else True,
        "runtime": sol.elapsed_sec,
    }


def solve_directory(directory: str, cfg: Optional[SolverConfig] = None, pattern: str = "*.tsp",
                    optimal_solutions: Optional[Dict[str, float]] = None) -> pd.DataFrame:
    """Solve every matching instance file; instances that fail to parse are recorded, not raised."""
    records = []
    for path in sorted(glob.glob(os.path.join(directory, pattern))):
        try:
            sol = solve_file(path, cfg)
        except TSPError as e:
            logger.warning("skipping %s: %s", path, e)
            records.append({"instance": os.path.basename(path), "status": f"error: {e}"})
            continue
        records.append(solution_record(sol, optimal_solutions))
    return pd.DataFrame.from_records(records)
