# run_experiments.py
import os, json, argparse, logging
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from tspsolver import ACOConfig, SolverConfig, TSPError, load_instance, solve_instance
from tspsolver.experiments import (load_optimal_solutions, run_repeated_trials, solution_record,
                                   solve_directory)

OUTDIR = os.path.dirname(os.path.abspath(__file__))


def ensure(path: str) -> str:
    d = os.path.dirname(path)
    if d:
        os.makedirs(d, exist_ok=True)
    return path


def build_aco_config(name, n_ants=50, n_iterations=1000, seed=None):
    if name == "aco":
        return ACOConfig(alpha=1.0, beta=3.0, rho=0.1, Q=100.0, tau0=0.1, elitist_weight=1.0,
                         n_ants=n_ants, n_iterations=n_iterations, seed=seed)
    if name == "mmas":
        return ACOConfig(alpha=1.0, beta=3.0, rho=0.2, Q=1.0, tau0=None, elitist_weight=0.0,
                         tau_min=1e-4, tau_max=1.0, n_ants=n_ants, n_iterations=n_iterations, seed=seed)
    return None


def plot_convergence(solution, save_path):
    plt.figure()
    plt.plot(solution.improvement.history)
    plt.xlabel("Pass")
    plt.ylabel("Tour length")
    plt.title(f"{solution.name}: local search convergence")
    ensure(save_path)
    plt.savefig(save_path, dpi=150, bbox_inches="tight")
    plt.close()


def plot_scatter(details, title, save_path):
    plt.figure()
    lengths = [L for (L, t, tour) in details]
    x = np.random.normal(loc=1, scale=0.03, size=len(lengths))
    plt.plot(x, lengths, "o")
    plt.xticks([1], [title])
    plt.ylabel("Tour length")
    plt.title("Tour lengths across runs")
    ensure(save_path)
    plt.savefig(save_path, dpi=150, bbox_inches="tight")
    plt.close()


def main():
    ap = argparse.ArgumentParser(description="Solve TSPLIB instances with construction + 2-opt/Or-opt")
    ap.add_argument("path", help="a .tsp file or a directory of them")
    ap.add_argument("--pattern", default="*.tsp", help="glob used when path is a directory")
    ap.add_argument("--constructor", choices=["nearest_neighbor", "aco", "mmas"], default="nearest_neighbor")
    ap.add_argument("--max-passes", type=int, default=10_000)
    ap.add_argument("--time-budget", type=float, default=None, help="seconds")
    ap.add_argument("--start-node", type=int, default=None, help="0-based start node")
    ap.add_argument("--edge-weight-type", default=None, help="override a coordinate metric, e.g. CEIL_2D")
    ap.add_argument("--starts", type=int, default=1, help="nearest neighbour start nodes to try")
    ap.add_argument("--workers", type=int, default=1)
    ap.add_argument("--no-or-opt", action="store_true")
    ap.add_argument("--policy", choices=["best", "first"], default="best")
    ap.add_argument("--ants", type=int, default=50)
    ap.add_argument("--iters", type=int, default=1000)
    ap.add_argument("--seed", type=int, default=None)
    ap.add_argument("--runs", type=int, default=1, help="repeated trials (single file only)")
    ap.add_argument("--optimal", default=None, help="file of 'name : optimal length' lines")
    ap.add_argument("--csv", default=None, help="write a results summary CSV here")
    ap.add_argument("--plot", action="store_true", help="save convergence / distribution plots")
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s - %(message)s")

    cfg = SolverConfig(max_passes=args.max_passes, time_budget=args.time_budget,
                       start_node=args.start_node, edge_weight_type=args.edge_weight_type,
                       constructor=args.constructor, n_starts=args.starts, workers=args.workers,
                       or_opt=not args.no_or_opt, policy=args.policy,
                       aco=build_aco_config(args.constructor, args.ants, args.iters, args.seed))
    optimal = load_optimal_solutions(args.optimal) if args.optimal else {}

    if os.path.isdir(args.path):
        df = solve_directory(args.path, cfg, pattern=args.pattern, optimal_solutions=optimal)
        print(df.to_string(index=False))
    else:
        try:
            inst = load_instance(args.path)
            if args.runs > 1:
                stats, details = run_repeated_trials(inst, cfg, n_runs=args.runs, base_seed=args.seed or 0)
            else:
                sol = solve_instance(inst, cfg)
        except (TSPError, ValueError) as e:
            print(f"Error: {e}")
            raise SystemExit(1)

        if args.runs > 1:
            print(inst.name, json.dumps(stats, indent=2))
            df = pd.DataFrame.from_records([{"instance": inst.name, **stats}])
            if args.plot:
                plot_scatter(details, args.constructor,
                             os.path.join(OUTDIR, "results", f"{inst.name}_distribution.png"))
        else:
            rec = solution_record(sol, optimal)
            print(f"{sol.name}: length {sol.cost} (initial {sol.initial_cost}) in {sol.elapsed_sec:.2f}s")
            if rec["optimal"] is not None:
                print(f"  optimal {rec['optimal']:.0f}, {rec['gap_pct']:.2f}% above")
            if len(sol.tour_ids) <= 30:
                print("  route:", sol.tour_ids)
            df = pd.DataFrame.from_records([rec])
            if args.plot and sol.improvement is not None:
                plot_convergence(sol, os.path.join(OUTDIR, "results", f"{sol.name}_convergence.png"))

    if args.csv:
        df.to_csv(ensure(args.csv), index=False)
        print("Saved:", args.csv)


if __name__ == "__main__":
    main()
