import os, argparse, logging
import matplotlib.pyplot as plt
import imageio

from tspsolver import Instance, SolverConfig, load_instance, solve_instance


def plot_tour(coords, tour, title, path):
    xs = [coords[i][0] for i in tour] + [coords[tour[0]][0]]
    ys = [coords[i][1] for i in tour] + [coords[tour[0]][1]]
    cx = [c[0] for c in coords]
    cy = [c[1] for c in coords]

    plt.figure(figsize=(5, 5))
    plt.plot(cx, cy, "o")
    plt.plot(xs, ys, "-")
    plt.title(title)
    plt.axis("equal")
    plt.tight_layout()
    plt.savefig(path, dpi=120, bbox_inches="tight")
    plt.close()


def visualize(inst, cfg, outdir, step=5):
    if inst.coordinates is None:
        raise SystemExit(f"{inst.name} has no coordinates to draw ({inst.edge_weight_type.value})")
    if inst.dimension == 0:
        raise SystemExit(f"{inst.name} is empty, nothing to draw")
    os.makedirs(outdir, exist_ok=True)
    sol = solve_instance(inst, cfg)
    history = sol.improvement.history
    tours = sol.improvement.history_tours
    coords = inst.coordinates

    frames = []
    passes = list(range(0, len(tours), step))
    if passes and passes[-1] != len(tours) - 1:
        passes.append(len(tours) - 1)
    for p in passes:
        frame_path = os.path.join(outdir, f"{inst.name}_frame_{p:04d}.png")
        plot_tour(coords, tours[p], f"{inst.name} local search\npass={p}  length={history[p]}", frame_path)
        frames.append(frame_path)

    final_path = os.path.join(outdir, f"{inst.name}_tour.png")
    plot_tour(coords, sol.tour, f"{inst.name}  length={sol.cost}", final_path)
    print("Saved:", final_path)

    if frames:
        gif_path = os.path.join(outdir, f"{inst.name}_improvement.gif")
        with imageio.get_writer(gif_path, mode="I", duration=0.6) as writer:
            for fp in frames:
                writer.append_data(imageio.v2.imread(fp))
        print("Saved:", gif_path)


def main():
    p = argparse.ArgumentParser()
    p.add_argument("path", nargs="?", default=None, help="TSPLIB file; omit for random points")
    p.add_argument("--n", type=int, default=50, help="number of random cities")
    p.add_argument("--square", type=float, default=100.0)
    p.add_argument("--seed", type=int, default=321)
    p.add_argument("--policy", choices=["best", "first"], default="first")
    p.add_argument("--outdir", default="viz")
    p.add_argument("--step", type=int, default=5, help="frame every k passes")
    args = p.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(message)s")
    if args.path:
        inst = load_instance(args.path)
    else:
        inst = Instance.random_euclidean(n=args.n, seed=args.seed, square_size=args.square, name=f"viz{args.n}")
    cfg = SolverConfig(policy=args.policy, record_tours=True)
    visualize(inst, cfg, args.outdir, step=args.step)


if __name__ == "__main__":
    main()
