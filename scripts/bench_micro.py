from __future__ import annotations

import argparse
import csv
import json
import sys
import time
from pathlib import Path
from statistics import mean, pstdev


def _fmt_mu_sigma(vals):
    mu = mean(vals)
    sd = pstdev(vals) if len(vals) > 1 else 0.0
    return f"{mu:.4f} ± {sd:.4f}"


def main():
    root = Path(__file__).resolve().parents[1]
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))

    from annealnet.core.graph import Net
    from annealnet.data.tasks import get_task
    from annealnet.training.coordinator import find_minima
    from annealnet.training.search import SearchSettings

    ap = argparse.ArgumentParser()
    ap.add_argument("--task", type=str, default="xor")
    ap.add_argument("--workers", nargs="+", type=int, default=[1, 2, 4])
    ap.add_argument("--seeds", nargs="+", type=int, default=[123, 124, 125])
    ap.add_argument("--restarts", type=int, default=8)
    ap.add_argument("--epochs", type=int, default=100)
    ap.add_argument("--lr", type=float, default=20.0)
    ap.add_argument("--out", type=str, default=".artifacts/bench")
    args = ap.parse_args()

    task = get_task(args.task)
    settings = SearchSettings(
        initial_learn_rate=args.lr,
        cooldown_rate=0.98,
        max_restarts=args.restarts,
        max_epochs_per_restart=args.epochs,
        error_bar=0.0,
        min_cost_change_rate=1.000001,
        min_learn_rate=0.5,
    )

    out = Path(args.out)
    out.mkdir(parents=True, exist_ok=True)
    runs = []
    for workers in args.workers:
        for s in args.seeds:
            net = Net(task.suggested_layers, -8.0, 8.0, seed=s)
            start = time.perf_counter()
            result = find_minima(net, task.samples, settings, num_workers=workers, seed=s)
            elapsed = time.perf_counter() - start
            runs.append(
                {
                    "workers": workers,
                    "seed": s,
                    "best_cost": float(result.cost),
                    "restarts": len(result.restarts),
                    "epochs": sum(r.epochs for r in result.restarts),
                    "seconds": elapsed,
                }
            )
    (out / "results.jsonl").write_text(
        "\n".join(json.dumps(x) for x in runs), encoding="utf-8"
    )

    agg = {}
    for workers in args.workers:
        costs = [r["best_cost"] for r in runs if r["workers"] == workers]
        secs = [r["seconds"] for r in runs if r["workers"] == workers]
        agg[workers] = {
            "n": len(costs),
            "best_cost_mu": mean(costs),
            "best_cost_sd": pstdev(costs) if len(costs) > 1 else 0.0,
            "seconds_mu": mean(secs),
            "seconds_sd": pstdev(secs) if len(secs) > 1 else 0.0,
        }
    base_secs = agg[args.workers[0]]["seconds_mu"]
    for workers in args.workers:
        mu = agg[workers]["seconds_mu"]
        agg[workers]["speedup"] = base_secs / mu if mu > 0 else 0.0

    csv_path = out / "bench_micro.csv"
    with csv_path.open("w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(
            [
                "workers",
                "seeds",
                "restarts",
                "best_cost_mu",
                "best_cost_sd",
                "seconds_mu",
                "seconds_sd",
                "speedup",
            ]
        )
        for workers in args.workers:
            a = agg[workers]
            w.writerow(
                [
                    workers,
                    a["n"],
                    args.restarts,
                    f"{a['best_cost_mu']:.4f}",
                    f"{a['best_cost_sd']:.4f}",
                    f"{a['seconds_mu']:.4f}",
                    f"{a['seconds_sd']:.4f}",
                    f"{a['speedup']:.2f}",
                ]
            )

    md_path = out / "bench_micro.md"
    lines = []
    lines.append(f"### Micro-Benchmark: parallel restarts on `{args.task}`")
    lines.append("")
    seeds_line = (
        f"- Seeds: `{args.seeds}`; Restarts: `{args.restarts}`; "
        f"Epochs/restart: `{args.epochs}`; LR: `{args.lr}`"
    )
    lines.append(seeds_line)
    lines.append("")
    lines.append("| Workers | Best Cost (μ±σ) | Seconds (μ±σ) | Speedup | Seeds |")
    lines.append("|---|---:|---:|---:|---:|")
    for workers in args.workers:
        bc = [r["best_cost"] for r in runs if r["workers"] == workers]
        sc = [r["seconds"] for r in runs if r["workers"] == workers]
        metric_line = (
            f"| {workers} | {_fmt_mu_sigma(bc)} | {_fmt_mu_sigma(sc)} | "
            f"{agg[workers]['speedup']:.2f}x | {agg[workers]['n']} |"
        )
        lines.append(metric_line)
    md_path.write_text("\n".join(lines), encoding="utf-8")
    print("Wrote:", csv_path, md_path)


if __name__ == "__main__":
    main()
