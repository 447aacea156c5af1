"""Command line entry point for annealnet searches."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Iterable

from annealnet.training import pipelines
from annealnet.utils.logger import setup_logging


def _format_result(result) -> str:
    payload = {
        "best_cost": result.best_cost,
        "restarts": result.restarts,
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
        "weights": result.weights_path,
    }
    if getattr(result, "summary_path", ""):
        payload["summary"] = result.summary_path
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    preset_names = sorted(pipelines.presets().keys())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=preset_names,
        default="xor",
        help="Preset configuration to execute",
    )
    parser.add_argument(
        "--config", type=Path, help="Optional JSON/YAML config override"
    )
    parser.add_argument(
        "--enable-plots", action="store_true", help="Write a cost.png plot"
    )
    parser.add_argument("--seed", type=int, help="Seed for weight draws")
    parser.add_argument("--workers", type=int, help="Number of parallel workers")
    parser.add_argument(
        "--max-restarts", type=int, help="Total restart budget across all workers"
    )
    parser.add_argument(
        "--target-cost",
        type=float,
        help="Stop the whole search once the best cost reaches this value",
    )
    parser.add_argument("--run-dir", type=Path, help="Directory for run artifacts")
    parser.add_argument(
        "--initial-weights",
        type=Path,
        help="Warm-start from a best.npz written by an earlier run",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--list-presets", action="store_true", help="List available presets and exit"
    )
    parser.add_argument(
        "--dump-config", type=Path, help="Dump the resolved config to a JSON file"
    )
    return parser.parse_args(argv)


def _load_override(path: Path) -> dict:
    text = path.read_text()
    if path.suffix in {".yml", ".yaml"}:
        try:
            import yaml  # type: ignore
        except Exception as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("PyYAML is required to load YAML configs") from exc
        return yaml.safe_load(text) or {}
    return json.loads(text)


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(dict(base[key]), value)
        else:
            base[key] = value
    return base


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    setup_logging(args.log_level, args.log_file)

    config = json.loads(json.dumps(pipelines.load_preset(args.preset)))

    if args.config:
        override = _load_override(args.config)
        if {"data", "model", "train"} <= set(override.keys()):
            config = json.loads(json.dumps(override))
        else:
            config = _merge(config, override)

    train = config.setdefault("train", {})
    if args.enable_plots:
        train["enable_plots"] = True
    if args.seed is not None:
        train["seed"] = int(args.seed)
    if args.workers is not None:
        train["workers"] = int(args.workers)
    if args.max_restarts is not None:
        train["max_restarts"] = int(args.max_restarts)
    if args.target_cost is not None:
        train["target_cost"] = float(args.target_cost)
    if args.run_dir is not None:
        train["run_dir"] = str(args.run_dir)
    if args.initial_weights is not None:
        train["initial_weights"] = str(args.initial_weights)

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    result = pipelines.run_pipeline(config)
    print(_format_result(result))


if __name__ == "__main__":
    main()
