"""Pipeline assembly: presets, config resolution and run artifacts."""

from __future__ import annotations

import json
import math
import time
from copy import deepcopy
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Sequence

from ..core.graph import Net
from ..core.types import Improvement, RunResult, ShapeError
from ..data import tasks
from ..reporting.artifacts import load_weights, save_weights, write_manifest, write_predictions
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from ..reporting.summary import write_summary
from ..utils.logger import get_logger
from .coordinator import find_minima
from .search import SearchSettings

logger = get_logger(__name__)

_PRESETS: Dict[str, Mapping[str, object]] = {
    "xor": {
        "data": {"name": "xor", "options": {}},
        "model": {"layers": [2, 4, 1], "min_weight": -8, "max_weight": 8},
        "train": {
            "learn_rate": 20,
            "cooldown_rate": 0.98,
            "max_restarts": 48,
            "max_epochs": 500,
            "error_bar": 0.0,
            "min_cost_change_rate": 1.000001,
            "min_learn_rate": 0.5,
            "workers": 4,
            "seed": 0,
            "run_dir": "runs/xor",
            "enable_plots": False,
        },
    },
    "xor-smoke": {
        "data": {"name": "xor", "options": {}},
        "model": {"layers": [2, 4, 1], "min_weight": -8, "max_weight": 8},
        "train": {
            "learn_rate": 20,
            "cooldown_rate": 0.98,
            "max_restarts": 4,
            "max_epochs": 40,
            "error_bar": 0.0,
            "min_cost_change_rate": 1.000001,
            "min_learn_rate": 0.5,
            "workers": 2,
            "seed": 0,
            "run_dir": "runs/xor-smoke",
            "enable_plots": False,
        },
    },
    "parity4": {
        "data": {"name": "parity", "options": {"bits": 4}},
        "model": {"layers": [4, 4, 1], "min_weight": -20, "max_weight": 20},
        "train": {
            "learn_rate": 20,
            "cooldown_rate": 0.98,
            "max_restarts": 96,
            "max_epochs": 500,
            "error_bar": 0.0,
            "min_cost_change_rate": 1.000001,
            "min_learn_rate": 0.5,
            "workers": 8,
            "seed": 0,
            "run_dir": "runs/parity4",
            "enable_plots": False,
        },
    },
    "adc3": {
        "data": {"name": "adc", "options": {"bits": 3}},
        "model": {"layers": [1, 27, 3], "min_weight": -20, "max_weight": 20},
        "train": {
            "learn_rate": 20,
            "cooldown_rate": 0.98,
            "max_restarts": 64,
            "max_epochs": 500,
            "error_bar": 0.3,
            "min_cost_change_rate": 1.000001,
            "min_learn_rate": 0.5,
            "workers": 8,
            "seed": 0,
            "run_dir": "runs/adc3",
            "enable_plots": False,
        },
    },
    "adder2": {
        "data": {"name": "adder", "options": {"bits": 2}},
        "model": {"layers": [4, 10, 10, 3], "min_weight": -20, "max_weight": 20},
        "train": {
            "learn_rate": 20,
            "cooldown_rate": 0.98,
            "max_restarts": 64,
            "max_epochs": 500,
            "error_bar": 0.0,
            "min_cost_change_rate": 1.000001,
            "min_learn_rate": 0.5,
            "workers": 8,
            "seed": 0,
            "run_dir": "runs/adder2",
            "enable_plots": False,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, object]] | None = None


def _read_preset_file(path: Path) -> Mapping[str, object]:
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        try:
            import yaml  # type: ignore
        except Exception as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("PyYAML is required to load preset files in YAML format") from exc
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported preset file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Preset {path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, object]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        found: Dict[str, Mapping[str, object]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
                    continue
                data = _read_preset_file(file)
                missing = {"data", "model", "train"} - set(data)
                if missing:
                    missing_str = ", ".join(sorted(missing))
                    raise KeyError(f"Preset {file.name} is missing required sections: {missing_str}")
                found[file.stem] = json.loads(json.dumps(data))
        _FILE_PRESETS_CACHE = found
    cache = _FILE_PRESETS_CACHE or {}
    return {name: deepcopy(cfg) for name, cfg in cache.items()}


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    file_overrides = _file_presets()
    if name in file_overrides:
        return file_overrides[name]
    try:
        return deepcopy(_PRESETS[name])
    except KeyError as exc:
        raise KeyError(f"Unknown preset: {name}") from exc


def build_task(data_cfg: Mapping[str, object]) -> tasks.TaskSpec:
    """Resolve the ``data`` config section into a task."""

    if "samples" in data_cfg:
        return tasks.from_samples(data_cfg["samples"], name=str(data_cfg.get("name", "inline")))  # type: ignore[arg-type]
    if "name" not in data_cfg:
        raise KeyError("data config needs either `name` or `samples`")
    return tasks.get_task(str(data_cfg["name"]), **dict(data_cfg.get("options", {})))  # type: ignore[arg-type]


def build_net(model_cfg: Mapping[str, object], task: tasks.TaskSpec, seed: int) -> Net:
    layers = [int(v) for v in model_cfg.get("layers", task.suggested_layers)]  # type: ignore[union-attr]
    net = Net(
        layers,
        min_weight=float(model_cfg.get("min_weight", -10.0)),
        max_weight=float(model_cfg.get("max_weight", 10.0)),
        activation_fn=model_cfg.get("activation"),  # type: ignore[arg-type]
        seed=seed,
    )
    tasks.validate_samples(net, task.samples)
    return net


def _fan_out(callbacks: Sequence[Callable[[Improvement], None]]) -> Callable[[Improvement], None]:
    def _monitor(improvement: Improvement) -> None:
        for callback in callbacks:
            callback(improvement)

    return _monitor


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    """Build the task and net from ``config``, search, and write artifacts."""

    data_cfg = dict(config["data"])  # type: ignore[arg-type]
    model_cfg = dict(config["model"])  # type: ignore[arg-type]
    train_cfg = dict(config["train"])  # type: ignore[arg-type]

    seed = int(train_cfg.get("seed", 0))
    workers = int(train_cfg.get("workers", 1))
    task = build_task(data_cfg)
    net = build_net(model_cfg, task, seed)
    settings = SearchSettings.from_config(train_cfg)

    initial = train_cfg.get("initial_weights")
    if initial:
        weights, sizes, _ = load_weights(str(initial))
        if sizes != net.layer_sizes:
            raise ShapeError(f"Initial weights were saved for layers {sizes}, model has {net.layer_sizes}")
        net.import_weights(weights)

    run_dir = _resolve_run_dir(train_cfg, task.name)
    run_dir.mkdir(parents=True, exist_ok=True)

    _print_startup_summary(
        task_name=task.name,
        samples=len(task.samples),
        layers=net.layer_sizes,
        connections=net.connection_count(),
        settings=settings,
        workers=workers,
    )

    jsonl = JsonlSink(run_dir / "improvements.jsonl", seed=seed)
    csv_sink = CsvSink(run_dir / "improvements.csv")
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))

    result = find_minima(
        net,
        task.samples,
        settings,
        num_workers=workers,
        monitor=_fan_out([jsonl, csv_sink, plots]),
        seed=seed,
    )
    plots.close()
    if not math.isfinite(result.cost):
        logger.warning("search ended with a non-finite best cost: %s", result.cost)

    net.import_weights(result.weights)
    weights_path = save_weights(run_dir / "best.npz", net, result.weights, result.cost)
    write_predictions(run_dir / "predictions.json", net, task.samples)

    safe_config = _safe_config(config, net.layer_sizes)
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=safe_config,
        task_provenance=task.provenance,
        result={
            "best_cost": result.cost,
            "restarts": len(result.restarts),
            "weights_hash": net.weights_hash(),
        },
    )
    summary_tail = int(train_cfg.get("summary_tail", 32))
    summary_path = write_summary(
        jsonl.path, run_dir / "summary.json", restarts=result.restarts, tail=summary_tail
    )
    (run_dir / "config.json").write_text(json.dumps(safe_config, indent=2))

    return RunResult(
        best_cost=float(result.cost),
        restarts=len(result.restarts),
        metrics_path=str(jsonl.path),
        manifest_path=manifest,
        summary_path=summary_path,
        weights_path=weights_path,
    )


def _resolve_run_dir(train_cfg: Mapping[str, object], task_name: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / task_name


def _safe_config(config: Mapping[str, object], layers: Iterable[int]) -> Mapping[str, object]:
    copied = json.loads(json.dumps(config))
    copied.setdefault("model", {})["layers"] = list(layers)
    return copied


def _print_startup_summary(
    *,
    task_name: str,
    samples: int,
    layers: List[int],
    connections: int,
    settings: SearchSettings,
    workers: int,
) -> None:
    print("=== annealnet run ===")
    print(f"Task          : {task_name} ({samples} samples)")
    print(f"Layers        : {layers}")
    print(f"Connections   : {connections}")
    print(f"Workers       : {workers}")
    print(f"Restarts      : {settings.max_restarts} x <= {settings.max_epochs_per_restart} epochs")
    print(f"Learn rate    : {settings.initial_learn_rate} (cooldown {settings.cooldown_rate})")
    print(f"Error bar     : {settings.error_bar}")
    print("=====================")


__all__ = ["build_net", "build_task", "load_preset", "presets", "run_pipeline"]
