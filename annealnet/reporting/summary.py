"""Deterministic summaries of a search's improvement log."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Mapping, Sequence

import numpy as np

from ..core.types import RestartRecord


def _area(y: np.ndarray, x: np.ndarray) -> float:
    trapezoid = getattr(np, "trapezoid", None)
    if callable(trapezoid):
        return float(trapezoid(y, x))
    return float(np.trapz(y, x))


def compute_auc(points: Sequence[float]) -> float:
    """Return the area-under-curve of ``points`` along an implicit step axis."""

    if not points:
        return 0.0
    y = np.asarray(points, dtype=np.float64)
    x = np.arange(len(points), dtype=np.float64)
    return _area(y, x)


def _read_records(path: Path) -> list[Mapping[str, object]]:
    records: list[Mapping[str, object]] = []
    if path.exists():
        for line in path.read_text().splitlines():
            line = line.strip()
            if line:
                records.append(json.loads(line))
    return records


def _restart_stats(restarts: Iterable[RestartRecord]) -> Mapping[str, object]:
    outcomes: dict[str, int] = {}
    epochs: list[int] = []
    for record in restarts:
        outcomes[record.outcome.value] = outcomes.get(record.outcome.value, 0) + 1
        epochs.append(record.epochs)
    return {
        "count": len(epochs),
        "epochs_total": int(sum(epochs)),
        "epochs_mean": float(np.mean(epochs)) if epochs else 0.0,
        "outcomes": dict(sorted(outcomes.items())),
    }


def build_summary(
    records: list[Mapping[str, object]],
    restarts: Iterable[RestartRecord] = (),
    *,
    tail: int = 32,
) -> Mapping[str, object]:
    costs = [float(r["cost"]) for r in records if isinstance(r.get("cost"), (int, float))]
    tail_window = min(tail, len(costs))
    summary: dict[str, object] = {
        "version": 1,
        "records": len(records),
        "tail_window": tail_window,
        "restarts": _restart_stats(restarts),
    }
    if costs:
        arr = np.asarray(costs, dtype=np.float64)
        summary["cost"] = {
            "first": float(arr[0]),
            "best": float(np.min(arr)),
            "mean": float(np.mean(arr)),
            "last": float(arr[-1]),
            "tail_auc": compute_auc(arr[-tail_window:].tolist()) if tail_window else 0.0,
        }
    return summary


def write_summary(
    improvements_jsonl: str | Path,
    out_summary_json: str | Path,
    *,
    restarts: Iterable[RestartRecord] = (),
    tail: int = 32,
) -> str:
    """Write a deterministic summary for ``improvements_jsonl``."""

    out_path = Path(out_summary_json)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    records = _read_records(Path(improvements_jsonl))
    summary = build_summary(records, restarts, tail=tail)
    out_path.write_text(json.dumps(summary, sort_keys=True, indent=2))
    return str(out_path)


__all__ = ["build_summary", "compute_auc", "write_summary"]
