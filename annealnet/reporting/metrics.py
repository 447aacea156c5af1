"""Sinks recording search improvements for later inspection."""

from __future__ import annotations

import csv
import json
import subprocess
from pathlib import Path
from typing import Mapping

from ..core.types import Improvement


def git_sha() -> str:
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL)
        return out.decode().strip()
    except Exception:  # pragma: no cover - git may be unavailable in tests
        return "unknown"


def improvement_row(step: int, improvement: Improvement) -> Mapping[str, float]:
    return {
        "step": int(step),
        "cost": float(improvement.cost),
        "worker": int(improvement.worker_id),
        "restart": int(improvement.restart),
        "epoch": int(improvement.epoch),
    }


class JsonlSink:
    """Append-only JSONL writer, one record per accepted improvement."""

    def __init__(
        self,
        path: str | Path,
        *,
        seed: int | None = None,
        sha: str | None = None,
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.seed = seed
        self.sha = sha or git_sha()
        self._step = 0

    def on_improvement(self, improvement: Improvement) -> None:
        record = dict(improvement_row(self._step, improvement))
        record.update({"seed": self.seed, "sha": self.sha})
        self._step += 1
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")

    __call__ = on_improvement


class CsvSink:
    """Write improvements to CSV with a stable column order."""

    fieldnames = ("step", "cost", "worker", "restart", "epoch")

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self._step = 0

    def on_improvement(self, improvement: Improvement) -> None:
        row = improvement_row(self._step, improvement)
        self._step += 1
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=self.fieldnames)
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(row)

    __call__ = on_improvement


__all__ = ["CsvSink", "JsonlSink", "git_sha", "improvement_row"]
