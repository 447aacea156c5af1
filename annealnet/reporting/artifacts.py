"""Run artifact helpers: manifests, weight checkpoints and predictions."""

from __future__ import annotations

import json
import os
import platform
import time
from pathlib import Path
from typing import Mapping, Sequence, Tuple

import numpy as np

from ..core.graph import Net
from ..core.types import Array, TrainingSample
from .metrics import git_sha


def write_manifest(
    path: str | Path,
    *,
    config: Mapping[str, object],
    task_provenance: Mapping[str, object],
    result: Mapping[str, object] | None = None,
) -> str:
    """Write a manifest JSON file capturing reproducibility metadata."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    manifest = {
        "git_sha": git_sha(),
        "generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "config": config,
        "task": dict(task_provenance),
        "result": dict(result or {}),
        "environment": {
            "python": platform.python_version(),
            "numpy": np.__version__,
            "cpu_count": os.cpu_count(),
        },
    }
    path.write_text(json.dumps(manifest, indent=2))
    return str(path)


def save_weights(path: str | Path, net: Net, weights: Array, cost: float) -> str:
    """Store flattened ``weights`` with the topology they belong to."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as handle:
        np.savez_compressed(
            handle,
            weights=np.asarray(weights, dtype=np.float64),
            layer_sizes=np.asarray(net.layer_sizes, dtype=np.int64),
            cost=np.asarray(cost, dtype=np.float64),
        )
    return str(path)


def load_weights(path: str | Path) -> Tuple[Array, list[int], float]:
    """Return ``(weights, layer_sizes, cost)`` from :func:`save_weights` output."""

    with np.load(Path(path)) as payload:
        return (
            payload["weights"].copy(),
            [int(v) for v in payload["layer_sizes"]],
            float(payload["cost"]),
        )


def write_predictions(path: str | Path, net: Net, samples: Sequence[TrainingSample]) -> str:
    """Record the net's output for every sample next to its target."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    rows = []
    for sample in samples:
        outputs = net.predict(sample.inputs)
        rows.append(
            {
                "inputs": list(sample.inputs),
                "targets": list(sample.targets),
                "outputs": [float(v) for v in outputs],
            }
        )
    path.write_text(json.dumps(rows, indent=2))
    return str(path)


__all__ = ["load_weights", "save_weights", "write_manifest", "write_predictions"]
