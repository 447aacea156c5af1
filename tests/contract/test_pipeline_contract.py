import json
from pathlib import Path

import numpy as np
import pytest

from annealnet.core.types import ShapeError
from annealnet.reporting.artifacts import load_weights
from annealnet.training import pipelines


def _config(run_dir):
    return {
        "data": {"name": "xor", "options": {}},
        "model": {"layers": [2, 4, 1], "min_weight": -8, "max_weight": 8},
        "train": {
            "learn_rate": 20,
            "cooldown_rate": 0.9,
            "max_restarts": 3,
            "max_epochs": 30,
            "error_bar": 0.0,
            "min_cost_change_rate": 1.000001,
            "min_learn_rate": 0.5,
            "workers": 1,
            "seed": 55,
            "run_dir": str(run_dir),
            "enable_plots": False,
        },
    }


def test_pipeline_writes_run_artifacts(tmp_path):
    result = pipelines.run_pipeline(_config(tmp_path / "run"))
    run_dir = tmp_path / "run"
    for name in (
        "improvements.jsonl",
        "improvements.csv",
        "best.npz",
        "predictions.json",
        "manifest.json",
        "summary.json",
        "config.json",
    ):
        assert (run_dir / name).exists(), name

    assert result.restarts == 3
    weights, sizes, cost = load_weights(result.weights_path)
    assert sizes == [2, 4, 1]
    assert cost == result.best_cost

    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["result"]["best_cost"] == result.best_cost
    assert manifest["task"]["name"] == "xor"
    assert len(manifest["result"]["weights_hash"]) == 12

    records = [json.loads(line) for line in Path(result.metrics_path).read_text().splitlines()]
    assert records[-1]["cost"] == result.best_cost
    assert all(r["seed"] == 55 for r in records)


def test_summary_outputs_are_deterministic(tmp_path):
    config = _config(tmp_path / "run_a")
    first = pipelines.run_pipeline(config)
    summary_a = Path(first.summary_path).read_bytes()
    metrics_a = Path(first.metrics_path).read_bytes()

    config["train"]["run_dir"] = str(tmp_path / "run_b")
    second = pipelines.run_pipeline(config)
    summary_b = Path(second.summary_path).read_bytes()
    metrics_b = Path(second.metrics_path).read_bytes()

    assert metrics_a == metrics_b
    assert summary_a == summary_b


def test_warm_start_from_checkpoint(tmp_path):
    first = pipelines.run_pipeline(_config(tmp_path / "cold"))

    config = _config(tmp_path / "warm")
    config["train"]["initial_weights"] = first.weights_path
    config["train"]["max_restarts"] = 1
    warm = pipelines.run_pipeline(config)
    assert warm.best_cost < float("inf")

    config = _config(tmp_path / "bad")
    config["model"]["layers"] = [2, 3, 1]
    config["train"]["initial_weights"] = first.weights_path
    with pytest.raises(ShapeError):
        pipelines.run_pipeline(config)


def test_inline_samples_and_suggested_layers(tmp_path):
    config = _config(tmp_path / "inline")
    config["data"] = {"name": "identity", "samples": [[[0.0], [0.2]], [[1.0], [0.8]]]}
    del config["model"]["layers"]
    result = pipelines.run_pipeline(config)
    saved = json.loads((tmp_path / "inline" / "config.json").read_text())
    assert saved["model"]["layers"] == [1, 2, 1]
    assert np.isfinite(result.best_cost)


def test_presets_include_builtin_and_file_presets():
    available = pipelines.presets()
    assert {"xor", "xor-smoke", "parity4", "adc3", "adder2", "parity3"} <= set(available)
    parity3 = pipelines.load_preset("parity3")
    assert parity3["data"]["options"]["bits"] == 3
    with pytest.raises(KeyError):
        pipelines.load_preset("missing")
