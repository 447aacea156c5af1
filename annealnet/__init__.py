"""annealnet public API."""

from .core import activations, corrections, types  # noqa: F401
from .core.corrections import back_propagate, back_propagate_from_unit
from .core.graph import Connection, Net, Unit
from .core.types import (
    Improvement,
    RestartOutcome,
    SearchResult,
    ShapeError,
    StructuralEdgeMissing,
    TrainingSample,
    as_samples,
)
from .training.coordinator import BestRecord, ParallelMinimaSearch, find_minima
from .training.losses import cost, loss, run_epoch
from .training.pipelines import load_preset, presets, run_pipeline
from .training.search import SearchSettings, find_minima_single

__version__ = "0.1.0"

__all__ = [
    "BestRecord",
    "Connection",
    "Improvement",
    "Net",
    "ParallelMinimaSearch",
    "RestartOutcome",
    "SearchResult",
    "SearchSettings",
    "ShapeError",
    "StructuralEdgeMissing",
    "TrainingSample",
    "Unit",
    "activations",
    "as_samples",
    "back_propagate",
    "back_propagate_from_unit",
    "corrections",
    "cost",
    "find_minima",
    "find_minima_single",
    "load_preset",
    "loss",
    "presets",
    "run_epoch",
    "run_pipeline",
    "types",
]
