"""Core typing contracts for annealnet."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Sequence, Tuple, Union

import numpy as np

Array = np.ndarray

# Large sentinel used for "no cost observed yet".
COST_SENTINEL = 1e300


class ShapeError(ValueError):
    """A vector's length does not match the network topology."""


class StructuralEdgeMissing(KeyError):
    """A unit has no input connection from the requested source unit."""


@dataclass(frozen=True)
class TrainingSample:
    """A single (inputs, targets) pair."""

    inputs: Tuple[float, ...]
    targets: Tuple[float, ...]


SampleLike = Union[TrainingSample, Tuple[Sequence[float], Sequence[float]]]


def as_samples(samples: Sequence[SampleLike]) -> List[TrainingSample]:
    """Normalise ``samples`` into a list of :class:`TrainingSample`."""

    out: List[TrainingSample] = []
    for sample in samples:
        if isinstance(sample, TrainingSample):
            out.append(sample)
            continue
        inputs, targets = sample
        out.append(
            TrainingSample(
                inputs=tuple(float(v) for v in inputs),
                targets=tuple(float(v) for v in targets),
            )
        )
    return out


class RestartOutcome(str, Enum):
    """Why a local-minimum search (restart) ended."""

    STAGNANT = "stagnant"
    RATE_EXHAUSTED = "rate_exhausted"
    EPOCHS_EXHAUSTED = "epochs_exhausted"
    ABORTED = "aborted"
    TARGET_REACHED = "target_reached"


@dataclass(frozen=True)
class RestartRecord:
    """Statistics for one restart of a worker."""

    worker_id: int
    index: int
    epochs: int
    learn_rate: float
    best_cost: float
    outcome: RestartOutcome


@dataclass(frozen=True)
class Improvement:
    """Snapshot handed to improvement callbacks."""

    cost: float
    weights: Array
    worker_id: int
    restart: int
    epoch: int


@dataclass
class SearchResult:
    """Best configuration found by a search."""

    cost: float
    weights: Array
    restarts: List[RestartRecord] = field(default_factory=list)

    def __iter__(self):
        # Allows ``cost, weights = result``.
        yield self.cost
        yield self.weights


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`annealnet.training.pipelines.run_pipeline`."""

    best_cost: float
    restarts: int
    metrics_path: str
    manifest_path: str
    summary_path: str = ""
    weights_path: str = ""


__all__ = [
    "Array",
    "COST_SENTINEL",
    "Improvement",
    "RestartOutcome",
    "RestartRecord",
    "RunResult",
    "SampleLike",
    "SearchResult",
    "ShapeError",
    "StructuralEdgeMissing",
    "TrainingSample",
    "as_samples",
]
