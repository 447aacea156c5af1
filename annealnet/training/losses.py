"""Dead-zone cost evaluation and single-epoch training."""

from __future__ import annotations

from typing import Sequence

from ..core.corrections import back_propagate
from ..core.graph import Net
from ..core.types import ShapeError, TrainingSample

# Returned by :func:`run_epoch` when cost computation is disabled.
SKIPPED_COST = -1.0


def dead_zone(diff: float, error_bar: float) -> float:
    """Shrink ``|diff|`` toward zero by ``error_bar``, stopping at zero."""

    if diff < 0:
        diff += error_bar
        return 0.0 if diff > 0 else diff
    diff -= error_bar
    return 0.0 if diff < 0 else diff


def loss(net: Net, targets: Sequence[float], error_bar: float = 0.0) -> float:
    """Squared dead-zone error of the current outputs against ``targets``."""

    outputs = net.get_output()
    if len(targets) != len(outputs):
        raise ShapeError(f"Target length {len(targets)} does not match output layer width {len(outputs)}")
    total = 0.0
    for output, target in zip(outputs, targets):
        diff = dead_zone(float(output) - float(target), error_bar)
        total += diff * diff
    return total


def cost(net: Net, samples: Sequence[TrainingSample], error_bar: float = 0.1) -> float:
    """Sum of per-sample losses over ``samples`` (a sum, not a mean)."""

    total = 0.0
    for sample in samples:
        net.set_input(sample.inputs)
        net.forward_propagate()
        total += loss(net, sample.targets, error_bar)
    return total


def run_epoch(
    net: Net,
    samples: Sequence[TrainingSample],
    learn_rate: float,
    error_bar: float = 0.1,
) -> float:
    """Train on every sample once and return the summed pre-correction cost.

    A negative ``error_bar`` skips the cost entirely and returns
    :data:`SKIPPED_COST`.
    """

    track_cost = error_bar >= 0
    total = 0.0
    for sample in samples:
        net.set_input(sample.inputs)
        net.forward_propagate()
        if track_cost:
            total += loss(net, sample.targets, error_bar)
        back_propagate(net, sample.targets, learn_rate)
    return total if track_cost else SKIPPED_COST


__all__ = ["SKIPPED_COST", "cost", "dead_zone", "loss", "run_epoch"]
