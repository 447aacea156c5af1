"""Heuristic backward correction of connection weights.

This is not a gradient: the output error is scaled by the learn rate, split
evenly across a unit's inputs and pushed back along every path to the source
units, nudging each weight by ``source.activation * delta`` and clamping it to
its bounds.
"""

from __future__ import annotations

from typing import Sequence

from .graph import Net, Unit
from .types import ShapeError


def back_propagate(net: Net, targets: Sequence[float], learn_rate: float) -> None:
    """Correct the weights of ``net`` toward ``targets``.

    The net's current activations must come from the input matching
    ``targets``.
    """

    outputs = net.layers[-1]
    if len(targets) != len(outputs):
        raise ShapeError(f"Target length {len(targets)} does not match output layer width {len(outputs)}")
    for unit, target in zip(outputs, targets):
        delta = (float(target) - unit.activation) * learn_rate
        back_propagate_from_unit(unit, delta)


def back_propagate_from_unit(unit: Unit, delta: float) -> None:
    """Push ``delta`` back from ``unit`` through all of its input paths.

    Recursion follows connections, not layer indices, and is not memoised: a
    unit reached along ``k`` paths is corrected ``k`` times. Only acyclic
    graphs terminate.
    """

    if not unit.inputs:
        return
    delta /= len(unit.inputs)
    for source, connection in unit.inputs.items():
        connection.weight += source.activation * delta
        connection.clamp()
        back_propagate_from_unit(source, delta)


__all__ = ["back_propagate", "back_propagate_from_unit"]
