"""Activation functions for annealnet units."""

from __future__ import annotations

import math
from typing import Callable, Dict, Union

ActivationFn = Callable[[float], float]


def soft_sigmoid(x: float) -> float:
    """Fast sigmoid-like squashing into ``(0, 1)``: ``0.5 * x / (1 + |x|) + 0.5``."""

    return 0.5 * x / (1.0 + abs(x)) + 0.5


def logistic(x: float) -> float:
    """Classic logistic sigmoid, numerically safe for large ``|x|``."""

    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


def linear(x: float) -> float:
    return x


ACTIVATIONS: Dict[str, ActivationFn] = {
    "soft_sigmoid": soft_sigmoid,
    "logistic": logistic,
    "linear": linear,
}

DEFAULT_ACTIVATION = soft_sigmoid


def resolve_activation(spec: Union[str, ActivationFn, None]) -> ActivationFn:
    """Return the activation named by ``spec`` (or ``spec`` itself if callable)."""

    if spec is None:
        return DEFAULT_ACTIVATION
    if callable(spec):
        return spec
    try:
        return ACTIVATIONS[str(spec)]
    except KeyError as exc:
        available = ", ".join(sorted(ACTIVATIONS))
        raise KeyError(f"Unknown activation {spec!r}. Available activations: {available}") from exc


__all__ = [
    "ACTIVATIONS",
    "ActivationFn",
    "DEFAULT_ACTIVATION",
    "linear",
    "logistic",
    "resolve_activation",
    "soft_sigmoid",
]
