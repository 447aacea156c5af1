"""Registry of named training tasks and sample-set helpers."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, MutableMapping, Sequence

from ..core.graph import Net
from ..core.types import SampleLike, ShapeError, TrainingSample, as_samples


@dataclass(frozen=True)
class TaskSpec:
    """A training sample set plus the layer widths it implies.

    Attributes
    ----------
    name:
        Registry name of the task.
    samples:
        The ordered training samples.
    suggested_layers:
        A topology known to learn the task; pipelines fall back to it when
        the model config does not name one.
    provenance:
        Free-form metadata recorded in run manifests.
    """

    name: str
    samples: List[TrainingSample]
    suggested_layers: List[int]
    provenance: Dict[str, Any] = field(default_factory=dict)

    @property
    def d_in(self) -> int:
        return len(self.samples[0].inputs)

    @property
    def d_out(self) -> int:
        return len(self.samples[0].targets)


TaskFactory = Callable[..., TaskSpec]

_REGISTRY: MutableMapping[str, TaskFactory] = {}


def register_task(name: str) -> Callable[[TaskFactory], TaskFactory]:
    """Decorator registering a task factory under ``name``."""

    def _decorator(func: TaskFactory) -> TaskFactory:
        _REGISTRY[name] = func
        return func

    return _decorator


def names() -> List[str]:
    return sorted(_REGISTRY)


def get_task(name: str, **options: Any) -> TaskSpec:
    if name not in _REGISTRY:
        available = ", ".join(names())
        raise KeyError(f"Unknown task {name!r}. Available tasks: {available}")
    return _REGISTRY[name](**options)


def from_samples(samples: Sequence[SampleLike], name: str = "inline") -> TaskSpec:
    """Wrap explicit ``(inputs, targets)`` pairs as a task."""

    normalised = as_samples(samples)
    if not normalised:
        raise ValueError("A task needs at least one sample")
    d_in = len(normalised[0].inputs)
    d_out = len(normalised[0].targets)
    for idx, sample in enumerate(normalised):
        if len(sample.inputs) != d_in or len(sample.targets) != d_out:
            raise ShapeError(f"Sample {idx} does not match the shape of sample 0 ({d_in} -> {d_out})")
    hidden = max(2, 2 * d_in)
    return TaskSpec(
        name=name,
        samples=normalised,
        suggested_layers=[d_in, hidden, d_out],
        provenance={"name": name, "type": "inline", "samples": len(normalised)},
    )


def validate_samples(net: Net, samples: Sequence[TrainingSample]) -> None:
    """Raise :class:`ShapeError` if any sample does not fit ``net``."""

    sizes = net.layer_sizes
    for idx, sample in enumerate(samples):
        if len(sample.inputs) != sizes[0]:
            raise ShapeError(f"Sample {idx}: input length {len(sample.inputs)} != input width {sizes[0]}")
        if len(sample.targets) != sizes[-1]:
            raise ShapeError(f"Sample {idx}: target length {len(sample.targets)} != output width {sizes[-1]}")


def _bits(value: int, width: int) -> List[int]:
    return [(value >> shift) & 1 for shift in reversed(range(width))]


def _level(bit: int, low: float, high: float) -> float:
    return high if bit else low


@register_task("xor")
def make_xor(low: float = 0.1, high: float = 0.9) -> TaskSpec:
    samples = [
        ((0, 0), (low,)),
        ((1, 0), (high,)),
        ((0, 1), (high,)),
        ((1, 1), (low,)),
    ]
    return TaskSpec(
        name="xor",
        samples=as_samples(samples),
        suggested_layers=[2, 4, 1],
        provenance={"name": "xor", "type": "builtin", "low": low, "high": high},
    )


@register_task("parity")
def make_parity(bits: int = 4, low: float = 0.1, high: float = 0.9) -> TaskSpec:
    """Odd-parity detector over every ``bits``-bit input pattern."""

    samples = []
    for pattern in itertools.product((0, 1), repeat=bits):
        samples.append((pattern, (_level(sum(pattern) % 2, low, high),)))
    return TaskSpec(
        name="parity",
        samples=as_samples(samples),
        suggested_layers=[bits, bits, 1],
        provenance={"name": "parity", "type": "builtin", "bits": bits},
    )


@register_task("adc")
def make_adc(bits: int = 3, step: float = 0.1, low: float = 0.2, high: float = 0.8) -> TaskSpec:
    """Analog-to-digital converter: one analog input, ``bits`` binary outputs."""

    samples = []
    for code in range(2**bits):
        outputs = tuple(_level(bit, low, high) for bit in _bits(code, bits))
        samples.append(((round(code * step, 10),), outputs))
    return TaskSpec(
        name="adc",
        samples=as_samples(samples),
        suggested_layers=[1, 9 * bits, bits],
        provenance={"name": "adc", "type": "builtin", "bits": bits, "step": step},
    )


@register_task("adder")
def make_adder(bits: int = 2, low: float = 0.25, high: float = 0.75) -> TaskSpec:
    """Add two ``bits``-bit numbers; the output carries ``bits + 1`` bits."""

    samples = []
    for a in range(2**bits):
        for b in range(2**bits):
            inputs = _bits(a, bits) + _bits(b, bits)
            outputs = tuple(_level(bit, low, high) for bit in _bits(a + b, bits + 1))
            samples.append((inputs, outputs))
    return TaskSpec(
        name="adder",
        samples=as_samples(samples),
        suggested_layers=[2 * bits, 10, 10, bits + 1],
        provenance={"name": "adder", "type": "builtin", "bits": bits},
    )


__all__ = [
    "TaskSpec",
    "from_samples",
    "get_task",
    "names",
    "register_task",
    "validate_samples",
]
