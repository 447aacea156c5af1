"""Mutable graph representation: connections, units and the layered net."""

from __future__ import annotations

import copy
import hashlib
from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .activations import DEFAULT_ACTIVATION, ActivationFn, resolve_activation
from .types import Array, ShapeError, StructuralEdgeMissing


@dataclass
class Connection:
    """A bounded trainable weight, owned by the destination unit.

    Training never moves ``weight`` outside ``[min_weight, max_weight]``.
    ``delta`` is scratch space for callers and is not used by the engine.
    """

    weight: float = 0.0
    min_weight: float = -1.0
    max_weight: float = 1.0
    delta: float = 0.0

    def clamp(self) -> None:
        if self.weight > self.max_weight:
            self.weight = self.max_weight
        elif self.weight < self.min_weight:
            self.weight = self.min_weight


@dataclass(eq=False)
class Unit:
    """A node holding an activation and its weighted input connections.

    ``inputs`` maps source units (by identity) to connections. Its insertion
    order is the canonical order used when flattening weights, and the bias
    connection is always last. A unit with no inputs is a source unit and is
    never recomputed by forward propagation.
    """

    activation: float = 0.0
    activation_fn: ActivationFn = field(default=DEFAULT_ACTIVATION, repr=False)
    layer: int = -1
    inputs: Dict["Unit", Connection] = field(default_factory=dict, repr=False)
    input_sum: float = 0.0

    @property
    def is_source(self) -> bool:
        return not self.inputs

    def add_input(
        self,
        source: "Unit",
        connection: Connection,
        *,
        before: Optional["Unit"] = None,
    ) -> Connection:
        """Attach ``connection`` from ``source``, optionally ahead of ``before``."""

        if source in self.inputs:
            raise ValueError("Unit already holds a connection from this source")
        if before is None or before not in self.inputs:
            self.inputs[source] = connection
            return connection
        reordered: Dict[Unit, Connection] = {}
        for key, value in self.inputs.items():
            if key is before:
                reordered[source] = connection
            reordered[key] = value
        self.inputs = reordered
        return connection

    def remove_input(self, source: "Unit") -> Connection:
        try:
            return self.inputs.pop(source)
        except KeyError:
            raise StructuralEdgeMissing("Unit has no input connection from the given source") from None

    def iterate(self) -> None:
        """Recompute ``activation`` from the current input activations."""

        if not self.inputs:
            return
        total = 0.0
        for source, connection in self.inputs.items():
            total += source.activation * connection.weight
        self.input_sum = total
        self.activation = self.activation_fn(total)


class Net:
    """A layered feed-forward network of :class:`Unit` objects.

    Every unit in layer ``k > 0`` holds one input connection per unit in layer
    ``k - 1`` plus one from the shared bias unit (constant activation ``1``);
    layer 0 units have no inputs. Bias values are therefore just another
    weighted input. Weight bounds given here are defaults; they can be changed
    per connection afterwards through :attr:`layers`.

    Parameters
    ----------
    layer_sizes:
        Width of each layer, input layer first. The bias unit is not counted.
    min_weight, max_weight:
        Default training limits for new connections.
    activation_fn:
        Activation used by new units, by name or as a callable. ``None``
        selects :func:`~annealnet.core.activations.soft_sigmoid`.
    seed, rng:
        Source of randomness for :meth:`randomize_weights`. ``rng`` wins when
        both are given.
    """

    def __init__(
        self,
        layer_sizes: Sequence[int],
        min_weight: float = -10.0,
        max_weight: float = 10.0,
        activation_fn: str | ActivationFn | None = None,
        *,
        seed: int | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        if min_weight > max_weight:
            raise ValueError(f"min_weight={min_weight} exceeds max_weight={max_weight}")
        self.min_weight = float(min_weight)
        self.max_weight = float(max_weight)
        self.activation_fn = resolve_activation(activation_fn)
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self.bias_unit = Unit(activation=1.0)
        self.layers: List[List[Unit]] = []
        for width in layer_sizes:
            self.add_layer(int(width))
        self.randomize_weights()

    # ------------------------------------------------------------------
    # Structure

    @property
    def layer_sizes(self) -> List[int]:
        return [len(layer) for layer in self.layers]

    def get_unit(self, layer_index: int, unit_index: int) -> Unit:
        return self.layers[layer_index][unit_index]

    def add_layer(
        self,
        width: int,
        min_weight: float | None = None,
        max_weight: float | None = None,
        activation_fn: str | ActivationFn | None = None,
    ) -> List[Unit]:
        """Append a layer of ``width`` fully-connected units."""

        self.layers.append([])
        layer_index = len(self.layers) - 1
        for _ in range(width):
            self.add_unit(layer_index, min_weight, max_weight, activation_fn)
        return self.layers[layer_index]

    def add_unit(
        self,
        layer_index: int,
        min_weight: float | None = None,
        max_weight: float | None = None,
        activation_fn: str | ActivationFn | None = None,
    ) -> Unit:
        """Add a unit to the end of a layer and wire it into its neighbours.

        The new unit gets a weight-0 input from every unit in the previous layer
        (if any) and one from the bias unit. Units already present in the next
        layer get a weight-0 input from the new unit, placed ahead of their bias
        connection. All of these connections use the given bounds.
        """

        lo = self.min_weight if min_weight is None else float(min_weight)
        hi = self.max_weight if max_weight is None else float(max_weight)
        fn = self.activation_fn if activation_fn is None else resolve_activation(activation_fn)
        unit = Unit(activation=0.0, activation_fn=fn, layer=layer_index)

        if layer_index > 0:
            for source in self.layers[layer_index - 1]:
                unit.add_input(source, Connection(weight=0.0, min_weight=lo, max_weight=hi))
            unit.add_input(self.bias_unit, Connection(weight=0.0, min_weight=lo, max_weight=hi))
        self.layers[layer_index].append(unit)

        if layer_index + 1 < len(self.layers):
            for dest in self.layers[layer_index + 1]:
                dest.add_input(
                    unit,
                    Connection(weight=0.0, min_weight=lo, max_weight=hi),
                    before=self.bias_unit,
                )
        return unit

    def delete_unit(self, layer_index: int, unit_index: int) -> Unit:
        """Remove a unit and its outgoing connections into the next layer.

        Missing connections are ignored; this is a best-effort cleanup.
        """

        unit = self.layers[layer_index].pop(unit_index)
        if layer_index + 1 < len(self.layers):
            for dest in self.layers[layer_index + 1]:
                try:
                    dest.remove_input(unit)
                except StructuralEdgeMissing:
                    continue
        return unit

    def iter_connections(self) -> Iterator[Tuple[Unit, Unit, Connection]]:
        """Yield ``(unit, source, connection)`` in canonical weight order."""

        for layer in self.layers:
            for unit in layer:
                for source, connection in unit.inputs.items():
                    yield unit, source, connection

    def connection_count(self) -> int:
        return sum(len(unit.inputs) for layer in self.layers for unit in layer)

    def randomize_weights(self) -> None:
        """Draw every weight uniformly from its connection's bounds."""

        for _, _, connection in self.iter_connections():
            connection.weight = float(self.rng.uniform(connection.min_weight, connection.max_weight))

    # ------------------------------------------------------------------
    # Forward evaluation

    def set_input(self, inputs: Sequence[float]) -> None:
        first = self.layers[0]
        if len(inputs) != len(first):
            raise ShapeError(
                f"Input length {len(inputs)} does not match input layer width {len(first)}"
            )
        for unit, value in zip(first, inputs):
            unit.activation = float(value)

    def forward_propagate(self, start_layer: int = 1) -> None:
        """Recompute activations layer by layer, starting at ``start_layer``."""

        for layer in self.layers[start_layer:]:
            for unit in layer:
                unit.iterate()

    def get_output(self) -> Array:
        return np.array([unit.activation for unit in self.layers[-1]], dtype=np.float64)

    def predict(self, inputs: Sequence[float]) -> Array:
        self.set_input(inputs)
        self.forward_propagate()
        return self.get_output()

    # ------------------------------------------------------------------
    # State

    def export_weights(self) -> Array:
        """Return all weights as a flat vector in canonical order."""

        return np.fromiter(
            (connection.weight for _, _, connection in self.iter_connections()),
            dtype=np.float64,
            count=self.connection_count(),
        )

    def import_weights(self, weights: Sequence[float] | Array) -> None:
        flat = np.asarray(weights, dtype=np.float64).reshape(-1)
        expected = self.connection_count()
        if flat.size != expected:
            raise ShapeError(f"Weight vector has {flat.size} entries, network has {expected} connections")
        for value, (_, _, connection) in zip(flat, self.iter_connections()):
            connection.weight = float(value)

    def weights_hash(self) -> str:
        """Return a short stable fingerprint of the current weights."""

        digest = hashlib.sha256(self.export_weights().tobytes()).hexdigest()
        return digest[:12]

    def is_equal(self, other: "Net") -> bool:
        """Compare topology, activations and weights with ``other``."""

        if self.layer_sizes != other.layer_sizes:
            return False
        for layer, other_layer in zip(self.layers, other.layers):
            for unit, other_unit in zip(layer, other_layer):
                if unit.activation != other_unit.activation:
                    return False
                if len(unit.inputs) != len(other_unit.inputs):
                    return False
                pairs = zip(unit.inputs.items(), other_unit.inputs.items())
                for (src, conn), (other_src, other_conn) in pairs:
                    if src.activation != other_src.activation or conn.weight != other_conn.weight:
                        return False
        return True

    def clone(self, rng: np.random.Generator | None = None) -> "Net":
        """Deep-copy topology, weights, bounds and activations.

        The clone shares no units or connections with this net. Its random
        generator is ``rng`` when given, otherwise a copy of this net's.
        """

        twin = Net(
            [],
            self.min_weight,
            self.max_weight,
            self.activation_fn,
            rng=rng if rng is not None else copy.deepcopy(self.rng),
        )
        twin.bias_unit.activation = self.bias_unit.activation
        mapping: Dict[Unit, Unit] = {self.bias_unit: twin.bias_unit}
        for layer in self.layers:
            new_layer: List[Unit] = []
            for unit in layer:
                new_unit = Unit(
                    activation=unit.activation,
                    activation_fn=unit.activation_fn,
                    layer=unit.layer,
                    input_sum=unit.input_sum,
                )
                mapping[unit] = new_unit
                new_layer.append(new_unit)
            twin.layers.append(new_layer)

        for layer in self.layers:
            for unit in layer:
                new_unit = mapping[unit]
                for source, connection in unit.inputs.items():
                    if source not in mapping:
                        # Source detached from the net (e.g. a hand-made edge).
                        mapping[source] = Unit(activation=source.activation, layer=source.layer)
                    new_unit.inputs[mapping[source]] = replace(connection)
        return twin


__all__ = ["Connection", "Net", "Unit"]
