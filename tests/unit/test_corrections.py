import numpy as np
import pytest

from annealnet.core.corrections import back_propagate, back_propagate_from_unit
from annealnet.core.graph import Net
from annealnet.core.types import ShapeError


def test_corrections_never_leave_bounds():
    net = Net([2, 3, 1], min_weight=-1.0, max_weight=1.0, seed=0)
    rng = np.random.default_rng(0)
    for _ in range(50):
        net.predict(rng.uniform(-5, 5, size=2))
        back_propagate(net, [float(rng.uniform(-3, 3))], learn_rate=1e6)
        for _, _, conn in net.iter_connections():
            assert conn.min_weight <= conn.weight <= conn.max_weight


def test_delta_is_split_across_inputs():
    net = Net([2, 1], activation_fn="linear", seed=0)
    net.import_weights([0.0, 0.0, 0.0])
    net.predict([1.0, 0.5])
    back_propagate(net, [1.0], learn_rate=1.0)
    np.testing.assert_allclose(net.export_weights(), [1 / 3, 1 / 6, 1 / 3])


def test_hidden_unit_corrected_once_per_path():
    net = Net([1, 1, 2], activation_fn="linear", seed=0)
    net.import_weights(np.zeros(net.connection_count()))
    net.predict([1.0])
    back_propagate(net, [1.0, 1.0], learn_rate=1.0)
    # Both output paths reach the hidden unit, each pushing 0.25 into its inputs.
    np.testing.assert_allclose(net.export_weights(), [0.5, 0.5, 0.0, 0.5, 0.0, 0.5])


def test_source_units_are_untouched():
    net = Net([1, 1], seed=0)
    source = net.layers[0][0]
    back_propagate_from_unit(source, 10.0)
    back_propagate_from_unit(net.bias_unit, 10.0)
    assert source.is_source and net.bias_unit.is_source


def test_target_length_mismatch():
    net = Net([2, 2], seed=0)
    with pytest.raises(ShapeError):
        back_propagate(net, [1.0], learn_rate=1.0)
