import math
import threading

import numpy as np
import pytest

from annealnet.core.graph import Net
from annealnet.core.types import COST_SENTINEL, RestartOutcome
from annealnet.data.tasks import get_task
from annealnet.training.search import SearchSettings, cost_change_ratio, find_minima_single


def _xor():
    return get_task("xor").samples


def test_cost_change_ratio_edges():
    assert cost_change_ratio(2.0, 1.0) == 2.0
    assert cost_change_ratio(1.0, 2.0) == 2.0
    assert cost_change_ratio(0.0, 0.0) == 1.0
    assert math.isinf(cost_change_ratio(0.0, 1.0))


def test_settings_from_config_and_validation():
    settings = SearchSettings.from_config({"learn_rate": 5, "max_epochs": 3, "target_cost": 0.01})
    assert settings.initial_learn_rate == 5.0
    assert settings.max_epochs_per_restart == 3
    assert settings.target_cost == 0.01
    assert settings.to_dict()["cooldown_rate"] == 0.998
    with pytest.raises(ValueError):
        SearchSettings(error_bar=-1.0).validate()
    with pytest.raises(ValueError):
        SearchSettings(cooldown_rate=1.5).validate()
    with pytest.raises(ValueError):
        SearchSettings(max_restarts=0).validate()


def test_equal_costs_hit_stagnation_boundary():
    # A zero learn rate leaves the weights alone, so consecutive costs are equal.
    settings = SearchSettings(
        initial_learn_rate=0.0,
        cooldown_rate=1.0,
        max_restarts=3,
        max_epochs_per_restart=50,
        error_bar=0.0,
        min_cost_change_rate=1.0,
        min_learn_rate=0.0,
    )
    result = find_minima_single(Net([2, 4, 1], -8, 8, seed=0), _xor(), settings)
    assert len(result.restarts) == 3
    assert all(r.outcome is RestartOutcome.STAGNANT for r in result.restarts)
    assert all(r.epochs == 2 for r in result.restarts)


def test_learn_rate_exhaustion_ends_restart():
    settings = SearchSettings(
        initial_learn_rate=1.0,
        cooldown_rate=0.5,
        max_restarts=2,
        max_epochs_per_restart=50,
        error_bar=0.0,
        min_cost_change_rate=0.0,
        min_learn_rate=0.3,
    )
    result = find_minima_single(Net([2, 4, 1], -8, 8, seed=0), _xor(), settings)
    assert [r.outcome for r in result.restarts] == [RestartOutcome.RATE_EXHAUSTED] * 2
    assert [r.epochs for r in result.restarts] == [2, 2]
    assert result.restarts[0].learn_rate == pytest.approx(0.25)


def test_epoch_cap_and_reported_best():
    settings = SearchSettings(
        initial_learn_rate=5.0,
        cooldown_rate=1.0,
        max_restarts=4,
        max_epochs_per_restart=5,
        error_bar=0.0,
        min_cost_change_rate=0.0,
        min_learn_rate=0.0,
    )
    seen = []
    result = find_minima_single(
        Net([2, 4, 1], -8, 8, seed=1), _xor(), settings, on_improvement=seen.append, worker_id=3
    )
    assert [r.outcome for r in result.restarts] == [RestartOutcome.EPOCHS_EXHAUSTED] * 4
    assert [r.index for r in result.restarts] == [0, 1, 2, 3]
    assert result.cost == min(r.best_cost for r in result.restarts)
    assert seen and all(imp.worker_id == 3 for imp in seen)
    costs = [imp.cost for imp in seen]
    assert costs == sorted(costs, reverse=True)
    assert len(set(costs)) == len(costs)
    assert seen[-1].cost == result.cost
    np.testing.assert_array_equal(seen[-1].weights, result.weights)


def test_preset_abort_skips_all_restarts():
    net = Net([2, 4, 1], seed=0)
    initial = net.export_weights()
    abort = threading.Event()
    abort.set()
    result = find_minima_single(net, _xor(), SearchSettings(max_restarts=5), abort=abort)
    assert result.restarts == []
    assert result.cost == COST_SENTINEL
    np.testing.assert_array_equal(result.weights, initial)


def test_abort_is_honoured_after_current_epoch():
    abort = threading.Event()

    def _stop(_improvement):
        abort.set()

    settings = SearchSettings(
        cooldown_rate=1.0, max_restarts=10, max_epochs_per_restart=1000, min_learn_rate=0.0
    )
    result = find_minima_single(
        Net([2, 4, 1], seed=0), _xor(), settings, abort=abort, on_improvement=_stop
    )
    assert len(result.restarts) == 1
    assert result.restarts[0].outcome is RestartOutcome.ABORTED
    assert result.restarts[0].epochs == 1


def test_target_cost_stops_search():
    settings = SearchSettings(max_restarts=10, max_epochs_per_restart=100, target_cost=1e9)
    result = find_minima_single(Net([2, 4, 1], seed=0), _xor(), settings)
    assert len(result.restarts) == 1
    assert result.restarts[0].outcome is RestartOutcome.TARGET_REACHED
    assert result.restarts[0].epochs == 1


def test_xor_best_cost_improves_over_restarts():
    settings = SearchSettings(
        initial_learn_rate=20.0,
        cooldown_rate=0.98,
        max_restarts=8,
        max_epochs_per_restart=500,
        error_bar=0.0,
        min_cost_change_rate=1.000001,
        min_learn_rate=0.5,
    )
    seen = []
    result = find_minima_single(
        Net([2, 4, 1], -8.0, 8.0, seed=0), _xor(), settings, on_improvement=seen.append
    )
    assert len(result.restarts) == 8
    assert seen[0].restart == 0 and seen[0].epoch == 0
    costs = [imp.cost for imp in seen]
    assert all(b < a for a, b in zip(costs, costs[1:]))

    # Shared best as reported at the end of each restart.
    best_after = []
    for record in result.restarts:
        reported = [imp.cost for imp in seen if imp.restart <= record.index]
        best_after.append(min(reported))
    assert all(b <= a for a, b in zip(best_after, best_after[1:]))
    assert best_after[0] == result.restarts[0].best_cost
    assert best_after[-1] == result.cost
    assert result.cost < seen[0].cost
