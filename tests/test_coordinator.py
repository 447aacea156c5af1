import random
import threading
import time

import numpy as np
import pytest

from annealnet.core.graph import Net
from annealnet.core.types import COST_SENTINEL, RestartOutcome
from annealnet.data.tasks import get_task
from annealnet.training.coordinator import BestRecord, ParallelMinimaSearch, find_minima
from annealnet.training.search import SearchSettings, find_minima_single

QUICK = SearchSettings(
    initial_learn_rate=20.0,
    cooldown_rate=0.9,
    max_restarts=8,
    max_epochs_per_restart=40,
    error_bar=0.0,
    min_cost_change_rate=1.000001,
    min_learn_rate=0.5,
)

# Restarts only end when the search is told to stop.
ENDLESS = SearchSettings(
    initial_learn_rate=1.0,
    cooldown_rate=1.0,
    max_restarts=400,
    max_epochs_per_restart=10_000,
    error_bar=0.0,
    min_cost_change_rate=0.0,
    min_learn_rate=0.0,
)


def _xor():
    return get_task("xor").samples


def test_best_record_only_accepts_strict_improvements():
    record = BestRecord(np.zeros(3))
    accepted = []
    assert record.cost == COST_SENTINEL
    assert record.offer(2.0, np.ones(3), lambda: accepted.append(2.0))
    assert not record.offer(2.0, np.full(3, 5.0), lambda: accepted.append("eq"))
    assert not record.offer(3.0, np.full(3, 5.0), lambda: accepted.append("worse"))
    assert record.offer(1.0, np.full(3, 7.0))
    cost, weights = record.snapshot()
    assert cost == 1.0
    assert accepted == [2.0]
    weights[:] = 0.0
    np.testing.assert_array_equal(record.snapshot()[1], np.full(3, 7.0))


def test_best_record_is_monotonic_under_contention():
    record = BestRecord()
    accepted = []
    offered = []
    guard = threading.Lock()

    def _worker(seed):
        rng = random.Random(seed)
        for _ in range(500):
            cost = rng.uniform(0.0, 100.0)
            with guard:
                offered.append(cost)
            record.offer(cost, np.array([cost]), lambda c=cost: accepted.append(c))

    threads = [threading.Thread(target=_worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert record.cost == min(offered)
    assert accepted == sorted(accepted, reverse=True)
    assert len(set(accepted)) == len(accepted)
    assert record.snapshot()[1][0] == record.cost


def test_budget_is_split_across_workers():
    search = ParallelMinimaSearch(Net([2, 4, 1], seed=0), _xor(), SearchSettings(max_restarts=10), num_workers=3)
    assert search.restarts_per_worker == 3
    few = ParallelMinimaSearch(Net([2, 4, 1], seed=0), _xor(), SearchSettings(max_restarts=2), num_workers=8)
    assert few.num_workers == 2
    assert few.restarts_per_worker == 1

    result = find_minima(Net([2, 4, 1], -8, 8, seed=0), _xor(), QUICK, num_workers=3, seed=1)
    assert len(result.restarts) == 3 * (QUICK.max_restarts // 3)
    assert {r.worker_id for r in result.restarts} == {0, 1, 2}


def test_shared_best_is_written_into_base_net():
    net = Net([2, 4, 1], -8, 8, seed=0)
    seen = []
    result = find_minima(net, _xor(), QUICK, num_workers=4, monitor=seen.append, seed=3)
    np.testing.assert_array_equal(net.export_weights(), result.weights)
    costs = [imp.cost for imp in seen]
    assert costs == sorted(costs, reverse=True)
    assert costs[-1] == result.cost


def test_parallel_best_not_worse_than_lone_worker():
    workers, per_worker, seed = 4, 2, 21
    settings = SearchSettings(**{**QUICK.to_dict(), "max_restarts": workers * per_worker})
    merged = find_minima(Net([2, 4, 1], -8, 8, seed=5), _xor(), settings, num_workers=workers, seed=seed)

    # Worker 0 of the coordinator trains exactly this clone.
    stream = np.random.SeedSequence(seed).spawn(workers)[0]
    lone_net = Net([2, 4, 1], -8, 8, seed=5).clone(rng=np.random.default_rng(stream))
    lone_settings = SearchSettings(**{**QUICK.to_dict(), "max_restarts": per_worker})
    lone = find_minima_single(lone_net, _xor(), lone_settings)

    assert merged.cost <= lone.cost


def test_single_worker_runs_are_reproducible():
    a = find_minima(Net([2, 4, 1], -8, 8, seed=9), _xor(), QUICK, num_workers=1, seed=4)
    b = find_minima(Net([2, 4, 1], -8, 8, seed=9), _xor(), QUICK, num_workers=1, seed=4)
    assert a.cost == b.cost
    np.testing.assert_array_equal(a.weights, b.weights)


def test_abort_from_monitor_stops_every_worker():
    holder = {}

    def _monitor(_improvement):
        holder["search"].abort()

    search = ParallelMinimaSearch(
        Net([2, 4, 1], seed=0), _xor(), ENDLESS, num_workers=4, monitor=_monitor, seed=0
    )
    holder["search"] = search
    result = search.run()
    assert search.aborted
    assert 1 <= len(result.restarts) <= 4
    assert all(r.outcome is RestartOutcome.ABORTED for r in result.restarts)


def test_worker_failure_aborts_siblings():
    calls = []

    def _failing_monitor(_improvement):
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("monitor failed")

    search = ParallelMinimaSearch(
        Net([2, 4, 1], seed=0), _xor(), ENDLESS, num_workers=2, monitor=_failing_monitor, seed=0
    )
    started = time.monotonic()
    with pytest.raises(RuntimeError, match="monitor failed"):
        search.run()
    assert search.aborted
    assert time.monotonic() - started < 30.0


def test_abort_from_another_thread_returns():
    search = ParallelMinimaSearch(Net([2, 4, 1], seed=0), _xor(), ENDLESS, num_workers=2, seed=0)
    timer = threading.Timer(0.2, search.abort)
    timer.start()
    try:
        result = search.run()
    finally:
        timer.cancel()
    assert search.aborted
    assert result.cost < COST_SENTINEL
    assert all(r.outcome is RestartOutcome.ABORTED for r in result.restarts)


def test_target_cost_stops_all_workers():
    settings = SearchSettings(**{**ENDLESS.to_dict(), "target_cost": 1e9})
    result = find_minima(Net([2, 4, 1], seed=0), _xor(), settings, num_workers=3, seed=0)
    assert result.cost <= 1e9
    assert {r.outcome for r in result.restarts} <= {
        RestartOutcome.ABORTED,
        RestartOutcome.TARGET_REACHED,
    }
