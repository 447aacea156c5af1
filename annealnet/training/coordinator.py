"""Parallel multi-restart search over independent net clones."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Sequence, Tuple

import numpy as np

from ..core.graph import Net
from ..core.types import COST_SENTINEL, Array, Improvement, SearchResult, TrainingSample
from ..utils.logger import get_logger
from .search import SearchSettings, find_minima_single

logger = get_logger(__name__)

MonitorCallback = Callable[[Improvement], None]


class BestRecord:
    """Lowest cost seen so far and its flattened weights, guarded by a lock."""

    def __init__(self, weights: Array | None = None) -> None:
        self.cost = COST_SENTINEL
        self.weights: Array = np.asarray(weights if weights is not None else [], dtype=np.float64).copy()
        self.lock = threading.Lock()

    def reset(self, weights: Array) -> None:
        with self.lock:
            self.cost = COST_SENTINEL
            self.weights = np.asarray(weights, dtype=np.float64).copy()

    def offer(
        self,
        cost: float,
        weights: Array,
        on_accept: Callable[[], None] | None = None,
    ) -> bool:
        """Replace the record if ``cost`` is strictly lower.

        The comparison is made once without the lock and again under it, so
        the recorded cost never increases. ``on_accept`` runs while the lock is
        still held and must be quick.
        """

        if not cost < self.cost:
            return False
        with self.lock:
            if not cost < self.cost:
                return False
            self.cost = cost
            self.weights = np.asarray(weights, dtype=np.float64).copy()
            if on_accept is not None:
                on_accept()
            return True

    def snapshot(self) -> Tuple[float, Array]:
        with self.lock:
            return self.cost, self.weights.copy()


class ParallelMinimaSearch:
    """Run :func:`find_minima_single` concurrently on clones of ``net``.

    The restart budget is split evenly across workers (any remainder is
    dropped). Every worker trains its own deep copy, so the only shared state
    is the :class:`BestRecord` and the abort event. Whenever the shared best
    improves, its weights are written into ``net`` and ``monitor`` is called
    under the record's lock. If a worker raises, the others are aborted and
    the exception is re-raised from :meth:`run`.
    """

    def __init__(
        self,
        net: Net,
        samples: Sequence[TrainingSample],
        settings: SearchSettings,
        *,
        num_workers: int = 8,
        monitor: MonitorCallback | None = None,
        seed: int | None = None,
    ) -> None:
        if num_workers < 1:
            raise ValueError(f"num_workers must be positive, got {num_workers}")
        self.net = net
        self.samples = list(samples)
        self.settings = settings.validate()
        self.num_workers = min(num_workers, settings.max_restarts)
        self.restarts_per_worker = settings.max_restarts // self.num_workers
        self.monitor = monitor
        self.seed = seed
        self.record = BestRecord(net.export_weights())
        self._abort = threading.Event()

    @property
    def best(self) -> Tuple[float, Array]:
        return self.record.snapshot()

    @property
    def aborted(self) -> bool:
        return self._abort.is_set()

    def abort(self) -> None:
        """Ask every worker to stop after its current epoch."""

        self._abort.set()

    def run(self) -> SearchResult:
        self._abort.clear()
        self.record.reset(self.net.export_weights())

        streams = np.random.SeedSequence(self.seed).spawn(self.num_workers)
        clones = [self.net.clone(rng=np.random.default_rng(stream)) for stream in streams]
        # Worker 0 starts from the net's own weights, the others from fresh draws.
        for clone in clones[1:]:
            clone.randomize_weights()
        worker_settings = SearchSettings(
            **{**self.settings.to_dict(), "max_restarts": self.restarts_per_worker}
        )

        logger.info(
            "starting search: %d workers x %d restarts, %d samples",
            self.num_workers,
            self.restarts_per_worker,
            len(self.samples),
        )
        with ThreadPoolExecutor(max_workers=self.num_workers) as executor:
            futures = [
                executor.submit(self._run_worker, worker_id, clone, worker_settings)
                for worker_id, clone in enumerate(clones)
            ]
            try:
                for future in as_completed(futures):
                    future.result()
            except BaseException:
                # Stop the remaining workers before the pool waits on them.
                self._abort.set()
                raise
        results = [future.result() for future in futures]

        cost, weights = self.record.snapshot()
        restarts = [record for result in results for record in result.restarts]
        logger.info("search finished: best cost %.6g over %d restarts", cost, len(restarts))
        return SearchResult(cost=cost, weights=weights, restarts=restarts)

    # ------------------------------------------------------------------
    # Internal helpers

    def _run_worker(self, worker_id: int, clone: Net, settings: SearchSettings) -> SearchResult:
        return find_minima_single(
            clone,
            self.samples,
            settings,
            abort=self._abort,
            on_improvement=self._on_improvement,
            worker_id=worker_id,
        )

    def _on_improvement(self, candidate: Improvement) -> None:
        def _accept() -> None:
            self.net.import_weights(candidate.weights)
            logger.info(
                "worker %d improved shared best to %.6g (restart %d, epoch %d)",
                candidate.worker_id,
                candidate.cost,
                candidate.restart,
                candidate.epoch,
            )
            if self.monitor is not None:
                self.monitor(candidate)

        self.record.offer(candidate.cost, candidate.weights, _accept)
        target = self.settings.target_cost
        if target is not None and candidate.cost <= target:
            self._abort.set()


def find_minima(
    net: Net,
    samples: Sequence[TrainingSample],
    settings: SearchSettings,
    *,
    num_workers: int = 8,
    monitor: MonitorCallback | None = None,
    seed: int | None = None,
) -> SearchResult:
    """Convenience wrapper around :class:`ParallelMinimaSearch`."""

    search = ParallelMinimaSearch(
        net, samples, settings, num_workers=num_workers, monitor=monitor, seed=seed
    )
    return search.run()


__all__ = ["BestRecord", "MonitorCallback", "ParallelMinimaSearch", "find_minima"]
