"""Single-worker multi-restart search with an annealed learn rate."""

from __future__ import annotations

import math
import threading
from dataclasses import asdict, dataclass
from typing import Callable, List, Mapping, Optional, Sequence

from ..core.graph import Net
from ..core.types import (
    COST_SENTINEL,
    Improvement,
    RestartOutcome,
    RestartRecord,
    SearchResult,
    TrainingSample,
)
from ..utils.logger import get_logger
from .losses import run_epoch

logger = get_logger(__name__)

ImprovementCallback = Callable[[Improvement], None]


@dataclass(frozen=True)
class SearchSettings:
    """Knobs of the restart/anneal search.

    Attributes
    ----------
    initial_learn_rate:
        Learn rate at the start of every restart.
    cooldown_rate:
        Multiplier applied to the learn rate after every epoch.
    max_restarts:
        Number of local-minimum searches to run (split across workers by the
        parallel coordinator).
    max_epochs_per_restart:
        Hard cap on epochs within one restart.
    error_bar:
        Dead-zone tolerance used when computing the cost.
    min_cost_change_rate:
        A restart ends once ``max(prev/cost, cost/prev)`` drops to or below
        this value. ``0`` disables the check.
    min_learn_rate:
        A restart ends once the learn rate drops below this value.
    target_cost:
        Optional cost at or below which the whole search stops.
    """

    initial_learn_rate: float = 10.0
    cooldown_rate: float = 0.998
    max_restarts: int = 64
    max_epochs_per_restart: int = 200
    error_bar: float = 0.1
    min_cost_change_rate: float = 0.0
    min_learn_rate: float = 0.1
    target_cost: Optional[float] = None

    def validate(self) -> "SearchSettings":
        if self.error_bar < 0:
            raise ValueError("error_bar must be >= 0 for a search; negative values disable the cost")
        if not 0 < self.cooldown_rate <= 1:
            raise ValueError(f"cooldown_rate must be in (0, 1], got {self.cooldown_rate}")
        if self.max_restarts < 1:
            raise ValueError(f"max_restarts must be positive, got {self.max_restarts}")
        if self.max_epochs_per_restart < 1:
            raise ValueError(f"max_epochs_per_restart must be positive, got {self.max_epochs_per_restart}")
        if self.min_cost_change_rate < 0:
            raise ValueError("min_cost_change_rate must be >= 0")
        return self

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> "SearchSettings":
        """Build settings from a ``train`` config section."""

        target = config.get("target_cost")
        return cls(
            initial_learn_rate=float(config.get("learn_rate", cls.initial_learn_rate)),
            cooldown_rate=float(config.get("cooldown_rate", cls.cooldown_rate)),
            max_restarts=int(config.get("max_restarts", cls.max_restarts)),
            max_epochs_per_restart=int(config.get("max_epochs", cls.max_epochs_per_restart)),
            error_bar=float(config.get("error_bar", cls.error_bar)),
            min_cost_change_rate=float(config.get("min_cost_change_rate", cls.min_cost_change_rate)),
            min_learn_rate=float(config.get("min_learn_rate", cls.min_learn_rate)),
            target_cost=float(target) if target is not None else None,
        ).validate()

    def to_dict(self) -> dict:
        return asdict(self)


def cost_change_ratio(previous: float, current: float) -> float:
    """Return ``max(prev/cur, cur/prev)``.

    Two zero costs count as no change (ratio 1); a single zero cost counts as
    an unbounded change.
    """

    if previous == 0 and current == 0:
        return 1.0
    if previous == 0 or current == 0:
        return math.inf
    return max(previous / current, current / previous)


def find_minima_single(
    net: Net,
    samples: Sequence[TrainingSample],
    settings: SearchSettings,
    *,
    abort: threading.Event | None = None,
    on_improvement: ImprovementCallback | None = None,
    worker_id: int = 0,
) -> SearchResult:
    """Search for low-cost weights of ``net`` using restarts and annealing.

    Each restart trains epochs under a cooling learn rate until the cost
    stagnates, the learn rate is exhausted or the epoch cap is hit, then
    re-randomises the weights. The lowest-cost weights seen at any epoch are
    kept and reported through ``on_improvement``. ``abort`` is checked before
    each restart and after each epoch; when it is set the search returns
    straight away. ``net`` is trained in place.
    """

    settings.validate()
    best_cost = COST_SENTINEL
    best_weights = net.export_weights()
    records: List[RestartRecord] = []

    for restart in range(settings.max_restarts):
        if abort is not None and abort.is_set():
            break

        learn_rate = settings.initial_learn_rate
        previous_cost = COST_SENTINEL
        restart_best = COST_SENTINEL
        outcome = RestartOutcome.EPOCHS_EXHAUSTED
        epochs = 0

        for epoch in range(settings.max_epochs_per_restart):
            epoch_cost = run_epoch(net, samples, learn_rate, settings.error_bar)
            epochs = epoch + 1
            learn_rate *= settings.cooldown_rate
            restart_best = min(restart_best, epoch_cost)

            if epoch_cost < best_cost:
                best_cost = epoch_cost
                best_weights = net.export_weights()
                if on_improvement is not None:
                    on_improvement(
                        Improvement(
                            cost=best_cost,
                            weights=best_weights.copy(),
                            worker_id=worker_id,
                            restart=restart,
                            epoch=epoch,
                        )
                    )

            if epoch != 0 and cost_change_ratio(previous_cost, epoch_cost) <= settings.min_cost_change_rate:
                outcome = RestartOutcome.STAGNANT
                break
            if learn_rate < settings.min_learn_rate:
                outcome = RestartOutcome.RATE_EXHAUSTED
                break
            if abort is not None and abort.is_set():
                outcome = RestartOutcome.ABORTED
                break
            if settings.target_cost is not None and best_cost <= settings.target_cost:
                outcome = RestartOutcome.TARGET_REACHED
                break
            previous_cost = epoch_cost

        records.append(
            RestartRecord(
                worker_id=worker_id,
                index=restart,
                epochs=epochs,
                learn_rate=learn_rate,
                best_cost=restart_best,
                outcome=outcome,
            )
        )
        logger.debug(
            "worker %d: restart %d ended (%s) after %d epochs, learn rate %.4g, best %.6g",
            worker_id,
            restart,
            outcome.value,
            epochs,
            learn_rate,
            best_cost,
        )
        if outcome in (RestartOutcome.ABORTED, RestartOutcome.TARGET_REACHED):
            break
        net.randomize_weights()

    return SearchResult(cost=best_cost, weights=best_weights, restarts=records)


__all__ = [
    "ImprovementCallback",
    "SearchSettings",
    "cost_change_ratio",
    "find_minima_single",
]
