"""Training loops: cost, restart search, parallel coordination and pipelines."""

from .coordinator import BestRecord, ParallelMinimaSearch, find_minima
from .losses import cost, loss, run_epoch
from .search import SearchSettings, find_minima_single

__all__ = [
    "BestRecord",
    "ParallelMinimaSearch",
    "SearchSettings",
    "cost",
    "find_minima",
    "find_minima_single",
    "loss",
    "run_epoch",
]
