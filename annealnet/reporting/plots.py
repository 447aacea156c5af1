"""Headless-safe plotting adapters."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import List, Tuple

from ..core.types import Improvement


class PlotAdapter:
    """Collect improvement costs and optionally emit a matplotlib figure."""

    def __init__(self, run_dir: str | Path, enable_plots: bool = False):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self._history: List[Tuple[int, float]] = []
        self._lock = threading.Lock()
        if self.enable_plots:
            self.run_dir.mkdir(parents=True, exist_ok=True)

    def on_improvement(self, improvement: Improvement) -> None:
        if not self.enable_plots:
            return
        with self._lock:
            self._history.append((len(self._history), float(improvement.cost)))

    def close(self) -> None:
        if not self.enable_plots or not self._history:
            return
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt  # imported lazily for headless safety

        steps, costs = zip(*self._history)
        fig, ax = plt.subplots()
        ax.step(steps, costs, where="post")
        ax.set_yscale("log")
        ax.set_xlabel("Improvement")
        ax.set_ylabel("Best cost")
        ax.set_title("Best cost over the search")
        plot_path = self.run_dir / "cost.png"
        fig.savefig(plot_path)
        plt.close(fig)

    __call__ = on_improvement
