"""Core graph primitives for annealnet."""

from . import activations, corrections, graph, types

__all__ = ["activations", "corrections", "graph", "types"]
