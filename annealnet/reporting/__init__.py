"""Reporting utilities for annealnet."""

from .artifacts import load_weights, save_weights, write_manifest, write_predictions
from .metrics import CsvSink, JsonlSink
from .plots import PlotAdapter
from .summary import write_summary

__all__ = [
    "CsvSink",
    "JsonlSink",
    "PlotAdapter",
    "load_weights",
    "save_weights",
    "write_manifest",
    "write_predictions",
    "write_summary",
]
