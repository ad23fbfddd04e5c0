# avsync_core/analysis/correlation/__init__.py
"""Waveform cross-correlation: global offset search, windowed delays, drift/cut diagnosis."""

from .confidence import peak_confidence
from .engine import CrossCorrelationEngine, lag_curve, normalize

__all__ = [
    "CrossCorrelationEngine",
    "lag_curve",
    "normalize",
    "peak_confidence",
]
