# avsync_core/analysis/__init__.py
"""Detectors, delay selection and the sync orchestrator."""

from .correlation import CrossCorrelationEngine
from .fingerprint import FingerprintComparator
from .peak_detection import PeakDetector
from .sync_analyzer import SyncAnalyzer

__all__ = [
    "CrossCorrelationEngine",
    "FingerprintComparator",
    "PeakDetector",
    "SyncAnalyzer",
]
