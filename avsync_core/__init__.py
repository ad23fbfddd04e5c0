# avsync_core/__init__.py
"""
avsync - audio sync analysis engine.

    from avsync_core import analyze, CorrectionPlanner

    result = analyze("reference.mkv", "target.mkv")
    plan = CorrectionPlanner().plan(result.correction, result.metadata.target_duration_ms)
"""

from __future__ import annotations

from collections.abc import Callable

from .analysis.sync_analyzer import SyncAnalyzer
from .config import AppConfig
from .correction import CorrectionPlanner
from .errors import ExtractionError, ExtractionTimeout
from .extraction import MediaProvider
from .models import (
    AnalysisSettings,
    CorrectionPlan,
    CorrectionRecommendation,
    CorrectionType,
    QuickSyncResult,
    SyncAnalysisResult,
    SyncStatus,
)


def analyze(
    reference_file: str,
    target_file: str,
    settings: AnalysisSettings | None = None,
    progress_callback: Callable[[str, int, int], None] | None = None,
    tool_paths: dict[str, str] | None = None,
) -> SyncAnalysisResult:
    return SyncAnalyzer(settings, tool_paths=tool_paths).analyze(
        reference_file, target_file, progress_callback
    )


def quick_sync_check(
    reference_file: str,
    target_file: str,
    settings: AnalysisSettings | None = None,
    tool_paths: dict[str, str] | None = None,
) -> QuickSyncResult:
    return SyncAnalyzer(settings, tool_paths=tool_paths).quick_sync_check(reference_file, target_file)


__all__ = [
    "AnalysisSettings",
    "AppConfig",
    "CorrectionPlan",
    "CorrectionPlanner",
    "CorrectionRecommendation",
    "CorrectionType",
    "ExtractionError",
    "ExtractionTimeout",
    "MediaProvider",
    "QuickSyncResult",
    "SyncAnalysisResult",
    "SyncAnalyzer",
    "SyncStatus",
    "analyze",
    "quick_sync_check",
]
