# avsync_core/correction/__init__.py
"""Correction planning: recommendation -> ordered abstract edits."""

from .planner import CorrectionPlanner, merge_segment_corrections
from .tempo import split_tempo_chain

__all__ = [
    "CorrectionPlanner",
    "merge_segment_corrections",
    "split_tempo_chain",
]
