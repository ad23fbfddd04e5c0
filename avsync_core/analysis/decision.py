# avsync_core/analysis/decision.py
"""
Sync status classification and correction recommendation.

Pure functions over fused analysis values; the orchestrator supplies the
inputs and assembles the final result.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..models.analysis import (
    CorrectionRecommendation,
    SegmentCorrection,
    SegmentResult,
    StructuralDifference,
)
from ..models.enums import CorrectionType, DifferenceKind, SyncStatus
from ..models.settings import AnalysisSettings
from .types import CutPoint

SAFE_DELAY_CONFIDENCE = 0.7
MAX_SAFE_DELAY_MS = 5000.0
MAX_SAFE_TEMPO_DEVIATION = 0.02
REPAIR_SEGMENT_CONFIDENCE = 0.5

LOW_CONFIDENCE_WARNING = "Sync analysis confidence too low for automatic correction"
NO_REPAIR_SEGMENTS_WARNING = "Structural differences detected but no reliable segment corrections found"
STRUCTURAL_WARNING = "Structural differences (cuts/insertions) detected"
TEMPO_WARNING = "Large tempo adjustment required - may affect quality"
MODERATE_CONFIDENCE_WARNING = "Moderate confidence - verify result"


def classify_offset(delay_ms: float) -> str:
    """Severity label for logging: minor (<50 ms), moderate (<200 ms) or severe."""
    magnitude = abs(delay_ms)
    if magnitude < 50:
        return "minor"
    if magnitude < 200:
        return "moderate"
    return "severe"


def classify_status(
    confidence: float,
    has_structural: bool,
    has_drift: bool,
    delay_ms: float,
    settings: AnalysisSettings,
) -> SyncStatus:
    """First matching rule wins: unsyncable, cuts, drift, in_sync, offset."""
    if confidence < settings.unsyncable_confidence:
        return SyncStatus.UNSYNCABLE
    if has_structural:
        return SyncStatus.CUTS
    if has_drift:
        return SyncStatus.DRIFT
    if abs(delay_ms) < settings.in_sync_threshold_ms:
        return SyncStatus.IN_SYNC
    return SyncStatus.OFFSET


def structural_differences_from_cuts(cuts: Sequence[CutPoint]) -> tuple[StructuralDifference, ...]:
    """
    Map delay jumps onto both timelines.

    A cut at t of length d means target content [t, t+d) has no reference
    counterpart; an insertion means reference content [t, t+d) is missing
    from the target.
    """
    diffs = []
    for cut in cuts:
        t, d = cut.timestamp_ms, cut.duration_ms
        is_cut = cut.kind is DifferenceKind.CUT
        diffs.append(
            StructuralDifference(
                reference_start_ms=t,
                reference_end_ms=t if is_cut else t + d,
                target_start_ms=t,
                target_end_ms=t + d if is_cut else t,
                kind=cut.kind,
                duration_ms=d,
            )
        )
    return tuple(diffs)


def repair_segments(segments: Sequence[SegmentResult]) -> tuple[SegmentCorrection, ...]:
    """Segment corrections from the reliable pooled segments, chronological."""
    reliable = sorted(
        (s for s in segments if s.confidence > REPAIR_SEGMENT_CONFIDENCE),
        key=lambda s: s.start_ms,
    )
    return tuple(SegmentCorrection(s.start_ms, s.end_ms, s.delay_ms) for s in reliable)


def recommend_correction(
    status: SyncStatus,
    delay_ms: float,
    confidence: float,
    drift_rate: float,
    segments: Sequence[SegmentResult],
    cut_count: int,
) -> CorrectionRecommendation:
    if status is SyncStatus.UNSYNCABLE:
        return CorrectionRecommendation(
            kind=CorrectionType.MANUAL,
            is_safe=False,
            warnings=(LOW_CONFIDENCE_WARNING,),
        )

    if status is SyncStatus.CUTS:
        corrections = repair_segments(segments)
        if not corrections:
            return CorrectionRecommendation(
                kind=CorrectionType.MANUAL,
                is_safe=False,
                warnings=(NO_REPAIR_SEGMENTS_WARNING,),
            )
        warnings = [STRUCTURAL_WARNING]
        if cut_count:
            warnings.append(f"{cut_count} cut points found")
        return CorrectionRecommendation(
            kind=CorrectionType.SEGMENT_REPAIR,
            delay_ms=delay_ms,
            segment_corrections=corrections,
            is_safe=False,
            warnings=tuple(warnings),
        )

    if status is SyncStatus.DRIFT:
        tempo = 1.0 + drift_rate / 1000.0
        safe = abs(tempo - 1.0) < MAX_SAFE_TEMPO_DEVIATION
        return CorrectionRecommendation(
            kind=CorrectionType.STRETCH,
            delay_ms=delay_ms,
            tempo_factor=tempo,
            is_safe=safe,
            warnings=() if safe else (TEMPO_WARNING,),
        )

    if status is SyncStatus.IN_SYNC:
        return CorrectionRecommendation(kind=CorrectionType.NONE, delay_ms=0.0)

    warnings = []
    if confidence <= SAFE_DELAY_CONFIDENCE:
        warnings.append(MODERATE_CONFIDENCE_WARNING)
    if abs(delay_ms) >= MAX_SAFE_DELAY_MS:
        warnings.append(
            f"Offset of {delay_ms:+.0f} ms exceeds the {MAX_SAFE_DELAY_MS:.0f} ms automatic correction limit"
        )
    return CorrectionRecommendation(
        kind=CorrectionType.DELAY,
        delay_ms=delay_ms,
        is_safe=not warnings,
        warnings=tuple(warnings),
    )
