# avsync_core/analysis/drift_detection.py
"""
Drift and structural-jump diagnosis over per-window delay estimates.

All functions are pure: they take SegmentResult sequences (ordered by
start time) and return typed diagnoses.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from ..models.analysis import SegmentResult
from ..models.enums import DifferenceKind
from .types import CutPoint, DriftDiagnosis

DRIFT_MIN_SEGMENTS = 3
DRIFT_MIN_R_SQUARED = 0.7
DRIFT_MIN_RATE = 0.1  # ms per second
CUT_THRESHOLD_MS = 500.0


def detect_drift(
    segments: Sequence[SegmentResult],
    min_segments: int = DRIFT_MIN_SEGMENTS,
    min_r_squared: float = DRIFT_MIN_R_SQUARED,
    min_rate: float = DRIFT_MIN_RATE,
) -> DriftDiagnosis:
    """
    Fit delay_ms = rate * t_seconds + intercept by least squares.

    Drift is reported when the fit explains the data (R² above the limit)
    and the slope is not negligible. With no drift the rate is 0.
    """
    if len(segments) < min_segments:
        return DriftDiagnosis(has_drift=False, rate=0.0, r_squared=0.0)

    times = np.array([s.start_ms / 1000.0 for s in segments], dtype=np.float64)
    delays = np.array([s.delay_ms for s in segments], dtype=np.float64)

    if np.ptp(times) == 0:
        return DriftDiagnosis(has_drift=False, rate=0.0, r_squared=0.0)

    slope, intercept = np.polyfit(times, delays, 1)
    predicted = slope * times + intercept
    ss_res = float(np.sum((delays - predicted) ** 2))
    ss_tot = float(np.sum((delays - delays.mean()) ** 2))
    r_squared = 1.0 - ss_res / ss_tot if ss_tot > 0 else 1.0

    has_drift = r_squared > min_r_squared and abs(slope) > min_rate
    return DriftDiagnosis(
        has_drift=bool(has_drift),
        rate=float(slope) if has_drift else 0.0,
        r_squared=float(r_squared),
        intercept_ms=float(intercept),
    )


def detect_cuts(
    segments: Sequence[SegmentResult],
    threshold_ms: float = CUT_THRESHOLD_MS,
) -> tuple[CutPoint, ...]:
    """
    Flag consecutive windows whose delay jumps by more than the threshold.

    A growing delay means material was removed from the reference side
    (cut); a shrinking delay means extra material in the reference
    timeline (insertion).
    """
    cuts: list[CutPoint] = []
    for prev, curr in zip(segments, segments[1:]):
        jump = curr.delay_ms - prev.delay_ms
        if abs(jump) > threshold_ms:
            cuts.append(
                CutPoint(
                    timestamp_ms=curr.start_ms,
                    kind=DifferenceKind.CUT if jump > 0 else DifferenceKind.INSERTION,
                    duration_ms=abs(jump),
                )
            )
    return tuple(cuts)


def find_delay_jumps(
    segments: Sequence[SegmentResult],
    threshold_ms: float = CUT_THRESHOLD_MS,
    min_confidence: float = 0.0,
    min_segments: int = 3,
) -> tuple[CutPoint, ...]:
    """Jumps across pooled segments from every detector, ignoring weak ones."""
    # Fixed-position windows score low once the offset is large; dropping them
    # is what keeps a plain offset from reading as a run of cuts.
    usable = [s for s in segments if s.confidence > min_confidence]
    if len(usable) < min_segments:
        return ()
    return detect_cuts(usable, threshold_ms)
