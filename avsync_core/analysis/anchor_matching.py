# avsync_core/analysis/anchor_matching.py
"""
Anchor alignment between reference and target tracks.

Candidate offsets come from a histogram of pairwise timestamp differences;
each candidate is scored by one-to-one anchor pairing within a tolerance,
weighted by anchor confidence.
"""

from __future__ import annotations

import bisect
from collections.abc import Sequence

import numpy as np

from ..models.analysis import AnchorPoint, SegmentResult
from ..models.enums import AnchorKind, SegmentSource
from .types import AnchorMatch, PeakMatchResult

HISTOGRAM_BIN_MS = 10.0
MAX_CANDIDATES = 25
CONSISTENCY_SCALE_MS = 500.0


def _compatible(ref: AnchorPoint, tgt: AnchorPoint, amplitude_ratio: float) -> bool:
    # Silence transitions only pair with silence transitions.
    if (ref.kind is AnchorKind.TRANSITION) != (tgt.kind is AnchorKind.TRANSITION):
        return False
    hi = max(ref.amplitude, tgt.amplitude)
    if hi <= 0:
        return True
    return min(ref.amplitude, tgt.amplitude) / hi >= amplitude_ratio


def candidate_offsets(
    ref_times: np.ndarray,
    tgt_times: np.ndarray,
    max_offset_ms: float,
    bin_ms: float = HISTOGRAM_BIN_MS,
    max_candidates: int = MAX_CANDIDATES,
) -> list[float]:
    """Most populated offset bins, strongest first (ties: smaller |offset|)."""
    diffs = []
    for t in ref_times:
        lo = np.searchsorted(tgt_times, t - max_offset_ms, side="left")
        hi = np.searchsorted(tgt_times, t + max_offset_ms, side="right")
        if hi > lo:
            diffs.append(tgt_times[lo:hi] - t)
    if not diffs:
        return []

    bins = np.round(np.concatenate(diffs) / bin_ms).astype(np.int64)
    values, counts = np.unique(bins, return_counts=True)
    order = np.lexsort((np.abs(values), -counts))
    return [float(values[i] * bin_ms) for i in order[:max_candidates]]


def _pair_at_offset(
    ref_anchors: Sequence[AnchorPoint],
    tgt_anchors: Sequence[AnchorPoint],
    tgt_times: list[float],
    offset_ms: float,
    tolerance_ms: float,
    amplitude_ratio: float,
) -> tuple[list[AnchorMatch], float]:
    used: set[int] = set()
    matches: list[AnchorMatch] = []
    score = 0.0

    for ref in ref_anchors:
        expected = ref.timestamp_ms + offset_ms
        j = bisect.bisect_left(tgt_times, expected - tolerance_ms)
        best_j = None
        best_err = None
        while j < len(tgt_times) and tgt_times[j] <= expected + tolerance_ms:
            err = abs(tgt_times[j] - expected)
            if j not in used and _compatible(ref, tgt_anchors[j], amplitude_ratio):
                if best_err is None or err < best_err:
                    best_j, best_err = j, err
            j += 1
        if best_j is None:
            continue

        used.add(best_j)
        tgt = tgt_anchors[best_j]
        conf = (ref.confidence + tgt.confidence) / 2.0
        matches.append(
            AnchorMatch(
                reference=ref,
                target=tgt,
                offset_ms=tgt.timestamp_ms - ref.timestamp_ms,
                confidence=conf,
            )
        )
        score += conf

    return matches, score


def _bucket_segments(
    matches: Sequence[AnchorMatch],
    window_ms: float,
    min_matches: int,
) -> tuple[SegmentResult, ...]:
    buckets: dict[int, list[AnchorMatch]] = {}
    for m in matches:
        buckets.setdefault(int(m.reference.timestamp_ms // window_ms), []).append(m)

    segments = []
    for key in sorted(buckets):
        group = buckets[key]
        if len(group) < min_matches:
            continue
        segments.append(
            SegmentResult(
                start_ms=key * window_ms,
                end_ms=(key + 1) * window_ms,
                delay_ms=float(np.mean([m.offset_ms for m in group])),
                confidence=min(1.0, len(group) / 10.0),
                source=SegmentSource.PEAK_MATCH,
            )
        )
    return tuple(segments)


def match_confidence(
    match_count: int,
    ref_count: int,
    tgt_count: int,
    offset_std_ms: float,
    mean_pair_confidence: float,
    min_matches: int,
) -> float:
    """Scales with match density, offset consistency and anchor quality."""
    if match_count == 0:
        return 0.0
    if match_count < min_matches:
        return match_count / min_matches * 0.5
    match_ratio = match_count / max(1, min(ref_count, tgt_count))
    consistency = max(0.0, 1.0 - offset_std_ms / CONSISTENCY_SCALE_MS)
    score = 0.3 * match_ratio + 0.4 * consistency + 0.3 * mean_pair_confidence
    return float(min(1.0, max(0.0, score)))


def match_anchors(
    ref_anchors: Sequence[AnchorPoint],
    tgt_anchors: Sequence[AnchorPoint],
    max_offset_ms: float = 30000.0,
    tolerance_ms: float = 50.0,
    amplitude_ratio: float = 0.5,
    min_matches: int = 5,
    segment_window_ms: float = 10000.0,
    min_segment_matches: int = 2,
) -> PeakMatchResult:
    """Estimate the target offset from two timestamp-sorted anchor lists."""
    empty = PeakMatchResult(
        matches=(),
        average_offset_ms=0.0,
        offset_std_ms=0.0,
        confidence=0.0,
        segments=(),
        reference_anchor_count=len(ref_anchors),
        target_anchor_count=len(tgt_anchors),
    )
    if not ref_anchors or not tgt_anchors:
        return empty

    ref_times = np.array([a.timestamp_ms for a in ref_anchors], dtype=np.float64)
    tgt_list = [a.timestamp_ms for a in tgt_anchors]
    tgt_times = np.array(tgt_list, dtype=np.float64)

    best: tuple[float, int, float] | None = None  # (score, count, offset)
    best_matches: list[AnchorMatch] = []
    for offset in candidate_offsets(ref_times, tgt_times, max_offset_ms):
        matches, score = _pair_at_offset(
            ref_anchors, tgt_anchors, tgt_list, offset, tolerance_ms, amplitude_ratio
        )
        key = (score, len(matches), -abs(offset))
        if best is None or key > (best[0], best[1], -abs(best[2])):
            best = (score, len(matches), offset)
            best_matches = matches

    if not best_matches:
        return empty

    # Re-pair around the mean offset of the winning candidate.
    refined_offset = float(np.mean([m.offset_ms for m in best_matches]))
    refined, refined_score = _pair_at_offset(
        ref_anchors, tgt_anchors, tgt_list, refined_offset, tolerance_ms, amplitude_ratio
    )
    if refined_score >= best[0] and refined:
        best_matches = refined

    offsets = np.array([m.offset_ms for m in best_matches], dtype=np.float64)
    mean_pair_conf = float(np.mean([m.confidence for m in best_matches]))
    std = float(offsets.std())

    return PeakMatchResult(
        matches=tuple(best_matches),
        average_offset_ms=float(offsets.mean()),
        offset_std_ms=std,
        confidence=match_confidence(
            len(best_matches),
            len(ref_anchors),
            len(tgt_anchors),
            std,
            mean_pair_conf,
            min_matches,
        ),
        segments=_bucket_segments(best_matches, segment_window_ms, min_segment_matches),
        reference_anchor_count=len(ref_anchors),
        target_anchor_count=len(tgt_anchors),
    )
