# avsync_core/analysis/delay_selection/histogram_consensus.py
"""
Segment consensus: cluster pooled segment delays into 50 ms buckets.

Buckets are scored by ``count * mean confidence``. Every bucket within 70 %
of the best score competes, and the one closest to zero delay wins, so a
well-supported small offset beats an equally supported large one. The
winner must hold at least max(5, 10 % of the usable segments).
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ...models.enums import DelayMethod
from ._base import DelayEstimate, GlobalEstimate

if TYPE_CHECKING:
    from ...models.analysis import SegmentResult
    from ...models.settings import AnalysisSettings

BUCKET_MS = 50.0
COMPETITION_RATIO = 0.7
MIN_SUPPORT = 5
MIN_SUPPORT_FRACTION = 0.1


def bucket_of(delay_ms: float, bucket_ms: float = BUCKET_MS) -> float:
    """Nearest bucket centre, halves rounded up."""
    return math.floor(delay_ms / bucket_ms + 0.5) * bucket_ms


def find_consensus_delay(
    segments: Sequence[SegmentResult],
    min_confidence: float = 0.3,
    bucket_ms: float = BUCKET_MS,
) -> DelayEstimate | None:
    usable = [s for s in segments if s.confidence > min_confidence]
    if not usable:
        return None

    buckets: dict[float, list[SegmentResult]] = {}
    for seg in usable:
        buckets.setdefault(bucket_of(seg.delay_ms, bucket_ms), []).append(seg)

    scores = {
        b: len(group) * (sum(s.confidence for s in group) / len(group))
        for b, group in buckets.items()
    }
    top = max(scores.values())
    competing = [b for b, score in scores.items() if score >= COMPETITION_RATIO * top]
    winner = min(competing, key=lambda b: (abs(b), -scores[b], b))
    group = buckets[winner]

    required = max(MIN_SUPPORT, math.floor(MIN_SUPPORT_FRACTION * len(usable)))
    if len(group) < required:
        return None

    weight = sum(s.confidence for s in group)
    delay = sum(s.delay_ms * s.confidence for s in group) / weight
    avg_conf = weight / len(group)
    return DelayEstimate(
        delay_ms=delay,
        confidence=(len(group) / len(usable)) * avg_conf,
        method=DelayMethod.SEGMENT_CONSENSUS,
        segment_count=len(group),
    )


@dataclass(frozen=True, slots=True)
class HistogramConsensusSelector:
    name: str = "Segment Consensus"
    key: str = "segment_consensus"

    def select(
        self,
        segments: Sequence[SegmentResult],
        estimates: Sequence[GlobalEstimate],
        settings: AnalysisSettings,
    ) -> DelayEstimate | None:
        return find_consensus_delay(segments, settings.consensus_min_confidence)
