# avsync_core/analysis/delay_selection/weighted_average.py
"""Confidence-weighted mean of the detectors' global estimates."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ...models.enums import DelayMethod, SegmentSource
from ._base import DelayEstimate, GlobalEstimate

if TYPE_CHECKING:
    from ...models.analysis import SegmentResult
    from ...models.settings import AnalysisSettings

# (minimum confidence to contribute, weight multiplier) per detector
_CONTRIBUTION: dict[SegmentSource, tuple[float, float]] = {
    SegmentSource.CROSS_CORRELATION: (0.2, 2.0),
    SegmentSource.PEAK_MATCH: (0.3, 1.0),
    SegmentSource.FINGERPRINT: (0.3, 1.0),
}


@dataclass(frozen=True, slots=True)
class WeightedAverageSelector:
    name: str = "Weighted Average"
    key: str = "weighted_average"

    def select(
        self,
        segments: Sequence[SegmentResult],
        estimates: Sequence[GlobalEstimate],
        settings: AnalysisSettings,
    ) -> DelayEstimate | None:
        total = 0.0
        weight_sum = 0.0
        used = []
        for est in estimates:
            min_conf, multiplier = _CONTRIBUTION[est.source]
            if est.confidence <= min_conf:
                continue
            weight = est.confidence * multiplier
            total += est.delay_ms * weight
            weight_sum += weight
            used.append(est)

        if weight_sum <= 0:
            return None
        return DelayEstimate(
            delay_ms=total / weight_sum,
            confidence=sum(e.confidence for e in used) / len(used),
            method=DelayMethod.WEIGHTED_AVERAGE,
        )
