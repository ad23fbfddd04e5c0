# avsync_core/analysis/delay_selection/global_correlation.py
"""Trust the whole-track correlation peak when it is confident enough."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ...models.enums import DelayMethod, SegmentSource
from ._base import DelayEstimate, GlobalEstimate, find_estimate

if TYPE_CHECKING:
    from ...models.analysis import SegmentResult
    from ...models.settings import AnalysisSettings


@dataclass(frozen=True, slots=True)
class GlobalCorrelationSelector:
    name: str = "Global Correlation"
    key: str = "global_correlation"

    def select(
        self,
        segments: Sequence[SegmentResult],
        estimates: Sequence[GlobalEstimate],
        settings: AnalysisSettings,
    ) -> DelayEstimate | None:
        corr = find_estimate(estimates, SegmentSource.CROSS_CORRELATION)
        if corr is None or corr.confidence <= settings.global_trust_confidence:
            return None
        return DelayEstimate(
            delay_ms=corr.delay_ms,
            confidence=corr.confidence,
            method=DelayMethod.GLOBAL_CORRELATION,
        )
