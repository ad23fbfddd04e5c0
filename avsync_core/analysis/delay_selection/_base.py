# avsync_core/analysis/delay_selection/_base.py
"""
Base protocol for delay selection strategies.

Each strategy looks at the pooled segment results and the detectors' global
estimates and either commits to a delay or defers (returns None) to the next
strategy in the chain.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from ...models.enums import DelayMethod, SegmentSource

if TYPE_CHECKING:
    from ...models.analysis import SegmentResult
    from ...models.settings import AnalysisSettings


@dataclass(frozen=True, slots=True)
class GlobalEstimate:
    """Whole-track delay reported by one detector."""

    source: SegmentSource
    delay_ms: float
    confidence: float


@dataclass(frozen=True, slots=True)
class DelayEstimate:
    delay_ms: float
    confidence: float
    method: DelayMethod
    segment_count: int = 0  # segments supporting a consensus result


class DelaySelector(Protocol):
    """Protocol that all delay selection strategies must implement."""

    name: str  # Human-readable name (e.g., "Segment Consensus")
    key: str  # Registry key (e.g., "segment_consensus")

    def select(
        self,
        segments: Sequence[SegmentResult],
        estimates: Sequence[GlobalEstimate],
        settings: AnalysisSettings,
    ) -> DelayEstimate | None:
        """
        Pick a delay or defer.

        Args:
            segments: Pooled segment results, chronological
            estimates: Global estimates from the detectors that succeeded
            settings: Thresholds

        Returns:
            DelayEstimate, or None to fall through to the next strategy
        """
        ...


def find_estimate(
    estimates: Sequence[GlobalEstimate], source: SegmentSource
) -> GlobalEstimate | None:
    for est in estimates:
        if est.source is source:
            return est
    return None
