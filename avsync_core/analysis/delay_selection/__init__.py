# avsync_core/analysis/delay_selection/__init__.py
"""
Delay selection with pluggable strategies.

The global delay is chosen by walking a chain of strategies; the first one
that commits wins:

    1. global_correlation  - whole-track correlation peak, when confident
    2. segment_consensus   - 50 ms histogram consensus over pooled segments
    3. weighted_average    - confidence-weighted mean of detector estimates

Usage:
    from avsync_core.analysis.delay_selection import select_delay

    estimate = select_delay(segments, estimates, settings)
"""

from __future__ import annotations

from collections.abc import Sequence

from ...models.analysis import SegmentResult
from ...models.enums import DelayMethod
from ...models.settings import AnalysisSettings
from ._base import DelayEstimate, DelaySelector, GlobalEstimate, find_estimate
from .global_correlation import GlobalCorrelationSelector
from .histogram_consensus import HistogramConsensusSelector, bucket_of, find_consensus_delay
from .weighted_average import WeightedAverageSelector

# Registry of available selectors
SELECTORS: dict[str, type[DelaySelector]] = {
    "global_correlation": GlobalCorrelationSelector,
    "segment_consensus": HistogramConsensusSelector,
    "weighted_average": WeightedAverageSelector,
}

DEFAULT_CHAIN: tuple[str, ...] = (
    "global_correlation",
    "segment_consensus",
    "weighted_average",
)


def get_selector(key: str) -> DelaySelector:
    """
    Get a selector instance by registry key.

    Raises:
        ValueError: If key is not recognized
    """
    if key not in SELECTORS:
        available = list(SELECTORS.keys())
        raise ValueError(f"Unknown delay selection strategy: {key}. Available: {available}")
    return SELECTORS[key]()


def select_delay(
    segments: Sequence[SegmentResult],
    estimates: Sequence[GlobalEstimate],
    settings: AnalysisSettings,
    chain: Sequence[str] = DEFAULT_CHAIN,
) -> DelayEstimate:
    """
    Run the strategy chain. When every strategy defers the delay is 0 with
    zero confidence and method NONE.
    """
    for key in chain:
        estimate = get_selector(key).select(segments, estimates, settings)
        if estimate is not None:
            return estimate
    return DelayEstimate(delay_ms=0.0, confidence=0.0, method=DelayMethod.NONE)


__all__ = [
    # Main API
    "select_delay",
    "get_selector",
    "find_consensus_delay",
    "bucket_of",
    "find_estimate",
    # Registry
    "SELECTORS",
    "DEFAULT_CHAIN",
    # Types
    "DelayEstimate",
    "DelaySelector",
    "GlobalEstimate",
    # Selector classes
    "GlobalCorrelationSelector",
    "HistogramConsensusSelector",
    "WeightedAverageSelector",
]
