# avsync_core/analysis/types.py
"""
Typed result containers for the individual detectors.

These are intermediate results; the orchestrator fuses them into a
SyncAnalysisResult.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..models.analysis import AnchorPoint, SegmentResult
from ..models.enums import DifferenceKind

# ─── Cross-Correlation ───────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class CutPoint:
    """A >500 ms delay jump between consecutive correlation windows."""

    timestamp_ms: float  # reference time of the later window
    kind: DifferenceKind  # CUT (delay grew) or INSERTION (delay shrank)
    duration_ms: float


@dataclass(frozen=True, slots=True)
class DriftDiagnosis:
    has_drift: bool
    rate: float  # ms/s, 0 when no drift
    r_squared: float
    intercept_ms: float = 0.0


@dataclass(frozen=True, slots=True)
class CorrelationEstimate:
    """Single correlation search over one pair of signals."""

    offset_samples: int
    delay_ms: float
    peak: float  # mean product at the refined offset
    confidence: float


@dataclass(frozen=True, slots=True)
class CrossCorrelationResult:
    global_delay_ms: float
    global_confidence: float
    segments: tuple[SegmentResult, ...]
    has_drift: bool
    drift_rate: float
    has_cuts: bool
    cut_points: tuple[CutPoint, ...]
    # (offset_ms, correlation) pairs at the coarse stride
    correlation_graph: tuple[tuple[float, float], ...] = field(default=(), repr=False, compare=False)


# ─── Peak / Anchor Matching ──────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class PeakDetectionResult:
    anchors: tuple[AnchorPoint, ...]
    duration_ms: float
    average_amplitude: float
    peak_amplitude: float
    transients_per_minute: float


@dataclass(frozen=True, slots=True)
class AnchorMatch:
    reference: AnchorPoint
    target: AnchorPoint
    offset_ms: float  # target.timestamp - reference.timestamp
    confidence: float


@dataclass(frozen=True, slots=True)
class PeakMatchResult:
    matches: tuple[AnchorMatch, ...]
    average_offset_ms: float
    offset_std_ms: float
    confidence: float
    segments: tuple[SegmentResult, ...]
    reference_anchor_count: int = 0
    target_anchor_count: int = 0


# ─── Fingerprint Comparison ──────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class FingerprintMatch:
    reference_offset_ms: float
    target_offset_ms: float
    delay_ms: float
    confidence: float  # fraction of aligned chunks within the bit-error limit
    matching_chunks: int


@dataclass(frozen=True, slots=True)
class FingerprintComparison:
    similarity: float
    is_same_source: bool
    matches: tuple[FingerprintMatch, ...]
    best_match: FingerprintMatch | None
    segments: tuple[SegmentResult, ...]
    has_structural_differences: bool
