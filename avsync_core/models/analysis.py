"""Analysis result models.

Everything here is immutable: results are built once by the orchestrator and
can be shared freely between threads or compared by value.

Delays follow one sign convention everywhere: a positive ``delay_ms`` means
the target lags the reference, so the target has to be advanced by that
amount to line up.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from .enums import (
    AnchorKind,
    CorrectionType,
    DelayMethod,
    DifferenceKind,
    EventKind,
    SegmentSource,
    SyncStatus,
)


def clamp_confidence(value: float) -> float:
    """Clamp a confidence score into [0, 1] (NaN becomes 0)."""
    if value != value:
        return 0.0
    return max(0.0, min(1.0, float(value)))


@dataclass(frozen=True, slots=True)
class AnchorPoint:
    """A distinctive instant in one audio track."""

    timestamp_ms: float
    kind: AnchorKind
    amplitude: float  # 0..1, relative to the track's loudest frame
    confidence: float
    duration_ms: float | None = None
    description: str = ""


@dataclass(frozen=True, slots=True)
class SegmentResult:
    """Local delay estimate over one time window, tagged by detector."""

    start_ms: float
    end_ms: float
    delay_ms: float
    confidence: float
    source: SegmentSource

    def __post_init__(self):
        object.__setattr__(self, "confidence", clamp_confidence(self.confidence))


@dataclass(frozen=True, slots=True)
class StructuralDifference:
    reference_start_ms: float
    reference_end_ms: float
    target_start_ms: float
    target_end_ms: float
    kind: DifferenceKind
    duration_ms: float


@dataclass(frozen=True, slots=True)
class SyncEvent:
    timestamp_ms: float
    kind: EventKind
    description: str
    confidence: float

    def __post_init__(self):
        object.__setattr__(self, "confidence", clamp_confidence(self.confidence))


@dataclass(frozen=True, slots=True)
class SegmentCorrection:
    start_ms: float
    end_ms: float
    delay_ms: float


@dataclass(frozen=True, slots=True)
class CorrectionRecommendation:
    """What should be done to the target, with a safety verdict."""

    kind: CorrectionType
    delay_ms: float | None = None
    tempo_factor: float | None = None
    segment_corrections: tuple[SegmentCorrection, ...] = ()
    is_safe: bool = True
    warnings: tuple[str, ...] = ()

    def __post_init__(self):
        if self.kind in (CorrectionType.SEGMENT_REPAIR, CorrectionType.MANUAL) and self.is_safe:
            raise ValueError(f"{self.kind.value} corrections are never safe")
        if not self.is_safe and not self.warnings:
            raise ValueError("unsafe recommendations must carry at least one warning")

    @property
    def target_shift_ms(self) -> float | None:
        """Shift to apply to the target timeline (inverse of the delay)."""
        if self.delay_ms is None:
            return None
        return -self.delay_ms


@dataclass(frozen=True, slots=True)
class AnalysisMetadata:
    reference_file: str
    target_file: str
    reference_duration_ms: float
    target_duration_ms: float
    methods_used: tuple[str, ...]
    analysis_time_ms: float


@dataclass(frozen=True, slots=True)
class SyncAnalysisResult:
    status: SyncStatus
    global_delay_ms: int
    confidence: float
    is_same_source: bool
    similarity: float
    has_drift: bool
    drift_rate: float  # ms of extra delay per second of reference
    has_structural_differences: bool
    structural_differences: tuple[StructuralDifference, ...]
    segments: tuple[SegmentResult, ...]
    events: tuple[SyncEvent, ...]
    correction: CorrectionRecommendation
    delay_method: DelayMethod = DelayMethod.NONE
    # Diagnostics and timings vary between runs or are bulky; keep them out of equality.
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)
    metadata: AnalysisMetadata | None = field(default=None, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "confidence", clamp_confidence(self.confidence))
        object.__setattr__(self, "similarity", clamp_confidence(self.similarity))
        object.__setattr__(self, "raw", MappingProxyType(dict(self.raw)))
        if self.status is SyncStatus.UNSYNCABLE and (
            self.correction.kind is not CorrectionType.MANUAL or self.correction.is_safe
        ):
            raise ValueError("unsyncable results require an unsafe manual correction")

    @property
    def needs_correction(self) -> bool:
        return self.correction.kind is not CorrectionType.NONE


@dataclass(frozen=True, slots=True)
class QuickSyncResult:
    is_in_sync: bool
    offset_ms: float
    confidence: float
    needs_detailed_analysis: bool
