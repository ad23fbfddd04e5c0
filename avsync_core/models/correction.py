"""Correction plan models."""

from __future__ import annotations

from dataclasses import dataclass

from .enums import CorrectionType, OperationType


@dataclass(frozen=True, slots=True)
class CorrectionOperation:
    """One abstract edit on the target track, applied in ``order``."""

    order: int
    kind: OperationType
    description: str
    position_ms: float = 0.0  # where on the corrected timeline the edit happens
    amount_ms: float | None = None  # for delay / trim / pad
    factor: float | None = None  # for tempo


@dataclass(frozen=True, slots=True)
class VerificationPoint:
    """Where to re-measure after correction, and what to expect there."""

    timestamp_ms: float
    expected_offset_ms: float
    tolerance_ms: float


@dataclass(frozen=True, slots=True)
class CorrectionPlan:
    kind: CorrectionType
    operations: tuple[CorrectionOperation, ...]
    verification_points: tuple[VerificationPoint, ...]
    is_safe: bool
    rejected: bool = False
    safety_notes: tuple[str, ...] = ()

    @property
    def is_noop(self) -> bool:
        return not self.operations
