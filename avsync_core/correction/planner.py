# avsync_core/correction/planner.py
"""
Correction planner.

Turns a CorrectionRecommendation into an ordered list of abstract edits on
the target track plus the checkpoints at which the corrected result should
be re-measured. Rendering the edits into a concrete filter graph is left to
the caller.

A positive delay means the target lags, so the planner trims that much
from the target start; a negative delay is fixed by inserting silence.
"""

from __future__ import annotations

import logging

from ..models.analysis import CorrectionRecommendation, SegmentCorrection
from ..models.correction import CorrectionOperation, CorrectionPlan, VerificationPoint
from ..models.enums import CorrectionType, OperationType
from .tempo import MAX_STAGE, MIN_STAGE, split_tempo_chain

logger = logging.getLogger(__name__)

MERGE_TOLERANCE_MS = 50.0
CHECK_AT_MS = 60000.0
DELAY_TOLERANCE_MS = 20.0
STRETCH_TOLERANCE_MS = 50.0
REPAIR_TOLERANCE_MS = 50.0
MANUAL_NOTE = "Sync correction rejected - manual review required"


def _offset_operation(delay_ms: float, order: int, position_ms: float = 0.0) -> CorrectionOperation | None:
    if not delay_ms:
        return None
    if delay_ms > 0:
        return CorrectionOperation(
            order=order,
            kind=OperationType.TRIM,
            description=f"Trim {delay_ms:.0f} ms from the target start",
            position_ms=position_ms,
            amount_ms=delay_ms,
        )
    return CorrectionOperation(
        order=order,
        kind=OperationType.DELAY,
        description=f"Delay the target by {-delay_ms:.0f} ms",
        position_ms=position_ms,
        amount_ms=-delay_ms,
    )


def merge_segment_corrections(
    corrections: list[SegmentCorrection] | tuple[SegmentCorrection, ...],
    tolerance_ms: float = MERGE_TOLERANCE_MS,
) -> list[SegmentCorrection]:
    """Collapse consecutive corrections whose delays differ by ≤ tolerance."""
    runs: list[list[SegmentCorrection]] = []
    for corr in sorted(corrections, key=lambda c: c.start_ms):
        if runs and abs(corr.delay_ms - runs[-1][-1].delay_ms) <= tolerance_ms:
            runs[-1].append(corr)
        else:
            runs.append([corr])

    merged = []
    for run in runs:
        merged.append(
            SegmentCorrection(
                start_ms=run[0].start_ms,
                end_ms=max(c.end_ms for c in run),
                delay_ms=sum(c.delay_ms for c in run) / len(run),
            )
        )
    return merged


class CorrectionPlanner:
    """Builds CorrectionPlans from recommendations."""

    def plan(
        self,
        recommendation: CorrectionRecommendation,
        duration_ms: float | None = None,
    ) -> CorrectionPlan:
        kind = recommendation.kind
        if kind is CorrectionType.NONE:
            return CorrectionPlan(
                kind=kind,
                operations=(),
                verification_points=(),
                is_safe=True,
                safety_notes=("No correction needed",),
            )
        if kind is CorrectionType.MANUAL:
            return CorrectionPlan(
                kind=kind,
                operations=(),
                verification_points=(),
                is_safe=False,
                rejected=True,
                safety_notes=(MANUAL_NOTE, *recommendation.warnings),
            )
        if kind is CorrectionType.DELAY:
            return self._plan_delay(recommendation)
        if kind is CorrectionType.STRETCH:
            return self._plan_stretch(recommendation, duration_ms)
        return self._plan_segment_repair(recommendation)

    def _plan_delay(self, rec: CorrectionRecommendation) -> CorrectionPlan:
        delay = rec.delay_ms or 0.0
        op = _offset_operation(delay, order=0)
        return CorrectionPlan(
            kind=rec.kind,
            operations=(op,) if op else (),
            verification_points=(
                VerificationPoint(0.0, 0.0, DELAY_TOLERANCE_MS),
                VerificationPoint(CHECK_AT_MS, 0.0, DELAY_TOLERANCE_MS),
            ),
            is_safe=rec.is_safe,
            safety_notes=rec.warnings,
        )

    def _plan_stretch(self, rec: CorrectionRecommendation, duration_ms: float | None) -> CorrectionPlan:
        tempo = rec.tempo_factor if rec.tempo_factor is not None else 1.0
        notes = list(rec.warnings)
        is_safe = rec.is_safe

        stages = split_tempo_chain(tempo)
        if len(stages) > 1:
            notes.append(
                f"Tempo factor {tempo:.4f} is outside [{MIN_STAGE}, {MAX_STAGE}] "
                f"and needs {len(stages)} chained stages"
            )
            is_safe = False

        operations: list[CorrectionOperation] = [
            CorrectionOperation(
                order=i,
                kind=OperationType.TEMPO,
                description=f"Rescale tempo by {stage:.6f}",
                factor=stage,
            )
            for i, stage in enumerate(stages)
        ]
        offset = _offset_operation(rec.delay_ms or 0.0, order=len(operations))
        if offset:
            operations.append(offset)

        points = [
            VerificationPoint(0.0, 0.0, DELAY_TOLERANCE_MS),
            VerificationPoint(CHECK_AT_MS, 0.0, STRETCH_TOLERANCE_MS),
        ]
        if duration_ms:
            points.append(VerificationPoint(duration_ms / 2.0, 0.0, STRETCH_TOLERANCE_MS))

        return CorrectionPlan(
            kind=rec.kind,
            operations=tuple(operations),
            verification_points=tuple(points),
            is_safe=is_safe,
            safety_notes=tuple(notes),
        )

    def _plan_segment_repair(self, rec: CorrectionRecommendation) -> CorrectionPlan:
        runs = merge_segment_corrections(rec.segment_corrections)
        operations: list[CorrectionOperation] = []
        points: list[VerificationPoint] = []

        previous_delay = 0.0
        for i, run in enumerate(runs):
            if i == 0:
                op = _offset_operation(run.delay_ms, order=len(operations))
            else:
                delta = run.delay_ms - previous_delay
                op = None
                if delta > 0:
                    op = CorrectionOperation(
                        order=len(operations),
                        kind=OperationType.TRIM,
                        description=f"Remove {delta:.0f} ms of target audio at {run.start_ms:.0f} ms",
                        position_ms=run.start_ms,
                        amount_ms=delta,
                    )
                elif delta < 0:
                    op = CorrectionOperation(
                        order=len(operations),
                        kind=OperationType.PAD,
                        description=f"Insert {-delta:.0f} ms of silence at {run.start_ms:.0f} ms",
                        position_ms=run.start_ms,
                        amount_ms=-delta,
                    )
            if op:
                operations.append(op)
            previous_delay = run.delay_ms
            points.append(
                VerificationPoint((run.start_ms + run.end_ms) / 2.0, 0.0, REPAIR_TOLERANCE_MS)
            )

        logger.debug("[PLAN] %d repair runs -> %d operations", len(runs), len(operations))
        return CorrectionPlan(
            kind=rec.kind,
            operations=tuple(operations),
            verification_points=tuple(points),
            is_safe=False,
            safety_notes=rec.warnings,
        )
