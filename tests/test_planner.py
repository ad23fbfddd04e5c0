# tests/test_planner.py
import math

import pytest

from avsync_core.correction import CorrectionPlanner, merge_segment_corrections, split_tempo_chain
from avsync_core.models.analysis import CorrectionRecommendation, SegmentCorrection
from avsync_core.models.enums import CorrectionType, OperationType


@pytest.fixture
def planner():
    return CorrectionPlanner()


def test_none_is_a_safe_noop(planner):
    plan = planner.plan(CorrectionRecommendation(kind=CorrectionType.NONE))
    assert plan.is_noop
    assert plan.is_safe
    assert not plan.rejected


def test_manual_is_rejected_with_notes(planner):
    rec = CorrectionRecommendation(kind=CorrectionType.MANUAL, is_safe=False, warnings=("too quiet",))
    plan = planner.plan(rec)
    assert plan.operations == ()
    assert plan.rejected
    assert not plan.is_safe
    assert "too quiet" in plan.safety_notes


def test_lagging_target_is_trimmed(planner):
    plan = planner.plan(CorrectionRecommendation(kind=CorrectionType.DELAY, delay_ms=500.0))
    (op,) = plan.operations
    assert op.kind is OperationType.TRIM
    assert op.amount_ms == 500.0
    assert op.position_ms == 0.0
    assert [(p.timestamp_ms, p.expected_offset_ms, p.tolerance_ms) for p in plan.verification_points] == [
        (0.0, 0.0, 20.0),
        (60000.0, 0.0, 20.0),
    ]
    assert plan.is_safe


def test_leading_target_is_delayed(planner):
    plan = planner.plan(CorrectionRecommendation(kind=CorrectionType.DELAY, delay_ms=-250.0))
    (op,) = plan.operations
    assert op.kind is OperationType.DELAY
    assert op.amount_ms == 250.0


def test_unsafe_delay_carries_warnings_into_notes(planner):
    rec = CorrectionRecommendation(kind=CorrectionType.DELAY, delay_ms=8000.0, is_safe=False, warnings=("big",))
    plan = planner.plan(rec)
    assert not plan.is_safe
    assert plan.safety_notes == ("big",)


def test_stretch_with_residual_offset(planner):
    rec = CorrectionRecommendation(kind=CorrectionType.STRETCH, delay_ms=-40.0, tempo_factor=1.005)
    plan = planner.plan(rec, duration_ms=1_200_000.0)
    kinds = [op.kind for op in plan.operations]
    assert kinds == [OperationType.TEMPO, OperationType.DELAY]
    assert plan.operations[0].factor == pytest.approx(1.005)
    assert [op.order for op in plan.operations] == [0, 1]
    assert plan.verification_points[-1].timestamp_ms == 600_000.0
    assert plan.is_safe


@pytest.mark.parametrize("factor", [0.1, 0.3, 0.75, 1.0, 1.9, 3.0, 11.0])
def test_tempo_chain_stages_stay_in_range_and_multiply_back(factor):
    stages = split_tempo_chain(factor)
    assert all(0.5 <= s <= 2.0 for s in stages)
    assert math.prod(stages) == pytest.approx(factor)


def test_tempo_chain_rejects_non_positive():
    with pytest.raises(ValueError):
        split_tempo_chain(0.0)


def test_extreme_stretch_is_chained_and_unsafe(planner):
    rec = CorrectionRecommendation(
        kind=CorrectionType.STRETCH, tempo_factor=3.0, is_safe=False, warnings=("Large tempo",)
    )
    plan = planner.plan(rec)
    tempos = [op.factor for op in plan.operations if op.kind is OperationType.TEMPO]
    assert tempos == [2.0, pytest.approx(1.5)]
    assert not plan.is_safe
    assert len(plan.safety_notes) == 2


def test_merge_collapses_similar_neighbours():
    merged = merge_segment_corrections(
        [
            SegmentCorrection(5000.0, 10000.0, 20.0),
            SegmentCorrection(0.0, 5000.0, 0.0),
            SegmentCorrection(10000.0, 15000.0, 720.0),
            SegmentCorrection(15000.0, 20000.0, 700.0),
        ]
    )
    assert [(m.start_ms, m.end_ms) for m in merged] == [(0.0, 10000.0), (10000.0, 20000.0)]
    assert merged[0].delay_ms == pytest.approx(10.0)
    assert merged[1].delay_ms == pytest.approx(710.0)


def test_segment_repair_trims_and_pads_at_boundaries(planner):
    rec = CorrectionRecommendation(
        kind=CorrectionType.SEGMENT_REPAIR,
        segment_corrections=(
            SegmentCorrection(0.0, 10000.0, 100.0),
            SegmentCorrection(10000.0, 20000.0, 800.0),
            SegmentCorrection(20000.0, 30000.0, 300.0),
        ),
        is_safe=False,
        warnings=("Structural differences (cuts/insertions) detected",),
    )
    plan = planner.plan(rec)
    summary = [(op.kind, op.position_ms, op.amount_ms) for op in plan.operations]
    assert summary == [
        (OperationType.TRIM, 0.0, 100.0),
        (OperationType.TRIM, 10000.0, 700.0),
        (OperationType.PAD, 20000.0, 500.0),
    ]
    assert [p.timestamp_ms for p in plan.verification_points] == [5000.0, 15000.0, 25000.0]
    assert not plan.is_safe
