# tests/test_decision.py
import pytest

from avsync_core.analysis.decision import (
    classify_offset,
    classify_status,
    recommend_correction,
    structural_differences_from_cuts,
)
from avsync_core.analysis.types import CutPoint
from avsync_core.models.analysis import CorrectionRecommendation, SegmentResult
from avsync_core.models.enums import CorrectionType, DifferenceKind, SegmentSource, SyncStatus
from avsync_core.models.settings import AnalysisSettings

SETTINGS = AnalysisSettings()


def seg(start_s, delay_ms, confidence=0.9):
    return SegmentResult(start_s * 1000.0, start_s * 1000.0 + 5000.0, delay_ms, confidence, SegmentSource.CROSS_CORRELATION)


@pytest.mark.parametrize(
    "confidence, structural, drift, delay, expected",
    [
        (0.2, True, True, 900, SyncStatus.UNSYNCABLE),
        (0.8, True, True, 900, SyncStatus.CUTS),
        (0.8, False, True, 900, SyncStatus.DRIFT),
        (0.8, False, False, 29, SyncStatus.IN_SYNC),
        (0.8, False, False, -29, SyncStatus.IN_SYNC),
        (0.8, False, False, 30, SyncStatus.OFFSET),
    ],
)
def test_status_rules_apply_in_order(confidence, structural, drift, delay, expected):
    assert classify_status(confidence, structural, drift, delay, SETTINGS) is expected


def test_offset_severity_labels():
    assert classify_offset(-49) == "minor"
    assert classify_offset(150) == "moderate"
    assert classify_offset(-200) == "severe"


def test_unsyncable_recommends_unsafe_manual_review():
    rec = recommend_correction(SyncStatus.UNSYNCABLE, 0.0, 0.1, 0.0, [], 0)
    assert rec.kind is CorrectionType.MANUAL
    assert not rec.is_safe
    assert rec.warnings


def test_confident_offset_is_a_safe_delay():
    rec = recommend_correction(SyncStatus.OFFSET, 500.0, 0.9, 0.0, [], 0)
    assert rec.kind is CorrectionType.DELAY
    assert rec.delay_ms == 500.0
    assert rec.target_shift_ms == -500.0
    assert rec.is_safe


@pytest.mark.parametrize("delay, confidence", [(500.0, 0.7), (500.0, 0.5), (6000.0, 0.95), (-5000.0, 0.95)])
def test_weak_or_huge_delays_are_unsafe_with_warning(delay, confidence):
    rec = recommend_correction(SyncStatus.OFFSET, delay, confidence, 0.0, [], 0)
    assert rec.kind is CorrectionType.DELAY
    assert not rec.is_safe
    assert rec.warnings


def test_drift_recommends_stretch():
    rec = recommend_correction(SyncStatus.DRIFT, 100.0, 0.9, 5.0, [], 0)
    assert rec.kind is CorrectionType.STRETCH
    assert rec.tempo_factor == pytest.approx(1.005)
    assert rec.is_safe


def test_large_drift_is_unsafe():
    rec = recommend_correction(SyncStatus.DRIFT, 0.0, 0.9, 40.0, [], 0)
    assert rec.tempo_factor == pytest.approx(1.04)
    assert not rec.is_safe
    assert any("tempo" in w.lower() for w in rec.warnings)


def test_cuts_recommend_segment_repair_when_segments_are_reliable():
    segments = [seg(0, 0.0), seg(2, 0.0), seg(4, 700.0), seg(6, 700.0)]
    rec = recommend_correction(SyncStatus.CUTS, 0.0, 0.8, 0.0, segments, 1)
    assert rec.kind is CorrectionType.SEGMENT_REPAIR
    assert not rec.is_safe
    assert len(rec.segment_corrections) == 4
    assert "1 cut points found" in rec.warnings


def test_cuts_without_reliable_segments_need_manual_review():
    rec = recommend_correction(SyncStatus.CUTS, 0.0, 0.8, 0.0, [seg(0, 0.0, 0.2)], 1)
    assert rec.kind is CorrectionType.MANUAL
    assert not rec.is_safe


def test_segment_at_exactly_half_confidence_is_not_reliable():
    five_matches = SegmentResult(0.0, 10000.0, 700.0, 0.5, SegmentSource.PEAK_MATCH)
    rec = recommend_correction(SyncStatus.CUTS, 0.0, 0.8, 0.0, [five_matches], 1)
    assert rec.kind is CorrectionType.MANUAL
    assert rec.segment_corrections == ()


def test_in_sync_needs_nothing():
    rec = recommend_correction(SyncStatus.IN_SYNC, 12.0, 0.9, 0.0, [], 0)
    assert rec.kind is CorrectionType.NONE
    assert rec.is_safe


def test_unsafe_recommendation_without_warning_is_rejected():
    with pytest.raises(ValueError):
        CorrectionRecommendation(kind=CorrectionType.DELAY, delay_ms=10.0, is_safe=False)
    with pytest.raises(ValueError):
        CorrectionRecommendation(kind=CorrectionType.MANUAL, is_safe=True)


def test_cut_and_insertion_map_onto_both_timelines():
    cut, insertion = structural_differences_from_cuts(
        [
            CutPoint(10000.0, DifferenceKind.CUT, 700.0),
            CutPoint(30000.0, DifferenceKind.INSERTION, 400.0),
        ]
    )
    assert (cut.reference_start_ms, cut.reference_end_ms) == (10000.0, 10000.0)
    assert (cut.target_start_ms, cut.target_end_ms) == (10000.0, 10700.0)
    assert (insertion.reference_start_ms, insertion.reference_end_ms) == (30000.0, 30400.0)
    assert (insertion.target_start_ms, insertion.target_end_ms) == (30000.0, 30000.0)
    assert insertion.kind is DifferenceKind.INSERTION
