# tests/test_peak_matching.py
import numpy as np
import pytest

from avsync_core.analysis.anchor_matching import candidate_offsets, match_anchors, match_confidence
from avsync_core.analysis.peak_detection import PeakDetector, silence_anchors
from avsync_core.models.analysis import AnchorPoint
from avsync_core.models.enums import AnchorKind, SegmentSource
from avsync_core.models.media import SilenceRegion, SilenceResult, Waveform
from tests.fakes import SR, delayed, make_bursts


def anchor(t_ms, amplitude=0.8, confidence=0.8, kind=AnchorKind.TRANSIENT):
    return AnchorPoint(timestamp_ms=t_ms, kind=kind, amplitude=amplitude, confidence=confidence)


def test_detector_finds_bursts_as_anchors():
    x = make_bursts(20.0)
    result = PeakDetector().detect(Waveform.from_samples(x, SR))

    assert len(result.anchors) >= 10
    times = [a.timestamp_ms for a in result.anchors]
    assert times == sorted(times)
    assert all(0.0 <= a.amplitude <= 1.0 for a in result.anchors)
    assert all(0.0 <= a.confidence <= 1.0 for a in result.anchors)
    assert result.peak_amplitude == pytest.approx(1.0)
    assert result.transients_per_minute > 0


def test_detector_respects_minimum_spacing():
    x = make_bursts(20.0)
    anchors = PeakDetector(min_peak_distance_ms=100.0).detect(Waveform.from_samples(x, SR)).anchors
    gaps = np.diff([a.timestamp_ms for a in anchors])
    assert np.all(gaps >= 100.0 - 1e-6)


def test_silent_track_has_no_anchors():
    result = PeakDetector().detect(Waveform.from_samples(np.zeros(SR * 5, dtype=np.float32), SR))
    assert result.anchors == ()


def test_shifted_anchor_lists_align_at_the_shift():
    ref = [anchor(t) for t in range(500, 30000, 700)]
    tgt = [anchor(a.timestamp_ms + 240.0) for a in ref]

    result = match_anchors(ref, tgt)
    assert result.average_offset_ms == pytest.approx(240.0)
    assert result.offset_std_ms == pytest.approx(0.0)
    assert len(result.matches) == len(ref)
    assert result.confidence > 0.8
    assert all(s.source is SegmentSource.PEAK_MATCH for s in result.segments)
    assert all(s.delay_ms == pytest.approx(240.0) for s in result.segments)


def test_amplitude_mismatch_prevents_pairing():
    ref = [anchor(t, amplitude=0.9) for t in range(500, 10000, 700)]
    tgt = [anchor(a.timestamp_ms + 100.0, amplitude=0.2) for a in ref]
    assert match_anchors(ref, tgt).matches == ()


def test_silence_transitions_only_pair_with_transitions():
    ref = [anchor(1000.0, kind=AnchorKind.TRANSITION)]
    tgt = [anchor(1000.0, kind=AnchorKind.PEAK)]
    assert match_anchors(ref, tgt).matches == ()


def test_few_matches_get_low_confidence():
    assert match_confidence(2, 10, 10, 0.0, 1.0, min_matches=5) == pytest.approx(0.2)
    assert match_confidence(0, 10, 10, 0.0, 1.0, min_matches=5) == 0.0


def test_candidate_offsets_prefer_most_populated_bin():
    ref = np.array([0.0, 1000.0, 2000.0, 3000.0])
    tgt = ref + 300.0
    assert candidate_offsets(ref, tgt, max_offset_ms=5000.0)[0] == pytest.approx(300.0)


def test_empty_inputs_give_zero_confidence():
    result = match_anchors([], [anchor(10.0)])
    assert result.confidence == 0.0
    assert result.matches == ()


def test_silence_regions_become_transition_anchors():
    silence = SilenceResult(
        regions=(SilenceRegion(0.0, 800.0), SilenceRegion(5000.0, 5600.0), SilenceRegion(9900.0, 10000.0)),
        audio_start_ms=800.0,
        audio_end_ms=9900.0,
        total_silence_ms=1500.0,
        total_duration_ms=10000.0,
    )
    anchors = silence_anchors(silence)
    assert [a.timestamp_ms for a in anchors] == [800.0, 5600.0]
    assert all(a.kind is AnchorKind.TRANSITION for a in anchors)


def test_full_detector_recovers_half_second_lag():
    x = make_bursts(30.0)
    result, ref_peaks, tgt_peaks = PeakDetector().analyze(
        Waveform.from_samples(x, SR), Waveform.from_samples(delayed(x, 0.5), SR)
    )
    assert len(result.matches) >= 5
    assert result.average_offset_ms == pytest.approx(500.0, abs=10.0)
    assert result.confidence > 0.6
