# tests/test_sync_analyzer.py
import dataclasses
import json

import numpy as np
import pytest

from avsync_core.analysis.sync_analyzer import NO_METHOD_WARNING, SyncAnalyzer, overall_confidence
from avsync_core.config import AppConfig
from avsync_core.analysis.delay_selection import GlobalEstimate
from avsync_core.correction import CorrectionPlanner
from avsync_core.models.enums import CorrectionType, DifferenceKind, OperationType, SegmentSource, SyncStatus
from avsync_core.models.media import SilenceRegion, SilenceResult
from tests.fakes import SR, FakeMediaProvider, delayed, with_cut


def test_overall_confidence_counts_correlation_twice():
    estimates = [
        GlobalEstimate(SegmentSource.CROSS_CORRELATION, 0.0, 0.9),
        GlobalEstimate(SegmentSource.PEAK_MATCH, 0.0, 0.6),
        GlobalEstimate(SegmentSource.FINGERPRINT, 0.0, 0.0),
    ]
    assert overall_confidence(estimates) == pytest.approx((0.9 * 2 + 0.6) / 3)
    assert overall_confidence([]) == 0.0


def test_same_file_is_in_sync(bursts, settings, provider_for):
    analyzer = SyncAnalyzer(settings, provider_for(ref=bursts))
    result = analyzer.analyze("ref.wav", "ref.wav")

    assert result.status is SyncStatus.IN_SYNC
    assert abs(result.global_delay_ms) < 30
    assert result.confidence >= 0.9
    assert result.correction.kind is CorrectionType.NONE
    assert not result.needs_correction
    assert result.metadata.methods_used == ("Cross-Correlation", "Peak Matching")


def test_lagging_target_gets_a_delay_correction(bursts, settings, provider_for):
    provider = provider_for(ref=bursts, tgt=delayed(bursts, 0.5))
    result = SyncAnalyzer(settings, provider).analyze("ref.wav", "tgt.wav")

    assert result.status is SyncStatus.OFFSET
    assert result.global_delay_ms == pytest.approx(500, abs=1)
    assert result.correction.kind is CorrectionType.DELAY
    assert result.correction.target_shift_ms == -result.global_delay_ms

    plan = CorrectionPlanner().plan(result.correction, result.metadata.target_duration_ms)
    assert plan.operations[0].kind is OperationType.TRIM
    assert plan.operations[0].amount_ms == pytest.approx(500, abs=1)


def test_leading_target_gets_a_negative_delay(bursts, settings, provider_for):
    provider = provider_for(ref=delayed(bursts, 0.3), tgt=bursts)
    result = SyncAnalyzer(settings, provider).analyze("ref.wav", "tgt.wav")
    assert result.global_delay_ms == pytest.approx(-300, abs=1)


def test_repeated_analysis_is_identical(bursts, settings, provider_for):
    analyzer = SyncAnalyzer(settings, provider_for(ref=bursts, tgt=delayed(bursts, 0.25)))
    first = analyzer.analyze("ref.wav", "tgt.wav")
    second = analyzer.analyze("ref.wav", "tgt.wav")
    assert first == second


def test_raw_diagnostics_are_read_only(bursts, settings, provider_for):
    result = SyncAnalyzer(settings, provider_for(ref=bursts)).analyze("ref.wav", "ref.wav")
    assert result.raw["offset_severity"] == "minor"
    with pytest.raises(TypeError):
        result.raw["offset_severity"] = "severe"


def test_silent_target_is_unsyncable(bursts, settings, provider_for):
    provider = provider_for(ref=bursts, tgt=np.zeros_like(bursts))
    result = SyncAnalyzer(settings, provider).analyze("ref.wav", "tgt.wav")

    assert result.status is SyncStatus.UNSYNCABLE
    assert result.correction.kind is CorrectionType.MANUAL
    assert not result.correction.is_safe


def test_failed_extraction_never_raises(settings, capture_log):
    lines, cb = capture_log
    analyzer = SyncAnalyzer(settings, FakeMediaProvider(), log_callback=cb)
    result = analyzer.analyze("missing.wav", "other.wav")

    assert result.status is SyncStatus.UNSYNCABLE
    assert result.global_delay_ms == 0
    assert NO_METHOD_WARNING in result.correction.warnings
    assert result.metadata.methods_used == ()
    assert any("failed" in line for line in lines)


def test_invalid_settings_raise(settings, provider_for, bursts):
    bad = dataclasses.replace(settings, max_offset_s=-1.0)
    with pytest.raises(ValueError):
        SyncAnalyzer(bad, provider_for(ref=bursts)).analyze("ref.wav", "ref.wav")


def test_removed_chunk_is_reported_as_structural(bursts, settings, provider_for):
    provider = provider_for(ref=bursts, tgt=with_cut(bursts, 15.0, 1.0))
    result = SyncAnalyzer(settings, provider).analyze("ref.wav", "tgt.wav")

    assert result.has_structural_differences
    assert result.status is SyncStatus.CUTS
    assert any(d.kind is DifferenceKind.INSERTION for d in result.structural_differences)
    assert result.correction.kind in (CorrectionType.SEGMENT_REPAIR, CorrectionType.MANUAL)
    assert not result.correction.is_safe


def test_progress_reports_checkpoints(bursts, settings, provider_for):
    calls = []
    SyncAnalyzer(settings, provider_for(ref=bursts)).analyze(
        "ref.wav", "ref.wav", progress_callback=lambda stage, i, n: calls.append((stage, i, n))
    )
    checkpoints = [c for c in calls if c[0] == "analysis"]
    assert checkpoints == [("analysis", 1, 3), ("analysis", 2, 3), ("analysis", 3, 3)]
    assert calls[-1] == ("analysis", 3, 3)
    assert any(stage == "cross_correlation" for stage, _, _ in calls)


def test_fingerprints_and_silence_join_the_fusion(bursts, settings):
    frames = int(40 * 11025 / 4096)
    codes = np.random.default_rng(5).integers(0, 2**32, size=frames, dtype=np.uint64).astype(np.uint32)
    silence = SilenceResult(
        regions=(), audio_start_ms=0.0, audio_end_ms=30000.0, total_silence_ms=0.0, total_duration_ms=30000.0
    )
    lead = SilenceResult(
        regions=(SilenceRegion(0.0, 400.0),),
        audio_start_ms=400.0,
        audio_end_ms=30000.0,
        total_silence_ms=400.0,
        total_duration_ms=30000.0,
    )
    provider = FakeMediaProvider(
        waveforms={"ref.wav": bursts, "tgt.wav": bursts},
        sample_rate=SR,
        fingerprints={"ref.wav": codes, "tgt.wav": codes},
        silence={"ref.wav": silence, "tgt.wav": lead},
    )
    full = dataclasses.replace(settings, use_fingerprinting=True, detect_silence=True)
    result = SyncAnalyzer(full, provider).analyze("ref.wav", "tgt.wav")

    assert "Fingerprint" in result.metadata.methods_used
    assert result.is_same_source
    assert result.similarity == pytest.approx(1.0)
    assert any(s.source is SegmentSource.FINGERPRINT for s in result.segments)
    assert any(e.timestamp_ms == 400.0 for e in result.events)
    assert [e.timestamp_ms for e in result.events] == sorted(e.timestamp_ms for e in result.events)


def test_quick_check_in_sync(bursts, settings, provider_for):
    quick = SyncAnalyzer(settings, provider_for(ref=bursts)).quick_sync_check("ref.wav", "ref.wav")
    assert quick.is_in_sync
    assert not quick.needs_detailed_analysis
    assert quick.offset_ms == 0.0


def test_quick_check_flags_offset(bursts, settings, provider_for):
    provider = provider_for(ref=bursts, tgt=delayed(bursts, 0.5))
    quick = SyncAnalyzer(settings, provider).quick_sync_check("ref.wav", "tgt.wav")
    assert not quick.is_in_sync
    assert quick.offset_ms == pytest.approx(500.0, abs=1.0)
    assert quick.needs_detailed_analysis


def test_quick_check_without_audio_asks_for_full_analysis(settings):
    quick = SyncAnalyzer(settings, FakeMediaProvider()).quick_sync_check("a.wav", "b.wav")
    assert not quick.is_in_sync
    assert quick.needs_detailed_analysis
    assert quick.confidence == 0.0


def test_from_config_carries_tool_paths_and_runner_options(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"fpcalc_path": "/opt/bin/fpcalc", "log_error_tail": 7, "max_offset_s": 12.0}))

    analyzer = SyncAnalyzer.from_config(AppConfig(path))

    assert analyzer.settings.max_offset_s == 12.0
    assert analyzer.provider.tool_paths == {"ffmpeg": "ffmpeg", "fpcalc": "/opt/bin/fpcalc"}
    assert analyzer.provider._runner().config["log_error_tail"] == 7
