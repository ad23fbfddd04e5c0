# avsync_core/analysis/sync_analyzer.py
"""
Sync orchestrator.

Runs the detectors concurrently, pools their segment estimates, picks the
global delay through the selection chain and turns everything into one
immutable SyncAnalysisResult.

Detector failures never escape ``analyze``: each one is logged and the
detector is left out of the fusion. The only exception raised is
ValueError for settings no analysis can run with.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor

from ..config import AppConfig
from ..errors import ExtractionError
from ..extraction.provider import MediaProvider, MediaSource
from ..models.analysis import (
    AnalysisMetadata,
    CorrectionRecommendation,
    QuickSyncResult,
    SegmentResult,
    SyncAnalysisResult,
    SyncEvent,
)
from ..models.enums import (
    CorrectionType,
    DelayMethod,
    DifferenceKind,
    EventKind,
    SegmentSource,
    SyncStatus,
)
from ..models.media import SilenceResult
from ..models.settings import AnalysisSettings
from .correlation import CrossCorrelationEngine
from .decision import (
    classify_offset,
    classify_status,
    recommend_correction,
    structural_differences_from_cuts,
)
from .delay_selection import GlobalEstimate, select_delay
from .drift_detection import find_delay_jumps
from .fingerprint import FingerprintComparator
from .peak_detection import PeakDetector
from .types import CrossCorrelationResult, CutPoint, FingerprintComparison, PeakMatchResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], None]

NO_METHOD_WARNING = "No detection method succeeded"
CUT_EVENT_CONFIDENCE = 0.8


def overall_confidence(estimates: Sequence[GlobalEstimate]) -> float:
    """Mean of the positive detector confidences; correlation counts twice."""
    total = 0.0
    weights = 0.0
    for est in estimates:
        if est.confidence <= 0:
            continue
        weight = 2.0 if est.source is SegmentSource.CROSS_CORRELATION else 1.0
        total += est.confidence * weight
        weights += weight
    return total / weights if weights else 0.0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class SyncAnalyzer:
    """Fuses cross-correlation, anchor matching and fingerprints into one verdict."""

    def __init__(
        self,
        settings: AnalysisSettings | None = None,
        provider: MediaSource | None = None,
        log_callback: Callable[[str], None] | None = None,
        tool_paths: dict[str, str] | None = None,
        config: dict | None = None,
    ):
        self.settings = settings or AnalysisSettings()
        self.provider = provider or MediaProvider.from_settings(
            self.settings, tool_paths=tool_paths, log_callback=log_callback, config=config
        )
        self.log = log_callback

    @classmethod
    def from_config(
        cls, app_config: AppConfig, log_callback: Callable[[str], None] | None = None
    ) -> SyncAnalyzer:
        """Analyzer with the settings, tool paths and runner options of a settings file."""
        return cls(
            app_config.analysis_settings(),
            log_callback=log_callback,
            tool_paths=app_config.tool_paths,
            config=app_config.settings,
        )

    def _log(self, message: str):
        logger.info(message)
        if self.log:
            self.log(message)

    def _collect(self, future: Future | None, label: str):
        """Result of a detector future, or None when it was skipped or failed."""
        if future is None:
            return None
        try:
            return future.result()
        except Exception as e:
            logger.warning("[SYNC] %s failed: %s", label, e, exc_info=not isinstance(e, ExtractionError))
            if self.log:
                self.log(f"[SYNC] WARNING: {label} failed: {e}")
            return None

    # ------------------------------------------------------------------
    # Full analysis
    # ------------------------------------------------------------------

    def analyze(
        self,
        reference_file: str,
        target_file: str,
        progress_callback: ProgressCallback | None = None,
    ) -> SyncAnalysisResult:
        """
        Analyze how ``target_file`` is aligned against ``reference_file``.

        ``progress_callback(stage, completed, total)`` fires after every
        correlation/fingerprint window and at the orchestration checkpoints.
        It may be called from worker threads.
        """
        settings = self.settings
        settings.validate()
        started = time.perf_counter()

        correlator = CrossCorrelationEngine.from_settings(settings)
        detector = PeakDetector.from_settings(settings)
        fingerprinter = FingerprintComparator.from_settings(settings)
        duration = settings.effective_duration_s
        sr = settings.sample_rate

        self._log(
            f"[SYNC] Analyzing {reference_file} -> {target_file} "
            f"({'deep' if settings.deep_analysis else 'standard'} mode)"
        )

        with ThreadPoolExecutor(max_workers=settings.max_workers) as pool:
            fp_future = None
            if settings.use_fingerprinting:
                fp_future = pool.submit(
                    fingerprinter.analyze, reference_file, target_file, self.provider, progress_callback
                )
            ref_wave_future = pool.submit(self.provider.extract_waveform, reference_file, sr, None, duration)
            tgt_wave_future = pool.submit(self.provider.extract_waveform, target_file, sr, None, duration)
            ref_sil_future = tgt_sil_future = None
            if settings.detect_silence:
                ref_sil_future = pool.submit(self.provider.detect_silence, reference_file)
                tgt_sil_future = pool.submit(self.provider.detect_silence, target_file)

            ref_wave = self._collect(ref_wave_future, "Reference waveform extraction")
            tgt_wave = self._collect(tgt_wave_future, "Target waveform extraction")
            ref_silence = self._collect(ref_sil_future, "Reference silence detection")
            tgt_silence = self._collect(tgt_sil_future, "Target silence detection")
            if progress_callback:
                progress_callback("analysis", 1, 3)

            corr_future = peak_future = None
            if ref_wave is not None and tgt_wave is not None:
                corr_future = pool.submit(correlator.analyze, ref_wave, tgt_wave, progress_callback)
                peak_future = pool.submit(detector.analyze, ref_wave, tgt_wave, ref_silence, tgt_silence)

            corr: CrossCorrelationResult | None = self._collect(corr_future, "Cross-correlation")
            peak_out = self._collect(peak_future, "Peak matching")
            fingerprint: FingerprintComparison | None = self._collect(fp_future, "Fingerprint comparison")

        if progress_callback:
            progress_callback("analysis", 2, 3)

        peaks: PeakMatchResult | None = peak_out[0] if peak_out else None
        methods = []
        if corr is not None:
            methods.append(correlator.name)
        if peaks is not None:
            methods.append(detector.name)
        if fingerprint is not None:
            methods.append(fingerprinter.name)

        metadata = AnalysisMetadata(
            reference_file=str(reference_file),
            target_file=str(target_file),
            reference_duration_ms=self._duration_ms(ref_wave, ref_silence),
            target_duration_ms=self._duration_ms(tgt_wave, tgt_silence),
            methods_used=tuple(methods),
            analysis_time_ms=(time.perf_counter() - started) * 1000.0,
        )

        if not methods:
            self._log(f"[SYNC] {NO_METHOD_WARNING}; manual review required")
            result = self._unsyncable(metadata)
        else:
            result = self._fuse(corr, peak_out, fingerprint, ref_silence, tgt_silence, metadata)

        if progress_callback:
            progress_callback("analysis", 3, 3)
        return result

    @staticmethod
    def _duration_ms(wave, silence: SilenceResult | None) -> float:
        if wave is not None:
            return wave.duration_ms
        if silence is not None:
            return silence.total_duration_ms
        return 0.0

    @staticmethod
    def _unsyncable(metadata: AnalysisMetadata) -> SyncAnalysisResult:
        return SyncAnalysisResult(
            status=SyncStatus.UNSYNCABLE,
            global_delay_ms=0,
            confidence=0.0,
            is_same_source=False,
            similarity=0.0,
            has_drift=False,
            drift_rate=0.0,
            has_structural_differences=False,
            structural_differences=(),
            segments=(),
            events=(),
            correction=CorrectionRecommendation(
                kind=CorrectionType.MANUAL,
                is_safe=False,
                warnings=(NO_METHOD_WARNING,),
            ),
            delay_method=DelayMethod.NONE,
            metadata=metadata,
        )

    def _fuse(
        self,
        corr: CrossCorrelationResult | None,
        peak_out,
        fingerprint: FingerprintComparison | None,
        ref_silence: SilenceResult | None,
        tgt_silence: SilenceResult | None,
        metadata: AnalysisMetadata,
    ) -> SyncAnalysisResult:
        settings = self.settings
        peaks, ref_peaks, tgt_peaks = peak_out if peak_out else (None, None, None)

        pooled: list[SegmentResult] = []
        estimates: list[GlobalEstimate] = []
        if corr is not None:
            pooled.extend(corr.segments)
            estimates.append(
                GlobalEstimate(SegmentSource.CROSS_CORRELATION, corr.global_delay_ms, corr.global_confidence)
            )
        if peaks is not None:
            pooled.extend(peaks.segments)
            if peaks.matches:
                estimates.append(
                    GlobalEstimate(SegmentSource.PEAK_MATCH, peaks.average_offset_ms, peaks.confidence)
                )
        if fingerprint is not None:
            pooled.extend(fingerprint.segments)
            if fingerprint.best_match is not None:
                estimates.append(
                    GlobalEstimate(
                        SegmentSource.FINGERPRINT,
                        fingerprint.best_match.delay_ms,
                        fingerprint.best_match.confidence,
                    )
                )
        pooled.sort(key=lambda s: s.start_ms)

        delay = select_delay(pooled, estimates, settings)
        global_delay = _round_half_up(delay.delay_ms)
        confidence = overall_confidence(estimates)

        has_drift = bool(corr and corr.has_drift)
        drift_rate = corr.drift_rate if corr and corr.has_drift else 0.0

        jumps = find_delay_jumps(
            pooled, settings.structural_jump_ms, settings.consensus_min_confidence
        )
        has_structural = bool(
            (corr and corr.has_cuts)
            or (fingerprint and fingerprint.has_structural_differences)
            or jumps
        )
        cut_points: tuple[CutPoint, ...] = corr.cut_points if corr and corr.cut_points else jumps

        status = classify_status(confidence, has_structural, has_drift, global_delay, settings)
        correction = recommend_correction(
            status, float(global_delay), confidence, drift_rate, pooled, len(cut_points)
        )

        self._log(
            f"[SYNC] {status.value}: delay {global_delay:+d} ms via {delay.method.value} "
            f"({classify_offset(global_delay)}), confidence {confidence:.2f}, "
            f"correction {correction.kind.value}"
        )
        for warning in correction.warnings:
            self._log(f"[SYNC] WARNING: {warning}")

        raw = {
            "correlation_graph": corr.correlation_graph if corr else (),
            "delay_estimate": delay,
            "offset_severity": classify_offset(global_delay),
            "peaks": {
                "reference": ref_peaks,
                "target": tgt_peaks,
                "matches": len(peaks.matches) if peaks else 0,
            },
            "silence": {"reference": ref_silence, "target": tgt_silence},
        }

        return SyncAnalysisResult(
            status=status,
            global_delay_ms=global_delay,
            confidence=confidence,
            is_same_source=fingerprint.is_same_source if fingerprint else confidence > 0.5,
            similarity=fingerprint.similarity if fingerprint else confidence,
            has_drift=has_drift,
            drift_rate=drift_rate,
            has_structural_differences=has_structural,
            structural_differences=structural_differences_from_cuts(cut_points),
            segments=tuple(pooled),
            events=self._events(cut_points, peaks, corr, ref_silence, tgt_silence),
            correction=correction,
            delay_method=delay.method,
            raw=raw,
            metadata=metadata,
        )

    @staticmethod
    def _events(
        cut_points: Sequence[CutPoint],
        peaks: PeakMatchResult | None,
        corr: CrossCorrelationResult | None,
        ref_silence: SilenceResult | None,
        tgt_silence: SilenceResult | None,
    ) -> tuple[SyncEvent, ...]:
        events: list[SyncEvent] = []
        for cut in cut_points:
            is_cut = cut.kind is DifferenceKind.CUT
            events.append(
                SyncEvent(
                    timestamp_ms=cut.timestamp_ms,
                    kind=EventKind.CUT if is_cut else EventKind.INSERTION,
                    description=f"{'Cut' if is_cut else 'Insertion'} of {cut.duration_ms:.0f} ms detected",
                    confidence=CUT_EVENT_CONFIDENCE,
                )
            )
        if peaks is not None:
            for seg in peaks.segments:
                events.append(
                    SyncEvent(
                        timestamp_ms=seg.start_ms,
                        kind=EventKind.ANCHOR_MATCH,
                        description=f"Anchor match: {seg.delay_ms:+.0f} ms offset",
                        confidence=seg.confidence,
                    )
                )
        if corr is not None and corr.has_drift:
            events.append(
                SyncEvent(
                    timestamp_ms=0.0,
                    kind=EventKind.DRIFT_CHANGE,
                    description=f"Drift of {corr.drift_rate:+.3f} ms/s",
                    confidence=corr.global_confidence,
                )
            )
        for label, silence in (("Reference", ref_silence), ("Target", tgt_silence)):
            if silence is not None and silence.audio_start_ms > 0:
                events.append(
                    SyncEvent(
                        timestamp_ms=silence.audio_start_ms,
                        kind=EventKind.SILENCE_BOUNDARY,
                        description=f"{label} audio starts after {silence.audio_start_ms:.0f} ms of silence",
                        confidence=1.0,
                    )
                )
        events.sort(key=lambda e: e.timestamp_ms)
        return tuple(events)

    # ------------------------------------------------------------------
    # Quick check
    # ------------------------------------------------------------------

    def quick_sync_check(self, reference_file: str, target_file: str) -> QuickSyncResult:
        """Correlation-only gate deciding whether a full analysis is worth running."""
        quick = self.settings.for_quick_check()
        quick.validate()
        engine = CrossCorrelationEngine.from_settings(quick)

        try:
            ref = self.provider.extract_waveform(
                reference_file, quick.sample_rate, None, quick.quick_duration_s
            )
            tgt = self.provider.extract_waveform(
                target_file, quick.sample_rate, None, quick.quick_duration_s
            )
        except ExtractionError as e:
            logger.warning("[SYNC] Quick check extraction failed: %s", e)
            return QuickSyncResult(
                is_in_sync=False, offset_ms=0.0, confidence=0.0, needs_detailed_analysis=True
            )

        result = engine.analyze(ref, tgt)
        in_sync = (
            result.global_confidence >= quick.global_trust_confidence
            and abs(result.global_delay_ms) < quick.in_sync_threshold_ms
        )
        self._log(
            f"[SYNC] Quick check: {result.global_delay_ms:+.1f} ms "
            f"(confidence {result.global_confidence:.2f}, in sync: {in_sync})"
        )
        return QuickSyncResult(
            is_in_sync=in_sync,
            offset_ms=result.global_delay_ms,
            confidence=result.global_confidence,
            needs_detailed_analysis=not in_sync or result.has_drift or result.has_cuts,
        )
