# avsync_core/analysis/peak_detection.py
"""
Anchor extraction from amplitude envelopes.

Anchors are distinctive instants (transients, silence breaks, sustained
peaks) found on a 100 frames/s RMS envelope with an adaptive local
threshold. They are matched across tracks in anchor_matching.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from scipy.ndimage import label, uniform_filter1d
from scipy.signal import find_peaks

from ..models.analysis import AnchorPoint
from ..models.enums import AnchorKind
from ..models.media import SilenceResult, Waveform
from ..models.settings import AnalysisSettings
from .anchor_matching import match_anchors
from .types import PeakDetectionResult, PeakMatchResult

logger = logging.getLogger(__name__)

ENVELOPE_RATE = 100  # frames per second
LOCAL_WINDOW_S = 2.0  # half-width of the adaptive threshold window
TRANSIENT_RISE = 0.3
ONSET_TRANSIENT = 0.5


def _envelopes(waveform: Waveform) -> tuple[np.ndarray, np.ndarray, int]:
    """Normalized RMS and onset-strength envelopes at ENVELOPE_RATE."""
    try:
        import librosa
    except ImportError:
        raise ImportError(
            "Peak detection requires librosa. Install with: pip install librosa"
        )

    sr = waveform.sample_rate
    hop = max(1, sr // ENVELOPE_RATE)
    y = np.array(waveform.samples, dtype=np.float32)

    rms = librosa.feature.rms(y=y, frame_length=2 * hop, hop_length=hop, center=True)[0]
    onset = librosa.onset.onset_strength(y=y, sr=sr, hop_length=hop, n_mels=40)

    rms_max = float(rms.max()) if rms.size else 0.0
    rms = rms / rms_max if rms_max > 0 else np.zeros_like(rms)

    if onset.size < rms.size:
        onset = np.pad(onset, (0, rms.size - onset.size))
    onset = onset[: rms.size]
    onset_max = float(onset.max()) if onset.size else 0.0
    onset = onset / onset_max if onset_max > 0 else np.zeros_like(onset)

    return rms.astype(np.float64), onset.astype(np.float64), hop


def silence_anchors(silence: SilenceResult, limit_ms: float | None = None) -> tuple[AnchorPoint, ...]:
    """Audio-resumes points at the end of each silence region."""
    anchors = []
    for region in silence.regions:
        if region.end_ms >= silence.total_duration_ms and silence.total_duration_ms > 0:
            continue
        if limit_ms is not None and region.end_ms > limit_ms:
            continue
        anchors.append(
            AnchorPoint(
                timestamp_ms=region.end_ms,
                kind=AnchorKind.TRANSITION,
                amplitude=1.0,
                confidence=min(1.0, 0.5 + region.duration_ms / 2000.0),
                duration_ms=region.duration_ms,
                description="audio resumes after silence",
            )
        )
    return tuple(anchors)


@dataclass(frozen=True, slots=True)
class PeakDetector:
    """Adaptive-threshold anchor detector plus histogram anchor matching."""

    name: str = "Peak Matching"
    sensitivity: float = 0.6
    min_amplitude: float = 0.1
    min_peak_distance_ms: float = 50.0
    max_offset_ms: float = 30000.0
    match_tolerance_ms: float = 50.0
    amplitude_ratio: float = 0.5
    min_matches: int = 5
    segment_window_ms: float = 10000.0
    min_segment_matches: int = 2

    @classmethod
    def from_settings(cls, settings: AnalysisSettings) -> PeakDetector:
        return cls(
            sensitivity=settings.peak_sensitivity,
            min_amplitude=settings.peak_min_amplitude,
            min_peak_distance_ms=settings.peak_min_distance_ms,
            max_offset_ms=settings.max_offset_s * 1000.0,
            match_tolerance_ms=settings.peak_match_tolerance_ms,
            amplitude_ratio=settings.peak_amplitude_ratio,
            min_matches=settings.peak_min_matches,
            segment_window_ms=settings.peak_segment_window_ms,
            min_segment_matches=settings.peak_min_segment_matches,
        )

    def detect(self, waveform: Waveform) -> PeakDetectionResult:
        duration_ms = waveform.duration_ms
        if len(waveform) == 0 or waveform.peak == 0:
            return PeakDetectionResult((), duration_ms, 0.0, 0.0, 0.0)

        env, onset, hop = _envelopes(waveform)
        frame_ms = hop / waveform.sample_rate * 1000.0

        window = 2 * int(LOCAL_WINDOW_S * ENVELOPE_RATE) + 1
        local_mean = uniform_filter1d(env, size=window, mode="nearest")
        local_sq = uniform_filter1d(env * env, size=window, mode="nearest")
        local_std = np.sqrt(np.maximum(local_sq - local_mean**2, 0.0))
        threshold = local_mean + local_std * (2.0 - self.sensitivity)

        distance = max(1, int(round(self.min_peak_distance_ms / frame_ms)))
        candidates, _ = find_peaks(env, height=self.min_amplitude, distance=distance)
        peaks = candidates[env[candidates] > threshold[candidates]]

        above, _ = label(env > threshold * 0.5)
        run_lengths = np.bincount(above.ravel())

        anchors: list[AnchorPoint] = []
        for idx in peaks:
            value = env[idx]
            prev = env[idx - 1] if idx > 0 else 0.0
            if value - prev > TRANSIENT_RISE * value or onset[idx] >= ONSET_TRANSIENT:
                kind = AnchorKind.TRANSIENT
            elif prev < self.min_amplitude:
                kind = AnchorKind.SILENCE
            else:
                kind = AnchorKind.PEAK

            prominence = (value - local_mean[idx]) / (local_std[idx] + 0.001)
            run = above[idx]
            anchors.append(
                AnchorPoint(
                    timestamp_ms=float(idx * frame_ms),
                    kind=kind,
                    amplitude=float(value),
                    confidence=float(min(1.0, max(0.0, prominence / 3.0))),
                    duration_ms=float(run_lengths[run] * frame_ms) if run else frame_ms,
                )
            )

        transients = sum(1 for a in anchors if a.kind is AnchorKind.TRANSIENT)
        minutes = duration_ms / 60000.0
        logger.debug("[PEAKS] %d anchors (%d transients)", len(anchors), transients)

        return PeakDetectionResult(
            anchors=tuple(anchors),
            duration_ms=duration_ms,
            average_amplitude=float(env.mean()),
            peak_amplitude=float(env.max()),
            transients_per_minute=transients / minutes if minutes > 0 else 0.0,
        )

    def match(
        self,
        reference: PeakDetectionResult,
        target: PeakDetectionResult,
        extra_reference: tuple[AnchorPoint, ...] = (),
        extra_target: tuple[AnchorPoint, ...] = (),
    ) -> PeakMatchResult:
        ref_anchors = sorted(reference.anchors + extra_reference, key=lambda a: a.timestamp_ms)
        tgt_anchors = sorted(target.anchors + extra_target, key=lambda a: a.timestamp_ms)
        return match_anchors(
            ref_anchors,
            tgt_anchors,
            max_offset_ms=self.max_offset_ms,
            tolerance_ms=self.match_tolerance_ms,
            amplitude_ratio=self.amplitude_ratio,
            min_matches=self.min_matches,
            segment_window_ms=self.segment_window_ms,
            min_segment_matches=self.min_segment_matches,
        )

    def analyze(
        self,
        reference: Waveform,
        target: Waveform,
        reference_silence: SilenceResult | None = None,
        target_silence: SilenceResult | None = None,
    ) -> tuple[PeakMatchResult, PeakDetectionResult, PeakDetectionResult]:
        """Detect anchors on both tracks and align them."""
        ref_peaks = self.detect(reference)
        tgt_peaks = self.detect(target)
        extra_ref = (
            silence_anchors(reference_silence, reference.duration_ms) if reference_silence else ()
        )
        extra_tgt = (
            silence_anchors(target_silence, target.duration_ms) if target_silence else ()
        )
        result = self.match(ref_peaks, tgt_peaks, extra_ref, extra_tgt)
        logger.info(
            "[PEAKS] %d/%d anchors, %d matches, offset %+.1f ms (confidence %.2f)",
            len(ref_peaks.anchors), len(tgt_peaks.anchors), len(result.matches),
            result.average_offset_ms, result.confidence,
        )
        return result, ref_peaks, tgt_peaks
