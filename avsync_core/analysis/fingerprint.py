# avsync_core/analysis/fingerprint.py
"""
Acoustic fingerprint comparison.

Each Chromaprint code summarises ~371.5 ms of audio in 32 bits. Two codes
"match" when fewer than MAX_BIT_ERRORS bits differ; the fraction of matching
codes at a given frame offset is that offset's confidence.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import numpy as np

from ..errors import ExtractionError
from ..extraction.provider import MediaSource
from ..models.analysis import SegmentResult
from ..models.enums import SegmentSource
from ..models.media import FINGERPRINT_FRAME_MS, FINGERPRINT_SAMPLE_RATE, Fingerprint
from ..models.settings import AnalysisSettings
from .types import FingerprintComparison, FingerprintMatch

logger = logging.getLogger(__name__)

MAX_BIT_ERRORS = 10
SAME_SOURCE_SIMILARITY = 0.6
STRUCTURAL_STD_MS = 100.0
FRAMES_PER_SECOND = FINGERPRINT_SAMPLE_RATE / 4096


def popcount32(values: np.ndarray) -> np.ndarray:
    """Number of set bits in each 32-bit value."""
    v = np.ascontiguousarray(np.asarray(values, dtype=np.uint32).astype("<u4"))
    bits = np.unpackbits(v.view(np.uint8)).reshape(-1, 32)
    return bits.sum(axis=1, dtype=np.int64)


def hamming_distance(a: int, b: int) -> int:
    return bin((int(a) ^ int(b)) & 0xFFFFFFFF).count("1")


def _as_codes(codes: Fingerprint | Sequence[int] | np.ndarray) -> np.ndarray:
    if isinstance(codes, Fingerprint):
        return codes.as_array()
    return np.asarray(codes, dtype=np.uint32)


def fingerprint_similarity(
    reference: Fingerprint | Sequence[int],
    target: Fingerprint | Sequence[int],
) -> float:
    """1 - mean bit error rate over the zero-offset overlap."""
    r, t = _as_codes(reference), _as_codes(target)
    n = min(r.size, t.size)
    if n == 0:
        return 0.0
    errors = popcount32(r[:n] ^ t[:n])
    return float(1.0 - errors.mean() / 32.0)


def find_fingerprint_offsets(
    reference: Fingerprint | Sequence[int],
    target: Fingerprint | Sequence[int],
    max_offset_frames: int,
    min_confidence: float = 0.3,
    reference_start_ms: float = 0.0,
    max_bit_errors: int = MAX_BIT_ERRORS,
    min_overlap_ratio: float = 0.5,
) -> list[FingerprintMatch]:
    """
    Every frame offset whose match ratio reaches ``min_confidence``,
    best first (ties: smaller absolute delay).

    A positive offset pairs ``reference[i]`` with ``target[i + offset]``,
    i.e. the target lags.
    """
    r, t = _as_codes(reference), _as_codes(target)
    n_ref, n_tgt = r.size, t.size
    if n_ref == 0 or n_tgt == 0:
        return []
    min_overlap = max(1, math.ceil(min_overlap_ratio * min(n_ref, n_tgt)))

    matches: list[FingerprintMatch] = []
    for offset in range(-max_offset_frames, max_offset_frames + 1):
        lo = max(0, -offset)
        hi = min(n_ref, n_tgt - offset)
        compared = hi - lo
        if compared < min_overlap:
            continue
        errors = popcount32(r[lo:hi] ^ t[lo + offset : hi + offset])
        matching = int(np.count_nonzero(errors < max_bit_errors))
        confidence = matching / compared
        if confidence < min_confidence:
            continue
        delay_ms = offset * FINGERPRINT_FRAME_MS
        matches.append(
            FingerprintMatch(
                reference_offset_ms=reference_start_ms,
                target_offset_ms=reference_start_ms + delay_ms,
                delay_ms=delay_ms,
                confidence=confidence,
                matching_chunks=matching,
            )
        )

    matches.sort(key=lambda m: (-m.confidence, abs(m.delay_ms)))
    return matches


def has_structural_variation(segments: Sequence[SegmentResult], limit_ms: float = STRUCTURAL_STD_MS) -> bool:
    if len(segments) < 2:
        return False
    return float(np.std([s.delay_ms for s in segments])) > limit_ms


@dataclass(frozen=True, slots=True)
class FingerprintComparator:
    """Compares two tracks through fpcalc fingerprints, globally and per window."""

    name: str = "Fingerprint"
    max_offset_s: float = 60.0
    min_confidence: float = 0.3
    window_s: float = 30.0
    step_s: float = 10.0
    segment_search_frames: int = 30
    segment_min_confidence: float = 0.2
    segment_analysis: bool = True
    duration_limit_s: float | None = 300.0

    @classmethod
    def from_settings(cls, settings: AnalysisSettings) -> FingerprintComparator:
        return cls(
            max_offset_s=settings.fingerprint_max_offset_s,
            min_confidence=settings.fingerprint_min_confidence,
            window_s=settings.fingerprint_window_s,
            step_s=settings.fingerprint_step_s,
            segment_search_frames=settings.fingerprint_segment_search_frames,
            segment_min_confidence=settings.fingerprint_segment_min_confidence,
            segment_analysis=settings.fingerprint_segment_analysis,
            duration_limit_s=settings.effective_duration_s,
        )

    def compare(self, reference: Fingerprint, target: Fingerprint) -> tuple[float, list[FingerprintMatch]]:
        """Similarity and ranked offset matches of two whole fingerprints."""
        max_frames = int(round(self.max_offset_s * FRAMES_PER_SECOND))
        matches = find_fingerprint_offsets(reference, target, max_frames, self.min_confidence)
        return fingerprint_similarity(reference, target), matches

    def analyze_segments(
        self,
        reference_file: str,
        target_file: str,
        provider: MediaSource,
        reference_duration_s: float,
        progress_callback: Callable[[str, int, int], None] | None = None,
    ) -> tuple[SegmentResult, ...]:
        duration = reference_duration_s
        if self.duration_limit_s is not None:
            duration = min(duration, self.duration_limit_s)
        if duration < self.window_s:
            return ()

        count = int((duration - self.window_s) // self.step_s) + 1
        segments: list[SegmentResult] = []
        for i in range(count):
            start = i * self.step_s
            try:
                ref_fp = provider.fingerprint(reference_file, start_s=start, duration_s=self.window_s)
                tgt_fp = provider.fingerprint(target_file, start_s=start, duration_s=self.window_s)
            except ExtractionError as e:
                logger.warning("[FINGERPRINT] Window at %.0fs skipped: %s", start, e)
                continue
            finally:
                if progress_callback:
                    progress_callback("fingerprint", i + 1, count)

            matches = find_fingerprint_offsets(
                ref_fp,
                tgt_fp,
                self.segment_search_frames,
                self.segment_min_confidence,
                reference_start_ms=start * 1000.0,
            )
            if not matches:
                continue
            best = matches[0]
            segments.append(
                SegmentResult(
                    start_ms=start * 1000.0,
                    end_ms=(start + self.window_s) * 1000.0,
                    delay_ms=best.delay_ms,
                    confidence=best.confidence,
                    source=SegmentSource.FINGERPRINT,
                )
            )
        return tuple(segments)

    def analyze(
        self,
        reference_file: str,
        target_file: str,
        provider: MediaSource,
        progress_callback: Callable[[str, int, int], None] | None = None,
    ) -> FingerprintComparison:
        """
        Full comparison through a MediaSource.

        Raises:
            ExtractionError: If either whole-file fingerprint cannot be produced.
        """
        length = self.duration_limit_s if self.duration_limit_s is not None else 0.0
        ref_fp = provider.fingerprint(reference_file, duration_s=length)
        tgt_fp = provider.fingerprint(target_file, duration_s=length)

        similarity, matches = self.compare(ref_fp, tgt_fp)
        best = matches[0] if matches else None
        logger.info(
            "[FINGERPRINT] similarity %.2f, %d candidate offsets, best %s",
            similarity,
            len(matches),
            f"{best.delay_ms:+.1f} ms ({best.confidence:.2f})" if best else "none",
        )

        segments: tuple[SegmentResult, ...] = ()
        if self.segment_analysis:
            segments = self.analyze_segments(
                reference_file, target_file, provider, ref_fp.duration_s, progress_callback
            )

        return FingerprintComparison(
            similarity=similarity,
            is_same_source=similarity > SAME_SOURCE_SIMILARITY,
            matches=tuple(matches),
            best_match=best,
            segments=segments,
            has_structural_differences=has_structural_variation(segments),
        )
