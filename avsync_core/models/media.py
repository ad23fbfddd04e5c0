"""Media value objects produced by the extraction boundary."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

FINGERPRINT_SAMPLE_RATE = 11025
FINGERPRINT_CHUNK_SAMPLES = 4096
# Duration covered by one fingerprint code (~371.5 ms).
FINGERPRINT_FRAME_MS = FINGERPRINT_CHUNK_SAMPLES / FINGERPRINT_SAMPLE_RATE * 1000.0


@dataclass(frozen=True, slots=True)
class Waveform:
    """Mono PCM samples in [-1, 1] at a fixed sample rate.

    The sample buffer is marked read-only so one decode can be shared
    between detectors running on different threads.
    """

    sample_rate: int
    samples: np.ndarray = field(compare=False, repr=False)
    duration_s: float
    peak: float
    rms: float

    @classmethod
    def from_samples(cls, samples: np.ndarray, sample_rate: int) -> Waveform:
        data = np.asarray(samples, dtype=np.float32)
        if data.ndim != 1:
            data = data.reshape(-1)
        data = data.copy()
        data.flags.writeable = False

        if data.size:
            peak = float(np.max(np.abs(data)))
            rms = float(np.sqrt(np.mean(np.square(data, dtype=np.float64))))
        else:
            peak = 0.0
            rms = 0.0
        return cls(
            sample_rate=int(sample_rate),
            samples=data,
            duration_s=data.size / float(sample_rate) if sample_rate > 0 else 0.0,
            peak=peak,
            rms=rms,
        )

    def __len__(self) -> int:
        return int(self.samples.size)

    @property
    def duration_ms(self) -> float:
        return self.duration_s * 1000.0


@dataclass(frozen=True, slots=True)
class Fingerprint:
    """Chromaprint raw fingerprint: one 32-bit code per ~371.5 ms chunk."""

    codes: tuple[int, ...]
    duration_s: float
    sample_rate: int = FINGERPRINT_SAMPLE_RATE

    @property
    def chunk_count(self) -> int:
        return len(self.codes)

    def as_array(self) -> np.ndarray:
        return np.asarray(self.codes, dtype=np.uint32)

    def __len__(self) -> int:
        return len(self.codes)


@dataclass(frozen=True, slots=True)
class SilenceRegion:
    start_ms: float
    end_ms: float

    @property
    def duration_ms(self) -> float:
        return self.end_ms - self.start_ms


@dataclass(frozen=True, slots=True)
class SilenceResult:
    regions: tuple[SilenceRegion, ...]
    audio_start_ms: float  # first non-silent instant
    audio_end_ms: float  # last non-silent instant
    total_silence_ms: float
    total_duration_ms: float
