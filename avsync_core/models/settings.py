"""Analysis settings dataclass.

Single source of truth for every tunable threshold used by the detectors,
the consensus step, and the external tool boundary.

Settings are organized by category:
- Correlation: sample rate, search range, window layout
- Deep / quick modes: window overrides and duration caps
- Peaks: anchor extraction and matching policy
- Fingerprint: fpcalc comparison windows and thresholds
- Consensus: confidence gates used when fusing detectors
- Silence: ffmpeg silencedetect parameters
- Runtime: worker pool size and tool timeouts
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace


@dataclass
class AnalysisSettings:
    """Complete analysis settings with typed fields and defaults."""

    # =========================================================================
    # Cross-Correlation
    # =========================================================================
    sample_rate: int = 8000
    max_offset_s: float = 30.0
    window_size_s: float = 5.0
    step_size_s: float = 2.0
    min_overlap_ratio: float = 0.5
    refine_radius_samples: int = 50
    drift_min_confidence: float = 0.2

    # =========================================================================
    # Deep / Quick Modes
    # =========================================================================
    deep_analysis: bool = False
    deep_window_size_s: float = 3.0
    deep_step_size_s: float = 1.0
    analyze_duration_s: float | None = 300.0  # ignored in deep mode
    quick_max_offset_s: float = 10.0
    quick_window_size_s: float = 3.0
    quick_step_size_s: float = 3.0
    quick_duration_s: float = 60.0

    # =========================================================================
    # Peak / Anchor Detection
    # =========================================================================
    peak_sensitivity: float = 0.6
    peak_min_amplitude: float = 0.1
    peak_min_distance_ms: float = 50.0
    peak_match_tolerance_ms: float = 50.0
    peak_amplitude_ratio: float = 0.5
    peak_min_matches: int = 5
    peak_segment_window_ms: float = 10000.0
    peak_min_segment_matches: int = 2

    # =========================================================================
    # Fingerprint Comparison
    # =========================================================================
    use_fingerprinting: bool = True
    fingerprint_max_offset_s: float = 60.0
    fingerprint_min_confidence: float = 0.3
    fingerprint_window_s: float = 30.0
    fingerprint_step_s: float = 10.0
    fingerprint_segment_search_frames: int = 30
    fingerprint_segment_min_confidence: float = 0.2
    fingerprint_segment_analysis: bool = True

    # =========================================================================
    # Consensus & Decision
    # =========================================================================
    global_trust_confidence: float = 0.6
    consensus_min_confidence: float = 0.3
    unsyncable_confidence: float = 0.3
    in_sync_threshold_ms: float = 30.0
    structural_jump_ms: float = 500.0

    # =========================================================================
    # Silence Detection
    # =========================================================================
    detect_silence: bool = True
    silence_noise_db: float = -50.0
    silence_min_duration_s: float = 0.1

    # =========================================================================
    # Runtime
    # =========================================================================
    max_workers: int = 4
    extraction_timeout_s: float = 300.0
    fingerprint_timeout_s: float = 120.0

    @classmethod
    def from_config(cls, cfg: dict) -> AnalysisSettings:
        """Create AnalysisSettings from a config dictionary.

        Missing keys fall back to the dataclass defaults.
        """
        d = cls()
        analyze_duration = cfg.get("analyze_duration_s", d.analyze_duration_s)

        return cls(
            # Cross-Correlation
            sample_rate=int(cfg.get("sample_rate", d.sample_rate)),
            max_offset_s=float(cfg.get("max_offset_s", d.max_offset_s)),
            window_size_s=float(cfg.get("window_size_s", d.window_size_s)),
            step_size_s=float(cfg.get("step_size_s", d.step_size_s)),
            min_overlap_ratio=float(cfg.get("min_overlap_ratio", d.min_overlap_ratio)),
            refine_radius_samples=int(
                cfg.get("refine_radius_samples", d.refine_radius_samples)
            ),
            drift_min_confidence=float(
                cfg.get("drift_min_confidence", d.drift_min_confidence)
            ),
            # Deep / Quick Modes
            deep_analysis=bool(cfg.get("deep_analysis", d.deep_analysis)),
            deep_window_size_s=float(cfg.get("deep_window_size_s", d.deep_window_size_s)),
            deep_step_size_s=float(cfg.get("deep_step_size_s", d.deep_step_size_s)),
            analyze_duration_s=(
                float(analyze_duration) if analyze_duration is not None else None
            ),
            quick_max_offset_s=float(cfg.get("quick_max_offset_s", d.quick_max_offset_s)),
            quick_window_size_s=float(
                cfg.get("quick_window_size_s", d.quick_window_size_s)
            ),
            quick_step_size_s=float(cfg.get("quick_step_size_s", d.quick_step_size_s)),
            quick_duration_s=float(cfg.get("quick_duration_s", d.quick_duration_s)),
            # Peak / Anchor Detection
            peak_sensitivity=float(cfg.get("peak_sensitivity", d.peak_sensitivity)),
            peak_min_amplitude=float(cfg.get("peak_min_amplitude", d.peak_min_amplitude)),
            peak_min_distance_ms=float(
                cfg.get("peak_min_distance_ms", d.peak_min_distance_ms)
            ),
            peak_match_tolerance_ms=float(
                cfg.get("peak_match_tolerance_ms", d.peak_match_tolerance_ms)
            ),
            peak_amplitude_ratio=float(
                cfg.get("peak_amplitude_ratio", d.peak_amplitude_ratio)
            ),
            peak_min_matches=int(cfg.get("peak_min_matches", d.peak_min_matches)),
            peak_segment_window_ms=float(
                cfg.get("peak_segment_window_ms", d.peak_segment_window_ms)
            ),
            peak_min_segment_matches=int(
                cfg.get("peak_min_segment_matches", d.peak_min_segment_matches)
            ),
            # Fingerprint Comparison
            use_fingerprinting=bool(cfg.get("use_fingerprinting", d.use_fingerprinting)),
            fingerprint_max_offset_s=float(
                cfg.get("fingerprint_max_offset_s", d.fingerprint_max_offset_s)
            ),
            fingerprint_min_confidence=float(
                cfg.get("fingerprint_min_confidence", d.fingerprint_min_confidence)
            ),
            fingerprint_window_s=float(
                cfg.get("fingerprint_window_s", d.fingerprint_window_s)
            ),
            fingerprint_step_s=float(cfg.get("fingerprint_step_s", d.fingerprint_step_s)),
            fingerprint_segment_search_frames=int(
                cfg.get(
                    "fingerprint_segment_search_frames",
                    d.fingerprint_segment_search_frames,
                )
            ),
            fingerprint_segment_min_confidence=float(
                cfg.get(
                    "fingerprint_segment_min_confidence",
                    d.fingerprint_segment_min_confidence,
                )
            ),
            fingerprint_segment_analysis=bool(
                cfg.get("fingerprint_segment_analysis", d.fingerprint_segment_analysis)
            ),
            # Consensus & Decision
            global_trust_confidence=float(
                cfg.get("global_trust_confidence", d.global_trust_confidence)
            ),
            consensus_min_confidence=float(
                cfg.get("consensus_min_confidence", d.consensus_min_confidence)
            ),
            unsyncable_confidence=float(
                cfg.get("unsyncable_confidence", d.unsyncable_confidence)
            ),
            in_sync_threshold_ms=float(
                cfg.get("in_sync_threshold_ms", d.in_sync_threshold_ms)
            ),
            structural_jump_ms=float(cfg.get("structural_jump_ms", d.structural_jump_ms)),
            # Silence Detection
            detect_silence=bool(cfg.get("detect_silence", d.detect_silence)),
            silence_noise_db=float(cfg.get("silence_noise_db", d.silence_noise_db)),
            silence_min_duration_s=float(
                cfg.get("silence_min_duration_s", d.silence_min_duration_s)
            ),
            # Runtime
            max_workers=int(cfg.get("max_workers", d.max_workers)),
            extraction_timeout_s=float(
                cfg.get("extraction_timeout_s", d.extraction_timeout_s)
            ),
            fingerprint_timeout_s=float(
                cfg.get("fingerprint_timeout_s", d.fingerprint_timeout_s)
            ),
        )

    def to_dict(self) -> dict:
        """Convert settings to a plain dictionary (JSON-serializable)."""
        return asdict(self)

    def validate(self) -> None:
        """Raise ValueError for settings no analysis could run with."""
        positive = {
            "sample_rate": self.sample_rate,
            "window_size_s": self.window_size_s,
            "step_size_s": self.step_size_s,
            "deep_window_size_s": self.deep_window_size_s,
            "deep_step_size_s": self.deep_step_size_s,
            "quick_window_size_s": self.quick_window_size_s,
            "quick_step_size_s": self.quick_step_size_s,
            "quick_duration_s": self.quick_duration_s,
            "fingerprint_window_s": self.fingerprint_window_s,
            "fingerprint_step_s": self.fingerprint_step_s,
            "peak_segment_window_ms": self.peak_segment_window_ms,
            "max_workers": self.max_workers,
            "extraction_timeout_s": self.extraction_timeout_s,
            "fingerprint_timeout_s": self.fingerprint_timeout_s,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

        non_negative = {
            "max_offset_s": self.max_offset_s,
            "quick_max_offset_s": self.quick_max_offset_s,
            "fingerprint_max_offset_s": self.fingerprint_max_offset_s,
            "refine_radius_samples": self.refine_radius_samples,
            "peak_min_distance_ms": self.peak_min_distance_ms,
            "peak_match_tolerance_ms": self.peak_match_tolerance_ms,
            "peak_min_matches": self.peak_min_matches,
            "peak_min_segment_matches": self.peak_min_segment_matches,
            "fingerprint_segment_search_frames": self.fingerprint_segment_search_frames,
            "in_sync_threshold_ms": self.in_sync_threshold_ms,
            "structural_jump_ms": self.structural_jump_ms,
            "silence_min_duration_s": self.silence_min_duration_s,
        }
        for name, value in non_negative.items():
            if value < 0:
                raise ValueError(f"{name} must not be negative, got {value}")

        if self.analyze_duration_s is not None and self.analyze_duration_s <= 0:
            raise ValueError(
                f"analyze_duration_s must be positive or None, got {self.analyze_duration_s}"
            )

        unit_interval = {
            "min_overlap_ratio": self.min_overlap_ratio,
            "drift_min_confidence": self.drift_min_confidence,
            "peak_sensitivity": self.peak_sensitivity,
            "peak_min_amplitude": self.peak_min_amplitude,
            "peak_amplitude_ratio": self.peak_amplitude_ratio,
            "fingerprint_min_confidence": self.fingerprint_min_confidence,
            "fingerprint_segment_min_confidence": self.fingerprint_segment_min_confidence,
            "global_trust_confidence": self.global_trust_confidence,
            "consensus_min_confidence": self.consensus_min_confidence,
            "unsyncable_confidence": self.unsyncable_confidence,
        }
        for name, value in unit_interval.items():
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")

    @property
    def effective_window_size_s(self) -> float:
        return self.deep_window_size_s if self.deep_analysis else self.window_size_s

    @property
    def effective_step_size_s(self) -> float:
        return self.deep_step_size_s if self.deep_analysis else self.step_size_s

    @property
    def effective_duration_s(self) -> float | None:
        """Seconds of audio to decode; None means the whole file."""
        return None if self.deep_analysis else self.analyze_duration_s

    def for_deep_analysis(self) -> AnalysisSettings:
        return replace(self, deep_analysis=True)

    def for_quick_check(self) -> AnalysisSettings:
        """Settings used by the fast correlation-only gate."""
        return replace(
            self,
            deep_analysis=False,
            max_offset_s=self.quick_max_offset_s,
            window_size_s=self.quick_window_size_s,
            step_size_s=self.quick_step_size_s,
            analyze_duration_s=self.quick_duration_s,
        )
