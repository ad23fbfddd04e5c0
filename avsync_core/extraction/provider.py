# avsync_core/extraction/provider.py
"""
Media provider: the single boundary between analysis and external tools.

Detectors only ever see Waveform / Fingerprint / SilenceResult values, so any
object implementing the MediaSource protocol (for example an in-memory fake)
can stand in for the ffmpeg/fpcalc-backed MediaProvider.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from ..io.runner import CommandRunner
from ..models.media import Fingerprint, SilenceResult, Waveform
from .fingerprint import generate_fingerprint
from .silence import detect_silence
from .waveform import decode_waveform, probe_duration


class MediaSource(Protocol):
    """Protocol that every waveform/fingerprint provider must implement."""

    def extract_waveform(
        self,
        file_path: str,
        sample_rate: int,
        start_s: float | None = None,
        duration_s: float | None = None,
    ) -> Waveform: ...

    def detect_silence(self, file_path: str) -> SilenceResult: ...

    def fingerprint(
        self,
        file_path: str,
        start_s: float | None = None,
        duration_s: float | None = None,
    ) -> Fingerprint: ...

    def probe_duration(self, file_path: str) -> float: ...


class MediaProvider:
    """ffmpeg + fpcalc backed MediaSource with explicit tool paths and timeouts."""

    def __init__(
        self,
        tool_paths: dict[str, str] | None = None,
        extraction_timeout_s: float = 300.0,
        fingerprint_timeout_s: float = 120.0,
        silence_noise_db: float = -50.0,
        silence_min_duration_s: float = 0.1,
        log_callback: Callable[[str], None] | None = None,
        config: dict | None = None,
    ):
        self.tool_paths = dict(tool_paths or {})
        self.extraction_timeout_s = extraction_timeout_s
        self.fingerprint_timeout_s = fingerprint_timeout_s
        self.silence_noise_db = silence_noise_db
        self.silence_min_duration_s = silence_min_duration_s
        self._config = config or {}
        self._log_callback = log_callback

    @classmethod
    def from_settings(cls, settings, tool_paths=None, log_callback=None, config=None) -> MediaProvider:
        return cls(
            tool_paths=tool_paths,
            extraction_timeout_s=settings.extraction_timeout_s,
            fingerprint_timeout_s=settings.fingerprint_timeout_s,
            silence_noise_db=settings.silence_noise_db,
            silence_min_duration_s=settings.silence_min_duration_s,
            log_callback=log_callback,
            config=config,
        )

    def _runner(self) -> CommandRunner:
        # One runner per call: CommandRunner tracks per-run timeout state.
        return CommandRunner(self._config, self._log_callback)

    def extract_waveform(
        self,
        file_path: str,
        sample_rate: int,
        start_s: float | None = None,
        duration_s: float | None = None,
    ) -> Waveform:
        return decode_waveform(
            file_path,
            sample_rate,
            self._runner(),
            self.tool_paths,
            start_s=start_s,
            duration_s=duration_s,
            timeout=self.extraction_timeout_s,
        )

    def detect_silence(self, file_path: str) -> SilenceResult:
        return detect_silence(
            file_path,
            self._runner(),
            self.tool_paths,
            noise_db=self.silence_noise_db,
            min_duration_s=self.silence_min_duration_s,
            timeout=self.extraction_timeout_s,
        )

    def fingerprint(
        self,
        file_path: str,
        start_s: float | None = None,
        duration_s: float | None = None,
    ) -> Fingerprint:
        return generate_fingerprint(
            file_path,
            self._runner(),
            self.tool_paths,
            start_s=start_s,
            duration_s=duration_s,
            timeout=self.fingerprint_timeout_s,
        )

    def probe_duration(self, file_path: str) -> float:
        return probe_duration(
            file_path, self._runner(), self.tool_paths, timeout=self.extraction_timeout_s
        )
