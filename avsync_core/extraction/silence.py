# avsync_core/extraction/silence.py
"""Silence interval detection via ffmpeg's silencedetect filter."""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING

from ..errors import ExtractionError, ExtractionTimeout
from ..models.media import SilenceRegion, SilenceResult
from .waveform import parse_duration

if TYPE_CHECKING:
    from ..io.runner import CommandRunner

_START_RE = re.compile(r"silence_start:\s*(-?[\d.]+)")
_END_RE = re.compile(r"silence_end:\s*(-?[\d.]+)")

# A trailing silence counts as the end of audio when it reaches this close to EOF.
_EOF_TOLERANCE_MS = 100.0


def parse_silencedetect(output: str) -> SilenceResult:
    """Build a SilenceResult from silencedetect stderr output."""
    total_s = parse_duration(output) or 0.0
    total_ms = total_s * 1000.0

    regions: list[SilenceRegion] = []
    pending_start: float | None = None
    for line in output.splitlines():
        m = _START_RE.search(line)
        if m:
            pending_start = max(0.0, float(m.group(1))) * 1000.0
            continue
        m = _END_RE.search(line)
        if m and pending_start is not None:
            regions.append(SilenceRegion(pending_start, float(m.group(1)) * 1000.0))
            pending_start = None

    # silencedetect omits silence_end when the file ends silent
    if pending_start is not None and total_ms > pending_start:
        regions.append(SilenceRegion(pending_start, total_ms))

    audio_start = 0.0
    audio_end = total_ms
    if regions:
        if regions[0].start_ms <= 0.0:
            audio_start = regions[0].end_ms
        if total_ms and regions[-1].end_ms >= total_ms - _EOF_TOLERANCE_MS:
            audio_end = regions[-1].start_ms

    return SilenceResult(
        regions=tuple(regions),
        audio_start_ms=audio_start,
        audio_end_ms=audio_end,
        total_silence_ms=sum(r.duration_ms for r in regions),
        total_duration_ms=total_ms,
    )


def detect_silence(
    file_path: str,
    runner: CommandRunner,
    tool_paths: dict[str, str],
    noise_db: float = -50.0,
    min_duration_s: float = 0.1,
    timeout: float | None = None,
) -> SilenceResult:
    """
    Run silencedetect over the first audio stream.

    Raises:
        ExtractionTimeout: If ffmpeg exceeds the timeout.
        ExtractionError: If ffmpeg fails.
    """
    cmd = [
        "ffmpeg", "-nostdin", "-hide_banner",
        "-i", str(file_path),
        "-vn", "-map", "0:a:0",
        "-af", f"silencedetect=noise={noise_db:g}dB:d={min_duration_s:g}",
        "-f", "null", "-",
    ]
    out = runner.run(cmd, tool_paths, timeout=timeout)
    if out is None:
        if getattr(runner, "timed_out", False):
            raise ExtractionTimeout(f"silencedetect timed out for {Path(file_path).name}")
        raise ExtractionError(f"silencedetect failed for {Path(file_path).name}")
    return parse_silencedetect(out)
