# avsync_core/extraction/waveform.py
"""
Audio decoding for sync analysis.

Decodes the first audio stream of a media file to an in-memory mono float32
array via ffmpeg.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

from ..errors import ExtractionError, ExtractionTimeout
from ..models.media import Waveform

if TYPE_CHECKING:
    from ..io.runner import CommandRunner

_DURATION_RE = re.compile(r"Duration:\s*(\d+):(\d+):(\d+(?:\.\d+)?)")


def decode_waveform(
    file_path: str,
    sample_rate: int,
    runner: CommandRunner,
    tool_paths: dict[str, str],
    start_s: float | None = None,
    duration_s: float | None = None,
    timeout: float | None = None,
) -> Waveform:
    """
    Decode audio to a mono Waveform.

    Args:
        file_path: Path to the media file.
        sample_rate: Target sample rate in Hz.
        runner: CommandRunner for executing ffmpeg.
        tool_paths: Tool path dictionary.
        start_s: Optional seek position in seconds.
        duration_s: Optional maximum duration to decode.
        timeout: Seconds before ffmpeg is killed.

    Returns:
        Waveform (possibly empty when the stream has no samples).

    Raises:
        ExtractionTimeout: If ffmpeg exceeds the timeout.
        ExtractionError: If ffmpeg decode fails.
    """
    cmd: list[str] = ["ffmpeg", "-nostdin", "-v", "error"]
    if start_s:
        cmd.extend(["-ss", f"{start_s:.3f}"])
    cmd.extend(["-i", str(file_path)])
    if duration_s is not None:
        cmd.extend(["-t", f"{duration_s:.3f}"])
    cmd.extend(["-vn", "-map", "0:a:0", "-ac", "1", "-ar", str(sample_rate), "-f", "f32le", "-"])

    pcm_bytes = runner.run(cmd, tool_paths, is_binary=True, timeout=timeout)
    if pcm_bytes is None:
        if getattr(runner, "timed_out", False):
            raise ExtractionTimeout(f"ffmpeg decode timed out for {Path(file_path).name}")
        raise ExtractionError(f"ffmpeg decode failed for {Path(file_path).name}")
    if not isinstance(pcm_bytes, bytes):
        raise ExtractionError(f"ffmpeg returned non-binary output for {Path(file_path).name}")

    # Buffer size must be a multiple of the float32 element size
    element_size = np.dtype(np.float32).itemsize
    aligned_size = (len(pcm_bytes) // element_size) * element_size
    if aligned_size != len(pcm_bytes):
        runner._log_message(
            f"[DECODE] Trimmed {len(pcm_bytes) - aligned_size} bytes from {Path(file_path).name}"
        )
        pcm_bytes = pcm_bytes[:aligned_size]

    samples = np.frombuffer(pcm_bytes, dtype=np.float32)
    samples = np.nan_to_num(np.clip(samples, -1.0, 1.0))
    return Waveform.from_samples(samples, sample_rate)


def parse_duration(ffmpeg_output: str) -> float | None:
    """Seconds from an ffmpeg 'Duration: HH:MM:SS.xx' banner line."""
    m = _DURATION_RE.search(ffmpeg_output or "")
    if not m:
        return None
    hours, minutes, seconds = m.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def probe_duration(
    file_path: str,
    runner: CommandRunner,
    tool_paths: dict[str, str],
    timeout: float | None = None,
) -> float:
    """Media duration in seconds, read from ffmpeg's input banner."""
    out = runner.run(
        ["ffmpeg", "-nostdin", "-hide_banner", "-i", str(file_path), "-f", "null", "-t", "0", "-"],
        tool_paths,
        timeout=timeout,
    )
    if out is None:
        if getattr(runner, "timed_out", False):
            raise ExtractionTimeout(f"ffmpeg probe timed out for {Path(file_path).name}")
        raise ExtractionError(f"ffmpeg probe failed for {Path(file_path).name}")
    duration = parse_duration(out)
    if duration is None:
        raise ExtractionError(f"Could not read duration of {Path(file_path).name}")
    return duration
