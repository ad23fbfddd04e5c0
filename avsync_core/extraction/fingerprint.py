# avsync_core/extraction/fingerprint.py
"""
Chromaprint fingerprint generation via the external fpcalc tool.

Windows that do not start at zero are first cut to a temporary WAV with
ffmpeg; the temporary directory is removed on every exit path.
"""

from __future__ import annotations

import base64
import json
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

from ..errors import ExtractionError, ExtractionTimeout
from ..models.media import FINGERPRINT_SAMPLE_RATE, Fingerprint

if TYPE_CHECKING:
    from ..io.runner import CommandRunner


def decode_fingerprint_codes(raw) -> tuple[int, ...]:
    """
    Convert fpcalc's fingerprint field into unsigned 32-bit codes.

    ``-raw`` output is a list (JSON) or comma-separated string of integers;
    anything else is treated as base64 of little-endian uint32 values.
    """
    if isinstance(raw, list):
        values = raw
    elif isinstance(raw, str) and raw and all(c.isdigit() or c in ",- " for c in raw):
        values = [int(v) for v in raw.split(",") if v.strip()]
    elif isinstance(raw, str) and raw:
        padded = raw.replace("-", "+").replace("_", "/")
        padded += "=" * (-len(padded) % 4)
        try:
            buf = base64.b64decode(padded)
        except ValueError as e:
            raise ExtractionError(f"Unreadable fingerprint payload: {e}") from e
        usable = (len(buf) // 4) * 4
        return tuple(int(v) for v in np.frombuffer(buf[:usable], dtype="<u4"))
    else:
        return ()
    return tuple(int(v) & 0xFFFFFFFF for v in values)


def parse_fpcalc_output(output: str) -> Fingerprint:
    try:
        data = json.loads(output)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"fpcalc produced invalid JSON: {e}") from e
    codes = decode_fingerprint_codes(data.get("fingerprint"))
    return Fingerprint(
        codes=codes,
        duration_s=float(data.get("duration") or 0.0),
        sample_rate=FINGERPRINT_SAMPLE_RATE,
    )


def _run_fpcalc(
    path: str,
    runner: CommandRunner,
    tool_paths: dict[str, str],
    duration_s: float | None,
    timeout: float | None,
) -> Fingerprint:
    cmd = ["fpcalc", "-raw", "-json"]
    if duration_s is not None:
        # -length 0 lifts fpcalc's default 120 s cap
        cmd.extend(["-length", str(max(0, int(round(duration_s))))])
    cmd.append(str(path))

    out = runner.run(cmd, tool_paths, timeout=timeout)
    if out is None:
        if getattr(runner, "timed_out", False):
            raise ExtractionTimeout(f"fpcalc timed out for {Path(path).name}")
        raise ExtractionError(f"fpcalc failed for {Path(path).name}")
    return parse_fpcalc_output(out)


def generate_fingerprint(
    file_path: str,
    runner: CommandRunner,
    tool_paths: dict[str, str],
    start_s: float | None = None,
    duration_s: float | None = None,
    timeout: float | None = None,
) -> Fingerprint:
    """
    Fingerprint a file, or the window [start_s, start_s + duration_s).

    Raises:
        ExtractionTimeout: If ffmpeg or fpcalc exceeds the timeout.
        ExtractionError: If either tool fails or output is unusable.
    """
    if not start_s:
        return _run_fpcalc(file_path, runner, tool_paths, duration_s, timeout)

    with tempfile.TemporaryDirectory(prefix="avsync_fp_") as temp_dir:
        segment_path = Path(temp_dir) / "segment.wav"
        cmd = ["ffmpeg", "-nostdin", "-v", "error", "-y", "-ss", f"{start_s:.3f}", "-i", str(file_path)]
        if duration_s is not None:
            cmd.extend(["-t", f"{duration_s:.3f}"])
        cmd.extend(["-vn", "-ar", str(FINGERPRINT_SAMPLE_RATE), "-ac", "1", str(segment_path)])

        if runner.run(cmd, tool_paths, timeout=timeout) is None:
            if getattr(runner, "timed_out", False):
                raise ExtractionTimeout(f"ffmpeg segment cut timed out for {Path(file_path).name}")
            raise ExtractionError(f"ffmpeg segment cut failed for {Path(file_path).name}")

        return _run_fpcalc(str(segment_path), runner, tool_paths, duration_s, timeout)
