"""Waveform / fingerprint / silence extraction through ffmpeg and fpcalc."""

from .fingerprint import decode_fingerprint_codes, generate_fingerprint, parse_fpcalc_output
from .provider import MediaProvider, MediaSource
from .silence import detect_silence, parse_silencedetect
from .waveform import decode_waveform, parse_duration, probe_duration

__all__ = [
    "MediaProvider",
    "MediaSource",
    "decode_fingerprint_codes",
    "decode_waveform",
    "detect_silence",
    "generate_fingerprint",
    "parse_duration",
    "parse_fpcalc_output",
    "parse_silencedetect",
    "probe_duration",
]
