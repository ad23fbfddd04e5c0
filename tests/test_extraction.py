# tests/test_extraction.py
import base64
import json
from pathlib import Path

import numpy as np
import pytest

from avsync_core.errors import ExtractionError, ExtractionTimeout
from avsync_core.extraction import (
    decode_fingerprint_codes,
    decode_waveform,
    detect_silence,
    generate_fingerprint,
    parse_duration,
    parse_fpcalc_output,
    parse_silencedetect,
    probe_duration,
)
from tests.fakes import FakeCommandRunner

SILENCE_LOG = """\
Input #0, matroska,webm, from 'episode.mkv':
  Duration: 00:00:42.50, start: 0.000000, bitrate: 2000 kb/s
[silencedetect @ 0x55] silence_start: -0.0123
[silencedetect @ 0x55] silence_end: 1.25 | silence_duration: 1.26
[silencedetect @ 0x55] silence_start: 20
[silencedetect @ 0x55] silence_end: 20.5 | silence_duration: 0.5
[silencedetect @ 0x55] silence_start: 41
"""


def test_decode_waveform_builds_mono_float_samples():
    samples = np.array([0.0, 0.5, -0.25, 2.0], dtype=np.float32)
    runner = FakeCommandRunner({"ffmpeg": samples.tobytes() + b"\x00\x01"})

    wave = decode_waveform("movie.mkv", 8000, runner, {}, start_s=3.0, duration_s=10.0)

    assert wave.samples.tolist() == [0.0, 0.5, -0.25, 1.0]
    assert wave.sample_rate == 8000
    assert wave.peak == 1.0
    cmd = runner.calls[0]
    assert cmd[cmd.index("-ss") + 1] == "3.000"
    assert cmd[cmd.index("-t") + 1] == "10.000"
    assert cmd[cmd.index("-ar") + 1] == "8000"
    assert "f32le" in cmd


def test_decode_waveform_failure_and_timeout():
    with pytest.raises(ExtractionError):
        decode_waveform("movie.mkv", 8000, FakeCommandRunner({}), {})

    with pytest.raises(ExtractionTimeout):
        decode_waveform("movie.mkv", 8000, FakeCommandRunner({}, timed_out=True), {})


def test_timeout_is_an_extraction_error():
    assert issubclass(ExtractionTimeout, ExtractionError)


def test_parse_duration():
    assert parse_duration("  Duration: 01:02:03.50, start") == pytest.approx(3723.5)
    assert parse_duration("no banner here") is None


def test_probe_duration_reads_banner():
    runner = FakeCommandRunner({"ffmpeg": SILENCE_LOG})
    assert probe_duration("episode.mkv", runner, {}) == pytest.approx(42.5)

    with pytest.raises(ExtractionError):
        probe_duration("episode.mkv", FakeCommandRunner({"ffmpeg": "garbage"}), {})


def test_parse_silencedetect_regions_and_bounds():
    result = parse_silencedetect(SILENCE_LOG)

    assert [(r.start_ms, r.end_ms) for r in result.regions] == [
        (0.0, 1250.0),
        (20000.0, 20500.0),
        (41000.0, 42500.0),
    ]
    assert result.audio_start_ms == 1250.0
    assert result.audio_end_ms == 41000.0
    assert result.total_duration_ms == 42500.0
    assert result.total_silence_ms == pytest.approx(1250.0 + 500.0 + 1500.0)


def test_detect_silence_passes_filter_parameters():
    runner = FakeCommandRunner({"ffmpeg": SILENCE_LOG})
    result = detect_silence("episode.mkv", runner, {}, noise_db=-45.0, min_duration_s=0.25)
    assert len(result.regions) == 3
    cmd = runner.calls[0]
    assert cmd[cmd.index("-af") + 1] == "silencedetect=noise=-45dB:d=0.25"


def test_fingerprint_codes_from_list_and_string():
    assert decode_fingerprint_codes([1, 2, -1]) == (1, 2, 0xFFFFFFFF)
    assert decode_fingerprint_codes("10,20,30") == (10, 20, 30)
    assert decode_fingerprint_codes(None) == ()


def test_fingerprint_codes_from_base64():
    values = np.array([7, 0xDEADBEEF, 42], dtype="<u4")
    payload = base64.urlsafe_b64encode(values.tobytes()).decode().rstrip("=")
    assert decode_fingerprint_codes(payload) == (7, 0xDEADBEEF, 42)


def test_parse_fpcalc_output():
    fp = parse_fpcalc_output(json.dumps({"duration": 12.5, "fingerprint": [5, 6, 7]}))
    assert fp.codes == (5, 6, 7)
    assert fp.duration_s == 12.5
    assert fp.as_array().dtype == np.uint32

    with pytest.raises(ExtractionError):
        parse_fpcalc_output("not json")


def test_whole_file_fingerprint_uses_length_flag():
    runner = FakeCommandRunner({"fpcalc": json.dumps({"duration": 300, "fingerprint": [1]})})
    generate_fingerprint("a.mkv", runner, {}, duration_s=300.0)
    generate_fingerprint("a.mkv", runner, {}, duration_s=0.0)

    first, second = runner.calls
    assert first[first.index("-length") + 1] == "300"
    assert second[second.index("-length") + 1] == "0"
    assert first[-1] == "a.mkv"


def test_windowed_fingerprint_cuts_a_temporary_segment():
    seen = []

    def fpcalc(cmd):
        seen.append(Path(cmd[-1]))
        return json.dumps({"duration": 30, "fingerprint": [9, 9]})

    runner = FakeCommandRunner({"ffmpeg": "", "fpcalc": fpcalc})
    fp = generate_fingerprint("a.mkv", runner, {}, start_s=60.0, duration_s=30.0)

    assert fp.codes == (9, 9)
    cut = runner.calls[0]
    assert cut[0] == "ffmpeg"
    assert cut[cut.index("-ss") + 1] == "60.000"
    assert cut[-1] == str(seen[0])
    assert not seen[0].parent.exists()


def test_windowed_fingerprint_failure_still_cleans_up():
    runner = FakeCommandRunner({"ffmpeg": ""})
    with pytest.raises(ExtractionError):
        generate_fingerprint("a.mkv", runner, {}, start_s=10.0, duration_s=30.0)
    segment = Path(runner.calls[0][-1])
    assert not segment.parent.exists()
