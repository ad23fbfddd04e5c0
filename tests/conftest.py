# tests/conftest.py
import pytest

from avsync_core.models.settings import AnalysisSettings
from tests.fakes import SR, FakeMediaProvider, make_bursts


@pytest.fixture
def capture_log():
    lines = []
    def cb(msg: str):
        lines.append(msg)
    return lines, cb


@pytest.fixture
def bursts():
    return make_bursts(30.0)


@pytest.fixture
def settings():
    """Fast settings: no silence or fingerprint stages unless a test enables them."""
    return AnalysisSettings(use_fingerprinting=False, detect_silence=False, max_workers=2)


@pytest.fixture
def provider_for():
    """Build a FakeMediaProvider serving `<name>.wav` for each keyword argument."""
    def build(**waveforms):
        files = {f"{name}.wav": samples for name, samples in waveforms.items()}
        return FakeMediaProvider(waveforms=files, sample_rate=SR)
    return build
