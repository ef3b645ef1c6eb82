"""
Shared fixtures for the test suite.

Signal builders live in ``signals.py``; the fixtures here write them to disk
and bind a TrackLibrary to a temporary directory.
"""

import pytest
import soundfile as sf

from trackloop.analysis.backends import DspBackend
from trackloop.library import TrackLibrary
from trackloop.models import MusicTags


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the host's trackloop settings out of the tests."""
    for name in ("TRACKLOOP_BACKEND", "TRACKLOOP_LIBRARY", "TRACKLOOP_DEBUG", "TRACKLOOP_VERBOSE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def write_wav(tmp_path):
    """Write a mono float buffer as 16-bit PCM WAV; returns the path."""
    def _write(name, audio, sr):
        path = tmp_path / name
        sf.write(path, audio, sr, subtype="PCM_16")
        return path
    return _write


@pytest.fixture
def fixed_tags():
    return lambda path: MusicTags(title="Fixed", artist="Tester", album="Tests", genre="Noise")


@pytest.fixture
def library(tmp_path):
    return TrackLibrary(tmp_path / "library", backend=DspBackend())
