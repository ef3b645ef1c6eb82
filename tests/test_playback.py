import numpy as np
import pytest

from trackloop.exceptions import DecodeError
from trackloop.playback import PlaybackHandler, format_clock, load_playback_audio


def ramp(n):
    return np.arange(n, dtype=np.float32)[:, None]


def test_fill_wraps_around_the_loop_region():
    handler = PlaybackHandler()
    handler.region = (2, 5)
    out = np.full((10, 1), -1.0, dtype=np.float32)

    handler._fill(ramp(8), out, 10)

    assert out[:, 0].tolist() == [0, 1, 2, 3, 4, 2, 3, 4, 2, 3]
    assert handler.position == 4
    assert handler.repeats == 2


def test_fill_without_region_advances_linearly():
    handler = PlaybackHandler()
    handler.position = 3
    out = np.zeros((4, 1), dtype=np.float32)

    handler._fill(ramp(100), out, 4)

    assert out[:, 0].tolist() == [3, 4, 5, 6]
    assert handler.position == 7


@pytest.mark.parametrize("start, end", [(5, 5), (6, 2), (-1, 4), (0, 101)])
def test_play_looping_rejects_invalid_regions(start, end):
    with pytest.raises(ValueError):
        PlaybackHandler().play_looping(ramp(100), 44100, start, end)


def test_format_clock():
    assert format_clock(0) == "00:00"
    assert format_clock(125.4) == "02:05"
    assert format_clock(119.7) == "01:59"
    assert format_clock(3599.9) == "59:59"


def test_load_playback_audio(write_wav):
    path = write_wav("stereo.wav", np.zeros((800, 2), dtype=np.float32), 8000)
    data, sr = load_playback_audio(path)
    assert data.shape == (800, 2)
    assert data.dtype == np.float32
    assert sr == 8000


def test_load_playback_audio_missing_file(tmp_path):
    with pytest.raises(DecodeError):
        load_playback_audio(tmp_path / "gone.wav")
