import numpy as np
import pytest

from signals import click_track, impulse_train, uniform_noise
from trackloop.analysis.bpm import (
    beat_confidence,
    bpm_to_period,
    candidate_bpms,
    estimate_beatgrid,
    estimate_bpm,
)
from trackloop.analysis.constants import BpmConfig


def test_candidate_grid():
    bpms = candidate_bpms()
    assert bpms[0] == 60.0
    assert bpms[-1] == 200.0
    assert len(bpms) == 281
    assert np.allclose(np.diff(bpms), 0.5)


def test_bpm_to_period_rounds_half_up():
    assert bpm_to_period(np.array([120.0]), 8000).tolist() == [4000]
    assert bpm_to_period(np.array([130.0]), 22050).tolist() == [10177]


@pytest.mark.parametrize("period, sr, expected", [
    (4000, 8000, 120.0),
    (3000, 8000, 160.0),
    (11025, 22050, 120.0),
])
def test_impulse_train_returns_nearest_grid_bpm(period, sr, expected):
    audio = impulse_train(period, 10, sr)
    assert estimate_bpm(audio, sr) == expected


def test_click_track():
    sr = 22050
    assert estimate_bpm(click_track(130, 20, sr), sr) == pytest.approx(130.0, abs=0.5)


@pytest.mark.parametrize("audio", [
    np.zeros(0, dtype=np.float32),
    np.zeros(22050 * 3, dtype=np.float32),
    np.ones(100, dtype=np.float32),
])
def test_degenerate_input_returns_default(audio):
    assert estimate_bpm(audio, 22050) == 120.0


def test_configured_default():
    config = BpmConfig(default_bpm=100.0)
    assert estimate_bpm(np.zeros(10, dtype=np.float32), 22050, config) == 100.0


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_result_always_in_range(seed):
    sr = 8000
    bpm = estimate_bpm(uniform_noise(5, sr, 0.5, seed=seed), sr)
    assert 60.0 <= bpm <= 200.0


def test_beat_confidence():
    assert beat_confidence(np.zeros(0)) == 0.0
    assert beat_confidence(np.full(10, -0.25)) == pytest.approx(0.25)
    assert beat_confidence(np.full(10, 3.0)) == 1.0


def test_beatgrid_points_per_hop():
    sr = 8000
    audio = click_track(120, 20, sr)

    beatgrid = estimate_beatgrid(audio, sr)

    assert len(beatgrid) == 16  # ceil((20 - 4) / 1)
    assert [point.time for point in beatgrid] == [float(i) for i in range(16)]
    for point in beatgrid:
        assert 60.0 <= point.bpm <= 200.0
        assert 0.0 <= point.confidence <= 1.0


def test_beatgrid_shorter_than_window_is_empty():
    assert estimate_beatgrid(np.ones(8000 * 3, dtype=np.float32), 8000) == []


def test_beatgrid_is_deterministic():
    sr = 8000
    audio = click_track(128, 12, sr)
    assert estimate_beatgrid(audio, sr) == estimate_beatgrid(audio, sr)
