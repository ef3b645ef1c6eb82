"""
BPM Estimator.

Scores every candidate tempo on a fixed BPM grid by sample-level
autocorrelation at the candidate's beat period, picks the best candidate and
resolves tempo-octave ambiguity. The beatgrid re-runs the estimate over short
sliding windows.
"""

from __future__ import annotations

import numpy as np
from numba import njit

from trackloop.analysis.constants import DEFAULT_BPM_CONFIG, BpmConfig
from trackloop.analysis.features import to_samples, window_starts
from trackloop.models import BeatGridPoint


def candidate_bpms(config: BpmConfig = DEFAULT_BPM_CONFIG) -> np.ndarray:
    """Ascending BPM grid from min_bpm to max_bpm (inclusive)."""
    count = int(round((config.max_bpm - config.min_bpm) / config.bpm_step)) + 1
    return config.min_bpm + config.bpm_step * np.arange(count, dtype=np.float64)


def bpm_to_period(bpms: np.ndarray, sr: int) -> np.ndarray:
    """Beat period in samples, rounded half up."""
    return np.floor(60.0 * sr / bpms + 0.5).astype(np.int64)


@njit(cache=True)
def _periodicity_scores(audio: np.ndarray, periods: np.ndarray, window_size: int) -> np.ndarray:
    """Mean of audio[i] * audio[i + period] over the offsets the window allows.

    Candidates with no valid offset score -inf.
    """
    n = audio.shape[0]
    scores = np.full(periods.shape[0], -np.inf)

    for k in range(periods.shape[0]):
        period = periods[k]
        if period <= 0:
            continue
        max_offset = min(2 * period, window_size - period, n - period)
        if max_offset <= 0:
            continue
        total = 0.0
        for i in range(max_offset):
            total += audio[i] * audio[i + period]
        scores[k] = total / max_offset

    return scores


def _resolve_tempo_octave(bpms: np.ndarray, scores: np.ndarray, best: int, ratio: float) -> int:
    """Prefer double tempo while it scores within `ratio` of the current pick."""
    while True:
        doubled = np.flatnonzero(np.isclose(bpms, bpms[best] * 2.0))
        if len(doubled) == 0:
            return best
        candidate = int(doubled[0])
        if scores[candidate] <= 0 or scores[candidate] < ratio * scores[best]:
            return best
        best = candidate


def score_candidates(
    audio: np.ndarray,
    sr: int,
    config: BpmConfig = DEFAULT_BPM_CONFIG,
) -> tuple[np.ndarray, np.ndarray]:
    """Return the BPM grid and the periodicity score of each candidate."""
    bpms = candidate_bpms(config)
    samples = np.ascontiguousarray(audio, dtype=np.float64)
    if samples.size == 0 or sr <= 0:
        return bpms, np.full(len(bpms), -np.inf)

    periods = bpm_to_period(bpms, sr)
    window_size = to_samples(config.window_seconds, sr)
    return bpms, _periodicity_scores(samples, periods, window_size)


def estimate_bpm(audio: np.ndarray, sr: int, config: BpmConfig = DEFAULT_BPM_CONFIG) -> float:
    """Estimate the tempo of a mono buffer, rounded to one decimal place.

    Ties go to the lowest BPM (first in grid order). Buffers too short for
    every candidate period, silent or uncorrelated input return the default.
    """
    bpms, scores = score_candidates(audio, sr, config)

    # np.argmax returns the first maximum, which keeps ascending-BPM tie order
    best = int(np.argmax(scores))
    if not np.isfinite(scores[best]) or scores[best] <= 0:
        return config.default_bpm

    best = _resolve_tempo_octave(bpms, scores, best, config.octave_ratio)
    return round(float(bpms[best]), 1)


def beat_confidence(window: np.ndarray) -> float:
    """Signal-strength confidence: mean absolute amplitude clamped to [0, 1]."""
    if window.size == 0:
        return 0.0
    return float(min(np.mean(np.abs(window)), 1.0))


def estimate_beatgrid(
    audio: np.ndarray,
    sr: int,
    config: BpmConfig = DEFAULT_BPM_CONFIG,
) -> list[BeatGridPoint]:
    """Tempo re-estimated over sliding windows, one point per hop."""
    audio = np.asarray(audio, dtype=np.float32)
    window = to_samples(config.beatgrid_window_seconds, sr)
    hop = to_samples(config.hop_seconds, sr)

    beatgrid = []
    for start in window_starts(len(audio), window, hop):
        segment = audio[start:start + window]
        beatgrid.append(BeatGridPoint(
            time=float(start) / sr,
            bpm=estimate_bpm(segment, sr, config),
            confidence=beat_confidence(segment),
        ))

    return beatgrid
