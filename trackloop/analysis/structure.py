"""
Structure Segmenter.

Splits a track into parts at significant change points of its smoothed
energy, spectral centroid and zero-crossing rate:

1. Extract and smooth the feature series
2. Score every interior frame by comparing the look-back and look-ahead means
3. Accept change points above threshold that are far enough apart
4. Turn change points into parts, merging a too-short trailing remainder
5. Number, classify and describe each part
"""

from __future__ import annotations

import logging

import numpy as np
from numba import njit

from trackloop.analysis.constants import DEFAULT_STRUCTURE_CONFIG, StructureConfig
from trackloop.analysis.features import FeatureSeries, extract_features, moving_average
from trackloop.models import Part, SongStructure


@njit(cache=True, fastmath=True)
def _change_scores(
    energy: np.ndarray,
    centroid: np.ndarray,
    zcr: np.ndarray,
    window: int,
    energy_weight: float,
    centroid_weight: float,
    zcr_weight: float,
    epsilon: float,
) -> np.ndarray:
    """Weighted relative change between the `window` frames before and after each index."""
    n = energy.shape[0]
    scores = np.zeros(n, dtype=np.float64)

    for i in range(window, n - window):
        prev_e = np.mean(energy[i - window:i])
        next_e = np.mean(energy[i:i + window])
        prev_c = np.mean(centroid[i - window:i])
        next_c = np.mean(centroid[i:i + window])
        prev_z = np.mean(zcr[i - window:i])
        next_z = np.mean(zcr[i:i + window])

        scores[i] = (
            energy_weight * abs(next_e - prev_e) / (prev_e + epsilon)
            + centroid_weight * abs(next_c - prev_c) / (prev_c + epsilon)
            + zcr_weight * abs(next_z - prev_z) / (prev_z + epsilon)
        )

    return scores


def change_scores(features: FeatureSeries, config: StructureConfig = DEFAULT_STRUCTURE_CONFIG) -> np.ndarray:
    """Change score per frame of the smoothed feature series (0 near the edges)."""
    width = config.smoothing_window
    return _change_scores(
        moving_average(features.energy, width),
        moving_average(features.spectral_centroid, width),
        moving_average(features.zero_crossing_rate, width),
        config.analysis_window,
        config.energy_weight,
        config.centroid_weight,
        config.zcr_weight,
        config.epsilon,
    )


def find_change_points(
    scores: np.ndarray,
    config: StructureConfig = DEFAULT_STRUCTURE_CONFIG,
) -> list[tuple[int, float]]:
    """(frame index, confidence) of accepted change points, in time order."""
    min_distance = int(config.min_part_seconds / config.hop_seconds)
    change_points: list[tuple[int, float]] = []

    for i in range(min_distance, len(scores) - min_distance):
        score = float(scores[i])
        if score <= config.change_threshold:
            continue
        if change_points and i - change_points[-1][0] <= min_distance:
            continue
        change_points.append((i, min(config.max_confidence, score)))

    return change_points


def classify_segment(
    energy: float,
    centroid: float,
    zcr: float,
    config: StructureConfig = DEFAULT_STRUCTURE_CONFIG,
) -> str:
    if energy < config.breakdown_energy:
        return "breakdown"
    if energy > config.drop_energy and centroid > config.drop_centroid:
        return "drop"
    if zcr > config.verse_zcr:
        return "verse"
    if energy >= config.chorus_energy:
        return "chorus"
    return "bridge"


def describe_part(index: int, end: float, duration: float) -> str:
    """Human-readable label from the part's position in the track."""
    percent = end / duration * 100 if duration > 0 else 100.0

    if index == 0:
        return "Intro"
    if percent > 85:
        return "Outro"
    if percent < 20:
        return "Early Section"
    if percent < 40:
        return "Build Section"
    if percent < 60:
        return "Main Section"
    if percent < 80:
        return "Late Section"
    return "Final Section"


def _segment_means(features: FeatureSeries, start: float, end: float) -> tuple[float, float, float]:
    n = len(features)
    if n == 0:
        return 0.0, 0.0, 0.0
    lo = min(int(start * features.sr / features.hop), n - 1)
    hi = max(lo + 1, min(int(end * features.sr / features.hop), n))
    return (
        float(np.mean(features.energy[lo:hi])),
        float(np.mean(features.spectral_centroid[lo:hi])),
        float(np.mean(features.zero_crossing_rate[lo:hi])),
    )


def segment_structure(
    audio: np.ndarray,
    sr: int,
    duration: float,
    config: StructureConfig = DEFAULT_STRUCTURE_CONFIG,
) -> SongStructure:
    """Partition a track into non-overlapping, time-ordered parts."""
    if duration <= 0 or sr <= 0:
        return SongStructure()

    features = extract_features(audio, sr, config.window_seconds, config.hop_seconds)
    change_points = find_change_points(change_scores(features, config), config) if len(features) else []

    parts: list[Part] = []
    current = 0.0

    for index, confidence in change_points:
        change_time = features.frame_to_seconds(index)
        if change_time >= duration:
            break
        if change_time - current >= config.min_part_seconds:
            parts.append(Part(start=current, end=change_time, confidence=confidence, number=len(parts) + 1))
            current = change_time

    remaining = duration - current
    if parts and remaining < config.final_part_min_seconds:
        parts[-1].end = duration
    elif remaining > 0:
        parts.append(Part(start=current, end=duration, confidence=config.final_confidence, number=len(parts) + 1))

    for i, part in enumerate(parts):
        part.type = classify_segment(*_segment_means(features, part.start, part.end), config)
        part.description = describe_part(i, part.end, duration)

    logging.info(f"Detected {len(parts)} parts from {len(change_points)} change points")
    return SongStructure(parts=parts)
