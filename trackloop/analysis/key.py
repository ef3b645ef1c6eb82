"""
Key Estimator.

Summarizes pitch-class content as a 12-bin chroma vector and correlates it
(dot product) with the Krumhansl-Kessler profile rotated to every tonic.
Major and minor profiles have different sums, so the mode is decided on
Pearson correlation (mean-centred chroma against unit-norm centred profiles).
"""

from __future__ import annotations

import librosa
import numpy as np

from trackloop.analysis.constants import (
    DEFAULT_KEY_CONFIG,
    MAJOR_PROFILE,
    MINOR_PROFILE,
    MINOR_SUFFIX,
    PITCH_CLASSES,
    KeyConfig,
)


def rotated_profiles(profile: tuple[float, ...]) -> np.ndarray:
    """(12, 12) matrix; row t is the profile with its tonic on pitch class t."""
    base = np.asarray(profile, dtype=np.float64)
    return np.stack([np.roll(base, tonic) for tonic in range(len(PITCH_CLASSES))])


def _normalized(profiles: np.ndarray) -> np.ndarray:
    centred = profiles - profiles.mean(axis=1, keepdims=True)
    return centred / np.linalg.norm(centred, axis=1, keepdims=True)


MAJOR_KEYS = rotated_profiles(MAJOR_PROFILE)
MINOR_KEYS = rotated_profiles(MINOR_PROFILE)
MAJOR_MODE = _normalized(MAJOR_KEYS)
MINOR_MODE = _normalized(MINOR_KEYS)


def extract_chroma(audio: np.ndarray, sr: int, config: KeyConfig = DEFAULT_KEY_CONFIG) -> np.ndarray:
    """Time-averaged chroma energy per pitch class (C first)."""
    audio = np.asarray(audio, dtype=np.float32)
    if audio.size < config.n_fft or sr <= 0:
        return np.zeros(len(PITCH_CLASSES), dtype=np.float64)

    chroma = librosa.feature.chroma_stft(
        y=audio,
        sr=sr,
        n_fft=config.n_fft,
        hop_length=config.hop_length,
        tuning=0.0,
    )
    return np.nan_to_num(np.mean(chroma, axis=1).astype(np.float64), nan=0.0)


def key_scores(chroma: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Dot-product correlation of a chroma vector with every major and minor key."""
    return MAJOR_KEYS @ chroma, MINOR_KEYS @ chroma


def mode_scores(chroma: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Pearson correlation with every major and minor key, up to the chroma norm."""
    centred = np.asarray(chroma, dtype=np.float64) - np.mean(chroma)
    return MAJOR_MODE @ centred, MINOR_MODE @ centred


def key_label(chroma: np.ndarray, config: KeyConfig = DEFAULT_KEY_CONFIG) -> str:
    """Best tonic by dot product; minor only when it correlates strictly better.

    Ties go to the first tonic in C, C#, ..., B order.
    """
    major, minor = key_scores(chroma)
    tonic = int(np.argmax(major))
    if not config.detect_minor:
        return PITCH_CLASSES[tonic]

    minor_tonic = int(np.argmax(minor))
    major_fit, minor_fit = mode_scores(chroma)
    if minor_fit[minor_tonic] > major_fit[tonic]:
        return PITCH_CLASSES[minor_tonic] + MINOR_SUFFIX
    return PITCH_CLASSES[tonic]


def estimate_key(audio: np.ndarray, sr: int, config: KeyConfig = DEFAULT_KEY_CONFIG) -> str:
    """Estimate the musical key label, e.g. "G" or "F#m".

    Silent or too-short input returns the configured default key.
    """
    audio = np.asarray(audio, dtype=np.float32)
    if audio.size == 0 or float(np.mean(np.square(audio, dtype=np.float64))) < config.silence_energy:
        return config.default_key

    chroma = extract_chroma(audio, sr, config)
    if not np.any(chroma > 0):
        return config.default_key

    return key_label(chroma, config)
