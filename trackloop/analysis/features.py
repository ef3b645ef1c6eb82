"""
Audio Feature Extraction Module.

Per-window scalar features over mono PCM:
- Energy: mean squared amplitude
- Spectral centroid: magnitude-weighted frequency bin, normalized by window length
- Zero-crossing rate: fraction of adjacent samples changing sign

Window and hop lengths are given in seconds and converted with
floor(seconds * sample_rate). All functions are pure.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from scipy.fft import rfft

# Windows processed per vectorized call
FRAME_CHUNK = 256


@dataclass(slots=True, frozen=True)
class FeatureSeries:
    """Immutable container for per-window feature series."""

    energy: np.ndarray
    spectral_centroid: np.ndarray
    zero_crossing_rate: np.ndarray

    sr: int
    window: int  # Samples per window
    hop: int  # Samples between window starts

    def __len__(self) -> int:
        return len(self.energy)

    def frame_to_seconds(self, index: int) -> float:
        return index * self.hop / self.sr


def to_samples(seconds: float, sr: int) -> int:
    return int(np.floor(seconds * sr))


def next_power_of_two(n: int) -> int:
    return 1 << max(0, int(n) - 1).bit_length()


def window_starts(n_samples: int, window: int, hop: int, include_last: bool = False) -> np.ndarray:
    """Start offsets of every window fitting in the buffer.

    By default a window is only emitted when it ends strictly before the end of
    the buffer; ``include_last`` also keeps a window ending exactly on it.
    """
    stop = n_samples - window + (1 if include_last else 0)
    if window <= 0 or hop <= 0 or stop <= 0:
        return np.zeros(0, dtype=np.int64)
    return np.arange(0, stop, hop, dtype=np.int64)


def frame_energy(audio: np.ndarray, starts: np.ndarray, window: int) -> np.ndarray:
    """Mean squared amplitude per window; equal windows get bit-identical energies."""
    energy = np.zeros(len(starts), dtype=np.float64)
    if len(starts) == 0:
        return energy

    frames = sliding_window_view(audio, window)
    for chunk_start in range(0, len(starts), FRAME_CHUNK):
        chunk = starts[chunk_start:chunk_start + FRAME_CHUNK]
        energy[chunk_start:chunk_start + len(chunk)] = np.mean(np.square(frames[chunk], dtype=np.float64), axis=1)

    return energy


def frame_zero_crossing_rate(audio: np.ndarray, starts: np.ndarray, window: int) -> np.ndarray:
    if len(starts) == 0 or window < 2:
        return np.zeros(len(starts), dtype=np.float64)
    positive = audio >= 0
    changes = (positive[1:] != positive[:-1]).astype(np.int64)
    cumulative = np.concatenate(([0], np.cumsum(changes)))
    # Pairs (j-1, j) for j in [start+1, start+window) map to changes[start:start+window-1]
    crossings = cumulative[starts + window - 1] - cumulative[starts]
    return crossings / (window - 1)


def frame_spectral_centroid(audio: np.ndarray, starts: np.ndarray, window: int) -> np.ndarray:
    centroid = np.zeros(len(starts), dtype=np.float64)
    if len(starts) == 0:
        return centroid

    # Zero-padded to a power of two for the fast transform
    n_fft = next_power_of_two(window)
    frames = sliding_window_view(audio, window)
    bins = np.arange(n_fft // 2 + 1, dtype=np.float64)

    for chunk_start in range(0, len(starts), FRAME_CHUNK):
        chunk = starts[chunk_start:chunk_start + FRAME_CHUNK]
        magnitude = np.abs(rfft(frames[chunk], n=n_fft, axis=1))
        total = magnitude.sum(axis=1)
        weighted = magnitude @ bins
        silent = total <= 0
        centroid[chunk_start:chunk_start + len(chunk)] = np.where(
            silent, 0.0, weighted / np.where(silent, 1.0, total) / window
        )

    return centroid


def extract_features(
    audio: np.ndarray,
    sr: int,
    window_seconds: float,
    hop_seconds: float,
    include_last: bool = False,
) -> FeatureSeries:
    """Compute energy, spectral centroid and zero-crossing rate series."""
    audio = np.asarray(audio, dtype=np.float32)
    window = to_samples(window_seconds, sr)
    hop = to_samples(hop_seconds, sr)
    starts = window_starts(len(audio), window, hop, include_last=include_last)

    return FeatureSeries(
        energy=frame_energy(audio, starts, window),
        spectral_centroid=frame_spectral_centroid(audio, starts, window),
        zero_crossing_rate=frame_zero_crossing_rate(audio, starts, window),
        sr=sr,
        window=window,
        hop=hop,
    )


def moving_average(values: np.ndarray, width: int) -> np.ndarray:
    """Centered moving average; windows shrink at the edges instead of wrapping."""
    values = np.asarray(values, dtype=np.float64)
    n = len(values)
    if n == 0 or width <= 1:
        return values.copy()

    half = width // 2
    cumulative = np.concatenate(([0.0], np.cumsum(values)))
    idx = np.arange(n)
    lo = np.maximum(0, idx - half)
    hi = np.minimum(n - 1, idx + half) + 1
    return (cumulative[hi] - cumulative[lo]) / (hi - lo)
