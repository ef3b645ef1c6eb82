"""
Analysis Constants - All thresholds and parameters.

Centralized configuration for every analyzer. The thresholds below are
empirically tuned defaults, not derived values; each analyzer takes its
config object as an argument so they can be tuned per deployment.
"""

from __future__ import annotations

from dataclasses import dataclass

# ============================================================================
# PITCH CLASSES & KEY PROFILES
# ============================================================================

PITCH_CLASSES = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")

# Krumhansl-Kessler key profiles (tonic first)
MAJOR_PROFILE = (6.35, 2.23, 3.48, 2.33, 4.38, 4.09, 2.52, 5.19, 2.39, 3.66, 2.29, 2.88)
MINOR_PROFILE = (6.33, 2.68, 3.52, 5.38, 2.60, 3.53, 2.54, 4.75, 3.98, 2.69, 3.34, 3.17)

MINOR_SUFFIX = "m"

# ============================================================================
# STRUCTURAL LABELS
# ============================================================================

SEGMENT_TYPES = ("breakdown", "drop", "verse", "chorus", "bridge")
CUSTOM_LOOP_TYPE = "custom"


# ============================================================================
# BPM
# ============================================================================

@dataclass(frozen=True)
class BpmConfig:
    min_bpm: float = 60.0
    max_bpm: float = 200.0
    bpm_step: float = 0.5
    window_seconds: float = 2.0  # Autocorrelation window
    hop_seconds: float = 1.0  # Beatgrid hop
    beatgrid_window_seconds: float = 4.0
    default_bpm: float = 120.0
    # Move to double tempo while it scores at least this fraction of the pick
    octave_ratio: float = 0.5


# ============================================================================
# KEY
# ============================================================================

@dataclass(frozen=True)
class KeyConfig:
    default_key: str = "C"
    detect_minor: bool = True
    n_fft: int = 2048
    hop_length: int = 512
    silence_energy: float = 1e-8  # Mean squared amplitude below which audio is silent


# ============================================================================
# STRUCTURE
# ============================================================================

@dataclass(frozen=True)
class StructureConfig:
    window_seconds: float = 0.1  # 100ms windows
    hop_seconds: float = 0.05  # 50ms hop
    min_part_seconds: float = 8.0
    final_part_min_seconds: float = 5.0  # Shorter trailing remainders merge into the previous part
    change_threshold: float = 0.6
    smoothing_window: int = 5
    analysis_window: int = 20  # Frames compared before/after a candidate change point
    energy_weight: float = 0.5
    centroid_weight: float = 0.3
    zcr_weight: float = 0.2
    epsilon: float = 0.001
    max_confidence: float = 0.95
    final_confidence: float = 0.8

    # Segment type classification
    breakdown_energy: float = 0.005  # Below: breakdown
    drop_energy: float = 0.1  # Above (with bright centroid): drop
    drop_centroid: float = 0.25
    verse_zcr: float = 0.2  # Above: verse
    chorus_energy: float = 0.02  # Above: chorus, else bridge


# ============================================================================
# LOOPS
# ============================================================================

@dataclass(frozen=True)
class LoopConfig:
    min_loop_score: float = 0.6
    window_seconds: float = 4.0  # Activity window for the whole-track pass
    hop_seconds: float = 1.0
    energy_threshold: float = 0.2
    centroid_threshold: float = 0.3
    rhythmic_window_seconds: float = 0.5
    harmonic_window_seconds: float = 0.1
    beats_per_bar: int = 4
    loop_hop_seconds: float = 0.5
    bar_counts: tuple[int, ...] = (4, 8, 16)
    segment_types: tuple[str, ...] = SEGMENT_TYPES

    # Score blend
    energy_weight: float = 0.3
    centroid_weight: float = 0.2
    zcr_weight: float = 0.2
    rhythmic_weight: float = 0.2
    harmonic_weight: float = 0.1


DEFAULT_BPM_CONFIG = BpmConfig()
DEFAULT_KEY_CONFIG = KeyConfig()
DEFAULT_STRUCTURE_CONFIG = StructureConfig()
DEFAULT_LOOP_CONFIG = LoopConfig()
