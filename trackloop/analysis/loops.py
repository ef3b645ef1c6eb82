"""
Loop Candidate Finder.

Searches bar-aligned windows (4, 8 and 16 bars) inside every classified part
and across the whole track for the most loop-friendly passage. Audio is tiled
into non-overlapping blocks once; a candidate's score is built from the block
features it covers:

    0.3 * energy + 0.2 * centroid + 0.2 * (1 - zcr)
        + 0.2 * rhythmic consistency + 0.1 * harmonic consistency

Only the best offset per (region, loop length) is kept, and only when it
clears the minimum loop score.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

import numpy as np

from trackloop.analysis.constants import CUSTOM_LOOP_TYPE, DEFAULT_LOOP_CONFIG, LoopConfig
from trackloop.analysis.features import FeatureSeries, extract_features
from trackloop.models import Loop, SongStructure


@dataclass(slots=True, frozen=True)
class LoopScore:
    """Sub-scores of one candidate window, each in [0, 1]."""
    energy: float
    centroid: float
    zero_crossing_rate: float
    rhythmic: float
    harmonic: float

    def total(self, config: LoopConfig = DEFAULT_LOOP_CONFIG) -> float:
        score = (
            self.energy * config.energy_weight
            + self.centroid * config.centroid_weight
            + (1.0 - self.zero_crossing_rate) * config.zcr_weight
            + self.rhythmic * config.rhythmic_weight
            + self.harmonic * config.harmonic_weight
        )
        return min(score, 1.0)


def consistency(values: np.ndarray) -> float:
    """max(0, 1 - variance): steadier passages score higher."""
    if len(values) == 0:
        return 1.0
    return max(0.0, 1.0 - float(np.var(values)))


def _ratio(seconds: float, block_seconds: float) -> int:
    return max(1, int(round(seconds / block_seconds)))


class LoopFinder:
    """Scores candidate loop windows over a block-tiled track."""

    def __init__(self, audio: np.ndarray, sr: int, config: LoopConfig = DEFAULT_LOOP_CONFIG) -> None:
        self.sr = sr
        self.config = config
        self.blocks: FeatureSeries = extract_features(
            audio,
            sr,
            config.harmonic_window_seconds,
            config.harmonic_window_seconds,
            include_last=True,
        )
        self.block_seconds = self.blocks.hop / sr if self.blocks.hop else 0.0

        self.loop_hop = _ratio(config.loop_hop_seconds, config.harmonic_window_seconds)
        self.rhythm_group = _ratio(config.rhythmic_window_seconds, config.harmonic_window_seconds)
        self.activity_blocks = _ratio(config.window_seconds, config.harmonic_window_seconds)

    @property
    def n_blocks(self) -> int:
        return len(self.blocks)

    def seconds_to_block(self, seconds: float, round_up: bool = False) -> int:
        position = seconds / self.block_seconds
        block = int(np.ceil(position - 1e-9)) if round_up else int(np.floor(position + 1e-9))
        return max(0, min(block, self.n_blocks))

    def score_window(self, offset: int, length: int) -> LoopScore:
        """Sub-scores for the `length` blocks starting at block `offset`."""
        span = slice(offset, offset + length)
        energy = self.blocks.energy[span]
        centroid = self.blocks.spectral_centroid[span]

        groups = len(energy) // self.rhythm_group
        if groups:
            sub_energy = energy[:groups * self.rhythm_group].reshape(groups, self.rhythm_group).mean(axis=1)
        else:
            sub_energy = energy

        return LoopScore(
            energy=float(np.clip(np.mean(energy), 0.0, 1.0)),
            centroid=float(np.clip(np.mean(centroid), 0.0, 1.0)),
            zero_crossing_rate=float(np.clip(np.mean(self.blocks.zero_crossing_rate[span]), 0.0, 1.0)),
            rhythmic=consistency(sub_energy),
            harmonic=consistency(centroid),
        )

    def is_active(self, offset: int) -> bool:
        """Activity gate: the window starting at `offset` is loud and bright enough."""
        span = slice(offset, min(offset + self.activity_blocks, self.n_blocks))
        energy = self.blocks.energy[span]
        if len(energy) == 0:
            return False
        return (
            float(np.mean(energy)) > self.config.energy_threshold
            and float(np.mean(self.blocks.spectral_centroid[span])) > self.config.centroid_threshold
        )

    def best_loop(
        self,
        region_start: int,
        region_end: int,
        bars: int,
        bpm: float,
        loop_type: str,
        gate: Callable[[int], bool] | None = None,
    ) -> Loop | None:
        """Highest-scoring window of `bars` bars inside [region_start, region_end) blocks."""
        loop_seconds = bars * (60.0 / bpm) * self.config.beats_per_bar
        length = int(round(loop_seconds / self.block_seconds))
        if length <= 0 or length >= region_end - region_start:
            return None

        best_offset, best_score = None, 0.0
        for offset in range(region_start, region_end - length, self.loop_hop):
            if gate is not None and not gate(offset):
                continue
            score = self.score_window(offset, length).total(self.config)
            if score > best_score and score > self.config.min_loop_score:
                best_offset, best_score = offset, score

        if best_offset is None:
            return None

        start = best_offset * self.block_seconds
        return Loop(
            start=start,
            end=start + loop_seconds,
            bpm=bpm,
            confidence=best_score,
            type=loop_type,
            name=loop_name(loop_type, bars),
            description=loop_description(loop_type, bars, loop_seconds),
        )

    def find(self, structure: SongStructure, bpm: float) -> list[Loop]:
        loops: list[Loop] = []

        for part in structure.parts:
            if part.type not in self.config.segment_types:
                continue
            region_start = self.seconds_to_block(part.start, round_up=True)
            region_end = self.seconds_to_block(part.end)
            for bars in self.config.bar_counts:
                loop = self.best_loop(region_start, region_end, bars, bpm, part.type)
                if loop is not None:
                    loops.append(loop)

        for bars in self.config.bar_counts:
            loop = self.best_loop(0, self.n_blocks, bars, bpm, CUSTOM_LOOP_TYPE, gate=self.is_active)
            if loop is not None:
                loops.append(loop)

        loops.sort(key=lambda loop: loop.start)
        return loops


def loop_name(loop_type: str, bars: int) -> str:
    return f"{loop_type}_{bars}bar_loop"


def loop_description(loop_type: str, bars: int, seconds: float) -> str:
    return f"{bars}-bar {loop_type} loop ({seconds:.1f}s)"


def find_loops(
    audio: np.ndarray,
    sr: int,
    structure: SongStructure,
    bpm: float,
    config: LoopConfig = DEFAULT_LOOP_CONFIG,
) -> list[Loop]:
    """Loop candidates from every classified part plus the whole-track pass, by start time."""
    audio = np.asarray(audio, dtype=np.float32)
    if audio.size == 0 or sr <= 0 or bpm <= 0:
        return []

    finder = LoopFinder(audio, sr, config)
    if finder.n_blocks == 0 or finder.block_seconds <= 0:
        return []

    loops = finder.find(structure, bpm)
    logging.info(f"Found {len(loops)} loops at {bpm:.1f} BPM")
    return loops
