"""
Analysis Backends.

Every backend fulfils the same analyzer contracts (bpm, beatgrid, key,
structure, loops). `DspBackend` is the self-contained implementation;
`LibrosaBackend` delegates tempo and key estimation to librosa's engine.
One backend is picked per deployment through `get_backend`.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

import librosa
import numpy as np

from trackloop.analysis import bpm as bpm_analysis
from trackloop.analysis import key as key_analysis
from trackloop.analysis.constants import (
    DEFAULT_BPM_CONFIG,
    DEFAULT_KEY_CONFIG,
    DEFAULT_LOOP_CONFIG,
    DEFAULT_STRUCTURE_CONFIG,
    BpmConfig,
    KeyConfig,
    LoopConfig,
    StructureConfig,
)
from trackloop.analysis.features import to_samples
from trackloop.analysis.loops import find_loops
from trackloop.analysis.structure import segment_structure
from trackloop.models import BeatGridPoint, Loop, SongStructure

BACKEND_ENV_VAR = "TRACKLOOP_BACKEND"


@dataclass
class AnalysisResult:
    """Complete output of one analysis pass."""
    bpm: float
    key: str
    beatgrid: list[BeatGridPoint] = field(default_factory=list)
    structure: SongStructure = field(default_factory=SongStructure)
    loops: list[Loop] = field(default_factory=list)


def to_number_sequence(external) -> list[float]:
    """Normalize an engine output into a flat list of floats.

    Accepts numpy arrays of any shape, scalars, nested lists/tuples, objects
    exposing ``tolist()`` and vector-like objects exposing ``size()``/``get(i)``.
    """
    if external is None:
        return []
    if isinstance(external, (str, bytes, Mapping)):
        raise TypeError(f"Cannot convert {type(external).__name__} to a number sequence.")
    if isinstance(external, np.ndarray):
        return [float(value) for value in external.ravel()]
    if isinstance(external, (bool, int, float, np.number)):
        return [float(external)]
    if hasattr(external, "tolist"):
        return to_number_sequence(external.tolist())
    if callable(getattr(external, "size", None)) and callable(getattr(external, "get", None)):
        return [float(external.get(i)) for i in range(int(external.size()))]
    if isinstance(external, Iterable):
        values: list[float] = []
        for item in external:
            values.extend(to_number_sequence(item))
        return values
    raise TypeError(f"Cannot convert {type(external).__name__} to a number sequence.")


class AnalysisBackend(ABC):
    """Abstract interface for a tempo/key/structure/loop analysis engine."""

    name: str = "base"

    def __init__(
        self,
        bpm_config: BpmConfig = DEFAULT_BPM_CONFIG,
        key_config: KeyConfig = DEFAULT_KEY_CONFIG,
        structure_config: StructureConfig = DEFAULT_STRUCTURE_CONFIG,
        loop_config: LoopConfig = DEFAULT_LOOP_CONFIG,
    ) -> None:
        self.bpm_config = bpm_config
        self.key_config = key_config
        self.structure_config = structure_config
        self.loop_config = loop_config

    @abstractmethod
    def estimate_bpm(self, audio: np.ndarray, sr: int) -> float:
        pass

    @abstractmethod
    def estimate_beatgrid(self, audio: np.ndarray, sr: int) -> list[BeatGridPoint]:
        pass

    @abstractmethod
    def estimate_key(self, audio: np.ndarray, sr: int) -> str:
        pass

    @abstractmethod
    def segment_structure(self, audio: np.ndarray, sr: int, duration: float) -> SongStructure:
        pass

    @abstractmethod
    def find_loops(self, audio: np.ndarray, sr: int, structure: SongStructure, bpm: float) -> list[Loop]:
        pass

    def analyze(self, audio: np.ndarray, sr: int, duration: float) -> AnalysisResult:
        """Run every analyzer; loops run last since they need structure and bpm."""
        bpm = self.estimate_bpm(audio, sr)
        key = self.estimate_key(audio, sr)
        beatgrid = self.estimate_beatgrid(audio, sr)
        structure = self.segment_structure(audio, sr, duration)
        loops = self.find_loops(audio, sr, structure, bpm)
        return AnalysisResult(bpm=bpm, key=key, beatgrid=beatgrid, structure=structure, loops=loops)


class DspBackend(AnalysisBackend):
    """Self-contained autocorrelation / chroma / change-point implementation."""

    name = "dsp"

    def estimate_bpm(self, audio, sr):
        return bpm_analysis.estimate_bpm(audio, sr, self.bpm_config)

    def estimate_beatgrid(self, audio, sr):
        return bpm_analysis.estimate_beatgrid(audio, sr, self.bpm_config)

    def estimate_key(self, audio, sr):
        return key_analysis.estimate_key(audio, sr, self.key_config)

    def segment_structure(self, audio, sr, duration):
        return segment_structure(audio, sr, duration, self.structure_config)

    def find_loops(self, audio, sr, structure, bpm):
        return find_loops(audio, sr, structure, bpm, self.loop_config)


class LibrosaBackend(DspBackend):
    """Tempo and key from librosa's beat tracker and constant-Q chroma."""

    name = "librosa"

    def estimate_bpm(self, audio, sr):
        audio = np.asarray(audio, dtype=np.float32)
        if sr <= 0 or audio.size < to_samples(self.bpm_config.window_seconds, sr) or not np.any(audio):
            return self.bpm_config.default_bpm

        tempo, _ = librosa.beat.beat_track(y=audio, sr=sr)
        values = to_number_sequence(tempo)
        if not values or values[0] <= 0:
            return self.bpm_config.default_bpm
        return round(self._fold_into_range(values[0]), 1)

    def _fold_into_range(self, bpm: float) -> float:
        while bpm > self.bpm_config.max_bpm:
            bpm /= 2
        while bpm < self.bpm_config.min_bpm:
            bpm *= 2
        return min(bpm, self.bpm_config.max_bpm)

    def estimate_key(self, audio, sr):
        audio = np.asarray(audio, dtype=np.float32)
        if audio.size < self.key_config.n_fft or sr <= 0:
            return self.key_config.default_key
        if float(np.mean(np.square(audio, dtype=np.float64))) < self.key_config.silence_energy:
            return self.key_config.default_key

        chroma = librosa.feature.chroma_cqt(y=audio, sr=sr, hop_length=self.key_config.hop_length)
        profile = np.asarray(to_number_sequence(np.nan_to_num(np.mean(chroma, axis=1))))
        if not np.any(profile > 0):
            return self.key_config.default_key

        return key_analysis.key_label(profile, self.key_config)


BACKENDS: dict[str, type[AnalysisBackend]] = {
    DspBackend.name: DspBackend,
    LibrosaBackend.name: LibrosaBackend,
}


def get_backend(name: str | None = None, **configs) -> AnalysisBackend:
    """Instantiate the named backend, defaulting to $TRACKLOOP_BACKEND or "dsp"."""
    name = (name or os.getenv(BACKEND_ENV_VAR) or DspBackend.name).lower()
    try:
        backend_cls = BACKENDS[name]
    except KeyError:
        raise ValueError(f'Unknown analysis backend "{name}". Choose from: {", ".join(BACKENDS)}.') from None
    return backend_cls(**configs)
