"""
trackloop Analysis Module - tempo, key, structure and loop detection.

Architecture:
├── constants.py   - Tunable thresholds and profiles (frozen config dataclasses)
├── features.py    - Per-window energy, spectral centroid, zero-crossing rate
├── bpm.py         - Autocorrelation tempo estimate and beatgrid
├── key.py         - Chroma + Krumhansl-Kessler key estimate
├── structure.py   - Change-point structure segmenter
├── loops.py       - Bar-aligned loop candidate finder
├── backends.py    - Pluggable analysis engines (dsp, librosa)
└── main.py        - Pipeline orchestration
"""

from trackloop.analysis.constants import (
    BpmConfig,
    KeyConfig,
    LoopConfig,
    StructureConfig,
)

from trackloop.analysis.features import (
    FeatureSeries,
    extract_features,
)

from trackloop.analysis.bpm import (
    estimate_beatgrid,
    estimate_bpm,
)

from trackloop.analysis.key import estimate_key

from trackloop.analysis.structure import segment_structure

from trackloop.analysis.loops import find_loops

from trackloop.analysis.backends import (
    AnalysisBackend,
    AnalysisResult,
    DspBackend,
    LibrosaBackend,
    get_backend,
    to_number_sequence,
)

from trackloop.analysis.main import analyze_audio


__all__ = [
    # Config
    'BpmConfig',
    'KeyConfig',
    'LoopConfig',
    'StructureConfig',

    # Analyzers
    'FeatureSeries',
    'extract_features',
    'estimate_bpm',
    'estimate_beatgrid',
    'estimate_key',
    'segment_structure',
    'find_loops',

    # Backends
    'AnalysisBackend',
    'AnalysisResult',
    'DspBackend',
    'LibrosaBackend',
    'get_backend',
    'to_number_sequence',

    # Pipeline
    'analyze_audio',
]
