"""
Main Analysis Entry Point.

Runs the complete analysis pipeline over one decoded track:
1. Tempo (bpm) and key
2. Beatgrid
3. Structure segmentation
4. Loop candidates (needs structure and bpm)
"""

from __future__ import annotations

import logging
import time

import numpy as np

from trackloop.analysis.backends import AnalysisBackend, AnalysisResult, get_backend


def analyze_audio(
    audio: np.ndarray,
    sr: int,
    duration: float | None = None,
    backend: AnalysisBackend | None = None,
) -> AnalysisResult:
    """
    Analyze a mono PCM buffer.

    Args:
        audio: Mono float PCM samples
        sr: Sample rate in Hz
        duration: Track duration in seconds (defaults to len(audio) / sr)
        backend: Analysis engine (defaults to the deployment's backend)

    Returns:
        AnalysisResult with bpm, key, beatgrid, structure and loops
    """
    t0 = time.perf_counter()
    backend = backend or get_backend()
    audio = np.asarray(audio, dtype=np.float32)
    if duration is None:
        duration = len(audio) / sr if sr > 0 else 0.0

    logging.info(f"Analyzing {duration:.1f}s of audio with the {backend.name} backend...")
    result = backend.analyze(audio, sr, duration)

    logging.info(
        f"Analysis: {result.bpm:.1f} BPM, key {result.key}, "
        f"{len(result.structure)} parts, {len(result.loops)} loops "
        f"in {time.perf_counter() - t0:.3f}s"
    )
    return result
