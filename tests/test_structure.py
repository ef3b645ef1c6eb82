import numpy as np
import pytest

from signals import uniform_noise
from trackloop.analysis.constants import SEGMENT_TYPES, StructureConfig
from trackloop.analysis.structure import (
    classify_segment,
    describe_part,
    find_change_points,
    segment_structure,
)

SR = 8000


def assert_well_formed(structure, duration, config=StructureConfig()):
    parts = structure.parts
    assert parts[0].start == 0.0
    assert parts[-1].end == pytest.approx(duration)
    for previous, current in zip(parts, parts[1:]):
        assert previous.end == current.start
    for part in parts[:-1]:
        assert part.duration >= config.min_part_seconds
    assert [part.number for part in parts] == list(range(1, len(parts) + 1))
    for part in parts:
        assert part.type in SEGMENT_TYPES
        assert 0.0 < part.confidence <= 0.95


def test_steady_signal_is_a_single_part():
    audio = uniform_noise(60, SR, 0.5)
    structure = segment_structure(audio, SR, 60.0)

    assert len(structure) == 1
    part = structure.parts[0]
    assert (part.start, part.end, part.number) == (0.0, 60.0, 1)
    assert part.confidence == 0.8
    assert part.description == "Intro"
    assert part.type == "verse"


def test_loudness_step_splits_track():
    audio = np.concatenate([uniform_noise(30, SR, 0.05, seed=1), uniform_noise(30, SR, 0.5, seed=2)])
    structure = segment_structure(audio, SR, 60.0)

    assert len(structure) == 2
    intro, outro = structure.parts
    # Smoothing pulls the detected boundary slightly ahead of the step
    assert intro.end == pytest.approx(30.0, abs=1.5)
    assert intro.type == "breakdown"
    assert intro.description == "Intro"
    assert intro.confidence == 0.95
    assert outro.type == "verse"
    assert outro.description == "Outro"
    assert outro.confidence == 0.8
    assert_well_formed(structure, 60.0)


def test_short_trailing_remainder_merges_into_previous_part():
    audio = np.concatenate([uniform_noise(30, SR, 0.05, seed=1), uniform_noise(30, SR, 0.5, seed=2)])
    config = StructureConfig(final_part_min_seconds=40.0)

    structure = segment_structure(audio, SR, 60.0, config)

    assert len(structure) == 1
    assert structure.parts[0].end == 60.0
    assert structure.parts[0].confidence == 0.95


def test_change_too_close_to_the_end_is_ignored():
    audio = np.concatenate([uniform_noise(56, SR, 0.05, seed=1), uniform_noise(4, SR, 0.5, seed=2)])
    structure = segment_structure(audio, SR, 60.0)

    assert len(structure) == 1
    assert_well_formed(structure, 60.0)


def test_silence_is_one_breakdown():
    structure = segment_structure(np.zeros(SR * 20, dtype=np.float32), SR, 20.0)
    assert len(structure) == 1
    assert structure.parts[0].type == "breakdown"


def test_zero_duration_is_empty():
    assert len(segment_structure(np.zeros(0, dtype=np.float32), SR, 0.0)) == 0


def test_find_change_points_enforces_minimum_distance():
    scores = np.zeros(1000)
    scores[200] = 1.0
    scores[250] = 1.2
    scores[300] = 0.9
    scores[400] = 0.7
    scores[700] = 0.6  # Not above threshold

    assert find_change_points(scores) == [(200, 0.95), (400, 0.7)]


def test_find_change_points_skips_edges():
    scores = np.ones(400)
    # min distance is 160 frames; only [160, 240) is scanned
    points = find_change_points(scores)
    assert [index for index, _ in points] == [160]


@pytest.mark.parametrize("energy, centroid, zcr, expected", [
    (0.001, 0.5, 0.5, "breakdown"),
    (0.2, 0.3, 0.5, "drop"),
    (0.2, 0.1, 0.3, "verse"),
    (0.05, 0.1, 0.1, "chorus"),
    (0.01, 0.1, 0.1, "bridge"),
])
def test_classify_segment(energy, centroid, zcr, expected):
    assert classify_segment(energy, centroid, zcr) == expected


@pytest.mark.parametrize("index, end, expected", [
    (0, 90.0, "Intro"),
    (3, 90.0, "Outro"),
    (1, 10.0, "Early Section"),
    (1, 30.0, "Build Section"),
    (2, 50.0, "Main Section"),
    (2, 70.0, "Late Section"),
    (3, 82.0, "Final Section"),
])
def test_describe_part(index, end, expected):
    assert describe_part(index, end, 100.0) == expected


def test_thresholds_are_configurable():
    config = StructureConfig(breakdown_energy=0.5)
    assert classify_segment(0.2, 0.3, 0.5, config) == "breakdown"
