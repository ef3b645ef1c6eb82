import json
from datetime import timezone

import pytest

from signals import make_loop, make_track
from trackloop.models import (
    BeatGridPoint,
    NumericRange,
    Part,
    SearchCriteria,
    SongStructure,
    TrackMetadata,
    utc_now,
)


def analyzed_track(**overrides):
    return make_track(
        beatgrid=[BeatGridPoint(time=0.0, bpm=124.0, confidence=0.4)],
        structure=SongStructure(parts=[
            Part(start=0.0, end=90.0, confidence=0.95, number=1, type="breakdown", description="Intro"),
            Part(start=90.0, end=180.0, confidence=0.8, number=2, type="drop", description="Outro"),
        ]),
        loops=[make_loop(10.0, 17.7419, 124.0)],
        **overrides,
    )


def test_utc_now_is_aware_and_millisecond_precise():
    now = utc_now()
    assert now.tzinfo == timezone.utc
    assert now.microsecond % 1000 == 0


def test_dict_round_trip_preserves_everything():
    track = analyzed_track()
    data = json.loads(json.dumps(track.to_dict()))

    assert data["created_at"] == "2024-05-01T12:00:00.123+00:00"
    assert TrackMetadata.from_dict(data) == track


def test_round_trip_keeps_timestamps_to_the_millisecond():
    track = make_track(created_at=utc_now(), updated_at=utc_now())
    loaded = TrackMetadata.from_dict(track.to_dict())
    assert loaded.created_at == track.created_at
    assert loaded.updated_at == track.updated_at


def test_naive_timestamps_are_read_as_utc():
    data = make_track().to_dict()
    data["created_at"] = "2024-05-01T12:00:00.123"
    assert TrackMetadata.from_dict(data).created_at.tzinfo == timezone.utc


def test_copy_is_deep():
    track = analyzed_track()
    snapshot = track.copy()
    snapshot.structure.parts[0].type = "verse"
    snapshot.loops.clear()

    assert track.structure.parts[0].type == "breakdown"
    assert len(track.loops) == 1


def test_placeholder_analysis_fields():
    fresh = TrackMetadata(
        id="a", filename="a.wav", original_path="/a.wav", wav_path="/lib/a.wav",
        duration=1.0, sample_rate=44100, bit_depth=16, channels=2,
        title="a", artist="b", album="c", genre="d", version="1.0.0",
    )
    assert (fresh.bpm, fresh.key) == (120.0, "C")
    assert fresh.beatgrid == []
    assert len(fresh.structure) == 0
    assert fresh.loops == []


def test_tags_view():
    tags = make_track().tags
    assert (tags.title, tags.artist, tags.album, tags.genre) == ("Song", "Artist", "Album", "House")


def test_structure_by_type():
    structure = analyzed_track().structure
    assert [part.number for part in structure.by_type("drop")] == [2]
    assert structure.by_type("chorus") == []


@pytest.mark.parametrize("text, low, high", [
    ("120-130", 120.0, 130.0),
    ("120-", 120.0, None),
    ("-130", None, 130.0),
    ("60.5-300", 60.5, 300.0),
])
def test_numeric_range_parse(text, low, high):
    assert NumericRange.parse(text) == NumericRange(min=low, max=high)


@pytest.mark.parametrize("text", ["120", "abc-def", ""])
def test_numeric_range_parse_rejects(text):
    with pytest.raises(ValueError):
        NumericRange.parse(text)


def test_numeric_range_is_inclusive():
    bounds = NumericRange(120.0, 130.0)
    assert 120.0 in bounds
    assert 130.0 in bounds
    assert 130.5 not in bounds
    assert 1000.0 in NumericRange(min=120.0)


def test_empty_criteria_match_everything():
    assert SearchCriteria().matches(make_track())


@pytest.mark.parametrize("criteria, expected", [
    (SearchCriteria(bpm=NumericRange(120, 130)), True),
    (SearchCriteria(bpm=NumericRange(125, 130)), False),
    (SearchCriteria(key="Am"), True),
    (SearchCriteria(key="am"), False),
    (SearchCriteria(duration=NumericRange(max=120)), False),
    (SearchCriteria(has_loops=True), False),
    (SearchCriteria(artist="ART"), True),
    (SearchCriteria(artist="someone"), False),
    (SearchCriteria(search="hous"), True),
    (SearchCriteria(search="album"), True),
    (SearchCriteria(search="jazz"), False),
    (SearchCriteria(bpm=NumericRange(120, 130), key="Am", search="song"), True),
    (SearchCriteria(bpm=NumericRange(120, 130), key="C"), False),
])
def test_criteria_matching(criteria, expected):
    assert criteria.matches(make_track()) is expected


def test_has_loops_matches_tracks_with_loops():
    assert SearchCriteria(has_loops=True).matches(analyzed_track())
