"""
Track library data model.

Plain dataclasses for analysis results and the per-track metadata record,
plus the search criteria used to query the library. Records serialize to
JSON-compatible dicts; timestamps are stored as ISO-8601 strings.
"""

from __future__ import annotations

import copy
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any


def utc_now() -> datetime:
    """Current UTC time truncated to milliseconds (the persisted precision)."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def _format_timestamp(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds")


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(slots=True)
class BeatGridPoint:
    time: float  # Window start in seconds
    bpm: float
    confidence: float


@dataclass(slots=True)
class Part:
    """A time-bounded section of a track produced by the structure segmenter."""
    start: float
    end: float
    confidence: float
    number: int
    type: str | None = None  # breakdown, drop, verse, chorus or bridge
    description: str | None = None

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(slots=True)
class SongStructure:
    parts: list[Part] = field(default_factory=list)

    def by_type(self, kind: str) -> list[Part]:
        return [part for part in self.parts if part.type == kind]

    def __len__(self) -> int:
        return len(self.parts)


@dataclass(slots=True)
class Loop:
    """A loopable region of the track timeline (a reference, not a copy of samples)."""
    start: float
    end: float
    bpm: float
    confidence: float
    type: str
    name: str
    description: str | None = None

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(slots=True, frozen=True)
class MusicTags:
    title: str
    artist: str
    album: str
    genre: str


@dataclass
class TrackMetadata:
    """Aggregate record for one track: provenance, analysis results and tags."""

    id: str
    filename: str
    original_path: str
    wav_path: str
    duration: float
    sample_rate: int
    bit_depth: int
    channels: int
    title: str
    artist: str
    album: str
    genre: str
    version: str
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    # Analysis results (placeholders until analyzed)
    bpm: float = 120.0
    key: str = "C"
    beatgrid: list[BeatGridPoint] = field(default_factory=list)
    structure: SongStructure = field(default_factory=SongStructure)
    loops: list[Loop] = field(default_factory=list)

    @property
    def tags(self) -> MusicTags:
        return MusicTags(title=self.title, artist=self.artist, album=self.album, genre=self.genre)

    def copy(self) -> TrackMetadata:
        """Deep snapshot safe to hand to readers."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["created_at"] = _format_timestamp(self.created_at)
        data["updated_at"] = _format_timestamp(self.updated_at)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TrackMetadata:
        structure = data.get("structure") or {}
        return cls(
            id=data["id"],
            filename=data["filename"],
            original_path=data["original_path"],
            wav_path=data["wav_path"],
            duration=float(data["duration"]),
            sample_rate=int(data["sample_rate"]),
            bit_depth=int(data["bit_depth"]),
            channels=int(data["channels"]),
            title=data["title"],
            artist=data["artist"],
            album=data["album"],
            genre=data["genre"],
            version=data["version"],
            created_at=_parse_timestamp(data["created_at"]),
            updated_at=_parse_timestamp(data["updated_at"]),
            bpm=float(data["bpm"]),
            key=data["key"],
            beatgrid=[BeatGridPoint(**point) for point in data.get("beatgrid", [])],
            structure=SongStructure(parts=[Part(**part) for part in structure.get("parts", [])]),
            loops=[Loop(**loop) for loop in data.get("loops", [])],
        )


@dataclass(slots=True, frozen=True)
class NumericRange:
    """Inclusive range; a missing bound is unbounded."""
    min: float | None = None
    max: float | None = None

    def __contains__(self, value: float) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True

    @classmethod
    def parse(cls, text: str) -> NumericRange:
        """Parse "120-130", "120-" or "-130"."""
        low, sep, high = text.partition("-")
        if not sep:
            raise ValueError(f'Invalid range "{text}". Expected the form MIN-MAX.')
        return cls(
            min=float(low) if low.strip() else None,
            max=float(high) if high.strip() else None,
        )


@dataclass(slots=True, frozen=True)
class SearchCriteria:
    """Library query. All provided fields must match (logical AND)."""
    bpm: NumericRange | None = None
    key: str | None = None
    duration: NumericRange | None = None
    has_loops: bool | None = None
    artist: str | None = None
    search: str | None = None  # Substring of title, artist, album or genre

    def matches(self, track: TrackMetadata) -> bool:
        if self.bpm is not None and track.bpm not in self.bpm:
            return False
        if self.key is not None and track.key != self.key:
            return False
        if self.duration is not None and track.duration not in self.duration:
            return False
        if self.has_loops and not track.loops:
            return False
        if self.artist and self.artist.lower() not in track.artist.lower():
            return False
        if self.search:
            term = self.search.lower()
            fields = (track.title, track.artist, track.album, track.genre)
            if not any(term in value.lower() for value in fields):
                return False
        return True
