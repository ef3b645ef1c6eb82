"""General utility functions."""

from __future__ import annotations

import os
import re
import secrets
import time
from collections.abc import Iterable
from pathlib import Path

from trackloop.models import TrackMetadata

DEFAULT_LIBRARY_DIR = "tracks"
LIBRARY_ENV_VAR = "TRACKLOOP_LIBRARY"


def get_library_path(library: str | Path | None = None) -> Path:
    """Returns the absolute library root.

    Args:
        library: Explicit library directory. If None, uses $TRACKLOOP_LIBRARY,
            falling back to 'tracks' in the current working directory.

    Returns:
        Absolute path to the library root.
    """
    if library is None:
        library = os.getenv(LIBRARY_ENV_VAR) or DEFAULT_LIBRARY_DIR
    return Path(library).expanduser().resolve()


def make_track_id(filename: str | Path) -> str:
    """Unique, filesystem-safe id: "<stem>_<epoch ms>_<6 hex chars>"."""
    stem = re.sub(r"[^\w.-]+", "_", Path(filename).stem).strip("._") or "track"
    return f"{stem}_{int(time.time() * 1000)}_{secrets.token_hex(3)}"


def format_duration(seconds: float) -> str:
    """m:ss.s, rounded to tenths before the minutes are split off."""
    minutes, tenths = divmod(int(round(seconds * 10)), 600)
    return f"{minutes}:{tenths / 10:04.1f}"


def find_track(tracks: Iterable[TrackMetadata], identifier: str) -> TrackMetadata | None:
    """Resolve a user-supplied identifier to a track.

    Tried in order: exact id, exact title, exact artist, then partial title,
    artist and filename. Title/artist/filename comparisons ignore case.
    """
    tracks = list(tracks)
    term = identifier.lower()

    matchers = (
        lambda t: t.id == identifier,
        lambda t: t.title.lower() == term,
        lambda t: t.artist.lower() == term,
        lambda t: term in t.title.lower(),
        lambda t: term in t.artist.lower(),
        lambda t: term in t.filename.lower(),
    )
    for matches in matchers:
        for track in tracks:
            if matches(track):
                return track
    return None
