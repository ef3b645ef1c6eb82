"""Best-effort music tag reading."""

from __future__ import annotations

import logging
from pathlib import Path

from trackloop.models import MusicTags

UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_ALBUM = "Unknown Album"
UNKNOWN_GENRE = "Unknown Genre"


def _first(tags: dict[str, list[str]], *names: str) -> str | None:
    for name in names:
        values = [value.strip() for value in tags.get(name, []) if value and value.strip()]
        if values:
            return values[0]
    return None


def tags_from_mapping(tags: dict[str, list[str]], filepath: str | Path) -> MusicTags:
    """Fill missing fields with placeholders; title falls back to the file stem."""
    return MusicTags(
        title=_first(tags, "TITLE") or Path(filepath).stem,
        artist=_first(tags, "ARTIST", "ALBUMARTIST") or UNKNOWN_ARTIST,
        album=_first(tags, "ALBUM") or UNKNOWN_ALBUM,
        genre=_first(tags, "GENRE") or UNKNOWN_GENRE,
    )


def read_tags(filepath: str | Path) -> MusicTags:
    """Read title/artist/album/genre; never raises."""
    # Workaround for taglib import issues on Apple silicon devices
    # Import taglib only when needed
    import taglib

    try:
        with taglib.File(str(filepath)) as audio_file:
            tags = dict(audio_file.tags)
    except OSError as e:
        logging.warning(f'Could not read tags from "{filepath}": {e}')
        tags = {}

    return tags_from_mapping(tags, filepath)
