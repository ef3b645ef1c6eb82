"""
Track Metadata Store.

A `TrackLibrary` is bound to one root directory for its lifetime. Each track
is stored as two files named after its id:

    <root>/<id>.wav   canonical audio asset
    <root>/<id>.json  serialized TrackMetadata record

Decode, convert, tag-reading and analysis collaborators are injected so the
composition root (the CLI, or a test) decides which implementations run.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Callable

from trackloop import __version__
from trackloop.analysis.backends import AnalysisBackend, get_backend
from trackloop.analysis.main import analyze_audio
from trackloop.audio import (
    AudioBuffer,
    AudioInfo,
    convert_to_wav,
    copy_wav,
    is_mp3,
    is_supported,
    load_audio,
    read_audio_info,
)
from trackloop.exceptions import (
    PartialDeleteError,
    TrackLibraryError,
    TrackNotFoundError,
    UnsupportedFormatError,
)
from trackloop.models import MusicTags, SearchCriteria, TrackMetadata, utc_now
from trackloop.tags import read_tags
from trackloop.utils import find_track, get_library_path, make_track_id

METADATA_SUFFIX = ".json"
AUDIO_SUFFIX = ".wav"


class TrackLibrary:
    """Persistent collection of analyzed tracks under one root directory."""

    def __init__(
        self,
        root: str | Path | None = None,
        backend: AnalysisBackend | None = None,
        decoder: Callable[[str | Path], AudioBuffer] = load_audio,
        converter: Callable[[str | Path, str | Path], None] = convert_to_wav,
        tag_reader: Callable[[str | Path], MusicTags] = read_tags,
        info_reader: Callable[[str | Path], AudioInfo] = read_audio_info,
    ) -> None:
        self.root = get_library_path(root)
        self.backend = backend or get_backend()
        self.decoder = decoder
        self.converter = converter
        self.tag_reader = tag_reader
        self.info_reader = info_reader

        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def __repr__(self) -> str:
        return f"TrackLibrary(root={str(self.root)!r}, backend={self.backend.name!r})"

    # ------------------------------------------------------------------
    # Paths and locking
    # ------------------------------------------------------------------

    def audio_path(self, track_id: str) -> Path:
        return self.root / f"{track_id}{AUDIO_SUFFIX}"

    def metadata_path(self, track_id: str) -> Path:
        return self.root / f"{track_id}{METADATA_SUFFIX}"

    def _valid_id(self, track_id: str) -> bool:
        return bool(track_id) and Path(track_id).name == track_id and track_id not in (".", "..")

    def _lock_for(self, track_id: str) -> threading.RLock:
        """One re-entrant lock per track id; serializes analysis of that track."""
        with self._locks_guard:
            lock = self._locks.get(track_id)
            if lock is None:
                lock = self._locks[track_id] = threading.RLock()
            return lock

    # ------------------------------------------------------------------
    # Import and analysis
    # ------------------------------------------------------------------

    def import_track(self, path: str | Path, tags: MusicTags | None = None) -> TrackMetadata:
        """Store, analyze and persist a new MP3 or WAV file.

        Args:
            path: Source audio file.
            tags: Explicit tags; read from the source file when omitted.

        Returns:
            The persisted, analyzed record.

        Raises:
            UnsupportedFormatError: The file is not an MP3 or WAV.
            FileNotFoundError: The source file does not exist.
            ConvertError, DecodeError: A collaborator failed; nothing is kept.
        """
        source = Path(path)
        if not is_supported(source):
            raise UnsupportedFormatError(
                f'"{source.name}" is not a supported audio file. Only MP3 and WAV can be imported.'
            )
        if not source.is_file():
            raise FileNotFoundError(f'"{source}" does not exist.')

        self.root.mkdir(parents=True, exist_ok=True)
        track_id = make_track_id(source.name)
        wav_path = self.audio_path(track_id)
        logging.info(f"Importing {source.name} as {track_id}")

        try:
            if is_mp3(source):
                self.converter(source, wav_path)
            else:
                copy_wav(source, wav_path)

            info = self.info_reader(wav_path)
            if tags is None:
                tags = self.tag_reader(source)

            now = utc_now()
            track = TrackMetadata(
                id=track_id,
                filename=source.name,
                original_path=str(source.resolve()),
                wav_path=str(wav_path),
                duration=info.duration,
                sample_rate=info.sample_rate,
                bit_depth=info.bit_depth,
                channels=info.channels,
                title=tags.title,
                artist=tags.artist,
                album=tags.album,
                genre=tags.genre,
                version=__version__,
                created_at=now,
                updated_at=now,
            )

            self.analyze_track(track)
            self.save_track_metadata(track)
        except Exception:
            wav_path.unlink(missing_ok=True)
            raise

        return track

    def analyze_track(self, track: TrackMetadata) -> TrackMetadata:
        """Run the full analysis pipeline and overwrite the record's analysis fields.

        Fields are only assigned once every analyzer has finished, so a failure
        leaves the record exactly as it was.
        """
        with self._lock_for(track.id):
            buffer = self.decoder(track.wav_path)
            result = analyze_audio(buffer.audio, buffer.rate, buffer.duration, self.backend)

            track.bpm = result.bpm
            track.key = result.key
            track.beatgrid = result.beatgrid
            track.structure = result.structure
            track.loops = result.loops
            track.updated_at = utc_now()

        return track

    def reanalyze_track(self, track_id: str) -> TrackMetadata:
        """Re-run analysis for a stored track and persist the result."""
        with self._lock_for(track_id):
            track = self.require_track(track_id)
            self.analyze_track(track)
            self.save_track_metadata(track)
        return track

    def reanalyze_all(self, on_progress: Callable[[TrackMetadata, Exception | None], None] | None = None) -> list[TrackMetadata]:
        """Re-analyze every track; failures are logged and skipped.

        Returns the tracks that were successfully re-analyzed.
        """
        updated = []
        for track in self.get_all_tracks():
            error = None
            try:
                track = self.reanalyze_track(track.id)
            except TrackLibraryError as e:
                logging.error(f"Failed to re-analyze {track.filename}: {e}")
                error = e
            else:
                updated.append(track)
            if on_progress is not None:
                on_progress(track, error)
        return updated

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save_track_metadata(self, track: TrackMetadata) -> Path:
        """Atomically write the record next to its audio asset."""
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.metadata_path(track.id)

        fd, tmp_path = tempfile.mkstemp(dir=self.root, prefix=f".{track.id}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(track.to_dict(), f, indent=2)
            os.replace(tmp_path, path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

        return path

    @staticmethod
    def load_track_metadata(path: str | Path) -> TrackMetadata:
        with open(path, encoding="utf-8") as f:
            return TrackMetadata.from_dict(json.load(f))

    def _load_or_warn(self, path: Path) -> TrackMetadata | None:
        try:
            return self.load_track_metadata(path)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logging.warning(f'Skipping unreadable track record "{path.name}": {e}')
            return None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_all_tracks(self) -> list[TrackMetadata]:
        """Every readable record, newest first."""
        if not self.root.is_dir():
            return []

        tracks = []
        for path in sorted(self.root.glob(f"*{METADATA_SUFFIX}")):
            track = self._load_or_warn(path)
            if track is not None:
                tracks.append(track)

        tracks.sort(key=lambda t: t.created_at, reverse=True)
        return tracks

    def get_track_by_id(self, track_id: str) -> TrackMetadata | None:
        if not self._valid_id(track_id):
            return None
        path = self.metadata_path(track_id)
        if not path.is_file():
            return None
        return self._load_or_warn(path)

    def require_track(self, track_id: str) -> TrackMetadata:
        track = self.get_track_by_id(track_id)
        if track is None:
            raise TrackNotFoundError(f'No track with id "{track_id}" in {self.root}.')
        return track

    def search_tracks(self, criteria: SearchCriteria | None = None) -> list[TrackMetadata]:
        """Tracks matching every provided criterion; no criteria returns all tracks."""
        tracks = self.get_all_tracks()
        if criteria is None:
            return tracks
        return [track for track in tracks if criteria.matches(track)]

    def find_track(self, identifier: str) -> TrackMetadata | None:
        """Resolve an id, title, artist or partial match to a track."""
        return find_track(self.get_all_tracks(), identifier)

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete_track(self, track_id: str) -> bool:
        """Remove a track's audio asset and record.

        Returns False when the id is unknown or the audio could not be removed.
        The record is not restored if only one of the two removals succeeds.

        Raises:
            PartialDeleteError: The audio was removed but the record was not.
        """
        if not self._valid_id(track_id):
            return False

        metadata_path = self.metadata_path(track_id)
        if not metadata_path.is_file():
            return False

        try:
            self.audio_path(track_id).unlink(missing_ok=True)
        except OSError as e:
            logging.error(f"Could not delete audio for {track_id}: {e}")
            return False

        try:
            metadata_path.unlink()
        except OSError as e:
            logging.error(f"Deleted audio for {track_id} but not its record: {e}")
            raise PartialDeleteError(
                f'Audio for "{track_id}" was deleted but its record "{metadata_path}" remains.'
            ) from e

        with self._locks_guard:
            self._locks.pop(track_id, None)

        logging.info(f"Deleted {track_id}")
        return True
