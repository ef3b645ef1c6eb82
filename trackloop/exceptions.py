class TrackLibraryError(Exception):
    """Base class for all track library failures."""


class UnsupportedFormatError(TrackLibraryError):
    """Raised when importing a file that is not an MP3 or WAV."""


class DecodeError(TrackLibraryError):
    """Raised when audio data cannot be decoded or is invalid."""


class ConvertError(TrackLibraryError):
    """Raised when the external encoder fails to produce a WAV file."""


class TrackNotFoundError(TrackLibraryError):
    """Raised when a track id does not exist in the library."""


class PartialDeleteError(TrackLibraryError):
    """Raised when a track's audio was deleted but its metadata record was not."""
