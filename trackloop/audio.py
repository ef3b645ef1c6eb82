"""Audio decode, conversion and file-property helpers."""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

import lazy_loader as lazy
import librosa
import numpy as np

from trackloop.exceptions import ConvertError, DecodeError

soundfile = lazy.load("soundfile")

SUPPORTED_EXTENSIONS = (".mp3", ".wav")

# Canonical stored format: 16-bit PCM, stereo, 44.1kHz
WAV_CODEC = "pcm_s16le"
WAV_CHANNELS = 2
WAV_SAMPLE_RATE = 44100

BIT_DEPTHS = {
    "PCM_S8": 8,
    "PCM_U8": 8,
    "PCM_16": 16,
    "PCM_24": 24,
    "PCM_32": 32,
    "FLOAT": 32,
    "DOUBLE": 64,
}
DEFAULT_BIT_DEPTH = 16


def is_supported(path: str | Path) -> bool:
    return Path(path).suffix.lower() in SUPPORTED_EXTENSIONS


def is_mp3(path: str | Path) -> bool:
    return Path(path).suffix.lower() == ".mp3"


class AudioBuffer:
    """Decoded mono PCM of one file."""

    __slots__ = ("filepath", "filename", "audio", "rate", "duration")

    def __init__(self, filepath: str | Path, audio: np.ndarray, rate: int) -> None:
        path = Path(filepath)
        self.filepath = str(path)
        self.filename = path.name
        self.audio = audio
        self.rate = rate
        self.duration = len(audio) / rate if rate else 0.0


def load_audio(filepath: str | Path) -> AudioBuffer:
    """Decode a file to mono float PCM at its native sample rate."""
    path = Path(filepath)

    try:
        audio, sr = librosa.load(path, sr=None, mono=True)
    except Exception as e:
        raise DecodeError(
            f"{path.name} could not be loaded. Invalid audio data or unsupported format."
        ) from e

    if audio.size == 0:
        raise DecodeError(f'No audio data could be loaded from "{path}".')

    return AudioBuffer(path, np.ascontiguousarray(audio, dtype=np.float32), int(sr))


@dataclass(slots=True, frozen=True)
class AudioInfo:
    duration: float
    sample_rate: int
    channels: int
    bit_depth: int


def read_audio_info(filepath: str | Path) -> AudioInfo:
    """Read stored file properties without decoding the samples."""
    try:
        info = soundfile.info(str(filepath))
    except Exception as e:
        raise DecodeError(f'Could not read audio properties of "{filepath}".') from e

    return AudioInfo(
        duration=float(info.frames) / info.samplerate if info.samplerate else 0.0,
        sample_rate=int(info.samplerate),
        channels=int(info.channels),
        bit_depth=BIT_DEPTHS.get(info.subtype, DEFAULT_BIT_DEPTH),
    )


def convert_to_wav(source: str | Path, destination: str | Path) -> None:
    """Transcode `source` to the canonical WAV format with ffmpeg."""
    ffmpeg = shutil.which("ffmpeg")
    if ffmpeg is None:
        raise ConvertError("ffmpeg was not found on PATH; it is required to import MP3 files.")

    command = [
        ffmpeg,
        "-y",
        "-loglevel", "error",
        "-i", str(source),
        "-acodec", WAV_CODEC,
        "-ac", str(WAV_CHANNELS),
        "-ar", str(WAV_SAMPLE_RATE),
        str(destination),
    ]
    logging.info(f"Converting {Path(source).name} to WAV")

    try:
        subprocess.run(command, check=True, capture_output=True, text=True)
    except subprocess.CalledProcessError as e:
        raise ConvertError(f'ffmpeg failed to convert "{source}": {e.stderr.strip()}') from e
    except OSError as e:
        raise ConvertError(f'ffmpeg could not be started for "{source}".') from e


def copy_wav(source: str | Path, destination: str | Path) -> None:
    shutil.copyfile(source, destination)
