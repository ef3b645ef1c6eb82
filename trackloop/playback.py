"""Terminal playback of stored tracks and detected loops."""
from __future__ import annotations

import importlib
import logging
import signal
import threading
from pathlib import Path

import lazy_loader as lazy
import numpy as np
from rich.progress import BarColumn, Progress, TextColumn

from trackloop.console import rich_console
from trackloop.exceptions import DecodeError

soundfile = lazy.load("soundfile")

# sounddevice is imported on first use through `sd()`. lazy_loader would hide
# the PortAudio error raised at import time behind a generic message.
_sd = None
def sd():
    global _sd
    if _sd is None:
        _sd = importlib.import_module("sounddevice")
    return _sd


def load_playback_audio(wav_path: str | Path) -> tuple[np.ndarray, int]:
    """Read a stored WAV as a (samples, channels) float32 array."""
    try:
        data, samplerate = soundfile.read(str(wav_path), dtype="float32", always_2d=True)
    except Exception as e:
        raise DecodeError(f'"{wav_path}" could not be loaded for playback.') from e
    return data, int(samplerate)


def format_clock(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes:02d}:{secs:02d}"


class PlaybackHandler:
    """Plays a buffer through the default output device.

    With a loop region set, playback jumps from the loop end back to the loop
    start until the first Ctrl+C; a second Ctrl+C stops playback.
    """

    def __init__(self) -> None:
        self.finished = threading.Event()
        self.stream = None
        self.position = 0
        self.repeats = 0
        self.region: tuple[int, int] | None = None
        self.progress = Progress(
            TextColumn("[green]{task.description}"),
            BarColumn(),
            TextColumn("{task.fields[clock]}"),
            TextColumn("{task.fields[repeats]}"),
            console=rich_console,
            transient=True,
            refresh_per_second=2,
        )

    def play(self, playback_data: np.ndarray, samplerate: int, start_from: int = 0) -> None:
        """Play from `start_from` (in samples) to the end of the buffer."""
        self.region = None
        self._stream_until_done(playback_data, samplerate, start_from)

    def play_looping(
        self,
        playback_data: np.ndarray,
        samplerate: int,
        loop_start: int,
        loop_end: int,
        start_from: int = 0,
    ) -> None:
        """Play with the region [loop_start, loop_end) repeating.

        Args:
            playback_data (np.ndarray): Audio shaped (samples, channels).
            samplerate (int): Playback sample rate.
            loop_start (int): First sample of the loop.
            loop_end (int): Sample the loop jumps back from (exclusive).
            start_from (int, optional): Initial position in samples. Defaults to 0.
        """
        n_samples = playback_data.shape[0]
        if not 0 <= loop_start < loop_end <= n_samples:
            raise ValueError(
                f"Invalid loop region [{loop_start}, {loop_end}) for a buffer of {n_samples} samples."
            )

        self.region = (loop_start, loop_end)
        self._stream_until_done(playback_data, samplerate, start_from)

    def _fill(self, playback_data: np.ndarray, outdata: np.ndarray, frames: int) -> None:
        written = 0
        while written < frames:
            stop = playback_data.shape[0]
            if self.region is not None and self.position < self.region[1]:
                stop = self.region[1]

            count = min(frames - written, stop - self.position)
            outdata[written:written + count] = playback_data[self.position:self.position + count]
            written += count
            self.position += count

            if self.position < stop:
                continue
            if self.region is not None and stop == self.region[1]:
                self.position = self.region[0]
                self.repeats += 1
                continue

            outdata[written:] = 0
            raise sd().CallbackStop()

    def _stream_until_done(self, playback_data: np.ndarray, samplerate: int, start_from: int) -> None:
        self.position = start_from
        self.repeats = 0
        self.finished.clear()

        def callback(outdata, frames, time, status):
            self._fill(playback_data, outdata, frames)

        previous_handler = signal.signal(signal.SIGINT, self._on_interrupt)
        try:
            self.stream = sd().OutputStream(
                samplerate=samplerate,
                channels=playback_data.shape[1],
                callback=callback,
                finished_callback=self.finished.set,
            )
            with self.stream, self.progress:
                task = self.progress.add_task("Playing", total=playback_data.shape[0], clock="", repeats="")
                # Event.wait() cannot be interrupted by Ctrl+C on Windows; poll instead
                while not self.finished.wait(0.5):
                    self.progress.update(
                        task,
                        completed=self.position,
                        clock=format_clock(self.position / samplerate),
                        repeats=f"[dim]| loop x{self.repeats}[/]" if self.repeats else "",
                    )
        except Exception as e:
            logging.error(e)
        finally:
            signal.signal(signal.SIGINT, previous_handler)

    def _on_interrupt(self, *args):
        if self.region is not None:
            self.region = None
            rich_console.print("[dim italic yellow]Loop released. Press [red]Ctrl+C[/] again to stop.[/]")
            return

        self.finished.set()
        if self.stream is not None:
            self.stream.abort()
        rich_console.print("[dim]Playback stopped.[/]")
