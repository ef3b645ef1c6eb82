import json
import logging
import os
import sys
import warnings
from dataclasses import replace

import rich_click as click
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TimeElapsedColumn
from rich.traceback import install as rich_traceback_handler
from rich_click.patch import patch as rich_click_patch

rich_click_patch()
from click_option_group import optgroup

from trackloop import __version__
from trackloop.analysis.backends import BACKEND_ENV_VAR, BACKENDS
from trackloop.console import (
    _COMMAND_GROUPS,
    _OPTION_GROUPS,
    print_loop_table,
    print_status,
    print_tip,
    print_track_info,
    print_track_table,
    rich_console,
)
from trackloop.exceptions import TrackLibraryError, TrackNotFoundError
from trackloop.library import TrackLibrary
from trackloop.models import NumericRange, SearchCriteria, TrackMetadata
from trackloop.playback import PlaybackHandler, load_playback_audio
from trackloop.utils import LIBRARY_ENV_VAR, format_duration

# CLI --help styling
click.rich_click.OPTION_GROUPS = _OPTION_GROUPS
click.rich_click.COMMAND_GROUPS = _COMMAND_GROUPS
click.rich_click.USE_RICH_MARKUP = True
# End CLI styling


@click.group("trackloop")
@click.option("--debug", "-d", is_flag=True, default=False, help="Enables debugging mode.")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enables verbose logging output.")
@click.option("--library", "-L", type=click.Path(file_okay=False), default=None, help=r"Library directory. [dim](default: $TRACKLOOP_LIBRARY or ./tracks)[/]")
@click.option("--backend", type=click.Choice(tuple(BACKENDS), case_sensitive=False), default=None, help=r"Analysis engine. [dim](default: $TRACKLOOP_BACKEND or dsp)[/]")
@click.version_option(__version__, prog_name="trackloop", message="%(prog)s %(version)s")
def cli_main(debug, verbose, library, backend):
    """A personal music library that detects tempo, key, song structure and loopable sections."""
    # Store flags in environ instead of passing them as parameters
    if debug:
        os.environ["TRACKLOOP_DEBUG"] = "1"
        warnings.simplefilter("default")
        rich_traceback_handler(console=rich_console, suppress=[click])
    else:
        warnings.filterwarnings("ignore")

    if verbose:
        os.environ["TRACKLOOP_VERBOSE"] = "1"
    if library:
        os.environ[LIBRARY_ENV_VAR] = library
    if backend:
        os.environ[BACKEND_ENV_VAR] = backend.lower()

    if verbose:
        logging.basicConfig(format="%(message)s", level=logging.INFO, handlers=[RichHandler(level=logging.INFO, console=rich_console, rich_tracebacks=True, show_path=debug, show_time=False, tracebacks_suppress=[click])])
    else:
        logging.basicConfig(format="%(message)s", level=logging.WARNING, handlers=[RichHandler(level=logging.WARNING, console=rich_console, show_time=False, show_path=False)])


def parse_range(ctx, param, value):
    if value is None:
        return None
    try:
        return NumericRange.parse(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


@cli_main.command("import")
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@optgroup.group("Tag overrides", help="Replace the tags read from the file")
@optgroup.option("--title", type=str, default=None, help="Track title.")
@optgroup.option("--artist", type=str, default=None, help="Artist name.")
@optgroup.option("--album", type=str, default=None, help="Album name.")
@optgroup.option("--genre", type=str, default=None, help="Genre.")
def import_(paths, **overrides):
    """Import MP3 or WAV files into the library and analyze them."""
    overrides = {name: value for name, value in overrides.items() if value is not None}
    library = get_library()
    failed = 0

    for path in paths:
        try:
            tags = replace(library.tag_reader(path), **overrides) if overrides else None
            with Progress(
                SpinnerColumn(),
                *Progress.get_default_columns(),
                TimeElapsedColumn(),
                console=rich_console,
                transient=True
            ) as progress:
                progress.add_task(f"Importing {os.path.basename(path)}", total=None)
                track = library.import_track(path, tags=tags)
        except (TrackLibraryError, OSError) as e:
            failed += 1
            print_exception(e)
            continue

        print_status(
            f"Imported [bold]{track.title}[/] by {track.artist}: "
            f"{track.bpm:.1f} BPM, key {track.key}, {len(track.structure)} parts, {len(track.loops)} loops",
            "success",
        )
        print_tip(f"ID: {track.id}")

    if failed:
        sys.exit(1)


@cli_main.command("list")
@click.option("--bpm", "-b", type=str, default=None, callback=parse_range, help='Filter by BPM range, e.g. "120-140".')
@click.option("--key", "-k", type=str, default=None, help='Filter by musical key, e.g. "Am".')
@click.option("--duration", type=str, default=None, callback=parse_range, help='Filter by duration range in seconds, e.g. "60-300".')
@click.option("--loops", "-l", "has_loops", is_flag=True, default=False, help="Only show tracks with detected loops.")
@click.option("--artist", "-a", type=str, default=None, help="Filter by artist name (partial match).")
@click.option("--search", "-s", type=str, default=None, help="Search in title, artist, album or genre (partial match).")
@click.option("--json", "-j", "as_json", is_flag=True, default=False, help="Output the matching records as JSON.")
def list_(bpm, key, duration, has_loops, artist, search, as_json):
    """List the tracks in the library."""
    try:
        criteria = SearchCriteria(
            bpm=bpm,
            key=key,
            duration=duration,
            has_loops=has_loops or None,
            artist=artist,
            search=search,
        )
        tracks = get_library().search_tracks(criteria)
    except TrackLibraryError as e:
        print_exception(e)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps([track.to_dict() for track in tracks], indent=2))
        return

    if not tracks:
        print_status("No tracks found in library.", "warning")
        return

    print_track_table(tracks, f"Found {len(tracks)} track(s)")


@cli_main.command()
@click.argument("identifier", type=str)
def show(identifier):
    """Show the analysis of a track (id, title, artist or partial match)."""
    try:
        track = resolve_track(get_library(), identifier)
    except TrackLibraryError as e:
        print_exception(e)
        sys.exit(1)
    print_track_info(track)


@cli_main.command()
@click.argument("identifier", type=str, required=False)
def reanalyze(identifier):
    """Re-analyze one track, or every track when no identifier is given."""
    library = get_library()

    try:
        if identifier:
            track = resolve_track(library, identifier)
            with rich_console.status(f"Analyzing {track.filename}..."):
                track = library.reanalyze_track(track.id)
            print_status(f"Analysis complete for {track.filename}", "success")
            print_track_info(track)
            return

        def report(track: TrackMetadata, error):
            if error is None:
                print_status(f"Completed: {track.filename} ({track.bpm:.1f} BPM, {track.key})", "success")
            else:
                print_status(f"Failed: {track.filename} - {error}", "error")

        with rich_console.status("Analyzing library..."):
            updated = library.reanalyze_all(on_progress=report)
    except TrackLibraryError as e:
        print_exception(e)
        sys.exit(1)

    if not updated:
        print_status("No tracks were analyzed.", "warning")
    else:
        print_status(f"Analyzed {len(updated)} track(s).", "success")


@cli_main.command()
@click.argument("identifier", type=str)
@click.option("--yes", "-y", is_flag=True, default=False, help="Do not ask for confirmation.")
def delete(identifier, yes):
    """Delete a track's audio and metadata from the library."""
    library = get_library()

    try:
        track = resolve_track(library, identifier)
        if not yes and not click.confirm(f'Delete "{track.title}" by {track.artist} ({track.id})?'):
            return
        deleted = library.delete_track(track.id)
    except TrackLibraryError as e:
        print_exception(e)
        sys.exit(1)

    if not deleted:
        print_status(f"Could not delete {track.id}.", "error")
        sys.exit(1)
    print_status(f"Deleted {track.title}", "success")


@cli_main.command()
@click.argument("identifier", type=str)
@click.option("--loop", "loop_index", type=click.IntRange(min=1), default=None, help="Play the Nth detected loop on repeat instead of the whole track.")
@click.option("--info", "info_only", is_flag=True, default=False, help="Only show the track details without playing.")
def play(identifier, loop_index, info_only):
    """Play a track, or loop one of its detected loops, from the terminal."""
    try:
        track = resolve_track(get_library(), identifier)
        rich_console.print(
            f"\n[green]{track.title}[/] by {track.artist} "
            f"[dim]({format_duration(track.duration)}, {track.bpm:.1f} BPM, {track.key})[/]"
        )
        if track.loops:
            print_loop_table(track.loops)
        if info_only:
            return

        if loop_index is not None and loop_index > len(track.loops):
            raise click.BadParameter(f"{track.title} has {len(track.loops)} loop(s).", param_hint="--loop")

        playback_data, samplerate = load_playback_audio(track.wav_path)
        handler = PlaybackHandler()

        if loop_index is None:
            rich_console.print("(Press [red]Ctrl+C[/] to stop playback.)")
            handler.play(playback_data, samplerate)
            return

        loop = track.loops[loop_index - 1]
        loop_start = int(loop.start * samplerate)
        loop_end = min(int(loop.end * samplerate), playback_data.shape[0])
        rich_console.print(
            f"\nLooping [bold]{loop.name}[/] from [green]{format_duration(loop.end)}[/] "
            f"back to [green]{format_duration(loop.start)}[/]"
        )
        rich_console.print("(Press [red]Ctrl+C[/] to stop looping.)")
        handler.play_looping(playback_data, samplerate, loop_start, loop_end, start_from=loop_start)
    except TrackLibraryError as e:
        print_exception(e)
        sys.exit(1)


@cli_main.command()
def version():
    """Print the trackloop version."""
    click.echo(f"trackloop {__version__}")


def get_library() -> TrackLibrary:
    return TrackLibrary()


def resolve_track(library: TrackLibrary, identifier: str) -> TrackMetadata:
    track = library.find_track(identifier)
    if track is None:
        raise TrackNotFoundError(
            f"Track '{identifier}' not found. Try a partial title or artist name, or run 'trackloop list'."
        )
    return track


def print_exception(e: Exception):
    if "TRACKLOOP_DEBUG" in os.environ:
        rich_console.print_exception(suppress=[click])
    else:
        logging.error(e)


if __name__ == "__main__":
    cli_main()
