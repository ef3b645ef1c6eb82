"""
Rich output for the trackloop CLI.

Everything printed by the commands goes through `rich_console`: status
lines, track and loop tables, the per-track report and the help-page
groupings used by rich_click.
"""

from __future__ import annotations

from rich.box import ROUNDED, SIMPLE_HEAD
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from trackloop.models import Loop, TrackMetadata
from trackloop.utils import format_duration

rich_console = Console()

# Marker and color per status kind
STATUS_MARKERS = {
    "success": ("✓", "green"),
    "error": ("✗", "red"),
    "warning": ("!", "yellow"),
    "info": ("•", "cyan"),
}

# (lower bound, style) pairs, highest first
CONFIDENCE_STYLES = ((0.8, "bold green"), (0.6, "yellow"), (0.0, "red"))


def print_header(title: str, subtitle: str | None = None):
    text = Text(title, style="bold bright_white")
    if subtitle:
        text.append(f"\n{subtitle}", style="dim")
    rich_console.print(Panel(text, box=ROUNDED, border_style="cyan", expand=False, padding=(0, 2)))


def print_status(message: str, status: str = "info"):
    marker, color = STATUS_MARKERS.get(status, STATUS_MARKERS["info"])
    rich_console.print(f"[bold {color}]{marker}[/] {message}")


def print_tip(message: str):
    rich_console.print(f"[dim]{message}[/]")


def confidence_style(confidence: float) -> str:
    for lower, style in CONFIDENCE_STYLES:
        if confidence >= lower:
            return style
    return CONFIDENCE_STYLES[-1][1]


def format_confidence(confidence: float) -> Text:
    """Confidence as a right-aligned percentage, colored by strength."""
    return Text(f"{confidence:>6.1%}", style=confidence_style(confidence))


def create_results_table(title: str, columns: list[tuple[str, str, str]]) -> Table:
    """Table with one column per (name, style, justify) triple."""
    table = Table(title=title, title_justify="left", box=SIMPLE_HEAD, header_style="bold cyan")
    for name, style, justify in columns:
        table.add_column(name, style=style, justify=justify)
    return table


def print_track_table(tracks: list[TrackMetadata], title: str):
    table = create_results_table(
        title,
        [
            ("#", "cyan", "right"),
            ("Title", "bold", "left"),
            ("Artist", "", "left"),
            ("BPM", "magenta", "right"),
            ("Key", "magenta", "center"),
            ("Duration", "green", "right"),
            ("Loops", "", "right"),
            ("ID", "dim", "left"),
        ],
    )
    for index, track in enumerate(tracks, start=1):
        table.add_row(
            str(index),
            track.title,
            track.artist,
            f"{track.bpm:.1f}",
            track.key,
            format_duration(track.duration),
            str(len(track.loops)),
            track.id,
        )
    rich_console.print(table)


def print_track_info(track: TrackMetadata):
    """Print a track's tags, analysis summary, parts and loops."""
    print_header(track.title, f"{track.artist} · {track.album} · {track.genre}")

    summary = Table(show_header=False, box=None, padding=(0, 2), collapse_padding=True)
    summary.add_column("Field", style="cyan bold", no_wrap=True)
    summary.add_column("Value")
    summary.add_row("ID", track.id)
    summary.add_row("Duration", format_duration(track.duration))
    summary.add_row("BPM", f"{track.bpm:.1f}")
    summary.add_row("Key", track.key)
    summary.add_row("Beatgrid points", str(len(track.beatgrid)))
    summary.add_row("Format", f"{track.sample_rate} Hz, {track.bit_depth}-bit, {track.channels} ch")
    summary.add_row("Imported", track.created_at.strftime("%Y-%m-%d %H:%M"))
    summary.add_row("Version", track.version)
    rich_console.print(summary)

    if track.structure.parts:
        parts = create_results_table(
            "Structure",
            [("Part", "cyan", "right"), ("Time", "green", "left"), ("Type", "magenta", "left"),
             ("Description", "", "left"), ("Confidence", "", "right")],
        )
        for part in track.structure.parts:
            parts.add_row(
                str(part.number),
                f"{format_duration(part.start)}-{format_duration(part.end)}",
                part.type or "",
                part.description or "",
                format_confidence(part.confidence),
            )
        rich_console.print(parts)

    if track.loops:
        print_loop_table(track.loops)


def print_loop_table(loops: list[Loop]):
    table = create_results_table(
        "Loops",
        [("#", "cyan", "right"), ("Name", "bold", "left"), ("Time", "green", "left"),
         ("Length", "", "right"), ("Confidence", "", "right")],
    )
    for index, loop in enumerate(loops, start=1):
        table.add_row(
            str(index),
            loop.name,
            f"{format_duration(loop.start)}-{format_duration(loop.end)}",
            f"{loop.duration:.1f}s",
            format_confidence(loop.confidence),
        )
    rich_console.print(table)


# ============================================================================
# CLI HELP STYLING
# ============================================================================

_filter_options = ["--bpm", "--key", "--duration", "--loops", "--artist", "--search"]
_output_options = ["--json"]

_OPTION_GROUPS = {
    "trackloop list": [
        {"name": "Filter options", "options": _filter_options},
        {"name": "Output options", "options": _output_options},
    ],
}

_COMMAND_GROUPS = {
    "trackloop": [
        {
            "name": "Library Commands",
            "commands": ["import", "list", "show", "delete"],
        },
        {
            "name": "Analysis Commands",
            "commands": ["reanalyze"],
        },
        {
            "name": "Playback Commands",
            "commands": ["play"],
        },
    ]
}
