import json

import pytest
from click.testing import CliRunner

from signals import binary_noise, make_track
from trackloop import __version__
from trackloop.cli import cli_main
from trackloop.library import TrackLibrary

SR = 22050


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def library_dir(tmp_path):
    return tmp_path / "library"


def invoke(runner, library_dir, *args):
    return runner.invoke(cli_main, ["--library", str(library_dir), *args])


def listed(runner, library_dir, *args):
    result = invoke(runner, library_dir, "list", "--json", *args)
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


def test_version(runner):
    result = runner.invoke(cli_main, ["version"])
    assert result.exit_code == 0
    assert result.output.strip() == f"trackloop {__version__}"


def test_list_empty_library(runner, library_dir):
    assert listed(runner, library_dir) == []


def test_library_from_environment(runner, tmp_path, monkeypatch):
    monkeypatch.setenv("TRACKLOOP_LIBRARY", str(tmp_path / "env-library"))
    TrackLibrary(tmp_path / "env-library").save_track_metadata(make_track(id="from-env"))

    result = runner.invoke(cli_main, ["list", "--json"])
    assert result.exit_code == 0, result.output
    assert [record["id"] for record in json.loads(result.output)] == ["from-env"]


def test_import_list_and_delete(runner, library_dir, write_wav):
    path = write_wav("noise.wav", binary_noise(10, SR, amplitude=0.5), SR)

    result = invoke(runner, library_dir, "import", str(path), "--artist", "CLI Artist")
    assert result.exit_code == 0, result.output

    records = listed(runner, library_dir)
    assert len(records) == 1
    record = records[0]
    assert record["title"] == "noise"
    assert record["artist"] == "CLI Artist"
    assert record["filename"] == "noise.wav"
    assert (library_dir / f"{record['id']}.wav").is_file()

    result = invoke(runner, library_dir, "show", record["id"])
    assert result.exit_code == 0, result.output

    result = invoke(runner, library_dir, "delete", "noise", "--yes")
    assert result.exit_code == 0, result.output
    assert listed(runner, library_dir) == []


def test_import_unsupported_file_fails(runner, library_dir, tmp_path):
    source = tmp_path / "song.ogg"
    source.write_bytes(b"OggS")

    result = invoke(runner, library_dir, "import", str(source))
    assert result.exit_code == 1


def test_list_filters(runner, library_dir):
    library = TrackLibrary(library_dir)
    library.save_track_metadata(make_track(id="slow", bpm=100.0, key="C"))
    library.save_track_metadata(make_track(id="fast", bpm=128.0, key="Am"))

    assert [r["id"] for r in listed(runner, library_dir, "--bpm", "120-130")] == ["fast"]
    assert [r["id"] for r in listed(runner, library_dir, "--key", "C")] == ["slow"]
    assert listed(runner, library_dir, "--loops") == []


def test_list_rejects_malformed_range(runner, library_dir):
    result = invoke(runner, library_dir, "list", "--bpm", "fast")
    assert result.exit_code == 2


@pytest.mark.parametrize("command", ["show", "delete", "reanalyze", "play"])
def test_unknown_track_exits_with_error(runner, library_dir, command):
    result = invoke(runner, library_dir, command, "no-such-track")
    assert result.exit_code == 1


def test_delete_asks_for_confirmation(runner, library_dir):
    TrackLibrary(library_dir).save_track_metadata(make_track(id="keep-me"))

    result = runner.invoke(cli_main, ["--library", str(library_dir), "delete", "keep-me"], input="n\n")
    assert result.exit_code == 0
    assert [r["id"] for r in listed(runner, library_dir)] == ["keep-me"]


def test_play_info_does_not_open_audio(runner, library_dir):
    TrackLibrary(library_dir).save_track_metadata(make_track(id="info-only"))

    result = invoke(runner, library_dir, "play", "info-only", "--info")
    assert result.exit_code == 0, result.output
    assert "Song" in result.output
