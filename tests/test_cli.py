"""Tests for the turboloader command line interface."""

import json

import pytest
from typer.testing import CliRunner

from turboloader import __version__
from turboloader.cli import app
from turboloader.core.config import ENV_OPTIONS, reset_config

runner = CliRunner()

V4 = "polytrack_v4_prod_track_"
V5 = "polytrack_v5_prod_track_"


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    for var in ENV_OPTIONS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    yield tmp_path
    reset_config()


def invoke(workdir, *args, **kwargs):
    return runner.invoke(app, ["--config", str(workdir / "none.yaml"), *args], **kwargs)


def write_dump(path, entries):
    path.write_text(json.dumps(entries), encoding="utf-8")
    return path


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestImport:
    def test_rename_into_empty_store(self, workdir):
        tracks = workdir / "tracks.txt"
        tracks.write_text("Loop | PolyTrack1XYZABCDEF\nLoop | PolyTrack1ABCDEFGHI\n", encoding="utf-8")
        store_path = workdir / "ls.json"

        result = invoke(workdir, "import", str(tracks), "--store", str(store_path), "--mode", "rename")

        assert result.exit_code == 0, result.output
        stored = json.loads(store_path.read_text(encoding="utf-8"))
        assert list(stored) == [V4 + "Loop", V4 + "Loop (1)"]
        assert json.loads(stored[V4 + "Loop (1)"])["data"] == "PolyTrack1ABCDEFGHI"

    def test_skip_keeps_existing(self, workdir):
        store_path = write_dump(workdir / "ls.json", {V5 + "Loop": "PolyTrack1OLDOLDOLD"})
        tracks = workdir / "tracks.txt"
        tracks.write_text("Loop | PolyTrack1NEWNEWNEW\n", encoding="utf-8")

        result = invoke(workdir, "import", str(tracks), "--store", str(store_path))

        assert result.exit_code == 0, result.output
        stored = json.loads(store_path.read_text(encoding="utf-8"))
        assert stored == {V5 + "Loop": "PolyTrack1OLDOLDOLD"}

    def test_legacy_conversion(self, workdir):
        tracks = workdir / "tracks.txt"
        tracks.write_text("Fast | PolyTrack2Xq9zLmNoP0aa\n", encoding="utf-8")
        store_path = workdir / "ls.json"

        result = invoke(workdir, "import", str(tracks), "--store", str(store_path), "--legacy")

        assert result.exit_code == 0, result.output
        stored = json.loads(store_path.read_text(encoding="utf-8"))
        assert json.loads(stored[V4 + "Fast"])["data"] == "PolyTrack1Xq9zLmNoP0aa"

    def test_no_valid_tracks(self, workdir):
        tracks = workdir / "tracks.txt"
        tracks.write_text("# nothing here\nhello world\n", encoding="utf-8")

        result = invoke(workdir, "import", str(tracks), "--store", str(workdir / "ls.json"))
        assert result.exit_code == 1
        assert not (workdir / "ls.json").exists()

    def test_invalid_mode(self, workdir):
        tracks = workdir / "tracks.txt"
        tracks.write_text("A | PolyTrack1ABCDEFGHI\n", encoding="utf-8")

        result = invoke(workdir, "import", str(tracks), "--store", str(workdir / "ls.json"), "--mode", "merge")
        assert result.exit_code == 1

    def test_missing_store(self, workdir):
        tracks = workdir / "tracks.txt"
        tracks.write_text("A | PolyTrack1ABCDEFGHI\n", encoding="utf-8")

        result = invoke(workdir, "import", str(tracks))
        assert result.exit_code == 1


class TestExport:
    def test_export_to_file(self, workdir):
        store_path = write_dump(workdir / "ls.json", {
            "settings": "{}",
            V5 + "Alpha": json.dumps({"data": "PolyTrack1AAAAAA", "saveTime": 1}),
        })
        output = workdir / "out.txt"

        result = invoke(workdir, "export", "--store", str(store_path), "--output", str(output))

        assert result.exit_code == 0, result.output
        assert "Alpha | PolyTrack1AAAAAA" in output.read_text(encoding="utf-8")


class TestDeleteAll:
    def test_delete_with_yes(self, workdir):
        store_path = write_dump(workdir / "ls.json", {"settings": "{}", V5 + "A": "PolyTrack1AAAAAA"})

        result = invoke(workdir, "delete-all", "--store", str(store_path), "--yes")

        assert result.exit_code == 0, result.output
        assert json.loads(store_path.read_text(encoding="utf-8")) == {"settings": "{}"}

    def test_declined_confirmation(self, workdir):
        store_path = write_dump(workdir / "ls.json", {V5 + "A": "PolyTrack1AAAAAA"})

        result = invoke(workdir, "delete-all", "--store", str(store_path), input="n\n")

        assert result.exit_code == 0
        assert "Delete cancelled" in result.output
        assert V5 + "A" in json.loads(store_path.read_text(encoding="utf-8"))


class TestDetect:
    def test_detect(self, workdir):
        store_path = write_dump(workdir / "ls.json", {V5 + "My%20Track": "PolyTrack1AAAAAA"})

        result = invoke(workdir, "detect", "--store", str(store_path))

        assert result.exit_code == 0, result.output
        assert V5 in result.output
        assert "percent" in result.output

    def test_numeric_store_path_from_env(self, workdir, monkeypatch):
        write_dump(workdir / "2024", {V5 + "A": "PolyTrack1AAAAAA"})
        monkeypatch.setenv("TURBOLOADER_STORE_PATH", "2024")

        result = invoke(workdir, "detect")

        assert result.exit_code == 0, result.output
        assert V5 in result.output


class TestDecode:
    def test_v3(self, workdir):
        result = invoke(workdir, "decode", "v3EAM92bwBQ0yXkTfW8c")
        assert result.exit_code == 0
        assert "Loop" in result.output

    def test_unrecognized(self, workdir):
        result = invoke(workdir, "decode", "hello")
        assert result.exit_code == 1


class TestConvert:
    def test_convert(self, workdir):
        result = invoke(workdir, "convert", "PolyTrack2Xq9zLmNoP0aa")
        assert result.exit_code == 0
        assert "PolyTrack1Xq9zLmNoP0aa" in result.output

    def test_baseline_rejected(self, workdir):
        result = invoke(workdir, "convert", "PolyTrack1ABCDEF")
        assert result.exit_code == 1


class TestConfigInit:
    def test_writes_file(self, workdir):
        result = invoke(workdir, "config-init")
        assert result.exit_code == 0
        assert (workdir / "turboloader.yaml").exists()

    def test_refuses_overwrite(self, workdir):
        (workdir / "turboloader.yaml").write_text("store: {}\n")
        result = invoke(workdir, "config-init")
        assert result.exit_code == 1
        assert (workdir / "turboloader.yaml").read_text() == "store: {}\n"
