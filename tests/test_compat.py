import json
from pathlib import Path

import pytest

from jukebox.compat import (
    backup_manifest,
    is_song_valid,
    manifest_exists,
    manifest_path,
    parse_manifest,
)
from jukebox.errors import JukeboxError


def _write(save_dir: Path, data) -> None:
    (save_dir / "nong_data.json").write_text(json.dumps(data), encoding="utf-8")


def _sample():
    return {
        "version": 3,
        "nongs": {
            "500": {
                "defaultPath": "/songs/500.mp3",
                "active": "/nongs/custom.mp3",
                "songs": [
                    {"songName": "Original", "authorName": "Author", "path": "/songs/500.mp3"},
                    {
                        "songName": "Custom",
                        "authorName": "Other",
                        "path": "/nongs/custom.mp3",
                        "startOffset": 1200,
                    },
                    {"songName": "Extra", "authorName": "Third", "path": "/nongs/extra.mp3"},
                    {"songName": "Broken"},
                ],
            },
            "600": {"defaultPath": "/songs/600.mp3", "active": 5, "songs": []},
            "700": {
                "defaultPath": "/songs/missing.mp3",
                "active": "/songs/missing.mp3",
                "songs": [{"songName": "A", "authorName": "B", "path": "/other.mp3"}],
            },
        },
    }


def test_is_song_valid():
    assert is_song_valid({"songName": "a", "authorName": "b", "path": "c"}) is True
    assert is_song_valid({"songName": "a", "authorName": "b"}) is False
    assert is_song_valid({"songName": "a", "authorName": 1, "path": "c"}) is False
    assert is_song_valid("song") is False


def test_manifest_path_and_exists(tmp_path):
    assert manifest_path(tmp_path) == tmp_path / "nong_data.json"
    assert manifest_exists(tmp_path) is False
    _write(tmp_path, {})
    assert manifest_exists(tmp_path) is True


def test_parse_missing_manifest(tmp_path):
    with pytest.raises(JukeboxError, match="No manifest exists for V2"):
        parse_manifest(tmp_path)


def test_parse_bad_json(tmp_path):
    (tmp_path / "nong_data.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(JukeboxError, match="Couldn't parse JSON from file"):
        parse_manifest(tmp_path)


@pytest.mark.parametrize(
    "data",
    [
        {"nongs": {}},
        {"version": "3", "nongs": {}},
        {"version": 0, "nongs": {}},
        {"version": 4, "nongs": {}},
        {"version": 2, "nongs": []},
        [],
    ],
)
def test_parse_invalid_manifest(tmp_path, data):
    _write(tmp_path, data)
    with pytest.raises(JukeboxError, match="Invalid JSON"):
        parse_manifest(tmp_path)


def test_parse_manifest_entries(tmp_path):
    _write(tmp_path, _sample())
    manifest = parse_manifest(tmp_path)

    assert set(manifest) == {500}
    entry = manifest[500]
    assert entry.id == 500
    assert entry.default_song.metadata.name == "Original"
    assert entry.default_song.path == Path("/songs/500.mp3")
    assert entry.active.metadata.name == "Custom"
    assert entry.active.metadata.start_offset == 1200

    assert [song.metadata.name for song in entry.songs] == ["Original", "Custom", "Extra"]
    assert all(song.metadata.gd_id == 500 for song in entry.songs)
    assert entry.songs[0].metadata.unique_id == entry.default_song.metadata.unique_id
    assert entry.songs[1].metadata.unique_id == entry.active.metadata.unique_id
    assert entry.songs[2].metadata.unique_id not in {
        entry.default_song.metadata.unique_id,
        entry.active.metadata.unique_id,
    }
    assert entry.songs[2].metadata.start_offset == 0


def test_unique_ids_are_alphanumeric(tmp_path):
    _write(tmp_path, _sample())
    entry = parse_manifest(tmp_path)[500]
    for song in entry.songs:
        assert len(song.metadata.unique_id) == 16
        assert song.metadata.unique_id.isalnum()


def test_backup_manifest_keeps_original(tmp_path):
    _write(tmp_path, _sample())
    backup_manifest(tmp_path)
    backup = tmp_path / ".v2-compat-backup" / "nong_data.json"
    assert backup.read_text(encoding="utf-8") == manifest_path(tmp_path).read_text(
        encoding="utf-8"
    )
    assert manifest_exists(tmp_path) is True


def test_backup_manifest_deletes_original(tmp_path):
    _write(tmp_path, {"version": 1, "nongs": {}})
    (tmp_path / ".v2-compat-backup").write_text("stray file", encoding="utf-8")
    backup_manifest(tmp_path, delete_original=True)
    backup = tmp_path / ".v2-compat-backup" / "nong_data.json"
    assert json.loads(backup.read_text(encoding="utf-8")) == {"version": 1, "nongs": {}}
    assert manifest_exists(tmp_path) is False


def test_backup_without_manifest_does_nothing(tmp_path):
    backup_manifest(tmp_path, delete_original=True)
    assert list(tmp_path.iterdir()) == []