import string
from pathlib import Path

import pytest
import responses

from jukebox.download import DownloadError
from jukebox.errors import JukeboxError
from jukebox.song import (
    HostedSong,
    LocalSong,
    NongType,
    SongMetadata,
    YTSong,
    random_unique_id,
)


def make_metadata(level=None, offset=0):
    return SongMetadata(42, "abc", "Song", "Artist", level, offset)


def test_random_unique_id_length_and_alphabet():
    value = random_unique_id(16)
    assert len(value) == 16
    assert set(value) <= set(string.ascii_letters + string.digits)


def test_random_unique_id_default_length():
    assert len(random_unique_id()) == 16


def test_random_unique_id_negative_length():
    with pytest.raises(ValueError):
        random_unique_id(-1)


def test_metadata_from_json_reads_fields():
    data = {"name": "Song", "artist": "Artist", "unique_id": "abc", "offset": 250, "level": "Lvl"}
    meta = SongMetadata.from_json(data, 7)
    assert meta == SongMetadata(7, "abc", "Song", "Artist", "Lvl", 250)


def test_metadata_from_json_defaults():
    meta = SongMetadata.from_json({"name": "a", "artist": "b", "unique_id": "c", "offset": "x"}, 1)
    assert meta.start_offset == 0
    assert meta.level is None


@pytest.mark.parametrize(
    "data, message",
    [
        ({"artist": "b", "unique_id": "c"}, "Invalid JSON key name"),
        ({"name": "a", "unique_id": "c"}, "Invalid JSON key artist"),
        ({"name": "a", "artist": "b", "unique_id": 3}, "Invalid JSON key unique_id"),
        ([], "Invalid JSON key name"),
    ],
)
def test_metadata_from_json_errors(data, message):
    with pytest.raises(JukeboxError) as info:
        SongMetadata.from_json(data, 1)
    assert str(info.value) == message


def test_local_song_round_trip(tmp_path):
    song = LocalSong(make_metadata(level="Lvl", offset=5), tmp_path / "a.mp3")
    restored = LocalSong.from_json(song.to_json(), 42)
    assert restored == song
    assert restored.type is NongType.LOCAL
    assert restored.index_id is None


def test_local_song_json_keys(tmp_path):
    data = LocalSong(make_metadata(), tmp_path / "a.mp3").to_json()
    assert list(data) == ["name", "unique_id", "artist", "path", "offset"]
    assert data["path"] == str(tmp_path / "a.mp3")


def test_local_song_invalid_path():
    data = {"name": "a", "artist": "b", "unique_id": "c"}
    with pytest.raises(JukeboxError) as info:
        LocalSong.from_json(data, 1)
    assert str(info.value).endswith("Reason: invalid path")
    assert str(info.value).startswith("Local Song ")


def test_local_song_invalid_metadata_wrapped():
    with pytest.raises(JukeboxError) as info:
        LocalSong.from_json({"path": "x"}, 1)
    assert str(info.value).endswith("Reason: Invalid JSON key name")


def test_create_unknown(tmp_path):
    song = LocalSong.create_unknown(99, tmp_path / "99.mp3")
    assert song.metadata.name == "Unknown"
    assert song.metadata.artist == ""
    assert song.metadata.gd_id == 99
    assert len(song.metadata.unique_id) == 16
    assert song.path == tmp_path / "99.mp3"


def test_yt_song_round_trip(tmp_path):
    song = YTSong(make_metadata(), "dQw4w9WgXcQ", "idx", tmp_path / "y.mp3")
    data = song.to_json()
    assert data["youtube_id"] == "dQw4w9WgXcQ"
    assert data["index_id"] == "idx"
    assert YTSong.from_json(data, 42) == song


def test_yt_song_without_path_cannot_be_stored():
    with pytest.raises(JukeboxError):
        YTSong(make_metadata(), "dQw4w9WgXcQ").to_json()


def test_yt_song_invalid_youtube_id_json():
    data = {"name": "a", "artist": "b", "unique_id": "c", "path": "p"}
    with pytest.raises(JukeboxError) as info:
        YTSong.from_json(data, 1)
    assert str(info.value).endswith("Reason: invalid youtube ID")


def test_yt_download_rejects_bad_id():
    song = YTSong(make_metadata(), "short")
    with pytest.raises(DownloadError) as info:
        song.start_download()
    assert str(info.value) == "Invalid YouTube ID"


def test_yt_download_refuses_existing_file(tmp_path):
    target = tmp_path / "y.mp3"
    target.write_bytes(b"data")
    with pytest.raises(DownloadError) as info:
        YTSong(make_metadata(), "dQw4w9WgXcQ", path=target).start_download()
    assert str(info.value) == "Song already is downloaded"


def test_hosted_song_round_trip(tmp_path):
    song = HostedSong(make_metadata(level="L"), "https://example.com/a.mp3", None, tmp_path / "h.mp3")
    data = song.to_json()
    assert "index_id" not in data
    assert data["level"] == "L"
    restored = HostedSong.from_json(data, 42)
    assert restored == song
    assert restored.type is NongType.HOSTED


def test_hosted_song_invalid_url():
    data = {"name": "a", "artist": "b", "unique_id": "c", "path": "p", "url": 5}
    with pytest.raises(JukeboxError) as info:
        HostedSong.from_json(data, 1)
    assert str(info.value).startswith("Hosted song ")
    assert str(info.value).endswith("Reason: invalid url")


def test_hosted_path_is_converted():
    song = HostedSong(make_metadata(), "https://example.com/a.mp3", path="some/file.mp3")
    assert song.path == Path("some/file.mp3")


def test_hosted_download_returns_body():
    url = "https://example.com/song.mp3"
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, url, body=b"audio-bytes", status=200)
        song = HostedSong(make_metadata(), url)
        seen = []
        assert song.start_download(seen.append) == b"audio-bytes"
    assert seen


def test_hosted_download_refuses_existing_file(tmp_path):
    target = tmp_path / "h.mp3"
    target.write_bytes(b"x")
    song = HostedSong(make_metadata(), "https://example.com/song.mp3", path=target)
    with responses.RequestsMock() as rsps:
        with pytest.raises(DownloadError) as info:
            song.start_download()
        assert len(rsps.calls) == 0
    assert str(info.value) == "Song already is downloaded"