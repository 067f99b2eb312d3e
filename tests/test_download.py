import json

import pytest
import responses

from jukebox.download import (
    COBALT_API_URL,
    DownloadError,
    download_hosted,
    download_youtube,
    url_from_metadata,
)
from jukebox.errors import JukeboxError

SONG_URL = "https://files.example.com/song.mp3"


def test_download_hosted_returns_body():
    with responses.RequestsMock() as rsps:
        rsps.get(SONG_URL, body=b"audio-bytes")
        assert download_hosted(SONG_URL) == b"audio-bytes"


def test_download_hosted_reports_progress_in_range():
    with responses.RequestsMock() as rsps:
        rsps.get(SONG_URL, body=b"x" * 200_000)
        progress = []
        data = download_hosted(SONG_URL, progress.append)
    assert len(data) == 200_000
    assert progress
    assert all(0.0 <= p <= 100.0 for p in progress)
    assert progress == sorted(progress)


def test_download_hosted_502_message():
    with responses.RequestsMock() as rsps:
        rsps.get(SONG_URL, status=502)
        with pytest.raises(DownloadError) as info:
            download_hosted(SONG_URL)
    assert "Service is currently unavailable" in str(info.value)


def test_download_hosted_other_status():
    with responses.RequestsMock() as rsps:
        rsps.get(SONG_URL, status=404)
        with pytest.raises(DownloadError) as info:
            download_hosted(SONG_URL)
    assert str(info.value) == "Web request failed. Status 404"


def test_download_hosted_connection_error_is_download_error():
    with responses.RequestsMock():
        with pytest.raises(JukeboxError):
            download_hosted("https://unregistered.example.com/x.mp3")


def test_url_from_metadata_success():
    payload = {"status": "stream", "url": SONG_URL}
    assert url_from_metadata(200, payload) == SONG_URL


def test_url_from_metadata_bad_status_code():
    with pytest.raises(DownloadError) as info:
        url_from_metadata(500, {"status": "stream", "url": SONG_URL})
    assert str(info.value) == "cobalt metadata query failed with status code 500"


def test_url_from_metadata_invalid_json():
    with pytest.raises(DownloadError) as info:
        url_from_metadata(200, None)
    assert str(info.value) == "cobalt metadata query returned invalid JSON"


@pytest.mark.parametrize(
    "payload",
    [{"status": "error"}, {"url": SONG_URL}, {"status": 5}, ["stream"]],
)
def test_url_from_metadata_invalid_status(payload):
    with pytest.raises(DownloadError) as info:
        url_from_metadata(200, payload)
    assert str(info.value) == "Invalid metadata status"


def test_url_from_metadata_missing_url():
    with pytest.raises(DownloadError) as info:
        url_from_metadata(200, {"status": "stream", "url": 3})
    assert str(info.value) == "No download URL returned"


def test_download_youtube_invalid_id():
    with responses.RequestsMock() as rsps:
        with pytest.raises(DownloadError) as info:
            download_youtube("short")
        assert len(rsps.calls) == 0
    assert str(info.value) == "Invalid YouTube ID"


def test_download_youtube_full_flow():
    with responses.RequestsMock() as rsps:
        rsps.post(COBALT_API_URL, json={"status": "stream", "url": SONG_URL})
        rsps.get(SONG_URL, body=b"mp3data")
        data = download_youtube("abcdefghijk")
        first_request = rsps.calls[0].request
    assert data == b"mp3data"
    sent = json.loads(first_request.body)
    assert sent["url"] == "https://www.youtube.com/watch?v=abcdefghijk"
    assert sent["aFormat"] == "mp3"
    assert sent["isAudioOnly"] == "true"
    assert first_request.headers["Accept"] == "application/json"


def test_download_youtube_metadata_failure():
    with responses.RequestsMock() as rsps:
        rsps.post(COBALT_API_URL, status=400, json={})
        with pytest.raises(DownloadError) as info:
            download_youtube("abcdefghijk")
        assert len(rsps.calls) == 1
    assert str(info.value) == "cobalt metadata query failed with status code 400"


def test_download_youtube_non_json_reply():
    with responses.RequestsMock() as rsps:
        rsps.post(COBALT_API_URL, body="not json")
        with pytest.raises(DownloadError) as info:
            download_youtube("abcdefghijk")
    assert str(info.value) == "cobalt metadata query returned invalid JSON"