"""Downloading song audio from hosted URLs and through the YouTube proxy."""

from __future__ import annotations

from typing import Any, Callable, Optional

import requests

from jukebox.errors import JukeboxError

TIMEOUT_SECONDS = 30
COBALT_API_URL = "https://api.cobalt.tools/api/json"
YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v={}"
_CHUNK_SIZE = 64 * 1024

ProgressCallback = Callable[[float], None]


class DownloadError(JukeboxError):
    """A download could not be started or did not complete."""


def _is_ok(status_code: int) -> bool:
    return 200 <= status_code < 300


def download_hosted(url: str, on_progress: Optional[ProgressCallback] = None) -> bytes:
    """Fetch ``url`` and return its body.

    ``on_progress`` receives the download progress in percent (0 to 100),
    or 0 when the size is not known.
    """
    try:
        with requests.get(url, timeout=TIMEOUT_SECONDS, stream=True) as response:
            if not _is_ok(response.status_code):
                if response.status_code == 502:
                    raise DownloadError(
                        "Web request failed. Service is currently unavailable "
                        "or under maintenance. Please try again later."
                    )
                raise DownloadError(
                    f"Web request failed. Status {response.status_code}"
                )
            try:
                total = int(response.headers.get("Content-Length", 0))
            except ValueError:
                total = 0
            received = bytearray()
            for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                received.extend(chunk)
                if on_progress is not None:
                    progress = min(100.0, len(received) * 100.0 / total) if total else 0.0
                    on_progress(progress)
            return bytes(received)
    except requests.RequestException as exc:
        raise DownloadError(f"Web request failed. {exc}") from exc


def url_from_metadata(status_code: int, payload: Any) -> str:
    """Extract the stream URL from a proxy metadata reply.

    ``payload`` is the decoded JSON body, or None when it was not valid JSON.
    """
    if not _is_ok(status_code):
        raise DownloadError(
            f"cobalt metadata query failed with status code {status_code}"
        )
    if payload is None:
        raise DownloadError("cobalt metadata query returned invalid JSON")
    if not isinstance(payload, dict) or payload.get("status") != "stream":
        raise DownloadError("Invalid metadata status")
    url = payload.get("url")
    if not isinstance(url, str):
        raise DownloadError("No download URL returned")
    return url


def download_youtube(
    youtube_id: str, on_progress: Optional[ProgressCallback] = None
) -> bytes:
    """Download the mp3 audio of a YouTube video through the proxy."""
    if len(youtube_id) != 11:
        raise DownloadError("Invalid YouTube ID")

    body = {
        "url": YOUTUBE_WATCH_URL.format(youtube_id),
        "aFormat": "mp3",
        "isAudioOnly": "true",
    }
    headers = {"Accept": "application/json", "Content-Type": "application/json"}
    try:
        response = requests.post(
            COBALT_API_URL, json=body, headers=headers, timeout=TIMEOUT_SECONDS
        )
    except requests.RequestException as exc:
        raise DownloadError(f"Web request failed. {exc}") from exc

    try:
        payload = response.json()
    except ValueError:
        payload = None

    url = url_from_metadata(response.status_code, payload)
    return download_hosted(url, on_progress)