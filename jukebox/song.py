"""Song metadata and the three kinds of replacement songs."""

from __future__ import annotations

import enum
import json
import secrets
import string
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar, Optional

from jukebox.download import (
    DownloadError,
    ProgressCallback,
    download_hosted,
    download_youtube,
)
from jukebox.errors import JukeboxError

UNIQUE_ID_LENGTH = 16
_ALPHABET = string.ascii_letters + string.digits


def random_unique_id(length: int = UNIQUE_ID_LENGTH) -> str:
    """Return a random alphanumeric identifier of ``length`` characters."""
    if length < 0:
        raise ValueError("length must not be negative")
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def _field(value: Any, key: str) -> Any:
    return value.get(key) if isinstance(value, dict) else None


def _int_or(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return default


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _dump(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


@dataclass
class SongMetadata:
    """Descriptive data shared by every kind of song."""

    gd_id: int
    unique_id: str
    name: str
    artist: str
    level: Optional[str] = None
    start_offset: int = 0

    @classmethod
    def from_json(cls, value: Any, song_id: int) -> "SongMetadata":
        """Read metadata from a stored song object for GD song ``song_id``."""
        if not isinstance(_field(value, "name"), str):
            raise JukeboxError("Invalid JSON key name")
        if not isinstance(_field(value, "artist"), str):
            raise JukeboxError("Invalid JSON key artist")
        if not isinstance(_field(value, "unique_id"), str):
            raise JukeboxError("Invalid JSON key unique_id")
        return cls(
            gd_id=song_id,
            unique_id=value["unique_id"],
            name=value["name"],
            artist=value["artist"],
            level=_str_or_none(value.get("level")),
            start_offset=_int_or(value.get("offset"), 0),
        )


class NongType(enum.Enum):
    """Where a song's audio comes from."""

    LOCAL = "local"
    YOUTUBE = "youtube"
    HOSTED = "hosted"


class Song(ABC):
    """A song that can stand in for a GD song.

    Every song has ``metadata``, ``path`` and ``index_id`` attributes;
    local songs always have a path, the others only once downloaded.
    """

    type: ClassVar[NongType]

    @abstractmethod
    def to_json(self) -> dict:
        """Return the stored form of the song."""

    def _base_json(self) -> dict:
        path = getattr(self, "path")
        if path is None:
            raise JukeboxError(
                f"Song {self.metadata.unique_id} has no path to store"
            )
        return {
            "name": self.metadata.name,
            "unique_id": self.metadata.unique_id,
            "artist": self.metadata.artist,
            "path": str(path),
            "offset": self.metadata.start_offset,
        }

    def _finish_json(self, data: dict) -> dict:
        index_id = getattr(self, "index_id")
        if index_id is not None:
            data["index_id"] = index_id
        if self.metadata.level is not None:
            data["level"] = self.metadata.level
        return data


def _parse_metadata(value: Any, song_id: int, label: str) -> SongMetadata:
    try:
        return SongMetadata.from_json(value, song_id)
    except JukeboxError as exc:
        raise JukeboxError(
            f"{label} {_dump(value)} is invalid. Reason: {exc.message}"
        ) from exc


def _require_path(value: Any, label: str) -> Path:
    path = _field(value, "path")
    if not isinstance(path, str):
        raise JukeboxError(f"{label} {_dump(value)} is invalid. Reason: invalid path")
    return Path(path)


@dataclass
class LocalSong(Song):
    """A song whose audio is a file on disk."""

    metadata: SongMetadata
    path: Path

    type: ClassVar[NongType] = NongType.LOCAL

    def __post_init__(self) -> None:
        self.path = Path(self.path)

    @property
    def index_id(self) -> Optional[str]:
        """Local songs never come from an index."""
        return None

    @classmethod
    def create_unknown(cls, song_id: int, path: Path | str) -> "LocalSong":
        """A placeholder default song for an id whose info is not known yet."""
        return cls(SongMetadata(song_id, random_unique_id(), "Unknown", ""), Path(path))

    def to_json(self) -> dict:
        return self._finish_json(self._base_json())

    @classmethod
    def from_json(cls, value: Any, song_id: int) -> "LocalSong":
        label = "Local Song"
        metadata = _parse_metadata(value, song_id, label)
        return cls(metadata, _require_path(value, label))


@dataclass
class YTSong(Song):
    """A song downloaded from a YouTube video."""

    metadata: SongMetadata
    youtube_id: str
    index_id: Optional[str] = None
    path: Optional[Path] = None

    type: ClassVar[NongType] = NongType.YOUTUBE

    def __post_init__(self) -> None:
        if self.path is not None:
            self.path = Path(self.path)

    def start_download(self, on_progress: Optional[ProgressCallback] = None) -> bytes:
        """Download the audio unless it is already on disk."""
        if self.path is not None and self.path.exists():
            raise DownloadError("Song already is downloaded")
        return download_youtube(self.youtube_id, on_progress)

    def to_json(self) -> dict:
        data = self._base_json()
        data["youtube_id"] = self.youtube_id
        return self._finish_json(data)

    @classmethod
    def from_json(cls, value: Any, song_id: int) -> "YTSong":
        label = "YouTube song"
        metadata = _parse_metadata(value, song_id, label)
        path = _require_path(value, label)
        youtube_id = _field(value, "youtube_id")
        if not isinstance(youtube_id, str):
            raise JukeboxError(
                f"{label} {_dump(value)} is invalid. Reason: invalid youtube ID"
            )
        return cls(metadata, youtube_id, _str_or_none(value.get("index_id")), path)


@dataclass
class HostedSong(Song):
    """A song downloaded from a plain URL."""

    metadata: SongMetadata
    url: str
    index_id: Optional[str] = None
    path: Optional[Path] = None

    type: ClassVar[NongType] = NongType.HOSTED

    def __post_init__(self) -> None:
        if self.path is not None:
            self.path = Path(self.path)

    def start_download(self, on_progress: Optional[ProgressCallback] = None) -> bytes:
        """Download the audio unless it is already on disk."""
        if self.path is not None and self.path.exists():
            raise DownloadError("Song already is downloaded")
        return download_hosted(self.url, on_progress)

    def to_json(self) -> dict:
        data = self._base_json()
        data["url"] = self.url
        return self._finish_json(data)

    @classmethod
    def from_json(cls, value: Any, song_id: int) -> "HostedSong":
        label = "Hosted song"
        metadata = _parse_metadata(value, song_id, label)
        path = _require_path(value, label)
        url = _field(value, "url")
        if not isinstance(url, str):
            raise JukeboxError(f"{label} {_dump(value)} is invalid. Reason: invalid url")
        return cls(metadata, url, _str_or_none(value.get("index_id")), path)