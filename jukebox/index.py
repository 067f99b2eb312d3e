"""Song index descriptions: where indexes come from and what they offer."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional

from jukebox.errors import JukeboxError

SUPPORTED_MANIFEST = 1


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _unsupported(manifest: int) -> JukeboxError:
    return JukeboxError(f"Using unsupported manifest version: {manifest}")


@dataclass
class IndexSource:
    """An index the user has configured, by URL."""

    url: str
    user_added: bool
    enabled: bool

    @classmethod
    def from_json(cls, value: Any) -> "IndexSource":
        """Read a configured index from its stored form."""
        if (
            not isinstance(value, dict)
            or not isinstance(value.get("url"), str)
            or not isinstance(value.get("userAdded"), bool)
            or not isinstance(value.get("enabled"), bool)
        ):
            raise JukeboxError("Invalid JSON")
        return cls(value["url"], value["userAdded"], value["enabled"])

    def to_json(self) -> dict:
        """Return the stored form of the configured index."""
        return {"url": self.url, "userAdded": self.user_added, "enabled": self.enabled}


class SupportedSongType(enum.Enum):
    """Kinds of songs an index accepts submissions of."""

    LOCAL = "local"
    YOUTUBE = "youtube"
    HOSTED = "hosted"

    @classmethod
    def from_string(cls, text: str) -> "SupportedSongType":
        """Look up a song type by its index name."""
        for member in cls:
            if member.value == text:
                return member
        raise JukeboxError(f"Invalid supported song type: {text}")


@dataclass
class RequestParams:
    """Where an index takes requests, and whether it wants parameters."""

    url: str
    params: bool

    @classmethod
    def from_json(cls, value: Any, manifest: int) -> "RequestParams":
        """Read request parameters for index manifest version ``manifest``."""
        if manifest != SUPPORTED_MANIFEST:
            raise _unsupported(manifest)
        if not isinstance(value, dict):
            raise JukeboxError("Expected object in requestParams")
        if not isinstance(value.get("url"), str):
            raise JukeboxError("Expected url in requestParams")
        if not isinstance(value.get("params"), bool):
            raise JukeboxError("Expected params in requestParams")
        return cls(value["url"], value["params"])


def _all_unsupported() -> dict[SupportedSongType, bool]:
    return {song_type: False for song_type in SupportedSongType}


@dataclass
class Submit:
    """How songs are submitted to an index."""

    request_params: Optional[RequestParams] = None
    pre_submit_message: Optional[str] = None
    supported_song_types: dict[SupportedSongType, bool] = field(
        default_factory=_all_unsupported
    )


@dataclass
class Report:
    """How songs are reported to an index."""

    request_params: Optional[RequestParams] = None


@dataclass
class Features:
    """Optional features an index offers."""

    submit: Optional[Submit] = None
    report: Optional[Report] = None

    @classmethod
    def from_json(cls, value: Any, manifest: int) -> "Features":
        """Read index features for index manifest version ``manifest``."""
        if manifest != SUPPORTED_MANIFEST:
            raise _unsupported(manifest)
        if not isinstance(value, dict):
            raise JukeboxError("Expected object in features")

        features = cls()

        if "submit" in value:
            submit_obj = value["submit"]
            if not isinstance(submit_obj, dict):
                raise JukeboxError("Expected submit to be an object in features")
            submit = Submit()
            if "preSubmitMessage" in submit_obj:
                message = submit_obj["preSubmitMessage"]
                if not isinstance(message, str):
                    raise JukeboxError(
                        "Expected preSubmitMessage to be a string in submit"
                    )
                submit.pre_submit_message = message
            if "supportedSongTypes" in submit_obj:
                song_types = submit_obj["supportedSongTypes"]
                if not isinstance(song_types, list):
                    raise JukeboxError(
                        "Expected supportedSongTypes to be an array in submit"
                    )
                for song_type in song_types:
                    if not isinstance(song_type, str):
                        raise JukeboxError(
                            "Expected supportedSongTypes to be an array of "
                            "strings in submit"
                        )
                    submit.supported_song_types[
                        SupportedSongType.from_string(song_type)
                    ] = True
            if "requestParams" in submit_obj:
                submit.request_params = RequestParams.from_json(
                    submit_obj["requestParams"], manifest
                )
            features.submit = submit

        if "report" in value:
            report_obj = value["report"]
            if not isinstance(report_obj, dict):
                raise JukeboxError("Expected search to be an object in features")
            report = Report()
            if "requestParams" in report_obj:
                report.request_params = RequestParams.from_json(
                    report_obj["requestParams"], manifest
                )
            features.report = report

        return features


@dataclass
class Links:
    """Links an index publishes."""

    discord: Optional[str] = None


@dataclass
class IndexSongs:
    """The songs an index offers, by kind."""

    youtube: list["IndexSongMetadata"] = field(default_factory=list)
    hosted: list["IndexSongMetadata"] = field(default_factory=list)


@dataclass
class IndexMetadata:
    """A song index: its identity, features and songs."""

    manifest: int
    url: str
    id: str
    name: str
    description: Optional[str] = None
    last_update: Optional[int] = None
    links: Links = field(default_factory=Links)
    features: Features = field(default_factory=Features)
    songs: IndexSongs = field(default_factory=IndexSongs)

    @classmethod
    def from_json(cls, value: Any) -> "IndexMetadata":
        """Read an index description; its songs are not read here."""
        if not isinstance(value, dict):
            raise JukeboxError("Expected object")
        if not _is_number(value.get("manifest")):
            raise JukeboxError("Expected manifest version")
        manifest = int(value["manifest"])
        if manifest != SUPPORTED_MANIFEST:
            raise _unsupported(manifest)

        links = Links()
        links_obj = value.get("links")
        if isinstance(links_obj, dict):
            if "discord" in links_obj and not isinstance(links_obj["discord"], str):
                raise JukeboxError("Expected discord to be a string in links")
            links.discord = links_obj.get("discord")

        features = (
            Features.from_json(value["features"], manifest)
            if "features" in value
            else Features()
        )

        if not isinstance(value.get("name"), str):
            raise JukeboxError("Expected name")
        if not isinstance(value.get("id"), str):
            raise JukeboxError("Expected id")
        if "description" in value and not isinstance(value["description"], str):
            raise JukeboxError("Description must be a string")
        if not isinstance(value.get("url"), str):
            raise JukeboxError("Expected url")

        last_update = value.get("lastUpdate")
        return cls(
            manifest=manifest,
            url=value["url"],
            id=value["id"],
            name=value["name"],
            description=value.get("description"),
            last_update=int(last_update) if _is_number(last_update) else None,
            links=links,
            features=features,
        )


@dataclass
class IndexSongMetadata:
    """A song offered by an index, for one or more GD song ids."""

    unique_id: str
    name: str
    artist: str
    url: Optional[str] = None
    yt_id: Optional[str] = None
    song_ids: list[int] = field(default_factory=list)
    start_offset: int = 0
    parent: Optional[IndexMetadata] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_json(cls, value: Any) -> "IndexSongMetadata":
        """Read an index song; its unique id and parent are set by the caller."""
        if not isinstance(value, dict):
            raise JukeboxError('Song is missing "name" key')
        if not isinstance(value.get("name"), str):
            raise JukeboxError('Song is missing "name" key')
        if not isinstance(value.get("artist"), str):
            raise JukeboxError('Song is missing "artist" key')
        songs = value.get("songs")
        if not isinstance(songs, list):
            raise JukeboxError('Song is missing "songs" key')

        offset = value.get("startOffset")
        url = value.get("url")
        yt_id = value.get("ytID")
        return cls(
            unique_id="",
            name=value["name"],
            artist=value["artist"],
            url=url if isinstance(url, str) else None,
            yt_id=yt_id if isinstance(yt_id, str) else None,
            song_ids=[int(song) for song in songs if _is_number(song)],
            start_offset=int(offset) if _is_number(offset) else 0,
        )