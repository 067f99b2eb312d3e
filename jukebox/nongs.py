"""All songs that can stand in for one GD song id, and their stored form."""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Optional, Union

from jukebox.errors import JukeboxError
from jukebox.events import EventBus, NongDeleted, SongStateChanged
from jukebox.index import IndexSongMetadata
from jukebox.song import HostedSong, LocalSong, Song, YTSong

log = logging.getLogger(__name__)

_NOT_FOUND = "No song found with given path for song ID"


def _delete_path(path: Optional[Path]) -> None:
    if path is None or not path.exists():
        return
    try:
        path.unlink()
    except OSError as exc:
        log.error("Couldn't delete nong. Reason: %s", exc)


def _take(songs: list, unique_id: str) -> Optional[Song]:
    for position, song in enumerate(songs):
        if song.metadata.unique_id == unique_id:
            return songs.pop(position)
    return None


def _find(songs: list, unique_id: str) -> Optional[Song]:
    return next((s for s in songs if s.metadata.unique_id == unique_id), None)


class Nongs:
    """The default song of a GD song id, its replacements and the active one.

    When ``bus`` is set, changes of the active song and deletions are
    posted to it.
    """

    def __init__(
        self, song_id: int, default_song: LocalSong, bus: Optional[EventBus] = None
    ) -> None:
        self._song_id = song_id
        self._default = default_song
        self._active: Song = default_song
        self.locals: list[LocalSong] = []
        self.youtube: list[YTSong] = []
        self.hosted: list[HostedSong] = []
        self.index_songs: list[IndexSongMetadata] = []
        self.bus = bus

    @property
    def song_id(self) -> int:
        """The GD song id these songs belong to."""
        return self._song_id

    @property
    def default_song(self) -> LocalSong:
        """The song GD itself would play."""
        return self._default

    @property
    def active(self) -> Song:
        """The song currently played for this id."""
        return self._active

    def __repr__(self) -> str:
        return (
            f"Nongs(song_id={self._song_id}, active={self._active.metadata.unique_id!r}, "
            f"locals={len(self.locals)}, youtube={len(self.youtube)}, "
            f"hosted={len(self.hosted)})"
        )

    def _post(self, event: Any) -> None:
        if self.bus is not None:
            self.bus.post(event)

    def is_default_active(self) -> bool:
        """Whether the default song is the one being played."""
        return self._active.metadata.unique_id == self._default.metadata.unique_id

    def commit(self, directory: Path | str) -> None:
        """Store the songs as ``<song id>.json`` in ``directory``.

        With no replacement songs the file is removed instead.
        """
        path = Path(directory) / f"{self._song_id}.json"
        if not (self.locals or self.youtube or self.hosted):
            try:
                if path.exists():
                    path.unlink()
            except OSError:
                pass
            return

        text = json.dumps(self.to_json(), separators=(",", ":"))
        try:
            path.write_text(text, encoding="utf-8")
        except OSError as exc:
            raise JukeboxError(f"Couldn't open file: {path}") from exc

    def _can_set_active(self, unique_id: str, path: Path) -> None:
        if unique_id == self._default.metadata.unique_id:
            return
        if not path.exists():
            raise JukeboxError("Song doesn't exist on disk")

    def _activate(self, song: Song) -> None:
        self._active = song
        self._post(SongStateChanged(self))

    def set_active(self, unique_id: str) -> None:
        """Make the song with ``unique_id`` the active one."""
        local = (
            self._default
            if self._default.metadata.unique_id == unique_id
            else _find(self.locals, unique_id)
        )
        if local is not None:
            self._can_set_active(unique_id, local.path)
            self._activate(local)
            return

        for songs in (self.youtube, self.hosted):
            song = _find(songs, unique_id)
            if song is None:
                continue
            if song.path is None:
                raise JukeboxError("Song is not downloaded")
            self._can_set_active(unique_id, song.path)
            self._activate(song)
            return

        raise JukeboxError(_NOT_FOUND)

    def merge(self, other: "Nongs") -> None:
        """Add copies of the replacement songs of ``other`` for the same id."""
        if other.song_id != self._song_id:
            raise JukeboxError("Merging with NONGs of a different song ID")
        self.locals.extend(
            copy.deepcopy(song)
            for song in other.locals
            if song.path != other.default_song.path
        )
        self.youtube.extend(copy.deepcopy(song) for song in other.youtube)
        self.hosted.extend(copy.deepcopy(song) for song in other.hosted)

    def delete_all_songs(self) -> None:
        """Remove every replacement song and its audio; the default becomes active."""
        for songs in (self.locals, self.youtube, self.hosted):
            for song in songs:
                _delete_path(song.path)
            songs.clear()
        self._active = self._default

    def delete_song(self, unique_id: str, audio: bool = True) -> None:
        """Remove a replacement song, and its audio file when ``audio`` is set."""
        if self._default.metadata.unique_id == unique_id:
            raise JukeboxError("Cannot delete default song")

        if self._active.metadata.unique_id == unique_id:
            self.set_active(self._default.metadata.unique_id)

        for songs in (self.locals, self.youtube, self.hosted):
            song = _take(songs, unique_id)
            if song is None:
                continue
            if audio:
                _delete_path(song.path)
            self._post(NongDeleted(unique_id, self._song_id))
            return

        raise JukeboxError(_NOT_FOUND)

    def delete_song_audio(self, unique_id: str) -> None:
        """Remove the downloaded audio of a replacement song, keeping its entry."""
        if self._default.metadata.unique_id == unique_id:
            raise JukeboxError("Cannot delete audio of the default song")

        if self._active.metadata.unique_id == unique_id:
            self._active = self._default

        if _find(self.locals, unique_id) is not None:
            raise JukeboxError("Cannot delete audio of local songs")

        for songs in (self.youtube, self.hosted):
            song = _find(songs, unique_id)
            if song is not None:
                _delete_path(song.path)
                return

        raise JukeboxError(_NOT_FOUND)

    def find_song(self, unique_id: str) -> Optional[Song]:
        """The song with ``unique_id``, the default included, or None."""
        if self._default.metadata.unique_id == unique_id:
            return self._default
        for songs in (self.locals, self.youtube, self.hosted):
            song = _find(songs, unique_id)
            if song is not None:
                return song
        return None

    def add(self, song: Union[LocalSong, YTSong, HostedSong]) -> Song:
        """Add a replacement song and return it; duplicates are refused."""
        duplicate = JukeboxError(
            f"Attempted to add a duplicate song for id {song.metadata.gd_id}"
        )
        if isinstance(song, LocalSong):
            if any(
                s.metadata == song.metadata and s.path == song.path for s in self.locals
            ):
                raise duplicate
            self.locals.append(song)
        elif isinstance(song, YTSong):
            self.youtube.append(song)
        elif isinstance(song, HostedSong):
            if any(
                s.url == song.url and s.metadata == song.metadata for s in self.hosted
            ):
                raise duplicate
            self.hosted.append(song)
        else:
            raise TypeError(f"Unsupported song type: {type(song).__name__}")
        return song

    def replace_song(
        self, unique_id: str, song: Union[LocalSong, YTSong, HostedSong]
    ) -> None:
        """Put ``song`` in place of the song with ``unique_id``."""
        was_active = self._active.metadata.unique_id == unique_id
        previous = self.find_song(unique_id)
        if previous is None:
            raise JukeboxError(f"NONG ID {unique_id} not found")

        delete_audio = previous.path != song.path
        try:
            self.delete_song(unique_id, delete_audio)
        except JukeboxError:
            pass

        added = self.add(song)

        if was_active and added.path is not None:
            try:
                self.set_active(unique_id)
            except JukeboxError:
                pass

    def register_index_song(self, song: IndexSongMetadata) -> None:
        """Remember an index song offered for this song id."""
        if self._song_id not in song.song_ids:
            raise JukeboxError(
                f"Index song {song.unique_id} doesn't apply for ID {self._song_id}"
            )
        if any(registered is song for registered in self.index_songs):
            raise JukeboxError(
                f"Song {song.unique_id} already registered for ID {self._song_id}"
            )
        self.index_songs.append(song)

    def to_json(self) -> dict:
        """The stored form; songs not yet downloaded are left out."""
        return {
            "default": self._default.to_json(),
            "active": self._active.metadata.unique_id,
            "locals": [song.to_json() for song in self.locals],
            "youtube": [s.to_json() for s in self.youtube if s.path is not None],
            "hosted": [s.to_json() for s in self.hosted if s.path is not None],
        }

    @classmethod
    def from_json(
        cls, value: Any, song_id: int, bus: Optional[EventBus] = None
    ) -> "Nongs":
        """Read stored songs for ``song_id``; unreadable songs are skipped."""
        default_obj = value.get("default") if isinstance(value, dict) else None
        if not isinstance(default_obj, dict):
            raise JukeboxError(f"Invalid nongs object for id {song_id}")
        try:
            default_song = LocalSong.from_json(default_obj, song_id)
        except JukeboxError as exc:
            raise JukeboxError(
                f"Failed to parse default song for ID {song_id}"
            ) from exc

        nongs = cls(song_id, default_song)

        readers = (
            ("locals", LocalSong, nongs.locals, "local"),
            ("youtube", YTSong, nongs.youtube, "YouTube"),
            ("hosted", HostedSong, nongs.hosted, "hosted"),
        )
        for key, song_cls, target, label in readers:
            entries = value.get(key)
            if not isinstance(entries, list):
                continue
            for entry in entries:
                try:
                    target.append(song_cls.from_json(entry, song_id))
                except JukeboxError as exc:
                    log.error("Failed to load %s song: %s", label, exc)

        active = value.get("active")
        default_id = default_song.metadata.unique_id
        if isinstance(active, str):
            try:
                nongs.set_active(active)
            except JukeboxError:
                nongs.set_active(default_id)
        else:
            nongs.set_active(default_id)

        nongs.bus = bus
        return nongs


@dataclass
class Manifest:
    """Every song id's songs, with the storage version they were read as."""

    LATEST_VERSION: ClassVar[int] = 4

    version: int = LATEST_VERSION
    nongs: dict[int, Nongs] = field(default_factory=dict)