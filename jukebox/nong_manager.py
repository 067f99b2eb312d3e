"""Keeps every song id's replacement songs and stores them on disk."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Optional

from jukebox import compat
from jukebox.errors import JukeboxError
from jukebox.events import EventBus, GetSongInfo, ListenerResult, SongError
from jukebox.nongs import Manifest, Nongs
from jukebox.song import LocalSong, SongMetadata, random_unique_id

log = logging.getLogger(__name__)

_NOT_INITIALIZED = "Song not initialized in manifest"
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


@dataclass
class SongInfo:
    """What the game knows about a GD song: its title, artist and audio file.

    ``path`` may be left out for custom songs, which then use the manager's
    songs directory.
    """

    name: str
    artist: str
    path: Optional[Path] = None


def adjust_song_id(song_id: int, robtop: bool) -> int:
    """Map a built-in (RobTop) song id to the negative id space used for storage."""
    if not robtop:
        return song_id
    return song_id if song_id < 0 else -song_id - 1


def format_size(size: float) -> str:
    """Format a size in bytes as megabytes with three significant digits."""
    megabytes = size / 1024 / 1024
    return f"{megabytes:.3g}MB"


def _ids(text: str) -> Iterator[str]:
    return (piece for piece in text.split(",") if piece)


class NongManager:
    """Owns the manifest of every song id and its replacement songs.

    ``index_registrar`` is called with every collection created for a new
    song id, ``song_info_requester`` with ids whose info must be fetched.
    """

    def __init__(
        self,
        save_dir: Path | str,
        bus: Optional[EventBus] = None,
        songs_dir: Path | str | None = None,
        index_registrar: Optional[Callable[[Nongs], None]] = None,
        song_info_requester: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.save_dir = Path(save_dir)
        self.bus = bus if bus is not None else EventBus()
        self.songs_dir = Path(songs_dir) if songs_dir is not None else self.save_dir
        self.index_registrar = index_registrar
        self.song_info_requester = song_info_requester
        self.manifest = Manifest()
        self.currently_preparing_nong: Optional[Nongs] = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        """Whether ``init`` has completed."""
        return self._initialized

    @property
    def manifest_dir(self) -> Path:
        """Directory holding one JSON file per song id."""
        return self.save_dir / "manifest"

    @property
    def nongs_dir(self) -> Path:
        """Directory holding downloaded song audio."""
        return self.save_dir / "nongs"

    @property
    def manifest_version(self) -> int:
        """Storage version of the manifest held in memory."""
        return self.manifest.version

    @property
    def stored_id_count(self) -> int:
        """Number of song ids in the manifest."""
        return len(self.manifest.nongs)

    def song_path(self, song_id: int) -> Path:
        """Where the game keeps the audio of custom song ``song_id``."""
        return self.songs_dir / f"{song_id}.mp3"

    def _on_song_error(self, event: SongError) -> ListenerResult:
        log.error("%s", event.error)
        return ListenerResult.PROPAGATE

    def init(self) -> bool:
        """Load the stored manifest and migrate old data; safe to call twice."""
        if self._initialized:
            return True

        self.bus.subscribe(SongError, self._on_song_error)
        self.bus.subscribe(GetSongInfo, self.on_song_info)

        log.info("Starting NONG read")
        if not self.manifest_dir.exists():
            log.info("No manifest directory found. Creating...")
            self.manifest_dir.mkdir(parents=True)
        self.nongs_dir.mkdir(parents=True, exist_ok=True)

        for entry in sorted(self.manifest_dir.iterdir()):
            if entry.suffix != ".json" or not entry.is_file():
                continue
            try:
                nongs = self.load_nongs_from_path(entry)
            except JukeboxError as exc:
                log.error("Failed to read file %s: %s", entry.name, exc)
                entry.rename(self.manifest_dir / f"{entry.name}.bak")
                continue
            self.manifest.nongs[nongs.song_id] = nongs

        log.info("Read %d files successfuly!", len(self.manifest.nongs))

        try:
            self.migrate_v2()
        except JukeboxError as exc:
            log.error("%s", exc)

        self._initialized = True
        return True

    def get_nongs(self, song_id: int) -> Optional[Nongs]:
        """The songs stored for ``song_id``, or None when it is not known yet."""
        return self.manifest.nongs.get(song_id)

    def has_song_id(self, song_id: int) -> bool:
        """Whether ``song_id`` is in the manifest."""
        return song_id in self.manifest.nongs

    def _insert(self, key: int, nongs: Nongs) -> Nongs:
        self.manifest.nongs[key] = nongs
        if self.index_registrar is not None:
            self.index_registrar(nongs)
        return nongs

    def init_song_id(
        self, song_id: int, robtop: bool, info: Optional[SongInfo] = None
    ) -> Nongs:
        """Create the collection for a song id the manifest does not know yet."""
        adjusted = adjust_song_id(song_id, robtop)

        if self.has_song_id(adjusted):
            raise JukeboxError("Song already exists")

        if info is None and robtop:
            raise JukeboxError("Critical. No song object for RobTop song")

        if info is not None and robtop:
            if info.path is None:
                raise JukeboxError("Critical. No audio file for RobTop song")
            default = LocalSong(
                SongMetadata(adjusted, random_unique_id(), info.name, info.artist),
                info.path,
            )
            return self._insert(adjusted, Nongs(adjusted, default, self.bus))

        if info is None:
            if self.song_info_requester is not None:
                self.song_info_requester(song_id)
            default = LocalSong.create_unknown(song_id, self.song_path(song_id))
            return self._insert(adjusted, Nongs(song_id, default, self.bus))

        path = info.path if info.path is not None else self.song_path(song_id)
        default = LocalSong(
            SongMetadata(adjusted, random_unique_id(), info.name, info.artist), path
        )
        return self._insert(adjusted, Nongs(adjusted, default, self.bus))

    def get_formatted_size(self, path: Path | str) -> str:
        """Size of the file at ``path`` in megabytes, or ``N/A``."""
        try:
            size = Path(path).stat().st_size
        except OSError:
            return "N/A"
        return format_size(size)

    def get_multi_asset_sizes(
        self,
        songs: str,
        sfx: str,
        resources_dir: Path | str,
        song_dir: Path | str,
    ) -> str:
        """Total size of the active songs and sound effects in comma lists of ids."""
        resources = Path(resources_dir)
        downloads = Path(song_dir)
        total = 0.0

        for piece in _ids(songs):
            nongs = self.get_nongs(int(piece))
            if nongs is None:
                continue
            path = nongs.active.path
            if path is None:
                continue
            if path.as_posix().startswith("songs/"):
                path = resources / path
            if path.exists():
                total += path.stat().st_size

        for piece in _ids(sfx):
            filename = f"s{piece}.ogg"
            for candidate in (resources / "sfx" / filename, downloads / filename):
                try:
                    if candidate.exists():
                        total += candidate.stat().st_size
                        break
                except OSError:
                    continue

        return format_size(total)

    def on_song_info(self, event: GetSongInfo) -> ListenerResult:
        """Update a default song's title and artist from fetched song info."""
        nongs = self.get_nongs(event.gd_song_id)
        if nongs is None:
            return ListenerResult.STOP
        metadata = nongs.default_song.metadata
        if event.song_name == metadata.name and event.artist_name == metadata.artist:
            return ListenerResult.STOP

        metadata.name = event.song_name
        metadata.artist = event.artist_name
        try:
            self.save_nongs(event.gd_song_id)
        except JukeboxError as exc:
            log.error("%s", exc)
        return ListenerResult.PROPAGATE

    def migrate_v2(self) -> None:
        """Move songs from the old storage format into the manifest."""
        if not compat.manifest_exists(self.save_dir):
            log.info("Nothing to migrate from V2!")
            return

        old = compat.parse_manifest(self.save_dir)
        migrated = 0

        for song_id, entry in old.items():
            if song_id not in self.manifest.nongs:
                self._insert(song_id, Nongs(song_id, entry.default_song, self.bus))
            nongs = self.manifest.nongs[song_id]

            for song in entry.songs:
                if song.path == entry.default_song.path:
                    continue
                found = any(
                    stored.metadata.name == song.metadata.name
                    and stored.metadata.artist == song.metadata.artist
                    for stored in nongs.locals
                )
                if found:
                    continue
                try:
                    nongs.add(song)
                except JukeboxError as exc:
                    log.error("Failed to add migrated song to manifest: %s", exc)

            try:
                nongs.set_active(entry.active.metadata.unique_id)
            except JukeboxError:
                pass
            try:
                nongs.commit(self.manifest_dir)
            except JukeboxError as exc:
                log.error("%s", exc)
            migrated += 1

        log.info("Migrated %d ids from v2", migrated)
        compat.backup_manifest(self.save_dir, True)

    def save_nongs(self, save_id: Optional[int] = None) -> None:
        """Store every song id, or only ``save_id`` when given."""
        self.manifest_dir.mkdir(parents=True, exist_ok=True)
        for song_id, nongs in self.manifest.nongs.items():
            if save_id is not None and save_id != song_id:
                continue
            nongs.commit(self.manifest_dir)

    def load_nongs_from_path(self, path: Path | str) -> Nongs:
        """Read a stored ``<song id>.json`` file."""
        path = Path(path)
        match = _LEADING_INT.match(path.stem)
        song_id = int(match.group(1)) if match else 0
        if song_id == 0:
            raise JukeboxError(f"Invalid filename {path.name}")

        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise JukeboxError(f"Couldn't open file: {path.name}") from exc

        try:
            value = json.loads(text)
        except ValueError as exc:
            raise JukeboxError(f"Couldn't parse JSON from file: {exc}") from exc

        try:
            return Nongs.from_json(value, song_id, self.bus)
        except JukeboxError as exc:
            raise JukeboxError(f"Failed to parse JSON: {exc}") from exc

    def add_nongs(self, nongs: Nongs) -> None:
        """Merge the replacement songs of ``nongs`` into the stored ones."""
        stored = self.get_nongs(nongs.song_id)
        if stored is None:
            raise JukeboxError(_NOT_INITIALIZED)
        stored.merge(nongs)
        self.save_nongs(stored.song_id)

    def _require(self, gd_song_id: int) -> Nongs:
        nongs = self.get_nongs(gd_song_id)
        if nongs is None:
            raise JukeboxError(_NOT_INITIALIZED)
        return nongs

    def set_active_song(self, gd_song_id: int, unique_id: str) -> None:
        """Make ``unique_id`` the active song of ``gd_song_id`` and store it."""
        self._require(gd_song_id).set_active(unique_id)
        self.save_nongs(gd_song_id)

    def delete_song(self, gd_song_id: int, unique_id: str) -> None:
        """Remove a replacement song and its audio."""
        nongs = self._require(gd_song_id)
        try:
            nongs.delete_song(unique_id)
        except JukeboxError as exc:
            raise JukeboxError(f"Couldn't delete Nong: {exc}") from exc
        nongs.commit(self.manifest_dir)

    def delete_song_audio(self, gd_song_id: int, unique_id: str) -> None:
        """Remove the downloaded audio of a replacement song."""
        nongs = self._require(gd_song_id)
        try:
            nongs.delete_song_audio(unique_id)
        except JukeboxError as exc:
            raise JukeboxError(f"Couldn't delete Nong: {exc}") from exc
        self.save_nongs(gd_song_id)

    def delete_all_songs(self, gd_song_id: int) -> None:
        """Remove every replacement song of ``gd_song_id``."""
        self._require(gd_song_id).delete_all_songs()
        self.save_nongs(gd_song_id)

    def generate_song_file_path(
        self, extension: str, filename: Optional[str] = None
    ) -> Path:
        """A path in the song audio directory, random unless ``filename`` is given."""
        unique = filename if filename is not None else random_unique_id()
        destination = self.save_dir / "nongs"
        destination.mkdir(parents=True, exist_ok=True)
        return destination / f"{unique}{extension}"