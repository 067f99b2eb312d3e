"""Fetches song indexes, offers their songs and downloads them on request."""

from __future__ import annotations

import hashlib
import json
import logging
from contextlib import suppress
from pathlib import Path
from typing import Any, Callable, Iterable, MutableMapping, Optional, Union

import requests

from jukebox.download import TIMEOUT_SECONDS, ProgressCallback, download_hosted
from jukebox.errors import JukeboxError
from jukebox.events import (
    EventBus,
    ListenerResult,
    SongDownloadFailed,
    SongDownloadFinished,
    SongDownloadProgress,
    SongError,
    StartDownload,
)
from jukebox.index import IndexMetadata, IndexSongMetadata, IndexSource
from jukebox.nong_manager import NongManager, SongInfo
from jukebox.nongs import Nongs
from jukebox.song import HostedSong, Song, SongMetadata, YTSong

log = logging.getLogger(__name__)

CACHED_NAMES_KEY = "cached-index-names"
_YOUTUBE_DISABLED = "YouTube song downloads will be enabled in a future release!"

DownloadSource = Union[IndexSongMetadata, Song]


def _cache_name(url: str) -> str:
    return hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]


class IndexManager:
    """Keeps the loaded song indexes and the index songs offered per GD song id.

    ``indexes`` are the configured index sources, ``saved_values`` a mapping
    that persists small values such as cached index names, and
    ``song_info_lookup`` returns what the game knows about a song id that
    must be added to the manifest before a download.
    """

    def __init__(
        self,
        save_dir: Path | str,
        nong_manager: NongManager,
        bus: Optional[EventBus] = None,
        indexes: Optional[Iterable[IndexSource]] = None,
        saved_values: Optional[MutableMapping[str, Any]] = None,
        song_info_lookup: Optional[Callable[[int], Optional[SongInfo]]] = None,
    ) -> None:
        self.save_dir = Path(save_dir)
        self.nong_manager = nong_manager
        self.bus = bus if bus is not None else nong_manager.bus
        self.indexes: list[IndexSource] = list(indexes or [])
        self.saved_values: MutableMapping[str, Any] = (
            saved_values if saved_values is not None else {}
        )
        self.song_info_lookup = song_info_lookup
        self.loaded_indexes: dict[str, IndexMetadata] = {}
        self.nongs_for_id: dict[int, list[IndexSongMetadata]] = {}
        self._download_progress: dict[str, float] = {}
        self._initialized = False

        self.bus.subscribe(StartDownload, self.on_download_start)
        if nong_manager.index_registrar is None:
            nong_manager.index_registrar = self.register_index_nongs

    @property
    def initialized(self) -> bool:
        """Whether ``init`` has fetched the indexes."""
        return self._initialized

    @property
    def indexes_dir(self) -> Path:
        """Directory where fetched indexes are cached."""
        return self.save_dir / "indexes-cache"

    def init(self) -> bool:
        """Create the cache directory, or fetch every configured index."""
        if self._initialized:
            return True

        if not self.indexes_dir.exists():
            self.indexes_dir.mkdir(parents=True)
            return True

        try:
            self.fetch_indexes()
        except JukeboxError as exc:
            log.error("Failed to start fetching indexes: %s", exc)

        self._initialized = True
        return True

    def load_index_file(self, path: Path | str) -> None:
        """Load an index from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise JukeboxError("Index file does not exist")
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise JukeboxError(f"Couldn't open file: {path.name}") from exc
        try:
            value = json.loads(text)
        except ValueError as exc:
            raise JukeboxError(f"Couldn't parse JSON from file: {exc}") from exc
        self.load_index(value)

    def load_index(self, value: Any) -> None:
        """Load an index description and offer its hosted songs."""
        index = IndexMetadata.from_json(value)
        self.cache_index_name(index.id, index.name)

        nongs_obj = value.get("nongs")
        hosted = nongs_obj.get("hosted") if isinstance(nongs_obj, dict) else None
        if not isinstance(hosted, dict):
            hosted = {}

        for key, entry in hosted.items():
            try:
                song = IndexSongMetadata.from_json(entry)
            except JukeboxError as exc:
                self.bus.post(SongError(False, f"Failed to parse index song: {exc}"))
                continue

            song.unique_id = key
            song.parent = index

            for song_id in song.song_ids:
                self.nongs_for_id.setdefault(song_id, []).append(song)
                nongs = self.nong_manager.get_nongs(song_id)
                if nongs is None:
                    continue
                try:
                    nongs.register_index_song(song)
                except JukeboxError as exc:
                    self.bus.post(
                        SongError(False, f"Failed to register index song: {exc}")
                    )

            index.songs.hosted.append(song)

        self.loaded_indexes.setdefault(index.id, index)

    def fetch_indexes(self) -> None:
        """Fetch, cache and load every enabled index."""
        for source in self.indexes:
            if not source.enabled or len(source.url) < 3:
                log.info("Skipping index %s, as it is disabled", source.url)
                continue

            log.info("Starting fetch for index %s", source.url)
            try:
                value = self.fetch_index(source)
            except JukeboxError as exc:
                log.error("Failed to fetch index %s: %s", source.url, exc)
                continue
            self.on_index_fetched(source.url, value)

    def fetch_index(self, source: IndexSource) -> dict:
        """Download an index description and check that it can be read."""
        try:
            response = requests.get(source.url, timeout=TIMEOUT_SECONDS)
        except requests.RequestException as exc:
            raise JukeboxError(f"Web request failed. {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise JukeboxError(
                f"Web request failed. Status code: {response.status_code}"
            )
        try:
            value = response.json()
        except ValueError as exc:
            raise JukeboxError(f"Couldn't parse JSON: {exc}") from exc
        if not isinstance(value, dict):
            raise JukeboxError("Expected object")

        value["url"] = source.url
        IndexMetadata.from_json(value)
        return value

    def on_index_fetched(self, url: str, value: Any) -> None:
        """Cache a fetched index on disk and load it."""
        path = self.indexes_dir / f"{_cache_name(url)}.json"
        log.info("Fetched index: %s", url)
        try:
            path.write_text(json.dumps(value, separators=(",", ":")), encoding="utf-8")
            log.info("Cached index: %s", url)
        except OSError:
            log.info("Failed to cache index: %s", url)

        try:
            self.load_index(value)
        except JukeboxError as exc:
            log.info("Failed to load index %s: %s", url, exc)

    def get_song_download_progress(self, unique_id: str) -> Optional[float]:
        """Progress of a running download of ``unique_id``, or None."""
        return self._download_progress.get(unique_id)

    def get_index_name(self, index_id: str) -> Optional[str]:
        """The cached name of an index, or None when not known."""
        names = self.saved_values.get(CACHED_NAMES_KEY)
        if not isinstance(names, dict):
            return None
        name = names.get(index_id)
        return name if isinstance(name, str) else None

    def cache_index_name(self, index_id: str, index_name: str) -> None:
        """Remember the name of an index."""
        names = self.saved_values.get(CACHED_NAMES_KEY)
        names = dict(names) if isinstance(names, dict) else {}
        names[index_id] = index_name
        self.saved_values[CACHED_NAMES_KEY] = names

    def _nongs_for(self, gd_song_id: int) -> Nongs:
        nongs = self.nong_manager.get_nongs(gd_song_id)
        if nongs is not None:
            return nongs
        info = (
            self.song_info_lookup(gd_song_id)
            if self.song_info_lookup is not None
            else None
        )
        try:
            return self.nong_manager.init_song_id(gd_song_id, False, info)
        except JukeboxError as exc:
            raise JukeboxError(
                f"Failed to initialize song ID {gd_song_id}: {exc}"
            ) from exc

    def download_song(self, gd_song_id: int, unique_id: str) -> None:
        """Download a song for ``gd_song_id``; failures of the transfer are posted."""
        nongs = self._nongs_for(gd_song_id)

        download: Optional[Callable[[ProgressCallback], bytes]] = None
        source: Optional[DownloadSource] = None

        if any(song.metadata.unique_id == unique_id for song in nongs.youtube):
            raise JukeboxError(_YOUTUBE_DISABLED)

        for song in nongs.hosted:
            if song.metadata.unique_id != unique_id:
                continue
            if song.path is not None and song.path.exists():
                raise JukeboxError(
                    "Failed to start download: Song already is downloaded"
                )
            download = song.start_download
            source = song
            break

        if gd_song_id not in self.nongs_for_id:
            raise JukeboxError(
                f"Can't download nong for id {gd_song_id}. No index songs found."
            )

        if download is None:
            for index_song in self.nongs_for_id[gd_song_id]:
                if index_song.unique_id != unique_id:
                    continue
                if index_song.url is not None:
                    url = index_song.url
                    download = lambda progress, url=url: download_hosted(url, progress)
                    source = index_song
                    break
                if index_song.yt_id is not None:
                    raise JukeboxError(_YOUTUBE_DISABLED)

        if download is None or source is None:
            raise JukeboxError("Couldn't download song. Reference not found")

        self._download_progress[unique_id] = 0.0
        try:
            data = download(
                lambda progress: self.on_download_progress(
                    gd_song_id, unique_id, progress
                )
            )
        except JukeboxError as exc:
            self.bus.post(SongDownloadFailed(gd_song_id, unique_id, str(exc)))
            return
        finally:
            self._download_progress.pop(unique_id, None)

        self.on_download_finish(source, nongs, data)

    def on_download_progress(
        self, gd_song_id: int, unique_id: str, progress: float
    ) -> None:
        """Record and announce the progress of a running download."""
        if unique_id in self._download_progress:
            self._download_progress[unique_id] = progress
        self.bus.post(SongDownloadProgress(gd_song_id, unique_id, progress))

    def _fail(self, destination: Nongs, unique_id: str, error: str) -> None:
        log.error("%s", error)
        self.bus.post(SongDownloadFailed(destination.song_id, unique_id, error))

    def on_download_finish(
        self, source: DownloadSource, destination: Nongs, data: bytes
    ) -> None:
        """Store downloaded audio and add or update the song it belongs to."""
        if isinstance(source, IndexSongMetadata):
            unique_id = source.unique_id
        else:
            unique_id = source.metadata.unique_id

        if not data:
            self._fail(
                destination,
                unique_id,
                "Failed to store downloaded file. ByteVector empty.",
            )
            return

        if isinstance(source, IndexSongMetadata):
            parent_id = source.parent.id if source.parent is not None else ""
            name = f"{parent_id}-{source.unique_id}.mp3"
        elif source.index_id is not None:
            name = f"{source.index_id}-{source.metadata.unique_id}.mp3"
        else:
            name = f"{source.metadata.unique_id}.mp3"
        path = self.nong_manager.nongs_dir / name

        try:
            path.write_bytes(data)
        except OSError:
            self._fail(
                destination,
                unique_id,
                "Failed to store downloaded file. Couldn't open file for write",
            )
            return

        if isinstance(source, Song):
            source.path = path
            self.bus.post(SongDownloadFinished(None, source))
            return

        def or_else(err: str) -> None:
            self._fail(destination, unique_id, f"Couldn't store index song. {err}")
            with suppress(OSError):
                path.unlink()

        parent_id = source.parent.id if source.parent is not None else None
        metadata = SongMetadata(
            destination.song_id,
            source.unique_id,
            source.name,
            source.artist,
            None,
            source.start_offset,
        )
        if source.url is not None:
            song: Song = HostedSong(metadata, source.url, parent_id, path)
        elif source.yt_id is not None:
            song = YTSong(metadata, source.yt_id, parent_id, path)
        else:
            or_else("No url or YouTube ID on song")
            return

        try:
            inserted = destination.add(song)
        except JukeboxError as exc:
            or_else(str(exc))
            return

        with suppress(JukeboxError):
            destination.commit(self.nong_manager.manifest_dir)

        self.bus.post(SongDownloadFinished(source, inserted))

    def on_download_start(self, event: StartDownload) -> ListenerResult:
        """Start the download an event asks for; failures are posted."""
        try:
            self.download_song(event.gd_id, event.song.unique_id)
        except JukeboxError as exc:
            self.bus.post(
                SongDownloadFailed(event.gd_id, event.song.unique_id, str(exc))
            )
        return ListenerResult.PROPAGATE

    def register_index_nongs(self, destination: Nongs) -> None:
        """Offer every known index song for the destination's song id."""
        destination.index_songs[:] = list(
            self.nongs_for_id.get(destination.song_id, [])
        )