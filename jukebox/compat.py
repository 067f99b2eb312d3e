"""Reading the song data left behind by the version 2 storage format."""

from __future__ import annotations

import json
import logging
import shutil
from contextlib import suppress
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from jukebox.errors import JukeboxError
from jukebox.song import LocalSong, SongMetadata, random_unique_id

log = logging.getLogger(__name__)

MANIFEST_NAME = "nong_data.json"
BACKUP_DIR_NAME = ".v2-compat-backup"


@dataclass
class CompatManifest:
    """The songs stored for one GD song id in the old format."""

    id: int
    default_song: LocalSong
    active: LocalSong
    songs: list[LocalSong] = field(default_factory=list)


def is_song_valid(value: Any) -> bool:
    """Whether an old song entry has a name, an author and a path."""
    return isinstance(value, dict) and all(
        isinstance(value.get(key), str) for key in ("songName", "authorName", "path")
    )


def manifest_path(save_dir: Path | str) -> Path:
    """Location of the old manifest inside ``save_dir``."""
    return Path(save_dir) / MANIFEST_NAME


def manifest_exists(save_dir: Path | str) -> bool:
    """Whether an old manifest is present in ``save_dir``."""
    return manifest_path(save_dir).exists()


def backup_manifest(save_dir: Path | str, delete_original: bool = False) -> None:
    """Copy the old manifest into a backup folder, optionally removing it."""
    if not manifest_exists(save_dir):
        return

    backup_dir = Path(save_dir) / BACKUP_DIR_NAME
    if backup_dir.exists() and not backup_dir.is_dir():
        with suppress(OSError):
            backup_dir.unlink()
    backup_dir.mkdir(exist_ok=True)

    target = backup_dir / MANIFEST_NAME
    with suppress(OSError):
        if target.exists():
            target.unlink()
    with suppress(OSError):
        shutil.copyfile(manifest_path(save_dir), target)
    if delete_original:
        with suppress(OSError):
            manifest_path(save_dir).unlink()


def _start_offset(entry: dict) -> int:
    offset = entry.get("startOffset")
    if isinstance(offset, (int, float)) and not isinstance(offset, bool):
        return int(offset)
    return 0


def _song(entry: dict, song_id: int, unique_id: str) -> LocalSong:
    return LocalSong(
        SongMetadata(
            song_id,
            unique_id,
            entry["songName"],
            entry["authorName"],
            None,
            _start_offset(entry),
        ),
        Path(entry["path"]),
    )


def _find_by_path(song_id: int, path: Path, songs: list) -> Optional[LocalSong]:
    for entry in songs:
        if is_song_valid(entry) and Path(entry["path"]) == path:
            return _song(entry, song_id, random_unique_id())
    return None


def parse_manifest(save_dir: Path | str) -> dict[int, CompatManifest]:
    """Read the old manifest, keyed by GD song id; bad entries are skipped."""
    if not manifest_exists(save_dir):
        raise JukeboxError("No manifest exists for V2")

    path = manifest_path(save_dir)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise JukeboxError(f"Couldn't open file: {path.name}") from exc

    try:
        data = json.loads(text)
    except ValueError as exc:
        raise JukeboxError(f"Couldn't parse JSON from file: {exc}") from exc

    if not isinstance(data, dict):
        raise JukeboxError("Invalid JSON")
    version = data.get("version")
    if not isinstance(version, (int, float)) or isinstance(version, bool):
        raise JukeboxError("Invalid JSON")
    if not 1 <= int(version) <= 3:
        raise JukeboxError("Invalid JSON")
    nongs = data.get("nongs")
    if not isinstance(nongs, dict):
        raise JukeboxError("Invalid JSON")

    result: dict[int, CompatManifest] = {}

    for key, entry in nongs.items():
        try:
            song_id = int(key)
        except ValueError:
            log.warning("Skipping id %s, invalid id", key)
            continue

        if (
            not isinstance(entry, dict)
            or not isinstance(entry.get("defaultPath"), str)
            or not isinstance(entry.get("active"), str)
            or not isinstance(entry.get("songs"), list)
        ):
            log.warning("Skipping id %d, invalid data", song_id)
            continue

        default_path = Path(entry["defaultPath"])
        active_path = Path(entry["active"])
        songs = entry["songs"]

        default_song = _find_by_path(song_id, default_path, songs)
        if default_song is None:
            log.warning("Default song not found")
            continue
        active_song = _find_by_path(song_id, active_path, songs)
        if active_song is None:
            log.warning("Active song not found")
            continue

        manifest_songs = []
        for song in songs:
            if not is_song_valid(song):
                log.warning("Found invalid song. Skipping...")
                continue
            song_path = Path(song["path"])
            if song_path == default_path:
                unique_id = default_song.metadata.unique_id
            elif song_path == active_path:
                unique_id = active_song.metadata.unique_id
            else:
                unique_id = random_unique_id()
            manifest_songs.append(_song(song, song_id, unique_id))

        result[song_id] = CompatManifest(song_id, default_song, active_song, manifest_songs)

    return result