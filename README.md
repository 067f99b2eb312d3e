# jukebox

A library for keeping a set of replacement songs ("NONGs") for each level song
ID: choose which one is active, download songs from hosted URLs or from song
indexes, and store everything as one small JSON file per song ID.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `jukebox.errors`: `JukeboxError`, raised for every failure in the package.
- `jukebox.events`: the event dataclasses (`GetSongInfo`, `ManualSongAdded`,
  `NongDeleted`, `SongDownloadFailed`, `SongDownloadFinished`,
  `SongDownloadProgress`, `SongError`, `SongStateChanged`, `StartDownload`),
  `ListenerResult`, and `EventBus` with `subscribe`, `unsubscribe` and `post`.
  Listeners run in subscription order; one returning `ListenerResult.STOP` ends
  delivery of that event.
- `jukebox.download`: `download_hosted(url, on_progress)` fetches a URL and
  returns its bytes, reporting progress in percent; `download_youtube(youtube_id,
  on_progress)` asks a conversion service for an mp3 stream URL and downloads it;
  `url_from_metadata(status_code, payload)` reads that service's reply. Failures
  raise `DownloadError`.
- `jukebox.song`: `SongMetadata`, `NongType`, and the song kinds `LocalSong`,
  `YTSong` and `HostedSong`, each with `to_json` / `from_json`. `YTSong` and
  `HostedSong` have `start_download(on_progress)`. `random_unique_id(length)`
  makes the 16-character IDs songs are known by.
- `jukebox.nongs`: `Nongs`, every song known for one song ID (default, active,
  `locals`, `youtube`, `hosted`, `index_songs`), with `add`, `set_active`,
  `replace_song`, `merge`, `delete_song`, `delete_song_audio`,
  `delete_all_songs`, `find_song`, `register_index_song`, `to_json`,
  `from_json` and `commit(directory)`; and `Manifest`.
- `jukebox.index`: song index descriptions: `IndexSource`, `IndexMetadata`,
  `Features`, `Submit`, `Report`, `RequestParams`, `Links`,
  `SupportedSongType` and `IndexSongMetadata`.
- `jukebox.compat`: reads the older `nong_data.json` format (`parse_manifest`,
  `manifest_exists`, `backup_manifest`, `CompatManifest`).
- `jukebox.nong_manager`: `NongManager`, `SongInfo`, `adjust_song_id` and
  `format_size`.
- `jukebox.index_manager`: `IndexManager`.

## A song ID's songs

```python
from pathlib import Path

from jukebox.events import EventBus, SongStateChanged
from jukebox.nongs import Nongs
from jukebox.song import LocalSong, SongMetadata, random_unique_id

bus = EventBus()
bus.subscribe(SongStateChanged, lambda event: print("now playing", event.nongs.active.metadata.name))

default = LocalSong(SongMetadata(1234, random_unique_id(), "Original", "Artist"), Path("1234.mp3"))
nongs = Nongs(1234, default, bus=bus)

replacement = nongs.add(
    LocalSong(SongMetadata(1234, random_unique_id(), "Replacement", "Someone"), Path("my_song.mp3"))
)
nongs.set_active(replacement.metadata.unique_id)  # the file must exist on disk
nongs.commit(Path("manifest"))                     # writes manifest/1234.json
```

`commit` removes the file instead when a song ID has no replacement songs.
YouTube and hosted songs that have not been downloaded yet are left out of the
stored form.

## The manager

`NongManager(save_dir, bus=None, songs_dir=None, index_registrar=None,
song_info_requester=None)` keeps every song ID in memory. `init()` creates
`save_dir/manifest` and `save_dir/nongs`, loads each `<song id>.json` file
(renaming unreadable ones to `.json.bak`), and migrates a `nong_data.json` left
in `save_dir`, backing it up into `save_dir/.v2-compat-backup`.

```python
from jukebox.nong_manager import NongManager, SongInfo

manager = NongManager("save")
manager.init()
nongs = manager.init_song_id(1234, False, SongInfo("Original", "Artist"))
manager.set_active_song(1234, nongs.default_song.metadata.unique_id)
```

Built-in game songs are passed with `robtop=True` and stored under negative IDs
(`adjust_song_id`). Without a `SongInfo`, a custom song gets an "Unknown"
default and `song_info_requester` is called with its ID; a `GetSongInfo` event
posted later fills in the title and artist. `get_formatted_size` and
`get_multi_asset_sizes` report file sizes as megabytes.

## Song indexes

An index is a JSON document with `manifest` version `1`, an `id`, a `name`, a
`url` and a `nongs.hosted` table of songs, each with `name`, `artist`, `songs`
(the song IDs it applies to), `url` and an optional `startOffset`.

`IndexManager(save_dir, nong_manager, bus=None, indexes=None,
saved_values=None, song_info_lookup=None)` loads indexes with `load_index` or
`load_index_file`, or fetches every enabled `IndexSource` with
`fetch_indexes()` and caches them in `save_dir/indexes-cache`. Index songs are
offered to the `Nongs` of every song ID they apply to. `download_song(gd_song_id,
unique_id)` downloads a hosted song into the manager's `nongs` directory, adds it
to the song ID and posts `SongDownloadProgress`, then `SongDownloadFinished` or
`SongDownloadFailed`. Posting a `StartDownload` event does the same. Index names
are remembered in the `saved_values` mapping under `cached-index-names`.

## What the package does not do

- It plays no audio and does not hook into a game. It keeps the data about
  which song should play and where its file is.
- It has no command line and no user interface.
- It does not store settings: the list of index sources and the
  `saved_values` mapping are given to `IndexManager` by the caller, and are
  not written to disk by the package.
- Downloads run in the calling thread and block until they finish.
- Downloading YouTube songs through `IndexManager.download_song` is refused
  with an error; `download_youtube` and `YTSong.start_download` can still be
  called directly.