"""Events posted while songs are managed, and a small bus that delivers them."""

from __future__ import annotations

import enum
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Optional


class ListenerResult(enum.Enum):
    """What a listener wants to happen after it handled an event."""

    PROPAGATE = "propagate"
    STOP = "stop"


@dataclass(frozen=True)
class GetSongInfo:
    """Song info for a GD song id arrived from the servers."""

    song_name: str
    artist_name: str
    gd_song_id: int


@dataclass(frozen=True)
class ManualSongAdded:
    """A song was added by hand to a song id's collection."""

    nongs: Any
    song: Any


@dataclass(frozen=True)
class NongDeleted:
    """A replacement song was removed from a song id's collection."""

    unique_id: str
    gd_id: int


@dataclass(frozen=True)
class SongDownloadFailed:
    """A song download ended with an error."""

    gd_song_id: int
    unique_id: str
    error: str


@dataclass(frozen=True)
class SongDownloadFinished:
    """A song download completed and the song was stored."""

    index_source: Optional[Any]
    destination: Any


@dataclass(frozen=True)
class SongDownloadProgress:
    """A running song download made progress."""

    gd_song_id: int
    unique_id: str
    progress: float


@dataclass(frozen=True)
class SongError:
    """Something went wrong with a song; optionally shown to the user."""

    notify_user: bool
    error: str


@dataclass(frozen=True)
class SongStateChanged:
    """The active song of a song id's collection changed."""

    nongs: Any


@dataclass(frozen=True)
class StartDownload:
    """A request to start downloading an index song for a GD song id."""

    song: Any
    gd_id: int


Listener = Callable[[Any], Optional[ListenerResult]]


class EventBus:
    """Delivers posted events to the listeners subscribed to their type.

    Listeners subscribed to a base class also receive events of its
    subclasses. Listeners run in subscription order; one that returns
    ``ListenerResult.STOP`` ends delivery of that event.
    """

    def __init__(self) -> None:
        self._listeners: dict[type, list[Listener]] = defaultdict(list)

    def subscribe(self, event_type: type, callback: Listener) -> None:
        """Call ``callback`` for every posted event of ``event_type``."""
        self._listeners[event_type].append(callback)

    def unsubscribe(self, event_type: type, callback: Listener) -> None:
        """Stop calling ``callback`` for ``event_type``; unknown ones are ignored."""
        listeners = self._listeners.get(event_type)
        if listeners and callback in listeners:
            listeners.remove(callback)

    def post(self, event: Any) -> ListenerResult:
        """Deliver ``event`` and report whether a listener stopped it."""
        for event_type in type(event).__mro__:
            for callback in list(self._listeners.get(event_type, ())):
                if callback(event) is ListenerResult.STOP:
                    return ListenerResult.STOP
        return ListenerResult.PROPAGATE