import pytest

from jukebox.events import (
    EventBus,
    GetSongInfo,
    ListenerResult,
    NongDeleted,
    SongDownloadFailed,
    SongDownloadFinished,
    SongDownloadProgress,
    SongError,
    SongStateChanged,
    StartDownload,
)


def test_listener_receives_posted_event():
    bus = EventBus()
    seen = []
    bus.subscribe(GetSongInfo, seen.append)
    event = GetSongInfo("Song", "Artist", 123)
    result = bus.post(event)
    assert seen == [event]
    assert result is ListenerResult.PROPAGATE
    assert seen[0].song_name == "Song"
    assert seen[0].artist_name == "Artist"
    assert seen[0].gd_song_id == 123


def test_listener_only_gets_its_type():
    bus = EventBus()
    seen = []
    bus.subscribe(NongDeleted, seen.append)
    bus.post(SongError(False, "boom"))
    assert seen == []


def test_listeners_run_in_subscription_order():
    bus = EventBus()
    order = []
    bus.subscribe(SongError, lambda e: order.append("first"))
    bus.subscribe(SongError, lambda e: order.append("second"))
    bus.post(SongError(True, "x"))
    assert order == ["first", "second"]


def test_stop_ends_delivery():
    bus = EventBus()
    later = []
    bus.subscribe(SongDownloadFailed, lambda e: ListenerResult.STOP)
    bus.subscribe(SongDownloadFailed, later.append)
    result = bus.post(SongDownloadFailed(1, "abc", "err"))
    assert result is ListenerResult.STOP
    assert later == []


def test_unsubscribe_removes_listener():
    bus = EventBus()
    seen = []
    bus.subscribe(SongDownloadProgress, seen.append)
    bus.unsubscribe(SongDownloadProgress, seen.append)
    bus.post(SongDownloadProgress(1, "abc", 0.5))
    assert seen == []


def test_unsubscribe_unknown_is_ignored():
    bus = EventBus()
    seen = []
    bus.subscribe(StartDownload, seen.append)
    bus.unsubscribe(StartDownload, print)
    bus.post(StartDownload(None, 5))
    assert len(seen) == 1


def test_base_class_listener_receives_subclass_events():
    bus = EventBus()
    seen = []
    bus.subscribe(object, seen.append)
    bus.post(SongStateChanged("nongs"))
    bus.post(NongDeleted("id", 3))
    assert [type(e) for e in seen] == [SongStateChanged, NongDeleted]


def test_listener_may_unsubscribe_during_post():
    bus = EventBus()
    calls = []

    def once(event):
        calls.append(event)
        bus.unsubscribe(SongError, once)

    bus.subscribe(SongError, once)
    first_event = SongError(False, "a")
    first_result = bus.post(first_event)
    second_result = bus.post(SongError(False, "b"))
    assert calls == [first_event]
    assert first_result is ListenerResult.PROPAGATE
    assert second_result is ListenerResult.PROPAGATE


def test_event_fields():
    finished = SongDownloadFinished(None, "dest")
    assert finished.index_source is None
    assert finished.destination == "dest"
    deleted = NongDeleted("uid", 7)
    assert (deleted.unique_id, deleted.gd_id) == ("uid", 7)
    with pytest.raises(AttributeError):
        deleted.gd_id = 8