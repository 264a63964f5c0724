"""Tests for the queue controller."""

import json

import pytest

from tunemux.domain.library.models import ProviderTag
from tunemux.domain.playback.queue import PlayQueue, QueueController, QueueSource
from tunemux.domain.playback.resolver import StreamResolver
from tunemux.domain.providers import create_adapters
from tunemux.state import StateStore


@pytest.fixture
def state() -> StateStore:
    return StateStore()


@pytest.fixture
def controller(engine, loop, state) -> QueueController:
    return QueueController(engine, StreamResolver([]), loop, state.update, poll_interval=0.5)


@pytest.fixture
def tracks(track_factory):
    return tuple(track_factory(f"t{i}", track_id=i) for i in range(3))


def play_and_settle(controller, loop, executor, track, source_tracks, source=QueueSource.LOCAL):
    controller.play(track, source_tracks, source)
    executor.run_all()
    loop.run_pending()


class TestPlay:
    """Tests for explicit selection."""

    def test_builds_queue_from_source_and_plays(
        self, controller, engine, loop, executor, state, tracks
    ) -> None:
        """Test the whole source list is loaded and the selection played."""
        play_and_settle(controller, loop, executor, tracks[1], tracks)

        assert engine.calls == [
            ("load", [t.stable_id for t in tracks]),
            ("prepare",),
            ("seek_to_index", 1, 0),
            ("play",),
        ]
        snapshot = state.snapshot
        assert snapshot.now_playing == tracks[1]
        assert snapshot.is_loading is False
        assert snapshot.queue == PlayQueue(tracks, 1, QueueSource.LOCAL)

    def test_loading_flag_while_resolving(
        self, controller, executor, state, tracks
    ) -> None:
        """Test is_loading is published until resolution lands."""
        controller.play(tracks[0], tracks, QueueSource.LOCAL)

        assert state.snapshot.is_loading is True
        assert executor.pending

    def test_newer_selection_supersedes_pending(
        self, controller, engine, loop, executor, state, tracks
    ) -> None:
        """Test only the latest selection reaches the engine."""
        controller.play(tracks[0], tracks, QueueSource.LOCAL)
        controller.play(tracks[2], tracks, QueueSource.LOCAL)
        executor.run_all()
        loop.run_pending()

        assert [c for c in engine.calls if c[0] == "seek_to_index"] == [("seek_to_index", 2, 0)]
        assert state.snapshot.now_playing == tracks[2]

    def test_resolved_url_used_for_selected_item_only(
        self, engine, loop, executor, state, catalogs, fake_http, track_factory
    ) -> None:
        """Test the selected track gets its resolved stream; others keep origin."""
        fake_http.routes["https://163api.qijieya.cn/song/url/v1"] = json.dumps(
            {"data": [{"url": "http://cdn/resolved.mp3"}]}
        )
        resolver = StreamResolver(create_adapters(catalogs, fake_http))
        controller = QueueController(engine, resolver, loop, state.update)
        online = (
            track_factory("n1", ProviderTag.NETEASE, 1, "http://n/1"),
            track_factory("n2", ProviderTag.NETEASE, 2, "http://n/2"),
        )

        play_and_settle(controller, loop, executor, online[1], online, QueueSource.SEARCH)

        assert [item.uri for item in engine.items] == ["http://n/1", "http://cdn/resolved.mp3"]
        assert state.snapshot.queue.source is QueueSource.SEARCH


class TestEngineErrors:
    """Tests for auto-advance on playback errors."""

    def test_error_mid_queue_advances_and_plays(
        self, controller, engine, loop, executor, state, tracks
    ) -> None:
        """Test an error at index 0 of 3 moves to index 1 and plays."""
        play_and_settle(controller, loop, executor, tracks[0], tracks)
        engine.calls.clear()

        controller.on_error("decode failed")

        assert engine.calls == [("next",), ("play",)]
        assert state.snapshot.now_playing == tracks[1]
        assert state.snapshot.error_message is None

    def test_error_on_last_item_is_terminal(
        self, controller, engine, loop, executor, state, tracks
    ) -> None:
        """Test an error at index 2 of 3 surfaces a message and touches nothing."""
        play_and_settle(controller, loop, executor, tracks[2], tracks)
        engine.calls.clear()

        controller.on_error("decode failed")

        assert engine.calls == []
        assert "decode failed" in state.snapshot.error_message

        controller.dismiss_error()
        assert state.snapshot.error_message is None


class TestEngineEvents:
    """Tests for transition and play-state events."""

    def test_item_transition_publishes_track(
        self, controller, loop, executor, state, tracks
    ) -> None:
        """Test a transition is looked up by stable id."""
        play_and_settle(controller, loop, executor, tracks[0], tracks)

        controller.on_item_transition(tracks[2].stable_id)

        assert state.snapshot.now_playing == tracks[2]
        assert controller.queue.index == 2

    def test_unknown_transition_is_ignored(
        self, controller, loop, executor, state, tracks
    ) -> None:
        """Test an id not in the queue leaves state alone."""
        play_and_settle(controller, loop, executor, tracks[0], tracks)

        controller.on_item_transition("LOCAL:/nowhere.mp3")

        assert state.snapshot.now_playing == tracks[0]

    def test_is_playing_change_is_published(self, controller, state) -> None:
        """Test play-state events reach the store."""
        controller.on_is_playing_changed(True)
        assert state.snapshot.is_playing is True


class TestSyncLocal:
    """Tests for rebuilding the queue from the local-filtered list."""

    def test_empty_queue_stages_local_list(self, controller, engine, tracks) -> None:
        """Test the local list is loaded without starting playback."""
        controller.sync_local(tracks)

        assert engine.calls == [("load", [t.stable_id for t in tracks])]
        assert controller.queue.source is QueueSource.LOCAL

    def test_hidden_track_leaves_next_rebuild(
        self, controller, engine, loop, executor, tracks
    ) -> None:
        """Test a rebuild drops a removed track and keeps the current one's position."""
        play_and_settle(controller, loop, executor, tracks[2], tracks)
        engine.position_ms = 42_000
        engine.calls.clear()

        controller.sync_local((tracks[0], tracks[2]))

        assert engine.calls[0] == ("load", [tracks[0].stable_id, tracks[2].stable_id])
        assert engine.calls[1] == ("seek_to_index", 1, 42_000)
        assert controller.queue.current == tracks[2]

    def test_non_local_queue_is_left_alone(
        self, controller, engine, loop, executor, track_factory, tracks
    ) -> None:
        """Test a search queue is not rebuilt when the local list changes."""
        online = (track_factory("o", ProviderTag.BODIAN, 9, "http://b/o.mp3"),)
        play_and_settle(controller, loop, executor, online[0], online, QueueSource.SEARCH)
        engine.calls.clear()

        controller.sync_local(tracks)

        assert engine.calls == []
        assert controller.queue.source is QueueSource.SEARCH


class TestTransport:
    """Tests for toggle, next/previous, seek, and the position poll."""

    def test_toggle_play_starts_local_list(self, controller, engine, state, tracks) -> None:
        """Test toggling with nothing playing starts the staged local list."""
        controller.sync_local(tracks)
        engine.calls.clear()

        controller.toggle_play()

        assert engine.calls == [("prepare",), ("seek_to_index", 0, 0), ("play",)]
        assert state.snapshot.is_playing is True
        assert state.snapshot.now_playing == tracks[0]

    def test_toggle_play_pauses_when_playing(
        self, controller, engine, loop, executor, state, tracks
    ) -> None:
        """Test a second toggle pauses."""
        play_and_settle(controller, loop, executor, tracks[0], tracks)

        controller.toggle_play()

        assert engine.calls[-1] == ("pause",)
        assert state.snapshot.is_playing is False

    def test_next_and_previous(self, controller, engine, loop, executor, state, tracks) -> None:
        """Test next/previous move through the queue."""
        play_and_settle(controller, loop, executor, tracks[0], tracks)

        controller.next()
        assert state.snapshot.now_playing == tracks[1]
        controller.previous()
        assert state.snapshot.now_playing == tracks[0]

    def test_seek_fraction_uses_duration(
        self, controller, engine, loop, executor, tracks
    ) -> None:
        """Test seeking to half of a 180 s track."""
        play_and_settle(controller, loop, executor, tracks[0], tracks)

        controller.seek_fraction(0.5)

        assert engine.calls[-1] == ("seek_to_position_ms", 90_000)

    def test_position_poll_every_interval(
        self, controller, engine, loop, clock, executor, state, tracks
    ) -> None:
        """Test the poll republishes the engine position until stopped."""
        play_and_settle(controller, loop, executor, tracks[0], tracks)
        controller.start()

        engine.position_ms = 1500
        clock.advance(0.5)
        loop.run_pending()
        assert state.snapshot.position_ms == 1500

        controller.stop()
        engine.position_ms = 3000
        clock.advance(0.5)
        loop.run_pending()
        assert state.snapshot.position_ms == 1500
