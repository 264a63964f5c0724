"""
Queue controller: owns what the playback engine has loaded.

A queue is always drawn from exactly one source list (the local browse view,
the search results, or a library playlist). Selecting a track resolves its
stream on the worker pool, then rebuilds the engine's queue from the track's
own source list. Engine events come back through the EngineListener methods
and are published as state changes.
"""

from concurrent.futures import Future
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from loguru import logger

from tunemux.core.loop import MainLoop, TimerHandle
from tunemux.domain.library.models import Track

from .engine import EngineError, PlaybackEngine, QueueItem
from .resolver import StreamResolver

DEFAULT_POLL_INTERVAL = 0.5


class QueueSource(str, Enum):
    LOCAL = "local"
    SEARCH = "search"
    LIBRARY = "library"


@dataclass(frozen=True)
class PlayQueue:
    tracks: tuple[Track, ...]
    index: int
    source: QueueSource

    @property
    def current(self) -> Optional[Track]:
        if 0 <= self.index < len(self.tracks):
            return self.tracks[self.index]
        return None

    def index_of(self, stable_id: str) -> int:
        for position, track in enumerate(self.tracks):
            if track.stable_id == stable_id:
                return position
        return -1


def build_items(
    tracks: Sequence[Track], resolved: Optional[tuple[Track, str]] = None
) -> list[QueueItem]:
    """Engine items for a track list, substituting one resolved stream URL."""
    items = []
    for track in tracks:
        uri = track.origin_uri
        if resolved is not None and track.key == resolved[0].key:
            uri = resolved[1]
        items.append(QueueItem(uri=uri, stable_id=track.stable_id))
    return items


class QueueController:
    """Keeps the engine's queue in step with the source lists.

    Loop thread only; engine listener callbacks must arrive there too.

    Args:
        engine: Playback engine to drive
        resolver: Stream resolver for selected tracks
        loop: Owning loop (worker pool and poll timer)
        publish: Receives state changes as keyword arguments
        poll_interval: Seconds between position polls
    """

    def __init__(
        self,
        engine: PlaybackEngine,
        resolver: StreamResolver,
        loop: MainLoop,
        publish: Callable[..., Any],
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self._engine = engine
        self._resolver = resolver
        self._loop = loop
        self._publish = publish
        self._poll_interval = poll_interval

        self._queue: Optional[PlayQueue] = None
        self._local_tracks: tuple[Track, ...] = ()
        self._is_playing = False
        self._active = False
        self._request = 0
        self._poll_timer: Optional[TimerHandle] = None

        engine.set_listener(self)

    @property
    def queue(self) -> Optional[PlayQueue]:
        return self._queue

    @property
    def is_playing(self) -> bool:
        return self._is_playing

    def _set_queue(self, queue: Optional[PlayQueue], **changes: Any) -> None:
        self._queue = queue
        now_playing = queue.current if queue is not None else None
        self._publish(queue=queue, now_playing=now_playing, **changes)

    # Local list sync

    def sync_local(self, tracks: Sequence[Track]) -> None:
        """Adopt a new local-filtered list and rebuild the queue if it is local.

        Only the queue contents change. The current track keeps its position
        if it is still in the list.
        """
        self._local_tracks = tuple(tracks)
        queue = self._queue
        if queue is not None and queue.source is not QueueSource.LOCAL:
            return

        current = queue.current if queue is not None else None
        new_tracks = self._local_tracks

        if not new_tracks:
            if queue is not None or self._engine.item_count():
                self._engine.load([])
            self._set_queue(None)
            return

        index = -1
        if current is not None:
            index = next(
                (i for i, t in enumerate(new_tracks) if t.key == current.key), -1
            )

        if not self._active:
            # Nothing has played yet; just stage the list
            self._engine.load(build_items(new_tracks))
            self._set_queue(PlayQueue(new_tracks, max(index, 0), QueueSource.LOCAL))
            return

        position_ms = self._engine.current_position_ms()
        if index < 0:
            # Current track was hidden; stay near where it was
            index = min(queue.index, len(new_tracks) - 1) if queue is not None else 0
            position_ms = 0

        was_playing = self._is_playing
        self._engine.load(build_items(new_tracks))
        self._engine.seek_to_index(index, position_ms)
        if was_playing:
            self._engine.play()
        self._set_queue(PlayQueue(new_tracks, index, QueueSource.LOCAL))
        logger.debug(f"Local queue rebuilt: {len(new_tracks)} tracks, index {index}")

    # Selection

    def play(
        self, track: Track, source_tracks: Sequence[Track], source: QueueSource
    ) -> int:
        """Resolve a selected track and play it from its source list.

        A later call supersedes an earlier one still resolving.

        Returns:
            Request number of this selection
        """
        self._request += 1
        request = self._request
        tracks = tuple(source_tracks)
        self._publish(is_loading=True, error_message=None)
        logger.info(f"Play {track.title!r} ({track.provider.value}) from {source.value}")

        self._loop.submit(
            self._resolver.resolve,
            track,
            on_done=lambda future: self._on_resolved(
                request, track, tracks, source, future
            ),
        )
        return request

    def _on_resolved(
        self,
        request: int,
        track: Track,
        tracks: tuple[Track, ...],
        source: QueueSource,
        future: Future,
    ) -> None:
        if request != self._request:
            logger.debug(f"Play request {request} superseded by {self._request}")
            return

        try:
            url = future.result()
        except Exception:
            logger.exception(f"Resolving {track.title!r} failed unexpectedly")
            url = track.origin_uri

        index = next((i for i, t in enumerate(tracks) if t.key == track.key), -1)
        if index < 0:
            tracks = (track,) + tracks
            index = 0

        try:
            self._engine.load(build_items(tracks, resolved=(track, url)))
            self._engine.prepare()
            self._engine.seek_to_index(index, 0)
            self._engine.play()
        except EngineError as e:
            logger.error(f"Playback engine failed: {e}")
            self._publish(is_loading=False, error_message=str(e))
            return

        self._is_playing = True
        self._active = True
        self._set_queue(
            PlayQueue(tracks, index, source), is_loading=False, is_playing=True
        )

    # EngineListener

    def on_error(self, message: str) -> None:
        queue = self._queue
        if queue is not None and queue.index + 1 < len(queue.tracks):
            failed = queue.current
            logger.warning(
                f"Skipping unplayable {failed.title if failed else '?'!r}: {message}"
            )
            self._engine.next()
            self._engine.play()
            self._set_queue(replace(queue, index=queue.index + 1))
            return

        # Last item: surface it and leave the engine alone
        logger.warning(f"Playback failed at end of queue: {message}")
        self._is_playing = False
        self._publish(error_message=f"Cannot play track: {message}", is_playing=False)

    def on_item_transition(self, stable_id: str) -> None:
        queue = self._queue
        if queue is None:
            return
        index = queue.index_of(stable_id)
        if index < 0:
            logger.debug(f"Transition to unknown item {stable_id}")
            return
        if index != queue.index:
            self._set_queue(replace(queue, index=index))

    def on_is_playing_changed(self, is_playing: bool) -> None:
        self._is_playing = is_playing
        self._publish(is_playing=is_playing)

    # Transport controls

    def toggle_play(self) -> None:
        """Play or pause; loads the local list first if nothing is queued."""
        if not self._active:
            queue = self._queue
            if self._engine.item_count() == 0 or queue is None:
                if not self._local_tracks:
                    logger.debug("Nothing to play")
                    return
                queue = PlayQueue(self._local_tracks, 0, QueueSource.LOCAL)
                self._engine.load(build_items(queue.tracks))
            self._engine.prepare()
            self._engine.seek_to_index(queue.index, 0)
            self._engine.play()
            self._is_playing = True
            self._active = True
            self._set_queue(queue, is_playing=True)
            return

        if self._is_playing:
            self._engine.pause()
        else:
            self._engine.play()
        self._is_playing = not self._is_playing
        self._publish(is_playing=self._is_playing)

    def next(self) -> None:
        queue = self._queue
        if queue is None or not self._engine.has_next():
            return
        self._engine.next()
        self._engine.play()
        self._set_queue(replace(queue, index=min(queue.index + 1, len(queue.tracks) - 1)))

    def previous(self) -> None:
        queue = self._queue
        if queue is None or not self._engine.has_prev():
            return
        self._engine.prev()
        self._engine.play()
        self._set_queue(replace(queue, index=max(queue.index - 1, 0)))

    def seek_fraction(self, fraction: float) -> None:
        """Seek to a fraction (0..1) of the current track's duration."""
        current = self._queue.current if self._queue is not None else None
        if current is None or current.duration_ms <= 0:
            return
        position_ms = int(max(0.0, min(1.0, fraction)) * current.duration_ms)
        self._engine.seek_to_position_ms(position_ms)
        self._publish(position_ms=position_ms)

    def dismiss_error(self) -> None:
        self._publish(error_message=None)

    # Position poll

    def start(self) -> None:
        if self._poll_timer is None:
            self._poll_timer = self._loop.call_later(self._poll_interval, self._poll)

    def stop(self) -> None:
        if self._poll_timer is not None:
            self._poll_timer.cancel()
            self._poll_timer = None

    def _poll(self) -> None:
        if self._queue is not None:
            self._publish(position_ms=self._engine.current_position_ms())
        self._poll_timer = self._loop.call_later(self._poll_interval, self._poll)
