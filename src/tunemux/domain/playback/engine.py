"""
Playback engine interface.

The queue controller drives any engine that implements PlaybackEngine and
receives its events through an EngineListener. Engines deliver listener
calls on the owning loop thread.
"""

from typing import NamedTuple, Protocol, Sequence


class EngineError(RuntimeError):
    """The playback engine could not carry out a command."""


class QueueItem(NamedTuple):
    """One entry loaded into the engine: what to play and how to find it again."""

    uri: str
    stable_id: str


class EngineListener(Protocol):
    def on_is_playing_changed(self, is_playing: bool) -> None: ...

    def on_error(self, message: str) -> None: ...

    def on_item_transition(self, stable_id: str) -> None: ...


class PlaybackEngine(Protocol):
    def set_listener(self, listener: EngineListener) -> None: ...

    def load(self, items: Sequence[QueueItem]) -> None: ...

    def prepare(self) -> None: ...

    def seek_to_index(self, index: int, offset_ms: int = 0) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def seek_to_position_ms(self, position_ms: int) -> None: ...

    def has_next(self) -> bool: ...

    def next(self) -> None: ...

    def has_prev(self) -> bool: ...

    def prev(self) -> None: ...

    def current_position_ms(self) -> int: ...

    def item_count(self) -> int: ...

    def release(self) -> None: ...
