"""Observable application state.

AppState is an immutable snapshot. StateStore is its single owner: components
publish changes through ``update`` on the loop thread and observers get the
new snapshot through ``subscribe``.
"""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from loguru import logger

from tunemux.domain.library.models import (
    CatalogEndpoint,
    PlaylistEntry,
    ProviderTag,
    Track,
)
from tunemux.domain.playback.queue import PlayQueue
from tunemux.domain.search.orchestrator import SearchPhase


@dataclass(frozen=True)
class AppState:
    # Local library
    local_tracks: tuple[Track, ...] = ()
    local_filtered: tuple[Track, ...] = ()
    hidden_ids: frozenset[int] = frozenset()

    # Search
    search_query: str = ""
    search_phase: SearchPhase = SearchPhase.IDLE
    search_results: tuple[Track, ...] = ()
    online_enabled: bool = False
    pinned_provider: Optional[ProviderTag] = None

    # Collection
    playlists: tuple[PlaylistEntry, ...] = ()
    saved_tracks: tuple[Track, ...] = ()
    endpoints: tuple[CatalogEndpoint, ...] = ()
    selected_endpoints: Mapping[ProviderTag, CatalogEndpoint] = field(
        default_factory=lambda: MappingProxyType({})
    )

    # Playback
    now_playing: Optional[Track] = None
    is_playing: bool = False
    position_ms: int = 0
    error_message: Optional[str] = None
    is_loading: bool = False
    queue: Optional[PlayQueue] = None


Subscriber = Callable[[AppState], None]


class StateStore:
    """Holds the current AppState and notifies subscribers on change."""

    def __init__(self, initial: Optional[AppState] = None):
        self._state = initial or AppState()
        self._subscribers: list[Subscriber] = []

    @property
    def snapshot(self) -> AppState:
        return self._state

    def update(self, **changes: Any) -> AppState:
        """Replace fields of the current snapshot and notify subscribers.

        Unchanged values do not trigger notifications.
        """
        if all(getattr(self._state, name) == value for name, value in changes.items()):
            return self._state

        self._state = replace(self._state, **changes)
        for subscriber in list(self._subscribers):
            try:
                subscriber(self._state)
            except Exception:
                logger.exception(f"State subscriber {subscriber!r} failed")
        return self._state

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register for snapshots; returns a function that unsubscribes."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe
