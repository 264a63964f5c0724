"""
Search orchestration across online catalogs.

Every query change starts a new SearchSession with a higher generation.
After a quiet period the query fans out to the selectable adapters on the
worker pool; once every adapter has answered, results are merged and
published, but only if no newer session exists by then. In-flight HTTP calls
are never interrupted; stale results are dropped when they land.
"""

from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence

from loguru import logger

from tunemux.core.loop import MainLoop, TimerHandle
from tunemux.domain.library.models import ProviderTag, Track
from tunemux.domain.providers.base import ProviderAdapter

DEFAULT_DEBOUNCE_SECONDS = 0.6


class SearchPhase(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    IN_FLIGHT = "in_flight"
    PUBLISHED = "published"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class SearchSession:
    query: str
    generation: int


@dataclass(frozen=True)
class SearchResults:
    session: SearchSession
    tracks: tuple[Track, ...]


def merge_results(groups: Iterable[Sequence[Track]]) -> tuple[Track, ...]:
    """Concatenate per-provider results and drop repeated origin URIs.

    The first occurrence wins, so provider grouping follows dispatch order.
    """
    seen: set[str] = set()
    merged: list[Track] = []
    for group in groups:
        for track in group:
            if track.origin_uri in seen:
                continue
            seen.add(track.origin_uri)
            merged.append(track)
    return tuple(merged)


class SearchOrchestrator:
    """Debounced, generation-checked fan-out over provider adapters.

    All methods run on the loop thread.

    Args:
        loop: Owning main loop (timers and worker pool)
        adapters: Adapters in fixed dispatch order
        on_publish: Receives each published result set
        debounce_seconds: Quiet period before a query is sent
        online_enabled: Whether catalogs are queried at all
        on_phase_changed: Receives every phase transition
    """

    def __init__(
        self,
        loop: MainLoop,
        adapters: Sequence[ProviderAdapter],
        on_publish: Callable[[SearchResults], None],
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        online_enabled: bool = False,
        on_phase_changed: Optional[Callable[[SearchPhase], None]] = None,
    ):
        self._loop = loop
        self._adapters = list(adapters)
        self._on_publish = on_publish
        self._on_phase_changed = on_phase_changed
        self._debounce = debounce_seconds
        self.online_enabled = online_enabled
        self.pinned_provider: Optional[ProviderTag] = None

        self._generation = 0
        self._session = SearchSession("", 0)
        self._phase = SearchPhase.IDLE
        self._timer: Optional[TimerHandle] = None

    @property
    def phase(self) -> SearchPhase:
        return self._phase

    @property
    def session(self) -> SearchSession:
        return self._session

    @property
    def generation(self) -> int:
        return self._generation

    def selectable_adapters(self) -> list[ProviderAdapter]:
        if self.pinned_provider is None:
            return list(self._adapters)
        return [a for a in self._adapters if a.provider is self.pinned_provider]

    def on_query_changed(self, query: str) -> SearchSession:
        """Start a new session, invalidating every earlier one."""
        self._generation += 1
        session = SearchSession(query, self._generation)
        self._session = session

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        if self._phase in (SearchPhase.DEBOUNCING, SearchPhase.IN_FLIGHT):
            self._set_phase(SearchPhase.SUPERSEDED)

        if not query.strip():
            self._publish(session, ())
            return session

        self._set_phase(SearchPhase.DEBOUNCING)
        self._timer = self._loop.call_later(self._debounce, self._dispatch, session)
        return session

    def refresh(self) -> SearchSession:
        """Re-issue the current query (after the provider filter or online flag changes)."""
        return self.on_query_changed(self._session.query)

    def _set_phase(self, phase: SearchPhase) -> None:
        self._phase = phase
        if self._on_phase_changed is not None:
            self._on_phase_changed(phase)

    def _is_current(self, session: SearchSession) -> bool:
        return session.generation == self._generation

    def _dispatch(self, session: SearchSession) -> None:
        self._timer = None
        if not self._is_current(session):
            return

        if not self.online_enabled:
            self._publish(session, ())
            return

        adapters = self.selectable_adapters()
        if not adapters:
            self._publish(session, ())
            return

        self._set_phase(SearchPhase.IN_FLIGHT)
        logger.debug(
            f"Search #{session.generation} {session.query!r} -> "
            f"{', '.join(a.name for a in adapters)}"
        )

        buckets: dict[int, list[Track]] = {}
        for index, adapter in enumerate(adapters):
            self._loop.submit(
                adapter.search,
                session.query,
                on_done=lambda future, i=index, a=adapter: self._collect(
                    session, len(adapters), buckets, i, a, future
                ),
            )

    def _collect(
        self,
        session: SearchSession,
        expected: int,
        buckets: dict[int, list[Track]],
        index: int,
        adapter: ProviderAdapter,
        future: Future,
    ) -> None:
        try:
            buckets[index] = list(future.result())
        except Exception:
            # Adapters are fail-soft; anything here is a bug in one of them
            logger.exception(f"{adapter.name}: search raised past its boundary")
            buckets[index] = []

        if len(buckets) < expected:
            return

        if not self._is_current(session):
            logger.debug(
                f"Search #{session.generation} superseded by #{self._generation}, "
                "discarding results"
            )
            return

        self._publish(session, merge_results(buckets[i] for i in range(expected)))

    def _publish(self, session: SearchSession, tracks: tuple[Track, ...]) -> None:
        self._set_phase(SearchPhase.PUBLISHED)
        logger.debug(f"Search #{session.generation} published {len(tracks)} tracks")
        self._on_publish(SearchResults(session, tracks))
