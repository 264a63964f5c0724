"""Tests for debounced, generation-checked search fan-out."""

import json

import pytest

from tunemux.domain.library.models import ProviderTag
from tunemux.domain.providers import BodianAdapter, KuwoAdapter
from tunemux.domain.providers.base import ProviderAdapter
from tunemux.domain.search.orchestrator import (
    SearchOrchestrator,
    SearchPhase,
    merge_results,
)

DEBOUNCE = 0.6


class StubAdapter(ProviderAdapter):
    """Adapter returning canned tracks and recording queries."""

    def __init__(self, provider, catalogs, http, tracks=()):
        self.provider = provider
        super().__init__(catalogs, http)
        self.tracks = list(tracks)
        self.queries = []

    def fetch_tracks(self, query):
        self.queries.append(query)
        return list(self.tracks)

    def resolve_stream(self, track):
        return track.origin_uri


@pytest.fixture
def published():
    return []


@pytest.fixture
def make_orchestrator(loop, published):
    def factory(adapters, online_enabled=True):
        return SearchOrchestrator(
            loop,
            adapters,
            on_publish=published.append,
            debounce_seconds=DEBOUNCE,
            online_enabled=online_enabled,
        )

    return factory


def settle(loop, clock, executor) -> None:
    """Let the debounce expire and every dispatched call finish."""
    clock.advance(DEBOUNCE)
    loop.run_pending()
    executor.run_all()
    loop.run_pending()


class TestDebounce:
    """Tests for quiet-period behavior."""

    def test_rapid_typing_publishes_once_for_last_query(
        self, loop, clock, executor, catalogs, fake_http, make_orchestrator, published, track_factory
    ) -> None:
        """Test "a", "ab", "abc" inside the window produce one publish for "abc"."""
        adapter = StubAdapter(
            ProviderTag.KUWO, catalogs, fake_http, [track_factory("x", ProviderTag.KUWO)]
        )
        orchestrator = make_orchestrator([adapter])

        for query in ("a", "ab", "abc"):
            orchestrator.on_query_changed(query)
            clock.advance(0.2)
            loop.run_pending()
        settle(loop, clock, executor)

        assert adapter.queries == ["abc"]
        assert len(published) == 1
        assert published[0].session.query == "abc"
        assert orchestrator.phase is SearchPhase.PUBLISHED

    def test_blank_query_publishes_empty_without_network(
        self, loop, catalogs, fake_http, make_orchestrator, published
    ) -> None:
        """Test a blank query publishes immediately with no adapter calls."""
        adapter = StubAdapter(ProviderTag.KUWO, catalogs, fake_http)
        orchestrator = make_orchestrator([adapter])

        orchestrator.on_query_changed("   ")

        assert len(published) == 1
        assert published[0].tracks == ()
        assert adapter.queries == []

    def test_offline_publishes_empty(
        self, loop, clock, executor, catalogs, fake_http, make_orchestrator, published
    ) -> None:
        """Test online search disabled publishes an empty list."""
        adapter = StubAdapter(ProviderTag.KUWO, catalogs, fake_http)
        orchestrator = make_orchestrator([adapter], online_enabled=False)

        orchestrator.on_query_changed("abc")
        settle(loop, clock, executor)

        assert adapter.queries == []
        assert published[-1].tracks == ()


class TestFanOut:
    """Tests for join, merge, and isolation."""

    def test_duplicate_origin_collapses_first_wins(
        self, loop, clock, executor, catalogs, fake_http, make_orchestrator, published, track_factory
    ) -> None:
        """Test the same origin_uri from two providers appears once, in dispatch order."""
        shared = "http://same/stream.mp3"
        first = StubAdapter(
            ProviderTag.KUWO,
            catalogs,
            fake_http,
            [track_factory("k1", ProviderTag.KUWO, 1, shared), track_factory("k2", ProviderTag.KUWO, 2, "http://k/2")],
        )
        second = StubAdapter(
            ProviderTag.BODIAN,
            catalogs,
            fake_http,
            [track_factory("b1", ProviderTag.BODIAN, 3, shared), track_factory("b2", ProviderTag.BODIAN, 4, "http://b/2")],
        )
        orchestrator = make_orchestrator([first, second])

        orchestrator.on_query_changed("q")
        settle(loop, clock, executor)

        assert [t.title for t in published[0].tracks] == ["k1", "k2", "b2"]

    def test_no_partial_publish(
        self, loop, clock, executor, catalogs, fake_http, make_orchestrator, published
    ) -> None:
        """Test nothing is published until every adapter has answered."""
        adapters = [
            StubAdapter(ProviderTag.KUWO, catalogs, fake_http),
            StubAdapter(ProviderTag.BODIAN, catalogs, fake_http),
        ]
        orchestrator = make_orchestrator(adapters)

        orchestrator.on_query_changed("q")
        clock.advance(DEBOUNCE)
        loop.run_pending()
        executor.run_next()
        loop.run_pending()

        assert published == []
        assert orchestrator.phase is SearchPhase.IN_FLIGHT

        executor.run_all()
        loop.run_pending()
        assert len(published) == 1

    def test_malformed_provider_does_not_affect_others(
        self, loop, clock, executor, catalogs, fake_http, make_orchestrator, published
    ) -> None:
        """Test a non-parseable body yields zero tracks from that provider only."""
        fake_http.routes["http://search.kuwo.cn/r.s"] = "this is not json"
        fake_http.routes["https://findmusic-api.com/search"] = json.dumps(
            {"data": [{"title": "Fine", "artist": "Band", "url": "http://b/ok.mp3"}]}
        )
        orchestrator = make_orchestrator(
            [KuwoAdapter(catalogs, fake_http), BodianAdapter(catalogs, fake_http)]
        )

        orchestrator.on_query_changed("q")
        settle(loop, clock, executor)

        assert [t.title for t in published[0].tracks] == ["Fine"]

    def test_pinned_provider_limits_fan_out(
        self, loop, clock, executor, catalogs, fake_http, make_orchestrator
    ) -> None:
        """Test only the pinned catalog is queried."""
        kuwo = StubAdapter(ProviderTag.KUWO, catalogs, fake_http)
        bodian = StubAdapter(ProviderTag.BODIAN, catalogs, fake_http)
        orchestrator = make_orchestrator([kuwo, bodian])
        orchestrator.pinned_provider = ProviderTag.BODIAN

        orchestrator.on_query_changed("q")
        settle(loop, clock, executor)

        assert kuwo.queries == []
        assert bodian.queries == ["q"]


class TestStaleResults:
    """Tests for generation-based discard."""

    def test_results_of_superseded_query_are_discarded(
        self, loop, clock, executor, catalogs, fake_http, make_orchestrator, published
    ) -> None:
        """Test in-flight results land after a newer query and are dropped."""
        adapter = StubAdapter(ProviderTag.KUWO, catalogs, fake_http)
        orchestrator = make_orchestrator([adapter])

        orchestrator.on_query_changed("old")
        clock.advance(DEBOUNCE)
        loop.run_pending()
        assert len(executor.pending) == 1

        orchestrator.on_query_changed("new")
        executor.run_all()
        loop.run_pending()
        assert published == []

        settle(loop, clock, executor)
        assert [r.session.query for r in published] == ["new"]
        assert published[0].session.generation == orchestrator.generation

    def test_refresh_reissues_current_query(
        self, loop, clock, executor, catalogs, fake_http, make_orchestrator
    ) -> None:
        """Test refresh() runs the same query under a new generation."""
        adapter = StubAdapter(ProviderTag.KUWO, catalogs, fake_http)
        orchestrator = make_orchestrator([adapter])
        orchestrator.on_query_changed("q")
        settle(loop, clock, executor)

        session = orchestrator.refresh()
        settle(loop, clock, executor)

        assert session.query == "q"
        assert session.generation == 2
        assert adapter.queries == ["q", "q"]


class TestMergeResults:
    """Tests for the merge helper."""

    def test_preserves_group_order(self, track_factory) -> None:
        """Test groups are concatenated in order."""
        a = track_factory("a", origin_uri="u1")
        b = track_factory("b", origin_uri="u2")
        c = track_factory("c", origin_uri="u1")
        assert merge_results([[a], [b, c]]) == (a, b)
