"""Shared fakes: clock, executor, HTTP client, playback engine."""

import io
from concurrent.futures import Future
from typing import Any, Callable, Optional

import pytest
from rich.console import Console

from tunemux.core.config import Config, LibraryConfig
from tunemux.core.http import HttpRequestError
from tunemux.core.loop import MainLoop
from tunemux.core.settings import MemorySettingsStore
from tunemux.domain.catalogs.registry import CatalogRegistry
from tunemux.domain.library.models import LocalMedia, ProviderTag, Track


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualExecutor:
    """Executor that runs submitted work only when told to."""

    def __init__(self):
        self.pending: list[tuple[Future, Callable, tuple]] = []
        self.shutdown_calls = 0

    def submit(self, fn: Callable, *args: Any) -> Future:
        future: Future = Future()
        self.pending.append((future, fn, args))
        return future

    def run_next(self) -> None:
        future, fn, args = self.pending.pop(0)
        try:
            future.set_result(fn(*args))
        except Exception as e:
            future.set_exception(e)

    def run_all(self) -> None:
        while self.pending:
            self.run_next()

    def shutdown(self, wait: bool = True, cancel_futures: bool = False) -> None:
        self.shutdown_calls += 1


class FakeHttp:
    """HttpClient stand-in routing URLs to canned bodies.

    A route value may be a body string, an exception to raise, or a callable
    taking ``params`` and returning a body.
    """

    def __init__(self, routes: Optional[dict[str, Any]] = None):
        self.routes = dict(routes or {})
        self.calls: list[tuple[str, dict]] = []
        self.closed = False

    def get(self, url: str, params=None, headers=None) -> str:
        self.calls.append((url, dict(params or {})))
        if url not in self.routes:
            raise HttpRequestError(url, "HTTP 404", status_code=404)
        route = self.routes[url]
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(params or {})
        return route

    def close(self) -> None:
        self.closed = True


class FakeEngine:
    """PlaybackEngine that records every call."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.items: list = []
        self.index = -1
        self.position_ms = 0
        self.listener = None
        self.released = 0

    def set_listener(self, listener) -> None:
        self.listener = listener

    def load(self, items) -> None:
        self.calls.append(("load", [i.stable_id for i in items]))
        self.items = list(items)
        self.index = 0 if items else -1

    def prepare(self) -> None:
        self.calls.append(("prepare",))

    def seek_to_index(self, index: int, offset_ms: int = 0) -> None:
        self.calls.append(("seek_to_index", index, offset_ms))
        self.index = index

    def play(self) -> None:
        self.calls.append(("play",))

    def pause(self) -> None:
        self.calls.append(("pause",))

    def seek_to_position_ms(self, position_ms: int) -> None:
        self.calls.append(("seek_to_position_ms", position_ms))
        self.position_ms = position_ms

    def has_next(self) -> bool:
        return 0 <= self.index + 1 < len(self.items)

    def next(self) -> None:
        self.calls.append(("next",))
        self.index += 1

    def has_prev(self) -> bool:
        return self.index > 0

    def prev(self) -> None:
        self.calls.append(("prev",))
        self.index -= 1

    def current_position_ms(self) -> int:
        return self.position_ms

    def item_count(self) -> int:
        return len(self.items)

    def release(self) -> None:
        self.released += 1


class FakeLocalCatalog:
    def __init__(self, media: list[LocalMedia]):
        self.media = list(media)

    def enumerate(self) -> list[LocalMedia]:
        return list(self.media)


def make_track(
    title: str,
    provider: ProviderTag = ProviderTag.LOCAL,
    track_id: int = 1,
    origin_uri: Optional[str] = None,
    artist: str = "Artist",
    duration_ms: int = 180_000,
) -> Track:
    return Track(
        id=track_id,
        title=title,
        artist=artist,
        duration_ms=duration_ms,
        origin_uri=origin_uri or f"/music/{title}.mp3",
        provider=provider,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def executor() -> ManualExecutor:
    return ManualExecutor()


@pytest.fixture
def loop(clock: FakeClock, executor: ManualExecutor) -> MainLoop:
    main_loop = MainLoop(clock=clock, executor=executor)
    yield main_loop
    main_loop.close()


@pytest.fixture
def settings() -> MemorySettingsStore:
    return MemorySettingsStore()


@pytest.fixture
def catalogs(settings: MemorySettingsStore) -> CatalogRegistry:
    return CatalogRegistry(settings)


@pytest.fixture
def fake_http() -> FakeHttp:
    return FakeHttp()


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def track_factory() -> Callable[..., Track]:
    return make_track


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(library=LibraryConfig(library_paths=[str(tmp_path / "music")]))


@pytest.fixture
def local_media() -> list[LocalMedia]:
    return [
        LocalMedia(101, "Alpha", "Band A", 200_000, "/music/alpha.mp3"),
        LocalMedia(102, "Beta", "Band B", 210_000, "/music/beta.mp3"),
        LocalMedia(103, "Gamma", "Band A", 220_000, "/music/gamma.mp3"),
    ]


@pytest.fixture
def ctx(config, settings, loop, fake_http, engine, local_media):
    """An AppContext wired to fakes; output is captured in ``ctx.console.file``."""
    from tunemux.context import AppContext

    context = AppContext.create(
        config,
        settings=settings,
        loop=loop,
        http=fake_http,
        engine=engine,
        local_catalog=FakeLocalCatalog(local_media),
        console=Console(file=io.StringIO(), width=120),
    )
    yield context
    context.close()
