"""Application context for explicit state passing.

AppContext wires every long-lived component together once and owns their
lifecycle. Actions receive it explicitly instead of reaching for module
globals; the HTTP client, worker pool, and playback engine are released
exactly once by ``close()``.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional

from loguru import logger
from rich.console import Console

from tunemux.core.config import Config
from tunemux.core.http import HttpClient
from tunemux.core.loop import MainLoop
from tunemux.core.settings import SettingsStore, SqliteSettingsStore
from tunemux.domain.catalogs.registry import CatalogRegistry
from tunemux.domain.library.local import LocalCatalog
from tunemux.domain.library.store import LibraryStore
from tunemux.domain.playback.engine import PlaybackEngine
from tunemux.domain.playback.mpv import MpvEngine
from tunemux.domain.playback.queue import QueueController
from tunemux.domain.playback.resolver import StreamResolver
from tunemux.domain.providers import ProviderAdapter, create_adapters
from tunemux.domain.search.orchestrator import SearchOrchestrator, SearchResults
from tunemux.state import AppState, StateStore

ONLINE_ENABLED_KEY = "online_enabled"


@dataclass
class AppContext:
    """Every component of a running tunemux instance.

    Attributes:
        config: Application configuration
        loop: Owning main loop; all mutation happens on its thread
        http: Shared HTTP client used by every adapter
        settings: Persisted key-value settings
        catalogs: Endpoint registry and selections
        library: Favorites, playlists, hidden ids, saved online tracks
        local_catalog: Local media scanner
        state: Observable application state
        adapters: Provider adapters in fan-out order
        orchestrator: Debounced multi-catalog search
        resolver: Stream URL resolution
        engine: Playback engine
        queue: Queue controller driving the engine
        console: Rich Console for formatted output
    """

    config: Config
    loop: MainLoop
    http: HttpClient
    settings: SettingsStore
    catalogs: CatalogRegistry
    library: LibraryStore
    local_catalog: LocalCatalog
    state: StateStore
    adapters: list[ProviderAdapter]
    orchestrator: SearchOrchestrator
    resolver: StreamResolver
    engine: PlaybackEngine
    queue: QueueController
    console: Console = field(default_factory=Console)
    closed: bool = False

    @classmethod
    def create(
        cls,
        config: Config,
        settings: Optional[SettingsStore] = None,
        loop: Optional[MainLoop] = None,
        http: Optional[HttpClient] = None,
        engine: Optional[PlaybackEngine] = None,
        local_catalog: Optional[LocalCatalog] = None,
        id_factory: Optional[Callable[[], int]] = None,
        console: Optional[Console] = None,
    ) -> "AppContext":
        """Build and wire the application.

        Every collaborator can be injected; anything omitted gets its
        production implementation.

        Args:
            config: Application configuration
            settings: Settings store (default: SQLite in the data dir)
            loop: Main loop (default: real clock and thread pool)
            http: HTTP client (default: requests session from config)
            engine: Playback engine (default: mpv)
            local_catalog: Local media catalog (default: configured paths)
            id_factory: Id source for catalogs without numeric ids
            console: Rich Console for output

        Returns:
            Fully wired AppContext
        """
        settings = settings if settings is not None else SqliteSettingsStore()
        loop = loop or MainLoop(max_workers=config.search.max_workers)
        http = http or HttpClient(config.http)
        engine = engine or MpvEngine(config.player, loop.post)
        local_catalog = local_catalog or LocalCatalog(config.library)

        catalogs = CatalogRegistry(settings)
        library = LibraryStore(settings)
        online_enabled = settings.get_bool(
            ONLINE_ENABLED_KEY, config.search.online_enabled
        )
        state = StateStore(
            AppState(
                hidden_ids=library.hidden_ids,
                online_enabled=online_enabled,
                playlists=library.playlists,
                saved_tracks=library.saved_tracks,
                endpoints=catalogs.endpoints,
                selected_endpoints=catalogs.selections,
            )
        )

        adapters = create_adapters(catalogs, http, id_factory=id_factory)

        def publish_results(results: SearchResults) -> None:
            state.update(search_results=results.tracks)

        orchestrator = SearchOrchestrator(
            loop,
            adapters,
            on_publish=publish_results,
            debounce_seconds=config.search.debounce_ms / 1000.0,
            online_enabled=online_enabled,
            on_phase_changed=lambda phase: state.update(search_phase=phase),
        )
        resolver = StreamResolver(adapters)
        queue = QueueController(
            engine,
            resolver,
            loop,
            publish=state.update,
            poll_interval=config.player.position_poll_ms / 1000.0,
        )

        logger.debug(
            f"Context created: {len(adapters)} adapters, online={online_enabled}"
        )
        return cls(
            config=config,
            loop=loop,
            http=http,
            settings=settings,
            catalogs=catalogs,
            library=library,
            local_catalog=local_catalog,
            state=state,
            adapters=adapters,
            orchestrator=orchestrator,
            resolver=resolver,
            engine=engine,
            queue=queue,
            console=console or Console(),
        )

    @property
    def snapshot(self) -> AppState:
        return self.state.snapshot

    def close(self) -> None:
        """Release the engine, HTTP client, and worker pool. Idempotent."""
        if self.closed:
            return
        self.closed = True
        self.queue.stop()
        self.engine.release()
        self.http.close()
        self.loop.close()
        logger.debug("Context closed")
