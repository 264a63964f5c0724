"""
Stream URL resolution for queued tracks.

Dispatches to the owning adapter's resolution strategy. Resolution never
fails from the caller's point of view: if the catalog cannot produce a URL,
the track's stored reference is played as-is and the engine gets to decide.
"""

from typing import Iterable

from loguru import logger

from tunemux.domain.library.models import ProviderTag, Track
from tunemux.domain.providers.base import ProviderAdapter, ProviderError


class StreamResolver:
    """Resolve tracks to playable URLs via their provider adapters."""

    def __init__(self, adapters: Iterable[ProviderAdapter]):
        self._adapters = {adapter.provider: adapter for adapter in adapters}

    def resolve(self, track: Track) -> str:
        """Playable URL for a track; falls back to ``origin_uri`` on failure.

        Blocking for online tracks, so run it on the worker pool.
        """
        if track.provider is ProviderTag.LOCAL:
            return track.origin_uri

        adapter = self._adapters.get(track.provider)
        if adapter is None:
            logger.warning(f"No adapter for {track.provider.value}, playing origin")
            return track.origin_uri

        try:
            url = adapter.resolve_stream(track)
        except ProviderError as e:
            logger.warning(
                f"{adapter.name}: resolution failed for {track.title!r}, "
                f"falling back to origin: {e}"
            )
            return track.origin_uri

        logger.debug(f"{adapter.name}: resolved {track.title!r} -> {url}")
        return url
