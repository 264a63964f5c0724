"""User actions for tunemux.

One function per user intent. Each takes the AppContext explicitly, mutates
the owning component on the loop thread, and publishes the result to the
state store. Invalid input raises ValueError or KeyError for the caller to
report.
"""

from typing import Optional

from loguru import logger

from tunemux.context import ONLINE_ENABLED_KEY, AppContext
from tunemux.domain.library.browse import filter_local_tracks
from tunemux.domain.library.models import (
    CatalogEndpoint,
    PlaylistEntry,
    ProviderTag,
    Track,
    TrackKey,
)
from tunemux.domain.playback.queue import QueueSource

# Local library


def refresh_local_view(
    ctx: AppContext, resync_queue: bool = True
) -> tuple[Track, ...]:
    """Recompute the local-filtered list.

    With ``resync_queue`` the queue controller adopts the new list too; query
    edits only narrow the view and leave the loaded queue alone.
    """
    snapshot = ctx.snapshot
    filtered = filter_local_tracks(
        snapshot.local_tracks, ctx.library.hidden_ids, snapshot.search_query
    )
    ctx.state.update(local_filtered=filtered, hidden_ids=ctx.library.hidden_ids)
    if resync_queue:
        ctx.queue.sync_local(filtered)
    return filtered


def load_local_library(ctx: AppContext) -> int:
    """Scan local media and publish it.

    Returns:
        Number of local tracks found
    """
    tracks = tuple(media.to_track() for media in ctx.local_catalog.enumerate())
    ctx.state.update(local_tracks=tracks)
    refresh_local_view(ctx)
    logger.info(f"Local library loaded: {len(tracks)} tracks")
    return len(tracks)


def hide_track(ctx: AppContext, track_id: int) -> bool:
    """Hide a local track from the browse view and local queue.

    Returns:
        True if the track was not hidden before
    """
    changed = ctx.library.hide(track_id)
    if changed:
        refresh_local_view(ctx)
    return changed


def unhide_track(ctx: AppContext, track_id: int) -> bool:
    changed = ctx.library.unhide(track_id)
    if changed:
        refresh_local_view(ctx)
    return changed


# Search


def set_query(ctx: AppContext, query: str) -> None:
    """Narrow the local view and start a debounced online search."""
    ctx.state.update(search_query=query)
    refresh_local_view(ctx, resync_queue=False)
    ctx.orchestrator.on_query_changed(query)


def set_online_enabled(ctx: AppContext, enabled: bool) -> None:
    ctx.settings.put_bool(ONLINE_ENABLED_KEY, enabled)
    ctx.orchestrator.online_enabled = enabled
    ctx.state.update(online_enabled=enabled)
    logger.info(f"Online search {'enabled' if enabled else 'disabled'}")
    ctx.orchestrator.refresh()


def set_search_provider(ctx: AppContext, provider: Optional[ProviderTag]) -> None:
    """Pin search to one catalog, or None for all of them.

    Raises:
        ValueError: If provider is LOCAL
    """
    if provider is not None and not provider.is_online:
        raise ValueError("Only online catalogs can be searched")
    ctx.orchestrator.pinned_provider = provider
    ctx.state.update(pinned_provider=provider)
    ctx.orchestrator.refresh()


# Playback


def source_tracks(
    ctx: AppContext, source: QueueSource, playlist_id: Optional[str] = None
) -> tuple[Track, ...]:
    """The list a queue of the given source is built from."""
    snapshot = ctx.snapshot
    if source is QueueSource.LOCAL:
        return snapshot.local_filtered
    if source is QueueSource.SEARCH:
        return snapshot.search_results
    if playlist_id is None:
        raise ValueError("A playlist is required to play from the library")
    hidden = ctx.library.hidden_ids
    return tuple(
        t
        for t in ctx.library.tracks_in_playlist(playlist_id, snapshot.local_tracks)
        if not (t.is_local and t.id in hidden)
    )


def play_track(
    ctx: AppContext,
    track: Track,
    source: QueueSource,
    playlist_id: Optional[str] = None,
) -> None:
    """Play a track with the rest of its source list queued around it."""
    ctx.queue.play(track, source_tracks(ctx, source, playlist_id), source)


def toggle_play(ctx: AppContext) -> None:
    ctx.queue.toggle_play()


def next_track(ctx: AppContext) -> None:
    ctx.queue.next()


def previous_track(ctx: AppContext) -> None:
    ctx.queue.previous()


def seek(ctx: AppContext, fraction: float) -> None:
    ctx.queue.seek_fraction(fraction)


def dismiss_error(ctx: AppContext) -> None:
    ctx.queue.dismiss_error()


# Favorites and playlists


def _publish_library(ctx: AppContext) -> None:
    ctx.state.update(
        playlists=ctx.library.playlists, saved_tracks=ctx.library.saved_tracks
    )


def toggle_favorite(ctx: AppContext, track: Track) -> bool:
    """Returns True if the track is now a favorite."""
    favorite = ctx.library.toggle_favorite(track)
    _publish_library(ctx)
    return favorite


def create_playlist(ctx: AppContext, name: str) -> PlaylistEntry:
    playlist = ctx.library.create_playlist(name)
    _publish_library(ctx)
    return playlist


def rename_playlist(ctx: AppContext, playlist_id: str, name: str) -> PlaylistEntry:
    playlist = ctx.library.rename_playlist(playlist_id, name)
    _publish_library(ctx)
    return playlist


def delete_playlist(ctx: AppContext, playlist_id: str) -> None:
    ctx.library.delete_playlist(playlist_id)
    _publish_library(ctx)


def add_to_playlist(ctx: AppContext, track: Track, playlist_id: str) -> bool:
    added = ctx.library.add_to_playlist(track, playlist_id)
    if added:
        _publish_library(ctx)
    return added


def remove_from_playlist(ctx: AppContext, key: TrackKey, playlist_id: str) -> bool:
    removed = ctx.library.remove_from_playlist(key, playlist_id)
    if removed:
        _publish_library(ctx)
    return removed


def playlist_tracks(ctx: AppContext, playlist_id: str) -> tuple[Track, ...]:
    return ctx.library.tracks_in_playlist(playlist_id, ctx.snapshot.local_tracks)


def find_playlist(ctx: AppContext, ref: str) -> PlaylistEntry:
    """Find a playlist by id, id prefix, or case-insensitive name.

    Raises:
        KeyError: If nothing matches or a prefix is ambiguous
    """
    ref = ref.strip()
    playlists = ctx.library.playlists
    for playlist in playlists:
        if playlist.id == ref or playlist.name.casefold() == ref.casefold():
            return playlist

    matches = [p for p in playlists if ref and p.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if matches:
        raise KeyError(f"Ambiguous playlist id prefix: {ref}")
    raise KeyError(f"Playlist not found: {ref}")


# Catalog sources


def _publish_catalogs(ctx: AppContext) -> None:
    ctx.state.update(
        endpoints=ctx.catalogs.endpoints, selected_endpoints=ctx.catalogs.selections
    )


def find_endpoint(ctx: AppContext, provider: ProviderTag, ref: str) -> CatalogEndpoint:
    """Find a provider's endpoint by base URL or display name.

    Raises:
        ValueError: If nothing matches
    """
    ref = ref.strip()
    for endpoint in ctx.catalogs.endpoints_for(provider):
        if endpoint.base_url == ref.rstrip("/") or endpoint.display_name == ref:
            return endpoint
    raise ValueError(f"No {provider.value} endpoint matches '{ref}'")


def add_source(
    ctx: AppContext, name: str, url: str, provider: ProviderTag
) -> CatalogEndpoint:
    endpoint = ctx.catalogs.add_endpoint(name, url, provider)
    _publish_catalogs(ctx)
    logger.info(f"Added {provider.value} endpoint {endpoint.base_url}")
    return endpoint


def remove_source(ctx: AppContext, endpoint: CatalogEndpoint) -> None:
    ctx.catalogs.remove_endpoint(endpoint)
    _publish_catalogs(ctx)
    logger.info(f"Removed {endpoint.provider.value} endpoint {endpoint.base_url}")


def select_source(ctx: AppContext, endpoint: CatalogEndpoint) -> None:
    ctx.catalogs.select(endpoint)
    _publish_catalogs(ctx)
