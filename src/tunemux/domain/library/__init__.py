"""Library domain - track models, local files, and the user's collection.

This domain handles:
- Track, endpoint, and playlist data models
- Scanning local files with Mutagen
- The filtered local browse view
- Favorites, playlists, and hidden tracks
"""

# Models
from .models import (
    FAVORITES_PLAYLIST_ID,
    PROVIDER_KINDS,
    CatalogEndpoint,
    LocalMedia,
    PlaylistEntry,
    ProviderTag,
    Track,
    TrackKey,
    format_duration,
)

# Local catalog
from .local import LocalCatalog, read_local_media, stable_local_id

# Browse view
from .browse import filter_local_tracks, matches_query

# Collection
from .store import LibraryStore

__all__ = [
    # Models
    "FAVORITES_PLAYLIST_ID",
    "PROVIDER_KINDS",
    "CatalogEndpoint",
    "LocalMedia",
    "PlaylistEntry",
    "ProviderTag",
    "Track",
    "TrackKey",
    "format_duration",
    # Local
    "LocalCatalog",
    "read_local_media",
    "stable_local_id",
    # Browse
    "filter_local_tracks",
    "matches_query",
    # Store
    "LibraryStore",
]
