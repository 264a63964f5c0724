"""Local browse view: the library minus hidden tracks, narrowed by the search box."""

from typing import Iterable, Sequence

from .models import Track


def matches_query(track: Track, query: str) -> bool:
    """Case-insensitive substring match on title or artist. Blank matches all."""
    needle = query.strip().casefold()
    if not needle:
        return True
    return needle in track.title.casefold() or needle in track.artist.casefold()


def filter_local_tracks(
    tracks: Sequence[Track], hidden_ids: Iterable[int], query: str = ""
) -> tuple[Track, ...]:
    """Build the local-filtered list, preserving library order."""
    hidden = frozenset(hidden_ids)
    return tuple(
        t for t in tracks if t.id not in hidden and matches_query(t, query)
    )
