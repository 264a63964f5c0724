"""
Music library domain models.

Contains the normalized track record shared by local files and every online
catalog, plus the catalog endpoint and playlist records.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple, Optional


class ProviderTag(str, Enum):
    """Where a track came from."""

    LOCAL = "LOCAL"
    NETEASE = "NETEASE"
    KUWO = "KUWO"
    BODIAN = "BODIAN"
    KUGOU = "KUGOU"

    @property
    def label(self) -> str:
        return _PROVIDER_LABELS[self]

    @property
    def is_online(self) -> bool:
        return self is not ProviderTag.LOCAL

    @classmethod
    def parse(cls, value: str) -> "ProviderTag":
        """Parse a provider name case-insensitively.

        Raises:
            ValueError: If the name is not a known provider
        """
        try:
            return cls(value.strip().upper())
        except ValueError:
            names = ", ".join(p.value.lower() for p in cls)
            raise ValueError(f"Unknown provider: '{value}'. Known providers: {names}")


_PROVIDER_LABELS = {
    ProviderTag.LOCAL: "Local",
    ProviderTag.NETEASE: "NetEase Cloud Music",
    ProviderTag.KUWO: "Kuwo",
    ProviderTag.BODIAN: "Bodian",
    ProviderTag.KUGOU: "Kugou",
}

# Online catalogs in fixed fan-out order; merged results follow this grouping
PROVIDER_KINDS: tuple[ProviderTag, ...] = (
    ProviderTag.KUWO,
    ProviderTag.BODIAN,
    ProviderTag.NETEASE,
    ProviderTag.KUGOU,
)


class TrackKey(NamedTuple):
    """Identity used for playlist membership and queue items.

    Provider-local ids collide across catalogs and are random for catalogs
    without stable ids, so membership is keyed on origin instead.
    """

    provider: ProviderTag
    origin_uri: str

    def to_stable_id(self) -> str:
        return f"{self.provider.value}:{self.origin_uri}"


@dataclass(frozen=True)
class Track:
    """A playable item, local or online.

    ``id`` is provider-local: stable for local files and NetEase, numeric for
    Kuwo, and synthesized per process for catalogs without ids. Never use it
    to compare tracks from different providers.
    """

    id: int
    title: str
    artist: str
    duration_ms: int
    origin_uri: str
    provider: ProviderTag

    @property
    def key(self) -> TrackKey:
        return TrackKey(self.provider, self.origin_uri)

    @property
    def stable_id(self) -> str:
        return self.key.to_stable_id()

    @property
    def is_local(self) -> bool:
        return self.provider is ProviderTag.LOCAL

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "duration_ms": self.duration_ms,
            "origin_uri": self.origin_uri,
            "provider": self.provider.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Track":
        """Inverse of to_dict.

        Raises:
            KeyError, ValueError, TypeError: If the record is malformed
        """
        return cls(
            id=int(data["id"]),
            title=str(data["title"]),
            artist=str(data["artist"]),
            duration_ms=int(data.get("duration_ms", 0)),
            origin_uri=str(data["origin_uri"]),
            provider=ProviderTag(data["provider"]),
        )


@dataclass(frozen=True)
class CatalogEndpoint:
    """One configured host for an online catalog."""

    display_name: str
    base_url: str
    provider: ProviderTag

    def __post_init__(self) -> None:
        if not self.provider.is_online:
            raise ValueError("Catalog endpoints must belong to an online provider")


FAVORITES_PLAYLIST_ID = "favorites"
FAVORITES_PLAYLIST_NAME = "Favorites"


@dataclass(frozen=True)
class PlaylistEntry:
    """A user playlist: ordered, duplicate-free track keys."""

    id: str
    name: str
    track_keys: tuple[TrackKey, ...] = field(default_factory=tuple)

    @property
    def is_favorites(self) -> bool:
        return self.id == FAVORITES_PLAYLIST_ID

    def contains(self, key: TrackKey) -> bool:
        return key in self.track_keys

    def with_track(self, key: TrackKey) -> "PlaylistEntry":
        if key in self.track_keys:
            return self
        return PlaylistEntry(self.id, self.name, self.track_keys + (key,))

    def without_track(self, key: TrackKey) -> "PlaylistEntry":
        return PlaylistEntry(
            self.id, self.name, tuple(k for k in self.track_keys if k != key)
        )


class LocalMedia(NamedTuple):
    """One row of the local media catalog."""

    id: int
    title: str
    artist: str
    duration_ms: int
    uri: str

    def to_track(self) -> Track:
        return Track(
            id=self.id,
            title=self.title,
            artist=self.artist,
            duration_ms=self.duration_ms,
            origin_uri=self.uri,
            provider=ProviderTag.LOCAL,
        )


def format_duration(duration_ms: Optional[int]) -> str:
    """Format milliseconds as M:SS, or --:-- when unknown."""
    if not duration_ms or duration_ms <= 0:
        return "--:--"
    seconds = duration_ms // 1000
    return f"{seconds // 60}:{seconds % 60:02d}"
