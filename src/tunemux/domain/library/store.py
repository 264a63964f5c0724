"""
Library store: favorites, playlists, hidden tracks, and saved online tracks.

Pure data persisted through the key-value settings store. Every mutation is
a synchronous read-modify-write from the owning thread, so there is no
writer coordination. Anything unreadable in storage degrades to defaults.
"""

import json
import uuid
from typing import Iterable, Optional, Sequence

from loguru import logger

from tunemux.core.settings import SettingsStore

from .models import (
    FAVORITES_PLAYLIST_ID,
    FAVORITES_PLAYLIST_NAME,
    PlaylistEntry,
    ProviderTag,
    Track,
    TrackKey,
)

PLAYLISTS_KEY = "user_playlists"
HIDDEN_KEY = "hidden_songs"
SAVED_TRACKS_KEY = "online_songs_store"


def _favorites() -> PlaylistEntry:
    return PlaylistEntry(FAVORITES_PLAYLIST_ID, FAVORITES_PLAYLIST_NAME)


def encode_playlists(playlists: Iterable[PlaylistEntry]) -> str:
    return json.dumps(
        [
            {
                "id": p.id,
                "name": p.name,
                "tracks": [
                    {"provider": k.provider.value, "uri": k.origin_uri}
                    for k in p.track_keys
                ],
            }
            for p in playlists
        ]
    )


def decode_playlists(raw: Optional[str]) -> list[PlaylistEntry]:
    """Parse stored playlists, always returning favorites first.

    Malformed playlists are dropped individually; malformed JSON drops all.
    """
    playlists: list[PlaylistEntry] = []
    if raw:
        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValueError("playlists must be a list")
        except ValueError as e:
            logger.warning(f"Corrupt playlist data, starting empty: {e}")
            data = []

        for item in data:
            try:
                keys: list[TrackKey] = []
                for entry in item.get("tracks", []):
                    key = TrackKey(ProviderTag(entry["provider"]), str(entry["uri"]))
                    if key not in keys:
                        keys.append(key)
                playlists.append(
                    PlaylistEntry(str(item["id"]), str(item["name"]), tuple(keys))
                )
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed playlist {item!r}: {e}")

    if not any(p.is_favorites for p in playlists):
        playlists.insert(0, _favorites())
    return playlists


class LibraryStore:
    """Owns favorites, playlists, hidden ids, and saved online tracks."""

    def __init__(self, settings: SettingsStore):
        self._settings = settings
        self._playlists = decode_playlists(settings.get_string(PLAYLISTS_KEY))
        self._hidden = self._load_hidden()
        self._saved = self._load_saved_tracks()

    # -- loading -----------------------------------------------------------

    def _load_hidden(self) -> frozenset[int]:
        hidden: set[int] = set()
        for raw_id in self._settings.get_string_set(HIDDEN_KEY):
            try:
                hidden.add(int(raw_id))
            except ValueError:
                logger.warning(f"Ignoring invalid hidden track id {raw_id!r}")
        return frozenset(hidden)

    def _load_saved_tracks(self) -> list[Track]:
        raw = self._settings.get_string(SAVED_TRACKS_KEY)
        if not raw:
            return []
        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValueError("saved tracks must be a list")
        except ValueError as e:
            logger.warning(f"Corrupt saved track data, starting empty: {e}")
            return []

        tracks: list[Track] = []
        for item in data:
            try:
                tracks.append(Track.from_dict(item))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed saved track {item!r}: {e}")
        return tracks

    # -- persistence -------------------------------------------------------

    def _save_playlists(self) -> None:
        self._settings.put_string(PLAYLISTS_KEY, encode_playlists(self._playlists))

    def _save_hidden(self) -> None:
        self._settings.put_string_set(HIDDEN_KEY, {str(i) for i in self._hidden})

    def _save_tracks(self) -> None:
        self._settings.put_string(
            SAVED_TRACKS_KEY, json.dumps([t.to_dict() for t in self._saved])
        )

    # -- snapshots ---------------------------------------------------------

    @property
    def playlists(self) -> tuple[PlaylistEntry, ...]:
        return tuple(self._playlists)

    @property
    def hidden_ids(self) -> frozenset[int]:
        return self._hidden

    @property
    def saved_tracks(self) -> tuple[Track, ...]:
        return tuple(self._saved)

    @property
    def favorites(self) -> PlaylistEntry:
        return self.get_playlist(FAVORITES_PLAYLIST_ID)

    def get_playlist(self, playlist_id: str) -> PlaylistEntry:
        """Look up a playlist by id.

        Raises:
            KeyError: If no playlist has this id
        """
        for playlist in self._playlists:
            if playlist.id == playlist_id:
                return playlist
        raise KeyError(f"Playlist not found: {playlist_id}")

    def _replace_playlist(self, updated: PlaylistEntry) -> None:
        self._playlists = [
            updated if p.id == updated.id else p for p in self._playlists
        ]
        self._save_playlists()

    # -- playlists ---------------------------------------------------------

    def create_playlist(self, name: str) -> PlaylistEntry:
        """Create an empty playlist with a fresh uuid.

        Raises:
            ValueError: If the name is blank
        """
        name = name.strip()
        if not name:
            raise ValueError("Playlist name cannot be empty")
        playlist = PlaylistEntry(str(uuid.uuid4()), name)
        self._playlists.append(playlist)
        self._save_playlists()
        logger.info(f"Created playlist '{name}' ({playlist.id})")
        return playlist

    def rename_playlist(self, playlist_id: str, name: str) -> PlaylistEntry:
        name = name.strip()
        if not name:
            raise ValueError("Playlist name cannot be empty")
        playlist = self.get_playlist(playlist_id)
        updated = PlaylistEntry(playlist.id, name, playlist.track_keys)
        self._replace_playlist(updated)
        return updated

    def delete_playlist(self, playlist_id: str) -> None:
        """Delete a playlist.

        Raises:
            ValueError: For the favorites playlist, which always exists
            KeyError: If no playlist has this id
        """
        if playlist_id == FAVORITES_PLAYLIST_ID:
            raise ValueError("The favorites playlist cannot be deleted")
        self.get_playlist(playlist_id)
        self._playlists = [p for p in self._playlists if p.id != playlist_id]
        self._save_playlists()
        self._prune_saved_tracks()
        logger.info(f"Deleted playlist {playlist_id}")

    def add_to_playlist(self, track: Track, playlist_id: str) -> bool:
        """Append a track to a playlist, saving online tracks for later display.

        Returns:
            True if the track was added, False if it was already a member
        """
        playlist = self.get_playlist(playlist_id)
        if playlist.contains(track.key):
            return False

        if not track.is_local and all(t.key != track.key for t in self._saved):
            self._saved.append(track)
            self._save_tracks()

        self._replace_playlist(playlist.with_track(track.key))
        return True

    def remove_from_playlist(self, key: TrackKey, playlist_id: str) -> bool:
        playlist = self.get_playlist(playlist_id)
        if not playlist.contains(key):
            return False
        self._replace_playlist(playlist.without_track(key))
        self._prune_saved_tracks()
        return True

    def _prune_saved_tracks(self) -> None:
        referenced = {k for p in self._playlists for k in p.track_keys}
        kept = [t for t in self._saved if t.key in referenced]
        if len(kept) != len(self._saved):
            self._saved = kept
            self._save_tracks()

    def tracks_in_playlist(
        self, playlist_id: str, local_tracks: Sequence[Track]
    ) -> tuple[Track, ...]:
        """Resolve a playlist's keys against local and saved tracks.

        Keys that match nothing (a local file that disappeared) are skipped;
        hidden tracks stay, since hiding only affects the local browse view.
        """
        playlist = self.get_playlist(playlist_id)
        by_key = {t.key: t for t in self._saved}
        by_key.update((t.key, t) for t in local_tracks)
        return tuple(by_key[k] for k in playlist.track_keys if k in by_key)

    # -- favorites ---------------------------------------------------------

    def is_favorite(self, track: Track) -> bool:
        return self.favorites.contains(track.key)

    def toggle_favorite(self, track: Track) -> bool:
        """Flip favorite membership.

        Returns:
            True if the track is now a favorite
        """
        if self.is_favorite(track):
            self.remove_from_playlist(track.key, FAVORITES_PLAYLIST_ID)
            return False
        self.add_to_playlist(track, FAVORITES_PLAYLIST_ID)
        return True

    # -- hidden ------------------------------------------------------------

    def hide(self, track_id: int) -> bool:
        if track_id in self._hidden:
            return False
        self._hidden = self._hidden | {track_id}
        self._save_hidden()
        return True

    def unhide(self, track_id: int) -> bool:
        if track_id not in self._hidden:
            return False
        self._hidden = self._hidden - {track_id}
        self._save_hidden()
        return True
