"""
NetEase Cloud Music adapter.

Talks to a NetEase API proxy (the selected endpoint). Songs have stable
numeric ids; results nest under ``result.songs``. Streams are looked up by id
on the same proxy, with the public outer link as the fallback.
"""

from loguru import logger

from tunemux.domain.library.models import ProviderTag, Track

from .base import (
    MalformedResponse,
    ProviderAdapter,
    int_field,
    parse_json,
    str_field,
)

OUTER_LINK_TEMPLATE = "https://music.163.com/song/media/outer/url?id={id}.mp3"
PAGE_SIZE = 20


def outer_link(track_id: int) -> str:
    return OUTER_LINK_TEMPLATE.format(id=track_id)


def _first_artist(item: dict) -> str:
    artists = item.get("ar")
    if isinstance(artists, list) and artists and isinstance(artists[0], dict):
        return str_field(artists[0], "name")
    return "Unknown"


class NeteaseAdapter(ProviderAdapter):
    provider = ProviderTag.NETEASE

    def fetch_tracks(self, query: str) -> list[Track]:
        body = self.fetch(
            f"{self.base_url()}/cloudsearch",
            params={"keywords": query, "limit": PAGE_SIZE, "type": 1},
        )
        payload = parse_json(body)
        if not isinstance(payload, dict):
            raise MalformedResponse("Expected a JSON object")

        result = payload.get("result")
        songs = result.get("songs") if isinstance(result, dict) else None
        if not isinstance(songs, list):
            # No matches comes back as an empty result object
            return []

        tracks = []
        for item in songs:
            if not isinstance(item, dict):
                continue
            song_id = int_field(item, "id", default=-1)
            if song_id < 0:
                continue
            tracks.append(
                self.make_track(
                    title=str_field(item, "name"),
                    artist=_first_artist(item),
                    origin_uri=outer_link(song_id),
                    duration_ms=int_field(item, "dt"),
                    track_id=song_id,
                )
            )
        return tracks

    def resolve_stream(self, track: Track) -> str:
        body = self.fetch(
            f"{self.base_url()}/song/url/v1",
            params={"id": track.id, "level": "standard"},
        )
        payload = parse_json(body)
        data = payload.get("data") if isinstance(payload, dict) else None
        if isinstance(data, list) and data and isinstance(data[0], dict):
            url = str_field(data[0], "url", default="")
            if url and url != "null":
                return url

        logger.debug(f"netease: no stream url for {track.id}, using outer link")
        return outer_link(track.id)
