"""
Kugou catalog adapter.

Search results nest under ``data.info`` and carry no numeric id, only a file
hash. The hash is kept in the fragment of the stored reference and traded
for a stream URL at play time.
"""

from urllib.parse import urlsplit

from tunemux.domain.library.models import ProviderTag, Track

from .base import (
    ProviderAdapter,
    ResolutionFailed,
    get_path,
    int_field,
    parse_json,
    str_field,
)

SONG_PAGE_TEMPLATE = "https://www.kugou.com/song/#hash={hash}"
PLAY_INFO_URL = "http://m.kugou.com/app/i/getSongInfo.php"
PAGE_SIZE = 20


def hash_from_origin(origin_uri: str) -> str:
    """Pull ``hash`` out of a ``...#hash=<value>`` reference.

    Raises:
        ResolutionFailed: If the fragment has no hash
    """
    fragment = urlsplit(origin_uri).fragment
    for part in fragment.split("&"):
        name, _, value = part.partition("=")
        if name == "hash" and value:
            return value
    raise ResolutionFailed(f"No hash in {origin_uri}")


class KugouAdapter(ProviderAdapter):
    provider = ProviderTag.KUGOU

    def fetch_tracks(self, query: str) -> list[Track]:
        body = self.fetch(
            f"{self.base_url()}/api/v3/search/song",
            params={"keyword": query, "page": 1, "pagesize": PAGE_SIZE},
        )
        info = get_path(parse_json(body), "data", "info", expected=list)

        tracks = []
        for item in info:
            if not isinstance(item, dict):
                continue
            file_hash = str_field(item, "hash", default="")
            if not file_hash:
                continue
            tracks.append(
                self.make_track(
                    title=str_field(item, "songname"),
                    artist=str_field(item, "singername"),
                    origin_uri=SONG_PAGE_TEMPLATE.format(hash=file_hash),
                    duration_ms=int_field(item, "duration") * 1000,
                )
            )
        return tracks

    def resolve_stream(self, track: Track) -> str:
        file_hash = hash_from_origin(track.origin_uri)
        body = self.fetch(PLAY_INFO_URL, params={"cmd": "playInfo", "hash": file_hash})
        data = parse_json(body)
        url = str_field(data, "url", default="") if isinstance(data, dict) else ""
        if not url:
            raise ResolutionFailed(f"kugou returned no url for hash {file_hash}")
        return url
