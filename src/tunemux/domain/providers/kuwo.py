"""
Kuwo catalog adapter.

Search returns a JavaScript object literal wrapped in ``('...')`` with
single-quoted strings, so it is normalized before JSON parsing. Streams come
from an anti-leech endpoint that swaps a music rid for a short-lived signed
URL.
"""

from urllib.parse import parse_qs, urlsplit

from loguru import logger

from tunemux.domain.library.models import ProviderTag, Track

from .base import (
    ProviderAdapter,
    ResolutionFailed,
    get_path,
    int_field,
    parse_json,
    str_field,
)

# The default endpoint is the anti-leech host, which does not serve search
SEARCH_HOST = "http://search.kuwo.cn"
ANTI_LEECH_URL = "http://antiserver.kuwo.cn/anti.s"
OUTER_LINK_TEMPLATE = (
    "https://antiserver.kuwo.cn/anti.s?format=mp3&rid=MUSIC_{rid}"
    "&type=convert_url&response=res&cp=0"
)
RID_PREFIX = "MUSIC_"
PAGE_SIZE = 15


def sanitize_js_literal(body: str) -> str:
    """Turn Kuwo's ``('{'abslist':[...]}')`` payload into parseable JSON."""
    text = body.strip()
    if text.startswith("('"):
        text = text[2:]
    if text.endswith("')"):
        text = text[:-2]
    return text.replace("'", '"')


def rid_from_origin(origin_uri: str) -> str:
    """Extract the bare rid from a stored outer-link reference.

    Raises:
        ResolutionFailed: If the reference carries no rid
    """
    values = parse_qs(urlsplit(origin_uri).query).get("rid")
    if not values or not values[0]:
        raise ResolutionFailed(f"No rid in {origin_uri}")
    rid = values[0]
    return rid[len(RID_PREFIX):] if rid.startswith(RID_PREFIX) else rid


class KuwoAdapter(ProviderAdapter):
    provider = ProviderTag.KUWO

    def search_host(self) -> str:
        base = self.base_url()
        if "kuwo.cn" in base:
            return SEARCH_HOST
        return base

    def fetch_tracks(self, query: str) -> list[Track]:
        body = self.fetch(
            f"{self.search_host()}/r.s",
            params={
                "all": query,
                "ft": "music",
                "itemset": "web_2013",
                "client": "kt",
                "cluster": 0,
                "pn": 0,
                "rn": PAGE_SIZE,
                "rformat": "json",
                "encoding": "utf8",
            },
        )
        abslist = get_path(parse_json(sanitize_js_literal(body)), "abslist", expected=list)

        tracks = []
        for item in abslist:
            if not isinstance(item, dict):
                continue
            rid = str_field(item, "MUSICRID", default="")
            if rid.startswith(RID_PREFIX):
                rid = rid[len(RID_PREFIX):]
            if not rid:
                continue
            track_id = int(rid) if rid.isdigit() else None
            tracks.append(
                self.make_track(
                    title=str_field(item, "SONGNAME"),
                    artist=str_field(item, "ARTIST"),
                    origin_uri=OUTER_LINK_TEMPLATE.format(rid=rid),
                    duration_ms=int_field(item, "DURATION") * 1000,
                    track_id=track_id,
                )
            )
        return tracks

    def resolve_stream(self, track: Track) -> str:
        rid = rid_from_origin(track.origin_uri)
        body = self.fetch(
            ANTI_LEECH_URL,
            params={
                "type": "convert_url",
                "rid": f"{RID_PREFIX}{rid}",
                "format": "mp3",
                "response": "url",
            },
        ).strip()
        if body.startswith("http"):
            return body

        logger.debug(f"kuwo: anti-leech returned {body[:80]!r}, using outer link")
        return OUTER_LINK_TEMPLATE.format(rid=rid)

