"""
Bodian catalog adapter.

Results come as a flat ``data`` array whose ``url`` is already the final
stream, so resolution is the identity.
"""

from tunemux.domain.library.models import ProviderTag, Track

from .base import MalformedResponse, ProviderAdapter, parse_json, str_field


class BodianAdapter(ProviderAdapter):
    provider = ProviderTag.BODIAN

    def fetch_tracks(self, query: str) -> list[Track]:
        body = self.fetch(
            f"{self.base_url()}/search", params={"keywords": query, "type": "bodian"}
        )
        payload = parse_json(body)
        if not isinstance(payload, dict):
            raise MalformedResponse("Expected a JSON object")

        data = payload.get("data")
        if data is None:
            return []
        if not isinstance(data, list):
            raise MalformedResponse(f"'data' is {type(data).__name__}, expected list")

        tracks = []
        for item in data:
            if not isinstance(item, dict):
                continue
            url = str_field(item, "url", default="")
            if not url:
                continue
            tracks.append(
                self.make_track(
                    title=str_field(item, "title"),
                    artist=str_field(item, "artist"),
                    origin_uri=url,
                )
            )
        return tracks

    def resolve_stream(self, track: Track) -> str:
        return track.origin_uri
