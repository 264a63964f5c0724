"""
Provider adapter interface for online music catalogs.

Each catalog gets one adapter subclass, permanently bound to its provider.
Subclasses implement two strategies:

- ``fetch_tracks``: query the catalog and normalize its bespoke response
  shape into Track records. May raise ProviderError.
- ``resolve_stream``: turn a Track's stored reference into a playable URL
  using the catalog's own anti-hotlinking protocol. May raise ProviderError.

The public ``search`` wrapper is fail-soft: callers always get a list, empty
when the catalog is down or returns garbage. Partial outages are routine, so
they are logged and never surfaced individually.
"""

import json
import secrets
from abc import ABC, abstractmethod
from typing import Any, Callable, Mapping, Optional

from loguru import logger

from tunemux.core.http import HttpClient, HttpRequestError
from tunemux.domain.catalogs.registry import CatalogRegistry
from tunemux.domain.library.models import ProviderTag, Track

UNKNOWN = "Unknown"


class ProviderError(Exception):
    """Base class for catalog failures handled at adapter boundaries."""


class ProviderUnavailable(ProviderError):
    """Network error, timeout, or non-2xx response from a catalog."""


class MalformedResponse(ProviderError):
    """Catalog response could not be parsed or had the wrong shape."""


class ResolutionFailed(ProviderError):
    """A catalog could not produce a playable URL for a track."""


def synthesize_id() -> int:
    """Random process-local 63-bit id for catalogs without numeric ids.

    Not stable across sessions; never use for dedup or membership.
    """
    return secrets.randbits(63)


def parse_json(body: str) -> Any:
    """Decode a JSON body.

    Raises:
        MalformedResponse: If the body is not valid JSON
    """
    try:
        return json.loads(body)
    except (json.JSONDecodeError, TypeError) as e:
        raise MalformedResponse(f"Invalid JSON: {e}") from e


def get_path(data: Any, *path: str, expected: type = object) -> Any:
    """Walk nested dicts, checking the type of the final value.

    Raises:
        MalformedResponse: If a step is missing or the leaf has the wrong type
    """
    current = data
    for step in path:
        if not isinstance(current, dict) or step not in current:
            raise MalformedResponse(f"Missing field '{'.'.join(path)}'")
        current = current[step]
    if not isinstance(current, expected):
        raise MalformedResponse(
            f"Field '{'.'.join(path)}' is {type(current).__name__}, "
            f"expected {expected.__name__}"
        )
    return current


def str_field(record: Mapping[str, Any], name: str, default: str = UNKNOWN) -> str:
    """String field with a safe default for missing, null, or blank values."""
    value = record.get(name)
    if value is None or isinstance(value, (dict, list)):
        return default
    text = str(value).strip()
    return text or default


def int_field(record: Mapping[str, Any], name: str, default: int = 0) -> int:
    """Integer field with a safe default for missing or non-numeric values."""
    value = record.get(name)
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return default


class ProviderAdapter(ABC):
    """One online catalog's search and stream-resolution strategies."""

    provider: ProviderTag

    def __init__(
        self,
        catalogs: CatalogRegistry,
        http: HttpClient,
        id_factory: Callable[[], int] = synthesize_id,
    ):
        self._catalogs = catalogs
        self._http = http
        self._new_id = id_factory

    @property
    def name(self) -> str:
        return self.provider.value.lower()

    def base_url(self) -> str:
        """Base URL of the currently selected endpoint.

        Raises:
            ProviderUnavailable: If no endpoint is configured for this provider
        """
        endpoint = self._catalogs.selected(self.provider)
        if endpoint is None:
            raise ProviderUnavailable(f"No {self.provider.value} endpoint configured")
        return endpoint.base_url.rstrip("/")

    def fetch(self, url: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """GET through the shared client.

        Raises:
            ProviderUnavailable: On any HTTP failure
        """
        try:
            return self._http.get(url, params=params)
        except HttpRequestError as e:
            raise ProviderUnavailable(str(e)) from e

    def make_track(
        self,
        title: str,
        artist: str,
        origin_uri: str,
        duration_ms: int = 0,
        track_id: Optional[int] = None,
    ) -> Track:
        return Track(
            id=track_id if track_id is not None else self._new_id(),
            title=title,
            artist=artist,
            duration_ms=max(0, duration_ms),
            origin_uri=origin_uri,
            provider=self.provider,
        )

    @abstractmethod
    def fetch_tracks(self, query: str) -> list[Track]:
        """Query the catalog and normalize its response.

        Raises:
            ProviderError: On network or shape failures of the whole response
        """

    @abstractmethod
    def resolve_stream(self, track: Track) -> str:
        """Produce a playable URL for one of this catalog's tracks.

        Raises:
            ProviderError: If resolution fails
        """

    def search(self, query: str) -> list[Track]:
        """Fail-soft search: never raises, empty list on any failure."""
        try:
            tracks = self.fetch_tracks(query)
        except ProviderUnavailable as e:
            logger.info(f"{self.name}: catalog unavailable: {e}")
            return []
        except ProviderError as e:
            logger.warning(f"{self.name}: malformed search response: {e}")
            return []
        except Exception:
            logger.exception(f"{self.name}: unexpected error searching {query!r}")
            return []

        logger.debug(f"{self.name}: {len(tracks)} results for {query!r}")
        return tracks
