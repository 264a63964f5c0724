"""
Catalog registry: configured endpoints per online provider.

Built-in endpoints always exist and are never written to storage; only the
user's additions are persisted, plus the selected endpoint URL per provider.
"""

import json
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from loguru import logger

from tunemux.core.settings import SettingsStore
from tunemux.domain.library.models import PROVIDER_KINDS, CatalogEndpoint, ProviderTag

CUSTOM_SOURCES_KEY = "custom_sources"
SELECTED_SOURCE_KEY_PREFIX = "selected_source_"

BUILTIN_ENDPOINTS: tuple[CatalogEndpoint, ...] = (
    CatalogEndpoint("Default (Qijieya)", "https://163api.qijieya.cn", ProviderTag.NETEASE),
    CatalogEndpoint("Official", "http://antiserver.kuwo.cn", ProviderTag.KUWO),
    CatalogEndpoint("Official", "https://findmusic-api.com", ProviderTag.BODIAN),
    CatalogEndpoint("Official", "http://mobilecdn.kugou.com", ProviderTag.KUGOU),
)


def _selected_key(provider: ProviderTag) -> str:
    return f"{SELECTED_SOURCE_KEY_PREFIX}{provider.value}"


def normalize_base_url(url: str) -> str:
    """Strip whitespace and trailing slashes from an endpoint URL.

    Raises:
        ValueError: If the URL is not http(s)
    """
    url = url.strip().rstrip("/")
    scheme, _, host = url.partition("://")
    if scheme not in ("http", "https") or not host:
        raise ValueError(f"Endpoint URL must start with http:// or https://: {url!r}")
    return url


def decode_custom_endpoints(raw: Optional[str]) -> list[CatalogEndpoint]:
    """Parse the stored custom endpoint list; bad entries are skipped."""
    if not raw:
        return []
    try:
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError("custom sources must be a list")
    except ValueError as e:
        logger.warning(f"Corrupt custom source data, using built-ins only: {e}")
        return []

    endpoints: list[CatalogEndpoint] = []
    for item in data:
        try:
            endpoints.append(
                CatalogEndpoint(
                    str(item["name"]),
                    normalize_base_url(str(item["url"])),
                    ProviderTag(item["platform"]),
                )
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed custom source {item!r}: {e}")
    return endpoints


def encode_custom_endpoints(endpoints: Iterable[CatalogEndpoint]) -> str:
    return json.dumps(
        [
            {"name": e.display_name, "url": e.base_url, "platform": e.provider.value}
            for e in endpoints
        ]
    )


class CatalogRegistry:
    """Endpoint list and per-provider selection, persisted in settings."""

    def __init__(self, settings: SettingsStore):
        self._settings = settings
        self._endpoints: list[CatalogEndpoint] = list(BUILTIN_ENDPOINTS)
        for endpoint in decode_custom_endpoints(settings.get_string(CUSTOM_SOURCES_KEY)):
            if endpoint not in self._endpoints:
                self._endpoints.append(endpoint)

        self._selected: dict[ProviderTag, CatalogEndpoint] = {}
        for provider in PROVIDER_KINDS:
            saved_url = settings.get_string(_selected_key(provider), "")
            candidates = self.endpoints_for(provider)
            match = next((e for e in candidates if e.base_url == saved_url), None)
            if match is None and candidates:
                match = candidates[0]
            if match is not None:
                self._selected[provider] = match

    @staticmethod
    def is_builtin(endpoint: CatalogEndpoint) -> bool:
        return endpoint in BUILTIN_ENDPOINTS

    @property
    def endpoints(self) -> tuple[CatalogEndpoint, ...]:
        return tuple(self._endpoints)

    @property
    def selections(self) -> Mapping[ProviderTag, CatalogEndpoint]:
        """Read-only copy of the per-provider selection."""
        return MappingProxyType(dict(self._selected))

    def endpoints_for(self, provider: ProviderTag) -> list[CatalogEndpoint]:
        return [e for e in self._endpoints if e.provider is provider]

    def selected(self, provider: ProviderTag) -> Optional[CatalogEndpoint]:
        return self._selected.get(provider)

    def select(self, endpoint: CatalogEndpoint) -> None:
        """Make endpoint the active one for its provider.

        Raises:
            ValueError: If the endpoint is not registered
        """
        if endpoint not in self._endpoints:
            raise ValueError(f"Unknown endpoint: {endpoint.base_url}")
        self._selected[endpoint.provider] = endpoint
        self._settings.put_string(_selected_key(endpoint.provider), endpoint.base_url)
        logger.info(f"Selected {endpoint.provider.value} endpoint {endpoint.base_url}")

    def add_endpoint(
        self, display_name: str, base_url: str, provider: ProviderTag
    ) -> CatalogEndpoint:
        """Register a user endpoint and persist the custom list.

        Raises:
            ValueError: On a blank name, bad URL, or duplicate
        """
        display_name = display_name.strip()
        if not display_name:
            raise ValueError("Endpoint name cannot be empty")
        endpoint = CatalogEndpoint(display_name, normalize_base_url(base_url), provider)
        if any(
            e.provider is provider and e.base_url == endpoint.base_url
            for e in self._endpoints
        ):
            raise ValueError(
                f"{provider.value} already has an endpoint at {endpoint.base_url}"
            )
        self._endpoints.append(endpoint)
        self._save_custom_endpoints()
        if provider not in self._selected:
            self.select(endpoint)
        return endpoint

    def remove_endpoint(self, endpoint: CatalogEndpoint) -> None:
        """Remove a user endpoint, reselecting the provider's first if needed.

        Raises:
            ValueError: For built-in or unknown endpoints
        """
        if self.is_builtin(endpoint):
            raise ValueError("Built-in endpoints cannot be removed")
        if endpoint not in self._endpoints:
            raise ValueError(f"Unknown endpoint: {endpoint.base_url}")

        self._endpoints.remove(endpoint)
        self._save_custom_endpoints()

        if self._selected.get(endpoint.provider) == endpoint:
            remaining = self.endpoints_for(endpoint.provider)
            if remaining:
                self.select(remaining[0])
            else:
                del self._selected[endpoint.provider]

    def _save_custom_endpoints(self) -> None:
        customs = [e for e in self._endpoints if not self.is_builtin(e)]
        self._settings.put_string(CUSTOM_SOURCES_KEY, encode_custom_endpoints(customs))
