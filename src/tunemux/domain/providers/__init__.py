"""
Online catalog adapter registry.

Provides access to the adapter class for every online provider. Adding a
catalog means adding an adapter module and registering it here.
"""

from typing import Callable, List, Optional

from tunemux.core.http import HttpClient
from tunemux.domain.catalogs.registry import CatalogRegistry
from tunemux.domain.library.models import PROVIDER_KINDS, ProviderTag

from .base import (
    MalformedResponse,
    ProviderAdapter,
    ProviderError,
    ProviderUnavailable,
    ResolutionFailed,
    synthesize_id,
)

PROVIDERS: dict[ProviderTag, type[ProviderAdapter]] = {}


def register_provider(adapter_class: type[ProviderAdapter]) -> None:
    """Register an adapter class under its provider tag."""
    PROVIDERS[adapter_class.provider] = adapter_class


def get_provider(provider: ProviderTag) -> type[ProviderAdapter]:
    """Get adapter class by provider.

    Raises:
        ValueError: If provider not registered
    """
    if provider not in PROVIDERS:
        available = ", ".join(p.value for p in list_providers()) or "none"
        raise ValueError(
            f"Unknown provider: '{provider.value}'. Available providers: {available}"
        )
    return PROVIDERS[provider]


def list_providers() -> List[ProviderTag]:
    """Registered providers in fan-out order."""
    return [p for p in PROVIDER_KINDS if p in PROVIDERS]


def create_adapters(
    catalogs: CatalogRegistry,
    http: HttpClient,
    id_factory: Optional[Callable[[], int]] = None,
) -> list[ProviderAdapter]:
    """Instantiate one adapter per registered provider, in fan-out order."""
    kwargs = {"id_factory": id_factory} if id_factory is not None else {}
    return [get_provider(p)(catalogs, http, **kwargs) for p in list_providers()]


from .bodian import BodianAdapter
from .kugou import KugouAdapter
from .kuwo import KuwoAdapter
from .netease import NeteaseAdapter

register_provider(KuwoAdapter)
register_provider(BodianAdapter)
register_provider(NeteaseAdapter)
register_provider(KugouAdapter)

__all__ = [
    "PROVIDERS",
    "BodianAdapter",
    "KugouAdapter",
    "KuwoAdapter",
    "MalformedResponse",
    "NeteaseAdapter",
    "ProviderAdapter",
    "ProviderError",
    "ProviderUnavailable",
    "ResolutionFailed",
    "create_adapters",
    "get_provider",
    "list_providers",
    "register_provider",
    "synthesize_id",
]
