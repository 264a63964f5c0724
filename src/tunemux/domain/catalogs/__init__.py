"""Catalog domain - configured endpoints for each online provider."""

from .registry import (
    BUILTIN_ENDPOINTS,
    CatalogRegistry,
    decode_custom_endpoints,
    encode_custom_endpoints,
    normalize_base_url,
)

__all__ = [
    "BUILTIN_ENDPOINTS",
    "CatalogRegistry",
    "decode_custom_endpoints",
    "encode_custom_endpoints",
    "normalize_base_url",
]
