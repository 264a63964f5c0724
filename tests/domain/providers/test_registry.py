"""Tests for the adapter registry and the fail-soft search wrapper."""

import pytest

from tunemux.domain.library.models import PROVIDER_KINDS, ProviderTag
from tunemux.domain.providers import create_adapters, get_provider, list_providers
from tunemux.domain.providers.base import (
    MalformedResponse,
    ProviderAdapter,
    get_path,
    int_field,
    str_field,
)


class ExplodingAdapter(ProviderAdapter):
    provider = ProviderTag.BODIAN

    def fetch_tracks(self, query):
        raise RuntimeError("bug")

    def resolve_stream(self, track):
        return track.origin_uri


class TestRegistry:
    """Tests for provider lookup."""

    def test_all_catalogs_registered_in_fan_out_order(self) -> None:
        """Test list_providers follows the fixed dispatch order."""
        assert list_providers() == list(PROVIDER_KINDS)

    def test_create_adapters_one_per_provider(self, catalogs, fake_http) -> None:
        """Test each adapter is bound to its own provider."""
        adapters = create_adapters(catalogs, fake_http)
        assert [a.provider for a in adapters] == list(PROVIDER_KINDS)

    def test_unknown_provider_raises(self) -> None:
        """Test LOCAL has no adapter."""
        with pytest.raises(ValueError, match="Unknown provider"):
            get_provider(ProviderTag.LOCAL)


class TestFailSoftSearch:
    """Tests for ProviderAdapter.search isolation."""

    def test_unexpected_exception_is_swallowed(self, catalogs, fake_http) -> None:
        """Test even programming errors in one adapter yield an empty list."""
        assert ExplodingAdapter(catalogs, fake_http).search("x") == []


class TestFieldHelpers:
    """Tests for response parsing helpers."""

    def test_get_path_checks_type(self) -> None:
        """Test missing steps and wrong leaf types raise MalformedResponse."""
        assert get_path({"a": {"b": [1]}}, "a", "b", expected=list) == [1]
        with pytest.raises(MalformedResponse):
            get_path({"a": {}}, "a", "b")
        with pytest.raises(MalformedResponse):
            get_path({"a": {"b": "x"}}, "a", "b", expected=list)

    def test_str_field_defaults(self) -> None:
        """Test null, blank, and nested values fall back to Unknown."""
        assert str_field({"a": None}, "a") == "Unknown"
        assert str_field({"a": "  "}, "a") == "Unknown"
        assert str_field({"a": {"x": 1}}, "a") == "Unknown"
        assert str_field({"a": 5}, "a") == "5"

    def test_int_field_coerces(self) -> None:
        """Test numeric strings parse and junk falls back."""
        assert int_field({"a": "215"}, "a") == 215
        assert int_field({"a": "2.5"}, "a") == 2
        assert int_field({"a": "x"}, "a") == 0
        assert int_field({"a": True}, "a") == 0
