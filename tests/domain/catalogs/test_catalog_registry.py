"""Tests for the catalog endpoint registry."""

import pytest

from tunemux.core.settings import MemorySettingsStore
from tunemux.domain.catalogs.registry import (
    BUILTIN_ENDPOINTS,
    CUSTOM_SOURCES_KEY,
    CatalogRegistry,
    normalize_base_url,
)
from tunemux.domain.library.models import PROVIDER_KINDS, ProviderTag


class TestDefaults:
    """Tests for a registry with nothing persisted."""

    def test_every_provider_has_a_builtin_selected(self, catalogs) -> None:
        """Test each online catalog starts on its built-in endpoint."""
        for provider in PROVIDER_KINDS:
            assert catalogs.selected(provider) in BUILTIN_ENDPOINTS

    def test_builtins_are_not_persisted(self, settings, catalogs) -> None:
        assert settings.get_string(CUSTOM_SOURCES_KEY) is None


class TestAddRemoveSelect:
    """Tests for user endpoint management."""

    def test_add_and_select_persist(self, settings, catalogs) -> None:
        """Test custom endpoints and selections survive a reload."""
        mirror = catalogs.add_endpoint("Mirror", "https://mirror.example/ ", ProviderTag.NETEASE)
        catalogs.select(mirror)

        reloaded = CatalogRegistry(settings)

        assert mirror in reloaded.endpoints
        assert reloaded.selected(ProviderTag.NETEASE) == mirror
        assert mirror.base_url == "https://mirror.example"

    def test_duplicate_url_rejected(self, catalogs) -> None:
        """Test one provider cannot list the same host twice."""
        catalogs.add_endpoint("A", "http://a.example", ProviderTag.KUWO)
        with pytest.raises(ValueError, match="already has"):
            catalogs.add_endpoint("B", "http://a.example/", ProviderTag.KUWO)

    def test_same_url_allowed_for_other_provider(self, catalogs) -> None:
        catalogs.add_endpoint("A", "http://a.example", ProviderTag.KUWO)
        catalogs.add_endpoint("A", "http://a.example", ProviderTag.KUGOU)

    @pytest.mark.parametrize("url", ["ftp://x", "mirror.example", "https://", ""])
    def test_bad_url_rejected(self, catalogs, url) -> None:
        with pytest.raises(ValueError):
            catalogs.add_endpoint("Bad", url, ProviderTag.BODIAN)

    def test_blank_name_rejected(self, catalogs) -> None:
        with pytest.raises(ValueError):
            catalogs.add_endpoint("  ", "http://a.example", ProviderTag.KUWO)

    def test_builtin_cannot_be_removed(self, catalogs) -> None:
        """Test built-in endpoints are permanent."""
        with pytest.raises(ValueError, match="Built-in"):
            catalogs.remove_endpoint(BUILTIN_ENDPOINTS[0])

    def test_removing_selected_reselects_first(self, settings, catalogs) -> None:
        """Test removing the active endpoint falls back to the provider's first."""
        mirror = catalogs.add_endpoint("Mirror", "http://m.example", ProviderTag.KUWO)
        catalogs.select(mirror)

        catalogs.remove_endpoint(mirror)

        builtin = catalogs.endpoints_for(ProviderTag.KUWO)[0]
        assert catalogs.selected(ProviderTag.KUWO) == builtin
        assert CatalogRegistry(settings).selected(ProviderTag.KUWO) == builtin
        assert mirror not in CatalogRegistry(settings).endpoints

    def test_selecting_unknown_endpoint_raises(self, catalogs) -> None:
        other = CatalogRegistry(MemorySettingsStore()).add_endpoint(
            "X", "http://x.example", ProviderTag.KUWO
        )
        with pytest.raises(ValueError, match="Unknown"):
            catalogs.select(other)


class TestPersistedData:
    """Tests for reading what earlier runs stored."""

    def test_stale_selection_falls_back_to_first(self) -> None:
        """Test a saved URL that no longer exists selects the first endpoint."""
        settings = MemorySettingsStore({"selected_source_KUWO": "http://gone.example"})
        registry = CatalogRegistry(settings)
        assert registry.selected(ProviderTag.KUWO) == registry.endpoints_for(ProviderTag.KUWO)[0]

    def test_malformed_entries_skipped(self) -> None:
        """Test bad rows are dropped and good rows kept."""
        raw = (
            '[{"name": "Good", "url": "http://good.example", "platform": "BODIAN"},'
            ' {"name": "NoUrl", "platform": "BODIAN"},'
            ' {"name": "Bad", "url": "http://x", "platform": "SPOTIFY"}]'
        )
        registry = CatalogRegistry(MemorySettingsStore({CUSTOM_SOURCES_KEY: raw}))
        names = [e.display_name for e in registry.endpoints_for(ProviderTag.BODIAN)]
        assert names == ["Official", "Good"]

    def test_corrupt_json_uses_builtins(self) -> None:
        registry = CatalogRegistry(MemorySettingsStore({CUSTOM_SOURCES_KEY: "{"}))
        assert registry.endpoints == BUILTIN_ENDPOINTS


def test_normalize_base_url_strips_trailing_slashes() -> None:
    assert normalize_base_url("  https://a.example/// ") == "https://a.example"
