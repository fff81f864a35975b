"""Tests for the persisted addon registry."""

from __future__ import annotations

import json
from dataclasses import replace
from unittest.mock import AsyncMock

import httpx
import pytest

from aggregarr.domain.entities.addon import AddonFlags
from aggregarr.domain.entities.errors import (
    AddonAlreadyInstalled,
    AddonNetworkError,
    AddonNotFound,
)
from aggregarr.infrastructure.addons.client import HttpxAddonClient
from aggregarr.infrastructure.addons.registry import AddonRegistry


@pytest.fixture()
def addon_client(make_source) -> AsyncMock:
    sources = {
        s.manifest_url: s for s in (make_source("alpha"), make_source("beta"))
    }
    client = AsyncMock()
    client.fetch_manifest = AsyncMock(side_effect=lambda url: sources[url])
    client.sources = sources
    return client


@pytest.fixture()
def registry(addon_client, state_store) -> AddonRegistry:
    return AddonRegistry(client=addon_client, state=state_store)


_ALPHA = "https://alpha.example.com/manifest.json"
_BETA = "https://beta.example.com/manifest.json"


class TestInstall:
    async def test_install_keeps_order_and_enables_flags(self, registry) -> None:
        await registry.install(_BETA)
        installed = await registry.install(_ALPHA)

        assert [s.id for s in registry.list_sources()] == ["beta", "alpha"]
        assert installed.flags == AddonFlags()
        assert installed.installed_at is not None

    async def test_stremio_link_normalized(self, registry, addon_client) -> None:
        await registry.install("stremio://alpha.example.com/manifest.json")

        addon_client.fetch_manifest.assert_awaited_once_with(_ALPHA)
        assert registry.get("alpha").manifest_url == _ALPHA

    async def test_duplicate_rejected(self, registry) -> None:
        await registry.install(_ALPHA)

        with pytest.raises(AddonAlreadyInstalled):
            await registry.install(_ALPHA)
        assert len(registry.list_sources()) == 1

    async def test_fetch_failure_installs_nothing(
        self, registry, addon_client
    ) -> None:
        addon_client.fetch_manifest.side_effect = AddonNetworkError("HTTP 404")

        with pytest.raises(AddonNetworkError):
            await registry.install(_ALPHA)
        assert registry.list_sources() == []

    async def test_malformed_url_classified(self, state_store) -> None:
        async with httpx.AsyncClient() as http_client:
            registry = AddonRegistry(
                client=HttpxAddonClient(http_client=http_client), state=state_store
            )

            with pytest.raises(AddonNetworkError):
                await registry.install("stremio://host.example.com:abc/manifest.json")

        assert registry.list_sources() == []


class TestPersistence:
    async def test_reload_restores_sources(
        self, registry, addon_client, state_store
    ) -> None:
        await registry.install(_ALPHA)
        await registry.install(_BETA)
        await registry.toggle_flag("alpha", "use_in_search")

        reloaded = AddonRegistry(client=addon_client, state=state_store)
        await reloaded.load()

        assert [s.id for s in reloaded.list_sources()] == ["alpha", "beta"]
        alpha = reloaded.get("alpha")
        assert alpha.flags.use_in_search is False
        assert alpha.installed_at == registry.get("alpha").installed_at
        assert alpha.catalogs == registry.get("alpha").catalogs

    async def test_v0_state_gains_subtitles_flag(
        self, addon_client, state_store, memory_cache
    ) -> None:
        memory_cache.data["state:addons"] = json.dumps(
            {
                "version": 0,
                "state": {
                    "addons": {
                        "old": {
                            "id": "old",
                            "manifest_url": "https://old.example.com/manifest.json",
                            "name": "Old",
                            "flags": {"use_on_home": False, "use_in_search": True},
                        }
                    }
                },
            }
        )
        registry = AddonRegistry(client=addon_client, state=state_store)

        await registry.load()

        old = registry.get("old")
        assert old.flags == AddonFlags(
            use_on_home=False, use_in_search=True, use_for_subtitles=True
        )
        stored = json.loads(memory_cache.data["state:addons"])
        assert stored["version"] == 1

    async def test_corrupt_entry_skipped(
        self, addon_client, state_store, memory_cache
    ) -> None:
        memory_cache.data["state:addons"] = json.dumps(
            {
                "version": 1,
                "state": {
                    "addons": {
                        "bad": {"name": "no id"},
                        "ok": {
                            "id": "ok",
                            "manifest_url": "https://ok.example.com/manifest.json",
                        },
                    }
                },
            }
        )
        registry = AddonRegistry(client=addon_client, state=state_store)

        await registry.load()

        assert [s.id for s in registry.list_sources()] == ["ok"]


class TestMutations:
    async def test_remove(self, registry) -> None:
        await registry.install(_ALPHA)

        await registry.remove("alpha")

        assert not registry.has_addon("alpha")
        with pytest.raises(AddonNotFound):
            await registry.remove("alpha")

    async def test_toggle_flag(self, registry) -> None:
        await registry.install(_ALPHA)

        toggled = await registry.toggle_flag("alpha", "use_for_subtitles")

        assert toggled.flags.use_for_subtitles is False
        assert registry.get("alpha").flags.use_for_subtitles is False

    async def test_update_keeps_flags_and_install_time(
        self, registry, addon_client
    ) -> None:
        installed = await registry.install(_ALPHA)
        await registry.toggle_flag("alpha", "use_on_home")
        addon_client.sources[_ALPHA] = replace(
            addon_client.sources[_ALPHA], version="2.0.0"
        )

        updated = await registry.update("alpha")

        assert updated.version == "2.0.0"
        assert updated.flags.use_on_home is False
        assert updated.installed_at == installed.installed_at

    async def test_refresh_all_isolates_failures(
        self, registry, addon_client
    ) -> None:
        await registry.install(_ALPHA)
        await registry.install(_BETA)
        sources = addon_client.sources

        def fetch(url: str):
            if url == _BETA:
                raise AddonNetworkError("HTTP 500", endpoint=url)
            return replace(sources[url], version="9.9.9")

        addon_client.fetch_manifest.side_effect = fetch

        outcomes = await registry.refresh_all()

        assert outcomes == {"alpha": True, "beta": False}
        assert registry.get("alpha").version == "9.9.9"
        assert registry.get("beta").version == "1.0.0"

    async def test_refresh_all_fetches_on_every_call(
        self, registry, addon_client
    ) -> None:
        await registry.install(_ALPHA)
        addon_client.fetch_manifest.reset_mock()

        await registry.refresh_all()
        await registry.refresh_all()

        assert addon_client.fetch_manifest.await_count == 2

    async def test_get_unknown(self, registry) -> None:
        with pytest.raises(AddonNotFound):
            registry.get("missing")
