"""Installed addon sources, persisted in insertion order."""

from __future__ import annotations

import asyncio
from dataclasses import asdict, replace
from datetime import datetime, timezone
from typing import Any

import structlog

from aggregarr.domain.entities.addon import (
    AddonFlagName,
    AddonFlags,
    AddonResource,
    AddonSource,
    ManifestCatalog,
)
from aggregarr.domain.entities.errors import (
    AddonAlreadyInstalled,
    AddonError,
    AddonNotFound,
)
from aggregarr.domain.ports.addon_client import AddonClientPort
from aggregarr.infrastructure.addons.client import normalize_manifest_url
from aggregarr.infrastructure.persistence.migrations import (
    ADDONS_VERSION,
    migrate_addons,
)
from aggregarr.infrastructure.persistence.versioned_store import VersionedStateStore

log = structlog.get_logger(__name__)

_STORE_NAME = "addons"


def _tuple(value: Any) -> tuple[str, ...] | None:
    return None if value is None else tuple(value)


def _serialize_source(source: AddonSource) -> dict[str, Any]:
    d = asdict(source)
    d["installed_at"] = (
        source.installed_at.isoformat() if source.installed_at else None
    )
    return d


def _deserialize_source(d: dict[str, Any]) -> AddonSource | None:
    try:
        installed_at = d.get("installed_at")
        return AddonSource(
            id=d["id"],
            manifest_url=d["manifest_url"],
            name=d.get("name", d["id"]),
            version=d.get("version", ""),
            description=d.get("description", ""),
            declared_types=tuple(d.get("declared_types", ())),
            resources=tuple(
                AddonResource(
                    name=r["name"],
                    types=_tuple(r.get("types")),
                    id_prefixes=_tuple(r.get("id_prefixes")),
                )
                for r in d.get("resources", ())
            ),
            id_prefixes=tuple(d.get("id_prefixes", ())),
            catalogs=tuple(
                ManifestCatalog(
                    type=c["type"],
                    id=c["id"],
                    name=c.get("name", ""),
                    extra_names=tuple(c.get("extra_names", ())),
                    required_extra_names=tuple(c.get("required_extra_names", ())),
                )
                for c in d.get("catalogs", ())
            ),
            flags=AddonFlags(**d.get("flags", {})),
            installed_at=datetime.fromisoformat(installed_at) if installed_at else None,
        )
    except (KeyError, TypeError, ValueError) as e:
        log.error("addon_deserialize_error", addon_id=d.get("id"), error=str(e))
        return None


class AddonRegistry:
    """Ordered set of installed addons.

    Registry order is the order addons were installed; aggregation uses it
    for tie-breaking (first success, catalog row order).
    """

    def __init__(
        self, *, client: AddonClientPort, state: VersionedStateStore
    ) -> None:
        self._client = client
        self._state = state
        self._sources: dict[str, AddonSource] = {}

    async def load(self) -> None:
        data = await self._state.load(_STORE_NAME, ADDONS_VERSION, migrate_addons)
        self._sources = {}
        for raw in (data.get("addons") or {}).values():
            source = _deserialize_source(raw) if isinstance(raw, dict) else None
            if source is not None:
                self._sources[source.id] = source
        log.debug("addons_loaded", count=len(self._sources))

    async def _persist(self) -> None:
        await self._state.save(
            _STORE_NAME,
            ADDONS_VERSION,
            {
                "addons": {
                    addon_id: _serialize_source(source)
                    for addon_id, source in self._sources.items()
                }
            },
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_sources(self) -> list[AddonSource]:
        return list(self._sources.values())

    def get(self, addon_id: str) -> AddonSource:
        try:
            return self._sources[addon_id]
        except KeyError:
            raise AddonNotFound(f"Addon not found: {addon_id}") from None

    def has_addon(self, addon_id: str) -> bool:
        return addon_id in self._sources

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def install(self, manifest_url: str) -> AddonSource:
        """Fetch a manifest and install the addon it describes.

        Raises:
            AddonError: When the manifest cannot be fetched or decoded.
            AddonAlreadyInstalled: When an addon with the same id exists.
        """
        url = normalize_manifest_url(manifest_url)
        fetched = await self._client.fetch_manifest(url)
        if fetched.id in self._sources:
            raise AddonAlreadyInstalled(f"Addon already installed: {fetched.id}")

        source = replace(
            fetched,
            manifest_url=url,
            flags=AddonFlags(),
            installed_at=datetime.now(timezone.utc),
        )
        self._sources[source.id] = source
        await self._persist()
        log.info("addon_installed", addon_id=source.id, manifest_url=url)
        return source

    async def update(self, addon_id: str) -> AddonSource:
        """Re-fetch the manifest, keeping flags and install time."""
        existing = self.get(addon_id)
        fetched = await self._client.fetch_manifest(existing.manifest_url)
        updated = replace(
            fetched,
            id=existing.id,
            manifest_url=existing.manifest_url,
            flags=existing.flags,
            installed_at=existing.installed_at,
        )
        self._sources[addon_id] = updated
        await self._persist()
        log.info("addon_updated", addon_id=addon_id, version=updated.version)
        return updated

    async def remove(self, addon_id: str) -> None:
        if self._sources.pop(addon_id, None) is None:
            raise AddonNotFound(f"Addon not found: {addon_id}")
        await self._persist()
        log.info("addon_removed", addon_id=addon_id)

    async def toggle_flag(self, addon_id: str, flag: AddonFlagName) -> AddonSource:
        source = self.get(addon_id)
        flags = replace(source.flags, **{flag: not getattr(source.flags, flag)})
        toggled = replace(source, flags=flags)
        self._sources[addon_id] = toggled
        await self._persist()
        log.info(
            "addon_flag_toggled",
            addon_id=addon_id,
            flag=flag,
            value=getattr(flags, flag),
        )
        return toggled

    async def refresh_all(self) -> dict[str, bool]:
        """Refresh every manifest once, concurrently.

        Failures are logged and leave the stored manifest in place.
        """
        addon_ids = list(self._sources)

        async def _refresh(addon_id: str) -> bool:
            try:
                await self.update(addon_id)
            except AddonError as e:
                log.warning(
                    "addon_refresh_failed",
                    addon_id=addon_id,
                    endpoint=e.endpoint,
                    error=str(e),
                )
                return False
            return True

        outcomes = await asyncio.gather(*(_refresh(a) for a in addon_ids))
        return dict(zip(addon_ids, outcomes))
