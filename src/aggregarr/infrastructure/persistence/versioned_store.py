"""Versioned JSON state envelopes on top of CachePort (diskcache/redis)."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import structlog

from aggregarr.domain.ports.cache import CachePort

log = structlog.get_logger(__name__)

StateDict = dict[str, Any]
Migration = Callable[[StateDict, int], StateDict]


def _no_migration(state: StateDict, _from_version: int) -> StateDict:
    return state


def _serialize_envelope(version: int, state: StateDict) -> str:
    return json.dumps({"version": version, "state": state})


def _deserialize_envelope(data: str) -> tuple[int, StateDict]:
    d = json.loads(data)
    state = d["state"]
    if not isinstance(state, dict):
        raise ValueError(f"state must be a mapping, got {type(state).__name__}")
    return int(d.get("version", 0)), state


class VersionedStateStore:
    """Persists named state blobs as ``{"version": n, "state": {...}}``.

    On load, a stored version different from the current one is passed
    once through the store's pure ``migrate(state, stored_version)`` and
    written back. Entries are stored without expiry.
    """

    def __init__(self, cache: CachePort, *, key_prefix: str = "state") -> None:
        self.cache = cache
        self._prefix = key_prefix

    def _key(self, name: str) -> str:
        return f"{self._prefix}:{name}"

    async def load(
        self,
        name: str,
        version: int,
        migrate: Migration = _no_migration,
    ) -> StateDict:
        """Load state, migrating older versions. Missing or corrupt -> ``{}``."""
        data = await self.cache.get(self._key(name))
        if data is None:
            log.debug("state_not_found", store=name)
            return {}

        try:
            stored_version, state = _deserialize_envelope(data)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            log.error("state_deserialize_error", store=name, error=str(e))
            return {}

        if stored_version != version:
            state = migrate(state, stored_version)
            await self.save(name, version, state)
            log.info(
                "state_migrated",
                store=name,
                from_version=stored_version,
                to_version=version,
            )
        return state

    async def save(self, name: str, version: int, state: StateDict) -> None:
        payload = _serialize_envelope(version, state)
        await self.cache.set(self._key(name), payload, ttl=None)
        log.debug("state_saved", store=name, version=version)

    async def delete(self, name: str) -> bool:
        return await self.cache.delete(self._key(name))
