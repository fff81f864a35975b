"""Base for stores whose state is partitioned by profile."""

from __future__ import annotations

from typing import Any, ClassVar

import structlog

from aggregarr.infrastructure.persistence.migrations import migrate_unchanged
from aggregarr.infrastructure.persistence.profiles import ActiveProfileEvents
from aggregarr.infrastructure.persistence.versioned_store import (
    Migration,
    VersionedStateStore,
)

log = structlog.get_logger(__name__)


class ProfileScopedStore:
    """Holds ``{"by_profile": {profile_id: {...}}}`` for one named store.

    Follows the active profile through ``ActiveProfileEvents`` and drops a
    profile's partition when that profile is deleted.
    """

    store_name: ClassVar[str]
    version: ClassVar[int] = 1
    migrate: ClassVar[Migration] = staticmethod(migrate_unchanged)

    def __init__(
        self, *, state: VersionedStateStore, events: ActiveProfileEvents
    ) -> None:
        self._state = state
        self._by_profile: dict[str, dict[str, Any]] = {}
        self._profile_id: str | None = events.active_profile_id
        events.subscribe(self._on_active_profile_changed)
        events.on_profile_deleted(self._purge_profile)

    def _on_active_profile_changed(self, profile_id: str | None) -> None:
        self._profile_id = profile_id

    @property
    def profile_id(self) -> str | None:
        return self._profile_id

    async def load(self) -> None:
        data = await self._state.load(self.store_name, self.version, type(self).migrate)
        by_profile = data.get("by_profile", {})
        self._by_profile = by_profile if isinstance(by_profile, dict) else {}

    async def _persist(self) -> None:
        await self._state.save(
            self.store_name, self.version, {"by_profile": self._by_profile}
        )

    async def _purge_profile(self, profile_id: str) -> None:
        if self._by_profile.pop(profile_id, None) is not None:
            await self._persist()
            log.info(
                "profile_data_purged", store=self.store_name, profile_id=profile_id
            )

    def _partition(self, *, create: bool = False) -> dict[str, Any] | None:
        """The active profile's partition, or None without an active profile."""
        if self._profile_id is None:
            return None
        if create:
            return self._by_profile.setdefault(self._profile_id, {})
        return self._by_profile.get(self._profile_id)
