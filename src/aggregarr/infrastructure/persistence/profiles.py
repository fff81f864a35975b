"""Profiles and the active-profile publisher.

``ProfileStore`` is the single authority on which profile is active. It
publishes changes through ``ActiveProfileEvents``; per-profile stores
subscribe and never write the active profile themselves.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import asdict, replace
from typing import Any
from uuid import uuid4

import structlog

from aggregarr.domain.entities.errors import ProfileError
from aggregarr.domain.entities.watch import Profile
from aggregarr.infrastructure.persistence.migrations import (
    PROFILES_VERSION,
    migrate_unchanged,
)
from aggregarr.infrastructure.persistence.versioned_store import VersionedStateStore

log = structlog.get_logger(__name__)

ActiveProfileListener = Callable[[str | None], None]
ProfileDeletedListener = Callable[[str], Awaitable[None]]

_STORE_NAME = "profiles"
_DEFAULT_PROFILE_NAME = "Default"


class ActiveProfileEvents:
    """One-way "active profile changed" event with a single publisher."""

    def __init__(self) -> None:
        self._active: str | None = None
        self._listeners: list[ActiveProfileListener] = []
        self._deleted_listeners: list[ProfileDeletedListener] = []

    @property
    def active_profile_id(self) -> str | None:
        return self._active

    def subscribe(self, listener: ActiveProfileListener) -> Callable[[], None]:
        """Register ``listener``; it is called once per change. Returns unsubscribe."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def on_profile_deleted(self, listener: ProfileDeletedListener) -> None:
        self._deleted_listeners.append(listener)

    def publish(self, profile_id: str | None) -> None:
        if profile_id == self._active:
            return
        self._active = profile_id
        log.info("active_profile_changed", profile_id=profile_id)
        for listener in list(self._listeners):
            listener(profile_id)

    async def publish_deleted(self, profile_id: str) -> None:
        for listener in list(self._deleted_listeners):
            await listener(profile_id)


def _serialize_profile(profile: Profile) -> dict[str, Any]:
    return asdict(profile)


def _deserialize_profile(d: dict[str, Any]) -> Profile:
    return Profile(
        id=d["id"],
        name=d["name"],
        created_at=float(d.get("created_at", 0.0)),
        last_used_at=float(d.get("last_used_at", 0.0)),
        pin=d.get("pin"),
        avatar=d.get("avatar"),
    )


class ProfileStore:
    """Persisted profile list plus the active profile id."""

    def __init__(
        self,
        *,
        state: VersionedStateStore,
        events: ActiveProfileEvents,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._state = state
        self._events = events
        self._clock = clock
        self._profiles: dict[str, Profile] = {}
        self._active_id: str | None = None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def load(self) -> None:
        data = await self._state.load(_STORE_NAME, PROFILES_VERSION, migrate_unchanged)
        profiles: dict[str, Profile] = {}
        for raw in data.get("profiles", {}).values():
            try:
                profile = _deserialize_profile(raw)
            except (KeyError, TypeError, ValueError) as e:
                log.error("profile_deserialize_error", error=str(e))
                continue
            profiles[profile.id] = profile
        self._profiles = profiles

        active = data.get("active_profile_id")
        self._active_id = active if active in profiles else None
        self._events.publish(self._active_id)

    async def _persist(self) -> None:
        await self._state.save(
            _STORE_NAME,
            PROFILES_VERSION,
            {
                "profiles": {
                    pid: _serialize_profile(p) for pid, p in self._profiles.items()
                },
                "active_profile_id": self._active_id,
            },
        )

    async def _set_active(self, profile_id: str | None) -> None:
        self._active_id = profile_id
        await self._persist()
        self._events.publish(profile_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def active_profile_id(self) -> str | None:
        return self._active_id

    def get(self, profile_id: str) -> Profile | None:
        return self._profiles.get(profile_id)

    def active_profile(self) -> Profile | None:
        if self._active_id is None:
            return None
        return self._profiles.get(self._active_id)

    def list_profiles(self) -> list[Profile]:
        """Profiles, most recently used first."""
        return sorted(
            self._profiles.values(), key=lambda p: p.last_used_at, reverse=True
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def initialize(self) -> Profile:
        """Ensure at least one profile exists and one is active."""
        await self.load()
        if not self._profiles:
            await self.create(_DEFAULT_PROFILE_NAME)
        if self._active_id is None:
            first = self.list_profiles()[0]
            await self._set_active(first.id)
        active = self.active_profile()
        assert active is not None
        return active

    async def create(
        self, name: str, *, pin: str | None = None, avatar: str | None = None
    ) -> Profile:
        now = self._clock()
        profile = Profile(
            id=f"profile_{uuid4().hex[:12]}",
            name=name,
            created_at=now,
            last_used_at=now,
            pin=pin,
            avatar=avatar,
        )
        self._profiles[profile.id] = profile
        await self._persist()
        log.info("profile_created", profile_id=profile.id, name=name)
        return profile

    async def switch(self, profile_id: str, pin: str | None = None) -> bool:
        """Activate a profile. False when unknown or the pin does not match."""
        profile = self._profiles.get(profile_id)
        if profile is None:
            log.warning("profile_switch_unknown", profile_id=profile_id)
            return False
        if profile.pin and profile.pin != pin:
            log.warning("profile_switch_invalid_pin", profile_id=profile_id)
            return False

        self._profiles[profile_id] = replace(profile, last_used_at=self._clock())
        await self._set_active(profile_id)
        return True

    async def update(
        self,
        profile_id: str,
        *,
        name: str | None = None,
        pin: str | None = None,
        avatar: str | None = None,
    ) -> Profile:
        profile = self._profiles.get(profile_id)
        if profile is None:
            raise ProfileError(f"Unknown profile: {profile_id}")

        updated = replace(
            profile,
            name=name if name is not None else profile.name,
            pin=pin if pin is not None else profile.pin,
            avatar=avatar if avatar is not None else profile.avatar,
        )
        self._profiles[profile_id] = updated
        await self._persist()
        return updated

    async def delete(self, profile_id: str) -> None:
        """Delete a profile and its per-profile data.

        Raises:
            ProfileError: Unknown id, or it is the last remaining profile.
        """
        if profile_id not in self._profiles:
            raise ProfileError(f"Unknown profile: {profile_id}")
        if len(self._profiles) == 1:
            raise ProfileError("Cannot delete the last profile")

        del self._profiles[profile_id]
        if self._active_id == profile_id:
            await self._set_active(self.list_profiles()[0].id)
        else:
            await self._persist()

        await self._events.publish_deleted(profile_id)
        log.info("profile_deleted", profile_id=profile_id)

    async def clear_active(self) -> None:
        await self._set_active(None)
