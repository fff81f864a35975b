"""Tests for profiles, the active-profile publisher and per-profile purge."""

from __future__ import annotations

import pytest

from aggregarr.domain.entities.errors import ProfileError
from aggregarr.domain.entities.watch import WatchHistoryItem
from aggregarr.infrastructure.persistence.profiles import (
    ActiveProfileEvents,
    ProfileStore,
)


class TestActiveProfileEvents:
    def test_publish_notifies_on_change_only(self) -> None:
        events = ActiveProfileEvents()
        seen: list[str | None] = []
        events.subscribe(seen.append)

        events.publish("p1")
        events.publish("p1")
        events.publish(None)

        assert seen == ["p1", None]

    def test_unsubscribe(self) -> None:
        events = ActiveProfileEvents()
        seen: list[str | None] = []
        unsubscribe = events.subscribe(seen.append)

        unsubscribe()
        events.publish("p1")

        assert seen == []


class TestProfileStore:
    async def test_initialize_creates_default(self, profile_store, events) -> None:
        profile = await profile_store.initialize()

        assert profile.name == "Default"
        assert events.active_profile_id == profile.id

    async def test_active_profile_restored_on_load(
        self, profile_store, state_store, clock
    ) -> None:
        await profile_store.initialize()
        second = await profile_store.create("Kids")
        await profile_store.switch(second.id)

        events = ActiveProfileEvents()
        reloaded = ProfileStore(state=state_store, events=events, clock=clock)
        await reloaded.load()

        assert reloaded.active_profile_id == second.id
        assert events.active_profile_id == second.id

    async def test_pin_gates_switch(self, profile_store) -> None:
        await profile_store.initialize()
        locked = await profile_store.create("Locked", pin="1234")

        assert not await profile_store.switch(locked.id)
        assert not await profile_store.switch(locked.id, pin="0000")
        assert await profile_store.switch(locked.id, pin="1234")
        assert profile_store.active_profile_id == locked.id

    async def test_switch_unknown(self, profile_store) -> None:
        await profile_store.initialize()
        assert not await profile_store.switch("nope")

    async def test_list_most_recent_first(self, profile_store, clock) -> None:
        first = await profile_store.initialize()
        clock.advance(10)
        second = await profile_store.create("Second")
        clock.advance(10)
        await profile_store.switch(first.id)

        assert [p.id for p in profile_store.list_profiles()] == [first.id, second.id]

    async def test_update(self, profile_store) -> None:
        profile = await profile_store.initialize()

        updated = await profile_store.update(profile.id, name="Renamed")

        assert updated.name == "Renamed"
        with pytest.raises(ProfileError):
            await profile_store.update("nope", name="x")

    async def test_cannot_delete_last_profile(self, profile_store) -> None:
        profile = await profile_store.initialize()

        with pytest.raises(ProfileError):
            await profile_store.delete(profile.id)

    async def test_delete_active_switches_and_purges(
        self, profile_store, ledger, events
    ) -> None:
        first = await profile_store.initialize()
        await ledger.upsert(
            WatchHistoryItem(
                id="tt1",
                content_type="movie",
                progress_seconds=50,
                duration_seconds=100,
            )
        )
        second = await profile_store.create("Second")

        await profile_store.delete(first.id)

        assert events.active_profile_id == second.id
        assert ledger._by_profile.get(first.id) is None
