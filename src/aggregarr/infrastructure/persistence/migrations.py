"""Pure schema migrations for persisted stores.

Each function receives the stored state and the version it was stored
with, and returns the state in the current shape. No I/O.
"""

from __future__ import annotations

from typing import Any

ADDONS_VERSION = 1
WATCH_HISTORY_VERSION = 1
CONTINUE_WATCHING_VERSION = 1
PLAYBACK_VERSION = 1
PROFILE_SETTINGS_VERSION = 1
PROFILES_VERSION = 1


def migrate_addons(state: dict[str, Any], from_version: int) -> dict[str, Any]:
    """v0 -> v1: every addon gains ``use_for_subtitles`` (enabled)."""
    if from_version < 1:
        addons = state.get("addons", {})
        migrated: dict[str, Any] = {}
        for addon_id, addon in addons.items():
            flags = dict(addon.get("flags", {}))
            flags.setdefault("use_for_subtitles", True)
            migrated[addon_id] = {**addon, "flags": flags}
        state = {**state, "addons": migrated}
    return state


def migrate_profile_settings(
    state: dict[str, Any], from_version: int
) -> dict[str, Any]:
    """v0 -> v1: every profile gains ``autoplay_first_stream`` (disabled)."""
    if from_version < 1:
        by_profile = state.get("by_profile", {})
        state = {
            **state,
            "by_profile": {
                profile_id: {"autoplay_first_stream": False, **settings}
                for profile_id, settings in by_profile.items()
            },
        }
    return state


def migrate_unchanged(state: dict[str, Any], from_version: int) -> dict[str, Any]:
    """Stores whose shape never changed."""
    return state
