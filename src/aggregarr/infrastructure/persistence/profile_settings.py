"""Per-profile playback settings (player backend, fallback, autoplay, languages)."""

from __future__ import annotations

from dataclasses import replace
from typing import Any

import structlog

from aggregarr.domain.entities.playback import ProfilePlaybackSettings, SubtitleStyle
from aggregarr.infrastructure.persistence.migrations import (
    PROFILE_SETTINGS_VERSION,
    migrate_profile_settings,
)
from aggregarr.infrastructure.persistence.profile_scoped import ProfileScopedStore

log = structlog.get_logger(__name__)

_PLAYERS = ("exoplayer", "vlc")


def _languages(value: Any) -> tuple[str, ...] | None:
    if not value:
        return None
    return tuple(str(code) for code in value)


def _serialize_settings(settings: ProfilePlaybackSettings) -> dict[str, Any]:
    style = settings.subtitle_style
    return {
        "player": settings.player,
        "automatic_fallback": settings.automatic_fallback,
        "autoplay_first_stream": settings.autoplay_first_stream,
        "preferred_audio_languages": list(settings.preferred_audio_languages or []),
        "preferred_subtitle_languages": list(
            settings.preferred_subtitle_languages or []
        ),
        "subtitle_style": None
        if style is None
        else {
            "font_size": style.font_size,
            "text_color": style.text_color,
            "background_color": style.background_color,
            "outline_color": style.outline_color,
            "outline_width": style.outline_width,
            "bottom_offset": style.bottom_offset,
        },
    }


def _deserialize_settings(d: dict[str, Any]) -> ProfilePlaybackSettings:
    player = d.get("player", "exoplayer")
    style = d.get("subtitle_style")
    return ProfilePlaybackSettings(
        player=player if player in _PLAYERS else "exoplayer",
        automatic_fallback=bool(d.get("automatic_fallback", True)),
        autoplay_first_stream=bool(d.get("autoplay_first_stream", False)),
        preferred_audio_languages=_languages(d.get("preferred_audio_languages")),
        preferred_subtitle_languages=_languages(d.get("preferred_subtitle_languages")),
        subtitle_style=SubtitleStyle(**style) if isinstance(style, dict) else None,
    )


class ProfileSettingsStore(ProfileScopedStore):
    """Settings for the active profile; defaults until something is saved."""

    store_name = "profile_settings"
    version = PROFILE_SETTINGS_VERSION
    migrate = staticmethod(migrate_profile_settings)

    def get(self) -> ProfilePlaybackSettings:
        partition = self._partition()
        if not partition:
            return ProfilePlaybackSettings()
        try:
            return _deserialize_settings(partition)
        except (TypeError, ValueError) as e:
            log.error("profile_settings_deserialize_error", error=str(e))
            return ProfilePlaybackSettings()

    async def update(self, **changes: Any) -> ProfilePlaybackSettings:
        """Apply field changes for the active profile and persist them.

        Raises:
            TypeError: On an unknown settings field.
        """
        if self._profile_id is None:
            log.debug("profile_settings_no_active_profile")
            return ProfilePlaybackSettings()

        settings = replace(self.get(), **changes)
        self._by_profile[self._profile_id] = _serialize_settings(settings)
        await self._persist()
        log.info("profile_settings_updated", fields=sorted(changes))
        return settings
