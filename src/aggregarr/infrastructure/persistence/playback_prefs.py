"""Per-profile playback preferences remembered across sessions."""

from __future__ import annotations

import structlog

from aggregarr.domain.entities.playback import SubtitlePreference
from aggregarr.infrastructure.persistence.migrations import PLAYBACK_VERSION
from aggregarr.infrastructure.persistence.profile_scoped import ProfileScopedStore

log = structlog.get_logger(__name__)


class PlaybackPreferencesStore(ProfileScopedStore):
    store_name = "playback"
    version = PLAYBACK_VERSION

    def get_subtitle_preference(self) -> SubtitlePreference | None:
        raw = (self._partition() or {}).get("subtitle_preference")
        if not isinstance(raw, dict):
            return None
        source = raw.get("source")
        if source not in ("video", "addon"):
            return None
        return SubtitlePreference(
            source=source,
            language=raw.get("language"),
            addon_id=raw.get("addon_id"),
            addon_name=raw.get("addon_name"),
        )

    async def set_subtitle_preference(self, preference: SubtitlePreference) -> None:
        partition = self._partition(create=True)
        if partition is None:
            return
        partition["subtitle_preference"] = {
            "source": preference.source,
            "language": preference.language,
            "addon_id": preference.addon_id,
            "addon_name": preference.addon_name,
        }
        await self._persist()
        log.debug(
            "subtitle_preference_saved",
            source=preference.source,
            language=preference.language,
        )

    async def clear_subtitle_preference(self) -> None:
        partition = self._partition()
        if not partition or "subtitle_preference" not in partition:
            return
        del partition["subtitle_preference"]
        await self._persist()
