"""One playback session: progress persistence, resume, fallback and subtitles."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, replace

import structlog

from aggregarr.application.use_cases.playback_fallback import (
    PlaybackFallbackController,
)
from aggregarr.application.use_cases.subtitle_merge import (
    preference_from_track,
    select_preferred_track,
)
from aggregarr.domain.entities.media import PlaybackTarget
from aggregarr.domain.entities.playback import FallbackDecision
from aggregarr.domain.entities.subtitles import SubtitleTrack
from aggregarr.domain.entities.watch import WatchHistoryItem
from aggregarr.domain.ports.playback import PlaybackBackendPort, SubtitlePreferencePort
from aggregarr.domain.ports.watch_ledger import WatchLedgerPort

log = structlog.get_logger(__name__)

DEFAULT_PERSIST_INTERVAL_SECONDS = 5.0

NextEpisodeStarter = Callable[[str], Awaitable[None]]


@dataclass(frozen=True)
class PlaybackContext:
    """What is playing: the part and the stream URL it plays from."""

    meta_id: str
    content_type: str
    source_url: str
    video_id: str | None = None
    binge_group: str | None = None


class PlaybackSession:
    """Reacts to backend events for a single opened part.

    Progress writes are throttled to ``persist_interval_seconds``; load,
    seek, stream switch and end force a write. Without a known duration
    nothing is written.
    """

    def __init__(
        self,
        *,
        context: PlaybackContext,
        ledger: WatchLedgerPort,
        backend: PlaybackBackendPort,
        fallback: PlaybackFallbackController,
        preferences: SubtitlePreferencePort | None = None,
        start_next_episode: NextEpisodeStarter | None = None,
        persist_interval_seconds: float = DEFAULT_PERSIST_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.context = context
        self._ledger = ledger
        self._backend = backend
        self.fallback = fallback
        self._preferences = preferences
        self._start_next_episode = start_next_episode
        self._persist_interval = persist_interval_seconds
        self._clock = clock

        self.position_seconds = 0.0
        self.duration_seconds = 0.0
        self.up_next_video_id: str | None = None
        self.autoplay_cancelled = False
        # Set once an error could not be recovered by a backend switch.
        self.failed = False
        self.selected_track: SubtitleTrack | None = None

        self._last_persist_at: float | None = None
        self._target_persisted = False
        self._resume_key: str | None = None
        self._subtitle_preference_applied = False
        self._started_next = False

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    async def _persist_progress(
        self, progress_seconds: float, duration_seconds: float, *, force: bool = False
    ) -> bool:
        if duration_seconds <= 0:
            return False
        now = self._clock()
        if (
            not force
            and self._last_persist_at is not None
            and now - self._last_persist_at < self._persist_interval
        ):
            return False

        self._last_persist_at = now
        await self._ledger.upsert(
            WatchHistoryItem(
                id=self.context.meta_id,
                content_type=self.context.content_type,
                video_id=self.context.video_id,
                progress_seconds=progress_seconds,
                duration_seconds=duration_seconds,
            )
        )
        return True

    def _session_key(self) -> str:
        c = self.context
        return f"{c.source_url}|{c.meta_id}|{c.video_id or ''}|{self.fallback.in_use}"

    # ------------------------------------------------------------------
    # Backend events
    # ------------------------------------------------------------------

    async def on_load(self, duration_seconds: float) -> float:
        """Handle the backend's load event. Returns the resume position."""
        log.debug(
            "playback_loaded",
            meta_id=self.context.meta_id,
            video_id=self.context.video_id,
            duration_seconds=duration_seconds,
            backend=self.fallback.in_use,
        )
        # Only a stream that actually loads is remembered.
        if not self._target_persisted and duration_seconds > 0:
            self._target_persisted = True
            await self._ledger.set_last_stream_target(
                self.context.meta_id,
                self.context.video_id,
                self.context.content_type,
                PlaybackTarget(type="url", value=self.context.source_url),
            )

        resume_seconds = 0.0
        key = self._session_key()
        if self._resume_key != key:
            self._resume_key = key
            item = self._ledger.get_item(self.context.meta_id, self.context.video_id)
            stored = item.progress_seconds if item else 0.0
            resume_seconds = min(max(stored, 0.0), max(0.0, duration_seconds - 1))

        self.duration_seconds = duration_seconds
        if resume_seconds > 0:
            self.position_seconds = resume_seconds
            await self._backend.seek(resume_seconds)
            log.debug("playback_resumed", position_seconds=resume_seconds)
        await self._persist_progress(
            self.position_seconds, duration_seconds, force=True
        )
        return resume_seconds

    async def on_progress(
        self, position_seconds: float, duration_seconds: float | None = None
    ) -> bool:
        """Returns True when the report was written."""
        self.position_seconds = position_seconds
        if duration_seconds:
            self.duration_seconds = duration_seconds
        return await self._persist_progress(position_seconds, self.duration_seconds)

    async def on_seek(self, position_seconds: float) -> None:
        await self._backend.seek(position_seconds)
        self.position_seconds = position_seconds
        await self._persist_progress(
            position_seconds, self.duration_seconds, force=True
        )

    async def switch_stream(self, source_url: str) -> None:
        """Persist where we are, then load another stream for the same part."""
        await self._persist_progress(
            self.position_seconds, self.duration_seconds, force=True
        )
        self.context = replace(self.context, source_url=source_url)
        self._target_persisted = False
        log.info("playback_stream_switched", meta_id=self.context.meta_id)
        await self._backend.load(source_url, backend=self.fallback.in_use)

    async def on_end(self) -> bool:
        """Mark the part finished. Returns True when the next part was started."""
        log.debug("playback_ended", meta_id=self.context.meta_id)
        self.position_seconds = self.duration_seconds
        await self._persist_progress(
            self.duration_seconds, self.duration_seconds, force=True
        )
        if not self.autoplay_cancelled and self.up_next_video_id:
            return await self.start_next_episode()
        return False

    async def on_error(self, message: str) -> FallbackDecision:
        decision = self.fallback.on_error(message)
        if decision is FallbackDecision.FALLBACK:
            await self._backend.load(
                self.context.source_url, backend=self.fallback.in_use
            )
        else:
            self.failed = True
            self.autoplay_cancelled = True
            log.info("playback_failed", meta_id=self.context.meta_id)
        return decision

    # ------------------------------------------------------------------
    # Up next
    # ------------------------------------------------------------------

    def set_up_next(self, video_id: str | None) -> None:
        self.up_next_video_id = video_id

    def cancel_autoplay(self) -> None:
        self.autoplay_cancelled = True

    async def start_next_episode(self) -> bool:
        """Start the up-next part once per session."""
        if self.failed or self._started_next or not self.up_next_video_id:
            return False
        if self._start_next_episode is None:
            return False
        self._started_next = True
        log.info(
            "playback_next_episode",
            meta_id=self.context.meta_id,
            from_video_id=self.context.video_id,
            next_video_id=self.up_next_video_id,
        )
        await self._persist_progress(
            self.position_seconds, self.duration_seconds, force=True
        )
        await self._start_next_episode(self.up_next_video_id)
        return True

    # ------------------------------------------------------------------
    # Subtitles
    # ------------------------------------------------------------------

    async def select_subtitle(
        self, track: SubtitleTrack | None, *, automatic: bool = False
    ) -> None:
        """Select a track, or turn subtitles off with ``None``.

        Manual choices are remembered for the profile; turning subtitles off
        manually forgets the remembered choice.
        """
        current = self.selected_track.index if self.selected_track else None
        if track is None:
            if current is None:
                return
            self.selected_track = None
            await self._backend.select_subtitle(None)
            if not automatic and self._preferences is not None:
                await self._preferences.clear_subtitle_preference()
            return

        if current == track.index:
            return
        self.selected_track = track
        await self._backend.select_subtitle(track.index)
        if not automatic and self._preferences is not None:
            await self._preferences.set_subtitle_preference(
                preference_from_track(track)
            )

    async def apply_subtitle_preference(
        self, tracks: Sequence[SubtitleTrack]
    ) -> SubtitleTrack | None:
        """Re-apply the remembered subtitle choice once tracks are known.

        Runs at most once per session and never overrides a track the user
        already picked.
        """
        if self._subtitle_preference_applied or not tracks:
            return None
        if self.selected_track is not None or self._preferences is None:
            return None
        preference = self._preferences.get_subtitle_preference()
        if preference is None:
            return None

        self._subtitle_preference_applied = True
        match = select_preferred_track(tracks, preference)
        if match is None:
            log.debug("subtitle_preference_no_match", language=preference.language)
            return None
        await self.select_subtitle(match, automatic=True)
        return match
