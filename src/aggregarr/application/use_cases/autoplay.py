"""Automatic stream selection when a part is opened with autoplay on."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from aggregarr.domain.entities.media import PlaybackTarget, Stream
from aggregarr.domain.entities.playback import AutoplayState
from aggregarr.domain.ports.playback import NotifierPort, StreamOpenerPort
from aggregarr.domain.ports.watch_ledger import WatchLedgerPort

log = structlog.get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
NO_PLAYABLE_STREAM = "No playable stream found"


def _parse_bool_param(value: str | None) -> bool:
    if not value:
        return False
    return value == "1" or value.lower() == "true"


def should_autoplay(param: str | None, setting: bool) -> bool:
    """An explicit ``autoplay`` parameter wins over the profile setting."""
    if param:
        return _parse_bool_param(param)
    return setting


def autoplay_candidates(
    streams: Sequence[Stream], binge_group: str | None = None
) -> list[Stream]:
    """Available streams, narrowed to the binge group when one is active."""
    playable = [s for s in streams if s.is_available]
    if binge_group:
        return [s for s in playable if s.behavior_hints.binge_group == binge_group]
    return playable


@dataclass(frozen=True)
class AutoplayRequest:
    meta_id: str
    video_id: str | None
    content_type: str
    binge_group: str | None = None


class AutoplayOrchestrator:
    """Runs at most once per opened part.

    A remembered target is tried directly. Otherwise candidates are opened
    strictly in order until one starts or ``max_attempts`` is reached.
    """

    def __init__(
        self,
        *,
        ledger: WatchLedgerPort,
        opener: StreamOpenerPort,
        notifier: NotifierPort,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self._ledger = ledger
        self._opener = opener
        self._notifier = notifier
        self.max_attempts = max_attempts
        self.state = AutoplayState.IDLE
        self.attempts = 0
        self._ran = False

    @property
    def failed(self) -> bool:
        return self.state is AutoplayState.EXHAUSTED

    async def run(
        self, request: AutoplayRequest, streams: Sequence[Stream]
    ) -> AutoplayState:
        """Pick and open a stream. Later calls return the settled state."""
        if self._ran:
            return self.state
        self._ran = True

        self.state = AutoplayState.CHECKING_LAST_TARGET
        remembered = self._ledger.get_last_stream_target(
            request.meta_id, request.video_id
        )
        if remembered is not None:
            log.debug(
                "autoplay_last_target",
                meta_id=request.meta_id,
                video_id=request.video_id,
                target_type=remembered.type,
            )
            self.state = AutoplayState.RESOLVED
            await self._opener.open(remembered)
            return self.state

        candidates = autoplay_candidates(streams, request.binge_group)
        self.state = AutoplayState.TRYING_CANDIDATE
        for stream in candidates[: self.max_attempts]:
            target = stream.to_target()
            assert target is not None
            self.attempts += 1
            log.debug(
                "autoplay_attempt",
                attempt=self.attempts,
                addon_id=stream.addon_id,
                target_type=target.type,
            )
            if await self._opener.open(target, stream):
                await self._remember_external(request, target)
                self.state = AutoplayState.PLAYING
                return self.state

        return self._exhaust(request, candidates=len(candidates))

    async def _remember_external(
        self, request: AutoplayRequest, target: PlaybackTarget
    ) -> None:
        # In-app URL targets are remembered once the player reports a duration.
        if target.type == "url":
            return
        await self._ledger.set_last_stream_target(
            request.meta_id, request.video_id, request.content_type, target
        )

    def _exhaust(self, request: AutoplayRequest, *, candidates: int) -> AutoplayState:
        self.state = AutoplayState.EXHAUSTED
        log.info(
            "autoplay_exhausted",
            meta_id=request.meta_id,
            video_id=request.video_id,
            candidates=candidates,
            attempts=self.attempts,
        )
        self._notifier.notify(NO_PLAYABLE_STREAM, level="error")
        return self.state
