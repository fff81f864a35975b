"""Single automatic backend switch on playback errors."""

from __future__ import annotations

import structlog

from aggregarr.domain.entities.playback import (
    BACKEND_DISPLAY_NAMES,
    FallbackDecision,
    PlayerBackend,
    alternate_backend,
)
from aggregarr.domain.ports.playback import NotifierPort

log = structlog.get_logger(__name__)

PLAYBACK_ERROR = "Playback Error"


class PlaybackFallbackController:
    """Tracks the configured and in-use backends for one playback session.

    The first error on the configured backend switches to the other one
    when automatic fallback is enabled. Any later error is surfaced, so a
    session never switches back and forth.
    """

    def __init__(
        self,
        *,
        configured: PlayerBackend,
        automatic_fallback: bool,
        notifier: NotifierPort,
    ) -> None:
        self.configured = configured
        self.in_use: PlayerBackend = configured
        self.automatic_fallback = automatic_fallback
        self._notifier = notifier

    @property
    def switched(self) -> bool:
        return self.in_use != self.configured

    def on_error(self, message: str) -> FallbackDecision:
        log.debug(
            "playback_error",
            error=message,
            configured=self.configured,
            in_use=self.in_use,
            automatic_fallback=self.automatic_fallback,
        )
        if self.automatic_fallback and self.in_use == self.configured:
            target = alternate_backend(self.in_use)
            log.info("playback_fallback", from_backend=self.in_use, to_backend=target)
            self._notifier.notify(
                f"Switching to {BACKEND_DISPLAY_NAMES[target]}", level="warning"
            )
            self.in_use = target
            return FallbackDecision.FALLBACK

        log.warning("playback_error_surfaced", error=message, backend=self.in_use)
        self._notifier.notify(PLAYBACK_ERROR, message, level="error")
        return FallbackDecision.SURFACED
