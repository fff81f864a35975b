"""Ports for the playback capability and user-visible notices."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from aggregarr.domain.entities.media import PlaybackTarget, Stream
from aggregarr.domain.entities.playback import SubtitlePreference


@runtime_checkable
class StreamOpenerPort(Protocol):
    """Starts playback for a stream candidate.

    Returns True when playback started (in-app for URL targets, or the
    external handler accepted the link). Returns False when opening an
    external or YouTube target failed, so the next candidate is tried.
    """

    async def open(
        self, target: PlaybackTarget, stream: Stream | None = None
    ) -> bool: ...


@runtime_checkable
class PlaybackBackendPort(Protocol):
    """Black-box native playback engine."""

    async def load(self, url: str, *, backend: str) -> None: ...

    async def seek(self, position_seconds: float) -> None: ...

    async def select_subtitle(self, index: int | None) -> None: ...


@runtime_checkable
class NotifierPort(Protocol):
    """User-visible transient notice (toast)."""

    def notify(self, title: str, message: str = "", *, level: str = "info") -> None: ...


@runtime_checkable
class SubtitlePreferencePort(Protocol):
    """The active profile's remembered subtitle choice."""

    def get_subtitle_preference(self) -> SubtitlePreference | None: ...

    async def set_subtitle_preference(self, preference: SubtitlePreference) -> None: ...

    async def clear_subtitle_preference(self) -> None: ...
