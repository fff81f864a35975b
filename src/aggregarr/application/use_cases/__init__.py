from .addon_queries import AddonQueryUseCase
from .autoplay import AutoplayOrchestrator
from .fan_out import FanOutQueryExecutor
from .playback_fallback import PlaybackFallbackController
from .playback_session import PlaybackContext, PlaybackSession
from .query_scheduler import QueryScheduler

__all__ = [
    "AddonQueryUseCase",
    "AutoplayOrchestrator",
    "FanOutQueryExecutor",
    "PlaybackContext",
    "PlaybackFallbackController",
    "PlaybackSession",
    "QueryScheduler",
]
