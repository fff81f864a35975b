from .addon_client import AddonClientPort
from .cache import CachePort
from .playback import (
    NotifierPort,
    PlaybackBackendPort,
    StreamOpenerPort,
    SubtitlePreferencePort,
)
from .watch_ledger import WatchLedgerPort

__all__ = [
    "AddonClientPort",
    "CachePort",
    "NotifierPort",
    "PlaybackBackendPort",
    "StreamOpenerPort",
    "SubtitlePreferencePort",
    "WatchLedgerPort",
]
