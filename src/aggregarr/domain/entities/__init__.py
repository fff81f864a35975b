from .addon import (
    AddonFlags,
    AddonResource,
    AddonSource,
    ContentType,
    ManifestCatalog,
    ResourceKind,
)
from .errors import (
    AddonAlreadyInstalled,
    AddonDecodeError,
    AddonError,
    AddonNetworkError,
    AddonNotFound,
    AddonTimeout,
    AggregarrError,
    ProfileError,
)
from .media import (
    BehaviorHints,
    MetaDetail,
    MetaPreview,
    MetaVideo,
    PlaybackTarget,
    Stream,
    sort_videos,
)
from .playback import (
    AutoplayState,
    FallbackDecision,
    PlayerBackend,
    ProfilePlaybackSettings,
    SubtitlePreference,
    SubtitleStyle,
)
from .query import (
    AggregateResult,
    AggregateStatus,
    CatalogGroup,
    FailureKind,
    QueryDescriptor,
    SourceFailure,
    SourceResult,
    SourceSuccess,
)
from .subtitles import AddonSubtitle, SubtitleCue, SubtitleTrack
from .watch import ContinueWatchingEntry, Profile, WatchHistoryItem, WatchState

__all__ = [
    "AddonAlreadyInstalled",
    "AddonDecodeError",
    "AddonError",
    "AddonFlags",
    "AddonNetworkError",
    "AddonNotFound",
    "AddonResource",
    "AddonSource",
    "AddonSubtitle",
    "AddonTimeout",
    "AggregarrError",
    "AggregateResult",
    "AggregateStatus",
    "AutoplayState",
    "BehaviorHints",
    "CatalogGroup",
    "ContentType",
    "ContinueWatchingEntry",
    "FailureKind",
    "FallbackDecision",
    "ManifestCatalog",
    "MetaDetail",
    "MetaPreview",
    "MetaVideo",
    "PlaybackTarget",
    "PlayerBackend",
    "Profile",
    "ProfileError",
    "ProfilePlaybackSettings",
    "QueryDescriptor",
    "ResourceKind",
    "SourceFailure",
    "SourceResult",
    "SourceSuccess",
    "Stream",
    "SubtitleCue",
    "SubtitlePreference",
    "SubtitleStyle",
    "SubtitleTrack",
    "WatchHistoryItem",
    "WatchState",
    "sort_videos",
]
