"""Per-profile hidden flags for the continue-watching row."""

from __future__ import annotations

import structlog

from aggregarr.infrastructure.persistence.migrations import CONTINUE_WATCHING_VERSION
from aggregarr.infrastructure.persistence.profile_scoped import ProfileScopedStore

log = structlog.get_logger(__name__)


class ContinueWatchingHiddenStore(ProfileScopedStore):
    """Titles the user removed from the continue-watching row.

    Watching a title again un-hides it (see WatchLedger.upsert).
    """

    store_name = "continue_watching"
    version = CONTINUE_WATCHING_VERSION

    def is_hidden(self, meta_id: str) -> bool:
        partition = self._partition()
        return bool(partition and partition.get(meta_id))

    def hidden_meta_ids(self) -> set[str]:
        partition = self._partition() or {}
        return {meta_id for meta_id, hidden in partition.items() if hidden}

    async def set_hidden(self, meta_id: str, hidden: bool) -> None:
        """No-op when there is no active profile or the flag is unchanged."""
        if self._profile_id is None or self.is_hidden(meta_id) == hidden:
            return
        partition = self._partition(create=True)
        assert partition is not None
        if hidden:
            partition[meta_id] = True
        else:
            partition.pop(meta_id, None)
        await self._persist()
        log.debug("continue_watching_hidden_set", meta_id=meta_id, hidden=hidden)

    async def clear_hidden(self) -> None:
        if self._profile_id is None or not self._partition():
            return
        self._by_profile[self._profile_id] = {}
        await self._persist()
