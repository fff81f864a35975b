"""Port for the addon transport."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from aggregarr.domain.entities.addon import AddonSource
from aggregarr.domain.entities.query import QueryDescriptor


@runtime_checkable
class AddonClientPort(Protocol):
    """Async interface for talking to one addon over its transport."""

    async def fetch_manifest(self, manifest_url: str) -> AddonSource:
        """Fetch and decode a manifest into an AddonSource with default flags.

        Raises AddonTimeout, AddonNetworkError or AddonDecodeError.
        """
        ...

    async def fetch_resource(
        self,
        source: AddonSource,
        descriptor: QueryDescriptor,
        *,
        timeout: float | None = None,
    ) -> Any:
        """Fetch one resource and decode it into domain entities.

        Payload by resource kind:
          - meta: ``MetaDetail | None``
          - stream: ``list[Stream]`` (not yet tagged with the addon)
          - subtitles: ``list[AddonSubtitle]``
          - catalog: ``list[MetaPreview]``

        Raises AddonTimeout, AddonNetworkError or AddonDecodeError.
        """
        ...
