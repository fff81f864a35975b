"""Fan-out query execution across compatible addon sources.

descriptor -> compatible sources -> one bounded, timed request per source
-> SourceSuccess / SourceFailure values in source order.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from typing import Any, Protocol

import structlog

from aggregarr.domain.entities.addon import AddonSource, ResourceKind
from aggregarr.domain.entities.errors import (
    AddonDecodeError,
    AddonNetworkError,
    AddonTimeout,
)
from aggregarr.domain.entities.query import (
    FailureKind,
    QueryDescriptor,
    SourceFailure,
    SourceResult,
    SourceSuccess,
)
from aggregarr.domain.ports.addon_client import AddonClientPort

log = structlog.get_logger(__name__)


class _FanOutConfig(Protocol):
    """Configuration values consumed by FanOutQueryExecutor."""

    source_timeout_seconds: float
    retries: int
    max_concurrent_sources: int


# ---------------------------------------------------------------------------
# Compatibility
# ---------------------------------------------------------------------------


def is_source_compatible(source: AddonSource, descriptor: QueryDescriptor) -> bool:
    """Whether ``source`` can answer ``descriptor``.

    The source must declare the content type and the resource (either in
    plain form, or in object form whose types include the content type),
    and the id must match one of its id prefixes when it declares any.
    Subtitle queries additionally require the subtitles flag.
    """
    if descriptor.content_type not in source.declared_types:
        return False

    resource = source.find_resource(descriptor.resource.value)
    if resource is None:
        return False
    if resource.types is not None and descriptor.content_type not in resource.types:
        return False

    prefixes = resource.id_prefixes or source.id_prefixes
    if prefixes and not any(descriptor.id.startswith(p) for p in prefixes):
        return False

    if descriptor.resource is ResourceKind.SUBTITLES:
        return source.flags.use_for_subtitles
    return True


def compatible_sources(
    sources: Sequence[AddonSource], descriptor: QueryDescriptor
) -> list[AddonSource]:
    return [s for s in sources if is_source_compatible(s, descriptor)]


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class FanOutQueryExecutor:
    """Issues one query per compatible source with isolated failure handling.

    Each source gets its own timeout; network failures are retried up to
    ``retries`` times. A failing source never affects its siblings.
    Cancelling the awaiting task cancels every in-flight request.
    """

    def __init__(self, *, client: AddonClientPort, config: _FanOutConfig) -> None:
        self._client = client
        self._timeout = config.source_timeout_seconds
        self._retries = max(0, config.retries)
        self._max_concurrent = max(1, config.max_concurrent_sources)

    async def _request(self, source: AddonSource, descriptor: QueryDescriptor) -> Any:
        return await asyncio.wait_for(
            self._client.fetch_resource(source, descriptor, timeout=self._timeout),
            timeout=self._timeout,
        )

    async def _query_one(
        self,
        source: AddonSource,
        descriptor: QueryDescriptor,
        semaphore: asyncio.Semaphore,
    ) -> SourceResult[Any]:
        attempts = 1 + self._retries
        failure: SourceFailure | None = None

        for attempt in range(1, attempts + 1):
            try:
                async with semaphore:
                    payload = await self._request(source, descriptor)
                return SourceSuccess(source=source, payload=payload)
            except (TimeoutError, AddonTimeout):
                failure = SourceFailure(
                    source=source,
                    kind=FailureKind.TIMEOUT,
                    message=f"no answer within {self._timeout}s",
                )
                break
            except AddonDecodeError as e:
                failure = SourceFailure(
                    source=source, kind=FailureKind.DECODE, message=str(e)
                )
                break
            except AddonNetworkError as e:
                failure = SourceFailure(
                    source=source, kind=FailureKind.NETWORK, message=str(e)
                )
                if attempt < attempts:
                    log.debug(
                        "fanout_source_retry",
                        addon_id=source.id,
                        attempt=attempt,
                        error=str(e),
                    )
            except asyncio.CancelledError:
                log.debug("fanout_source_cancelled", addon_id=source.id)
                raise
            except Exception as e:
                log.warning(
                    "fanout_source_unexpected_error",
                    addon_id=source.id,
                    exc_info=True,
                )
                failure = SourceFailure(
                    source=source, kind=FailureKind.NETWORK, message=str(e)
                )
                break

        assert failure is not None
        log.warning(
            "fanout_source_failed",
            addon_id=source.id,
            resource=descriptor.resource.value,
            id=descriptor.id,
            kind=failure.kind.value,
            error=failure.message,
        )
        return failure

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def execute_targets(
        self, targets: Sequence[tuple[AddonSource, QueryDescriptor]]
    ) -> list[SourceResult[Any]]:
        """Run explicit (source, descriptor) pairs, all settled, in input order.

        Used for catalog rows where each source has several descriptors.
        """
        if not targets:
            return []
        semaphore = asyncio.Semaphore(self._max_concurrent)
        results = await asyncio.gather(
            *(self._query_one(s, d, semaphore) for s, d in targets)
        )
        return list(results)

    async def execute(
        self, descriptor: QueryDescriptor, sources: Sequence[AddonSource]
    ) -> list[SourceResult[Any]]:
        """Wait until every compatible source settled ("all settled").

        Results are returned in source order.
        """
        targets = compatible_sources(sources, descriptor)
        if not targets:
            log.debug(
                "fanout_no_compatible_sources",
                resource=descriptor.resource.value,
                type=descriptor.content_type,
                id=descriptor.id,
            )
            return []

        results = await self.execute_targets([(s, descriptor) for s in targets])
        log.info(
            "fanout_completed",
            resource=descriptor.resource.value,
            id=descriptor.id,
            sources=len(targets),
            failed=sum(1 for r in results if not r.ok),
        )
        return results

    async def stream(
        self, descriptor: QueryDescriptor, sources: Sequence[AddonSource]
    ) -> AsyncIterator[SourceResult[Any]]:
        """Yield each source's result as soon as it settles ("any settled").

        Closing the iterator early cancels the requests still in flight.
        """
        targets = compatible_sources(sources, descriptor)
        semaphore = asyncio.Semaphore(self._max_concurrent)
        tasks = [
            asyncio.create_task(self._query_one(s, descriptor, semaphore))
            for s in targets
        ]
        try:
            for next_done in asyncio.as_completed(tasks):
                yield await next_done
        finally:
            pending = [t for t in tasks if not t.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                log.debug("fanout_stream_cancelled", pending=len(pending))
