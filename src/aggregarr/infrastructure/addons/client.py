"""Addon HTTP client - async httpx implementation of the Stremio addon protocol."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
import structlog
from pydantic import ValidationError

from aggregarr.domain.entities.addon import AddonSource, ResourceKind
from aggregarr.domain.entities.errors import (
    AddonDecodeError,
    AddonNetworkError,
    AddonTimeout,
)
from aggregarr.domain.entities.query import QueryDescriptor
from aggregarr.infrastructure.addons import wire

log = structlog.get_logger(__name__)

_STREMIO_SCHEME = "stremio://"

_DEFAULT_MANIFEST_TIMEOUT = 10.0
_DEFAULT_RESOURCE_TIMEOUT = 15.0


def normalize_manifest_url(url: str) -> str:
    """Map the ``stremio://`` deep-link scheme to https and trim whitespace."""
    url = url.strip()
    if url.lower().startswith(_STREMIO_SCHEME):
        return "https://" + url[len(_STREMIO_SCHEME) :]
    return url


def encode_extra(extra: dict[str, str] | Any) -> str:
    """``{"search": "the office", "skip": "20"}`` -> ``search=the%20office&skip=20``."""
    return "&".join(
        f"{quote(str(key), safe='')}={quote(str(value), safe='')}"
        for key, value in extra.items()
        if value is not None and value != ""
    )


def build_resource_url(source: AddonSource, descriptor: QueryDescriptor) -> str:
    """``{base}/{resource}/{type}/{id}[/{extra}].json``"""
    parts = [
        source.base_url,
        descriptor.resource.value,
        quote(descriptor.content_type, safe=""),
        quote(descriptor.id, safe=":"),
    ]
    extra = encode_extra(descriptor.extra) if descriptor.extra else ""
    if extra:
        parts.append(extra)
    return "/".join(parts) + ".json"


class HttpxAddonClient:
    """Async addon transport using a shared httpx.AsyncClient.

    Implements ``AddonClientPort`` from domain.ports.addon_client.
    Transport errors are mapped onto the AddonError hierarchy so callers
    can classify failures without knowing about httpx.
    """

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        manifest_timeout_seconds: float = _DEFAULT_MANIFEST_TIMEOUT,
        resource_timeout_seconds: float = _DEFAULT_RESOURCE_TIMEOUT,
    ) -> None:
        self._http = http_client
        self._manifest_timeout = manifest_timeout_seconds
        self._resource_timeout = resource_timeout_seconds

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_json(self, url: str, timeout: float) -> Any:
        try:
            resp = await self._http.get(url, timeout=timeout)
            resp.raise_for_status()
        except httpx.TimeoutException as e:
            raise AddonTimeout(f"timed out after {timeout}s", endpoint=url) from e
        except httpx.HTTPStatusError as e:
            raise AddonNetworkError(
                f"HTTP {e.response.status_code}", endpoint=url
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise AddonNetworkError(str(e) or type(e).__name__, endpoint=url) from e

        try:
            return resp.json()
        except ValueError as e:
            raise AddonDecodeError("response is not valid JSON", endpoint=url) from e

    @staticmethod
    def _decode(resource: ResourceKind, data: Any, url: str) -> Any:
        try:
            if resource is ResourceKind.META:
                meta = wire.MetaResponse.model_validate(data).meta
                return wire.meta_to_domain(meta) if meta is not None else None
            if resource is ResourceKind.STREAM:
                streams = wire.StreamsResponse.model_validate(data).streams
                return [wire.stream_to_domain(s) for s in streams]
            if resource is ResourceKind.SUBTITLES:
                subs = wire.SubtitlesResponse.model_validate(data).subtitles
                return [wire.subtitle_to_domain(s) for s in subs]
            metas = wire.CatalogResponse.model_validate(data).metas
            return [wire.meta_to_preview(m) for m in metas]
        except ValidationError as e:
            raise AddonDecodeError(
                f"invalid {resource.value} response: {e.error_count()} errors",
                endpoint=url,
            ) from e

    # ------------------------------------------------------------------
    # Public API (AddonClientPort)
    # ------------------------------------------------------------------

    async def fetch_manifest(self, manifest_url: str) -> AddonSource:
        url = normalize_manifest_url(manifest_url)
        data = await self._get_json(url, self._manifest_timeout)
        try:
            manifest = wire.Manifest.model_validate(data)
        except ValidationError as e:
            raise AddonDecodeError("invalid manifest", endpoint=url) from e

        source = wire.manifest_to_source(manifest, url)
        log.debug("addon_manifest_fetched", addon_id=source.id, url=url)
        return source

    async def fetch_resource(
        self,
        source: AddonSource,
        descriptor: QueryDescriptor,
        *,
        timeout: float | None = None,
    ) -> Any:
        url = build_resource_url(source, descriptor)
        data = await self._get_json(url, timeout or self._resource_timeout)
        payload = self._decode(descriptor.resource, data, url)
        log.debug(
            "addon_resource_fetched",
            addon_id=source.id,
            resource=descriptor.resource.value,
            id=descriptor.id,
        )
        return payload
