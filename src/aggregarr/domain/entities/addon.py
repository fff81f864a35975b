"""Domain entities for installed addon sources.

Pure value objects: no framework dependencies, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal

# Open string enum: addons may declare types we do not know about.
ContentType = str

KNOWN_CONTENT_TYPES: tuple[str, ...] = ("movie", "series", "channel", "tv", "other")


class ResourceKind(str, Enum):
    """Resource kinds an addon can serve."""

    CATALOG = "catalog"
    META = "meta"
    STREAM = "stream"
    SUBTITLES = "subtitles"


AddonFlagName = Literal["use_on_home", "use_in_search", "use_for_subtitles"]


@dataclass(frozen=True)
class AddonResource:
    """A resource declared in a manifest.

    ``types`` is ``None`` when the manifest used the plain string form,
    meaning the resource applies to every declared type.
    """

    name: str
    types: tuple[str, ...] | None = None
    id_prefixes: tuple[str, ...] | None = None


@dataclass(frozen=True)
class ManifestCatalog:
    """A catalog entry from an addon manifest."""

    type: str
    id: str
    name: str = ""
    extra_names: tuple[str, ...] = ()
    required_extra_names: tuple[str, ...] = ()

    @property
    def is_searchable(self) -> bool:
        return "search" in self.extra_names


@dataclass(frozen=True)
class AddonFlags:
    """Per-addon usage toggles. All enabled on install."""

    use_on_home: bool = True
    use_in_search: bool = True
    use_for_subtitles: bool = True


@dataclass(frozen=True)
class AddonSource:
    """An installed addon, immutable for the duration of one aggregation call."""

    id: str
    manifest_url: str
    name: str
    version: str = ""
    description: str = ""
    declared_types: tuple[str, ...] = ()
    resources: tuple[AddonResource, ...] = ()
    id_prefixes: tuple[str, ...] = ()
    catalogs: tuple[ManifestCatalog, ...] = ()
    flags: AddonFlags = field(default_factory=AddonFlags)
    installed_at: datetime | None = None

    @property
    def base_url(self) -> str:
        """Transport base: manifest URL without the trailing ``/manifest.json``."""
        url = self.manifest_url
        suffix = "/manifest.json"
        if url.endswith(suffix):
            return url[: -len(suffix)]
        return url.rstrip("/")

    def find_resource(self, name: str) -> AddonResource | None:
        for resource in self.resources:
            if resource.name == name:
                return resource
        return None
