"""Pydantic configuration models with validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]
CacheBackend = Literal["diskcache", "redis"]


def _normalize_path(value: Any) -> Path:
    """
    Normalize a path-like value without causing filesystem side-effects.

    This function MUST NOT create directories or files.
    """
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise TypeError(f"Expected path-like value, got: {type(value)!r}")


class CacheConfig(BaseModel):
    """Persistence backend for addon registry, ledger and profile state."""

    model_config = {"populate_by_name": True}

    backend: CacheBackend = Field(
        default="diskcache",
        description="State backend: 'diskcache' (SQLite) or 'redis'",
    )
    directory: Path = Field(
        default=Path("./.cache/aggregarr"),
        alias="dir",
        description="Diskcache SQLite directory",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL (only when backend=redis)",
    )
    max_concurrent: int = Field(
        default=10,
        description="Max parallel cache ops (semaphore limit)",
    )

    @field_validator("directory", mode="before")
    @classmethod
    def _validate_directory(cls, v: Any) -> Path:
        return _normalize_path(v)


class FanOutConfig(BaseModel):
    """Per-source request behaviour for scatter-gather queries."""

    source_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout for one catalog/meta/stream/subtitles request.",
    )
    manifest_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for fetching an addon manifest.",
    )
    retries: int = Field(
        default=0,
        description="Extra attempts after a network failure (timeouts never retry).",
    )
    max_concurrent_sources: int = Field(
        default=8,
        description="Max addons queried in parallel for one query.",
    )

    @field_validator("source_timeout_seconds", "manifest_timeout_seconds")
    @classmethod
    def _validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be > 0")
        return v

    @field_validator("retries")
    @classmethod
    def _validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("retries must be >= 0")
        return v


class PlaybackConfig(BaseModel):
    """Watch progress thresholds and autoplay limits."""

    min_ratio: float = Field(
        default=0.05,
        description="Progress ratio needed before a new ledger entry is created.",
    )
    finished_ratio: float = Field(
        default=0.9,
        description="Progress ratio at which a part counts as watched.",
    )
    persist_interval_seconds: float = Field(
        default=5.0,
        description="Minimum interval between throttled progress writes.",
    )
    max_autoplay_attempts: int = Field(
        default=3,
        description="Max stream candidates autoplay tries before giving up.",
    )

    @model_validator(mode="after")
    def _validate_ratios(self) -> "PlaybackConfig":
        if not 0 <= self.min_ratio < self.finished_ratio <= 1:
            raise ValueError("expected 0 <= min_ratio < finished_ratio <= 1")
        if self.max_autoplay_attempts < 1:
            raise ValueError("max_autoplay_attempts must be >= 1")
        return self


class SubtitlesConfig(BaseModel):
    fetch_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout for downloading one subtitle file.",
    )
    default_preferred_languages: list[str] = Field(
        default_factory=lambda: ["en"],
        description="Language order used when a profile has no preference.",
    )


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (http/logging/cache/fanout/playback/subtitles).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    # General
    app_name: str = Field(default="aggregarr", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # HTTP client (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=15.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="Default HTTP timeout (seconds).",
    )
    http_follow_redirects: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "http_follow_redirects",
            AliasPath("http", "follow_redirects"),
        ),
        description="Follow HTTP redirects.",
    )
    http_user_agent: str = Field(
        default="Aggregarr/0.1.0",
        validation_alias=AliasChoices(
            "http_user_agent",
            AliasPath("http", "user_agent"),
        ),
        description="User-Agent for outgoing HTTP requests.",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    cache: CacheConfig = Field(default_factory=CacheConfig)
    fanout: FanOutConfig = Field(default_factory=FanOutConfig)
    playback: PlaybackConfig = Field(default_factory=PlaybackConfig)
    subtitles: SubtitlesConfig = Field(default_factory=SubtitlesConfig)

    @field_validator("http_timeout_seconds")
    @classmethod
    def _validate_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("http_timeout_seconds must be > 0")
        return v

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """
        Dump configuration in the sectioned shape used by config.yaml/docs.
        """
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "http": {
                "timeout_seconds": self.http_timeout_seconds,
                "follow_redirects": self.http_follow_redirects,
                "user_agent": self.http_user_agent,
            },
            "logging": {"level": self.log_level, "format": self.log_format},
            "cache": {
                "backend": self.cache.backend,
                "dir": str(self.cache.directory),
                "redis_url": self.cache.redis_url,
                "max_concurrent": self.cache.max_concurrent,
            },
            "fanout": self.fanout.model_dump(),
            "playback": self.playback.model_dump(),
            "subtitles": self.subtitles.model_dump(),
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    Intended usage:
    - load.py creates EnvOverrides() to read AGGREGARR_* variables,
      converts to dict of set values, merges into YAML/defaults,
      then validates AppConfig.

    Supported env var examples (flat, explicit):
    - AGGREGARR_HTTP_TIMEOUT_SECONDS
    - AGGREGARR_CACHE_BACKEND
    - AGGREGARR_FANOUT_SOURCE_TIMEOUT_SECONDS
    - AGGREGARR_LOG_LEVEL
    """

    model_config = SettingsConfigDict(
        env_prefix="AGGREGARR_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_timeout_seconds: Optional[float] = None
    http_follow_redirects: Optional[bool] = None
    http_user_agent: Optional[str] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    cache_backend: Optional[CacheBackend] = None
    cache_dir: Optional[Path] = None
    cache_redis_url: Optional[str] = None

    fanout_source_timeout_seconds: Optional[float] = None
    fanout_manifest_timeout_seconds: Optional[float] = None
    fanout_retries: Optional[int] = None
    fanout_max_concurrent_sources: Optional[int] = None

    playback_min_ratio: Optional[float] = None
    playback_finished_ratio: Optional[float] = None
    playback_persist_interval_seconds: Optional[float] = None
    playback_max_autoplay_attempts: Optional[int] = None

    subtitles_fetch_timeout_seconds: Optional[float] = None

    @field_validator("cache_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Any:
        if v is None:
            return None
        return _normalize_path(v)

    def to_update_dict(self) -> dict[str, Any]:
        """
        Return only values that were actually provided (non-None), for merging.
        """
        return self.model_dump(exclude_none=True)
