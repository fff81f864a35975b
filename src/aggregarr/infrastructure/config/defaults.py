"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "aggregarr",
    "environment": "dev",
    "http": {
        "timeout_seconds": 15.0,
        "follow_redirects": True,
        "user_agent": "Aggregarr/0.1.0",
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "cache": {
        "backend": "diskcache",
        "dir": "./.cache/aggregarr",
        "redis_url": "redis://localhost:6379/0",
        "max_concurrent": 10,
    },
    "fanout": {
        "source_timeout_seconds": 15.0,
        "manifest_timeout_seconds": 10.0,
        "retries": 0,
        "max_concurrent_sources": 8,
    },
    "playback": {
        "min_ratio": 0.05,
        "finished_ratio": 0.9,
        "persist_interval_seconds": 5.0,
        "max_autoplay_attempts": 3,
    },
    "subtitles": {
        "fetch_timeout_seconds": 15.0,
        "default_preferred_languages": ["en"],
    },
}
