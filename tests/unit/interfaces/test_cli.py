"""Tests for CLI argument parsing and JSON output conversion."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from aggregarr.domain.entities.query import AggregateStatus
from aggregarr.domain.entities.subtitles import SubtitleTrack
from aggregarr.interfaces.cli.cli import _parse_args, _to_jsonable


class TestParseArgs:
    def test_streams(self) -> None:
        args = _parse_args(["streams", "series", "tt1:1:2"])

        assert args.command == "streams"
        assert (args.type, args.id) == ("series", "tt1:1:2")

    def test_global_flags(self) -> None:
        args = _parse_args(
            ["--config", "c.yaml", "--log-level", "DEBUG", "search", "dune"]
        )

        assert args.config == "c.yaml"
        assert args.log_level == "DEBUG"
        assert args.query == "dune"

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            _parse_args([])

    def test_invalid_log_format(self) -> None:
        with pytest.raises(SystemExit):
            _parse_args(["--log-format", "xml", "addons"])


class TestToJsonable:
    def test_nested_values(self) -> None:
        track = SubtitleTrack(source="video", index=0, language="en")
        when = datetime(2024, 1, 2, tzinfo=timezone.utc)

        out = _to_jsonable(
            {"status": AggregateStatus.SUCCESS, "tracks": (track,), "at": when, 1: None}
        )

        assert out["status"] == AggregateStatus.SUCCESS.value
        assert out["tracks"][0]["language"] == "en"
        assert out["at"] == "2024-01-02T00:00:00+00:00"
        assert out["1"] is None
