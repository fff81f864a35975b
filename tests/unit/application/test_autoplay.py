"""Tests for autoplay candidate selection and the orchestrator state machine."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from aggregarr.application.use_cases.autoplay import (
    NO_PLAYABLE_STREAM,
    AutoplayOrchestrator,
    AutoplayRequest,
    autoplay_candidates,
    should_autoplay,
)
from aggregarr.domain.entities.media import PlaybackTarget, Stream
from aggregarr.domain.entities.playback import AutoplayState

_REQUEST = AutoplayRequest(meta_id="tt1", video_id="tt1:1:2", content_type="series")


@pytest.fixture()
def ledger() -> MagicMock:
    mock = MagicMock()
    mock.get_last_stream_target.return_value = None
    mock.set_last_stream_target = AsyncMock()
    return mock


def _orchestrator(ledger, opener, notifier, **kw) -> AutoplayOrchestrator:
    return AutoplayOrchestrator(ledger=ledger, opener=opener, notifier=notifier, **kw)


class TestShouldAutoplay:
    @pytest.mark.parametrize(
        ("param", "setting", "expected"),
        [
            ("1", False, True),
            ("true", False, True),
            ("TRUE", False, True),
            ("0", True, False),
            ("no", True, False),
            (None, True, True),
            ("", False, False),
        ],
    )
    def test_param_wins_over_setting(
        self, param: str | None, setting: bool, expected: bool
    ) -> None:
        assert should_autoplay(param, setting) is expected


class TestAutoplayCandidates:
    def test_unavailable_streams_dropped(self, make_stream) -> None:
        streams = [Stream(), make_stream("u1")]
        assert [s.url for s in autoplay_candidates(streams)] == ["u1"]

    def test_binge_group_filter(self, make_stream) -> None:
        streams = [
            make_stream("u1", binge_group="a"),
            make_stream("u2", binge_group="b"),
            make_stream("u3"),
        ]
        assert [s.url for s in autoplay_candidates(streams, "b")] == ["u2"]


class TestAutoplayOrchestrator:
    async def test_remembered_target_preferred(
        self, ledger, opener, notifier, make_stream
    ) -> None:
        remembered = PlaybackTarget(type="external", value="https://ext/1")
        ledger.get_last_stream_target.return_value = remembered
        orch = _orchestrator(ledger, opener, notifier)

        state = await orch.run(_REQUEST, [make_stream("u1")])

        assert state is AutoplayState.RESOLVED
        opener.open.assert_awaited_once_with(remembered)
        ledger.get_last_stream_target.assert_called_once_with("tt1", "tt1:1:2")

    async def test_first_candidate_plays(
        self, ledger, opener, notifier, make_stream
    ) -> None:
        orch = _orchestrator(ledger, opener, notifier)

        state = await orch.run(_REQUEST, [make_stream("u1"), make_stream("u2")])

        assert state is AutoplayState.PLAYING
        assert orch.attempts == 1
        ledger.set_last_stream_target.assert_not_awaited()
        notifier.notify.assert_not_called()

    async def test_external_success_remembered(
        self, ledger, opener, notifier, make_stream
    ) -> None:
        orch = _orchestrator(ledger, opener, notifier)

        await orch.run(_REQUEST, [make_stream(None, external_url="https://ext/2")])

        ledger.set_last_stream_target.assert_awaited_once_with(
            "tt1",
            "tt1:1:2",
            "series",
            PlaybackTarget(type="external", value="https://ext/2"),
        )

    async def test_never_exceeds_max_attempts(
        self, ledger, opener, notifier, make_stream
    ) -> None:
        opener.open.return_value = False
        streams = [make_stream(None, yt_id=f"y{i}") for i in range(5)]
        orch = _orchestrator(ledger, opener, notifier, max_attempts=3)

        state = await orch.run(_REQUEST, streams)

        assert state is AutoplayState.EXHAUSTED
        assert orch.failed
        assert orch.attempts == 3
        assert opener.open.await_count == 3
        notifier.notify.assert_called_once_with(NO_PLAYABLE_STREAM, level="error")

    async def test_tries_candidates_in_order(
        self, ledger, opener, notifier, make_stream
    ) -> None:
        opener.open.side_effect = [False, True]
        streams = [make_stream(None, yt_id="y1"), make_stream(None, yt_id="y2")]
        orch = _orchestrator(ledger, opener, notifier)

        state = await orch.run(_REQUEST, streams)

        assert state is AutoplayState.PLAYING
        opened = [c.args[0].value for c in opener.open.await_args_list]
        assert opened == ["y1", "y2"]

    async def test_no_candidates_exhausts(self, ledger, opener, notifier) -> None:
        orch = _orchestrator(ledger, opener, notifier)

        state = await orch.run(_REQUEST, [Stream()])

        assert state is AutoplayState.EXHAUSTED
        opener.open.assert_not_awaited()
        notifier.notify.assert_called_once()

    async def test_binge_group_restricts_candidates(
        self, ledger, opener, notifier, make_stream
    ) -> None:
        request = AutoplayRequest("tt1", "tt1:1:3", "series", binge_group="hd")
        streams = [
            make_stream("sd", binge_group="sd"),
            make_stream("hd", binge_group="hd"),
        ]
        orch = _orchestrator(ledger, opener, notifier)

        await orch.run(request, streams)

        target = opener.open.await_args.args[0]
        assert target == PlaybackTarget(type="url", value="hd")

    async def test_runs_once(self, ledger, opener, notifier, make_stream) -> None:
        orch = _orchestrator(ledger, opener, notifier)

        await orch.run(_REQUEST, [make_stream("u1")])
        state = await orch.run(_REQUEST, [make_stream("u2")])

        assert state is AutoplayState.PLAYING
        assert opener.open.await_count == 1
