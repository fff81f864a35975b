from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Iterable
from dataclasses import asdict, is_dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

import structlog

from aggregarr.application.use_cases.continuity import home_entries
from aggregarr.application.use_cases.subtitle_merge import combine_subtitles
from aggregarr.domain.entities.errors import AggregarrError
from aggregarr.domain.entities.query import AggregateResult
from aggregarr.domain.entities.subtitles import SubtitleTrack
from aggregarr.infrastructure.config import AppConfig, load_config
from aggregarr.infrastructure.logging.setup import configure_logging
from aggregarr.interfaces.composition import Engine, engine_lifespan

log = structlog.get_logger(__name__)


def _parse_args(argv: Iterable[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="aggregarr")

    # Config wiring flags (no business logic)
    parser.add_argument(
        "--config",
        default=None,
        help="Path to YAML config file.",
    )
    parser.add_argument(
        "--dotenv",
        default=None,
        help="Path to .env file.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level.",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        choices=["json", "console"],
        help="Override log format.",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    install = commands.add_parser("install", help="Install an addon by manifest URL.")
    install.add_argument("url")

    commands.add_parser("addons", help="List installed addons.")

    for name, help_text in (
        ("meta", "Show metadata for a title."),
        ("streams", "List streams for a title or episode."),
        ("subtitles", "List merged subtitle tracks for a title or episode."),
    ):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("type", help="Content type, e.g. movie or series.")
        sub.add_argument("id", help="Title id, or episode id for series.")

    search = commands.add_parser("search", help="Search every searchable catalog.")
    search.add_argument("query")

    commands.add_parser("continue", help="Show the continue-watching row.")

    return parser.parse_args(argv)


def _to_jsonable(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return _to_jsonable(asdict(value))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    return value


def _print_json(value: Any) -> None:
    print(json.dumps(_to_jsonable(value), indent=2, ensure_ascii=False))


def _print_aggregate(result: AggregateResult[Any]) -> int:
    _print_json(
        {
            "status": result.status,
            "data": result.data,
            "error": result.error.message if result.error else None,
            "failures": [
                {"addon_id": f.source.id, "kind": f.kind, "message": f.message}
                for f in result.failures
            ],
        }
    )
    return 1 if result.is_error else 0


async def _subtitles(engine: Engine, content_type: str, video_id: str) -> int:
    result = await engine.queries.subtitles(content_type, video_id)
    settings = engine.profile_settings.get()
    tracks: list[SubtitleTrack] = combine_subtitles(
        [],
        result.data,
        settings.preferred_subtitle_languages,
        default_languages=tuple(engine.config.subtitles.default_preferred_languages),
    )
    error = result.error.message if result.error else None
    _print_json({"status": result.status, "error": error, "tracks": tracks})
    return 1 if result.is_error else 0


async def _run(args: argparse.Namespace, config: AppConfig) -> int:
    async with engine_lifespan(config) as engine:
        if args.command == "install":
            _print_json(await engine.registry.install(args.url))
            return 0
        if args.command == "addons":
            _print_json(engine.registry.list_sources())
            return 0
        if args.command == "meta":
            return _print_aggregate(await engine.queries.meta(args.type, args.id))
        if args.command == "streams":
            return _print_aggregate(await engine.queries.streams(args.type, args.id))
        if args.command == "subtitles":
            return await _subtitles(engine, args.type, args.id)
        if args.command == "search":
            return _print_aggregate(await engine.queries.search(args.query))
        if args.command == "continue":
            _print_json(
                home_entries(
                    engine.ledger.all_items(),
                    engine.hidden.hidden_meta_ids(),
                    min_ratio=config.playback.min_ratio,
                    finished_ratio=config.playback.finished_ratio,
                )
            )
            return 0
    raise AssertionError(f"unhandled command: {args.command}")


def start(argv: Iterable[str] | None = None) -> int:
    """
    Process entrypoint.

    Loads config exactly once, configures logging, then runs one command.
    """
    if argv is None:
        argv = sys.argv[1:]

    args = _parse_args(argv)

    config_path = Path(args.config) if args.config else None
    dotenv_path = Path(args.dotenv) if args.dotenv else None

    cli_overrides: dict[str, Any] = {}
    if args.log_level:
        cli_overrides["log_level"] = args.log_level
    if args.log_format:
        cli_overrides["log_format"] = args.log_format

    config = load_config(
        config_path=config_path,
        dotenv_path=dotenv_path,
        cli_overrides=cli_overrides,
    )

    configure_logging(config)

    try:
        return asyncio.run(_run(args, config))
    except AggregarrError as e:
        log.error("command_failed", command=args.command, error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(start())
