"""CLI 入口。"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, tzinfo
from typing import Sequence

from daytrack.config import ConfigError, load_app_config
from daytrack.domain.errors import SlotNotFoundError, TimelineError
from daytrack.domain.timeline_types import (
    CATEGORIES,
    Location,
    OutputMode,
    TimelineResult,
    TimeSlot,
    parse_category,
)
from daytrack.formatters.timeline_json import render_timeline_json
from daytrack.formatters.timeline_pretty import render_timeline_pretty
from daytrack.services.timeline_items import get_timeline
from daytrack.services.tracking_service import open_tracking_session


def build_parser() -> argparse.ArgumentParser:
    """构建命令行参数解析器。"""

    parser = argparse.ArgumentParser(prog="daytrack", description="Daytrack CLI")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logs.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    add_parser = subparsers.add_parser("add", help="Start a new time slot.")
    add_parser.add_argument("--category", required=True, choices=CATEGORIES)
    add_parser.add_argument("--at", help="Start time (ISO 8601). Defaults to now.")
    _add_location_arguments(add_parser, required=False)
    _add_common_arguments(add_parser)

    track_parser = subparsers.add_parser(
        "track",
        help="Record a location fix and let smart guesses pick the category.",
    )
    track_parser.add_argument("--at", help="Fix time (ISO 8601). Defaults to now.")
    _add_location_arguments(track_parser, required=True)
    _add_common_arguments(track_parser)

    recategorize_parser = subparsers.add_parser(
        "recategorize",
        help="Change the category of a time slot.",
    )
    recategorize_parser.add_argument(
        "--start",
        required=True,
        help="Start time (ISO 8601) of the time slot to change.",
    )
    recategorize_parser.add_argument("--category", required=True, choices=CATEGORIES)
    _add_common_arguments(recategorize_parser)

    guess_parser = subparsers.add_parser("guess", help="Predict a category for a location.")
    _add_location_arguments(guess_parser, required=True)
    _add_common_arguments(guess_parser)

    timeline_parser = subparsers.add_parser(
        "timeline",
        help="Get timeline for a date.",
    )
    timeline_parser.add_argument(
        "--date",
        default="today",
        help="Date expression: today | yesterday | YYYY-MM-DD",
    )
    timeline_parser.add_argument(
        "--output",
        choices=["pretty", "json", "both"],
        default="pretty",
        help="Output format.",
    )
    timeline_parser.add_argument(
        "--no-emoji",
        action="store_true",
        help="Disable emoji in pretty output.",
    )
    _add_common_arguments(timeline_parser)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """CLI 主入口。"""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    handlers = {
        "add": _run_add,
        "track": _run_track,
        "recategorize": _run_recategorize,
        "guess": _run_guess,
        "timeline": _run_timeline,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        return handler(args)
    except (ConfigError, TimelineError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--db-path",
        help="Path to the daytrack sqlite database file.",
    )
    parser.add_argument(
        "--timezone",
        help="IANA timezone name. Defaults to the system timezone.",
    )


def _add_location_arguments(parser: argparse.ArgumentParser, required: bool) -> None:
    parser.add_argument("--lat", type=float, required=required, help="Latitude in degrees.")
    parser.add_argument("--lon", type=float, required=required, help="Longitude in degrees.")


def _run_add(args: argparse.Namespace) -> int:
    config = load_app_config(db_path=args.db_path, timezone_name=args.timezone)
    start_time = _parse_instant(args.at, config.timezone)
    if (args.lat is None) != (args.lon is None):
        raise ValueError("--lat and --lon must be given together.")

    with open_tracking_session(config=config) as session:
        tracking = session.tracking
        start_time = start_time or tracking.time_slot_service.now()
        location = None
        if args.lat is not None:
            location = Location(latitude=args.lat, longitude=args.lon, timestamp=start_time)
        time_slot = tracking.add_new_slot(
            parse_category(args.category),
            start_time=start_time,
            location=location,
        )
    print(_describe_time_slot(time_slot))
    return 0


def _run_track(args: argparse.Namespace) -> int:
    with open_tracking_session(db_path=args.db_path, timezone_name=args.timezone) as session:
        tracking = session.tracking
        at = _parse_instant(args.at, session.config.timezone)
        location = Location(
            latitude=args.lat,
            longitude=args.lon,
            timestamp=at or tracking.time_slot_service.now(),
        )
        time_slot = tracking.track_location(location)
    print(_describe_time_slot(time_slot))
    return 0


def _run_recategorize(args: argparse.Namespace) -> int:
    with open_tracking_session(db_path=args.db_path, timezone_name=args.timezone) as session:
        tracking = session.tracking
        start_time = _parse_instant(args.start, session.config.timezone)
        if start_time is None:
            raise ValueError("--start is required.")
        time_slot = tracking.time_slot_service.find(start_time)
        if time_slot is None:
            raise SlotNotFoundError(f"No TimeSlot starts at {start_time.isoformat()}.")
        updated = tracking.recategorize_slot(time_slot, parse_category(args.category))
    print(_describe_time_slot(updated))
    return 0


def _run_guess(args: argparse.Namespace) -> int:
    with open_tracking_session(db_path=args.db_path, timezone_name=args.timezone) as session:
        tracking = session.tracking
        location = Location(
            latitude=args.lat,
            longitude=args.lon,
            timestamp=tracking.time_slot_service.now(),
        )
        category = tracking.smart_guess_service.predict(location)
    print(category or "无猜测")
    return 0


def _run_timeline(args: argparse.Namespace) -> int:
    timeline = get_timeline(
        date_expr=args.date,
        db_path=args.db_path,
        timezone_name=args.timezone,
    )
    output: OutputMode = args.output
    _render_output(timeline=timeline, output=output, emoji=not args.no_emoji)
    return 0


def _render_output(timeline: TimelineResult, output: OutputMode, emoji: bool) -> None:
    if output in ("pretty", "both"):
        print(
            render_timeline_pretty(
                timeline,
                emoji=emoji,
                duration_unit_style=timeline.duration_unit_style,
            )
        )
    if output == "both":
        print()
    if output in ("json", "both"):
        print(render_timeline_json(timeline))


def _parse_instant(value: str | None, tz: tzinfo) -> datetime | None:
    """解析 ISO 8601 时间，缺少时区时按配置时区处理。"""

    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError as exc:
        raise ValueError(f"Invalid ISO 8601 time: {value}") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    return parsed


def _describe_time_slot(time_slot: TimeSlot) -> str:
    end_text = time_slot.end_time.isoformat() if time_slot.end_time else "running"
    if time_slot.category_set_by_user:
        source = "user"
    elif time_slot.smart_guess_id is not None:
        source = f"guess #{time_slot.smart_guess_id}"
    else:
        source = "auto"
    return f"{time_slot.category} {time_slot.start_time.isoformat()} -> {end_text} ({source})"


if __name__ == "__main__":
    raise SystemExit(main())
