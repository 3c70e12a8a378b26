"""Command-line entry for calendar_aggregator.

Prints the occurrences of a time window as JSON.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from .config_manager import ConfigManager
from .datetime_utils import parse_window_bound
from .dependencies import build_dependencies
from .http_client import close_all_clients
from .logging_config import configure_logging

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the calendar_aggregator CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="calendar_aggregator",
        description="List calendar feed and cron job occurrences in a time window",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m calendar_aggregator                                   # now .. now + 30 days
  python -m calendar_aggregator --start 2024-06-01 --end 2024-06-08
  python -m calendar_aggregator --cron-only
        """,
    )
    parser.add_argument("--start", metavar="ISO", help="Window start (default: now)")
    parser.add_argument("--end", metavar="ISO", help="Window end (default: now + 30 days)")
    parser.add_argument("--cron-only", action="store_true", help="Only list cron job occurrences")
    parser.add_argument("--sources-file", type=Path, help="Feed source config (JSON)")
    parser.add_argument("--jobs-file", type=Path, help="Cron job definitions (JSON)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


async def _run(args: argparse.Namespace) -> list[dict]:
    config = ConfigManager().load_full_config()
    if args.sources_file is not None:
        config.sources_file = args.sources_file
    if args.jobs_file is not None:
        config.jobs_file = args.jobs_file

    configure_logging(debug_mode=args.debug or config.debug, level_name=config.log_level)

    start = parse_window_bound(args.start) if args.start else None
    end = parse_window_bound(args.end) if args.end else None

    deps = build_dependencies(config)
    try:
        if args.cron_only:
            events = deps.service.list_cron_events(start, end)
        else:
            events = await deps.service.list_events(start, end)
    finally:
        await close_all_clients()

    return [event.to_dict() for event in events]


def main(argv: Optional[list[str]] = None) -> int:
    """Run the calendar_aggregator CLI.

    Returns:
        Process exit code
    """
    parser = _create_parser()
    args = parser.parse_args(argv)

    for value in (args.start, args.end):
        if value is None:
            continue
        try:
            parse_window_bound(value)
        except ValueError:
            print(f"Invalid timestamp: {value!r}", file=sys.stderr)
            return 2

    events = asyncio.run(_run(args))
    print(json.dumps(events, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
