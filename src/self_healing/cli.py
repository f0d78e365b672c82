"""
Command line maintenance for the locator cache.

Usage:
    self-healing-cache stats
    self-healing-cache list
    self-healing-cache --cache-path cache/locator_cache.json delete "#old-id"
    self-healing-cache clear
"""

import argparse
import json
import sys
from typing import List, Optional

from .core.config import get_settings
from .core.logging_config import setup_healing_logging
from .services.locator_cache import DEFAULT_MAX_AGE_DAYS, LocatorCache
from .services.statistics_reporter import StatisticsReporter


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="self-healing-cache",
        description="Inspect and maintain the self-healing locator cache"
    )
    parser.add_argument(
        "--cache-path",
        default=None,
        help="Path of the cache document (default: CACHE_PATH setting)"
    )
    parser.add_argument(
        "--max-age-days",
        type=float,
        default=DEFAULT_MAX_AGE_DAYS,
        help=f"Drop entries older than this many days when loading (default: {DEFAULT_MAX_AGE_DAYS})"
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Log level for cache diagnostics (default: WARNING)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("stats", help="Show cache statistics")
    subparsers.add_parser("list", help="Print all cache entries as JSON")
    subparsers.add_parser("clear", help="Remove all cache entries")
    delete_parser = subparsers.add_parser("delete", help="Remove one cache entry")
    delete_parser.add_argument("key", help="Original locator of the entry to remove")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the cache maintenance CLI and return the process exit code."""
    args = build_parser().parse_args(argv)

    settings = get_settings()
    setup_healing_logging(
        log_level=args.log_level,
        log_dir=settings.LOG_DIR,
        enabled=settings.ENABLE_LOGGING
    )

    cache_path = args.cache_path or settings.CACHE_PATH
    cache = LocatorCache(cache_path, args.max_age_days)

    if args.command == "stats":
        print(StatisticsReporter(cache).format_report())
        return 0

    if args.command == "list":
        entries = {key: entry.to_dict() for key, entry in cache.get_all_entries().items()}
        print(json.dumps(entries, indent=2))
        return 0

    if args.command == "clear":
        count = len(cache)
        cache.clear()
        print(f"Cleared {count} cache entries from {cache_path}")
        return 0

    if args.command == "delete":
        if cache.delete(args.key):
            print(f"Deleted cache entry for {args.key}")
            return 0
        print(f"No cache entry for {args.key}", file=sys.stderr)
        return 1

    return 2


if __name__ == "__main__":
    sys.exit(main())
