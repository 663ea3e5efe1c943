#!/usr/bin/env python3
"""feedsync - keep a feed account's items in the local record store.

Usage:
  feedsync sync                         # Log in and reconcile mentions/timeline
  feedsync item 1234567890              # Fetch one item (cache first)
  feedsync search "query" -n 10         # Search recent items
  feedsync config [--init|--path]       # Show or create the config file

Credentials come from `pass show api/feedsync` (KEY=VALUE lines) or the
FEED_USERNAME / FEED_PASSWORD / FEED_EMAIL / FEED_COOKIES environment.
"""

import argparse
import logging
import sys

from . import __version__
from .remote import SEARCH_MODE_LATEST, SEARCH_MODE_TOP

COMMANDS = {
    "sync": "run_sync",
    "item": "run_item",
    "search": "run_search",
    "config": "run_config",
}


def setup_logging(level: str | None = None) -> None:
    from .config import get

    level = (level or get("logging.level", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="feedsync",
        description=__doc__.split("\n\n")[0],
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("\n\n", 1)[1],
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING (default: from config)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    account = argparse.ArgumentParser(add_help=False)
    account.add_argument("--agent-id", help="Owning agent id (default: derived from the account name)")
    account.add_argument("--db", metavar="PATH", help="Record store SQLite file (default: per-account)")
    account.add_argument("--cookie-file", action="store_true",
                         help="Persist cookies in the cache dir instead of the record store")

    sync = subparsers.add_parser("sync", parents=[account], help="Log in and reconcile the timeline")
    sync.add_argument("--character", help="Display name recorded for the agent")
    sync.add_argument("--timeout", type=float, default=None, help="Give up after N seconds")

    item = subparsers.add_parser("item", parents=[account], help="Fetch one item by id")
    item.add_argument("item_id")

    search = subparsers.add_parser("search", parents=[account], help="Search recent items")
    search.add_argument("query")
    search.add_argument("--limit", "-n", type=int, default=20, help="Max results (default: 20)")
    search.add_argument("--mode", choices=[SEARCH_MODE_LATEST, SEARCH_MODE_TOP], default=SEARCH_MODE_LATEST)
    search.add_argument("--cursor", help="Continue from a previous page")

    cfg = subparsers.add_parser("config", help="Show or create the config file")
    action = cfg.add_mutually_exclusive_group()
    action.add_argument("--init", action="store_true", help="Write an example config file")
    action.add_argument("--path", action="store_true", help="Print the config file in use")
    cfg.add_argument("--force", action="store_true", help="Overwrite an existing file (with --init)")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    from . import commands

    return getattr(commands, COMMANDS[args.command])(args)


if __name__ == "__main__":
    sys.exit(main())
