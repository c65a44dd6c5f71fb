"""CLI entry point and subcommand assembly."""

import argparse
import logging
import sys

from cardverse.db import get_db_path
from cardverse.utils import get_user_id


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cardverse",
        description="CardVerse - import decks, search Scryfall and track your Magic: The Gathering inventory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--db",
        metavar="PATH",
        help="Database path (default: $HOME/.cardverse/cardverse.sqlite, or CARDVERSE_DB env var)",
    )
    parser.add_argument(
        "--user",
        metavar="ID",
        help="User that owns decks and inventory (default: CARDVERSE_USER env var or 'local')",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", metavar="<command>")

    from cardverse.cli import db_cmd, deck_cmd, inventory_cmd, news, search, stats

    modules = [db_cmd, deck_cmd, inventory_cmd, news, search, stats]

    # The assistant commands need anthropic; the rest of the CLI works without it
    try:
        from cardverse.cli import ai_cmd
        modules.append(ai_cmd)
    except ImportError:
        pass

    for module in modules:
        module.register(subparsers)

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    args.db_path = get_db_path(args.db)
    args.user_id = get_user_id(args.user)

    args.func(args)
