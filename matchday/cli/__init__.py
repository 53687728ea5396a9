#!/usr/bin/env python3
"""
Matchday operator CLI

Usage:
    python -m matchday.cli <command> [options]

Commands:
    init-db       Create missing tables
    close-voting  Aggregate rating ballots and purge them
    finalize      Run the finalize check for a match
    release       Reveal results whose reveal time has passed
    snapshot      Freeze participants or outcome history
    deliver       Promote due pending notifications to sent

Environment:
    MATCHDAY_DATABASE_URL   async SQLAlchemy URL
    MATCHDAY_FAST_RESULTS   use the short reveal delay
"""
import argparse
import logging
import sys
from typing import Optional

from matchday import __version__
from matchday.cli.match_commands import MatchCommand


def setup_logging(level: str = "INFO") -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="matchday",
        description="Match rating & outcome engine operator CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s close-voting --match 42
  %(prog)s finalize --match 42 --fast
  %(prog)s release --match 42
  %(prog)s snapshot --match 42 --kind outcome --reason manual
  %(prog)s deliver
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--database-url",
        default=None,
        help="Override MATCHDAY_DATABASE_URL"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without executing"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init-db", help="Create missing tables")

    close_parser = subparsers.add_parser("close-voting", help="Close the rating round of a match")
    close_parser.add_argument("--match", "-m", type=int, required=True, help="Match ID")

    finalize_parser = subparsers.add_parser("finalize", help="Finalize a match if its surveys are complete")
    finalize_parser.add_argument("--match", "-m", type=int, required=True, help="Match ID")
    finalize_parser.add_argument("--fast", action="store_true", default=None, help="Use the short reveal delay")

    release_parser = subparsers.add_parser("release", help="Reveal results if due")
    release_parser.add_argument("--match", "-m", type=int, required=True, help="Match ID")

    snapshot_parser = subparsers.add_parser("snapshot", help="Freeze match history")
    snapshot_parser.add_argument("--match", "-m", type=int, required=True, help="Match ID")
    snapshot_parser.add_argument(
        "--kind",
        choices=["participants", "outcome", "all"],
        default="all",
        help="Snapshot to freeze (default: all)"
    )
    snapshot_parser.add_argument("--reason", default="manual", help="Close reason stored with the outcome snapshot")

    subparsers.add_parser("deliver", help="Deliver due notifications")

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 1

    setup_logging(parsed.log_level)

    handler = MatchCommand(database_url=parsed.database_url, dry_run=parsed.dry_run)
    return handler.execute(parsed)


if __name__ == "__main__":
    sys.exit(main())
