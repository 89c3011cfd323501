"""Command line entry point for throttler maintenance tasks."""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from .config import Config, load_config
from .errors import ThrottlerError
from .services import DatabaseService, RetentionService


def setup_logging(verbose: bool = False, level: str = "INFO") -> None:
    """Configure logging for the command line tools."""
    level_no = logging.DEBUG if verbose else getattr(logging, level)

    logging.basicConfig(
        level=level_no,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Reduce noise from libraries
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid ISO 8601 timestamp: {value}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def run_init_db(config: Config, logger: logging.Logger) -> int:
    db = DatabaseService.from_config(config)
    try:
        await db.initialize()
        logger.info("Database initialized successfully")
        return 0
    finally:
        await db.close()


async def run_purge(args, config: Config, logger: logging.Logger) -> int:
    db = DatabaseService.from_config(config)
    retention = RetentionService(db)
    try:
        if args.before is not None:
            cutoff = args.before
        else:
            days = args.days if args.days is not None else config.retention.default_days
            cutoff = retention.clock.now() - timedelta(days=days)

        logger.info("Purging throttle events older than %s", cutoff.isoformat())
        count = await retention.purge_events_older_than(cutoff, args.scope, args.key)
        print(count)
        return 0
    finally:
        await db.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Maintenance commands for database-backed throttles",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s init-db                          # Create tables from config.yaml
  %(prog)s purge                            # Purge events older than retention.default_days
  %(prog)s purge --days 30                  # Purge events older than 30 days
  %(prog)s purge --before 2024-01-01T00:00  # Purge events before a fixed instant
  %(prog)s purge --scope user_1 --key digest --days 7
        """,
    )

    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("init-db", help="Create the throttler tables")

    purge = subparsers.add_parser("purge", help="Delete old throttle events")
    when = purge.add_mutually_exclusive_group()
    when.add_argument("--days", type=int, help="Delete events older than N days")
    when.add_argument(
        "--before", type=parse_timestamp, help="Delete events before this ISO 8601 timestamp"
    )
    purge.add_argument("--scope", help="Only purge this scope (requires --key)")
    purge.add_argument("--key", help="Only purge this key (requires --scope)")

    args = parser.parse_args(argv)

    if args.command == "purge" and (args.scope is None) != (args.key is None):
        parser.error("--scope and --key must be given together")

    logger = logging.getLogger(__name__)

    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        setup_logging(args.verbose)
        logger.error(str(e))
        return 1
    except ValueError as e:
        setup_logging(args.verbose)
        logger.error("Invalid configuration: %s", e)
        return 1

    setup_logging(args.verbose, config.logging.level)

    try:
        if args.command == "init-db":
            return asyncio.run(run_init_db(config, logger))
        return asyncio.run(run_purge(args, config, logger))
    except ThrottlerError as e:
        logger.error("%s", e)
        return 1
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
