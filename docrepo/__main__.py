"""docrepo CLI entry point."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import yaml
from pydantic import ValidationError

from docrepo import __version__
from docrepo.config import get_settings
from docrepo.connection import check_connection, close_clients, get_connection_info
from docrepo.exceptions import RepositoryError
from docrepo.observability import configure_logging, initialize_logfire
from docrepo.stores.motor import MotorDocumentStore

logger = logging.getLogger(__name__)


def cmd_config(args: argparse.Namespace) -> int:
    """Display merged configuration with secrets masked."""
    try:
        settings = get_settings()
        if args.file:
            settings.load_yaml_config(Path(args.file))
        print(yaml.safe_dump(settings.masked(), sort_keys=False))
        return 0
    except (ValidationError, yaml.YAMLError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1


def cmd_ping(args: argparse.Namespace) -> int:
    """Check that MongoDB is reachable."""

    async def run() -> bool:
        try:
            return await check_connection(args.url)
        finally:
            close_clients()

    info = get_connection_info(args.url)
    if asyncio.run(run()):
        logger.info(f"MongoDB reachable at {info['url']}")
        return 0
    logger.error(f"MongoDB not reachable at {info['url']}")
    return 1


def cmd_count(args: argparse.Namespace) -> int:
    """Count documents in a collection."""
    settings = get_settings()

    async def run() -> int:
        try:
            store = MotorDocumentStore.from_connection(
                args.url,
                args.database or settings.mongo.database,
                args.collection,
            )
            return await store.count({})
        finally:
            close_clients()

    try:
        total = asyncio.run(run())
    except RepositoryError as e:
        logger.error(str(e))
        return 1

    print(total)
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="docrepo",
        description="Inspect docrepo configuration and MongoDB connectivity",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_config = subparsers.add_parser(
        "config",
        help="Display merged configuration",
    )
    parser_config.add_argument("--file", help="YAML file to merge over environment settings")
    parser_config.set_defaults(func=cmd_config)

    parser_ping = subparsers.add_parser(
        "ping",
        help="Check MongoDB connectivity",
    )
    parser_ping.add_argument("--url", help="Connection string (defaults to MONGO__URL)")
    parser_ping.set_defaults(func=cmd_ping)

    parser_count = subparsers.add_parser(
        "count",
        help="Count documents in a collection",
    )
    parser_count.add_argument("--url", help="Connection string (defaults to MONGO__URL)")
    parser_count.add_argument("--database", help="Database name (defaults to MONGO__DATABASE)")
    parser_count.add_argument("--collection", required=True, help="Collection name")
    parser_count.set_defaults(func=cmd_count)

    args = parser.parse_args()

    settings = get_settings()
    configure_logging("DEBUG" if args.debug else settings.log_level)
    initialize_logfire(settings)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
