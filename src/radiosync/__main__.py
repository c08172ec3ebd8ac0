"""Command line entry point: ``python -m radiosync`` or ``radiosync``."""

import argparse
import asyncio
import logging
import signal
import sys

from radiosync.application.services.dedup_ledger import DedupLedger
from radiosync.config import Settings, get_settings
from radiosync.domain.exceptions import ConfigurationError, TokenRefreshException
from radiosync.infrastructure.lifecycle import lifespan, open_database
from radiosync.infrastructure.observability.logging import configure_logging

logger = logging.getLogger("radiosync")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="radiosync",
        description="Monitor live radio feeds and curate matching Spotify playlists",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  radiosync                        Run until interrupted (Ctrl+C / SIGTERM)
  radiosync --log-level DEBUG      Run with verbose logging
  radiosync --clear-data           Delete all ledger and statistics data, then exit

Configuration is read from RADIOSYNC_* environment variables and .env
(e.g. RADIOSYNC_SPOTIFY__REFRESH_TOKEN).
        """,
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="Override the configured log level",
    )
    parser.add_argument(
        "--clear-data",
        action="store_true",
        help="Delete matched/unmatched entries, collection bindings and stats, then exit",
    )
    return parser


async def clear_data(settings: Settings) -> bool:
    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    async with open_database(settings) as database:
        return await DedupLedger(database).clear_all()


async def run(settings: Settings) -> None:
    """Run the pipeline until SIGINT/SIGTERM."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on Windows event loops; Ctrl+C then raises KeyboardInterrupt
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass

    async with lifespan(settings):
        await stop_event.wait()
        logger.info("Shutdown signal received")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    settings = get_settings()
    if args.log_level:
        settings = settings.model_copy(update={"log_level": args.log_level})

    try:
        if args.clear_data:
            return 0 if asyncio.run(clear_data(settings)) else 1
        asyncio.run(run(settings))
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e.message)
        return 2
    except TokenRefreshException as e:
        logger.error("Spotify authentication failed: %s", e.message)
        return 2
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
