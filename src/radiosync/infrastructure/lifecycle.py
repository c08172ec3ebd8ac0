"""Application lifecycle management for startup and shutdown.

Startup order:
    logging -> settings validation -> database -> Spotify client -> services
    -> orchestrator (collections, connectors)

Shutdown runs in reverse and ALWAYS runs, even when startup failed halfway.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass

import httpx

from radiosync.application.services.catalog_matcher import CatalogMatcher
from radiosync.application.services.collection_service import CollectionService
from radiosync.application.services.dedup_ledger import DedupLedger
from radiosync.application.services.stats_aggregator import StatsAggregator
from radiosync.application.services.track_ingestion_service import (
    TrackIngestionService,
)
from radiosync.application.workers.orchestrator import PipelineOrchestrator
from radiosync.config import Settings
from radiosync.domain.exceptions import ConfigurationError
from radiosync.infrastructure.integrations.spotify_client import SpotifyClient
from radiosync.infrastructure.observability.logging import configure_logging
from radiosync.infrastructure.persistence.database import Database
from radiosync.infrastructure.persistence.retry import lock_metrics

logger = logging.getLogger(__name__)

# Audio keeps flowing on a healthy stream; a minute of silence means the connection is dead
STREAM_READ_TIMEOUT = 60.0


@dataclass
class AppContext:
    """Everything the running process holds on to."""

    settings: Settings
    database: Database
    ledger: DedupLedger
    stats: StatsAggregator
    orchestrator: PipelineOrchestrator | None = None


# Hey future me, this validates the SQLite directory BEFORE the engine is created. SQLite
# needs to create -wal and -shm files next to the .db, so we test-write a file in that
# directory. A clear ConfigurationError here beats a cryptic "unable to open database
# file" from aiosqlite later.
def _validate_sqlite_path(settings: Settings) -> None:
    db_path = settings._get_sqlite_db_path()
    if db_path is None:
        return

    try:
        settings.ensure_directories()
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to create SQLite database directory '{db_path.parent}': {exc}. "
            "Update RADIOSYNC_DATABASE__URL or adjust directory permissions."
        ) from exc

    try:
        test_file = db_path.parent / f".{db_path.stem}_write_test"
        test_file.write_bytes(b"test")
        test_file.unlink()
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to write files in database directory '{db_path.parent}': {exc}. "
            "SQLite requires write permissions to create database and journal files."
        ) from exc


@asynccontextmanager
async def open_database(settings: Settings) -> AsyncGenerator[Database, None]:
    """Validate the path, create tables, and dispose the engine on exit."""
    _validate_sqlite_path(settings)
    database = Database(settings)
    try:
        await database.create_tables()
        logger.info("Database ready: %s", settings.database.url)
        yield database
    finally:
        await database.close()


# Listen future me, everything before `yield` is STARTUP, everything after is SHUTDOWN.
# The AsyncExitStack unwinds whatever got set up, in reverse, even if startup blew up in
# the middle (e.g. Spotify rejects the refresh token after the DB is already open).
@asynccontextmanager
async def lifespan(settings: Settings) -> AsyncGenerator[AppContext, None]:
    """Run the pipeline for the lifetime of the context."""
    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting application: %s", settings.app_name)

    if not settings.spotify.is_configured:
        raise ConfigurationError(
            "Spotify credentials not configured. Set RADIOSYNC_SPOTIFY__CLIENT_ID, "
            "RADIOSYNC_SPOTIFY__CLIENT_SECRET and RADIOSYNC_SPOTIFY__REFRESH_TOKEN."
        )
    try:
        feeds = settings.build_feeds()
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    async with AsyncExitStack() as stack:
        database = await stack.enter_async_context(open_database(settings))
        ledger = DedupLedger(database)
        stats = StatsAggregator(database)
        context = AppContext(settings=settings, database=database, ledger=ledger, stats=stats)

        spotify = await stack.enter_async_context(SpotifyClient(settings.spotify))
        # Fail fast on bad credentials instead of once per track
        await spotify.refresh_access_token()

        stream_client = await stack.enter_async_context(
            httpx.AsyncClient(
                timeout=httpx.Timeout(
                    settings.monitor.connect_timeout, read=STREAM_READ_TIMEOUT
                ),
                follow_redirects=True,
            )
        )

        matcher = CatalogMatcher(
            spotify,
            similarity_threshold=settings.matching.similarity_threshold,
            search_limit=settings.spotify.search_limit,
            metric=settings.matching.similarity_metric,
        )
        ingestion = TrackIngestionService(matcher, ledger, stats, spotify)
        orchestrator = PipelineOrchestrator(
            feeds,
            ingestion,
            CollectionService(spotify, ledger),
            stream_client,
            connect_timeout=settings.monitor.connect_timeout,
            reconnect_delay=settings.monitor.reconnect_delay,
            shutdown_timeout=settings.observability.shutdown_timeout,
        )
        stack.push_async_callback(orchestrator.stop)
        context.orchestrator = orchestrator

        await orchestrator.start()
        logger.info("Application startup complete")

        try:
            yield context
        finally:
            logger.info("Shutting down application...")

    if lock_metrics.retries or lock_metrics.failures:
        logger.info("Database lock metrics: %s", lock_metrics.as_dict())
    logger.info("Application shutdown complete")


__all__ = ["AppContext", "lifespan", "open_database"]
