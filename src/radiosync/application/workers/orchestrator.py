# Hey future me - this is the top of the runtime object graph!
#
# The orchestrator owns the configured Feeds, binds each one to its playlist, and runs one
# StreamConnector per feed. It does NOT process tracks itself; each connector drives its
# own TrackIngestionService calls.
#
# STARTUP:
#   1. Bind collections (sequential, Spotify doesn't like bursts of playlist listing).
#      A feed whose binding fails still gets connected; its matches end up unmatched with
#      "No collection bound for feed" so nothing is lost silently.
#   2. Start all connectors concurrently.
#
# SHUTDOWN:
#   Stop all connectors concurrently, each one bounded by shutdown_timeout.
"""Pipeline orchestrator: collection binding and per-feed connectors."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from radiosync.application.services.collection_service import CollectionService
from radiosync.application.services.track_ingestion_service import (
    TrackIngestionService,
)
from radiosync.application.workers.change_detector import FeedContext
from radiosync.application.workers.stream_connector import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_RECONNECT_DELAY,
    StreamConnector,
)
from radiosync.domain.entities import CollectionRecord, Feed

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """Starts, stops and reports on every feed of the pipeline."""

    def __init__(
        self,
        feeds: list[Feed],
        ingestion: TrackIngestionService,
        collections: CollectionService,
        http_client: httpx.AsyncClient,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        shutdown_timeout: float = 10.0,
    ) -> None:
        self.feeds = list(feeds)
        self._ingestion = ingestion
        self._collections = collections
        self._http_client = http_client
        self._connect_timeout = connect_timeout
        self._reconnect_delay = reconnect_delay
        self._shutdown_timeout = shutdown_timeout

        self._connectors: dict[str, StreamConnector] = {}
        self._bindings: dict[str, CollectionRecord] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Bind collections and start one connector per feed. Idempotent."""
        if self._running:
            logger.warning("Pipeline already running")
            return
        self._running = True

        logger.info("Starting pipeline for %d feeds", len(self.feeds))

        for feed in self.feeds:
            context = FeedContext(feed=feed)
            await self._bind_collection(context)
            self._connectors[feed.name] = StreamConnector(
                context,
                self._ingestion,
                self._http_client,
                connect_timeout=self._connect_timeout,
                reconnect_delay=self._reconnect_delay,
            )

        await asyncio.gather(
            *(connector.start() for connector in self._connectors.values())
        )

        connected = sum(1 for c in self._connectors.values() if c.is_connected)
        logger.info(
            "Pipeline started: %d/%d feeds connected, %d collections bound",
            connected,
            len(self._connectors),
            len(self._bindings),
        )

    async def _bind_collection(self, context: FeedContext) -> None:
        feed = context.feed
        try:
            record = await self._collections.bind(feed)
        except Exception as e:
            logger.error(
                "Failed to set up collection for %s (%s): %s",
                feed.name,
                feed.collection_name,
                e,
            )
            return

        context.collection = record
        self._bindings[feed.name] = record

        try:
            context.existing_collection_tracks = await self._collections.count_tracks(record)
            logger.info(
                "Collection %s has %d tracks",
                record.name,
                context.existing_collection_tracks,
            )
        except Exception as e:
            logger.warning("Could not count tracks in %s: %s", record.name, e)

    async def stop(self) -> None:
        """Stop every connector concurrently and drop per-feed state."""
        if not self._running:
            return

        logger.info("Stopping pipeline (%d feeds)...", len(self._connectors))

        async def stop_one(connector: StreamConnector) -> None:
            try:
                await asyncio.wait_for(connector.stop(), timeout=self._shutdown_timeout)
            except TimeoutError:
                logger.warning("%s: timeout during shutdown, forced", connector.name)
            except Exception as e:
                logger.error("%s: error during shutdown - %s", connector.name, e)

        await asyncio.gather(*(stop_one(c) for c in self._connectors.values()))

        self._connectors.clear()
        self._running = False
        logger.info("Pipeline stopped")

    def get_collection(self, feed_name: str) -> CollectionRecord | None:
        return self._bindings.get(feed_name)

    def get_connector(self, feed_name: str) -> StreamConnector | None:
        return self._connectors.get(feed_name)

    def get_status(self) -> dict[str, Any]:
        feeds: dict[str, Any] = {}
        for feed in self.feeds:
            connector = self._connectors.get(feed.name)
            status = connector.get_status() if connector else {"name": feed.name}
            collection = self._bindings.get(feed.name)
            status["collection"] = (
                {
                    "id": collection.collection_id,
                    "name": collection.name,
                }
                if collection
                else None
            )
            feeds[feed.name] = status

        return {"monitoring": self._running, "feeds": feeds}


__all__ = ["PipelineOrchestrator"]
