"""Tests for PipelineOrchestrator startup, status and shutdown."""

from unittest.mock import AsyncMock

import httpx
import pytest

from radiosync.application.services.collection_service import CollectionService
from radiosync.application.services.track_ingestion_service import (
    TrackIngestionService,
)
from radiosync.application.workers.orchestrator import PipelineOrchestrator
from radiosync.domain.entities import CollectionRecord, Feed
from radiosync.domain.exceptions import ExternalServiceError

FEEDS = [
    Feed("main", "https://radio.example/main", "Radio Main"),
    Feed("kids", "https://radio.example/kids", "Radio Kids"),
]


@pytest.fixture
def collections() -> AsyncMock:
    service = AsyncMock(spec=CollectionService)

    async def bind(feed: Feed) -> CollectionRecord:
        if feed.name == "kids":
            raise ExternalServiceError("Spotify API error: 500 boom")
        return CollectionRecord(feed.name, f"pl-{feed.name}", feed.collection_name)

    service.bind = AsyncMock(side_effect=bind)
    service.count_tracks = AsyncMock(return_value=7)
    return service


@pytest.fixture
def orchestrator(collections: AsyncMock) -> PipelineOrchestrator:
    # Every stream is down so connectors sit in "reconnect pending"
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(503)))
    return PipelineOrchestrator(
        FEEDS,
        AsyncMock(spec=TrackIngestionService),
        collections,
        client,
        connect_timeout=5.0,
        reconnect_delay=3600.0,
        shutdown_timeout=2.0,
    )


class TestOrchestrator:
    """Test the per-feed wiring."""

    async def test_binding_failure_is_isolated(
        self, orchestrator: PipelineOrchestrator
    ) -> None:
        await orchestrator.start()

        main = orchestrator.get_connector("main")
        kids = orchestrator.get_connector("kids")
        assert main is not None and kids is not None
        assert main.context.collection is not None
        assert main.context.existing_collection_tracks == 7
        assert kids.context.collection is None
        assert orchestrator.get_collection("main") is not None
        assert orchestrator.get_collection("kids") is None

        await orchestrator.stop()

    async def test_status(self, orchestrator: PipelineOrchestrator) -> None:
        await orchestrator.start()

        status = orchestrator.get_status()

        assert status["monitoring"] is True
        assert set(status["feeds"]) == {"main", "kids"}
        assert status["feeds"]["main"]["collection"] == {"id": "pl-main", "name": "Radio Main"}
        assert status["feeds"]["kids"]["collection"] is None
        assert status["feeds"]["main"]["reconnect_pending"] is True

        await orchestrator.stop()

    async def test_start_and_stop_are_idempotent(
        self, orchestrator: PipelineOrchestrator, collections: AsyncMock
    ) -> None:
        await orchestrator.start()
        await orchestrator.start()
        assert collections.bind.await_count == 2

        connector = orchestrator.get_connector("main")
        await orchestrator.stop()
        await orchestrator.stop()

        assert not orchestrator.is_running
        assert connector is not None
        assert not connector.reconnect_pending
        assert orchestrator.get_status()["monitoring"] is False
