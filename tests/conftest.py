"""Shared fixtures: in-memory database, ledger and stats."""

from collections.abc import AsyncGenerator

import pytest

from radiosync.application.services.dedup_ledger import DedupLedger
from radiosync.application.services.stats_aggregator import StatsAggregator
from radiosync.config import DatabaseSettings, Settings, SpotifySettings
from radiosync.infrastructure.persistence.database import Database


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        database=DatabaseSettings(url="sqlite+aiosqlite:///:memory:"),
        spotify=SpotifySettings(
            client_id="test-client",
            client_secret="test-secret",
            refresh_token="test-refresh",
        ),
    )


@pytest.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    """Fresh in-memory database with all tables."""
    db = Database(settings)
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture
def ledger(database: Database) -> DedupLedger:
    return DedupLedger(database)


@pytest.fixture
def stats(database: Database) -> StatsAggregator:
    return StatsAggregator(database)
