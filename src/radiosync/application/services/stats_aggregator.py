"""Daily per-feed counters and the reporting views built on top of them."""

import logging
from datetime import date, timedelta
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from radiosync.domain.entities import DailyStat, ProcessingOutcome, utc_now
from radiosync.infrastructure.persistence.database import Database
from radiosync.infrastructure.persistence.repositories import (
    DailyStatRepository,
    MatchedTrackRepository,
    UnmatchedTrackRepository,
)
from radiosync.infrastructure.persistence.retry import with_db_retry

logger = logging.getLogger(__name__)


class StatsAggregator:
    """Incremental daily statistics.

    Hey future me - record() must NEVER raise into the pipeline. A track that was already
    appended to a playlist is not un-appended because a counter failed to update. Errors
    are logged and swallowed here on purpose, nowhere else.

    The read views are recomputed from the tables on every call. No caching: they are
    cheap on SQLite at this data size and a stale dashboard is worse than a slow one.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    async def record(
        self,
        feed: str,
        outcome: ProcessingOutcome,
        match_percentage: float | None = None,
        day: date | None = None,
    ) -> None:
        """Count one processed announcement for (day, feed).

        Args:
            feed: Feed name
            outcome: Final pipeline outcome
            match_percentage: Required for MATCHED to update the running average
            day: Defaults to today (UTC)
        """
        day = day or utc_now().date()
        try:
            await self._apply(day, feed, outcome, match_percentage)
        except SQLAlchemyError as e:
            logger.error(
                "Error updating daily stats for %s (%s): %s", feed, outcome.value, e
            )

    @with_db_retry()
    async def _apply(
        self,
        day: date,
        feed: str,
        outcome: ProcessingOutcome,
        match_percentage: float | None,
    ) -> None:
        async with self._db.session_scope() as session:
            repo = DailyStatRepository(session)
            await repo.ensure_row(day, feed)
            await repo.increment(day, feed, outcome, match_percentage)

    async def get_daily_stat(self, feed: str, day: date | None = None) -> DailyStat | None:
        day = day or utc_now().date()
        try:
            async with self._db.session_scope() as session:
                return await DailyStatRepository(session).get(day, feed)
        except SQLAlchemyError as e:
            logger.error("Error getting daily stat: %s", e)
            return None

    async def get_daily_summaries(self, days: int = 30) -> list[dict[str, Any]]:
        """Totals per date over the last ``days`` days, newest first."""
        since = utc_now().date() - timedelta(days=days)
        try:
            async with self._db.session_scope() as session:
                return await DailyStatRepository(session).daily_summaries(since)
        except SQLAlchemyError as e:
            logger.error("Error getting daily summaries: %s", e)
            return []

    async def get_feed_summaries(self) -> list[dict[str, Any]]:
        try:
            async with self._db.session_scope() as session:
                return await MatchedTrackRepository(session).feed_summaries()
        except SQLAlchemyError as e:
            logger.error("Error getting feed summaries: %s", e)
            return []

    async def get_top_unmatched(self, limit: int = 50) -> list[dict[str, Any]]:
        try:
            async with self._db.session_scope() as session:
                return await UnmatchedTrackRepository(session).top_unmatched(limit)
        except SQLAlchemyError as e:
            logger.error("Error getting top unmatched tracks: %s", e)
            return []


__all__ = ["StatsAggregator"]
