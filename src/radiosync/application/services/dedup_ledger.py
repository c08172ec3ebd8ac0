"""Persistent record of matched and unmatched announcements.

Hey future me - the ledger is what makes "never add the same catalog track twice" true
across ALL feeds and across restarts. The in-process check (is_already_added) is only an
optimization. The real guard is the UNIQUE(catalog_id) constraint behind add_matched():
the pipeline claims the row FIRST and only then appends to the playlist, so two feeds
racing for the same track can't both append. Whoever loses gets None back.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from radiosync.domain.entities import (
    CandidateMatch,
    CollectionRecord,
    MatchedEntry,
    UnmatchedEntry,
    utc_now,
)
from radiosync.infrastructure.persistence.database import Database
from radiosync.infrastructure.persistence.repositories import (
    CollectionRepository,
    MatchedTrackRepository,
    UnmatchedTrackRepository,
    clear_all_tables,
    count_rows,
)
from radiosync.infrastructure.persistence.retry import with_db_retry

logger = logging.getLogger(__name__)

# Station IDs, jingles and ads are announced like tracks. They still get stored as
# unmatched, we just don't want a WARNING for each one.
NON_MUSIC_KEYWORDS: tuple[str, ...] = (
    "azuracast",
    "halloweenradio",
    "commercials",
    "jingle",
    "station id",
    "radio id",
    "live!",
    "streaming",
)


def is_non_music(artist: str, title: str) -> bool:
    """True when the announcement looks like station noise rather than a track."""
    artist = artist.lower()
    title = title.lower()
    return any(keyword in artist or keyword in title for keyword in NON_MUSIC_KEYWORDS)


class DedupLedger:
    """Matched/unmatched entry store backed by SQLAlchemy."""

    def __init__(self, database: Database) -> None:
        self._db = database

    # =========================================================================
    # MATCHED
    # =========================================================================

    async def is_already_added(self, catalog_id: str) -> bool:
        """Check whether a catalog item was ever appended.

        Storage errors are logged and answered with False; add_matched() still refuses
        a real duplicate.
        """
        try:
            async with self._db.session_scope() as session:
                return await MatchedTrackRepository(session).exists(catalog_id)
        except SQLAlchemyError as e:
            logger.error("Error checking if track exists: %s", e)
            return False

    async def add_matched(self, entry: MatchedEntry) -> int | None:
        """Claim a catalog item for a collection.

        Returns:
            The new entry id, or None when the catalog item is already claimed

        Raises:
            SQLAlchemyError: Any storage failure other than the duplicate
        """
        try:
            entry_id = await self._insert_matched(entry)
        except IntegrityError:
            logger.info(
                "Track already in ledger, not adding again: %s - %s (%s)",
                entry.catalog_artist,
                entry.catalog_title,
                entry.catalog_id,
            )
            return None

        logger.debug(
            "Claimed %s for %s (entry %d)", entry.catalog_id, entry.collection_name, entry_id
        )
        return entry_id

    @with_db_retry()
    async def _insert_matched(self, entry: MatchedEntry) -> int:
        async with self._db.session_scope() as session:
            return await MatchedTrackRepository(session).add(entry)

    @with_db_retry()
    async def release_matched(self, entry_id: int) -> bool:
        """Undo a claim whose playlist append failed."""
        async with self._db.session_scope() as session:
            removed = await MatchedTrackRepository(session).delete(entry_id)
        if not removed:
            logger.warning("Matched entry %d was already gone on release", entry_id)
        return removed

    # =========================================================================
    # UNMATCHED
    # =========================================================================

    @with_db_retry()
    async def add_unmatched(self, entry: UnmatchedEntry) -> int:
        """Store an unmatched announcement. Insert-only, never deduplicated."""
        async with self._db.session_scope() as session:
            entry_id = await UnmatchedTrackRepository(session).add(entry)

        if is_non_music(entry.track.artist, entry.track.title):
            logger.debug(
                "Stored non-music announcement: %s - %s",
                entry.track.artist,
                entry.track.title,
            )
        else:
            logger.warning(
                "Added unmatched track: %s - %s (%s)",
                entry.track.artist,
                entry.track.title,
                entry.reason,
            )
        return entry_id

    @with_db_retry()
    async def record_retry(
        self, unmatched_id: int, new_best: CandidateMatch | None = None
    ) -> bool:
        """Bump the retry counter of an unmatched entry.

        Args:
            unmatched_id: Entry to update
            new_best: Replaces the stored best candidate when given

        Returns:
            False if the entry doesn't exist
        """
        async with self._db.session_scope() as session:
            model = await UnmatchedTrackRepository(session).get(unmatched_id)
            if model is None:
                return False

            model.retry_count += 1
            model.last_retry_at = utc_now()
            if new_best is not None:
                model.best_catalog_id = new_best.item.id
                model.best_catalog_artist = new_best.item.primary_artist
                model.best_catalog_title = new_best.item.title
                model.best_match_percentage = new_best.percentage
        return True

    # =========================================================================
    # COLLECTIONS
    # =========================================================================

    @with_db_retry()
    async def upsert_collection_record(
        self, feed: str, collection_id: str, name: str
    ) -> CollectionRecord:
        async with self._db.session_scope() as session:
            return await CollectionRepository(session).upsert(feed, collection_id, name)

    async def get_collection_records(self, feed: str | None = None) -> list[CollectionRecord]:
        try:
            async with self._db.session_scope() as session:
                return await CollectionRepository(session).list_all(feed)
        except SQLAlchemyError as e:
            logger.error("Error getting collection records: %s", e)
            return []

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    async def clear_all(self) -> bool:
        """Delete everything: matched, unmatched, collections and daily stats."""
        try:
            async with self._db.session_scope() as session:
                await clear_all_tables(session)
        except SQLAlchemyError as e:
            logger.error("Error clearing data: %s", e)
            return False
        logger.info("All ledger and statistics data cleared")
        return True

    # =========================================================================
    # READ VIEWS
    # =========================================================================
    # Hey future me - these feed a dashboard/CLI. They fail SOFT (log + empty) so a broken
    # status page never takes the pipeline down with it.

    async def get_matched_entries(
        self, limit: int = 100, offset: int = 0, feed: str | None = None
    ) -> list[MatchedEntry]:
        try:
            async with self._db.session_scope() as session:
                return await MatchedTrackRepository(session).list_recent(limit, offset, feed)
        except SQLAlchemyError as e:
            logger.error("Error getting matched tracks: %s", e)
            return []

    async def count_matched(self, feed: str | None = None) -> int:
        try:
            async with self._db.session_scope() as session:
                return await MatchedTrackRepository(session).count(feed)
        except SQLAlchemyError as e:
            logger.error("Error getting matched tracks count: %s", e)
            return 0

    async def get_unmatched_entries(
        self, limit: int = 100, offset: int = 0, feed: str | None = None
    ) -> list[UnmatchedEntry]:
        try:
            async with self._db.session_scope() as session:
                return await UnmatchedTrackRepository(session).list_recent(
                    limit, offset, feed
                )
        except SQLAlchemyError as e:
            logger.error("Error getting unmatched tracks: %s", e)
            return []

    async def get_unmatched_counts(self) -> dict[str, Any]:
        try:
            async with self._db.session_scope() as session:
                repo = UnmatchedTrackRepository(session)
                return {"total": await repo.count(), "by_feed": await repo.count_by_feed()}
        except SQLAlchemyError as e:
            logger.error("Error getting unmatched counts: %s", e)
            return {"total": 0, "by_feed": {}}

    async def get_last_matched_timestamp(self) -> datetime | None:
        try:
            async with self._db.session_scope() as session:
                return await MatchedTrackRepository(session).last_timestamp()
        except SQLAlchemyError as e:
            logger.error("Error getting last matched timestamp: %s", e)
            return None

    async def get_system_stats(self) -> dict[str, Any]:
        """Row counts per relation plus the size of the SQLite file."""
        try:
            async with self._db.session_scope() as session:
                counts = await count_rows(session)
        except SQLAlchemyError as e:
            logger.error("Error getting system stats: %s", e)
            counts = {}

        return {
            "matched_tracks": counts.get("matched_tracks", 0),
            "unmatched_tracks": counts.get("unmatched_tracks", 0),
            "collections": counts.get("collections", 0),
            "daily_stats": counts.get("daily_stats", 0),
            "database_size": self._database_size(),
        }

    def _database_size(self) -> dict[str, float]:
        db_path = self._db.settings._get_sqlite_db_path()
        if db_path is None or not db_path.exists():
            return {"bytes": 0, "mb": 0.0}
        size = db_path.stat().st_size
        return {"bytes": size, "mb": round(size / 1024 / 1024, 2)}


__all__ = ["NON_MUSIC_KEYWORDS", "DedupLedger", "is_non_music"]
