"""Repository implementations for the ledger and statistics relations."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from radiosync.domain.entities import (
    CollectionRecord,
    DailyStat,
    MatchedEntry,
    ProcessingOutcome,
    UnmatchedEntry,
    utc_now,
)

from .models import (
    CollectionModel,
    DailyStatModel,
    MatchedTrackModel,
    UnmatchedTrackModel,
    ensure_utc_aware,
)


# Hey future me, same pattern everywhere below: the session is injected and NOT committed
# here. Database.session_scope() commits when the block exits cleanly. A repo only stages
# changes and runs queries.
class MatchedTrackRepository:
    """Matched (appended) catalog tracks."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # Flushes immediately so the UNIQUE(catalog_id) violation surfaces HERE as
    # IntegrityError and not later at commit time.
    async def add(self, entry: MatchedEntry) -> int:
        model = MatchedTrackModel.from_entity(entry)
        self.session.add(model)
        await self.session.flush()
        return model.id

    async def delete(self, entry_id: int) -> bool:
        stmt = delete(MatchedTrackModel).where(MatchedTrackModel.id == entry_id)
        result = await self.session.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]

    async def exists(self, catalog_id: str) -> bool:
        stmt = select(MatchedTrackModel.id).where(
            MatchedTrackModel.catalog_id == catalog_id
        )
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    async def list_recent(
        self, limit: int = 100, offset: int = 0, feed: str | None = None
    ) -> list[MatchedEntry]:
        stmt = select(MatchedTrackModel)
        if feed:
            stmt = stmt.where(MatchedTrackModel.feed == feed)
        stmt = (
            stmt.order_by(MatchedTrackModel.timestamp.desc(), MatchedTrackModel.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return [model.to_entity() for model in result.scalars().all()]

    async def count(self, feed: str | None = None) -> int:
        stmt = select(func.count(MatchedTrackModel.id))
        if feed:
            stmt = stmt.where(MatchedTrackModel.feed == feed)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def last_timestamp(self) -> datetime | None:
        result = await self.session.execute(select(func.max(MatchedTrackModel.timestamp)))
        return ensure_utc_aware(result.scalar())

    async def feed_summaries(self) -> list[dict[str, Any]]:
        """Per-feed totals over all matched entries, biggest feed first."""
        total = func.count(MatchedTrackModel.id).label("total_added")
        stmt = (
            select(
                MatchedTrackModel.feed,
                total,
                func.min(MatchedTrackModel.timestamp).label("first_added"),
                func.max(MatchedTrackModel.timestamp).label("last_added"),
                func.avg(MatchedTrackModel.match_percentage).label("avg_match"),
            )
            .group_by(MatchedTrackModel.feed)
            .order_by(total.desc(), MatchedTrackModel.feed)
        )
        result = await self.session.execute(stmt)
        return [
            {
                "feed": row.feed,
                "total_added": row.total_added,
                "first_added": ensure_utc_aware(row.first_added),
                "last_added": ensure_utc_aware(row.last_added),
                "avg_match_percentage": round(float(row.avg_match or 0.0), 2),
            }
            for row in result.all()
        ]


class UnmatchedTrackRepository:
    """Announcements that did not end up in a collection."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(self, entry: UnmatchedEntry) -> int:
        model = UnmatchedTrackModel.from_entity(entry)
        self.session.add(model)
        await self.session.flush()
        return model.id

    async def get(self, entry_id: int) -> UnmatchedTrackModel | None:
        return await self.session.get(UnmatchedTrackModel, entry_id)

    async def list_recent(
        self, limit: int = 100, offset: int = 0, feed: str | None = None
    ) -> list[UnmatchedEntry]:
        stmt = select(UnmatchedTrackModel)
        if feed:
            stmt = stmt.where(UnmatchedTrackModel.feed == feed)
        stmt = (
            stmt.order_by(
                UnmatchedTrackModel.timestamp.desc(), UnmatchedTrackModel.id.desc()
            )
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return [model.to_entity() for model in result.scalars().all()]

    async def count(self, feed: str | None = None) -> int:
        stmt = select(func.count(UnmatchedTrackModel.id))
        if feed:
            stmt = stmt.where(UnmatchedTrackModel.feed == feed)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def count_by_feed(self) -> dict[str, int]:
        stmt = select(
            UnmatchedTrackModel.feed, func.count(UnmatchedTrackModel.id)
        ).group_by(UnmatchedTrackModel.feed)
        result = await self.session.execute(stmt)
        return {feed: count for feed, count in result.all()}

    # Hey future me - "Ghostbusters" and " ghostbusters " are the same miss. Grouping is on
    # lower(trim(...)) of BOTH fields, and one-off misses (count == 1) are left out because
    # they are usually jingles or typos nobody will fix.
    async def top_unmatched(self, limit: int = 50) -> list[dict[str, Any]]:
        artist_key = func.lower(func.trim(UnmatchedTrackModel.original_artist))
        title_key = func.lower(func.trim(UnmatchedTrackModel.original_title))
        occurrences = func.count(UnmatchedTrackModel.id).label("occurrences")
        best = func.max(UnmatchedTrackModel.best_match_percentage).label("best_match")

        stmt = (
            select(
                func.min(UnmatchedTrackModel.original_artist).label("artist"),
                func.min(UnmatchedTrackModel.original_title).label("title"),
                occurrences,
                best,
                func.min(UnmatchedTrackModel.timestamp).label("first_seen"),
                func.max(UnmatchedTrackModel.timestamp).label("last_seen"),
                func.max(UnmatchedTrackModel.retry_count).label("max_retries"),
            )
            .group_by(artist_key, title_key)
            .having(func.count(UnmatchedTrackModel.id) > 1)
            .order_by(occurrences.desc(), best.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [
            {
                "artist": row.artist.strip(),
                "title": row.title.strip(),
                "occurrences": row.occurrences,
                "best_match_percentage": row.best_match or 0,
                "first_seen": ensure_utc_aware(row.first_seen),
                "last_seen": ensure_utc_aware(row.last_seen),
                "max_retries": row.max_retries or 0,
            }
            for row in result.all()
        ]


class CollectionRepository:
    """Feed -> collection bindings."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert(self, feed: str, collection_id: str, name: str) -> CollectionRecord:
        stmt = select(CollectionModel).where(CollectionModel.feed == feed)
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()

        now = utc_now()
        if model is None:
            model = CollectionModel(
                feed=feed,
                collection_id=collection_id,
                name=name,
                created_at=now,
                updated_at=now,
            )
            self.session.add(model)
        else:
            # created_at stays as first written
            model.collection_id = collection_id
            model.name = name
            model.updated_at = now

        await self.session.flush()
        return model.to_entity()

    async def list_all(self, feed: str | None = None) -> list[CollectionRecord]:
        stmt = select(CollectionModel)
        if feed:
            stmt = stmt.where(CollectionModel.feed == feed)
        result = await self.session.execute(stmt.order_by(CollectionModel.feed))
        return [model.to_entity() for model in result.scalars().all()]


class DailyStatRepository:
    """Per-day, per-feed counters."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def ensure_row(self, day: date, feed: str) -> None:
        """Create the all-zero (day, feed) row if it doesn't exist yet."""
        stmt = select(DailyStatModel.id).where(
            DailyStatModel.day == day, DailyStatModel.feed == feed
        )
        result = await self.session.execute(stmt)
        if result.scalar_one_or_none() is not None:
            return

        # Another feed task may create the same row between our SELECT and INSERT
        # Core insert on the table, so keys are column names ("date", not "day")
        insert_stmt = (
            sqlite_insert(DailyStatModel.__table__)
            .values({"date": day, "feed": feed, "updated_at": utc_now()})
            .on_conflict_do_nothing(index_elements=["date", "feed"])
        )
        await self.session.execute(insert_stmt)

    async def increment(
        self,
        day: date,
        feed: str,
        outcome: ProcessingOutcome,
        match_percentage: float | None = None,
    ) -> None:
        """Apply one outcome to the (day, feed) row in a single UPDATE.

        Counters are column expressions so concurrent increments never overwrite each
        other. For MATCHED the running average uses the pre-update matched count:
        avg' = (avg * matched + x) / (matched + 1).
        """
        values: dict[str, Any] = {
            "tracks_processed": DailyStatModel.tracks_processed + 1,
            "updated_at": utc_now(),
        }
        if outcome is ProcessingOutcome.MATCHED:
            values["tracks_matched"] = DailyStatModel.tracks_matched + 1
            values["tracks_added"] = DailyStatModel.tracks_added + 1
            if match_percentage is not None:
                values["avg_match_percentage"] = (
                    DailyStatModel.avg_match_percentage * DailyStatModel.tracks_matched
                    + float(match_percentage)
                ) / (DailyStatModel.tracks_matched + 1)
        elif outcome is ProcessingOutcome.DUPLICATE:
            values["tracks_duplicated"] = DailyStatModel.tracks_duplicated + 1
        elif outcome is ProcessingOutcome.UNMATCHED:
            values["tracks_unmatched"] = DailyStatModel.tracks_unmatched + 1

        stmt = (
            update(DailyStatModel)
            .where(DailyStatModel.day == day, DailyStatModel.feed == feed)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def get(self, day: date, feed: str) -> DailyStat | None:
        stmt = select(DailyStatModel).where(
            DailyStatModel.day == day, DailyStatModel.feed == feed
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def daily_summaries(self, since: date) -> list[dict[str, Any]]:
        """Totals per date across all feeds, newest date first."""
        processed = func.sum(DailyStatModel.tracks_processed)
        matched = func.sum(DailyStatModel.tracks_matched)
        stmt = (
            select(
                DailyStatModel.day.label("day"),
                processed.label("processed"),
                matched.label("matched"),
                func.sum(DailyStatModel.tracks_added).label("added"),
                func.sum(DailyStatModel.tracks_duplicated).label("duplicated"),
                func.sum(DailyStatModel.tracks_unmatched).label("unmatched"),
                func.avg(DailyStatModel.avg_match_percentage).label("avg_match"),
            )
            .where(DailyStatModel.day >= since)
            .group_by(DailyStatModel.day)
            .order_by(DailyStatModel.day.desc())
        )
        result = await self.session.execute(stmt)

        summaries = []
        for row in result.all():
            total = row.processed or 0
            summaries.append(
                {
                    "date": row.day,
                    "processed": total,
                    "matched": row.matched or 0,
                    "added": row.added or 0,
                    "duplicated": row.duplicated or 0,
                    "unmatched": row.unmatched or 0,
                    "avg_match_percentage": round(float(row.avg_match or 0.0), 2),
                    "success_rate": round((row.matched or 0) * 100 / total, 2)
                    if total
                    else 0,
                }
            )
        return summaries


async def clear_all_tables(session: AsyncSession) -> None:
    """Delete every row from all four relations."""
    for model in (MatchedTrackModel, UnmatchedTrackModel, CollectionModel, DailyStatModel):
        await session.execute(delete(model))


async def count_rows(session: AsyncSession) -> dict[str, int]:
    """Row count per relation, keyed by table name."""
    counts: dict[str, int] = {}
    for model in (MatchedTrackModel, UnmatchedTrackModel, CollectionModel, DailyStatModel):
        result = await session.execute(select(func.count()).select_from(model))
        counts[model.__tablename__] = result.scalar() or 0
    return counts


__all__ = [
    "CollectionRepository",
    "DailyStatRepository",
    "MatchedTrackRepository",
    "UnmatchedTrackRepository",
    "clear_all_tables",
    "count_rows",
]
