"""SQLAlchemy ORM models for RadioSync."""

from datetime import UTC, date, datetime

import sqlalchemy as sa
from sqlalchemy import Float, Index, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from radiosync.domain.entities import (
    CollectionRecord,
    DailyStat,
    MatchedEntry,
    ParsedTrack,
    UnmatchedEntry,
    utc_now,
)


# Hey future me - SQLite doesn't preserve timezone info! UTC datetimes come back naive.
# Attach UTC before handing them to the domain so comparisons with utc_now() don't blow up
# with "can't compare offset-naive and offset-aware".
def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Listen up, MatchedTrackModel IS the dedup ledger. The UNIQUE constraint on catalog_id is
# the only thing standing between four concurrent feeds and a playlist full of duplicates:
# whoever inserts first owns the track, everyone else gets IntegrityError. Never drop it,
# never make it a non-unique index "for performance".
class MatchedTrackModel(Base):
    """A catalog track that was appended to a collection."""

    __tablename__ = "matched_tracks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )
    feed: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    original_artist: Mapped[str] = mapped_column(String(500), nullable=False)
    original_title: Mapped[str] = mapped_column(String(500), nullable=False)
    original_text: Mapped[str] = mapped_column(Text, nullable=False)
    catalog_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    catalog_artist: Mapped[str] = mapped_column(String(500), nullable=False)
    catalog_title: Mapped[str] = mapped_column(String(500), nullable=False)
    catalog_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    match_percentage: Mapped[int] = mapped_column(Integer, nullable=False)
    collection_name: Mapped[str] = mapped_column(String(255), nullable=False)
    added_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (Index("ix_matched_tracks_timestamp", "timestamp"),)

    def to_entity(self) -> MatchedEntry:
        return MatchedEntry(
            id=self.id,
            timestamp=ensure_utc_aware(self.timestamp) or utc_now(),
            feed=self.feed,
            track=ParsedTrack(
                artist=self.original_artist,
                title=self.original_title,
                original=self.original_text,
            ),
            catalog_id=self.catalog_id,
            catalog_artist=self.catalog_artist,
            catalog_title=self.catalog_title,
            catalog_url=self.catalog_url,
            match_percentage=self.match_percentage,
            collection_name=self.collection_name,
            added_at=ensure_utc_aware(self.added_at),
        )

    @classmethod
    def from_entity(cls, entry: MatchedEntry) -> "MatchedTrackModel":
        return cls(
            timestamp=entry.timestamp,
            feed=entry.feed,
            original_artist=entry.track.artist,
            original_title=entry.track.title,
            original_text=entry.track.original,
            catalog_id=entry.catalog_id,
            catalog_artist=entry.catalog_artist,
            catalog_title=entry.catalog_title,
            catalog_url=entry.catalog_url,
            match_percentage=entry.match_percentage,
            collection_name=entry.collection_name,
            added_at=entry.added_at or utc_now(),
        )


class UnmatchedTrackModel(Base):
    """An announcement that could not be (or was not) appended."""

    __tablename__ = "unmatched_tracks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )
    feed: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    original_artist: Mapped[str] = mapped_column(String(500), nullable=False)
    original_title: Mapped[str] = mapped_column(String(500), nullable=False)
    original_text: Mapped[str] = mapped_column(Text, nullable=False)
    best_catalog_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    best_catalog_artist: Mapped[str | None] = mapped_column(String(500), nullable=True)
    best_catalog_title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    best_match_percentage: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    search_results_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_retry_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )

    # The top-unmatched view groups on lower(trim(...)), keep it indexable
    __table_args__ = (
        Index("ix_unmatched_tracks_timestamp", "timestamp"),
        Index(
            "ix_unmatched_tracks_artist_title_lower",
            func.lower(func.trim(original_artist)),
            func.lower(func.trim(original_title)),
        ),
    )

    def to_entity(self) -> UnmatchedEntry:
        return UnmatchedEntry(
            id=self.id,
            timestamp=ensure_utc_aware(self.timestamp) or utc_now(),
            feed=self.feed,
            track=ParsedTrack(
                artist=self.original_artist,
                title=self.original_title,
                original=self.original_text,
            ),
            reason=self.reason,
            best_catalog_id=self.best_catalog_id,
            best_catalog_artist=self.best_catalog_artist,
            best_catalog_title=self.best_catalog_title,
            best_match_percentage=self.best_match_percentage,
            search_results_count=self.search_results_count,
            retry_count=self.retry_count,
            last_retry_at=ensure_utc_aware(self.last_retry_at),
        )

    @classmethod
    def from_entity(cls, entry: UnmatchedEntry) -> "UnmatchedTrackModel":
        return cls(
            timestamp=entry.timestamp,
            feed=entry.feed,
            original_artist=entry.track.artist,
            original_title=entry.track.title,
            original_text=entry.track.original,
            best_catalog_id=entry.best_catalog_id,
            best_catalog_artist=entry.best_catalog_artist,
            best_catalog_title=entry.best_catalog_title,
            best_match_percentage=entry.best_match_percentage,
            reason=entry.reason,
            search_results_count=entry.search_results_count,
            retry_count=entry.retry_count,
            last_retry_at=entry.last_retry_at,
        )


class CollectionModel(Base):
    """Feed -> destination collection binding."""

    __tablename__ = "collections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    feed: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    collection_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    def to_entity(self) -> CollectionRecord:
        return CollectionRecord(
            feed=self.feed,
            collection_id=self.collection_id,
            name=self.name,
            created_at=ensure_utc_aware(self.created_at),
            updated_at=ensure_utc_aware(self.updated_at),
        )


# Hey future me, DailyStatModel counters are only ever changed through a single UPDATE with
# column expressions (see StatsAggregator.record). Never read-modify-write them in Python,
# two feeds would lose each other's increments.
class DailyStatModel(Base):
    """Per-day, per-feed processing counters."""

    __tablename__ = "daily_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    day: Mapped[date] = mapped_column("date", sa.Date, nullable=False)
    feed: Mapped[str] = mapped_column(String(50), nullable=False)
    tracks_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tracks_matched: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tracks_added: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tracks_duplicated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tracks_unmatched: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_match_percentage: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        sa.UniqueConstraint("date", "feed", name="uq_daily_stats_date_feed"),
        Index("ix_daily_stats_date", "date"),
    )

    def to_entity(self) -> DailyStat:
        return DailyStat(
            day=self.day,
            feed=self.feed,
            processed=self.tracks_processed,
            matched=self.tracks_matched,
            added=self.tracks_added,
            duplicated=self.tracks_duplicated,
            unmatched=self.tracks_unmatched,
            avg_match_percentage=self.avg_match_percentage,
            updated_at=ensure_utc_aware(self.updated_at),
        )


__all__ = [
    "Base",
    "CollectionModel",
    "DailyStatModel",
    "MatchedTrackModel",
    "UnmatchedTrackModel",
    "ensure_utc_aware",
]
