"""Domain entities."""

import math
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum

UNKNOWN_ARTIST = "Unknown Artist"


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me, ConnectionState is the per-feed connector state machine. STOPPED is NOT
# the same as DISCONNECTED: a DISCONNECTED connector has a reconnect scheduled (or is
# about to), a STOPPED one is dead for good and never reconnects.
class ConnectionState(str, Enum):
    """Lifecycle state of a feed connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    STOPPED = "stopped"


class MatchOutcome(str, Enum):
    """Result of a catalog search for one announcement."""

    MATCHED = "matched"
    NO_RESULTS = "no_results"
    NO_SUITABLE_MATCH = "no_suitable_match"

    @property
    def reason(self) -> str:
        """Human readable reason stored on unmatched entries."""
        return _MATCH_OUTCOME_REASONS[self]


_MATCH_OUTCOME_REASONS = {
    MatchOutcome.MATCHED: "Matched",
    MatchOutcome.NO_RESULTS: "No search results",
    MatchOutcome.NO_SUITABLE_MATCH: "No suitable match found",
}


# Yo, ProcessingOutcome is what one announcement ended up as after the whole pipeline.
# StatsAggregator counts these, so adding a value here means adding a counter there.
class ProcessingOutcome(str, Enum):
    """Final outcome of processing a track change."""

    MATCHED = "matched"
    DUPLICATE = "duplicate"
    UNMATCHED = "unmatched"


@dataclass(frozen=True)
class Feed:
    """One monitored live audio source and its destination collection."""

    name: str
    url: str
    collection_name: str

    @staticmethod
    def make_display_name(name: str) -> str:
        """Capitalize the first letter of a feed name ("main" -> "Main")."""
        return name[:1].upper() + name[1:]

    @property
    def display_name(self) -> str:
        return self.make_display_name(self.name)


@dataclass(frozen=True)
class ParsedTrack:
    """Structured guess derived from a raw announcement.

    ``original`` always keeps the announcement text verbatim, even when the artist
    could not be extracted.
    """

    artist: str
    title: str
    original: str

    @property
    def is_fallback(self) -> bool:
        """True when no separator was found and the artist is a placeholder."""
        return self.artist == UNKNOWN_ARTIST and self.title == self.original

    def __str__(self) -> str:
        return f"{self.artist} - {self.title}"


@dataclass(frozen=True)
class CatalogItem:
    """A track as returned by the catalog search."""

    id: str
    artists: tuple[str, ...]
    title: str
    external_url: str | None = None

    @property
    def primary_artist(self) -> str:
        return self.artists[0] if self.artists else ""

    @property
    def uri(self) -> str:
        return f"spotify:track:{self.id}"

    def __str__(self) -> str:
        return f"{self.primary_artist} - {self.title}"


@dataclass(frozen=True)
class CandidateMatch:
    """A catalog item with its combined similarity score in [0, 1]."""

    item: CatalogItem
    similarity: float

    # Round half up; Python round() would be banker's rounding.
    @property
    def percentage(self) -> int:
        return math.floor(self.similarity * 100 + 0.5)


@dataclass(frozen=True)
class MatchResult:
    """Outcome of CatalogMatcher.search().

    ``match`` is set only for MATCHED. ``best_candidate`` is the best scoring candidate
    regardless of threshold and is kept for diagnostics on unmatched entries.
    """

    outcome: MatchOutcome
    match: CandidateMatch | None = None
    best_candidate: CandidateMatch | None = None
    candidates_considered: int = 0
    query: str | None = None

    @property
    def is_match(self) -> bool:
        return self.outcome is MatchOutcome.MATCHED and self.match is not None


@dataclass(frozen=True)
class MatchedEntry:
    """A catalog entry appended to a collection. Immutable once written."""

    feed: str
    track: ParsedTrack
    catalog_id: str
    catalog_artist: str
    catalog_title: str
    catalog_url: str | None
    match_percentage: int
    collection_name: str
    timestamp: datetime = field(default_factory=utc_now)
    id: int | None = None
    added_at: datetime | None = None

    @classmethod
    def from_candidate(
        cls,
        feed: str,
        track: ParsedTrack,
        candidate: CandidateMatch,
        collection_name: str,
    ) -> "MatchedEntry":
        return cls(
            feed=feed,
            track=track,
            catalog_id=candidate.item.id,
            catalog_artist=candidate.item.primary_artist,
            catalog_title=candidate.item.title,
            catalog_url=candidate.item.external_url,
            match_percentage=candidate.percentage,
            collection_name=collection_name,
        )


@dataclass
class UnmatchedEntry:
    """An announcement that did not end up in a collection."""

    feed: str
    track: ParsedTrack
    reason: str
    best_catalog_id: str | None = None
    best_catalog_artist: str | None = None
    best_catalog_title: str | None = None
    best_match_percentage: int = 0
    search_results_count: int = 0
    retry_count: int = 0
    last_retry_at: datetime | None = None
    timestamp: datetime = field(default_factory=utc_now)
    id: int | None = None

    @classmethod
    def from_candidate(
        cls,
        feed: str,
        track: ParsedTrack,
        reason: str,
        candidate: CandidateMatch | None = None,
        search_results_count: int = 0,
    ) -> "UnmatchedEntry":
        entry = cls(
            feed=feed,
            track=track,
            reason=reason,
            search_results_count=search_results_count,
        )
        if candidate is not None:
            entry.best_catalog_id = candidate.item.id
            entry.best_catalog_artist = candidate.item.primary_artist
            entry.best_catalog_title = candidate.item.title
            entry.best_match_percentage = candidate.percentage
        return entry


@dataclass
class DailyStat:
    """Per-day, per-feed counters."""

    day: date
    feed: str
    processed: int = 0
    matched: int = 0
    added: int = 0
    duplicated: int = 0
    unmatched: int = 0
    avg_match_percentage: float = 0.0
    updated_at: datetime | None = None


@dataclass
class CollectionRecord:
    """Binding of a feed to its destination collection."""

    feed: str
    collection_id: str
    name: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


__all__ = [
    "UNKNOWN_ARTIST",
    "CandidateMatch",
    "CatalogItem",
    "CollectionRecord",
    "ConnectionState",
    "DailyStat",
    "Feed",
    "MatchOutcome",
    "MatchResult",
    "MatchedEntry",
    "ParsedTrack",
    "ProcessingOutcome",
    "UnmatchedEntry",
    "utc_now",
]
