"""Tests for DedupLedger against an in-memory SQLite database."""

import pytest

from radiosync.application.services.dedup_ledger import DedupLedger, is_non_music
from radiosync.domain.entities import (
    CandidateMatch,
    CatalogItem,
    MatchedEntry,
    ParsedTrack,
    UnmatchedEntry,
)

# Hey future me - the UNIQUE(catalog_id) claim is THE dedup guarantee. These tests make
# sure a second claim never succeeds, whichever feed makes it.


def _track(artist: str = "Ray Parker Jr", title: str = "Ghostbusters") -> ParsedTrack:
    return ParsedTrack(artist=artist, title=title, original=f"{artist} - {title}")


def _candidate(item_id: str = "ghost-1", similarity: float = 1.0) -> CandidateMatch:
    return CandidateMatch(
        item=CatalogItem(
            id=item_id,
            artists=("Ray Parker Jr.",),
            title="Ghostbusters",
            external_url=f"https://open.spotify.com/track/{item_id}",
        ),
        similarity=similarity,
    )


def _matched(feed: str = "main", item_id: str = "ghost-1") -> MatchedEntry:
    return MatchedEntry.from_candidate(
        feed, _track(), _candidate(item_id), f"Halloween Radio - {feed.title()}"
    )


class TestNonMusicFilter:
    """Test station noise detection."""

    @pytest.mark.parametrize(
        ("artist", "title"),
        [
            ("AzuraCast", "Station"),
            ("Halloween Radio", "Jingle 3"),
            ("Commercials", "Break"),
            ("DJ", "LIVE! on air"),
        ],
    )
    def test_detects_noise(self, artist: str, title: str) -> None:
        assert is_non_music(artist, title)

    def test_music_is_not_noise(self) -> None:
        assert not is_non_music("Ray Parker Jr", "Ghostbusters")


class TestMatchedEntries:
    """Test claiming and releasing catalog items."""

    async def test_add_and_exists(self, ledger: DedupLedger) -> None:
        assert not await ledger.is_already_added("ghost-1")

        entry_id = await ledger.add_matched(_matched())

        assert entry_id is not None
        assert await ledger.is_already_added("ghost-1")
        assert await ledger.count_matched() == 1

    async def test_second_claim_returns_none(self, ledger: DedupLedger) -> None:
        """Same catalog id from another feed is refused."""
        assert await ledger.add_matched(_matched("main")) is not None
        assert await ledger.add_matched(_matched("movies")) is None
        assert await ledger.count_matched() == 1

    async def test_release_allows_reclaim(self, ledger: DedupLedger) -> None:
        entry_id = await ledger.add_matched(_matched())
        assert entry_id is not None

        assert await ledger.release_matched(entry_id)
        assert not await ledger.is_already_added("ghost-1")
        assert await ledger.add_matched(_matched("movies")) is not None

    async def test_release_missing_entry(self, ledger: DedupLedger) -> None:
        assert not await ledger.release_matched(9999)

    async def test_stored_entry_round_trips(self, ledger: DedupLedger) -> None:
        await ledger.add_matched(_matched())

        [entry] = await ledger.get_matched_entries()

        assert entry.feed == "main"
        assert entry.track.artist == "Ray Parker Jr"
        assert entry.track.original == "Ray Parker Jr - Ghostbusters"
        assert entry.catalog_artist == "Ray Parker Jr."
        assert entry.match_percentage == 100
        assert entry.collection_name == "Halloween Radio - Main"
        assert entry.timestamp.tzinfo is not None
        assert await ledger.get_last_matched_timestamp() is not None

    async def test_filter_by_feed(self, ledger: DedupLedger) -> None:
        await ledger.add_matched(_matched("main", "a"))
        await ledger.add_matched(_matched("movies", "b"))
        await ledger.add_matched(_matched("movies", "c"))

        assert await ledger.count_matched("movies") == 2
        assert len(await ledger.get_matched_entries(feed="main")) == 1
        assert len(await ledger.get_matched_entries(limit=2)) == 2


class TestUnmatchedEntries:
    """Test the unmatched store."""

    async def test_unmatched_is_never_deduplicated(self, ledger: DedupLedger) -> None:
        entry = UnmatchedEntry.from_candidate("main", _track(), "No search results")
        await ledger.add_unmatched(entry)
        await ledger.add_unmatched(
            UnmatchedEntry.from_candidate("main", _track(), "No search results")
        )
        await ledger.add_unmatched(
            UnmatchedEntry.from_candidate("kids", _track(), "No search results")
        )

        counts = await ledger.get_unmatched_counts()

        assert counts["total"] == 3
        assert counts["by_feed"] == {"main": 2, "kids": 1}

    async def test_best_candidate_is_kept(self, ledger: DedupLedger) -> None:
        entry = UnmatchedEntry.from_candidate(
            "main",
            _track(),
            "No suitable match found",
            candidate=_candidate("near", similarity=0.62),
            search_results_count=7,
        )
        await ledger.add_unmatched(entry)

        [stored] = await ledger.get_unmatched_entries()

        assert stored.best_catalog_id == "near"
        assert stored.best_match_percentage == 62
        assert stored.search_results_count == 7
        assert stored.reason == "No suitable match found"

    async def test_record_retry(self, ledger: DedupLedger) -> None:
        entry_id = await ledger.add_unmatched(
            UnmatchedEntry.from_candidate("main", _track(), "No search results")
        )

        assert await ledger.record_retry(entry_id)
        assert await ledger.record_retry(entry_id, new_best=_candidate("better", 0.7))

        [stored] = await ledger.get_unmatched_entries()
        assert stored.retry_count == 2
        assert stored.last_retry_at is not None
        assert stored.best_catalog_id == "better"
        assert stored.best_match_percentage == 70

    async def test_record_retry_missing_entry(self, ledger: DedupLedger) -> None:
        assert not await ledger.record_retry(12345)


class TestCollectionsAndMaintenance:
    """Test collection bindings, clearing and system stats."""

    async def test_upsert_keeps_created_at(self, ledger: DedupLedger) -> None:
        first = await ledger.upsert_collection_record("main", "pl-1", "Radio Main")
        second = await ledger.upsert_collection_record("main", "pl-2", "Radio Main")

        assert second.collection_id == "pl-2"
        assert second.created_at == first.created_at
        records = await ledger.get_collection_records()
        assert [r.collection_id for r in records] == ["pl-2"]

    async def test_clear_all(self, ledger: DedupLedger) -> None:
        await ledger.add_matched(_matched())
        await ledger.add_unmatched(
            UnmatchedEntry.from_candidate("main", _track(), "No search results")
        )
        await ledger.upsert_collection_record("main", "pl-1", "Radio Main")

        assert await ledger.clear_all()

        stats = await ledger.get_system_stats()
        assert stats["matched_tracks"] == 0
        assert stats["unmatched_tracks"] == 0
        assert stats["collections"] == 0
        assert stats["daily_stats"] == 0
        # in-memory database has no file
        assert stats["database_size"] == {"bytes": 0, "mb": 0.0}
