"""Tests for StatsAggregator daily counters and reporting views."""

from datetime import date, timedelta

import pytest

from radiosync.application.services.dedup_ledger import DedupLedger
from radiosync.application.services.stats_aggregator import StatsAggregator
from radiosync.domain.entities import ParsedTrack, ProcessingOutcome, UnmatchedEntry, utc_now


class TestRecord:
    """Test counter updates."""

    async def test_first_record_creates_row(self, stats: StatsAggregator) -> None:
        await stats.record("main", ProcessingOutcome.UNMATCHED)

        stat = await stats.get_daily_stat("main")

        assert stat is not None
        assert stat.day == utc_now().date()
        assert stat.processed == 1
        assert stat.unmatched == 1
        assert stat.matched == 0

    async def test_outcomes_update_their_counters(self, stats: StatsAggregator) -> None:
        day = date(2026, 10, 31)
        await stats.record("main", ProcessingOutcome.MATCHED, 100, day=day)
        await stats.record("main", ProcessingOutcome.DUPLICATE, day=day)
        await stats.record("main", ProcessingOutcome.UNMATCHED, day=day)

        stat = await stats.get_daily_stat("main", day)

        assert stat is not None
        assert stat.processed == 3
        assert stat.matched == 1
        assert stat.added == 1
        assert stat.duplicated == 1
        assert stat.unmatched == 1

    async def test_running_average(self, stats: StatsAggregator) -> None:
        """Average uses the matched count before the update."""
        day = date(2026, 10, 31)
        await stats.record("main", ProcessingOutcome.MATCHED, 100, day=day)
        await stats.record("main", ProcessingOutcome.MATCHED, 80, day=day)
        await stats.record("main", ProcessingOutcome.MATCHED, 90, day=day)
        # non-matched outcomes don't touch the average
        await stats.record("main", ProcessingOutcome.UNMATCHED, day=day)

        stat = await stats.get_daily_stat("main", day)

        assert stat is not None
        assert stat.matched == 3
        assert stat.avg_match_percentage == pytest.approx(90.0)

    async def test_feeds_and_days_are_separate_rows(self, stats: StatsAggregator) -> None:
        day = date(2026, 10, 31)
        await stats.record("main", ProcessingOutcome.UNMATCHED, day=day)
        await stats.record("kids", ProcessingOutcome.UNMATCHED, day=day)
        await stats.record("main", ProcessingOutcome.UNMATCHED, day=day + timedelta(days=1))

        main = await stats.get_daily_stat("main", day)
        kids = await stats.get_daily_stat("kids", day)

        assert main is not None and main.processed == 1
        assert kids is not None and kids.processed == 1

    async def test_missing_row(self, stats: StatsAggregator) -> None:
        assert await stats.get_daily_stat("main", date(2000, 1, 1)) is None


class TestViews:
    """Test the read-only reporting views."""

    async def test_daily_summaries(self, stats: StatsAggregator) -> None:
        today = utc_now().date()
        await stats.record("main", ProcessingOutcome.MATCHED, 100, day=today)
        await stats.record("kids", ProcessingOutcome.UNMATCHED, day=today)
        await stats.record("main", ProcessingOutcome.DUPLICATE, day=today - timedelta(days=1))
        # outside the window
        await stats.record("main", ProcessingOutcome.MATCHED, 50, day=today - timedelta(days=60))

        summaries = await stats.get_daily_summaries(days=30)

        assert [s["date"] for s in summaries] == [today, today - timedelta(days=1)]
        assert summaries[0]["processed"] == 2
        assert summaries[0]["matched"] == 1
        assert summaries[0]["success_rate"] == 50.0
        assert summaries[1]["duplicated"] == 1
        assert summaries[1]["success_rate"] == 0

    async def test_top_unmatched_groups_case_insensitive(
        self, stats: StatsAggregator, ledger: DedupLedger
    ) -> None:
        for artist, title in [
            ("Ray Parker Jr", "Ghostbusters"),
            ("ray parker jr ", " GHOSTBUSTERS"),
            ("Ray Parker Jr", "Ghostbusters"),
            ("One Off", "Only Once"),
        ]:
            await ledger.add_unmatched(
                UnmatchedEntry.from_candidate(
                    "main",
                    ParsedTrack(artist, title, f"{artist} - {title}"),
                    "No search results",
                )
            )

        top = await stats.get_top_unmatched()

        assert len(top) == 1
        assert top[0]["occurrences"] == 3
        assert top[0]["artist"].lower() == "ray parker jr"
        assert top[0]["title"].lower() == "ghostbusters"

    async def test_feed_summaries_empty(self, stats: StatsAggregator) -> None:
        assert await stats.get_feed_summaries() == []
