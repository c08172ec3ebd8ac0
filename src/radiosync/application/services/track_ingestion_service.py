"""Per-announcement pipeline: search, dedup claim, append, record."""

import logging

from radiosync.application.services.catalog_matcher import CatalogMatcher
from radiosync.application.services.dedup_ledger import DedupLedger
from radiosync.application.services.stats_aggregator import StatsAggregator
from radiosync.application.workers.change_detector import FeedContext
from radiosync.domain.entities import (
    MatchedEntry,
    MatchResult,
    ParsedTrack,
    ProcessingOutcome,
    UnmatchedEntry,
    utc_now,
)
from radiosync.domain.ports import ICatalogClient
from radiosync.infrastructure.observability.logging import set_correlation_id

logger = logging.getLogger(__name__)

NO_COLLECTION_REASON = "No collection bound for feed"


class TrackIngestionService:
    """Turn one genuine track change into exactly one recorded outcome.

    Hey future me, the order below is what guarantees at-most-once insertion:

        search -> already added? -> claim ledger row -> append -> stats

    The ledger row is claimed BEFORE the playlist append. If another feed claimed the same
    catalog id a millisecond earlier, add_matched() returns None and we never touch the
    playlist. If the append fails after our claim, the claim is released so a later
    announcement can try again. Don't reorder these steps.
    """

    def __init__(
        self,
        matcher: CatalogMatcher,
        ledger: DedupLedger,
        stats: StatsAggregator,
        catalog: ICatalogClient,
    ) -> None:
        self._matcher = matcher
        self._ledger = ledger
        self._stats = stats
        self._catalog = catalog

    async def process(self, context: FeedContext, track: ParsedTrack) -> ProcessingOutcome:
        """Run the full pipeline for one track change of ``context.feed``.

        Never raises (except cancellation); unexpected errors are recorded as unmatched.
        """
        set_correlation_id()
        feed = context.name

        try:
            outcome = await self._process(context, track)
        except Exception as e:
            logger.exception("[%s] Error processing %s", feed, track)
            outcome = await self._record_unmatched(
                feed, UnmatchedEntry.from_candidate(feed, track, reason=f"Error: {e}")
            )

        context.last_outcome = outcome
        context.last_processed_at = utc_now()
        return outcome

    async def _process(self, context: FeedContext, track: ParsedTrack) -> ProcessingOutcome:
        feed = context.name
        logger.info("[%s] New track: %s", feed, track)

        result = await self._matcher.search(feed, track.artist, track.title)
        if not result.is_match:
            return await self._record_unmatched(
                feed,
                UnmatchedEntry.from_candidate(
                    feed,
                    track,
                    reason=result.outcome.reason,
                    candidate=result.best_candidate,
                    search_results_count=result.candidates_considered,
                ),
            )

        assert result.match is not None
        candidate = result.match

        if await self._ledger.is_already_added(candidate.item.id):
            logger.info("[%s] Track already exists: %s", feed, candidate.item)
            await self._stats.record(feed, ProcessingOutcome.DUPLICATE)
            return ProcessingOutcome.DUPLICATE

        collection = context.collection
        if collection is None:
            logger.error("[%s] No collection bound, cannot add %s", feed, candidate.item)
            return await self._record_unmatched(
                feed, self._unmatched_for(feed, track, NO_COLLECTION_REASON, result)
            )

        entry_id = await self._ledger.add_matched(
            MatchedEntry.from_candidate(feed, track, candidate, collection.name)
        )
        if entry_id is None:
            logger.info("[%s] Track claimed by another feed: %s", feed, candidate.item)
            await self._stats.record(feed, ProcessingOutcome.DUPLICATE)
            return ProcessingOutcome.DUPLICATE

        try:
            await self._catalog.add_to_collection(collection.collection_id, candidate.item)
        except Exception as e:
            logger.error(
                "[%s] Failed to add %s to %s: %s", feed, candidate.item, collection.name, e
            )
            await self._ledger.release_matched(entry_id)
            return await self._record_unmatched(
                feed,
                self._unmatched_for(feed, track, f"Spotify API error: {e}", result),
            )

        context.tracks_added += 1
        await self._stats.record(
            feed, ProcessingOutcome.MATCHED, match_percentage=candidate.percentage
        )
        logger.info(
            "[%s] Added to %s: %s (%d%% match)",
            feed,
            collection.name,
            candidate.item,
            candidate.percentage,
        )
        return ProcessingOutcome.MATCHED

    @staticmethod
    def _unmatched_for(
        feed: str, track: ParsedTrack, reason: str, result: MatchResult
    ) -> UnmatchedEntry:
        return UnmatchedEntry.from_candidate(
            feed,
            track,
            reason=reason,
            candidate=result.match,
            search_results_count=result.candidates_considered,
        )

    async def _record_unmatched(
        self, feed: str, entry: UnmatchedEntry
    ) -> ProcessingOutcome:
        try:
            await self._ledger.add_unmatched(entry)
        except Exception as e:
            logger.error("[%s] Could not store unmatched track %s: %s", feed, entry.track, e)
        await self._stats.record(feed, ProcessingOutcome.UNMATCHED)
        return ProcessingOutcome.UNMATCHED


__all__ = ["NO_COLLECTION_REASON", "TrackIngestionService"]
