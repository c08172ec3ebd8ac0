"""Multi-strategy catalog search and candidate scoring."""

import logging

import httpx

from radiosync.domain.entities import (
    CandidateMatch,
    CatalogItem,
    MatchOutcome,
    MatchResult,
)
from radiosync.domain.exceptions import ExternalServiceError, TokenRefreshException
from radiosync.domain.ports import ICatalogClient
from radiosync.domain.value_objects.similarity import SimilarityMetric, combined_score

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.75
DEFAULT_SEARCH_LIMIT = 20
# Weighted float sums land a hair below exact boundaries (0.4 * 0.75 + 0.6 * 0.75)
SCORE_TOLERANCE = 1e-9

# Radio stations mark alternate titles with "~" ("Thriller ~ Extended Mix")
TITLE_VARIANT_MARKER = "~"


def build_search_queries(artist: str, title: str) -> list[str]:
    """Queries to try, most specific first.

    The two "~" strategies only exist when the title carries the marker, and search by
    the part before it.
    """
    queries = [
        f'artist:"{artist}" track:"{title}"',
        f'"{artist}" "{title}"',
        f"{artist} {title}",
    ]
    if TITLE_VARIANT_MARKER in title:
        base_title = title.split(TITLE_VARIANT_MARKER)[0].strip()
        queries.append(f'"{base_title}" "{artist}"')
        queries.append(f'"{base_title}"')
    return queries


class CatalogMatcher:
    """Resolve an announced artist/title to the best catalog item.

    Hey future me - the search strategies are a FALLBACK chain, not a merge. The first
    query that returns anything at all wins and its results are the only candidates we
    score. A field-qualified search that returns 3 wrong tracks beats a looser search that
    would have found the right one. That's deliberate to keep API calls per track low;
    don't "fix" it without checking the rate limiter budget.
    """

    def __init__(
        self,
        catalog: ICatalogClient,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        search_limit: int = DEFAULT_SEARCH_LIMIT,
        metric: SimilarityMetric = "dice",
    ) -> None:
        self._catalog = catalog
        self.similarity_threshold = similarity_threshold
        self.search_limit = search_limit
        self.metric = metric

    async def search(self, feed: str, artist: str, title: str) -> MatchResult:
        """Search the catalog and pick the best candidate.

        Args:
            feed: Feed name (logging only)
            artist: Announced artist
            title: Announced title

        Returns:
            MatchResult. Never raises for catalog errors; a strategy that fails is
            logged and skipped.
        """
        items: list[CatalogItem] = []
        used_query: str | None = None

        for query in build_search_queries(artist, title):
            try:
                items = await self._catalog.search_tracks(query, limit=self.search_limit)
            except (httpx.HTTPError, ExternalServiceError, TokenRefreshException) as e:
                logger.warning(
                    "Search strategy failed for %s - %s (%s): %s",
                    artist,
                    title,
                    query,
                    e,
                )
                continue

            if items:
                used_query = query
                logger.debug(
                    "Found %d results for %s - %s with query: %s",
                    len(items),
                    artist,
                    title,
                    query,
                )
                break

        if not items:
            logger.info("[%s] No search results: %s - %s", feed, artist, title)
            return MatchResult(outcome=MatchOutcome.NO_RESULTS)

        best = self._pick_best(artist, title, items)

        if best.similarity + SCORE_TOLERANCE >= self.similarity_threshold:
            logger.info(
                "[%s] Match: %s - %s -> %s (%d%%)",
                feed,
                artist,
                title,
                best.item,
                best.percentage,
            )
            return MatchResult(
                outcome=MatchOutcome.MATCHED,
                match=best,
                best_candidate=best,
                candidates_considered=len(items),
                query=used_query,
            )

        logger.info(
            "[%s] No suitable match: %s - %s (best: %s, %d%%)",
            feed,
            artist,
            title,
            best.item,
            best.percentage,
        )
        return MatchResult(
            outcome=MatchOutcome.NO_SUITABLE_MATCH,
            best_candidate=best,
            candidates_considered=len(items),
            query=used_query,
        )

    def score(self, artist: str, title: str, item: CatalogItem) -> float:
        """Combined similarity of one catalog item to the announcement."""
        return combined_score(
            artist,
            title,
            " ".join(item.artists),
            item.title,
            self.metric,
        )

    # Strictly greater replaces, so on a tie the earlier (higher ranked) item stays
    def _pick_best(
        self, artist: str, title: str, items: list[CatalogItem]
    ) -> CandidateMatch:
        best: CandidateMatch | None = None
        for item in items:
            similarity = self.score(artist, title, item)
            if best is None or similarity > best.similarity:
                best = CandidateMatch(item=item, similarity=similarity)
        assert best is not None
        return best


__all__ = ["CatalogMatcher", "build_search_queries"]
