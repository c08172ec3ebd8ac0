"""Find or create the destination collection (playlist) of each feed."""

import logging

from radiosync.application.services.dedup_ledger import DedupLedger
from radiosync.domain.entities import CollectionRecord, Feed
from radiosync.domain.exceptions import ExternalServiceError
from radiosync.domain.ports import ICatalogClient

logger = logging.getLogger(__name__)

COLLECTION_DESCRIPTION_TEMPLATE = "Automatically curated tracks from {display_name} feed"


class CollectionService:
    """Bind feeds to catalog collections.

    Reuses an existing playlist with the EXACT configured name (case sensitive), creates a
    private one otherwise, and records the binding in the ledger so the id survives
    restarts for reporting.
    """

    def __init__(self, catalog: ICatalogClient, ledger: DedupLedger) -> None:
        self._catalog = catalog
        self._ledger = ledger

    async def bind(self, feed: Feed) -> CollectionRecord:
        """Find or create the collection for ``feed`` and persist the binding.

        Raises:
            ExternalServiceError: Catalog lookup/creation failed or returned no id
        """
        playlist = await self._catalog.find_collection_by_name(feed.collection_name)

        if playlist is None:
            logger.info("Creating new playlist: %s", feed.collection_name)
            playlist = await self._catalog.create_collection(
                feed.collection_name,
                description=COLLECTION_DESCRIPTION_TEMPLATE.format(
                    display_name=feed.display_name
                ),
                public=False,
            )
            logger.info("Created playlist: %s (ID: %s)", feed.collection_name, playlist.get("id"))
        else:
            logger.info(
                "Using existing playlist: %s (ID: %s)", feed.collection_name, playlist.get("id")
            )

        collection_id = playlist.get("id")
        if not collection_id:
            raise ExternalServiceError(
                f"Invalid playlist object for {feed.name}: missing id"
            )

        return await self._ledger.upsert_collection_record(
            feed.name, collection_id, feed.collection_name
        )

    async def count_tracks(self, record: CollectionRecord) -> int:
        """Number of distinct tracks already in the bound collection."""
        return await self._catalog.count_collection_tracks(record.collection_id)


__all__ = ["COLLECTION_DESCRIPTION_TEMPLATE", "CollectionService"]
