"""Domain ports (interfaces) for external collaborators."""

from abc import ABC, abstractmethod
from typing import Any

from radiosync.domain.entities import CatalogItem


class ICatalogClient(ABC):
    """Port for the music catalog (search, playlist lookup/create, append)."""

    @abstractmethod
    async def search_tracks(self, query: str, limit: int = 20) -> list[CatalogItem]:
        """
        Search the catalog for tracks.

        Args:
            query: Free-text or field-qualified search query
            limit: Maximum number of results

        Returns:
            Matching catalog items, in no guaranteed order
        """
        pass

    @abstractmethod
    async def add_to_collection(self, collection_id: str, item: CatalogItem) -> None:
        """
        Append a catalog item to a collection.

        Not idempotent: calling twice appends twice.

        Args:
            collection_id: Destination collection (playlist) ID
            item: Catalog item to append
        """
        pass

    @abstractmethod
    async def find_collection_by_name(self, name: str) -> dict[str, Any] | None:
        """
        Find a collection owned by the current user by exact name.

        Args:
            name: Collection name

        Returns:
            Raw collection object or None if not found
        """
        pass

    @abstractmethod
    async def create_collection(
        self, name: str, description: str = "", public: bool = False
    ) -> dict[str, Any]:
        """
        Create a collection for the current user.

        Args:
            name: Collection name
            description: Collection description
            public: Visibility

        Returns:
            Raw collection object (must contain "id")
        """
        pass

    @abstractmethod
    async def count_collection_tracks(self, collection_id: str) -> int:
        """
        Count unique tracks currently in a collection.

        Args:
            collection_id: Collection ID

        Returns:
            Number of distinct track IDs
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release network resources."""
        pass


__all__ = ["ICatalogClient"]
