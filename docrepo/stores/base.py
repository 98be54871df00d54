"""
Document store interface.

Repositories reach the database only through this capability set, so the
MongoDB driver can be swapped for the in-memory store in tests.
"""

from abc import ABC, abstractmethod
from typing import Any

Document = dict[str, Any]
Filter = dict[str, Any]
# (key, direction) with direction 1 for ascending and -1 for descending
Sort = tuple[str, int]


class DocumentStore(ABC):
    """
    Abstract async document collection.

    Implementations must provide insert, replace-by-filter, delete-by-filter
    and find operations over a single collection.
    """

    @abstractmethod
    async def insert_one(self, document: Document) -> Any:
        """
        Insert a single document.

        Args:
            document: Document to insert; its `_id` must be unique

        Returns:
            The inserted document's id
        """
        pass

    @abstractmethod
    async def insert_many(self, documents: list[Document]) -> list[Any]:
        """
        Insert documents in order as one batched operation.

        Returns:
            Ids of the inserted documents
        """
        pass

    @abstractmethod
    async def replace_one(self, filter: Filter, document: Document) -> int:
        """
        Replace the first document matching `filter`.

        Returns:
            Number of matched documents (0 or 1)
        """
        pass

    @abstractmethod
    async def delete_one(self, filter: Filter) -> int:
        """
        Delete the first document matching `filter`. A filter that matches
        nothing is not an error.

        Returns:
            Number of deleted documents (0 or 1)
        """
        pass

    @abstractmethod
    async def find(
        self,
        filter: Filter,
        sort: Sort | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[Document]:
        """
        Find documents matching `filter`.

        Args:
            filter: MongoDB filter document; `{}` matches everything
            sort: Optional single sort key and direction
            skip: Number of matching documents to skip
            limit: Maximum number of documents to return; 0 means no limit

        Returns:
            Matching documents in sort order (store order when unsorted)
        """
        pass

    @abstractmethod
    async def find_one(self, filter: Filter, sort: Sort | None = None) -> Document | None:
        """Return the first matching document, or None."""
        pass

    @abstractmethod
    async def count(self, filter: Filter) -> int:
        """Count documents matching `filter`."""
        pass

    async def exists(self, filter: Filter) -> bool:
        """Return True if at least one document matches `filter`."""
        return await self.find_one(filter) is not None
