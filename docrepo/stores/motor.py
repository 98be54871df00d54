"""MongoDB-backed document store using the Motor async driver."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import ConnectionFailure

from docrepo.connection import get_collection
from docrepo.exceptions import StoreUnavailableError

from .base import Document, DocumentStore, Filter, Sort

logger = logging.getLogger(__name__)


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Raise connection failures as StoreUnavailableError; other driver errors pass through."""
    try:
        yield
    except ConnectionFailure as e:
        logger.error(f"MongoDB unavailable during {operation}: {e}")
        raise StoreUnavailableError(f"MongoDB unavailable during {operation}: {e}") from e


class MotorDocumentStore(DocumentStore):
    """Document store over a single Motor collection."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    @classmethod
    def from_connection(
        cls,
        connection_string: str | None,
        database_name: str | None,
        collection_name: str | None,
    ) -> MotorDocumentStore:
        """
        Build a store for `database_name.collection_name`.

        Raises:
            InvalidArgumentError: database or collection name is missing
        """
        return cls(get_collection(database_name, collection_name, connection_string))

    @property
    def name(self) -> str:
        return self.collection.full_name

    async def insert_one(self, document: Document) -> Any:
        with _store_errors("insert_one"):
            result = await self.collection.insert_one(document)
        return result.inserted_id

    async def insert_many(self, documents: list[Document]) -> list[Any]:
        with _store_errors("insert_many"):
            result = await self.collection.insert_many(documents)
        return list(result.inserted_ids)

    async def replace_one(self, filter: Filter, document: Document) -> int:
        with _store_errors("replace_one"):
            result = await self.collection.replace_one(filter, document)
        return result.matched_count

    async def delete_one(self, filter: Filter) -> int:
        with _store_errors("delete_one"):
            result = await self.collection.delete_one(filter)
        return result.deleted_count

    async def find(
        self,
        filter: Filter,
        sort: Sort | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[Document]:
        cursor = self.collection.find(filter)
        if sort is not None:
            cursor = cursor.sort(*sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        with _store_errors("find"):
            return await cursor.to_list(length=None)

    async def find_one(self, filter: Filter, sort: Sort | None = None) -> Document | None:
        with _store_errors("find_one"):
            return await self.collection.find_one(filter, sort=[sort] if sort else None)

    async def count(self, filter: Filter) -> int:
        with _store_errors("count"):
            return await self.collection.count_documents(filter)

    async def exists(self, filter: Filter) -> bool:
        with _store_errors("exists"):
            return await self.collection.find_one(filter, projection={"_id": 1}) is not None
