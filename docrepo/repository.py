"""
Unit-of-work repository over a document store.

Mutations are staged in memory with add/update/delete and written by
save_changes in three phases: inserts, then updates, then deletes. Queries
start from the repository and chain through immutable Query values.

    repo = Repository(Article, store, validate_create=lambda staged: all(a.title for a in staged))
    repo.add(Article(title="Hello"))
    await repo.save_changes()

    latest = await repo.where(field("title") == "Hello").order_by_date(OrderByDate.DESC).first()

A repository is meant to be owned by a single unit of work (one request, one
job). Its staging buffers have no locking.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from datetime import datetime
from typing import Generic

from pydantic import BaseModel, Field

from docrepo.config import get_settings
from docrepo.exceptions import InvalidArgumentError
from docrepo.models import EntityT, FilterCriteria, OrderByDate, PageResponse
from docrepo.predicates import PredicateLike
from docrepo.query import Query, SortKey
from docrepo.stores.base import DocumentStore
from docrepo.stores.motor import MotorDocumentStore
from docrepo.time_utils import generate_id, next_after

logger = logging.getLogger(__name__)

# Receives the staged inserts; returning False skips the insert phase
CreateValidator = Callable[[Sequence[EntityT]], bool]


class CommitResult(BaseModel):
    """Outcome of one save_changes call."""

    inserted: int = 0
    updated: int = 0
    deleted: int = 0
    skipped_phases: list[str] = Field(default_factory=list)


async def _settle(operations: list[Awaitable[int]], phase: str) -> int:
    """
    Run independent writes concurrently and wait for all of them.

    Returns the summed result counts. If any write failed, the first failure
    is re-raised once every other write has finished.
    """
    outcomes = await asyncio.gather(*operations, return_exceptions=True)
    failures = [o for o in outcomes if isinstance(o, BaseException)]
    for failure in failures:
        logger.warning(f"{phase} failed: {failure!r}")
    if failures:
        raise failures[0]
    return sum(outcomes)


class Repository(Generic[EntityT]):
    """Stages writes for one entity type and builds queries against its collection."""

    def __init__(
        self,
        entity_type: type[EntityT],
        store: DocumentStore,
        validate_create: CreateValidator,
        clear_after_commit: bool = True,
    ):
        if store is None:
            raise InvalidArgumentError("A document store is required", argument="store")
        self.entity_type = entity_type
        self.store = store
        self.clear_after_commit = clear_after_commit
        self._validate_create = validate_create

        self.pending_inserts: list[EntityT] = []
        self.pending_updates: list[EntityT] = []
        self.pending_deletes: list[str] = []

    def __repr__(self) -> str:
        return (
            f"Repository({self.entity_type.__name__}, inserts={len(self.pending_inserts)}, "
            f"updates={len(self.pending_updates)}, deletes={len(self.pending_deletes)})"
        )

    # ------------------------------------------------------------------
    # Staging
    # ------------------------------------------------------------------

    def add(self, entity: EntityT) -> None:
        if entity is None:
            raise InvalidArgumentError("Entity to add is required", argument="entity")
        if entity.id is None:
            entity.id = generate_id()
        self.pending_inserts.append(entity)
        logger.debug(f"Staged insert of {self.entity_type.__name__} {entity.id}")

    def update(self, entity: EntityT) -> None:
        if entity is None:
            raise InvalidArgumentError("Entity to update is required", argument="entity")
        self.pending_updates.append(entity)
        logger.debug(f"Staged update of {self.entity_type.__name__} {entity.id}")

    def delete(self, id: str) -> None:
        """Stage a delete. The id is not checked against the store."""
        self.pending_deletes.append(id)
        logger.debug(f"Staged delete of {self.entity_type.__name__} {id}")

    def reset(self) -> None:
        """Discard every staged write."""
        self.pending_inserts.clear()
        self.pending_updates.clear()
        self.pending_deletes.clear()

    @property
    def has_changes(self) -> bool:
        return bool(self.pending_inserts or self.pending_updates or self.pending_deletes)

    def validate_create(self) -> bool:
        return bool(self._validate_create(tuple(self.pending_inserts)))

    def validate_update(self) -> bool:
        """False if any staged update has no id."""
        return not any(entity.id is None for entity in self.pending_updates)

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    async def _insert_pending(self) -> int:
        documents = [entity.to_document() for entity in self.pending_inserts]
        if len(documents) == 1:
            await self.store.insert_one(documents[0])
        else:
            await self.store.insert_many(documents)
        return len(documents)

    async def _replace(self, entity: EntityT) -> int:
        modified = next_after(entity.modified_date)
        document = entity.model_copy(update={"modified_date": modified}).to_document()
        matched = await self.store.replace_one({"_id": entity.id}, document)
        # Only a committed write moves the caller's timestamp
        entity.modified_date = modified
        if not matched:
            logger.debug(f"No stored {self.entity_type.__name__} {entity.id} to replace")
        return matched

    async def save_changes(self) -> CommitResult:
        """
        Write staged inserts, then updates, then deletes.

        - Inserts go out as one batch when validate_create() passes.
        - Updates refresh modified_date and replace each stored document by id
          when validate_update() passes. Replaces run independently.
          The new modified_date is the current time, or 1 ms past the previous
          value when that value is not behind the clock (for example a stored
          date in the future). The entity keeps its old date if its replace fails.
        - Deletes remove each id; ids with no stored document are ignored.

        A phase whose validation fails is skipped without raising. When a
        write fails, the remaining writes of that phase still run, then the
        first error propagates and later phases are not attempted.

        With clear_after_commit, the buffer of every phase that was written is
        emptied; a skipped phase keeps its staged entities.
        """
        result = CommitResult()
        name = self.entity_type.__name__

        if self.pending_inserts:
            if self.validate_create():
                result.inserted = await self._insert_pending()
                if self.clear_after_commit:
                    self.pending_inserts.clear()
            else:
                logger.warning(f"Create validation failed, skipping {len(self.pending_inserts)} {name} inserts")
                result.skipped_phases.append("insert")

        if self.pending_updates:
            if self.validate_update():
                result.updated = await _settle(
                    [self._replace(entity) for entity in self.pending_updates], "replace"
                )
                if self.clear_after_commit:
                    self.pending_updates.clear()
            else:
                logger.warning(f"Update validation failed, skipping {len(self.pending_updates)} {name} updates")
                result.skipped_phases.append("update")

        if self.pending_deletes:
            result.deleted = await _settle(
                [self.store.delete_one({"_id": id}) for id in self.pending_deletes], "delete"
            )
            if self.clear_after_commit:
                self.pending_deletes.clear()

        logger.info(
            f"Saved {name} changes: {result.inserted} inserted, {result.updated} updated, "
            f"{result.deleted} deleted"
        )
        return result

    # ------------------------------------------------------------------
    # Queries (each call starts a fresh Query)
    # ------------------------------------------------------------------

    def query(self) -> Query[EntityT]:
        return Query(self.store, self.entity_type)

    def where(self, predicate: PredicateLike) -> Query[EntityT]:
        return self.query().where(predicate)

    def order_by(self, key: SortKey) -> Query[EntityT]:
        return self.query().order_by(key)

    def order_by_descending(self, key: SortKey) -> Query[EntityT]:
        return self.query().order_by_descending(key)

    def order_by_date(self, direction: OrderByDate) -> Query[EntityT]:
        return self.query().order_by_date(direction)

    def from_date(self, date: datetime) -> Query[EntityT]:
        return self.query().from_date(date)

    def to_date(self, date: datetime) -> Query[EntityT]:
        return self.query().to_date(date)

    def from_modified_date(self, date: datetime) -> Query[EntityT]:
        return self.query().from_modified_date(date)

    def to_modified_date(self, date: datetime) -> Query[EntityT]:
        return self.query().to_modified_date(date)

    def has_ids(self, ids: Iterable[str]) -> Query[EntityT]:
        return self.query().has_ids(ids)

    def has_not_ids(self, ids: Iterable[str]) -> Query[EntityT]:
        return self.query().has_not_ids(ids)

    def filter(self, criteria: FilterCriteria | None) -> Query[EntityT]:
        return self.query().filter(criteria)

    async def any(self, predicate: PredicateLike | None = None) -> bool:
        return await self.query().any(predicate)

    async def count(self, predicate: PredicateLike | None = None) -> int:
        return await self.query().count(predicate)

    async def first(self, predicate: PredicateLike | None = None) -> EntityT:
        return await self.query().first(predicate)

    async def first_or_default(self, predicate: PredicateLike | None = None) -> EntityT | None:
        return await self.query().first_or_default(predicate)

    async def to_list(self) -> list[EntityT]:
        return await self.query().to_list()

    async def paginate(self, page_size: int | None = None, page_number: int = 1) -> PageResponse[EntityT]:
        return await self.query().paginate(page_size, page_number)


def create_repository(
    entity_type: type[EntityT],
    connection_string: str | None,
    database_name: str | None,
    collection_name: str | None,
    validate_create: CreateValidator,
    clear_after_commit: bool | None = None,
) -> Repository[EntityT]:
    """
    Build a MongoDB-backed repository for `database_name.collection_name`.

    Raises:
        InvalidArgumentError: database or collection name is missing
    """
    store = MotorDocumentStore.from_connection(connection_string, database_name, collection_name)
    if clear_after_commit is None:
        clear_after_commit = get_settings().repository.clear_after_commit
    return Repository(entity_type, store, validate_create, clear_after_commit=clear_after_commit)
