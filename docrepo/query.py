"""
Fluent query builder over a document store.

A Query is an immutable value: every builder method returns a new Query and
leaves the original untouched. Keeping a Query and running several terminal
operations on it reuses the same predicates and sort:

    recent = repo.from_date(cutoff).order_by_date(OrderByDate.DESC)
    total = await recent.count()
    page = await recent.paginate(page_size=20, page_number=1)

Predicates are combined with AND. Only one sort key is active at a time; each
order_by call replaces the previous one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any, Generic

from pydantic import BaseModel, ConfigDict
from pymongo import ASCENDING, DESCENDING

from docrepo.config import get_settings
from docrepo.exceptions import InvalidArgumentError, NotFoundError
from docrepo.models import EntityT, FilterCriteria, OrderByDate, PageResponse
from docrepo.predicates import FieldRef, Predicate, PredicateLike, as_predicate, combine, field
from docrepo.stores.base import DocumentStore, Filter
from docrepo.time_utils import ensure_utc

logger = logging.getLogger(__name__)

SortKey = str | FieldRef


class SortSpec(BaseModel):
    """Single sort key and direction."""

    model_config = ConfigDict(frozen=True)

    key: str
    direction: int = ASCENDING

    def to_mongo(self) -> tuple[str, int]:
        return (self.key, self.direction)


class Query(Generic[EntityT]):
    """Accumulated predicates and sort for one entity type, bound to a store."""

    def __init__(
        self,
        store: DocumentStore,
        entity_type: type[EntityT],
        predicates: tuple[Predicate, ...] = (),
        sort: SortSpec | None = None,
    ):
        self.store = store
        self.entity_type = entity_type
        self.predicates = predicates
        self.sort = sort

    def _replace(self, **changes: Any) -> Query[EntityT]:
        values = {"predicates": self.predicates, "sort": self.sort}
        values.update(changes)
        return Query(self.store, self.entity_type, **values)

    def __repr__(self) -> str:
        return (
            f"Query({self.entity_type.__name__}, filter={self.filter_document!r}, "
            f"sort={self.sort.to_mongo() if self.sort else None!r})"
        )

    @property
    def filter_document(self) -> Filter:
        """The accumulated predicates as one MongoDB filter; `{}` when empty."""
        return combine(self.predicates, self.entity_type.storage_key)

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    def where(self, predicate: PredicateLike) -> Query[EntityT]:
        return self._replace(predicates=self.predicates + (as_predicate(predicate),))

    def _sorted(self, key: SortKey, direction: int) -> Query[EntityT]:
        name = key.name if isinstance(key, FieldRef) else key
        spec = SortSpec(key=self.entity_type.storage_key(name), direction=direction)
        return self._replace(sort=spec)

    def order_by(self, key: SortKey) -> Query[EntityT]:
        return self._sorted(key, ASCENDING)

    def order_by_descending(self, key: SortKey) -> Query[EntityT]:
        return self._sorted(key, DESCENDING)

    def order_by_date(self, direction: OrderByDate) -> Query[EntityT]:
        if OrderByDate(direction) is OrderByDate.ASC:
            return self.order_by("created_date")
        return self.order_by_descending("created_date")

    def from_date(self, date: datetime) -> Query[EntityT]:
        return self.where(field("created_date") >= ensure_utc(date))

    def to_date(self, date: datetime) -> Query[EntityT]:
        return self.where(field("created_date") <= ensure_utc(date))

    def from_modified_date(self, date: datetime) -> Query[EntityT]:
        return self.where(field("modified_date") >= ensure_utc(date))

    def to_modified_date(self, date: datetime) -> Query[EntityT]:
        return self.where(field("modified_date") <= ensure_utc(date))

    def has_ids(self, ids: Iterable[str]) -> Query[EntityT]:
        return self.where(field("id").is_in(ids))

    def has_not_ids(self, ids: Iterable[str]) -> Query[EntityT]:
        return self.where(field("id").not_in(ids))

    def filter(self, criteria: FilterCriteria | None) -> Query[EntityT]:
        """
        Apply every constraint set on `criteria`.

        The date ordering is applied last, so it replaces any sort set earlier
        in the chain.
        """
        query = self
        if criteria is None:
            return query
        if criteria.created_date_to is not None:
            query = query.to_date(criteria.created_date_to)
        if criteria.created_date_from is not None:
            query = query.from_date(criteria.created_date_from)
        if criteria.modified_date_from is not None:
            query = query.from_modified_date(criteria.modified_date_from)
        if criteria.modified_date_to is not None:
            query = query.to_modified_date(criteria.modified_date_to)
        if criteria.ids is not None:
            query = query.has_ids(sorted(criteria.ids))
        if criteria.exclude is not None:
            query = query.has_not_ids(sorted(criteria.exclude))
        if criteria.order_by_date is not None:
            query = query.order_by_date(criteria.order_by_date)
        return query

    # ------------------------------------------------------------------
    # Terminal operations
    # ------------------------------------------------------------------

    def _narrow(self, predicate: PredicateLike | None) -> Query[EntityT]:
        return self if predicate is None else self.where(predicate)

    def _sort_arg(self) -> tuple[str, int] | None:
        return self.sort.to_mongo() if self.sort else None

    async def any(self, predicate: PredicateLike | None = None) -> bool:
        query = self._narrow(predicate)
        return await query.store.exists(query.filter_document)

    async def count(self, predicate: PredicateLike | None = None) -> int:
        query = self._narrow(predicate)
        return await query.store.count(query.filter_document)

    async def first_or_default(self, predicate: PredicateLike | None = None) -> EntityT | None:
        query = self._narrow(predicate)
        document = await query.store.find_one(query.filter_document, sort=query._sort_arg())
        if document is None:
            return None
        return self.entity_type.from_document(document)

    async def first(self, predicate: PredicateLike | None = None) -> EntityT:
        """
        Return the first match in sort order.

        Raises:
            NotFoundError: nothing matched
        """
        entity = await self.first_or_default(predicate)
        if entity is None:
            raise NotFoundError(self.entity_type.__name__, "first")
        return entity

    async def to_list(self) -> list[EntityT]:
        documents = await self.store.find(self.filter_document, sort=self._sort_arg())
        logger.debug(f"{self!r} returned {len(documents)} documents")
        return [self.entity_type.from_document(d) for d in documents]

    async def paginate(self, page_size: int | None = None, page_number: int = 1) -> PageResponse[EntityT]:
        """
        Fetch one page of results. Pages are 1-indexed.

        page_size defaults to the `repository.default_page_size` setting.

        has_next_page is `total // page_size > page_number`, using floor
        division over the total match count.

        Raises:
            InvalidArgumentError: page_size or page_number is not positive
        """
        if page_size is None:
            page_size = get_settings().repository.default_page_size
        if page_size <= 0:
            raise InvalidArgumentError(f"page_size must be positive, got {page_size}", argument="page_size")
        if page_number <= 0:
            raise InvalidArgumentError(
                f"page_number must be positive, got {page_number}", argument="page_number"
            )

        filter_document = self.filter_document
        documents, total = await asyncio.gather(
            self.store.find(
                filter_document,
                sort=self._sort_arg(),
                skip=(page_number - 1) * page_size,
                limit=page_size,
            ),
            self.store.count(filter_document),
        )
        return PageResponse[self.entity_type](
            items=[self.entity_type.from_document(d) for d in documents],
            has_next_page=total // page_size > page_number,
            page_number=page_number,
            page_size=page_size,
            total_count=total,
        )
