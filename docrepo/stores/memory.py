"""
In-memory document store for development and testing.

Documents live in an insertion-ordered dict keyed by `_id`. Filters are
evaluated against a subset of the MongoDB query language:
$eq $ne $gt $gte $lt $lte $in $nin $exists $and $or $nor $not.
"""

import copy
from datetime import datetime
from typing import Any

from pymongo.errors import BulkWriteError, DuplicateKeyError

from docrepo.time_utils import generate_id

from .base import Document, DocumentStore, Filter, Sort


_MISSING = object()


def _lookup(document: Document, key: str) -> Any:
    """Resolve a dotted key, returning _MISSING when any segment is absent."""
    value: Any = document
    for part in key.split("."):
        if isinstance(value, dict) and part in value:
            value = value[part]
        else:
            return _MISSING
    return value


def _compare(value: Any, operand: Any, op: str) -> bool:
    if value is _MISSING or value is None or operand is None:
        return False
    try:
        if op == "$gt":
            return value > operand
        if op == "$gte":
            return value >= operand
        if op == "$lt":
            return value < operand
        return value <= operand
    except TypeError:
        # Mongo never matches range operators across BSON types
        return False


def _equals(value: Any, operand: Any) -> bool:
    if value is _MISSING:
        return operand is None
    if isinstance(value, list) and not isinstance(operand, list):
        return operand in value
    return value == operand


def _match_operator(value: Any, op: str, operand: Any) -> bool:
    if op == "$eq":
        return _equals(value, operand)
    if op == "$ne":
        return not _equals(value, operand)
    if op in ("$gt", "$gte", "$lt", "$lte"):
        if isinstance(value, list):
            return any(_compare(item, operand, op) for item in value)
        return _compare(value, operand, op)
    if op == "$in":
        return any(_equals(value, item) for item in operand)
    if op == "$nin":
        return not any(_equals(value, item) for item in operand)
    if op == "$exists":
        return (value is not _MISSING) == bool(operand)
    if op == "$not":
        return not _match_condition(value, operand)
    raise ValueError(f"Unsupported query operator: {op}")


def _match_condition(value: Any, condition: Any) -> bool:
    if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
        return all(_match_operator(value, op, operand) for op, operand in condition.items())
    return _equals(value, condition)


def matches(document: Document, query: Filter) -> bool:
    """Return True if `document` satisfies the MongoDB filter `query`."""
    for key, condition in query.items():
        if key == "$and":
            if not all(matches(document, sub) for sub in condition):
                return False
        elif key == "$or":
            if not any(matches(document, sub) for sub in condition):
                return False
        elif key == "$nor":
            if any(matches(document, sub) for sub in condition):
                return False
        elif key.startswith("$"):
            raise ValueError(f"Unsupported top-level operator: {key}")
        elif not _match_condition(_lookup(document, key), condition):
            return False
    return True


def _type_rank(value: Any) -> int:
    # Cross-type order follows BSON: numbers, strings, objects, arrays, binary, booleans, dates
    if isinstance(value, bool):
        return 6
    if isinstance(value, (int, float)):
        return 1
    if isinstance(value, str):
        return 2
    if isinstance(value, dict):
        return 3
    if isinstance(value, (list, tuple)):
        return 4
    if isinstance(value, bytes):
        return 5
    if isinstance(value, datetime):
        return 7
    return 8


def _sort_key(key: str):
    def extract(document: Document) -> tuple:
        value = _lookup(document, key)
        # Missing and null sort before every other value
        if value is _MISSING or value is None:
            return (0, 0, 0)
        rank = _type_rank(value)
        if rank in (3, 8):
            return (1, rank, repr(value))
        return (1, rank, value)

    return extract


class InMemoryDocumentStore(DocumentStore):
    """
    Dict-backed document collection.

    Data is lost when the process exits. Stored and returned documents are
    deep copies, so callers cannot mutate stored state by accident.
    """

    def __init__(self, name: str = "memory"):
        self.name = name
        self._documents: dict[Any, Document] = {}

    def __len__(self) -> int:
        return len(self._documents)

    def _prepare(self, document: Document) -> Document:
        stored = copy.deepcopy(document)
        if stored.get("_id") is None:
            stored["_id"] = generate_id()
        return stored

    async def insert_one(self, document: Document) -> Any:
        stored = self._prepare(document)
        if stored["_id"] in self._documents:
            raise DuplicateKeyError(
                f"E11000 duplicate key error collection: {self.name} dup key: {{ _id: {stored['_id']!r} }}",
                11000,
            )
        self._documents[stored["_id"]] = stored
        return stored["_id"]

    async def insert_many(self, documents: list[Document]) -> list[Any]:
        inserted: list[Any] = []
        for index, document in enumerate(documents):
            stored = self._prepare(document)
            if stored["_id"] in self._documents:
                # Ordered inserts stop at the first failure, earlier documents stay
                raise BulkWriteError(
                    {
                        "writeErrors": [
                            {
                                "index": index,
                                "code": 11000,
                                "errmsg": f"E11000 duplicate key error collection: {self.name}",
                                "op": stored,
                            }
                        ],
                        "nInserted": len(inserted),
                    }
                )
            self._documents[stored["_id"]] = stored
            inserted.append(stored["_id"])
        return inserted

    def _first_match(self, filter: Filter) -> Document | None:
        for document in self._documents.values():
            if matches(document, filter):
                return document
        return None

    async def replace_one(self, filter: Filter, document: Document) -> int:
        target = self._first_match(filter)
        if target is None:
            return 0
        replacement = copy.deepcopy(document)
        replacement["_id"] = target["_id"]
        self._documents[target["_id"]] = replacement
        return 1

    async def delete_one(self, filter: Filter) -> int:
        target = self._first_match(filter)
        if target is None:
            return 0
        del self._documents[target["_id"]]
        return 1

    async def find(
        self,
        filter: Filter,
        sort: Sort | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[Document]:
        results = [d for d in self._documents.values() if matches(d, filter)]
        if sort is not None:
            key, direction = sort
            results.sort(key=_sort_key(key), reverse=direction < 0)
        if skip:
            results = results[skip:]
        if limit:
            results = results[:limit]
        return [copy.deepcopy(d) for d in results]

    async def find_one(self, filter: Filter, sort: Sort | None = None) -> Document | None:
        results = await self.find(filter, sort=sort, limit=1)
        return results[0] if results else None

    async def count(self, filter: Filter) -> int:
        return sum(1 for d in self._documents.values() if matches(d, filter))
