"""
Predicate expressions over stored documents.

Predicates are small immutable values that translate to MongoDB filter
documents. They are built from field references:

    field("score") >= 10
    field("id").is_in(["a", "b"])
    (field("status") == "open") & (field("score") > 3)

Raw filter documents (plain dicts) are accepted wherever a predicate is, for
operators this module does not model.
"""

from collections.abc import Callable, Iterable
from typing import Any, Union

# Resolves an attribute name to its stored key (e.g. "id" -> "_id")
KeyResolver = Callable[[str], str]


def _identity(name: str) -> str:
    return name


class Predicate:
    """A boolean condition over a document."""

    def to_mongo(self, resolve: KeyResolver = _identity) -> dict[str, Any]:
        raise NotImplementedError

    def __and__(self, other: "PredicateLike") -> "Conjunction":
        return Conjunction([self, as_predicate(other)])

    def __rand__(self, other: "PredicateLike") -> "Conjunction":
        return Conjunction([as_predicate(other), self])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Predicate):
            return NotImplemented
        return self.to_mongo() == other.to_mongo()

    def __hash__(self) -> int:
        return hash(repr(self.to_mongo()))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_mongo()!r})"


class Comparison(Predicate):
    """`<field> <operator> <value>` using a MongoDB query operator."""

    def __init__(self, name: str, operator: str, value: Any):
        self.name = name
        self.operator = operator
        self.value = value

    def to_mongo(self, resolve: KeyResolver = _identity) -> dict[str, Any]:
        return {resolve(self.name): {self.operator: self.value}}


class Conjunction(Predicate):
    """Logical AND of predicates; nested conjunctions are flattened."""

    def __init__(self, parts: Iterable[Predicate]):
        flattened: list[Predicate] = []
        for part in parts:
            if isinstance(part, Conjunction):
                flattened.extend(part.parts)
            else:
                flattened.append(part)
        self.parts = tuple(flattened)

    def to_mongo(self, resolve: KeyResolver = _identity) -> dict[str, Any]:
        return combine(self.parts, resolve)


class RawPredicate(Predicate):
    """A filter document passed through untouched."""

    def __init__(self, query: dict[str, Any]):
        self.query = dict(query)

    def to_mongo(self, resolve: KeyResolver = _identity) -> dict[str, Any]:
        return dict(self.query)


PredicateLike = Union[Predicate, dict[str, Any]]


def as_predicate(value: PredicateLike) -> Predicate:
    if isinstance(value, Predicate):
        return value
    if isinstance(value, dict):
        return RawPredicate(value)
    raise TypeError(f"Expected a Predicate or filter dict, got {type(value).__name__}")


class FieldRef:
    """Reference to a document attribute; comparison operators build predicates."""

    def __init__(self, name: str):
        self.name = name

    def __eq__(self, value: Any) -> Comparison:  # type: ignore[override]
        return Comparison(self.name, "$eq", value)

    def __ne__(self, value: Any) -> Comparison:  # type: ignore[override]
        return Comparison(self.name, "$ne", value)

    def __lt__(self, value: Any) -> Comparison:
        return Comparison(self.name, "$lt", value)

    def __le__(self, value: Any) -> Comparison:
        return Comparison(self.name, "$lte", value)

    def __gt__(self, value: Any) -> Comparison:
        return Comparison(self.name, "$gt", value)

    def __ge__(self, value: Any) -> Comparison:
        return Comparison(self.name, "$gte", value)

    __hash__ = None  # type: ignore[assignment]

    def is_in(self, values: Iterable[Any]) -> Comparison:
        return Comparison(self.name, "$in", list(values))

    def not_in(self, values: Iterable[Any]) -> Comparison:
        return Comparison(self.name, "$nin", list(values))

    def exists(self, flag: bool = True) -> Comparison:
        return Comparison(self.name, "$exists", flag)

    def __repr__(self) -> str:
        return f"field({self.name!r})"


def field(name: str) -> FieldRef:
    return FieldRef(name)


def combine(predicates: Iterable[Predicate], resolve: KeyResolver = _identity) -> dict[str, Any]:
    """
    Translate a predicate list to one filter document.

    An empty list matches every document; one predicate is used as-is;
    several are wrapped in `$and`.
    """
    queries = [p.to_mongo(resolve) for p in predicates]
    if not queries:
        return {}
    if len(queries) == 1:
        return queries[0]
    return {"$and": queries}
