"""docrepo: unit-of-work repositories and fluent queries over MongoDB."""

__version__ = "0.1.0"

from docrepo.exceptions import (
    InvalidArgumentError,
    NotFoundError,
    RepositoryError,
    StoreUnavailableError,
)
from docrepo.models import DocumentEntity, FilterCriteria, OrderByDate, PageResponse
from docrepo.predicates import Predicate, field
from docrepo.query import Query, SortSpec
from docrepo.repository import CommitResult, Repository, create_repository
from docrepo.stores import DocumentStore, InMemoryDocumentStore, MotorDocumentStore

__all__ = [
    "__version__",
    # Models
    "DocumentEntity",
    "FilterCriteria",
    "OrderByDate",
    "PageResponse",
    # Queries
    "Predicate",
    "Query",
    "SortSpec",
    "field",
    # Unit of work
    "CommitResult",
    "Repository",
    "create_repository",
    # Stores
    "DocumentStore",
    "InMemoryDocumentStore",
    "MotorDocumentStore",
    # Errors
    "RepositoryError",
    "InvalidArgumentError",
    "NotFoundError",
    "StoreUnavailableError",
]
