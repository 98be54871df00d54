"""
Document models shared by every repository.

This module provides:
- DocumentEntity: base shape of stored records (id, created/modified timestamps)
- FilterCriteria: optional date/id/order constraints for a query
- PageResponse: one page of query results
"""

from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from docrepo.time_utils import generate_id, truncate_to_millis, utc_now


class OrderByDate(str, Enum):
    """Sort direction applied to created_date."""

    ASC = "asc"
    DESC = "desc"


class DocumentEntity(BaseModel):
    """
    Base document class for all stored entities.

    Provides:
    - An id stored under the `_id` key, generated from a tick timestamp when absent
    - created_date, fixed at construction
    - modified_date, refreshed by the repository when an update is committed

    Timestamps are UTC with millisecond precision, matching what BSON keeps.
    modified_date is never earlier than created_date.
    """

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    id: str | None = Field(default_factory=generate_id, alias="_id")
    created_date: datetime = Field(default_factory=utc_now, frozen=True)
    modified_date: datetime = Field(default_factory=utc_now)

    @field_validator("created_date", "modified_date", mode="after")
    @classmethod
    def normalise_timestamp(cls, v: datetime) -> datetime:
        """Store timestamps as UTC at millisecond precision."""
        return truncate_to_millis(v)

    @model_validator(mode="after")
    def check_date_order(self):
        if self.modified_date < self.created_date:
            raise ValueError("modified_date cannot be earlier than created_date")
        return self

    @classmethod
    def storage_key(cls, name: str) -> str:
        """Map an attribute name to the key used in the stored document."""
        field_info = cls.model_fields.get(name)
        if field_info is not None and field_info.alias:
            return field_info.alias
        return name

    def to_document(self) -> dict[str, Any]:
        """Serialize to the store representation."""
        return self.model_dump(by_alias=True)

    @classmethod
    def from_document(cls, document: dict[str, Any]):
        return cls.model_validate(document)


EntityT = TypeVar("EntityT", bound=DocumentEntity)


class FilterCriteria(BaseModel):
    """Caller-supplied query constraints. Every field is optional and independent."""

    created_date_from: datetime | None = None
    created_date_to: datetime | None = None
    modified_date_from: datetime | None = None
    modified_date_to: datetime | None = None
    ids: set[str] | None = None
    exclude: set[str] | None = None
    order_by_date: OrderByDate | None = None


class PageResponse(BaseModel, Generic[EntityT]):
    """One page of results returned by paginate()."""

    model_config = ConfigDict(frozen=True)

    items: list[EntityT] = Field(default_factory=list)
    has_next_page: bool = False
    page_number: int = 1
    page_size: int = 0
    total_count: int = 0
