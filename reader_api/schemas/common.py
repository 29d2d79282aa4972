"""Shared pieces of the list/query option schemas."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

SortDirection = Literal["asc", "desc"]


class ListOptions(BaseModel):
    """Pagination and ordering. Subclasses override the defaults per entity."""

    limit: int = Field(20, ge=1)
    offset: int = Field(0, ge=0)
    order_by: str = "created_at"
    direction: SortDirection = "desc"

    @field_validator("direction", mode="before")
    @classmethod
    def _lowercase_direction(cls, value):
        return value.lower() if isinstance(value, str) else value


def reject_null(value):
    """Partial updates may leave a NOT NULL column out, but may not set it to None."""
    if value is None:
        raise ValueError("may be omitted but cannot be null")
    return value
