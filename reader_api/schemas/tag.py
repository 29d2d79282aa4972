"""Tag input/output schemas."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from reader_api.schemas.common import ListOptions, SortDirection, reject_null

HEX_COLOR = r"^#(?:[0-9A-Fa-f]{3}){1,2}$"


class TagCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: str | None = None
    slug: str | None = Field(None, max_length=60)  # derived from name when omitted
    color: str | None = Field(None, pattern=HEX_COLOR)


class TagUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=50)
    description: str | None = None
    slug: str | None = Field(None, min_length=1, max_length=60)
    color: str | None = Field(None, pattern=HEX_COLOR)
    is_active: bool | None = None

    @field_validator("name", "slug", "is_active")
    @classmethod
    def _not_null(cls, value):
        return reject_null(value)


class TagQuery(ListOptions):
    limit: int = Field(50, ge=1)
    order_by: str = "name"
    direction: SortDirection = "asc"
    is_active: bool | None = True
    search: str | None = None
    include_article_count: bool = False


class TagResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    slug: str
    color: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    # Only set when requested (published articles carrying the tag)
    article_count: int | None = None
