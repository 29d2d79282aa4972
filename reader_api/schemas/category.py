"""Category input/output schemas."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from reader_api.schemas.common import ListOptions, SortDirection, reject_null


class CategorySummary(BaseModel):
    id: int
    name: str
    slug: str


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    slug: str | None = Field(None, max_length=120)  # derived from name when omitted
    parent_id: int | None = None
    sort_order: int = 0


class CategoryUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None
    slug: str | None = Field(None, min_length=1, max_length=120)
    parent_id: int | None = None
    sort_order: int | None = None
    # False goes through the same guard as CategoryRepository.delete_by_id
    is_active: bool | None = None

    @field_validator("name", "slug", "sort_order", "is_active")
    @classmethod
    def _not_null(cls, value):
        return reject_null(value)


class CategoryQuery(ListOptions):
    limit: int = Field(50, ge=1)
    order_by: str = "sort_order"
    direction: SortDirection = "asc"
    is_active: bool | None = True
    parent_id: int | None = None
    # parent_id IS NULL; takes precedence over parent_id
    roots_only: bool = False
    include_parent: bool = False
    include_children: bool = False
    include_article_count: bool = False


class CategoryResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    slug: str
    parent_id: int | None = None
    sort_order: int
    is_active: bool
    created_at: datetime
    updated_at: datetime
    # Relations below are only set when the caller asked for them
    parent: CategorySummary | None = None
    children: list["CategoryResponse"] | None = None
    article_count: int | None = None
