"""Article input/output schemas - the contract between callers and ArticleRepository."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from reader_api.schemas.category import CategorySummary
from reader_api.schemas.common import ListOptions, reject_null


class ArticleStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class AuthorSummary(BaseModel):
    id: int
    username: str
    avatar: str | None = None


class TagSummary(BaseModel):
    id: int
    name: str
    slug: str
    color: str | None = None


class ArticleCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    summary: str | None = None
    slug: str | None = Field(None, max_length=255)  # derived from title when omitted
    author_id: int
    category_id: int | None = None
    status: ArticleStatus = ArticleStatus.DRAFT
    featured_image: str | None = None
    is_public: bool = True
    tag_ids: list[int] = Field(default_factory=list)


class ArticleUpdate(BaseModel):
    """Partial update: only fields the caller sets are written. author_id is immutable."""

    model_config = ConfigDict(use_enum_values=True)

    title: str | None = Field(None, min_length=1, max_length=255)
    content: str | None = Field(None, min_length=1)
    summary: str | None = None
    category_id: int | None = None
    status: ArticleStatus | None = None
    featured_image: str | None = None
    is_public: bool | None = None
    # None leaves tags alone; [] removes them all
    tag_ids: list[int] | None = None

    @field_validator("title", "content", "status", "is_public")
    @classmethod
    def _not_null(cls, value):
        return reject_null(value)


class ArticleQuery(ListOptions):
    model_config = ConfigDict(use_enum_values=True)

    status: ArticleStatus | None = None
    author_id: int | None = None
    category_id: int | None = None
    is_public: bool | None = None
    search: str | None = None
    tag_ids: list[int] = Field(default_factory=list)
    include_author: bool = False
    include_category: bool = False
    include_tags: bool = False


class ArticleResponse(BaseModel):
    id: int
    title: str
    content: str
    summary: str | None = None
    slug: str
    author_id: int
    category_id: int | None = None
    status: ArticleStatus
    featured_image: str | None = None
    view_count: int
    like_count: int
    is_public: bool
    published_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    # Populated only on request; use model_dump(exclude_unset=True) to drop unrequested ones
    author: AuthorSummary | None = None
    category: CategorySummary | None = None
    tags: list[TagSummary] | None = None


class ArticlePage(BaseModel):
    """One page of articles plus the totals a caller needs for pagination links."""

    items: list[ArticleResponse]
    total: int
    limit: int
    offset: int
    pages: int
