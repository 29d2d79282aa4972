from reader_api.schemas.article import (
    ArticleCreate,
    ArticlePage,
    ArticleQuery,
    ArticleResponse,
    ArticleStatus,
    ArticleUpdate,
    AuthorSummary,
    TagSummary,
)
from reader_api.schemas.category import (
    CategoryCreate,
    CategoryQuery,
    CategoryResponse,
    CategorySummary,
    CategoryUpdate,
)
from reader_api.schemas.tag import TagCreate, TagQuery, TagResponse, TagUpdate
from reader_api.schemas.user import UserCreate, UserQuery, UserResponse, UserUpdate

__all__ = [
    "ArticleCreate",
    "ArticlePage",
    "ArticleQuery",
    "ArticleResponse",
    "ArticleStatus",
    "ArticleUpdate",
    "AuthorSummary",
    "CategoryCreate",
    "CategoryQuery",
    "CategoryResponse",
    "CategorySummary",
    "CategoryUpdate",
    "TagCreate",
    "TagQuery",
    "TagResponse",
    "TagSummary",
    "TagUpdate",
    "UserCreate",
    "UserQuery",
    "UserResponse",
    "UserUpdate",
]
