# Repository pattern: abstract data access (SOLID - Dependency Inversion)

from reader_api.db.repositories.article_repository import ArticleRepository
from reader_api.db.repositories.category_repository import CategoryRepository
from reader_api.db.repositories.tag_repository import TagRepository
from reader_api.db.repositories.user_repository import UserRepository

__all__ = ["ArticleRepository", "CategoryRepository", "TagRepository", "UserRepository"]
