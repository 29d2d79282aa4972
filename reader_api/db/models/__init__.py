from reader_api.db.models.article import Article, ArticleTag
from reader_api.db.models.category import Category
from reader_api.db.models.tag import Tag
from reader_api.db.models.user import User

__all__ = ["Article", "ArticleTag", "Category", "Tag", "User"]
