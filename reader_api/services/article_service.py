"""
Article service - article workflows that span repositories (SOLID: Single Responsibility).
Challenge: Keep side effects explicit at the call site (reading vs. counting a view).
Design: Service depends on repositories only; easy to test against a throwaway database.
"""

import logging
import math

from reader_api.config import Settings, get_settings
from reader_api.db.repositories.article_repository import ArticleRepository
from reader_api.db.repositories.tag_repository import TagRepository
from reader_api.schemas.article import ArticleCreate, ArticlePage, ArticleQuery, ArticleResponse

logger = logging.getLogger(__name__)


class ArticleService:
    """Reader-facing article use cases."""

    def __init__(
        self,
        article_repo: ArticleRepository,
        tag_repo: TagRepository,
        settings: Settings | None = None,
    ):
        self.article_repo = article_repo
        self.tag_repo = tag_repo
        self.settings = settings or get_settings()

    async def read_published(self, slug: str) -> ArticleResponse | None:
        """Published article by slug, counting one view. The returned view_count includes it."""
        article = await self.article_repo.find_by_slug(slug)
        if article is None:
            return None
        views = await self.article_repo.record_view(article.id)
        if views is None:
            # Deleted between the read and the view bump
            logger.info("Article %d vanished before its view was recorded", article.id)
            return None
        article.view_count = views
        return article

    async def create_with_tag_names(
        self, data: ArticleCreate, tag_names: list[str]
    ) -> ArticleResponse:
        """Create an article tagged by name; missing tags are created on the way."""
        found = await self.tag_repo.find_or_create_many(tag_names)
        tag_ids = list(dict.fromkeys([*data.tag_ids, *(tag.id for tag in found)]))
        return await self.article_repo.create(data.model_copy(update={"tag_ids": tag_ids}))

    async def list_page(self, query: ArticleQuery | None = None) -> ArticlePage:
        """One page plus totals. Page size is capped at settings.max_page_size."""
        query = query or ArticleQuery(limit=self.settings.default_page_size)
        if query.limit > self.settings.max_page_size:
            query = query.model_copy(update={"limit": self.settings.max_page_size})
        items = await self.article_repo.find_all(query)
        total = await self.article_repo.count(query)
        return ArticlePage(
            items=items,
            total=total,
            limit=query.limit,
            offset=query.offset,
            pages=math.ceil(total / query.limit),
        )
