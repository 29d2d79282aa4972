"""
Article repository - article data access and query optimization (SOLID: Single Responsibility).
Challenge: Multi-statement writes stay atomic; related rows are batch-loaded to avoid N+1.
"""

from collections.abc import Sequence

from sqlalchemy import case, delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncConnection

from reader_api.core.exceptions import InvalidQueryError
from reader_api.db.database import Row, fetch_rows
from reader_api.db.models.article import Article, ArticleTag
from reader_api.db.models.category import Category
from reader_api.db.models.tag import Tag
from reader_api.db.models.user import User
from reader_api.db.query import apply_filters, contains_ci, order_clauses
from reader_api.db.repositories.base_repository import BaseRepository
from reader_api.schemas.article import (
    ArticleCreate,
    ArticleQuery,
    ArticleResponse,
    ArticleStatus,
    ArticleUpdate,
    AuthorSummary,
    TagSummary,
)
from reader_api.schemas.category import CategorySummary
from reader_api.utils.slugs import available_slug

articles = Article.__table__
article_tags = ArticleTag.__table__
users = User.__table__
categories = Category.__table__
tags = Tag.__table__

DRAFT = ArticleStatus.DRAFT.value
PUBLISHED = ArticleStatus.PUBLISHED.value
ARCHIVED = ArticleStatus.ARCHIVED.value

SORTABLE = {
    "id": articles.c.id,
    "title": articles.c.title,
    "created_at": articles.c.created_at,
    "updated_at": articles.c.updated_at,
    "published_at": articles.c.published_at,
    "view_count": articles.c.view_count,
    "like_count": articles.c.like_count,
}


class ArticleRepository(BaseRepository[ArticleResponse]):
    """Article queries. Articles are hard-deleted together with their tag links."""

    table = articles
    response_model = ArticleResponse
    soft_delete = False

    async def create(self, data: ArticleCreate) -> ArticleResponse:
        """Insert the article and its tag links in one transaction."""
        values = data.model_dump(exclude={"tag_ids"})
        values["slug"] = data.slug or await available_slug(
            data.title, self.is_slug_exists, fallback="article"
        )
        if values["status"] == PUBLISHED:
            values["published_at"] = func.now()
        async with self.db.transaction() as conn:
            result = await conn.execute(insert(articles).values(**values).returning(articles.c.id))
            article_id = fetch_rows(result)[0]["id"]
            await self._link_tags(conn, article_id, data.tag_ids)
        return await self.find_by_id(
            article_id, include_author=True, include_category=True, include_tags=True
        )

    async def find_by_id(
        self,
        id: int,
        *,
        include_author: bool = False,
        include_category: bool = False,
        include_tags: bool = False,
    ) -> ArticleResponse | None:
        row = await self._fetch_one(select(articles).where(articles.c.id == id))
        if not row:
            return None
        found = await self._with_relations([row], include_author, include_category, include_tags)
        return found[0]

    async def find_by_slug(
        self,
        slug: str,
        *,
        include_author: bool = True,
        include_category: bool = True,
        include_tags: bool = True,
    ) -> ArticleResponse | None:
        """Published article by slug. Does not count a view: see record_view()."""
        row = await self._fetch_one(
            select(articles).where(articles.c.slug == slug, articles.c.status == PUBLISHED)
        )
        if not row:
            return None
        found = await self._with_relations([row], include_author, include_category, include_tags)
        return found[0]

    async def find_all(self, query: ArticleQuery | None = None) -> list[ArticleResponse]:
        query = query or ArticleQuery()
        stmt = apply_filters(select(articles), self._conditions(query))
        stmt = stmt.order_by(
            *order_clauses(SORTABLE, query.order_by, query.direction, articles.c.id)
        )
        rows = await self.db.execute_query(stmt.limit(query.limit).offset(query.offset))
        return await self._with_relations(
            rows, query.include_author, query.include_category, query.include_tags
        )

    async def count(self, query: ArticleQuery | None = None) -> int:
        query = query or ArticleQuery()
        stmt = select(func.count().label("total")).select_from(articles)
        return await self._scalar_count(apply_filters(stmt, self._conditions(query)))

    @staticmethod
    def _conditions(query: ArticleQuery) -> list:
        conditions = []
        if query.status is not None:
            conditions.append(articles.c.status == query.status)
        if query.author_id is not None:
            conditions.append(articles.c.author_id == query.author_id)
        if query.category_id is not None:
            conditions.append(articles.c.category_id == query.category_id)
        if query.is_public is not None:
            conditions.append(articles.c.is_public.is_(query.is_public))
        if query.search:
            conditions.append(
                contains_ci([articles.c.title, articles.c.content, articles.c.summary], query.search)
            )
        if query.tag_ids:
            # Subquery instead of a join, so an article with several matching tags appears once
            tagged = select(article_tags.c.article_id).where(article_tags.c.tag_id.in_(query.tag_ids))
            conditions.append(articles.c.id.in_(tagged))
        return conditions

    async def update_by_id(self, id: int, data: ArticleUpdate) -> ArticleResponse | None:
        """
        Partial update plus optional tag replacement, atomically.
        Moving to published stamps published_at only when the stored status was draft.
        """
        changes = data.model_dump(exclude_unset=True)
        tag_ids = changes.pop("tag_ids", None)
        if not changes and tag_ids is None:
            raise InvalidQueryError("No fields provided for update")
        if changes.get("status") == PUBLISHED:
            changes["published_at"] = case(
                (articles.c.status == DRAFT, func.now()), else_=articles.c.published_at
            )
        async with self.db.transaction() as conn:
            result = await conn.execute(
                update(articles)
                .where(articles.c.id == id)
                .values(**changes, updated_at=func.now())
                .returning(articles.c.id)
            )
            if not fetch_rows(result):
                return None
            if tag_ids is not None:
                await conn.execute(delete(article_tags).where(article_tags.c.article_id == id))
                await self._link_tags(conn, id, tag_ids)
        return await self.find_by_id(id, include_author=True, include_category=True, include_tags=True)

    async def delete_by_id(self, id: int) -> bool:
        results = await self.db.execute_transaction(
            [
                (delete(article_tags).where(article_tags.c.article_id == id), None),
                (delete(articles).where(articles.c.id == id).returning(articles.c.id), None),
            ]
        )
        return bool(results[-1])

    async def publish(self, id: int) -> ArticleResponse | None:
        """draft -> published. None when the article is missing or not a draft."""
        return await self._transition(
            id, [DRAFT], status=PUBLISHED, published_at=func.now()
        )

    async def archive(self, id: int) -> ArticleResponse | None:
        return await self._transition(id, [DRAFT, PUBLISHED], status=ARCHIVED)

    async def _transition(self, id: int, from_statuses: list[str], **values) -> ArticleResponse | None:
        row = await self._fetch_one(
            update(articles)
            .where(articles.c.id == id, articles.c.status.in_(from_statuses))
            .values(**values, updated_at=func.now())
            .returning(*articles.c)
        )
        return self._format(row) if row else None

    async def increment_like_count(self, id: int) -> int | None:
        return await self._bump(id, like_count=articles.c.like_count + 1)

    async def decrement_like_count(self, id: int) -> int | None:
        """Never goes below zero."""
        floored = case((articles.c.like_count > 0, articles.c.like_count - 1), else_=0)
        return await self._bump(id, like_count=floored)

    async def record_view(self, id: int) -> int | None:
        return await self._bump(id, view_count=articles.c.view_count + 1)

    async def _bump(self, id: int, **counter) -> int | None:
        """Single UPDATE ... RETURNING so concurrent bumps are never lost."""
        (column,) = counter
        row = await self._fetch_one(
            update(articles)
            .where(articles.c.id == id)
            .values(**counter)
            .returning(articles.c[column])
        )
        return row[column] if row else None

    async def is_slug_exists(self, slug: str, exclude_id: int | None = None) -> bool:
        return await self._exists("slug", slug, exclude_id)

    # --- Relations ---

    @staticmethod
    async def _link_tags(conn: AsyncConnection, article_id: int, tag_ids: Sequence[int]) -> None:
        unique_ids = list(dict.fromkeys(tag_ids))
        if unique_ids:
            await conn.execute(
                insert(article_tags),
                [{"article_id": article_id, "tag_id": tag_id} for tag_id in unique_ids],
            )

    async def _with_relations(
        self,
        rows: list[Row],
        include_author: bool,
        include_category: bool,
        include_tags: bool,
    ) -> list[ArticleResponse]:
        """Format rows and attach requested relations, one query per relation."""
        found = [self._format(row) for row in rows]
        if not found:
            return found
        if include_author:
            authors = await self._authors_for({a.author_id for a in found})
            for article in found:
                article.author = authors.get(article.author_id)
        if include_category:
            summaries = await self._categories_for(
                {a.category_id for a in found if a.category_id is not None}
            )
            for article in found:
                article.category = summaries.get(article.category_id)
        if include_tags:
            by_article = await self._tags_for([a.id for a in found])
            for article in found:
                article.tags = by_article.get(article.id, [])
        return found

    async def _authors_for(self, ids: set[int]) -> dict[int, AuthorSummary]:
        rows = await self.db.execute_query(
            select(users.c.id, users.c.username, users.c.avatar).where(users.c.id.in_(list(ids)))
        )
        return {row["id"]: AuthorSummary.model_validate(row) for row in rows}

    async def _categories_for(self, ids: set[int]) -> dict[int, CategorySummary]:
        if not ids:
            return {}
        rows = await self.db.execute_query(
            select(categories.c.id, categories.c.name, categories.c.slug).where(
                categories.c.id.in_(list(ids))
            )
        )
        return {row["id"]: CategorySummary.model_validate(row) for row in rows}

    async def _tags_for(self, article_ids: list[int]) -> dict[int, list[TagSummary]]:
        rows = await self.db.execute_query(
            select(article_tags.c.article_id, tags.c.id, tags.c.name, tags.c.slug, tags.c.color)
            .join(tags, tags.c.id == article_tags.c.tag_id)
            .where(article_tags.c.article_id.in_(article_ids), tags.c.is_active.is_(True))
            .order_by(tags.c.name)
        )
        by_article: dict[int, list[TagSummary]] = {}
        for row in rows:
            by_article.setdefault(row["article_id"], []).append(TagSummary.model_validate(row))
        return by_article
