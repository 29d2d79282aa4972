"""
Tag repository - tags and the article/tag graph (SOLID: Single Responsibility).
Challenge: Race-free find-or-create, atomic merges, bulk cleanup in a single statement.
"""

from collections.abc import Iterable

from sqlalchemy import delete, desc, func, insert, select, update

from reader_api.core.exceptions import InvalidQueryError
from reader_api.db.database import Row
from reader_api.db.models.article import Article, ArticleTag
from reader_api.db.models.tag import Tag
from reader_api.db.query import apply_filters, contains_ci, insert_ignoring_conflicts, order_clauses
from reader_api.db.repositories.base_repository import BaseRepository
from reader_api.schemas.article import ArticleStatus
from reader_api.schemas.tag import TagCreate, TagQuery, TagResponse, TagUpdate
from reader_api.utils.slugs import available_slug

tags = Tag.__table__
article_tags = ArticleTag.__table__
articles = Article.__table__

SORTABLE = {
    "id": tags.c.id,
    "name": tags.c.name,
    "slug": tags.c.slug,
    "created_at": tags.c.created_at,
    "updated_at": tags.c.updated_at,
}

# Tags referenced by at least one article
linked_tag_ids = select(article_tags.c.tag_id).distinct()


class TagRepository(BaseRepository[TagResponse]):
    """Tag queries. Deletion is a soft delete that also drops the tag's article links."""

    table = tags
    response_model = TagResponse

    async def create(self, data: TagCreate) -> TagResponse:
        values = data.model_dump()
        values["slug"] = data.slug or await available_slug(
            data.name, self.is_slug_exists, fallback="tag"
        )
        row = await self._fetch_one(insert(tags).values(**values).returning(*tags.c))
        return self._format(row)

    async def find_by_id(self, id: int, *, include_article_count: bool = False) -> TagResponse | None:
        return await self._find_active(tags.c.id == id, include_article_count)

    async def find_by_slug(
        self, slug: str, *, include_article_count: bool = False
    ) -> TagResponse | None:
        return await self._find_active(tags.c.slug == slug, include_article_count)

    async def find_by_name(
        self, name: str, *, include_article_count: bool = False
    ) -> TagResponse | None:
        return await self._find_active(tags.c.name == name, include_article_count)

    async def _find_active(self, condition, include_article_count: bool) -> TagResponse | None:
        row = await self._fetch_one(select(tags).where(condition, tags.c.is_active.is_(True)))
        if not row:
            return None
        found = await self._with_counts([row], include_article_count)
        return found[0]

    async def find_all(self, query: TagQuery | None = None) -> list[TagResponse]:
        query = query or TagQuery()
        stmt = apply_filters(select(tags), self._conditions(query))
        stmt = stmt.order_by(*order_clauses(SORTABLE, query.order_by, query.direction, tags.c.id))
        rows = await self.db.execute_query(stmt.limit(query.limit).offset(query.offset))
        return await self._with_counts(rows, query.include_article_count)

    async def count(self, query: TagQuery | None = None) -> int:
        query = query or TagQuery()
        stmt = select(func.count().label("total")).select_from(tags)
        return await self._scalar_count(apply_filters(stmt, self._conditions(query)))

    @staticmethod
    def _conditions(query: TagQuery) -> list:
        conditions = []
        if query.is_active is not None:
            conditions.append(tags.c.is_active.is_(query.is_active))
        if query.search:
            conditions.append(contains_ci([tags.c.name, tags.c.description], query.search))
        return conditions

    async def find_by_article_id(self, article_id: int) -> list[TagResponse]:
        rows = await self.db.execute_query(
            select(tags)
            .join(article_tags, article_tags.c.tag_id == tags.c.id)
            .where(article_tags.c.article_id == article_id, tags.c.is_active.is_(True))
            .order_by(tags.c.name)
        )
        return [self._format(row) for row in rows]

    async def find_by_ids(self, ids: Iterable[int]) -> list[TagResponse]:
        ids = list(ids)
        if not ids:
            return []
        rows = await self.db.execute_query(
            select(tags).where(tags.c.id.in_(ids), tags.c.is_active.is_(True)).order_by(tags.c.name)
        )
        return [self._format(row) for row in rows]

    async def update_by_id(self, id: int, data: TagUpdate) -> TagResponse | None:
        row = await self._update_row(id, data.model_dump(exclude_unset=True))
        return self._format(row) if row else None

    async def delete_by_id(self, id: int) -> bool:
        """Drop the tag's article links and deactivate it, atomically."""
        results = await self.db.execute_transaction(
            [
                (delete(article_tags).where(article_tags.c.tag_id == id), None),
                (
                    update(tags)
                    .where(tags.c.id == id, tags.c.is_active.is_(True))
                    .values(is_active=False, updated_at=func.now())
                    .returning(tags.c.id),
                    None,
                ),
            ]
        )
        return bool(results[-1])

    async def is_name_exists(self, name: str, exclude_id: int | None = None) -> bool:
        return await self._exists("name", name, exclude_id)

    async def is_slug_exists(self, slug: str, exclude_id: int | None = None) -> bool:
        return await self._exists("slug", slug, exclude_id)

    # --- Graph operations ---

    async def find_or_create(
        self, name: str, description: str | None = None, color: str | None = None
    ) -> TagResponse:
        """
        Active tag with this name, inserted if missing.
        INSERT ... ON CONFLICT DO NOTHING then re-select, so concurrent callers converge on one row.
        """
        data = TagCreate(name=name.strip(), description=description, color=color)
        existing = await self.find_by_name(data.name)
        if existing:
            return existing
        values = data.model_dump()
        values["slug"] = await available_slug(data.name, self.is_slug_exists, fallback="tag")
        stmt = insert_ignoring_conflicts(self.db.dialect_name, tags, values).returning(*tags.c)
        row = await self._fetch_one(stmt)
        if row:
            return self._format(row)
        existing = await self.find_by_name(data.name)
        if existing:
            return existing
        # Conflict came from the slug, not the name: recompute it and insert normally
        return await self.create(data)

    async def find_or_create_many(self, names: Iterable[str]) -> list[TagResponse]:
        """Trimmed, de-duplicated, in first-seen order. Blank names are skipped."""
        cleaned = dict.fromkeys(name.strip() for name in names if name and name.strip())
        return [await self.find_or_create(name) for name in cleaned]

    async def merge_tags(self, source_id: int, target_id: int) -> None:
        """
        Move every article link from source to target, then deactivate source, atomically.
        Articles already tagged with target keep a single link.
        """
        if source_id == target_id:
            raise InvalidQueryError("Cannot merge a tag into itself")
        # Aliased so the subquery is not correlated to the UPDATE target
        existing = article_tags.alias("existing")
        already_on_target = select(existing.c.article_id).where(existing.c.tag_id == target_id)
        await self.db.execute_transaction(
            [
                (
                    update(article_tags)
                    .where(
                        article_tags.c.tag_id == source_id,
                        article_tags.c.article_id.not_in(already_on_target),
                    )
                    .values(tag_id=target_id),
                    None,
                ),
                (delete(article_tags).where(article_tags.c.tag_id == source_id), None),
                (
                    update(tags)
                    .where(tags.c.id == source_id)
                    .values(is_active=False, updated_at=func.now()),
                    None,
                ),
            ]
        )

    async def get_unused_tags(self) -> list[TagResponse]:
        rows = await self.db.execute_query(
            select(tags)
            .where(tags.c.is_active.is_(True), tags.c.id.not_in(linked_tag_ids))
            .order_by(tags.c.created_at.desc(), tags.c.id.desc())
        )
        return [self._format(row) for row in rows]

    async def cleanup_unused_tags(self) -> int:
        """Deactivate every active tag no article references. Returns how many were deactivated."""
        rows = await self.db.execute_query(
            update(tags)
            .where(tags.c.is_active.is_(True), tags.c.id.not_in(linked_tag_ids))
            .values(is_active=False, updated_at=func.now())
            .returning(tags.c.id)
        )
        return len(rows)

    async def get_popular_tags(self, limit: int = 10) -> list[TagResponse]:
        """Active tags ranked by number of published articles."""
        article_count = func.count(article_tags.c.article_id).label("article_count")
        rows = await self.db.execute_query(
            select(tags, article_count)
            .join(article_tags, article_tags.c.tag_id == tags.c.id)
            .join(articles, articles.c.id == article_tags.c.article_id)
            .where(
                tags.c.is_active.is_(True),
                articles.c.status == ArticleStatus.PUBLISHED.value,
            )
            .group_by(*tags.c)
            .order_by(desc("article_count"), tags.c.name.asc())
            .limit(limit)
        )
        return [self._format(row) for row in rows]

    # --- Relations ---

    async def _with_counts(self, rows: list[Row], include_article_count: bool) -> list[TagResponse]:
        found = [self._format(row) for row in rows]
        if include_article_count and found:
            counts = await self._article_counts([t.id for t in found])
            for tag in found:
                tag.article_count = counts.get(tag.id, 0)
        return found

    async def _article_counts(self, ids: list[int]) -> dict[int, int]:
        """Published articles per tag."""
        rows = await self.db.execute_query(
            select(article_tags.c.tag_id, func.count().label("total"))
            .join(articles, articles.c.id == article_tags.c.article_id)
            .where(
                article_tags.c.tag_id.in_(ids),
                articles.c.status == ArticleStatus.PUBLISHED.value,
            )
            .group_by(article_tags.c.tag_id)
        )
        return {row["tag_id"]: int(row["total"]) for row in rows}
