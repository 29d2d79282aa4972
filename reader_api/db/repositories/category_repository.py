"""
Category repository - category tree access (SOLID: Single Responsibility).
Challenge: Walk a self-referential table without N+1 per node and without trusting it to be acyclic.
"""

import logging
from collections.abc import Sequence

from sqlalchemy import func, insert, select, update

from reader_api.core.exceptions import CategoryInUseError, CategoryTreeError
from reader_api.db.database import Row
from reader_api.db.models.article import Article
from reader_api.db.models.category import Category
from reader_api.db.query import apply_filters, order_clauses
from reader_api.db.repositories.base_repository import BaseRepository
from reader_api.schemas.article import ArticleStatus
from reader_api.schemas.category import (
    CategoryCreate,
    CategoryQuery,
    CategoryResponse,
    CategorySummary,
    CategoryUpdate,
)
from reader_api.utils.slugs import available_slug

logger = logging.getLogger(__name__)

categories = Category.__table__
articles = Article.__table__

SORTABLE = {
    "id": categories.c.id,
    "name": categories.c.name,
    "sort_order": categories.c.sort_order,
    "created_at": categories.c.created_at,
    "updated_at": categories.c.updated_at,
}

# Sibling order used by the tree and children lists
SIBLING_ORDER = (categories.c.sort_order.asc(), categories.c.name.asc(), categories.c.id.asc())


class CategoryRepository(BaseRepository[CategoryResponse]):
    """Category queries. Deletion is a soft delete guarded by children/articles checks."""

    table = categories
    response_model = CategoryResponse

    async def create(self, data: CategoryCreate) -> CategoryResponse:
        values = data.model_dump()
        values["slug"] = data.slug or await available_slug(
            data.name, self.is_slug_exists, fallback="category"
        )
        row = await self._fetch_one(insert(categories).values(**values).returning(*categories.c))
        return self._format(row)

    async def find_by_id(
        self,
        id: int,
        *,
        include_parent: bool = False,
        include_children: bool = False,
        include_article_count: bool = False,
    ) -> CategoryResponse | None:
        return await self._find_active(
            categories.c.id == id, include_parent, include_children, include_article_count
        )

    async def find_by_slug(
        self,
        slug: str,
        *,
        include_parent: bool = False,
        include_children: bool = False,
        include_article_count: bool = False,
    ) -> CategoryResponse | None:
        return await self._find_active(
            categories.c.slug == slug, include_parent, include_children, include_article_count
        )

    async def _find_active(
        self, condition, include_parent: bool, include_children: bool, include_article_count: bool
    ) -> CategoryResponse | None:
        row = await self._fetch_one(
            select(categories).where(condition, categories.c.is_active.is_(True))
        )
        if not row:
            return None
        found = await self._with_relations(
            [row], include_parent, include_children, include_article_count
        )
        return found[0]

    async def find_all(self, query: CategoryQuery | None = None) -> list[CategoryResponse]:
        query = query or CategoryQuery()
        stmt = apply_filters(select(categories), self._conditions(query))
        # name breaks sort_order ties, id keeps pages stable
        clauses = order_clauses(SORTABLE, query.order_by, query.direction, categories.c.name)
        stmt = stmt.order_by(*clauses, categories.c.id.asc())
        rows = await self.db.execute_query(stmt.limit(query.limit).offset(query.offset))
        return await self._with_relations(
            rows, query.include_parent, query.include_children, query.include_article_count
        )

    async def count(self, query: CategoryQuery | None = None) -> int:
        query = query or CategoryQuery()
        stmt = select(func.count().label("total")).select_from(categories)
        return await self._scalar_count(apply_filters(stmt, self._conditions(query)))

    @staticmethod
    def _conditions(query: CategoryQuery) -> list:
        conditions = []
        if query.is_active is not None:
            conditions.append(categories.c.is_active.is_(query.is_active))
        if query.roots_only:
            conditions.append(categories.c.parent_id.is_(None))
        elif query.parent_id is not None:
            conditions.append(categories.c.parent_id == query.parent_id)
        return conditions

    # --- Tree ---

    async def get_tree(self) -> list[CategoryResponse]:
        """Active root categories with nested children and published-article counts."""
        rows = await self.db.execute_query(
            select(categories)
            .where(categories.c.parent_id.is_(None), categories.c.is_active.is_(True))
            .order_by(*SIBLING_ORDER)
        )
        roots = [self._format(row) for row in rows]
        await self._descend(roots)
        return roots

    async def get_subtree(self, id: int) -> CategoryResponse | None:
        """One category with all of its active descendants."""
        root = await self.find_by_id(id)
        if root is None:
            return None
        await self._descend([root])
        return root

    async def _descend(self, level: list[CategoryResponse]) -> None:
        """
        Fill children and article_count level by level: two queries per tree level.
        Raises CategoryTreeError when a node shows up twice (cycle) or the tree is too deep.
        """
        max_depth = self.db.settings.category_max_depth
        visited = {node.id for node in level}
        depth = 1
        while level:
            by_id = {node.id: node for node in level}
            counts = await self._article_counts(list(by_id))
            for node in level:
                node.article_count = counts.get(node.id, 0)
                node.children = []
            rows = await self.db.execute_query(
                select(categories)
                .where(categories.c.parent_id.in_(list(by_id)), categories.c.is_active.is_(True))
                .order_by(*SIBLING_ORDER)
            )
            if rows and depth >= max_depth:
                raise CategoryTreeError(
                    rows[0]["id"], f"Category tree is deeper than {max_depth} levels"
                )
            next_level = []
            for row in rows:
                child = self._format(row)
                if child.id in visited:
                    logger.error("Cycle in categories.parent_id at category %d", child.id)
                    raise CategoryTreeError(
                        child.id, f"Category {child.id} is its own ancestor (parent_id cycle)"
                    )
                visited.add(child.id)
                by_id[child.parent_id].children.append(child)
                next_level.append(child)
            level = next_level
            depth += 1

    async def _ensure_not_descendant(self, id: int, new_parent_id: int) -> None:
        """Walk up from the proposed parent; reaching `id` would close a cycle."""
        current: int | None = new_parent_id
        for _ in range(self.db.settings.category_max_depth):
            if current is None:
                return
            if current == id:
                raise CategoryTreeError(id, f"Category {id} cannot be moved under its own descendant")
            row = await self._fetch_one(
                select(categories.c.parent_id).where(categories.c.id == current)
            )
            current = row["parent_id"] if row else None
        if current is not None:
            raise CategoryTreeError(id, "Category ancestry is deeper than the configured limit")

    # --- Writes ---

    async def update_by_id(self, id: int, data: CategoryUpdate) -> CategoryResponse | None:
        changes = data.model_dump(exclude_unset=True)
        parent_id = changes.get("parent_id")
        if parent_id is not None:
            await self._ensure_not_descendant(id, parent_id)
        if changes.get("is_active") is False:
            await self._ensure_deletable(id)
        row = await self._update_row(id, changes)
        return self._format(row) if row else None

    async def delete_by_id(self, id: int) -> bool:
        """Soft delete. Refused while the category has active children or any articles."""
        await self._ensure_deletable(id)
        return await self._soft_delete(id)

    async def _ensure_deletable(self, id: int) -> None:
        children = await self._scalar_count(
            select(func.count().label("total"))
            .select_from(categories)
            .where(categories.c.parent_id == id, categories.c.is_active.is_(True))
        )
        if children:
            raise CategoryInUseError(id, children=children)
        article_total = await self._scalar_count(
            select(func.count().label("total"))
            .select_from(articles)
            .where(articles.c.category_id == id)
        )
        if article_total:
            raise CategoryInUseError(id, articles=article_total)

    async def update_sort_order(self, orders: Sequence[tuple[int, int]]) -> int:
        """Apply (id, sort_order) pairs in one transaction. Returns how many rows changed."""
        if not orders:
            return 0
        results = await self.db.execute_transaction(
            [
                (
                    update(categories)
                    .where(categories.c.id == category_id, categories.c.is_active.is_(True))
                    .values(sort_order=sort_order, updated_at=func.now())
                    .returning(categories.c.id),
                    None,
                )
                for category_id, sort_order in orders
            ]
        )
        return sum(len(rows) for rows in results)

    async def is_name_exists(self, name: str, exclude_id: int | None = None) -> bool:
        return await self._exists("name", name, exclude_id)

    async def is_slug_exists(self, slug: str, exclude_id: int | None = None) -> bool:
        return await self._exists("slug", slug, exclude_id)

    # --- Relations ---

    async def _with_relations(
        self,
        rows: list[Row],
        include_parent: bool,
        include_children: bool,
        include_article_count: bool,
    ) -> list[CategoryResponse]:
        found = [self._format(row) for row in rows]
        if not found:
            return found
        ids = [c.id for c in found]
        if include_parent:
            parent_ids = {c.parent_id for c in found if c.parent_id is not None}
            parents = await self._summaries(parent_ids)
            for category in found:
                category.parent = parents.get(category.parent_id)
        if include_children:
            children = await self.db.execute_query(
                select(categories)
                .where(categories.c.parent_id.in_(ids), categories.c.is_active.is_(True))
                .order_by(*SIBLING_ORDER)
            )
            by_parent: dict[int, list[CategoryResponse]] = {}
            for row in children:
                by_parent.setdefault(row["parent_id"], []).append(self._format(row))
            for category in found:
                category.children = by_parent.get(category.id, [])
        if include_article_count:
            counts = await self._article_counts(ids)
            for category in found:
                category.article_count = counts.get(category.id, 0)
        return found

    async def _summaries(self, ids: set[int]) -> dict[int, CategorySummary]:
        if not ids:
            return {}
        rows = await self.db.execute_query(
            select(categories.c.id, categories.c.name, categories.c.slug).where(
                categories.c.id.in_(list(ids))
            )
        )
        return {row["id"]: CategorySummary.model_validate(row) for row in rows}

    async def _article_counts(self, ids: list[int]) -> dict[int, int]:
        """Published articles per category."""
        rows = await self.db.execute_query(
            select(articles.c.category_id, func.count().label("total"))
            .where(
                articles.c.category_id.in_(ids),
                articles.c.status == ArticleStatus.PUBLISHED.value,
            )
            .group_by(articles.c.category_id)
        )
        return {row["category_id"]: int(row["total"]) for row in rows}
