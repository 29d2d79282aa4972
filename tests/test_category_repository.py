"""
Category repository tests - relations, tree traversal, deletion guard, sort order.
"""

import pytest
from pydantic import ValidationError
from sqlalchemy import update

from reader_api.core.exceptions import CategoryInUseError, CategoryTreeError
from reader_api.db.models import Category
from reader_api.db.repositories import ArticleRepository, CategoryRepository
from reader_api.schemas import ArticleCreate, CategoryCreate, CategoryQuery, CategoryUpdate

categories = Category.__table__


@pytest.mark.asyncio
async def test_create_derives_slug_and_probes(category_repo: CategoryRepository):
    created = await category_repo.create(CategoryCreate(name="Machine Learning"))
    assert created.slug == "machine-learning"
    assert created.sort_order == 0
    assert await category_repo.is_name_exists("Machine Learning") is True
    assert await category_repo.is_name_exists("Machine Learning", exclude_id=created.id) is False
    assert await category_repo.is_slug_exists("machine-learning") is True


@pytest.mark.asyncio
async def test_find_with_relations(category_repo, article_repo: ArticleRepository, author):
    parent = await category_repo.create(CategoryCreate(name="Parent"))
    child = await category_repo.create(CategoryCreate(name="Child", parent_id=parent.id))
    article = await article_repo.create(
        ArticleCreate(title="T", content="C", author_id=author.id, category_id=parent.id)
    )
    await article_repo.create(
        ArticleCreate(title="Draft", content="C", author_id=author.id, category_id=parent.id)
    )
    await article_repo.publish(article.id)

    found = await category_repo.find_by_id(
        parent.id, include_parent=True, include_children=True, include_article_count=True
    )
    assert found.parent is None
    assert [c.id for c in found.children] == [child.id]
    assert found.article_count == 1  # drafts are not counted

    by_slug = await category_repo.find_by_slug("child", include_parent=True)
    assert by_slug.parent.name == "Parent"
    assert "children" not in by_slug.model_dump(exclude_unset=True)


@pytest.mark.asyncio
async def test_find_all_filters_and_default_order(category_repo: CategoryRepository):
    b = await category_repo.create(CategoryCreate(name="Beta", sort_order=1))
    a = await category_repo.create(CategoryCreate(name="Alpha", sort_order=1))
    first = await category_repo.create(CategoryCreate(name="Zulu", sort_order=0))
    sub = await category_repo.create(CategoryCreate(name="Sub", parent_id=a.id, sort_order=0))

    everything = await category_repo.find_all()
    # sort_order first, then name
    assert [c.name for c in everything] == ["Sub", "Zulu", "Alpha", "Beta"]
    roots = await category_repo.find_all(CategoryQuery(roots_only=True))
    assert [c.id for c in roots] == [first.id, a.id, b.id]
    assert [c.id for c in await category_repo.find_all(CategoryQuery(parent_id=a.id))] == [sub.id]
    assert await category_repo.count(CategoryQuery(roots_only=True)) == 3
    assert await category_repo.count() == 4


@pytest.mark.asyncio
async def test_get_tree(category_repo, article_repo, author):
    tech = await category_repo.create(CategoryCreate(name="Tech", sort_order=1))
    life = await category_repo.create(CategoryCreate(name="Life", sort_order=2))
    web = await category_repo.create(CategoryCreate(name="Web", parent_id=tech.id))
    css = await category_repo.create(CategoryCreate(name="CSS", parent_id=web.id))
    article = await article_repo.create(
        ArticleCreate(title="Flexbox", content="C", author_id=author.id, category_id=css.id)
    )
    await article_repo.publish(article.id)

    tree = await category_repo.get_tree()
    assert [node.id for node in tree] == [tech.id, life.id]
    assert tree[1].children == []
    web_node = tree[0].children[0]
    assert web_node.id == web.id
    assert web_node.children[0].id == css.id
    assert web_node.children[0].article_count == 1
    assert web_node.children[0].children == []
    assert tree[0].article_count == 0


@pytest.mark.asyncio
async def test_get_subtree_detects_cycle(category_repo: CategoryRepository):
    a = await category_repo.create(CategoryCreate(name="A"))
    b = await category_repo.create(CategoryCreate(name="B", parent_id=a.id))
    # Corrupt the table directly: A -> B -> A
    await category_repo.db.execute_query(
        update(categories).where(categories.c.id == a.id).values(parent_id=b.id)
    )
    with pytest.raises(CategoryTreeError) as exc_info:
        await category_repo.get_subtree(a.id)
    assert exc_info.value.category_id == a.id


@pytest.mark.asyncio
async def test_tree_depth_limit(category_repo: CategoryRepository, settings):
    parent_id = None
    for depth in range(settings.category_max_depth + 1):
        node = await category_repo.create(CategoryCreate(name=f"Level {depth}", parent_id=parent_id))
        parent_id = node.id
    with pytest.raises(CategoryTreeError):
        await category_repo.get_tree()


@pytest.mark.asyncio
async def test_get_subtree_missing(category_repo: CategoryRepository):
    assert await category_repo.get_subtree(999) is None


@pytest.mark.asyncio
async def test_update_refuses_cycles(category_repo: CategoryRepository):
    a = await category_repo.create(CategoryCreate(name="A"))
    b = await category_repo.create(CategoryCreate(name="B", parent_id=a.id))
    with pytest.raises(CategoryTreeError):
        await category_repo.update_by_id(a.id, CategoryUpdate(parent_id=a.id))
    with pytest.raises(CategoryTreeError):
        await category_repo.update_by_id(a.id, CategoryUpdate(parent_id=b.id))
    moved = await category_repo.update_by_id(b.id, CategoryUpdate(parent_id=None))
    assert moved.parent_id is None


@pytest.mark.asyncio
async def test_update_partial(category_repo: CategoryRepository):
    created = await category_repo.create(CategoryCreate(name="Old", description="keep"))
    updated = await category_repo.update_by_id(created.id, CategoryUpdate(name="New"))
    assert updated.name == "New"
    assert updated.description == "keep"
    assert updated.slug == "old"


@pytest.mark.asyncio
async def test_deletion_guard(category_repo: CategoryRepository):
    parent = await category_repo.create(CategoryCreate(name="P"))
    child = await category_repo.create(CategoryCreate(name="C", parent_id=parent.id))
    with pytest.raises(CategoryInUseError) as exc_info:
        await category_repo.delete_by_id(parent.id)
    assert exc_info.value.children == 1
    assert await category_repo.delete_by_id(child.id) is True
    assert await category_repo.delete_by_id(parent.id) is True
    assert await category_repo.delete_by_id(parent.id) is False
    assert await category_repo.find_by_id(parent.id) is None


@pytest.mark.asyncio
async def test_deactivating_update_is_guarded(category_repo, article_repo, author):
    """is_active=False through update_by_id is a soft delete and gets the same checks."""
    parent = await category_repo.create(CategoryCreate(name="P"))
    child = await category_repo.create(CategoryCreate(name="C", parent_id=parent.id))
    with pytest.raises(CategoryInUseError) as exc_info:
        await category_repo.update_by_id(parent.id, CategoryUpdate(is_active=False))
    assert exc_info.value.children == 1
    assert (await category_repo.find_by_id(parent.id)).is_active is True

    await article_repo.create(
        ArticleCreate(title="T", content="C", author_id=author.id, category_id=child.id)
    )
    with pytest.raises(CategoryInUseError) as exc_info:
        await category_repo.update_by_id(child.id, CategoryUpdate(is_active=False))
    assert exc_info.value.articles == 1

    empty = await category_repo.create(CategoryCreate(name="Empty"))
    deactivated = await category_repo.update_by_id(empty.id, CategoryUpdate(is_active=False))
    assert deactivated.is_active is False


def test_update_rejects_null_for_required_columns():
    with pytest.raises(ValidationError):
        CategoryUpdate(name=None)
    with pytest.raises(ValidationError):
        CategoryUpdate(is_active=None)
    assert CategoryUpdate(parent_id=None).model_dump(exclude_unset=True) == {"parent_id": None}


@pytest.mark.asyncio
async def test_deletion_guard_counts_any_article(category_repo, article_repo, author):
    category = await category_repo.create(CategoryCreate(name="Drafts"))
    await article_repo.create(
        ArticleCreate(title="T", content="C", author_id=author.id, category_id=category.id)
    )
    with pytest.raises(CategoryInUseError) as exc_info:
        await category_repo.delete_by_id(category.id)
    assert exc_info.value.articles == 1
    assert (await category_repo.find_by_id(category.id)).is_active is True


@pytest.mark.asyncio
async def test_name_reusable_after_soft_delete(category_repo: CategoryRepository):
    old = await category_repo.create(CategoryCreate(name="Reused"))
    await category_repo.delete_by_id(old.id)
    new = await category_repo.create(CategoryCreate(name="Reused"))
    assert new.slug == "reused"
    assert new.id != old.id


@pytest.mark.asyncio
async def test_update_sort_order(category_repo: CategoryRepository):
    a = await category_repo.create(CategoryCreate(name="A"))
    b = await category_repo.create(CategoryCreate(name="B"))
    assert await category_repo.update_sort_order([(a.id, 2), (b.id, 1), (999, 0)]) == 2
    assert [c.id for c in await category_repo.find_all()] == [b.id, a.id]
    assert await category_repo.update_sort_order([]) == 0
