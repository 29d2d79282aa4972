"""
Tag repository tests - find-or-create upsert, merge, cleanup, popularity.
"""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from reader_api.core.exceptions import InvalidQueryError
from reader_api.db.models import ArticleTag
from reader_api.db.repositories import ArticleRepository, TagRepository
from reader_api.schemas import ArticleCreate, TagCreate, TagQuery, TagUpdate

article_tags = ArticleTag.__table__


async def _tag_ids_of(tag_repo: TagRepository, article_id: int) -> list[int]:
    rows = await tag_repo.db.execute_query(
        select(article_tags.c.tag_id).where(article_tags.c.article_id == article_id)
    )
    return sorted(row["tag_id"] for row in rows)


async def _article(article_repo: ArticleRepository, author, title: str, tag_ids: list[int]):
    return await article_repo.create(
        ArticleCreate(title=title, content="Body", author_id=author.id, tag_ids=tag_ids)
    )


@pytest.mark.asyncio
async def test_find_or_create_returns_existing(tag_repo: TagRepository):
    created = await tag_repo.find_or_create("Python", color="#3776ab")
    again = await tag_repo.find_or_create("  Python ")
    assert again.id == created.id
    assert created.slug == "python"
    assert created.color == "#3776ab"
    assert await tag_repo.count() == 1


@pytest.mark.asyncio
async def test_find_or_create_with_taken_slug(tag_repo: TagRepository):
    """Different name, same slug: the insert still lands with a suffixed slug."""
    await tag_repo.create(TagCreate(name="Node JS"))
    tag = await tag_repo.find_or_create("node.js")
    assert tag.name == "node.js"
    assert tag.slug == "node-js-2"


@pytest.mark.asyncio
async def test_find_or_create_many_dedupes_in_order(tag_repo: TagRepository):
    found = await tag_repo.find_or_create_many(["b", " a ", "b", "", "  ", "c"])
    assert [t.name for t in found] == ["b", "a", "c"]


@pytest.mark.asyncio
async def test_lookups(tag_repo: TagRepository, article_repo, author):
    a = await tag_repo.create(TagCreate(name="Alpha"))
    b = await tag_repo.create(TagCreate(name="Beta"))
    article = await _article(article_repo, author, "Post", [b.id, a.id])

    assert (await tag_repo.find_by_name("Alpha")).id == a.id
    assert (await tag_repo.find_by_slug("beta")).id == b.id
    assert [t.id for t in await tag_repo.find_by_article_id(article.id)] == [a.id, b.id]
    assert [t.id for t in await tag_repo.find_by_ids([b.id, a.id, 999])] == [a.id, b.id]
    assert await tag_repo.find_by_ids([]) == []


@pytest.mark.asyncio
async def test_article_count_counts_published_only(tag_repo, article_repo, author):
    tag = await tag_repo.create(TagCreate(name="Counted"))
    published = await _article(article_repo, author, "One", [tag.id])
    await _article(article_repo, author, "Two", [tag.id])
    await article_repo.publish(published.id)

    assert (await tag_repo.find_by_id(tag.id, include_article_count=True)).article_count == 1
    listed = await tag_repo.find_all(TagQuery(include_article_count=True))
    assert listed[0].article_count == 1
    assert "article_count" not in (await tag_repo.find_by_id(tag.id)).model_dump(exclude_unset=True)


@pytest.mark.asyncio
async def test_search_and_count(tag_repo: TagRepository):
    await tag_repo.create(TagCreate(name="Databases", description="SQL and friends"))
    await tag_repo.create(TagCreate(name="Frontend"))
    assert [t.name for t in await tag_repo.find_all(TagQuery(search="sql"))] == ["Databases"]
    assert await tag_repo.count(TagQuery(search="sql")) == 1
    assert [t.name for t in await tag_repo.find_all()] == ["Databases", "Frontend"]


@pytest.mark.asyncio
async def test_update_and_soft_delete(tag_repo: TagRepository, article_repo, author):
    tag = await tag_repo.create(TagCreate(name="Old"))
    article = await _article(article_repo, author, "Post", [tag.id])
    updated = await tag_repo.update_by_id(tag.id, TagUpdate(color="#000000"))
    assert updated.color == "#000000"
    assert updated.name == "Old"

    assert await tag_repo.delete_by_id(tag.id) is True
    assert await tag_repo.delete_by_id(tag.id) is False
    assert await _tag_ids_of(tag_repo, article.id) == []
    assert await tag_repo.update_by_id(tag.id, TagUpdate(name="Back")) is None


@pytest.mark.asyncio
async def test_merge_tags(tag_repo: TagRepository, article_repo, author):
    a = await tag_repo.create(TagCreate(name="js"))
    b = await tag_repo.create(TagCreate(name="JavaScript"))
    only_a = await _article(article_repo, author, "Only A", [a.id])
    both = await _article(article_repo, author, "Both", [a.id, b.id])
    only_b = await _article(article_repo, author, "Only B", [b.id])

    await tag_repo.merge_tags(a.id, b.id)

    assert await _tag_ids_of(tag_repo, only_a.id) == [b.id]
    assert await _tag_ids_of(tag_repo, both.id) == [b.id]
    assert await _tag_ids_of(tag_repo, only_b.id) == [b.id]
    assert await tag_repo.find_by_id(a.id) is None


@pytest.mark.asyncio
async def test_merge_is_atomic(tag_repo: TagRepository, article_repo, author):
    """Target does not exist: the link reassignment violates the foreign key and nothing changes."""
    a = await tag_repo.create(TagCreate(name="Source"))
    article = await _article(article_repo, author, "Post", [a.id])
    with pytest.raises(IntegrityError):
        await tag_repo.merge_tags(a.id, 999)
    assert await _tag_ids_of(tag_repo, article.id) == [a.id]
    assert (await tag_repo.find_by_id(a.id)).is_active is True


@pytest.mark.asyncio
async def test_merge_into_itself_is_rejected(tag_repo: TagRepository):
    tag = await tag_repo.create(TagCreate(name="Self"))
    with pytest.raises(InvalidQueryError):
        await tag_repo.merge_tags(tag.id, tag.id)


@pytest.mark.asyncio
async def test_unused_tags_and_cleanup(tag_repo: TagRepository, article_repo, author):
    used = await tag_repo.create(TagCreate(name="X"))
    unused = await tag_repo.create(TagCreate(name="Y"))
    await _article(article_repo, author, "Post", [used.id])

    assert [t.id for t in await tag_repo.get_unused_tags()] == [unused.id]
    assert await tag_repo.cleanup_unused_tags() == 1
    assert await tag_repo.find_by_id(unused.id) is None
    assert (await tag_repo.find_by_id(used.id)).is_active is True
    assert await tag_repo.cleanup_unused_tags() == 0


@pytest.mark.asyncio
async def test_popular_tags(tag_repo: TagRepository, article_repo, author):
    hot = await tag_repo.create(TagCreate(name="Hot"))
    warm = await tag_repo.create(TagCreate(name="Warm"))
    cold = await tag_repo.create(TagCreate(name="Cold"))
    for title, tag_ids in (("1", [hot.id, warm.id]), ("2", [hot.id]), ("3", [cold.id])):
        article = await _article(article_repo, author, title, tag_ids)
        if title != "3":
            await article_repo.publish(article.id)

    popular = await tag_repo.get_popular_tags(limit=5)
    assert [(t.name, t.article_count) for t in popular] == [("Hot", 2), ("Warm", 1)]
    assert len(await tag_repo.get_popular_tags(limit=1)) == 1
