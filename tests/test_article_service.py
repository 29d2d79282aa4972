"""
Article service tests - view counting on read, tagging by name, paginated listing.
"""

import pytest

from reader_api.schemas import ArticleCreate, ArticleQuery
from reader_api.services.article_service import ArticleService


@pytest.mark.asyncio
async def test_read_published_counts_a_view(article_service: ArticleService, author):
    article = await article_service.article_repo.create(
        ArticleCreate(title="Read me", content="Body", author_id=author.id, status="published")
    )
    first = await article_service.read_published(article.slug)
    second = await article_service.read_published(article.slug)
    assert first.view_count == 1
    assert second.view_count == 2
    assert second.author.username == "alice"


@pytest.mark.asyncio
async def test_read_published_skips_drafts(article_service: ArticleService, author):
    draft = await article_service.article_repo.create(
        ArticleCreate(title="Draft", content="Body", author_id=author.id)
    )
    assert await article_service.read_published(draft.slug) is None
    assert (await article_service.article_repo.find_by_id(draft.id)).view_count == 0


@pytest.mark.asyncio
async def test_create_with_tag_names(article_service: ArticleService, author):
    existing = await article_service.tag_repo.find_or_create("Python")
    article = await article_service.create_with_tag_names(
        ArticleCreate(title="Tagged", content="Body", author_id=author.id, tag_ids=[existing.id]),
        ["python", "Python", " asyncio "],
    )
    assert sorted(t.name for t in article.tags) == ["Python", "asyncio", "python"]
    assert await article_service.tag_repo.count() == 3


@pytest.mark.asyncio
async def test_list_page(article_service: ArticleService, author):
    for i in range(5):
        await article_service.article_repo.create(
            ArticleCreate(title=f"Post {i}", content="Body", author_id=author.id)
        )
    page = await article_service.list_page(ArticleQuery(limit=2, offset=4))
    assert page.total == 5
    assert page.pages == 3
    assert len(page.items) == 1
    assert (page.limit, page.offset) == (2, 4)


@pytest.mark.asyncio
async def test_list_page_caps_page_size(article_service: ArticleService, settings):
    page = await article_service.list_page(ArticleQuery(limit=settings.max_page_size + 50))
    assert page.limit == settings.max_page_size
    assert page.total == 0
    assert page.pages == 0
