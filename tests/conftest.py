"""
Pytest fixtures - throwaway database, repositories, client (TDD/BDD support).
Challenge: Isolated tests; every test gets its own SQLite file with foreign keys on.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from reader_api.config import Settings
from reader_api.core.dependencies import get_database
from reader_api.db import models  # noqa: F401 - register tables on Base.metadata
from reader_api.db.base import Base
from reader_api.db.database import Database
from reader_api.db.repositories import (
    ArticleRepository,
    CategoryRepository,
    TagRepository,
    UserRepository,
)
from reader_api.main import create_app
from reader_api.schemas import UserCreate, UserResponse
from reader_api.services.article_service import ArticleService


@pytest.fixture
def settings(tmp_path) -> Settings:
    # File-backed (not :memory:) so every pooled connection sees the same database
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        db_pool_size=5,
        db_max_overflow=0,
        db_pool_timeout=5.0,
        db_retry_base_delay=0.0,
        category_max_depth=8,
    )


@pytest_asyncio.fixture
async def db(settings: Settings) -> AsyncGenerator[Database, None]:
    database = Database(settings)
    async with database.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield database
    await database.disconnect()


@pytest.fixture
def article_repo(db: Database) -> ArticleRepository:
    return ArticleRepository(db)


@pytest.fixture
def category_repo(db: Database) -> CategoryRepository:
    return CategoryRepository(db)


@pytest.fixture
def tag_repo(db: Database) -> TagRepository:
    return TagRepository(db)


@pytest.fixture
def user_repo(db: Database) -> UserRepository:
    return UserRepository(db)


@pytest.fixture
def article_service(article_repo, tag_repo, settings) -> ArticleService:
    return ArticleService(article_repo, tag_repo, settings)


@pytest_asyncio.fixture
async def author(user_repo: UserRepository) -> UserResponse:
    return await user_repo.create(
        UserCreate(username="alice", email="alice@example.com", password="password123")
    )


@pytest_asyncio.fixture
async def client(settings: Settings, db: Database):
    app = create_app(settings)
    app.dependency_overrides[get_database] = lambda: db
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
