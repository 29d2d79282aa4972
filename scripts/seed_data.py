#!/usr/bin/env python3
"""
Seed script: inserts the default categories and tags through the repositories.
Idempotent: rows whose name already exists (among active rows) are skipped.
Run after `alembic upgrade head`:
  python scripts/seed_data.py
  python scripts/seed_data.py --database-url sqlite+aiosqlite:///./reader.db
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from reader_api.config import Settings, get_settings  # noqa: E402
from reader_api.core.exceptions import DatabaseClosedError  # noqa: E402
from reader_api.db.database import Database  # noqa: E402
from reader_api.db.repositories import CategoryRepository, TagRepository  # noqa: E402
from reader_api.schemas import CategoryCreate, TagCreate  # noqa: E402

logger = logging.getLogger("seed_data")

DEFAULT_CATEGORIES = [
    CategoryCreate(name="Technology", description="Articles about technology", slug="technology", sort_order=1),
    CategoryCreate(name="Life", description="Reflections and shared experience", slug="life", sort_order=2),
    CategoryCreate(name="Study", description="Study notes and takeaways", slug="study", sort_order=3),
    CategoryCreate(name="Notes", description="Loose thoughts worth writing down", slug="notes", sort_order=4),
]

DEFAULT_TAGS = [
    TagCreate(name="JavaScript", description="JavaScript content", slug="javascript", color="#f7df1e"),
    TagCreate(name="Node.js", description="Node.js content", slug="nodejs", color="#339933"),
    TagCreate(name="PostgreSQL", description="PostgreSQL databases", slug="postgresql", color="#336791"),
    TagCreate(name="API", description="API development", slug="api", color="#ff6b6b"),
    TagCreate(name="Tutorial", description="Step-by-step tutorials", slug="tutorial", color="#4ecdc4"),
    TagCreate(name="Experience", description="Lessons learned", slug="experience", color="#45b7d1"),
]


async def seed_defaults(db: Database) -> tuple[int, int]:
    """Insert missing default categories and tags. Returns (categories_created, tags_created)."""
    category_repo = CategoryRepository(db)
    tag_repo = TagRepository(db)

    created_categories = 0
    for category in DEFAULT_CATEGORIES:
        if await category_repo.is_name_exists(category.name):
            continue
        await category_repo.create(category)
        created_categories += 1

    created_tags = 0
    for tag in DEFAULT_TAGS:
        if await tag_repo.is_name_exists(tag.name):
            continue
        await tag_repo.create(tag)
        created_tags += 1

    return created_categories, created_tags


async def run(settings: Settings) -> int:
    db = Database(settings)
    db.install_signal_handlers()
    try:
        if not await db.connect():
            return 1
        categories, tags = await seed_defaults(db)
        logger.info("Seeded %d categories and %d tags", categories, tags)
        return 0
    except (asyncio.CancelledError, DatabaseClosedError):
        # Shutdown signal: the pool is already closed
        logger.warning("Seeding interrupted; rows inserted so far are kept")
        return 130
    finally:
        await db.disconnect()


def main():
    ap = argparse.ArgumentParser(description="Seed default categories and tags")
    ap.add_argument("--database-url", help="Override DATABASE_URL")
    args = ap.parse_args()

    settings = get_settings()
    if args.database_url:
        settings = settings.model_copy(update={"database_url": args.database_url})
    logging.basicConfig(level=settings.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    sys.exit(asyncio.run(run(settings)))


if __name__ == "__main__":
    main()
