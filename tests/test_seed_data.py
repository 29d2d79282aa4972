"""
Seed script tests - default rows land once, reruns are no-ops.
"""

import importlib.util
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "seed_data.py"


def _load_seed_module():
    spec = importlib.util.spec_from_file_location("seed_data", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.mark.asyncio
async def test_seed_defaults_is_idempotent(db, category_repo, tag_repo):
    seed_data = _load_seed_module()
    assert await seed_data.seed_defaults(db) == (4, 6)
    assert await seed_data.seed_defaults(db) == (0, 0)

    assert [c.slug for c in await category_repo.find_all()] == ["technology", "life", "study", "notes"]
    node = await tag_repo.find_by_name("Node.js")
    assert node.slug == "nodejs"
    assert node.color == "#339933"
