"""URL slugs derived from titles/names, made unique against an existence probe."""

from collections.abc import Awaitable, Callable

from slugify import slugify

MAX_SLUG_LENGTH = 100


async def available_slug(
    source: str,
    is_taken: Callable[[str], Awaitable[bool]],
    *,
    fallback: str = "item",
) -> str:
    """
    slugify(source), or `fallback` when nothing survives transliteration.
    Appends -2, -3, ... until is_taken() says the candidate is free.
    """
    base = slugify(source, max_length=MAX_SLUG_LENGTH) or fallback
    candidate = base
    suffix = 1
    while await is_taken(candidate):
        suffix += 1
        candidate = f"{base}-{suffix}"
    return candidate
