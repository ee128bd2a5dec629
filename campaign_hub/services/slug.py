"""
Slug generation for campaign links

A slug is derived once from the campaign title and never changes afterwards,
so links that were already shared keep working after the title is edited.
"""
import re
from typing import Callable, Iterator

SLUG_MAX_LENGTH = 50
FALLBACK_SLUG = "campaign"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(title: str) -> str:
    """Turn a title into a lowercase, hyphen-separated candidate of at most 50 chars"""
    candidate = _NON_ALNUM.sub("-", title.lower().strip()).strip("-")
    candidate = candidate[:SLUG_MAX_LENGTH].rstrip("-")
    return candidate or FALLBACK_SLUG


def slug_candidates(base: str) -> Iterator[str]:
    """Yield ``base``, ``base-1``, ``base-2``, ... each trimmed to the length limit"""
    yield base
    counter = 1
    while True:
        suffix = f"-{counter}"
        stem = base[:SLUG_MAX_LENGTH - len(suffix)].rstrip("-") or FALLBACK_SLUG
        yield f"{stem}{suffix}"
        counter += 1


def unique_slug(title: str, exists: Callable[[str], bool]) -> str:
    """
    Return the first candidate for ``title`` that ``exists`` reports as free.

    The unique index on ``campaigns.slug`` stays the final arbiter; callers
    retry with the next candidate when an insert loses a race.
    """
    for candidate in slug_candidates(slugify(title)):
        if not exists(candidate):
            return candidate
