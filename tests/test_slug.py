"""
Unit Tests for slug generation
"""
import re

import pytest

from campaign_hub.services.slug import (
    FALLBACK_SLUG,
    SLUG_MAX_LENGTH,
    slug_candidates,
    slugify,
    unique_slug,
)

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")

TITLES = [
    "Save the Park",
    "Save The Park",
    "  --Help Rina's surgery!!  ",
    "O+ donors needed @ General Hospital",
    "Café für Kinder 2025",
    "a" * 80,
    "word " * 30,
    "Ends with a symbol ----------------------------------------------- x",
    "!!!",
    "",
]


class TestSlugify:
    """Slug derivation from a title"""

    @pytest.mark.parametrize("title", TITLES)
    def test_shape(self, title):
        slug = slugify(title)
        assert SLUG_PATTERN.match(slug)
        assert len(slug) <= SLUG_MAX_LENGTH
        assert not slug.startswith("-") and not slug.endswith("-")

    @pytest.mark.parametrize("title", TITLES)
    def test_idempotent(self, title):
        assert slugify(slugify(title)) == slugify(title)

    def test_basic_title(self):
        assert slugify("Save the Park") == "save-the-park"

    def test_case_is_folded(self):
        assert slugify("Save The Park") == slugify("save the park")

    def test_punctuation_collapses_to_single_hyphen(self):
        assert slugify("Help -- Rina's   surgery!!") == "help-rina-s-surgery"

    def test_non_ascii_letters_are_separators(self):
        assert slugify("Café für Kinder") == "caf-f-r-kinder"

    def test_truncation_does_not_leave_trailing_hyphen(self):
        title = "x" * 49 + " tail"
        slug = slugify(title)
        assert slug == "x" * 49
        assert len(slug) <= SLUG_MAX_LENGTH

    def test_empty_title_uses_fallback(self):
        assert slugify("!!!") == FALLBACK_SLUG
        assert slugify("") == FALLBACK_SLUG


class TestSlugCandidates:
    """Collision suffixes"""

    def test_first_candidates(self):
        candidates = slug_candidates("save-the-park")
        assert [next(candidates) for _ in range(3)] == ["save-the-park", "save-the-park-1", "save-the-park-2"]

    def test_suffixed_candidates_respect_length_limit(self):
        base = slugify("a" * 80)
        candidates = slug_candidates(base)
        next(candidates)
        for _ in range(12):
            candidate = next(candidates)
            assert len(candidate) <= SLUG_MAX_LENGTH
            assert SLUG_PATTERN.match(candidate)

    def test_unique_slug_skips_taken(self):
        taken = {"save-the-park", "save-the-park-1"}
        assert unique_slug("Save the Park", lambda candidate: candidate in taken) == "save-the-park-2"

    def test_unique_slug_free_base(self):
        assert unique_slug("Save the Park", lambda candidate: False) == "save-the-park"
