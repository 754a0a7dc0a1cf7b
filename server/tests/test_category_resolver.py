"""Tests for category matching and resolution."""
from __future__ import annotations

import pytest

from catalog.core.exceptions import NoCategoriesError
from catalog.services.category_resolver import CategoryCache, CategoryResolver, best_match

from conftest import FakeInference

KNOWN = ["Books", "Electronics", "Home"]


class TestBestMatch:
    def test_exact_match_ignores_case_and_quotes(self):
        assert best_match('  "electronics" ', KNOWN) == "Electronics"

    def test_unbalanced_quote_is_still_stripped(self):
        assert best_match('"Books', KNOWN) == "Books"
        assert best_match("home'", KNOWN) == "Home"

    def test_substring_match_in_free_text(self):
        assert best_match("I think Home.", KNOWN) == "Home"

    def test_no_match_returns_none(self):
        assert best_match("Garden", KNOWN) is None
        assert best_match("   ", KNOWN) is None


class TestCategoryCache:
    def test_blank_categories_are_ignored(self):
        cache = CategoryCache(["Home", "", "  "])
        cache.add(" ")
        cache.add("Books")

        assert cache.as_list() == ["Books", "Home"]
        assert len(cache) == 2
        assert "Books" in cache


class TestCategoryResolver:
    @pytest.mark.asyncio
    async def test_explicit_candidate_is_trimmed_and_kept(self):
        inference = FakeInference()
        resolver = CategoryResolver(inference)

        category = await resolver.resolve("  Garden ", "Hose", "Green hose", [])

        assert category == "Garden"
        assert inference.calls == []

    @pytest.mark.asyncio
    async def test_blank_candidate_without_known_categories_raises(self):
        resolver = CategoryResolver(FakeInference())

        with pytest.raises(NoCategoriesError):
            await resolver.resolve("  ", "Hose", "Green hose", [])

    @pytest.mark.asyncio
    async def test_free_text_suggestion_is_matched_to_known_category(self):
        resolver = CategoryResolver(FakeInference(category="I think Books."))

        assert await resolver.resolve(None, "Novel", "A long story", KNOWN) == "Books"

    @pytest.mark.asyncio
    async def test_unmatched_suggestion_falls_back_to_first_known(self):
        resolver = CategoryResolver(FakeInference(category="Toys"))

        assert await resolver.resolve(None, "Robot", "Wind-up robot", KNOWN) == "Books"

    @pytest.mark.asyncio
    async def test_without_inference_matches_locally(self):
        resolver = CategoryResolver(FakeInference(configured=False))

        category = await resolver.resolve(None, "Lamp", "Lighting for your home office", KNOWN)

        assert category == "Home"

    @pytest.mark.asyncio
    async def test_inference_failure_falls_back_locally(self):
        resolver = CategoryResolver(FakeInference(fail_on=["Radio"]))

        assert await resolver.resolve(None, "Radio", "Portable electronics", KNOWN) == "Electronics"
        assert await resolver.resolve(None, "Radio", "Nothing matches here", KNOWN) == "Books"
