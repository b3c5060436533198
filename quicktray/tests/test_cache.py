"""Tests for the embedding cache."""

import pytest
from unittest.mock import Mock

from quicktray.core.cache import (
    MAX_EMBEDDING_INPUT,
    EmbeddingCache,
    embedding_input,
    fingerprint,
)


class TestEmbeddingCache:
    """Test per-item embedding memoization."""

    @pytest.fixture
    def embedder(self):
        return Mock(return_value=[0.1, 0.2, 0.3])

    @pytest.fixture
    def cache(self, embedder):
        return EmbeddingCache(embedder)

    def test_input_is_normalized_and_capped(self):
        text = "  Hello   WORLD " + "x" * 5000
        result = embedding_input(text)

        assert result.startswith("hello world")
        assert len(result) == MAX_EMBEDDING_INPUT

    def test_fingerprint_is_stable(self):
        assert fingerprint("abc") == fingerprint("abc")
        assert fingerprint("abc") != fingerprint("abd")

    def test_owned_vector_is_reused(self, cache, embedder):
        first = cache.vector_for("Some text", owner_id="item-1")
        second = cache.vector_for("some   TEXT", owner_id="item-1")

        assert first == second == (0.1, 0.2, 0.3)
        embedder.assert_called_once_with("some text")
        assert cache.hits == 1

    def test_changed_text_is_recomputed(self, cache, embedder):
        cache.vector_for("first version", owner_id="item-1")
        cache.vector_for("second version", owner_id="item-1")

        assert embedder.call_count == 2

    def test_absent_vector_is_cached(self, embedder):
        embedder.return_value = None
        cache = EmbeddingCache(embedder)

        assert cache.vector_for("no model for this", owner_id="item-1") is None
        assert cache.vector_for("no model for this", owner_id="item-1") is None
        embedder.assert_called_once()
        assert cache.get_stats()["entries_without_vector"] == 1

    def test_unowned_lookups_are_not_cached(self, cache, embedder):
        cache.vector_for("query text")
        cache.vector_for("query text")

        assert embedder.call_count == 2
        assert len(cache) == 0

    def test_prune_drops_unknown_ids(self, cache):
        cache.vector_for("one", owner_id="a")
        cache.vector_for("two", owner_id="b")
        cache.vector_for("three", owner_id="c")

        cache.prune({"b"})

        assert len(cache) == 1
        assert "b" in cache
        assert "a" not in cache

    def test_pruned_entry_is_recomputed(self, cache, embedder):
        cache.vector_for("one", owner_id="a")
        cache.prune(set())
        cache.vector_for("one", owner_id="a")

        assert embedder.call_count == 2

    def test_clear_and_stats(self, cache):
        cache.vector_for("one", owner_id="a")
        stats = cache.get_stats()

        assert stats["total_entries"] == 1
        assert stats["misses"] == 1

        cache.clear()
        assert len(cache) == 0
