"""Tests for the semantic search index."""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from quicktray.core.cache import EmbeddingCache
from quicktray.core.search import SemanticSearchIndex
from quicktray.models.schemas import ClipItem

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def text_item(text: str, minutes: int = 0, pinned: bool = False) -> ClipItem:
    return ClipItem.from_text(text).model_copy(
        update={"timestamp": BASE_TIME + timedelta(minutes=minutes), "is_pinned": pinned}
    )


def topic_embedder(text: str) -> Optional[List[float]]:
    """Two-topic toy embedding: vehicles and fruit."""
    if any(word in text for word in ("car", "automobile", "vehicle")):
        return [1.0, 0.0]
    if any(word in text for word in ("banana", "fruit")):
        return [0.0, 1.0]
    return None


class TestSemanticSearchIndex:
    @pytest.fixture
    def index(self):
        return SemanticSearchIndex(EmbeddingCache(lambda text: None))

    def test_empty_query_returns_items_unchanged(self, index):
        items = [text_item("b", 1), ClipItem.from_image(b"\x89PNG"), text_item("a", 2)]

        assert index.rank(items, "") == items
        assert index.rank(items, "   \n") == items

    def test_images_never_match_a_query(self, index):
        items = [ClipItem.from_image(b"fox"), text_item("the quick brown fox")]

        result = index.rank(items, "fox")

        assert len(result) == 1
        assert all(item.kind.value == "text" for item in result)

    def test_no_text_candidates(self, index):
        items = [ClipItem.from_image(b"data"), text_item("   ")]

        assert index.rank(items, "anything") == []

    def test_lexical_match_ranks_and_filters(self, index):
        fox = text_item("the quick brown fox", 1)
        other = text_item("completely unrelated content", 2)

        assert index.rank([other, fox], "quick fox") == [fox]

    def test_higher_score_first(self, index):
        partial = text_item("quick thinking", 5)
        exact = text_item("a quick fox", 1)

        assert index.rank([partial, exact], "quick fox") == [exact, partial]

    def test_ties_broken_by_recency(self, index):
        older = text_item("quick fox one", 1)
        newer = text_item("quick fox two", 2)

        assert index.rank([older, newer], "quick fox") == [newer, older]
        assert index.rank([newer, older], "quick fox") == [newer, older]

    def test_semantic_match_without_lexical_overlap(self):
        index = SemanticSearchIndex(EmbeddingCache(topic_embedder))
        car = text_item("my car keys are on the table", 1)
        fruit = text_item("banana bread recipe", 2)

        scored = index.score_items([car, fruit], "automobile")

        assert [s.item for s in scored] == [car]
        assert scored[0].score == pytest.approx(0.75)

    def test_cache_tracks_candidates(self):
        cache = EmbeddingCache(topic_embedder)
        index = SemanticSearchIndex(cache)
        car = text_item("car wash", 1)
        fruit = text_item("fruit salad", 2)

        index.rank([car, fruit], "vehicle")
        assert car.id in cache and fruit.id in cache

        index.rank([car], "vehicle")
        assert fruit.id not in cache

    def test_no_query_vector_skips_item_embeddings(self):
        calls = []

        def embedder(text):
            calls.append(text)
            return None

        index = SemanticSearchIndex(EmbeddingCache(embedder))
        index.rank([text_item("one"), text_item("two")], "query")

        assert calls == ["query"]
