"""Semantic search index over clipboard history."""

import functools
import logging
from typing import List, NamedTuple, Sequence

from quicktray.models.schemas import ClipItem, ClipKind

from .cache import EmbeddingCache
from .scoring import (
    combined_score,
    is_relevant,
    lexical_score,
    normalize,
    semantic_score,
)

logger = logging.getLogger(__name__)

TIE_TOLERANCE = 0.001


class ScoredItem(NamedTuple):
    item: ClipItem
    score: float


def _compare(lhs: ScoredItem, rhs: ScoredItem) -> int:
    if abs(lhs.score - rhs.score) > TIE_TOLERANCE:
        return -1 if lhs.score > rhs.score else 1
    if lhs.item.timestamp != rhs.item.timestamp:
        return -1 if lhs.item.timestamp > rhs.item.timestamp else 1
    return 0


class SemanticSearchIndex:
    """Ranks text items against a query with blended lexical/semantic scores."""

    def __init__(self, cache: EmbeddingCache):
        self.cache = cache

    def rank(self, items: Sequence[ClipItem], query: str) -> List[ClipItem]:
        """Items relevant to ``query``, best first.

        An empty query returns every item in store order.
        """
        if not normalize(query):
            return list(items)
        return [scored.item for scored in self.score_items(items, query)]

    def score_items(self, items: Sequence[ClipItem], query: str) -> List[ScoredItem]:
        normalized_query = normalize(query)
        if not normalized_query:
            return []

        candidates = [
            (item, normalize(item.text_content or ""))
            for item in items
            if item.kind is ClipKind.TEXT
        ]
        candidates = [(item, text) for item, text in candidates if text]
        if not candidates:
            return []

        self.cache.prune(item.id for item, _ in candidates)
        query_vector = self.cache.vector_for(normalized_query)

        scored = []
        for item, text in candidates:
            lexical = lexical_score(normalized_query, text)
            semantic = 0.0
            if query_vector is not None:
                semantic = semantic_score(
                    query_vector, self.cache.vector_for(text, owner_id=item.id)
                )
            score = combined_score(lexical, semantic)
            if is_relevant(score):
                scored.append(ScoredItem(item, score))

        # Scores within TIE_TOLERANCE fall back to recency
        scored.sort(key=functools.cmp_to_key(_compare))
        logger.debug(
            f"Ranked {len(scored)} of {len(candidates)} candidates for {normalized_query!r}"
        )
        return scored
