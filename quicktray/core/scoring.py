"""Lexical and semantic relevance scoring for clipboard search."""

import re
from typing import FrozenSet, Optional, Sequence

import numpy as np

RELEVANCE_THRESHOLD = 0.17
STRONG_LEXICAL_MATCH = 0.95
SEMANTIC_WEIGHT = 0.75
LEXICAL_WEIGHT = 0.25

_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^\w]|_")


def normalize(text: str) -> str:
    """Lowercase, collapse whitespace runs and trim."""
    return _WHITESPACE.sub(" ", text.lower()).strip()


def token_set(text: str) -> FrozenSet[str]:
    """Alphanumeric runs of two or more characters."""
    return frozenset(
        token for token in _NON_ALNUM.split(text.lower()) if len(token) >= 2
    )


def lexical_score(query: str, text: str) -> float:
    """Substring match scores 1.0; otherwise query token coverage up to 0.95.

    Both arguments are expected to be normalized already.
    """
    if query in text:
        return 1.0

    query_tokens = token_set(query)
    text_tokens = token_set(text)
    if not query_tokens or not text_tokens:
        return 0.0

    overlap = len(query_tokens & text_tokens)
    if overlap == 0:
        return 0.0

    return min(overlap / len(query_tokens), STRONG_LEXICAL_MATCH)


def cosine_similarity(lhs: Sequence[float], rhs: Sequence[float]) -> float:
    """Cosine similarity; 0.0 for empty, mismatched or zero-norm vectors."""
    a = np.asarray(lhs, dtype=float)
    b = np.asarray(rhs, dtype=float)
    if a.size == 0 or a.shape != b.shape:
        return 0.0

    a_norm = float(np.linalg.norm(a))
    b_norm = float(np.linalg.norm(b))
    if a_norm == 0.0 or b_norm == 0.0:
        return 0.0

    return float(np.dot(a, b) / (a_norm * b_norm))


def semantic_score(
    query_vector: Optional[Sequence[float]], text_vector: Optional[Sequence[float]]
) -> float:
    if query_vector is None or text_vector is None:
        return 0.0
    return max(0.0, cosine_similarity(query_vector, text_vector))


def combined_score(lexical: float, semantic: float) -> float:
    if lexical >= STRONG_LEXICAL_MATCH:
        return lexical
    return max(lexical, semantic * SEMANTIC_WEIGHT + lexical * LEXICAL_WEIGHT)


def relevance(
    query: str,
    text: str,
    query_vector: Optional[Sequence[float]] = None,
    text_vector: Optional[Sequence[float]] = None,
) -> float:
    """Combined score of ``text`` against ``query`` in [0, 1]."""
    lexical = lexical_score(normalize(query), normalize(text))
    return combined_score(lexical, semantic_score(query_vector, text_vector))


def is_relevant(score: float) -> bool:
    return score >= RELEVANCE_THRESHOLD
