"""Per-item embedding cache keyed by a content fingerprint."""

import hashlib
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .scoring import normalize

logger = logging.getLogger(__name__)

MAX_EMBEDDING_INPUT = 1024

Vector = Tuple[float, ...]
Embedder = Callable[[str], Optional[List[float]]]


def embedding_input(text: str, limit: int = MAX_EMBEDDING_INPUT) -> str:
    """Normalized text capped to a bounded prefix."""
    return normalize(text)[:limit]


def fingerprint(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class EmbeddingEntry:
    fingerprint: str
    vector: Optional[Vector]


class EmbeddingCache:
    """Memoizes embeddings per item so unchanged text is never re-embedded.

    An absent vector is cached like any other value: the embedding
    collaborator is asked again only once the item's fingerprint changes.
    """

    def __init__(self, embedder: Embedder, max_input: int = MAX_EMBEDDING_INPUT):
        self.embedder = embedder
        self.max_input = max_input
        self._entries: Dict[str, EmbeddingEntry] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def vector_for(self, text: str, owner_id: Optional[str] = None) -> Optional[Vector]:
        """Return the embedding of ``text``, cached under ``owner_id`` if given."""
        source = embedding_input(text, self.max_input)
        key = fingerprint(source)

        if owner_id is not None:
            with self._lock:
                cached = self._entries.get(owner_id)
            if cached is not None and cached.fingerprint == key:
                self.hits += 1
                return cached.vector

        self.misses += 1
        raw = self.embedder(source)
        vector = tuple(float(x) for x in raw) if raw is not None and len(raw) else None

        if owner_id is not None:
            with self._lock:
                self._entries[owner_id] = EmbeddingEntry(key, vector)

        return vector

    def prune(self, valid_ids: Iterable[str]):
        """Drop entries for items no longer in the history."""
        valid = set(valid_ids)
        with self._lock:
            stale = [item_id for item_id in self._entries if item_id not in valid]
            for item_id in stale:
                del self._entries[item_id]
        if stale:
            logger.debug(f"Pruned {len(stale)} embedding cache entries")

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, owner_id: str) -> bool:
        return owner_id in self._entries

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            without_vector = sum(
                1 for entry in self._entries.values() if entry.vector is None
            )
            total = len(self._entries)

        return {
            "total_entries": total,
            "entries_without_vector": without_vector,
            "hits": self.hits,
            "misses": self.misses,
        }
