"""Ordered clipboard history with pinning and retention."""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple

import pandas as pd

from quicktray.models.schemas import ClipItem, ClipKind, utcnow

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_LIMIT = 20
MIN_RETENTION_LIMIT = 1
MAX_RETENTION_LIMIT = 500

Snapshot = Tuple[ClipItem, ...]
Listener = Callable[[Snapshot], None]


def clamp_retention_limit(value: int) -> int:
    return min(max(int(value), MIN_RETENTION_LIMIT), MAX_RETENTION_LIMIT)


class ClipboardWriter(Protocol):
    def write(self, item: ClipItem) -> Any: ...


class RetentionSettings(Protocol):
    def save_retention_limit(self, limit: int) -> None: ...


class HistoryStore:
    """Owns the history list and keeps its invariants.

    Pinned items form a contiguous prefix, each block is ordered most recent
    first, and at most ``retention_limit`` unpinned items are kept. Every
    mutation hands an immutable snapshot of the list to the subscribers.
    Lookups by id are no-ops when the item is gone.
    """

    def __init__(
        self,
        retention_limit: int = DEFAULT_RETENTION_LIMIT,
        settings: Optional[RetentionSettings] = None,
        clipboard: Optional[ClipboardWriter] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._items: List[ClipItem] = []
        self._retention_limit = clamp_retention_limit(retention_limit)
        self.settings = settings
        self.clipboard = clipboard
        self.clock = clock
        self._listeners: List[Listener] = []

    @property
    def items(self) -> Snapshot:
        return tuple(self._items)

    @property
    def retention_limit(self) -> int:
        return self._retention_limit

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(tuple(self._items))

    def subscribe(self, listener: Listener):
        self._listeners.append(listener)

    def get(self, item_id: str) -> Optional[ClipItem]:
        index = self._index_of(item_id)
        return self._items[index] if index is not None else None

    def seed(self, items: Iterable[ClipItem]):
        """Replace the list with previously saved items, restoring invariants."""
        seen = set()
        unique = []
        for item in items:
            if item.id in seen:
                continue
            seen.add(item.id)
            unique.append(item)

        pinned = [item for item in unique if item.is_pinned]
        unpinned = [item for item in unique if not item.is_pinned]
        self._items = pinned + unpinned
        self._enforce_retention()
        self._commit()

    def insert_or_touch(self, new_item: ClipItem):
        """Insert at the front, or refresh an existing item with the same content."""
        existing = next(
            (i for i, item in enumerate(self._items) if item.same_content(new_item)),
            None,
        )
        if existing is not None:
            item = self._items.pop(existing)
            item = item.model_copy(update={"timestamp": self.clock()})
            logger.debug(f"Touched existing item {item.id}")
        else:
            item = new_item.model_copy(update={"timestamp": self.clock()})

        self._items.insert(self._front_index(item), item)
        self._enforce_retention()
        self._commit()

    def toggle_pin(self, item_id: str):
        index = self._index_of(item_id)
        if index is None:
            return

        item = self._items.pop(index)
        item = item.model_copy(
            update={"is_pinned": not item.is_pinned, "timestamp": self.clock()}
        )
        self._items.insert(self._front_index(item), item)
        self._enforce_retention()
        self._commit()

    def remove(self, item_id: str):
        index = self._index_of(item_id)
        if index is None:
            return
        del self._items[index]
        self._commit()

    def clear_all(self):
        self._items = []
        self._commit()

    def copy_out(self, item_id: str):
        """Write the item to the system clipboard and refresh its recency."""
        item = self.get(item_id)
        if item is None:
            return
        if self.clipboard is not None:
            self.clipboard.write(item)
        self.insert_or_touch(item)

    def set_retention_limit(self, limit: int):
        clamped = clamp_retention_limit(limit)
        if clamped != limit:
            self.set_retention_limit(clamped)
            return

        self._retention_limit = clamped
        if self.settings is not None:
            self.settings.save_retention_limit(clamped)

        if self._enforce_retention():
            self._commit()

    def get_stats(self) -> Dict[str, Any]:
        """Summary of the current history."""
        if not self._items:
            return {
                "total_items": 0,
                "pinned_items": 0,
                "unpinned_items": 0,
                "text_items": 0,
                "image_items": 0,
                "avg_text_length": 0,
                "retention_limit": self._retention_limit,
            }

        df = pd.DataFrame(
            [
                {
                    "kind": item.kind.value,
                    "is_pinned": item.is_pinned,
                    "text_length": len(item.text_content or ""),
                    "timestamp": item.timestamp,
                }
                for item in self._items
            ]
        )
        text_rows = df[df["kind"] == ClipKind.TEXT.value]
        avg_length = text_rows["text_length"].mean() if len(text_rows) else 0

        return {
            "total_items": len(df),
            "pinned_items": int(df["is_pinned"].sum()),
            "unpinned_items": int((~df["is_pinned"]).sum()),
            "text_items": len(text_rows),
            "image_items": len(df) - len(text_rows),
            "avg_text_length": round(float(avg_length), 1),
            "retention_limit": self._retention_limit,
            "oldest_item": df["timestamp"].min().isoformat(),
            "newest_item": df["timestamp"].max().isoformat(),
        }

    def _index_of(self, item_id: str) -> Optional[int]:
        return next(
            (i for i, item in enumerate(self._items) if item.id == item_id), None
        )

    def _front_index(self, item: ClipItem) -> int:
        # Front of the item's own block
        if item.is_pinned:
            return 0
        return sum(1 for other in self._items if other.is_pinned)

    def _enforce_retention(self) -> bool:
        excess = sum(1 for item in self._items if not item.is_pinned)
        excess -= self._retention_limit
        if excess <= 0:
            return False

        for index in range(len(self._items) - 1, -1, -1):
            if excess == 0:
                break
            if not self._items[index].is_pinned:
                evicted = self._items.pop(index)
                excess -= 1
                logger.debug(f"Evicted item {evicted.id}")
        return True

    def _commit(self):
        snapshot = tuple(self._items)
        for listener in self._listeners:
            listener(snapshot)
