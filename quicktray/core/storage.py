"""JSON persistence for clipboard history and settings."""

import json
import logging
import os
import tempfile
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from quicktray.models.schemas import ClipItem

from .history import DEFAULT_RETENTION_LIMIT, clamp_retention_limit

logger = logging.getLogger(__name__)

RETENTION_LIMIT_KEY = "unpinnedRetentionLimit"

_items_adapter = TypeAdapter(List[ClipItem])


def _atomic_write(path: Path, data: bytes):
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        Path(tmp_path).unlink(missing_ok=True)
        raise


class HistoryStorage:
    """Write-behind JSON file holding the full history list.

    Saves run on a background thread against the snapshot they were given,
    in submission order. Failures are logged and never raised to callers; the
    next mutation writes the full list again.
    """

    def __init__(self, path: Path, executor: Optional[ThreadPoolExecutor] = None):
        self.path = Path(path)
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="quicktray-storage"
        )
        self._pending: Optional[Future] = None

    def load(self) -> List[ClipItem]:
        """Saved items, or an empty list when the file is missing or unreadable."""
        if not self.path.exists():
            return []

        try:
            items = _items_adapter.validate_json(self.path.read_bytes())
            logger.info(f"Loaded {len(items)} items from {self.path}")
            return items
        except (OSError, ValidationError, ValueError) as e:
            logger.error(f"Failed to load history from {self.path}: {e}")
            return []

    def save(self, snapshot: Sequence[ClipItem]) -> Future:
        items = list(snapshot)
        self._pending = self._executor.submit(self._write, items)
        return self._pending

    def flush(self):
        """Block until the most recent save has finished."""
        if self._pending is not None:
            self._pending.result()

    def close(self):
        self._executor.shutdown(wait=True)

    def _write(self, items: List[ClipItem]) -> bool:
        try:
            data = _items_adapter.dump_json(items, by_alias=True, indent=2)
            _atomic_write(self.path, data)
            return True
        except (OSError, ValueError) as e:
            logger.error(f"Failed to save history to {self.path}: {e}")
            return False


class SettingsStorage:
    """Persists the unpinned retention limit."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load_retention_limit(self) -> int:
        saved = 0
        try:
            if self.path.exists():
                saved = int(json.loads(self.path.read_text()).get(RETENTION_LIMIT_KEY, 0))
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Failed to read settings from {self.path}: {e}")

        return clamp_retention_limit(saved if saved > 0 else DEFAULT_RETENTION_LIMIT)

    def save_retention_limit(self, limit: int):
        try:
            data = {}
            if self.path.exists():
                try:
                    data = json.loads(self.path.read_text())
                except ValueError:
                    data = {}
            if not isinstance(data, dict):
                data = {}
            data[RETENTION_LIMIT_KEY] = limit
            _atomic_write(self.path, json.dumps(data, indent=2).encode("utf-8"))
        except OSError as e:
            logger.error(f"Failed to save settings to {self.path}: {e}")
