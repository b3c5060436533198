"""Wires the history, search and clipboard collaborators together."""

import logging
from typing import List, Optional

from quicktray.config import QuickTrayConfig
from quicktray.models.schemas import ClipItem

from .cache import EmbeddingCache, Embedder
from .coordinator import QueryCoordinator
from .history import HistoryStore
from .intelligence import EmbeddingIntelligence
from .monitor import ClipboardMonitor
from .search import ScoredItem, SemanticSearchIndex
from .storage import HistoryStorage, SettingsStorage

logger = logging.getLogger(__name__)


class ClipboardEngine:
    """History store, persistence and search for one clipboard."""

    def __init__(
        self,
        config: QuickTrayConfig,
        embedder: Embedder,
        storage: Optional[HistoryStorage] = None,
        settings: Optional[SettingsStorage] = None,
        monitor: Optional[ClipboardMonitor] = None,
    ):
        self.config = config
        self.storage = storage or HistoryStorage(config.history_path)
        self.settings = settings or SettingsStorage(config.settings_path)
        self.cache = EmbeddingCache(embedder)
        self.index = SemanticSearchIndex(self.cache)
        self.coordinator = QueryCoordinator(self.index)
        self.monitor = monitor or ClipboardMonitor(
            self.ingest, interval=config.poll_interval
        )
        self.store = HistoryStore(
            retention_limit=self.settings.load_retention_limit(),
            settings=self.settings,
            clipboard=self.monitor,
        )

        # Subscribed first so a history trimmed while loading is written back
        self.store.subscribe(self.storage.save)
        self.store.subscribe(self.coordinator.items_changed)
        self.store.seed(self.storage.load())

    @classmethod
    async def create(cls, config: QuickTrayConfig) -> "ClipboardEngine":
        intelligence = await EmbeddingIntelligence.detect(config)
        return cls(config, intelligence.generate_embedding)

    @property
    def displayed_items(self) -> List[ClipItem]:
        return self.coordinator.displayed_items

    def ingest(self, item: ClipItem):
        self.store.insert_or_touch(item)

    async def search(self, query: str) -> List[ClipItem]:
        """Set the query and wait for its ranked view."""
        self.coordinator.set_query(query)
        await self.coordinator.wait_idle()
        return self.coordinator.displayed_items

    async def score(self, query: str) -> List[ScoredItem]:
        return await self.coordinator.score(self.store.items, query)

    def start(self):
        if self.config.monitor_enabled:
            self.monitor.start()

    async def stop(self):
        await self.monitor.stop()
        await self.coordinator.wait_idle()
        self.coordinator.close()
        self.storage.close()
