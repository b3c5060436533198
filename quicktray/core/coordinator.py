"""Last-request-wins coordination of search ranking."""

import asyncio
import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, Set, Tuple

from quicktray.models.schemas import ClipItem

from .scoring import normalize
from .search import ScoredItem, SemanticSearchIndex

logger = logging.getLogger(__name__)

ResultListener = Callable[[List[ClipItem]], None]


class QueryCoordinator:
    """Publishes the ranked view of the history for the current query.

    Runs on the event loop. Empty queries publish synchronously; other
    queries are ranked on a single worker thread against snapshots taken at
    request time, and a result is published only if no newer request was
    issued while it was computing.
    """

    def __init__(
        self,
        index: SemanticSearchIndex,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.index = index
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="quicktray-search"
        )
        self._query = ""
        self._items: Tuple[ClipItem, ...] = ()
        self._active_request: Optional[str] = None
        self._tasks: Set[asyncio.Task] = set()
        self._listeners: List[ResultListener] = []
        self.displayed_items: List[ClipItem] = []

    @property
    def query(self) -> str:
        return self._query

    @property
    def active_request(self) -> Optional[str]:
        return self._active_request

    def subscribe(self, listener: ResultListener):
        self._listeners.append(listener)

    def set_query(self, query: str) -> Optional[asyncio.Task]:
        self._query = query
        return self.refresh()

    def items_changed(self, items: Sequence[ClipItem]) -> Optional[asyncio.Task]:
        self._items = tuple(items)
        return self.refresh()

    def refresh(self) -> Optional[asyncio.Task]:
        """Issue a new request for the current query and items."""
        query = self._query
        items = self._items
        request_id = uuid.uuid4().hex
        self._active_request = request_id

        if not normalize(query):
            self._publish(list(items))
            return None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to hand results back to: rank in place
            self._publish(self.index.rank(items, query))
            return None

        task = loop.create_task(self._run(request_id, items, query))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def score(self, items: Sequence[ClipItem], query: str) -> List[ScoredItem]:
        """Scored ranking on the worker thread, without publishing it."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor, self.index.score_items, tuple(items), query
        )

    async def wait_idle(self):
        """Wait for every in-flight request to finish."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def close(self):
        for task in list(self._tasks):
            task.cancel()
        self._executor.shutdown(wait=False)

    async def _run(self, request_id: str, items: Tuple[ClipItem, ...], query: str):
        loop = asyncio.get_running_loop()
        try:
            ranked = await loop.run_in_executor(
                self._executor, self.index.rank, items, query
            )
        except Exception as e:
            logger.error(f"Ranking failed for request {request_id}: {e}")
            return

        if request_id != self._active_request:
            logger.debug(f"Discarding superseded search request {request_id}")
            return

        self._publish(ranked)

    def _publish(self, items: List[ClipItem]):
        self.displayed_items = items
        for listener in self._listeners:
            listener(items)
