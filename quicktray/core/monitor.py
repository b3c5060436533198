"""System clipboard polling and copy-out."""

import asyncio
import hashlib
import logging
from typing import Callable, Optional

import pyperclip

from quicktray.models.schemas import ClipItem, ClipKind

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.5


def change_marker(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


class ClipboardMonitor:
    """Polls the system clipboard and feeds new text into the history.

    pyperclip exposes no change counter, so the marker is a fingerprint of
    the clipboard text. Writes made through ``write`` record their marker so
    the next poll does not ingest them again.
    """

    def __init__(
        self,
        on_text: Callable[[ClipItem], None],
        interval: float = DEFAULT_POLL_INTERVAL,
        paste: Optional[Callable[[], str]] = None,
        copy: Optional[Callable[[str], None]] = None,
    ):
        self.on_text = on_text
        self.interval = interval
        self._paste = paste or pyperclip.paste
        self._copy = copy or pyperclip.copy
        self._last_marker: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def last_marker(self) -> Optional[str]:
        return self._last_marker

    def prime(self):
        """Treat whatever is on the clipboard now as already seen."""
        text = self._read()
        if text is not None:
            self._last_marker = change_marker(text)

    def check(self) -> bool:
        """Poll once; returns True when a new entry was delivered."""
        text = self._read()
        if text is None:
            return False

        marker = change_marker(text)
        if marker == self._last_marker:
            return False
        self._last_marker = marker

        if not text:
            return False

        self.on_text(ClipItem.from_text(text))
        return True

    def write(self, item: ClipItem) -> Optional[str]:
        """Put ``item`` on the system clipboard; returns the resulting marker."""
        if item.kind is not ClipKind.TEXT:
            logger.warning(f"Cannot write image item {item.id} to the clipboard")
            return self._last_marker

        try:
            self._copy(item.text_content or "")
        except pyperclip.PyperclipException as e:
            logger.error(f"Clipboard write failed: {e}")
            return self._last_marker

        self._last_marker = change_marker(item.text_content or "")
        return self._last_marker

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self.prime()
            self._task = asyncio.get_running_loop().create_task(self._poll())
        return self._task

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _poll(self):
        logger.info(f"Monitoring clipboard every {self.interval}s")
        while True:
            self.check()
            await asyncio.sleep(self.interval)

    def _read(self) -> Optional[str]:
        try:
            return self._paste()
        except pyperclip.PyperclipException as e:
            logger.debug(f"Clipboard read failed: {e}")
            return None
