"""
Cross-tab channel: "write a key, every other tab observes the write".

:class:`InMemoryChannel` gives the semantics of browser storage events to
buses living in the same process: a write is stored, then every watcher
except the writer is notified.  When an event loop is running, notification
is scheduled for a later turn, so cross-tab delivery is asynchronous relative
to the writer's same-tab dispatch.
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

Watcher = Callable[[str, str], None]


class InMemoryChannel:
    """Shared key/value storage with change notification."""

    def __init__(self) -> None:
        self._storage: Dict[str, str] = {}
        self._watchers: List[Tuple[Optional[str], Watcher]] = []

    def get(self, key: str) -> Optional[str]:
        return self._storage.get(key)

    def watch(self, callback: Watcher, watcher_id: Optional[str] = None) -> Callable[[], None]:
        """
        Call ``callback(key, value)`` on writes by anyone but ``watcher_id``.

        Returns a callable that stops watching.
        """
        entry = (watcher_id, callback)
        self._watchers.append(entry)

        def unwatch() -> None:
            if entry in self._watchers:
                self._watchers.remove(entry)

        return unwatch

    def write(self, key: str, value: str, writer_id: Optional[str] = None) -> None:
        self._storage[key] = value
        targets = [cb for wid, cb in self._watchers if writer_id is None or wid != writer_id]
        if not targets:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        for callback in targets:
            if loop is not None:
                loop.call_soon(self._deliver, callback, key, value)
            else:
                self._deliver(callback, key, value)

    @staticmethod
    def _deliver(callback: Watcher, key: str, value: str) -> None:
        try:
            callback(key, value)
        except Exception:
            logger.exception("Cross-tab watcher failed for key %s", key)
