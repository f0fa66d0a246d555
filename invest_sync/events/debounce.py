"""
Debounced publishing.

Rapid repeated publishes of the same ``(event_name, source_tag)`` pair within
the delay window collapse into a single publish carrying the latest payload,
fired once the window has been quiet for ``delay`` seconds.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Tuple, Union

from invest_sync.core.config import settings
from invest_sync.events.bus import EventBus, normalize_event_name
from invest_sync.events.types import UpdateEventType

logger = logging.getLogger(__name__)

DebounceKey = Tuple[str, str]


class DebouncedPublisher:
    """Trailing-edge debouncer in front of an :class:`EventBus`; needs a running loop."""

    def __init__(self, bus: EventBus, delay: float = settings.DEBOUNCE_DELAY):
        self.bus = bus
        self.delay = delay
        self._pending: Dict[DebounceKey, asyncio.TimerHandle] = {}

    @property
    def pending(self) -> int:
        return len(self._pending)

    def publish(
        self,
        event_name: Union[str, UpdateEventType],
        payload: Any = None,
        source_tag: Optional[str] = None,
        delay: Optional[float] = None,
    ) -> None:
        name = normalize_event_name(event_name)
        key = (name, source_tag or "default")

        previous = self._pending.pop(key, None)
        if previous is not None:
            previous.cancel()
            logger.debug("Debounced", extra={"event_name": name, "source_tag": source_tag})

        loop = asyncio.get_running_loop()
        self._pending[key] = loop.call_later(
            self.delay if delay is None else delay,
            self._fire,
            key,
            name,
            payload,
            source_tag,
        )

    def _fire(self, key: DebounceKey, name: str, payload: Any, source_tag: Optional[str]) -> None:
        self._pending.pop(key, None)
        self.bus.publish(name, payload, source_tag)

    def cancel_all(self) -> None:
        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()
