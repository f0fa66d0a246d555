"""
Update propagation bus.

``publish`` delivers an :class:`UpdateEvent` synchronously to this bus's
subscribers (same tab), then to the generic ``data_refresh`` subscribers, and
finally writes the serialised event to the cross-tab channel so that buses
attached to the same channel (other tabs) deliver it too.

Cross-tab delivery is best effort and unordered: receivers should treat an
event as "something changed, re-fetch", never as an ordered log.

Handlers may be plain callables or coroutine functions.  Coroutines are
scheduled as tasks on the running loop.  A failing handler is logged and does
not prevent the remaining handlers from running.
"""

import asyncio
import inspect
import logging
import uuid
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple, Union

from pydantic import ValidationError

from invest_sync.core.config import settings
from invest_sync.events.channel import InMemoryChannel
from invest_sync.events.types import UpdateEvent, UpdateEventType

logger = logging.getLogger(__name__)

Handler = Callable[[UpdateEvent], Any]
EventNames = Union[str, UpdateEventType, Iterable[Union[str, UpdateEventType]]]

GENERIC_EVENT = UpdateEventType.DATA_REFRESH.value

# One entry per subscribe() call; the token tells subscriptions apart when
# the same handler is registered more than once.
Subscription = Tuple[object, Handler]


def normalize_event_name(name: Union[str, UpdateEventType]) -> str:
    return name.value if isinstance(name, UpdateEventType) else str(name)


class EventBus:
    """
    Publish/subscribe hub for one tab.

    Parameters
    ----------
    channel : InMemoryChannel, optional
        Shared cross-tab channel.  Without one, delivery stays in this bus.
    tab_id : str, optional
        Identity of this tab; generated when omitted.
    channel_key : str
        Sentinel key the serialised event is written under.
    """

    def __init__(
        self,
        channel: Optional[InMemoryChannel] = None,
        tab_id: Optional[str] = None,
        channel_key: str = settings.CROSS_TAB_KEY,
    ):
        self.tab_id = tab_id or uuid.uuid4().hex
        self._channel = channel
        self._channel_key = channel_key
        self._subscribers: Dict[str, List[Subscription]] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._unwatch: Optional[Callable[[], None]] = None
        if channel is not None:
            self._unwatch = channel.watch(self._on_channel_write, watcher_id=self.tab_id)

    # ── Subscription ──

    def subscribe(self, event_names: EventNames, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for one or more event names; returns an unsubscribe callable."""
        if isinstance(event_names, (str, UpdateEventType)):
            names = [normalize_event_name(event_names)]
        else:
            names = list(dict.fromkeys(normalize_event_name(n) for n in event_names))

        subscription: Subscription = (object(), handler)
        for name in names:
            self._subscribers.setdefault(name, []).append(subscription)
        logger.debug("Subscribed to %s", ", ".join(names))

        def unsubscribe() -> None:
            for name in names:
                subscriptions = self._subscribers.get(name, [])
                if subscription in subscriptions:
                    subscriptions.remove(subscription)

        return unsubscribe

    def subscriber_count(self, event_name: Union[str, UpdateEventType]) -> int:
        return len(self._subscribers.get(normalize_event_name(event_name), []))

    # ── Publishing ──

    def publish(
        self,
        event_name: Union[str, UpdateEventType],
        payload: Any = None,
        source_tag: Optional[str] = None,
    ) -> UpdateEvent:
        """Broadcast to this tab synchronously, then to other tabs via the channel."""
        event = UpdateEvent(
            event_name=normalize_event_name(event_name),
            payload=payload,
            source_tag=source_tag,
            origin=self.tab_id,
        )
        logger.info(
            "Update published",
            extra={"event_name": event.event_name, "source_tag": source_tag},
        )
        # Serialised up front: a payload other tabs cannot receive is rejected
        # before any handler runs.
        wire = event.model_dump_json() if self._channel is not None else None
        self._dispatch(event)

        if wire is not None:
            self._channel.write(self._channel_key, wire, writer_id=self.tab_id)
        return event

    def _dispatch(self, event: UpdateEvent) -> None:
        names = [event.event_name]
        if event.event_name != GENERIC_EVENT:
            names.append(GENERIC_EVENT)
        # A subscription to both the event and data_refresh fires once.
        fired: Set[int] = set()
        for name in names:
            for token, handler in list(self._subscribers.get(name, [])):
                if id(token) in fired:
                    continue
                fired.add(id(token))
                self._invoke(handler, event)

    def _invoke(self, handler: Handler, event: UpdateEvent) -> None:
        try:
            result = handler(event)
        except Exception:
            logger.exception(
                "Event handler failed", extra={"event_name": event.event_name}
            )
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Async event handler failed", exc_info=task.exception())

    # ── Cross-tab ──

    def _on_channel_write(self, key: str, value: str) -> None:
        if key != self._channel_key or not value:
            return
        try:
            event = UpdateEvent.model_validate_json(value)
        except ValidationError as exc:
            logger.warning("Ignoring malformed cross-tab event: %s", exc)
            return
        if event.origin == self.tab_id:
            return
        logger.debug(
            "Cross-tab update received",
            extra={"event_name": event.event_name, "source_tag": event.source_tag},
        )
        self._dispatch(event)

    async def drain(self) -> None:
        """Wait for async handlers scheduled so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Detach from the channel and drop all subscriptions."""
        if self._unwatch is not None:
            self._unwatch()
            self._unwatch = None
        self._subscribers.clear()
