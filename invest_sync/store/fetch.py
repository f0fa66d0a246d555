"""
Staleness-gated fetch orchestration.

``ensure_fresh`` skips the network entirely while a collection is fresh,
unless the caller forces a refresh.  Failures never propagate: they are
recorded as the collection's ``error`` and the previous items stay in place.

Concurrent calls for the same collection are allowed.  Each completed fetch
overwrites the collection in full, so the last one to finish wins; the
``loading`` flag stays up until every in-flight call has finished.
"""

import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from invest_sync.core.exceptions import error_message
from invest_sync.models import CollectionName, resolve_collection
from invest_sync.store.entity_store import EntityStore

logger = logging.getLogger(__name__)

FetchFn = Callable[[], Awaitable[Iterable[Any]]]


class FetchOutcome(str, Enum):
    SKIPPED = "skipped"
    FETCHED = "fetched"
    FAILED = "failed"


class FetchOrchestrator:
    """Runs fetch collaborators against an :class:`EntityStore`."""

    def __init__(self, store: EntityStore, max_age: Optional[float] = None):
        self.store = store
        self._max_age = max_age
        self._in_flight: Dict[CollectionName, int] = {}

    def in_flight(self, name: Any) -> int:
        return self._in_flight.get(resolve_collection(name), 0)

    async def ensure_fresh(
        self,
        name: Any,
        fetch_fn: FetchFn,
        force_refresh: bool = False,
    ) -> FetchOutcome:
        """
        Fetch ``name`` through ``fetch_fn`` unless it is fresh.

        Returns :attr:`FetchOutcome.SKIPPED` without calling ``fetch_fn`` when
        the cache is fresh and ``force_refresh`` is False.
        """
        key = resolve_collection(name)
        if not force_refresh and not self.store.is_stale(key, self._max_age):
            logger.debug("Fresh, fetch skipped", extra={"collection": key.value})
            return FetchOutcome.SKIPPED

        self._in_flight[key] = self._in_flight.get(key, 0) + 1
        self.store.set_loading(key, True)
        start = time.perf_counter()
        try:
            items = await fetch_fn()
            if items is None:
                raise ValueError(f"Fetch for {key.value} returned no data")
            self.store.set_collection(key, items)
        except Exception as exc:
            message = error_message(exc, default=f"Failed to fetch {key.value}")
            self.store.set_error(key, message)
            logger.warning(
                "Fetch failed: %s",
                message,
                extra={"collection": key.value, "outcome": FetchOutcome.FAILED.value},
            )
            return FetchOutcome.FAILED
        finally:
            self._in_flight[key] -= 1
            if self._in_flight[key] == 0:
                self.store.set_loading(key, False)

        logger.info(
            "Fetched %d items",
            len(self.store.items(key)),
            extra={
                "collection": key.value,
                "outcome": FetchOutcome.FETCHED.value,
                "elapsed_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return FetchOutcome.FETCHED
