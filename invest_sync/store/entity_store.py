"""
Entity cache store.

Holds the last-fetched contents of every domain collection together with its
own loading flag, error message and fetch timestamp.  Collections are
independent: a failing or loading collection never blocks another.

All mutation goes through the methods below.  Items are frozen pydantic
models and every write replaces the collection's list, so a
:class:`Snapshot` taken earlier is never affected by later writes.

Change listeners registered with :meth:`EntityStore.on_change` run
synchronously after each mutation, in the same event-loop turn.
"""

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from invest_sync.core.config import settings
from invest_sync.models import CollectionName, Entity, Snapshot, normalize, resolve_collection
from invest_sync.models.investment import Investment
from invest_sync.store.staleness import is_stale

logger = logging.getLogger(__name__)

ChangeListener = Callable[[CollectionName], None]


class CollectionState:
    """Cached items of one collection plus its loading/error/freshness state."""

    __slots__ = ("items", "loading", "error", "last_fetched_at")

    def __init__(self) -> None:
        self.items: List[Entity] = []
        self.loading = False
        self.error: Optional[str] = None
        self.last_fetched_at: Optional[float] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "items": list(self.items),
            "loading": self.loading,
            "error": self.error,
            "last_fetched_at": self.last_fetched_at,
        }


class EntityStore:
    """
    Single owner of the cached snapshot.

    Parameters
    ----------
    max_age : float
        Default cache duration in seconds used by :meth:`is_stale`.
    clock : callable
        Wall-clock source returning epoch seconds; injectable for tests.
    """

    def __init__(
        self,
        max_age: float = settings.CACHE_MAX_AGE,
        clock: Callable[[], float] = time.time,
    ):
        self._max_age = max_age
        self._clock = clock
        self._collections: Dict[CollectionName, CollectionState] = {
            name: CollectionState() for name in CollectionName
        }
        self._listeners: List[ChangeListener] = []

    # ── Reads ──

    def _state(self, name: Any) -> CollectionState:
        return self._collections[resolve_collection(name)]

    def get_collection(self, name: Any) -> Dict[str, Any]:
        """Return ``{items, loading, error, last_fetched_at}`` for ``name``."""
        return self._state(name).as_dict()

    def items(self, name: Any) -> List[Entity]:
        return list(self._state(name).items)

    def is_stale(self, name: Any, max_age: Optional[float] = None) -> bool:
        """True if ``name`` was never fetched or is older than ``max_age`` seconds."""
        age = self._max_age if max_age is None else max_age
        return is_stale(self._state(name).last_fetched_at, self._clock(), age)

    def snapshot(self) -> Snapshot:
        """Immutable view of all collections as they are right now."""
        return Snapshot(
            **{name.value: list(state.items) for name, state in self._collections.items()}
        )

    # ── Writes ──

    def set_collection(self, name: Any, items: Iterable[Any]) -> None:
        """
        Replace the whole collection, clear its error and stamp the fetch time.

        Raw dicts are validated into the collection's entity model first; a
        ``pydantic.ValidationError`` leaves the previous contents untouched.
        """
        key = resolve_collection(name)
        normalized = normalize(key, items)
        state = self._collections[key]
        state.items = normalized
        state.error = None
        state.last_fetched_at = self._clock()
        logger.debug(
            "Collection replaced (%d items)", len(normalized), extra={"collection": key.value}
        )
        self._notify(key)

    def set_loading(self, name: Any, loading: bool) -> None:
        key = resolve_collection(name)
        self._collections[key].loading = loading
        self._notify(key)

    def set_error(self, name: Any, message: Optional[str]) -> None:
        key = resolve_collection(name)
        self._collections[key].error = message
        self._notify(key)

    def clear_error(self, name: Any) -> None:
        self.set_error(name, None)

    def clear_all_errors(self) -> None:
        for key, state in self._collections.items():
            if state.error is not None:
                state.error = None
                self._notify(key)

    def upsert_one(self, name: Any, item: Any) -> Entity:
        """
        Insert or replace a single entity by id.

        Used right after a successful create/update so consumers see the
        change before the next full fetch.  Does not touch ``last_fetched_at``.
        """
        key = resolve_collection(name)
        (entity,) = normalize(key, [item])
        state = self._collections[key]
        items = list(state.items)
        for index, existing in enumerate(items):
            if existing.id == entity.id:
                items[index] = entity
                break
        else:
            items.append(entity)
        state.items = items
        self._notify(key)
        return entity

    def remove_one(self, name: Any, entity_id: Any) -> bool:
        """Drop the entity with ``entity_id``; returns False when it was not cached."""
        key = resolve_collection(name)
        state = self._collections[key]
        remaining = [item for item in state.items if item.id != str(entity_id)]
        if len(remaining) == len(state.items):
            return False
        state.items = remaining
        self._notify(key)
        return True

    def invalidate(self, name: Any) -> None:
        """Forget the fetch time so the next staleness check re-fetches."""
        key = resolve_collection(name)
        self._collections[key].last_fetched_at = None
        logger.debug("Collection invalidated", extra={"collection": key.value})

    def apply_reconciled(self, snapshot: Snapshot) -> None:
        """
        Adopt the recomputed investment rows of a reconciled snapshot.

        Fetch timestamps are kept: the rewrite is local and the next fetch
        from the server overwrites it.
        """
        state = self._collections[CollectionName.INVESTMENTS]
        state.items = [inv for inv in snapshot.investments if isinstance(inv, Investment)]
        self._notify(CollectionName.INVESTMENTS)

    # ── Change notification ──

    def on_change(self, listener: ChangeListener) -> Callable[[], None]:
        """Register ``listener(collection_name)``; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, name: CollectionName) -> None:
        for listener in list(self._listeners):
            try:
                listener(name)
            except Exception:
                logger.exception("Store listener failed", extra={"collection": name.value})

    # ── Monitoring ──

    def get_stats(self) -> Dict[str, Dict[str, Any]]:
        """Per-collection size, freshness and error for health endpoints."""
        now = self._clock()
        return {
            name.value: {
                "size": len(state.items),
                "loading": state.loading,
                "error": state.error,
                "stale": is_stale(state.last_fetched_at, now, self._max_age),
                "age_seconds": (
                    round(now - state.last_fetched_at, 3)
                    if state.last_fetched_at is not None
                    else None
                ),
            }
            for name, state in self._collections.items()
        }
