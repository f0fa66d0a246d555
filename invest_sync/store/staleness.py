"""Staleness policy for cached collections."""

from typing import Optional

from invest_sync.core.config import settings

DEFAULT_MAX_AGE = settings.CACHE_MAX_AGE


def is_stale(last_fetched_at: Optional[float], now: float, max_age: float = DEFAULT_MAX_AGE) -> bool:
    """
    Return True when a collection must be re-fetched before use.

    A collection that was never fetched (``last_fetched_at is None``) is
    always stale; otherwise it is stale once strictly more than ``max_age``
    seconds have passed.
    """
    if last_fetched_at is None:
        return True
    return (now - last_fetched_at) > max_age
