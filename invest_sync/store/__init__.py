"""Entity cache store and staleness-gated fetch orchestration."""

from invest_sync.store.entity_store import CollectionState, EntityStore  # noqa: F401
from invest_sync.store.fetch import FetchOrchestrator, FetchOutcome  # noqa: F401
from invest_sync.store.staleness import is_stale  # noqa: F401
