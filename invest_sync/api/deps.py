"""
Request-scoped access to the long-lived objects built in the lifespan.

The store, bus and sync service live on ``app.state``; endpoints reach them
through these dependencies so tests can install their own instances (or
use ``dependency_overrides``).
"""

from fastapi import Request

from invest_sync.events.bus import EventBus
from invest_sync.events.debounce import DebouncedPublisher
from invest_sync.models import Snapshot
from invest_sync.services.sync_service import SyncService
from invest_sync.store.entity_store import EntityStore


def get_store(request: Request) -> EntityStore:
    return request.app.state.store


def get_snapshot(request: Request) -> Snapshot:
    """The store's current snapshot; every calculation runs on a fresh one."""
    return get_store(request).snapshot()


def get_sync_service(request: Request) -> SyncService:
    return request.app.state.sync


def get_bus(request: Request) -> EventBus:
    return request.app.state.bus


def get_publisher(request: Request) -> DebouncedPublisher:
    sync: SyncService = request.app.state.sync
    if sync.publisher is None:
        sync.bind(get_bus(request))
    return sync.publisher
