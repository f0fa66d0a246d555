"""
Collection endpoints.

- POST  /collections/refresh            Force-refresh everything the polling role reads
- GET   /collections/{name}             Cached items plus loading/error/freshness
- POST  /collections/{name}/refresh     Staleness-gated (or forced) re-fetch
"""

from typing import Dict

from fastapi import APIRouter, Depends, Query

from invest_sync.api.deps import get_store, get_sync_service
from invest_sync.models import resolve_collection
from invest_sync.schemas.collections import CollectionResponse, RefreshResponse
from invest_sync.schemas.common import ErrorResponse
from invest_sync.services.sync_service import RefreshContext, SyncService
from invest_sync.store.entity_store import EntityStore

router = APIRouter()


@router.post(
    "/refresh",
    response_model=Dict[str, str],
    summary="Refresh the polling role's collections",
    description=(
        "Runs the same refresh as one auto-refresh tick for the configured "
        "REFRESH_ROLE and returns the outcome per collection.  Collections that "
        "fetched successfully are stored even when others fail."
    ),
    responses={503: {"model": ErrorResponse, "description": "Some collections failed"}},
)
async def refresh_for_role(sync: SyncService = Depends(get_sync_service)) -> Dict[str, str]:
    outcomes = await sync.refresh_for_role(RefreshContext.from_settings())
    return {name: outcome.value for name, outcome in outcomes.items()}


@router.get(
    "/{name}",
    response_model=CollectionResponse,
    summary="Read a cached collection",
    responses={404: {"model": ErrorResponse, "description": "Unknown collection"}},
)
async def get_collection(name: str, store: EntityStore = Depends(get_store)) -> CollectionResponse:
    key = resolve_collection(name)
    state = store.get_collection(key)
    return CollectionResponse(
        name=key.value,
        items=[item.model_dump(mode="json") for item in state["items"]],
        loading=state["loading"],
        error=state["error"],
        last_fetched_at=state["last_fetched_at"],
        stale=store.is_stale(key),
    )


@router.post(
    "/{name}/refresh",
    response_model=RefreshResponse,
    summary="Re-fetch a collection",
    description=(
        "Fetches the collection from the upstream API unless it is still fresh. "
        "``force=true`` always fetches.  A failed fetch keeps the previous items "
        "and reports the error."
    ),
    responses={404: {"model": ErrorResponse, "description": "Unknown collection"}},
)
async def refresh_collection(
    name: str,
    force: bool = Query(True, description="Fetch even when the cache is fresh"),
    sync: SyncService = Depends(get_sync_service),
) -> RefreshResponse:
    key = resolve_collection(name)
    outcome = await sync.refresh(key, force_refresh=force)
    return RefreshResponse(
        name=key.value,
        outcome=outcome.value,
        error=sync.store.get_collection(key)["error"],
    )
