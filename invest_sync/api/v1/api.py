"""
V1 API router aggregation.

All versioned endpoint routers are mounted here under a common prefix.
The top-level ``main.py`` mounts this router at ``/api/v1``.
"""

from fastapi import APIRouter

from invest_sync.api.v1.endpoints import collections, consistency, events, metrics

api_router = APIRouter()

api_router.include_router(collections.router, prefix="/collections", tags=["Collections"])
api_router.include_router(metrics.router, prefix="/metrics", tags=["Metrics"])
api_router.include_router(consistency.router, prefix="/consistency", tags=["Consistency"])
api_router.include_router(events.router, prefix="/events", tags=["Events"])
