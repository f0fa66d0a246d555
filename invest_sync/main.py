"""
Invest Sync Analytics API: application entry-point.

Initializes the FastAPI application, registers middleware, exception handlers
and routers, and manages the lifecycle of the entity store, the update bus,
the upstream client and the polling fallback.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from invest_sync.api.v1.api import api_router
from invest_sync.clients.api_client import UpstreamApiClient
from invest_sync.core.config import settings
from invest_sync.core.exceptions import add_exception_handlers
from invest_sync.core.logging import setup_logging
from invest_sync.core.resilience import upstream_circuit_breaker
from invest_sync.events.auto_refresh import AutoRefresh
from invest_sync.events.bus import EventBus
from invest_sync.events.channel import InMemoryChannel
from invest_sync.middleware import RequestIDMiddleware, RequestTimingMiddleware
from invest_sync.services.sync_service import RefreshContext, SyncService
from invest_sync.store.entity_store import EntityStore

# ── Initialise production logging (rotating files + JSON structured) ──
setup_logging()
logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────────────────────
# Application lifespan
# ────────────────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup:
      - Builds the store, the cross-tab channel and this process's bus.
      - Wires the sync service to the upstream client and the bus.
      - Starts the polling fallback for the configured role, if enabled.

    Shutdown:
      - Stops polling, cancels pending debounced publishes, detaches the bus
        and closes the upstream HTTP client.
    """
    store = EntityStore(max_age=settings.CACHE_MAX_AGE)
    channel = InMemoryChannel()
    bus = EventBus(channel=channel)
    client = UpstreamApiClient()
    sync = SyncService(store, client)
    sync.bind(bus, debounce_delay=settings.DEBOUNCE_DELAY)

    context = RefreshContext.from_settings(settings)
    auto_refresh = AutoRefresh(
        lambda: sync.refresh_for_role(context),
        interval=settings.AUTO_REFRESH_INTERVAL,
        max_retries=settings.AUTO_REFRESH_MAX_RETRIES,
        name=f"auto-refresh[{context.role}]",
    )

    app.state.store = store
    app.state.channel = channel
    app.state.bus = bus
    app.state.client = client
    app.state.sync = sync
    app.state.auto_refresh = auto_refresh

    if settings.AUTO_REFRESH_ENABLED:
        auto_refresh.start(immediate=True)
    else:
        logger.info("Auto-refresh disabled; collections load on demand")

    yield

    logger.info("Shutting down: stopping auto-refresh, closing upstream client")
    await auto_refresh.shutdown()
    sync.unbind()
    bus.close()
    await client.aclose()


# ────────────────────────────────────────────────────────────────────────────
# FastAPI application instance
# ────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description=(
        "Cached investment data with derived metrics, consistency diagnostics "
        "and cross-view update propagation."
    ),
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

# ── Middleware (order matters: outermost = first to execute) ──
app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Global error handlers ──
add_exception_handlers(app)

# ── API routers ──
app.include_router(api_router, prefix=settings.API_V1_STR)


# ── Health check ──


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Liveness / readiness probe.

    Reports per-collection cache state, the polling fallback and the upstream
    circuit breaker.  ``degraded`` when any collection carries a fetch error
    or the breaker is not closed; cached data is still served either way.
    """
    collections = request.app.state.store.get_stats()
    breaker = upstream_circuit_breaker.get_status()
    degraded = breaker["state"] != "closed" or any(
        stats["error"] for stats in collections.values()
    )
    return {
        "status": "degraded" if degraded else "ok",
        "version": "1.0.0",
        "collections": collections,
        "auto_refresh": request.app.state.auto_refresh.get_status(),
        "circuit_breaker": breaker,
    }
