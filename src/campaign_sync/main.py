"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, the v1
API router, and a lifespan that builds the sync services on startup.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response

from src.campaign_sync.api.middleware.logging import LoggingMiddleware
from src.campaign_sync.api.v1.router import router as v1_router
from src.campaign_sync.autosync.logs import SyncLog
from src.campaign_sync.autosync.schemas import LogLevel
from src.campaign_sync.autosync.service import CRMSyncService
from src.campaign_sync.autosync.settings_store import AutoSyncSettingsStore
from src.campaign_sync.config import get_settings
from src.campaign_sync.core.logging import configure_structlog
from src.campaign_sync.core.monitoring import MetricsMiddleware, get_metrics_response
from src.campaign_sync.core.storage import close_redis, create_store
from src.campaign_sync.crm.registry import ConnectionRegistry


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: build and load sync services, close Redis on shutdown."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()

    # A failure here leaves the services unset; endpoints answer 503.
    try:
        store = create_store(settings)
        sync_log = SyncLog(
            store,
            max_entries=settings.SYNC_LOG_MAX_ENTRIES,
            persisted_entries=settings.SYNC_LOG_PERSISTED_ENTRIES,
        )
        await sync_log.load()

        registry = ConnectionRegistry(store)
        await registry.load()

        settings_store = AutoSyncSettingsStore(store, sync_log)
        await settings_store.load()

        app.state.store = store
        app.state.sync_log = sync_log
        app.state.connection_registry = registry
        app.state.sync_service = CRMSyncService(registry, settings_store, sync_log)

        await sync_log.log(LogLevel.INFO, "CRM Sync Service initialized")
        log.info(
            "startup.sync_services_initialized",
            storage_backend=settings.STORAGE_BACKEND.value,
            connections=len(registry.get_connections()),
        )
    except Exception as exc:
        log.error("startup.sync_services_init_failed", error=str(exc))
        app.state.store = None
        app.state.connection_registry = None
        app.state.sync_service = None

    yield

    await close_redis()
    log.info("shutdown.complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Campaign CRM Sync API",
        version="0.1.0",
        description="Syncs generated marketing campaigns into CRM systems",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
