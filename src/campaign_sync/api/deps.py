"""FastAPI dependencies for the sync services held on app.state.

The lifespan in main.py builds one set of services per process. Tests set
the same attributes on a bare app (or override these dependencies).
"""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from src.campaign_sync.autosync.service import CRMSyncService
from src.campaign_sync.core.storage import KeyValueStore
from src.campaign_sync.crm.registry import ConnectionRegistry


def get_connection_registry(request: Request) -> ConnectionRegistry:
    """Retrieve the ConnectionRegistry from app.state, 503 if not available."""
    registry = getattr(request.app.state, "connection_registry", None)
    if registry is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="CRM connection registry not initialized",
        )
    return registry


def get_sync_service(request: Request) -> CRMSyncService:
    """Retrieve the CRMSyncService from app.state, 503 if not available."""
    service = getattr(request.app.state, "sync_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="CRM sync service not initialized",
        )
    return service


def get_store(request: Request) -> KeyValueStore | None:
    return getattr(request.app.state, "store", None)
