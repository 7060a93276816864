"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready). Readiness reads
from the key-value store, which for the Redis backend verifies connectivity.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from src.campaign_sync.api.deps import get_store
from src.campaign_sync.config import get_settings
from src.campaign_sync.core.storage import CONNECTIONS_KEY, KeyValueStore

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check. No dependencies are checked."""
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


@router.get("/health/ready")
async def readiness_check(store: KeyValueStore | None = Depends(get_store)):
    """Readiness check: the store must be initialized and readable.

    Returns 200 if it is, 503 otherwise.
    """
    checks: dict = {"storage": "ok", "backend": get_settings().STORAGE_BACKEND.value}

    if store is None:
        checks["storage"] = "error"
        checks["storage_error"] = "not initialized"
    else:
        try:
            await store.get(CONNECTIONS_KEY)
        except Exception as e:
            checks["storage"] = "error"
            checks["storage_error"] = str(e)

    healthy = checks["storage"] == "ok"
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if healthy else "degraded", "checks": checks},
    )
