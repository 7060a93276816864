"""REST API endpoints for campaign sync, auto-sync configuration and logs.

Sync endpoints always answer 200 with an AutoSyncResult; callers branch on
``success`` rather than on the status code.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field

from src.campaign_sync.api.deps import get_sync_service
from src.campaign_sync.autosync.schemas import (
    AutoSyncConfig,
    AutoSyncResult,
    CampaignResult,
    GenerationSettings,
    HealthReport,
    SavedCampaign,
    SyncLogEntry,
    SyncMetadata,
)
from src.campaign_sync.autosync.service import CRMSyncService

router = APIRouter(prefix="/sync", tags=["sync"])


# ── Request Schemas ──────────────────────────────────────────────────────────


class SyncCampaignRequest(BaseModel):
    """A generated campaign to push to the active CRM."""

    campaign_result: CampaignResult
    product_description: str
    settings: GenerationSettings = Field(default_factory=GenerationSettings)
    metadata: SyncMetadata | None = None


class UpdateSyncConfigRequest(BaseModel):
    """Partial auto-sync configuration update."""

    enabled: bool | None = None
    sync_on_generation: bool | None = None
    sync_on_update: bool | None = None
    include_content_assets: bool | None = None
    include_competitor_analysis: bool | None = None
    include_analytics: bool | None = None
    retry_attempts: int | None = Field(default=None, ge=0)
    retry_delay: int | None = Field(default=None, ge=0)
    batch_size: int | None = Field(default=None, ge=1)


# ── Sync ─────────────────────────────────────────────────────────────────────


@router.post("/campaigns", response_model=AutoSyncResult)
async def sync_campaign(
    body: SyncCampaignRequest,
    service: CRMSyncService = Depends(get_sync_service),
) -> AutoSyncResult:
    """Automatic sync, subject to the auto-sync configuration."""
    return await service.handle_automatic_crm_sync(
        body.campaign_result,
        body.product_description,
        body.settings,
        body.metadata,
    )


@router.post("/campaigns/manual", response_model=AutoSyncResult)
async def sync_campaign_manually(
    body: SyncCampaignRequest,
    service: CRMSyncService = Depends(get_sync_service),
) -> AutoSyncResult:
    """Sync even when generation-triggered sync is switched off."""
    return await service.trigger_manual_sync(
        body.campaign_result,
        body.product_description,
        body.settings,
    )


@router.post("/campaigns/update", response_model=AutoSyncResult)
async def sync_campaign_update(
    body: SavedCampaign,
    service: CRMSyncService = Depends(get_sync_service),
) -> AutoSyncResult:
    return await service.handle_campaign_update(body)


# ── Configuration ────────────────────────────────────────────────────────────


@router.get("/config", response_model=AutoSyncConfig)
async def get_sync_config(
    service: CRMSyncService = Depends(get_sync_service),
) -> AutoSyncConfig:
    return service.get_sync_config()


@router.patch("/config", response_model=AutoSyncConfig)
async def update_sync_config(
    body: UpdateSyncConfigRequest,
    service: CRMSyncService = Depends(get_sync_service),
) -> AutoSyncConfig:
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    try:
        return await service.update_sync_config(**changes)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc


@router.post("/config/reset", response_model=AutoSyncConfig)
async def reset_sync_config(
    service: CRMSyncService = Depends(get_sync_service),
) -> AutoSyncConfig:
    return await service.reset_sync_config()


# ── Logs & Health ────────────────────────────────────────────────────────────


@router.get("/logs", response_model=list[SyncLogEntry])
async def get_sync_logs(
    limit: int | None = Query(default=None, ge=1),
    service: CRMSyncService = Depends(get_sync_service),
) -> list[SyncLogEntry]:
    """Sync log entries, newest first."""
    return service.get_logs(limit)


@router.delete("/logs", status_code=status.HTTP_204_NO_CONTENT)
async def clear_sync_logs(
    service: CRMSyncService = Depends(get_sync_service),
) -> Response:
    await service.clear_logs()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/health", response_model=HealthReport)
async def sync_health(
    service: CRMSyncService = Depends(get_sync_service),
) -> HealthReport:
    """Diagnostic summary of configuration, connection and recent errors."""
    return await service.perform_health_check()
