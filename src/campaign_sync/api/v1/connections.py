"""REST API endpoints for CRM connection management.

Backs the connection list UI: register, inspect, edit, test, toggle and
delete connections. Credentials are write-only; responses list which
credential fields are set but never their values.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field

from src.campaign_sync.api.deps import get_connection_registry
from src.campaign_sync.crm.registry import ConnectionRegistry
from src.campaign_sync.crm.schemas import (
    ConnectionStatus,
    CRMConfiguration,
    CRMConnection,
    CRMCredentials,
    CRMFieldMapping,
    CRMProviderType,
    CRMSyncSettings,
    CRMWebhookConfig,
)

router = APIRouter(prefix="/crm/connections", tags=["crm"])


# ── Response Schemas ─────────────────────────────────────────────────────────


class ConnectionResponse(BaseModel):
    """Connection data with credentials redacted."""

    id: str
    provider: CRMProviderType
    name: str
    is_active: bool
    sync_status: ConnectionStatus
    error_message: str | None = None
    last_sync: datetime | None = None
    created_at: datetime
    updated_at: datetime
    credential_fields: list[str] = Field(default_factory=list)
    field_mappings: list[CRMFieldMapping] = Field(default_factory=list)
    sync_settings: CRMSyncSettings
    webhook_enabled: bool = False


# ── Request Schemas ──────────────────────────────────────────────────────────


class CreateConnectionRequest(BaseModel):
    """Request body for registering a connection."""

    provider: CRMProviderType
    name: str | None = None
    credentials: CRMCredentials = Field(default_factory=CRMCredentials)
    field_mappings: list[CRMFieldMapping] = Field(default_factory=list)
    sync_settings: CRMSyncSettings = Field(default_factory=CRMSyncSettings)
    webhook_config: CRMWebhookConfig | None = None


class UpdateConnectionRequest(BaseModel):
    """Request body for editing a connection (all fields optional)."""

    name: str | None = None
    is_active: bool | None = None
    credentials: CRMCredentials | None = None
    field_mappings: list[CRMFieldMapping] | None = None
    sync_settings: CRMSyncSettings | None = None
    webhook_config: CRMWebhookConfig | None = None


# ── Conversion Helpers ───────────────────────────────────────────────────────


def _connection_to_response(connection: CRMConnection) -> ConnectionResponse:
    configuration = connection.configuration
    credentials = configuration.credentials.model_dump(exclude_none=True)
    return ConnectionResponse(
        id=connection.id,
        provider=connection.provider,
        name=connection.name,
        is_active=connection.is_active,
        sync_status=connection.sync_status,
        error_message=connection.error_message,
        last_sync=connection.last_sync,
        created_at=connection.created_at,
        updated_at=connection.updated_at,
        credential_fields=sorted(credentials.keys()),
        field_mappings=configuration.field_mappings,
        sync_settings=configuration.sync_settings,
        webhook_enabled=bool(configuration.webhook_config and configuration.webhook_config.enabled),
    )


def _not_found(connection_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"CRM connection {connection_id} not found",
    )


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.get("", response_model=list[ConnectionResponse])
async def list_connections(
    registry: ConnectionRegistry = Depends(get_connection_registry),
) -> list[ConnectionResponse]:
    """List all connections in registration order."""
    return [_connection_to_response(c) for c in registry.get_connections()]


@router.post("", response_model=ConnectionResponse, status_code=status.HTTP_201_CREATED)
async def create_connection(
    body: CreateConnectionRequest,
    registry: ConnectionRegistry = Depends(get_connection_registry),
) -> ConnectionResponse:
    """Register a connection and test it.

    A failed connectivity test still registers the connection; the outcome
    is reported through ``sync_status`` and ``error_message``.
    """
    config = CRMConfiguration(
        provider=body.provider,
        credentials=body.credentials,
        field_mappings=body.field_mappings,
        sync_settings=body.sync_settings,
        webhook_config=body.webhook_config,
    )
    connection = await registry.add_connection(config, name=body.name)
    return _connection_to_response(connection)


@router.get("/active", response_model=ConnectionResponse | None)
async def get_active_connection(
    registry: ConnectionRegistry = Depends(get_connection_registry),
) -> ConnectionResponse | None:
    """The connection automatic sync would use, or null."""
    connection = registry.get_active_connection()
    return _connection_to_response(connection) if connection else None


@router.get("/{connection_id}", response_model=ConnectionResponse)
async def get_connection(
    connection_id: str,
    registry: ConnectionRegistry = Depends(get_connection_registry),
) -> ConnectionResponse:
    connection = registry.get_connection(connection_id)
    if connection is None:
        raise _not_found(connection_id)
    return _connection_to_response(connection)


@router.patch("/{connection_id}", response_model=ConnectionResponse)
async def update_connection(
    connection_id: str,
    body: UpdateConnectionRequest,
    registry: ConnectionRegistry = Depends(get_connection_registry),
) -> ConnectionResponse:
    """Apply a partial update. Configuration parts are replaced as a whole."""
    existing = registry.get_connection(connection_id)
    if existing is None:
        raise _not_found(connection_id)

    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    updates: dict[str, Any] = {
        key: changes.pop(key) for key in ("name", "is_active") if key in changes
    }
    if changes:
        configuration = existing.configuration.model_dump()
        configuration.update(changes)
        updates["configuration"] = configuration

    connection = await registry.update_connection(connection_id, updates)
    if connection is None:
        raise _not_found(connection_id)
    return _connection_to_response(connection)


@router.delete("/{connection_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_connection(
    connection_id: str,
    registry: ConnectionRegistry = Depends(get_connection_registry),
) -> Response:
    if not await registry.delete_connection(connection_id):
        raise _not_found(connection_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{connection_id}/test", response_model=ConnectionResponse)
async def test_connection(
    connection_id: str,
    registry: ConnectionRegistry = Depends(get_connection_registry),
) -> ConnectionResponse:
    """Re-run the connectivity test and record its outcome."""
    connection = await registry.test_connection(connection_id)
    if connection is None:
        raise _not_found(connection_id)
    return _connection_to_response(connection)


@router.post("/{connection_id}/toggle", response_model=ConnectionResponse)
async def toggle_connection(
    connection_id: str,
    registry: ConnectionRegistry = Depends(get_connection_registry),
) -> ConnectionResponse:
    connection = await registry.toggle_connection(connection_id)
    if connection is None:
        raise _not_found(connection_id)
    return _connection_to_response(connection)
