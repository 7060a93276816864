"""Pydantic schemas for CRM connections, canonical entities and sync results.

Defines:
- Enums: CRMProviderType, ConnectionStatus, ConflictResolution, FieldDirection,
  SyncOperation, AuthOutcome
- Connection configuration: CRMCredentials, CRMFieldMapping, CRMSyncSettings,
  CRMWebhookConfig, CRMConfiguration, CRMConnection
- Canonical CRM entities: CRMContact, CRMDeal, CRMCompany, CRMCampaign,
  CustomFieldInfo
- Batch outcomes: CRMSyncError, CRMSyncResult
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ── Enums ───────────────────────────────────────────────────────────────────


class CRMProviderType(str, Enum):
    """CRM vendors a connection can point at."""

    SALESFORCE = "salesforce"
    HUBSPOT = "hubspot"
    PIPEDRIVE = "pipedrive"
    ZOHO = "zoho"
    MONDAY = "monday"
    AIRTABLE = "airtable"
    CUSTOM_WEBHOOK = "custom_webhook"


class ConnectionStatus(str, Enum):
    """Health of a connection as last observed."""

    CONNECTED = "connected"
    ERROR = "error"
    SYNCING = "syncing"
    DISCONNECTED = "disconnected"


class ConflictResolution(str, Enum):
    """Rule for reconciling divergent local/remote state (stored, not enforced)."""

    CRM_WINS = "crm_wins"
    ZENITH_WINS = "zenith_wins"
    NEWEST_WINS = "newest_wins"
    MANUAL_REVIEW = "manual_review"


class FieldDirection(str, Enum):
    BIDIRECTIONAL = "bidirectional"
    TO_CRM = "to_crm"
    FROM_CRM = "from_crm"


class SyncOperation(str, Enum):
    CREATE = "create"
    UPDATE = "update"


class AuthOutcome(str, Enum):
    """Result of an authenticate/refresh call.

    NOT_SUPPORTED means the vendor (or the flow) is not built, which callers
    must be able to tell apart from a failed request.
    """

    AUTHENTICATED = "authenticated"
    FAILED = "failed"
    NOT_SUPPORTED = "not_supported"


# ── Connection Configuration ────────────────────────────────────────────────


class CRMCredentials(BaseModel):
    """Provider-specific credential bundle. Unused fields stay None."""

    access_token: str | None = None
    refresh_token: str | None = None
    api_key: str | None = None
    domain: str | None = None
    user_id: str | None = None
    instance_url: str | None = None
    base_id: str | None = None


class CRMFieldMapping(BaseModel):
    """Maps one local field onto one CRM field."""

    source_field: str
    crm_field: str
    direction: FieldDirection = FieldDirection.TO_CRM
    required: bool = False


class CRMSyncSettings(BaseModel):
    """Per-connection sync settings.

    retry_attempts >= 0, batch_size >= 1 and sync_interval >= 1 are advisory
    and not validated here.
    """

    auto_sync: bool = True
    sync_interval: int = 60  # minutes
    sync_on_create: bool = True
    sync_on_update: bool = False
    conflict_resolution: ConflictResolution = ConflictResolution.NEWEST_WINS
    batch_size: int = 10
    retry_attempts: int = 3


class CRMWebhookConfig(BaseModel):
    enabled: bool = False
    url: str = ""
    secret: str = ""
    events: list[str] = Field(default_factory=list)


class CRMConfiguration(BaseModel):
    """Everything needed to talk to one CRM account."""

    provider: CRMProviderType
    credentials: CRMCredentials = Field(default_factory=CRMCredentials)
    field_mappings: list[CRMFieldMapping] = Field(default_factory=list)
    sync_settings: CRMSyncSettings = Field(default_factory=CRMSyncSettings)
    webhook_config: CRMWebhookConfig | None = None


class CRMConnection(BaseModel):
    """One configured link to a CRM vendor."""

    id: str
    provider: CRMProviderType
    name: str
    configuration: CRMConfiguration
    is_active: bool = False
    last_sync: datetime | None = None
    sync_status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    error_message: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_usable(self) -> bool:
        """True if this connection qualifies for automatic sync."""
        return self.is_active and self.sync_status == ConnectionStatus.CONNECTED


# ── Canonical CRM Entities ──────────────────────────────────────────────────


class CRMContact(BaseModel):
    id: str | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    company: str | None = None
    phone: str | None = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)


class CRMDeal(BaseModel):
    id: str | None = None
    name: str | None = None
    amount: float | None = None
    stage: str | None = None
    close_date: date | None = None
    contact_id: str | None = None
    company_id: str | None = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)


class CRMCompany(BaseModel):
    id: str | None = None
    name: str | None = None
    domain: str | None = None
    industry: str | None = None
    size: str | None = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)


class CRMCampaign(BaseModel):
    id: str | None = None
    name: str | None = None
    type: str | None = None
    status: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    budget: float | None = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)


class CustomFieldInfo(BaseModel):
    """Description of one vendor custom/extension field."""

    label: str
    type: str
    required: bool = False


# ── Sync Outcomes ───────────────────────────────────────────────────────────


class CRMSyncError(BaseModel):
    """One failed record within a sync operation."""

    record_id: str
    error: str
    field: str | None = None
    retryable: bool = True


class CRMSyncResult(BaseModel):
    """Summary of an adapter batch operation."""

    success: bool = True
    records_processed: int = 0
    records_created: int = 0
    records_updated: int = 0
    records_skipped: int = 0
    errors: list[CRMSyncError] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    duration: int = 0  # milliseconds
