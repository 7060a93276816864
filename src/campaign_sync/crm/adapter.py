"""CRM adapter abstract base class -- the capability set every CRM backend implements.

Every vendor (Airtable, Salesforce, and the placeholder for vendors not yet
built) implements this ABC against one bound CRMConnection. The sync
orchestrator depends only on this interface.

Adapters never retry: a failed vendor call raises CRMAPIError and the
orchestrator decides whether to try again.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import httpx

from src.campaign_sync.crm.schemas import (
    AuthOutcome,
    CRMCampaign,
    CRMCompany,
    CRMConnection,
    CRMContact,
    CRMDeal,
    CRMSyncError,
    CRMSyncResult,
    CustomFieldInfo,
    SyncOperation,
)

if TYPE_CHECKING:
    from src.campaign_sync.autosync.schemas import (
        CompetitorAnalysisRecord,
        ContentAssetRecord,
    )


class CRMError(Exception):
    """Base class for CRM adapter errors."""


class CRMAPIError(CRMError):
    """A vendor API call returned a non-success status."""

    def __init__(self, provider: str, status_code: int, message: str) -> None:
        self.provider = provider
        self.status_code = status_code
        self.message = message
        super().__init__(f"{provider} API error: {status_code} {message}")

    @classmethod
    def from_response(cls, provider: str, response: httpx.Response) -> CRMAPIError:
        """Build the error from a failed response, keeping the vendor's error body."""
        body = response.text.strip()
        reason = response.reason_phrase
        if reason and body:
            message = f"{reason}: {body}"
        else:
            message = reason or body or "Unknown error"
        return cls(provider, response.status_code, message)


class ProviderNotSupportedError(CRMError):
    """The provider, or this capability of it, is not implemented."""

    def __init__(self, provider: str, capability: str | None = None) -> None:
        self.provider = provider
        self.capability = capability
        detail = f" ({capability})" if capability else ""
        super().__init__(f"{provider} integration not implemented{detail}")


class CRMAdapter(ABC):
    """Abstract interface for CRM backend operations.

    Methods:
        authenticate / refresh_token: Vendor handshake, returns AuthOutcome.
        test_connection: Read-only liveness check.
        create/update/get for contacts, deals, companies and campaigns.
        search_contacts: Free-text contact search.
        get_custom_fields: Vendor schema introspection.
        batch_sync: Create-or-update a list of contacts, collecting errors.
        create_content_asset / create_competitor_analysis: Child records that
            hang off a campaign anchor. Optional; default raises
            ProviderNotSupportedError.
    """

    def __init__(self, connection: CRMConnection) -> None:
        self._connection = connection

    @property
    def connection(self) -> CRMConnection:
        return self._connection

    @property
    def provider(self) -> str:
        return self._connection.provider.value

    @property
    def supported(self) -> bool:
        """False for vendors whose integration is not built."""
        return True

    # ── Authentication ──────────────────────────────────────────────────

    @abstractmethod
    async def authenticate(self) -> AuthOutcome:
        ...

    @abstractmethod
    async def refresh_token(self) -> AuthOutcome:
        ...

    @abstractmethod
    async def test_connection(self) -> bool:
        """Return True if the vendor answered. Must not mutate remote state."""
        ...

    # ── Contacts ────────────────────────────────────────────────────────

    @abstractmethod
    async def create_contact(self, contact: CRMContact) -> CRMContact:
        ...

    @abstractmethod
    async def update_contact(self, contact_id: str, contact: CRMContact) -> CRMContact:
        ...

    @abstractmethod
    async def get_contact(self, contact_id: str) -> CRMContact:
        ...

    @abstractmethod
    async def search_contacts(self, query: str) -> list[CRMContact]:
        ...

    # ── Deals ───────────────────────────────────────────────────────────

    @abstractmethod
    async def create_deal(self, deal: CRMDeal) -> CRMDeal:
        ...

    @abstractmethod
    async def update_deal(self, deal_id: str, deal: CRMDeal) -> CRMDeal:
        ...

    @abstractmethod
    async def get_deal(self, deal_id: str) -> CRMDeal:
        ...

    # ── Companies ───────────────────────────────────────────────────────

    @abstractmethod
    async def create_company(self, company: CRMCompany) -> CRMCompany:
        ...

    @abstractmethod
    async def update_company(self, company_id: str, company: CRMCompany) -> CRMCompany:
        ...

    @abstractmethod
    async def get_company(self, company_id: str) -> CRMCompany:
        ...

    # ── Campaigns ───────────────────────────────────────────────────────

    @abstractmethod
    async def create_campaign(self, campaign: CRMCampaign) -> CRMCampaign:
        ...

    @abstractmethod
    async def update_campaign(self, campaign_id: str, campaign: CRMCampaign) -> CRMCampaign:
        ...

    @abstractmethod
    async def get_campaign(self, campaign_id: str) -> CRMCampaign:
        ...

    # ── Schema ──────────────────────────────────────────────────────────

    @abstractmethod
    async def get_custom_fields(self, object_type: str) -> dict[str, CustomFieldInfo]:
        ...

    # ── Campaign children ───────────────────────────────────────────────

    async def create_content_asset(self, asset: ContentAssetRecord) -> str:
        """Create a content asset record, return its CRM id."""
        raise ProviderNotSupportedError(self.provider, "content assets")

    async def create_competitor_analysis(self, analysis: CompetitorAnalysisRecord) -> str:
        """Create a competitor analysis record, return its CRM id."""
        raise ProviderNotSupportedError(self.provider, "competitor analysis")

    # ── Batch ───────────────────────────────────────────────────────────

    async def batch_sync(
        self,
        records: list[dict[str, Any]],
        operation: SyncOperation,
    ) -> CRMSyncResult:
        """Apply create or update to every contact record in order.

        A failing record is collected as a retryable error and processing
        continues with the next one. ``success`` is True only if no record
        failed.
        """
        start = time.monotonic()
        result = CRMSyncResult()

        for record in records:
            result.records_processed += 1
            try:
                contact = CRMContact.model_validate(record)
                if operation == SyncOperation.CREATE:
                    await self.create_contact(contact)
                    result.records_created += 1
                else:
                    if not contact.id:
                        raise ValueError("record has no id to update")
                    await self.update_contact(contact.id, contact)
                    result.records_updated += 1
            except Exception as exc:
                result.errors.append(
                    CRMSyncError(
                        record_id=str(record.get("id") or "unknown"),
                        error=str(exc),
                        retryable=True,
                    )
                )

        result.duration = int((time.monotonic() - start) * 1000)
        result.success = not result.errors
        return result
