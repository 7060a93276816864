"""Placeholder adapter for CRM vendors whose integration is not built yet.

``supported`` is False so callers can check up front. Handshake calls
return AuthOutcome.NOT_SUPPORTED, batch_sync returns a failed result with
non-retryable errors, and every record operation raises
ProviderNotSupportedError, which is distinct from a failed vendor request
(CRMAPIError).
"""

from __future__ import annotations

from typing import Any, NoReturn

from src.campaign_sync.crm.adapter import CRMAdapter, ProviderNotSupportedError
from src.campaign_sync.crm.schemas import (
    AuthOutcome,
    CRMCampaign,
    CRMCompany,
    CRMContact,
    CRMDeal,
    CRMSyncError,
    CRMSyncResult,
    CustomFieldInfo,
    SyncOperation,
)


class UnsupportedAdapter(CRMAdapter):
    """Adapter for HubSpot, Pipedrive, Zoho, Monday and custom webhooks."""

    @property
    def supported(self) -> bool:
        return False

    def _not_supported(self, capability: str) -> NoReturn:
        raise ProviderNotSupportedError(self.provider, capability)

    async def authenticate(self) -> AuthOutcome:
        return AuthOutcome.NOT_SUPPORTED

    async def refresh_token(self) -> AuthOutcome:
        return AuthOutcome.NOT_SUPPORTED

    async def test_connection(self) -> bool:
        self._not_supported("test_connection")

    async def create_contact(self, contact: CRMContact) -> CRMContact:
        self._not_supported("create_contact")

    async def update_contact(self, contact_id: str, contact: CRMContact) -> CRMContact:
        self._not_supported("update_contact")

    async def get_contact(self, contact_id: str) -> CRMContact:
        self._not_supported("get_contact")

    async def search_contacts(self, query: str) -> list[CRMContact]:
        self._not_supported("search_contacts")

    async def create_deal(self, deal: CRMDeal) -> CRMDeal:
        self._not_supported("create_deal")

    async def update_deal(self, deal_id: str, deal: CRMDeal) -> CRMDeal:
        self._not_supported("update_deal")

    async def get_deal(self, deal_id: str) -> CRMDeal:
        self._not_supported("get_deal")

    async def create_company(self, company: CRMCompany) -> CRMCompany:
        self._not_supported("create_company")

    async def update_company(self, company_id: str, company: CRMCompany) -> CRMCompany:
        self._not_supported("update_company")

    async def get_company(self, company_id: str) -> CRMCompany:
        self._not_supported("get_company")

    async def create_campaign(self, campaign: CRMCampaign) -> CRMCampaign:
        self._not_supported("create_campaign")

    async def update_campaign(self, campaign_id: str, campaign: CRMCampaign) -> CRMCampaign:
        self._not_supported("update_campaign")

    async def get_campaign(self, campaign_id: str) -> CRMCampaign:
        self._not_supported("get_campaign")

    async def get_custom_fields(self, object_type: str) -> dict[str, CustomFieldInfo]:
        self._not_supported("get_custom_fields")

    async def batch_sync(
        self,
        records: list[dict[str, Any]],
        operation: SyncOperation,
    ) -> CRMSyncResult:
        message = f"{self.provider} integration not implemented"
        return CRMSyncResult(
            success=False,
            records_skipped=len(records),
            errors=[
                CRMSyncError(
                    record_id=str(record.get("id") or "unknown"),
                    error=message,
                    retryable=False,
                )
                for record in records
            ],
        )
