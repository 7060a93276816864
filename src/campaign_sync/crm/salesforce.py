"""Salesforce CRM adapter over the REST sObject API.

Uses the connection's ``instance_url`` and OAuth ``access_token``. Obtaining
and refreshing that token is outside this service, so authenticate and
refresh_token report NOT_SUPPORTED; every other capability works against a
token supplied in the connection credentials.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
import structlog

from src.campaign_sync.config import get_settings
from src.campaign_sync.crm.adapter import CRMAdapter, CRMAPIError
from src.campaign_sync.crm.field_mapping import (
    SALESFORCE_ACCOUNT_MAP,
    SALESFORCE_CAMPAIGN_MAP,
    SALESFORCE_CONTACT_MAP,
    SALESFORCE_OPPORTUNITY_MAP,
    SALESFORCE_SYSTEM_FIELDS,
    FieldMap,
    from_vendor_fields,
    to_vendor_fields,
)
from src.campaign_sync.crm.schemas import (
    AuthOutcome,
    CRMCampaign,
    CRMCompany,
    CRMConnection,
    CRMContact,
    CRMDeal,
    CustomFieldInfo,
)

logger = structlog.get_logger(__name__)


def _escape_soql(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


class SalesforceAdapter(CRMAdapter):
    """Salesforce org adapter.

    Args:
        connection: Connection with ``instance_url`` and ``access_token``.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        connection: CRMConnection,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(connection)
        settings = get_settings()
        credentials = connection.configuration.credentials

        self._base_url = (credentials.instance_url or "").rstrip("/")
        self._api_path = f"/services/data/{settings.SALESFORCE_API_VERSION}"
        self._timeout_mutate = settings.CRM_HTTP_TIMEOUT_MUTATE
        self._timeout_read = settings.CRM_HTTP_TIMEOUT_READ
        self._transport = transport
        self._headers = {
            "Authorization": f"Bearer {credentials.access_token or ''}",
            "Content-Type": "application/json",
        }

    def _client(self, timeout: float) -> httpx.AsyncClient:
        """Create a new httpx client with specified timeout."""
        return httpx.AsyncClient(
            headers=self._headers,
            timeout=timeout,
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        timeout = self._timeout_read if method == "GET" else self._timeout_mutate
        async with self._client(timeout) as client:
            response = await client.request(
                method, f"{self._base_url}{self._api_path}{endpoint}", json=json, params=params
            )
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise CRMAPIError.from_response("Salesforce", response) from exc
            # PATCH answers 204 No Content
            if response.status_code == 204 or not response.content:
                return {}
            return response.json()

    def _to_entity(self, record: dict[str, Any], field_map: FieldMap) -> dict[str, Any]:
        data = from_vendor_fields(record, field_map, exclude=SALESFORCE_SYSTEM_FIELDS)
        data["id"] = record.get("Id")
        return data

    async def _create(self, sobject: str, fields: dict[str, Any]) -> str:
        response = await self._request("POST", f"/sobjects/{sobject}", json=fields)
        record_id = response.get("id", "")
        logger.info("salesforce.record_created", sobject=sobject, record_id=record_id)
        return record_id

    async def _update(self, sobject: str, record_id: str, fields: dict[str, Any]) -> None:
        await self._request("PATCH", f"/sobjects/{sobject}/{record_id}", json=fields)
        logger.info(
            "salesforce.record_updated",
            sobject=sobject,
            record_id=record_id,
            fields=list(fields.keys()),
        )

    async def _get(self, sobject: str, record_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/sobjects/{sobject}/{record_id}")

    # ── Authentication ──────────────────────────────────────────────────

    async def authenticate(self) -> AuthOutcome:
        # OAuth handshake requires a browser redirect
        return AuthOutcome.NOT_SUPPORTED

    async def refresh_token(self) -> AuthOutcome:
        return AuthOutcome.NOT_SUPPORTED

    async def test_connection(self) -> bool:
        """Read org limits. Vendor errors raise CRMAPIError."""
        await self._request("GET", "/limits")
        return True

    # ── Contacts ────────────────────────────────────────────────────────

    async def create_contact(self, contact: CRMContact) -> CRMContact:
        contact_id = await self._create("Contact", to_vendor_fields(contact, SALESFORCE_CONTACT_MAP))
        return contact.model_copy(update={"id": contact_id})

    async def update_contact(self, contact_id: str, contact: CRMContact) -> CRMContact:
        await self._update("Contact", contact_id, to_vendor_fields(contact, SALESFORCE_CONTACT_MAP))
        return await self.get_contact(contact_id)

    async def get_contact(self, contact_id: str) -> CRMContact:
        record = await self._get("Contact", contact_id)
        return CRMContact(**self._to_entity(record, SALESFORCE_CONTACT_MAP))

    async def search_contacts(self, query: str) -> list[CRMContact]:
        needle = _escape_soql(query)
        soql = (
            "SELECT Id, Email, FirstName, LastName, Company, Phone FROM Contact "
            f"WHERE Email LIKE '%{needle}%' OR FirstName LIKE '%{needle}%' "
            f"OR LastName LIKE '%{needle}%'"
        )
        response = await self._request("GET", "/query", params={"q": soql})
        return [
            CRMContact(**self._to_entity(record, SALESFORCE_CONTACT_MAP))
            for record in response.get("records", [])
        ]

    # ── Deals (Opportunities) ───────────────────────────────────────────

    async def create_deal(self, deal: CRMDeal) -> CRMDeal:
        deal_id = await self._create("Opportunity", to_vendor_fields(deal, SALESFORCE_OPPORTUNITY_MAP))
        return deal.model_copy(update={"id": deal_id})

    async def update_deal(self, deal_id: str, deal: CRMDeal) -> CRMDeal:
        await self._update("Opportunity", deal_id, to_vendor_fields(deal, SALESFORCE_OPPORTUNITY_MAP))
        return await self.get_deal(deal_id)

    async def get_deal(self, deal_id: str) -> CRMDeal:
        record = await self._get("Opportunity", deal_id)
        return CRMDeal(**self._to_entity(record, SALESFORCE_OPPORTUNITY_MAP))

    # ── Companies (Accounts) ────────────────────────────────────────────

    async def create_company(self, company: CRMCompany) -> CRMCompany:
        company_id = await self._create("Account", to_vendor_fields(company, SALESFORCE_ACCOUNT_MAP))
        return company.model_copy(update={"id": company_id})

    async def update_company(self, company_id: str, company: CRMCompany) -> CRMCompany:
        await self._update("Account", company_id, to_vendor_fields(company, SALESFORCE_ACCOUNT_MAP))
        return await self.get_company(company_id)

    async def get_company(self, company_id: str) -> CRMCompany:
        record = await self._get("Account", company_id)
        return CRMCompany(**self._to_entity(record, SALESFORCE_ACCOUNT_MAP))

    # ── Campaigns ───────────────────────────────────────────────────────

    async def create_campaign(self, campaign: CRMCampaign) -> CRMCampaign:
        campaign_id = await self._create("Campaign", to_vendor_fields(campaign, SALESFORCE_CAMPAIGN_MAP))
        return campaign.model_copy(update={"id": campaign_id})

    async def update_campaign(self, campaign_id: str, campaign: CRMCampaign) -> CRMCampaign:
        await self._update("Campaign", campaign_id, to_vendor_fields(campaign, SALESFORCE_CAMPAIGN_MAP))
        return await self.get_campaign(campaign_id)

    async def get_campaign(self, campaign_id: str) -> CRMCampaign:
        record = await self._get("Campaign", campaign_id)
        return CRMCampaign(**self._to_entity(record, SALESFORCE_CAMPAIGN_MAP))

    # ── Schema ──────────────────────────────────────────────────────────

    async def get_custom_fields(self, object_type: str) -> dict[str, CustomFieldInfo]:
        """Describe an sObject and keep the fields flagged ``custom``."""
        response = await self._request("GET", f"/sobjects/{quote(object_type)}/describe")
        return {
            field["name"]: CustomFieldInfo(
                label=field.get("label", field["name"]),
                type=field.get("type", "unknown"),
                required=not field.get("nillable", True),
            )
            for field in response.get("fields", [])
            if field.get("custom")
        }
