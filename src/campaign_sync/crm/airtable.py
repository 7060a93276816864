"""Airtable CRM adapter -- the fully implemented sync target.

Talks to the Airtable REST API (``/v0/{base_id}/{table}``) with the
connection's API key as bearer token. One base holds the Campaigns,
Contacts, Companies and Deals tables plus the Content Assets and
Competitor Analysis tables that campaign children are written to.

Key implementation details:
- New httpx.AsyncClient per call with separate mutate/read timeouts
- Non-2xx responses raise CRMAPIError; no retries here
- Field translation via field_mapping (custom fields passed through)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
import structlog

from src.campaign_sync.config import get_settings
from src.campaign_sync.crm.adapter import CRMAdapter, CRMAPIError
from src.campaign_sync.crm.field_mapping import (
    AIRTABLE_CAMPAIGN_MAP,
    AIRTABLE_COMPANY_MAP,
    AIRTABLE_CONTACT_MAP,
    AIRTABLE_DEAL_MAP,
    AIRTABLE_TABLES,
    competitor_analysis_to_airtable_fields,
    content_asset_to_airtable_fields,
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

if TYPE_CHECKING:
    from src.campaign_sync.autosync.schemas import (
        CompetitorAnalysisRecord,
        ContentAssetRecord,
    )

logger = structlog.get_logger(__name__)

_MAPS_BY_TABLE = {
    AIRTABLE_TABLES["campaign"]: AIRTABLE_CAMPAIGN_MAP,
    AIRTABLE_TABLES["contact"]: AIRTABLE_CONTACT_MAP,
    AIRTABLE_TABLES["company"]: AIRTABLE_COMPANY_MAP,
    AIRTABLE_TABLES["deal"]: AIRTABLE_DEAL_MAP,
}


def _escape_formula(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


class AirtableAdapter(CRMAdapter):
    """Airtable base adapter for CRM operations.

    Args:
        connection: Connection whose credentials carry ``api_key`` (or a
            personal access token in ``access_token``) and ``base_id``.
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

        self._api_key = credentials.api_key or credentials.access_token or ""
        self._base_id = credentials.base_id or credentials.domain or ""
        self._api_url = settings.AIRTABLE_API_URL.rstrip("/")
        self._timeout_mutate = settings.CRM_HTTP_TIMEOUT_MUTATE
        self._timeout_read = settings.CRM_HTTP_TIMEOUT_READ
        self._transport = transport
        self._headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _client(self, timeout: float) -> httpx.AsyncClient:
        """Create a new httpx client with specified timeout."""
        return httpx.AsyncClient(
            headers=self._headers,
            timeout=timeout,
            transport=self._transport,
        )

    def _table_url(self, table: str, record_id: str | None = None) -> str:
        url = f"{self._api_url}/v0/{self._base_id}/{quote(table)}"
        if record_id:
            url = f"{url}/{record_id}"
        return url

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        timeout = self._timeout_read if method == "GET" else self._timeout_mutate
        async with self._client(timeout) as client:
            response = await client.request(method, url, json=json, params=params)
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise CRMAPIError.from_response("Airtable", response) from exc
            return response.json()

    async def _create_record(self, table: str, fields: dict[str, Any]) -> dict[str, Any]:
        record = await self._request(
            "POST",
            self._table_url(table),
            json={"fields": fields, "typecast": True},
        )
        logger.info(
            "airtable.record_created",
            table=table,
            record_id=record.get("id"),
            base_id=self._base_id,
        )
        return record

    async def _update_record(
        self, table: str, record_id: str, fields: dict[str, Any]
    ) -> dict[str, Any]:
        record = await self._request(
            "PATCH",
            self._table_url(table, record_id),
            json={"fields": fields, "typecast": True},
        )
        logger.info(
            "airtable.record_updated",
            table=table,
            record_id=record_id,
            fields=list(fields.keys()),
        )
        return record

    async def _get_record(self, table: str, record_id: str) -> dict[str, Any]:
        return await self._request("GET", self._table_url(table, record_id))

    @staticmethod
    def _to_entity(record: dict[str, Any], field_map: dict[str, dict[str, str]]) -> dict[str, Any]:
        data = from_vendor_fields(record.get("fields", {}), field_map)
        data["id"] = record.get("id")
        return data

    # ── Authentication ──────────────────────────────────────────────────

    async def authenticate(self) -> AuthOutcome:
        """Validate the API key with a liveness call."""
        if not self._api_key or not self._base_id:
            return AuthOutcome.FAILED
        try:
            ok = await self.test_connection()
        except CRMAPIError as exc:
            logger.warning(
                "airtable.authentication_failed",
                base_id=self._base_id,
                status_code=exc.status_code,
            )
            return AuthOutcome.FAILED
        return AuthOutcome.AUTHENTICATED if ok else AuthOutcome.FAILED

    async def refresh_token(self) -> AuthOutcome:
        # API keys and personal access tokens do not expire through refresh.
        return AuthOutcome.NOT_SUPPORTED

    async def test_connection(self) -> bool:
        """List at most one campaign row. Vendor errors raise CRMAPIError."""
        await self._request(
            "GET",
            self._table_url(AIRTABLE_TABLES["campaign"]),
            params={"maxRecords": 1},
        )
        return True

    # ── Contacts ────────────────────────────────────────────────────────

    async def create_contact(self, contact: CRMContact) -> CRMContact:
        record = await self._create_record(
            AIRTABLE_TABLES["contact"], to_vendor_fields(contact, AIRTABLE_CONTACT_MAP)
        )
        return CRMContact(**self._to_entity(record, AIRTABLE_CONTACT_MAP))

    async def update_contact(self, contact_id: str, contact: CRMContact) -> CRMContact:
        record = await self._update_record(
            AIRTABLE_TABLES["contact"],
            contact_id,
            to_vendor_fields(contact, AIRTABLE_CONTACT_MAP),
        )
        return CRMContact(**self._to_entity(record, AIRTABLE_CONTACT_MAP))

    async def get_contact(self, contact_id: str) -> CRMContact:
        record = await self._get_record(AIRTABLE_TABLES["contact"], contact_id)
        return CRMContact(**self._to_entity(record, AIRTABLE_CONTACT_MAP))

    async def search_contacts(self, query: str) -> list[CRMContact]:
        """Case-insensitive substring match on email and names."""
        needle = _escape_formula(query.lower())
        clauses = [
            f'SEARCH("{needle}", LOWER({{{mapping["field"]}}}))'
            for key, mapping in AIRTABLE_CONTACT_MAP.items()
            if key in ("email", "first_name", "last_name")
        ]
        response = await self._request(
            "GET",
            self._table_url(AIRTABLE_TABLES["contact"]),
            params={"filterByFormula": f"OR({', '.join(clauses)})", "maxRecords": 100},
        )
        return [
            CRMContact(**self._to_entity(record, AIRTABLE_CONTACT_MAP))
            for record in response.get("records", [])
        ]

    # ── Deals ───────────────────────────────────────────────────────────

    async def create_deal(self, deal: CRMDeal) -> CRMDeal:
        record = await self._create_record(
            AIRTABLE_TABLES["deal"], to_vendor_fields(deal, AIRTABLE_DEAL_MAP)
        )
        return CRMDeal(**self._to_entity(record, AIRTABLE_DEAL_MAP))

    async def update_deal(self, deal_id: str, deal: CRMDeal) -> CRMDeal:
        record = await self._update_record(
            AIRTABLE_TABLES["deal"], deal_id, to_vendor_fields(deal, AIRTABLE_DEAL_MAP)
        )
        return CRMDeal(**self._to_entity(record, AIRTABLE_DEAL_MAP))

    async def get_deal(self, deal_id: str) -> CRMDeal:
        record = await self._get_record(AIRTABLE_TABLES["deal"], deal_id)
        return CRMDeal(**self._to_entity(record, AIRTABLE_DEAL_MAP))

    # ── Companies ───────────────────────────────────────────────────────

    async def create_company(self, company: CRMCompany) -> CRMCompany:
        record = await self._create_record(
            AIRTABLE_TABLES["company"], to_vendor_fields(company, AIRTABLE_COMPANY_MAP)
        )
        return CRMCompany(**self._to_entity(record, AIRTABLE_COMPANY_MAP))

    async def update_company(self, company_id: str, company: CRMCompany) -> CRMCompany:
        record = await self._update_record(
            AIRTABLE_TABLES["company"],
            company_id,
            to_vendor_fields(company, AIRTABLE_COMPANY_MAP),
        )
        return CRMCompany(**self._to_entity(record, AIRTABLE_COMPANY_MAP))

    async def get_company(self, company_id: str) -> CRMCompany:
        record = await self._get_record(AIRTABLE_TABLES["company"], company_id)
        return CRMCompany(**self._to_entity(record, AIRTABLE_COMPANY_MAP))

    # ── Campaigns ───────────────────────────────────────────────────────

    async def create_campaign(self, campaign: CRMCampaign) -> CRMCampaign:
        record = await self._create_record(
            AIRTABLE_TABLES["campaign"], to_vendor_fields(campaign, AIRTABLE_CAMPAIGN_MAP)
        )
        return CRMCampaign(**self._to_entity(record, AIRTABLE_CAMPAIGN_MAP))

    async def update_campaign(self, campaign_id: str, campaign: CRMCampaign) -> CRMCampaign:
        record = await self._update_record(
            AIRTABLE_TABLES["campaign"],
            campaign_id,
            to_vendor_fields(campaign, AIRTABLE_CAMPAIGN_MAP),
        )
        return CRMCampaign(**self._to_entity(record, AIRTABLE_CAMPAIGN_MAP))

    async def get_campaign(self, campaign_id: str) -> CRMCampaign:
        record = await self._get_record(AIRTABLE_TABLES["campaign"], campaign_id)
        return CRMCampaign(**self._to_entity(record, AIRTABLE_CAMPAIGN_MAP))

    # ── Schema ──────────────────────────────────────────────────────────

    async def get_custom_fields(self, object_type: str) -> dict[str, CustomFieldInfo]:
        """Fields of a table that are not part of the standard mapping.

        Args:
            object_type: Entity kind ("campaign", "contact", ...) or a raw
                table name.
        """
        table = AIRTABLE_TABLES.get(object_type, object_type)
        standard = {m["field"] for m in _MAPS_BY_TABLE.get(table, {}).values()}

        response = await self._request(
            "GET", f"{self._api_url}/v0/meta/bases/{self._base_id}/tables"
        )

        custom_fields: dict[str, CustomFieldInfo] = {}
        for table_info in response.get("tables", []):
            if table_info.get("name") != table:
                continue
            for field in table_info.get("fields", []):
                name = field.get("name", "")
                if not name or name in standard:
                    continue
                custom_fields[name] = CustomFieldInfo(
                    label=name,
                    type=field.get("type", "unknown"),
                    required=False,
                )
        return custom_fields

    # ── Campaign children ───────────────────────────────────────────────

    async def create_content_asset(self, asset: ContentAssetRecord) -> str:
        record = await self._create_record(
            AIRTABLE_TABLES["content_asset"], content_asset_to_airtable_fields(asset)
        )
        return record["id"]

    async def create_competitor_analysis(self, analysis: CompetitorAnalysisRecord) -> str:
        record = await self._create_record(
            AIRTABLE_TABLES["competitor_analysis"],
            competitor_analysis_to_airtable_fields(analysis),
        )
        return record["id"]
