"""Shared fixtures for CRM sync tests.

Provides:
- FakeAdapter: in-memory CRMAdapter that records calls and fails on demand
- FakeAdapterFactory: adapter factory handing out FakeAdapters
- In-memory store, sync log, settings store, registry and sync service
- An Airtable connection registered through the fake factory (active)

No network calls: vendor HTTP is only exercised through httpx.MockTransport
in the adapter tests.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from src.campaign_sync.autosync.logs import SyncLog
from src.campaign_sync.autosync.service import CRMSyncService
from src.campaign_sync.autosync.settings_store import AutoSyncSettingsStore
from src.campaign_sync.core.storage import InMemoryKeyValueStore
from src.campaign_sync.crm.adapter import CRMAdapter, CRMAPIError
from src.campaign_sync.crm.registry import ConnectionRegistry
from src.campaign_sync.crm.schemas import (
    AuthOutcome,
    CRMCampaign,
    CRMCompany,
    CRMConfiguration,
    CRMConnection,
    CRMContact,
    CRMCredentials,
    CRMDeal,
    CRMProviderType,
    CustomFieldInfo,
)


# ── Test Doubles ─────────────────────────────────────────────────────────────


class FakeAdapter(CRMAdapter):
    """In-memory adapter recording every call.

    Failure knobs:
        campaign_failures: number of leading create_campaign calls that fail.
        asset_failures: 0-based create_content_asset call indexes that fail.
        analysis_failures: competitor names whose analysis write fails.
    """

    def __init__(
        self,
        connection: CRMConnection,
        test_result: bool = True,
        test_error: Exception | None = None,
    ) -> None:
        super().__init__(connection)
        self.calls: list[str] = []
        self.test_result = test_result
        self.test_error = test_error
        self.campaign_failures = 0
        self.asset_failures: set[int] = set()
        self.analysis_failures: set[str] = set()
        self.campaigns: list[CRMCampaign] = []
        self.assets: list[Any] = []
        self.analyses: list[Any] = []
        self._asset_attempts = 0

    async def authenticate(self) -> AuthOutcome:
        self.calls.append("authenticate")
        return AuthOutcome.AUTHENTICATED

    async def refresh_token(self) -> AuthOutcome:
        self.calls.append("refresh_token")
        return AuthOutcome.NOT_SUPPORTED

    async def test_connection(self) -> bool:
        self.calls.append("test_connection")
        if self.test_error is not None:
            raise self.test_error
        return self.test_result

    async def create_contact(self, contact: CRMContact) -> CRMContact:
        self.calls.append("create_contact")
        return contact.model_copy(update={"id": "rec_contact"})

    async def update_contact(self, contact_id: str, contact: CRMContact) -> CRMContact:
        self.calls.append("update_contact")
        return contact.model_copy(update={"id": contact_id})

    async def get_contact(self, contact_id: str) -> CRMContact:
        self.calls.append("get_contact")
        return CRMContact(id=contact_id)

    async def search_contacts(self, query: str) -> list[CRMContact]:
        self.calls.append("search_contacts")
        return []

    async def create_deal(self, deal: CRMDeal) -> CRMDeal:
        self.calls.append("create_deal")
        return deal.model_copy(update={"id": "rec_deal"})

    async def update_deal(self, deal_id: str, deal: CRMDeal) -> CRMDeal:
        self.calls.append("update_deal")
        return deal.model_copy(update={"id": deal_id})

    async def get_deal(self, deal_id: str) -> CRMDeal:
        self.calls.append("get_deal")
        return CRMDeal(id=deal_id)

    async def create_company(self, company: CRMCompany) -> CRMCompany:
        self.calls.append("create_company")
        return company.model_copy(update={"id": "rec_company"})

    async def update_company(self, company_id: str, company: CRMCompany) -> CRMCompany:
        self.calls.append("update_company")
        return company.model_copy(update={"id": company_id})

    async def get_company(self, company_id: str) -> CRMCompany:
        self.calls.append("get_company")
        return CRMCompany(id=company_id)

    async def create_campaign(self, campaign: CRMCampaign) -> CRMCampaign:
        self.calls.append("create_campaign")
        if self.campaign_failures > 0:
            self.campaign_failures -= 1
            raise CRMAPIError("Airtable", 503, "Service Unavailable")
        created = campaign.model_copy(update={"id": f"rec_campaign_{len(self.campaigns)}"})
        self.campaigns.append(created)
        return created

    async def update_campaign(self, campaign_id: str, campaign: CRMCampaign) -> CRMCampaign:
        self.calls.append("update_campaign")
        if self.campaign_failures > 0:
            self.campaign_failures -= 1
            raise CRMAPIError("Airtable", 503, "Service Unavailable")
        return campaign.model_copy(update={"id": campaign_id})

    async def get_campaign(self, campaign_id: str) -> CRMCampaign:
        self.calls.append("get_campaign")
        return CRMCampaign(id=campaign_id)

    async def get_custom_fields(self, object_type: str) -> dict[str, CustomFieldInfo]:
        self.calls.append("get_custom_fields")
        return {}

    async def create_content_asset(self, asset: Any) -> str:
        self.calls.append("create_content_asset")
        index = self._asset_attempts
        self._asset_attempts += 1
        if index in self.asset_failures:
            raise CRMAPIError("Airtable", 422, "Invalid field")
        self.assets.append(asset)
        return f"rec_asset_{index}"

    async def create_competitor_analysis(self, analysis: Any) -> str:
        self.calls.append("create_competitor_analysis")
        if analysis.competitor in self.analysis_failures:
            raise CRMAPIError("Airtable", 422, "Invalid field")
        self.analyses.append(analysis)
        return f"rec_competitor_{len(self.analyses)}"


class FakeAdapterFactory:
    """Adapter factory producing FakeAdapters with the current test knobs."""

    def __init__(self) -> None:
        self.test_result = True
        self.test_error: Exception | None = None
        self.created: list[FakeAdapter] = []

    def __call__(self, connection: CRMConnection) -> FakeAdapter:
        adapter = FakeAdapter(connection, self.test_result, self.test_error)
        self.created.append(adapter)
        return adapter


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def adapter_factory() -> FakeAdapterFactory:
    return FakeAdapterFactory()


@pytest.fixture
def registry(store, adapter_factory) -> ConnectionRegistry:
    return ConnectionRegistry(store, adapter_factory=adapter_factory)


@pytest.fixture
def sync_log(store) -> SyncLog:
    return SyncLog(store)


@pytest.fixture
def settings_store(store, sync_log) -> AutoSyncSettingsStore:
    return AutoSyncSettingsStore(store, sync_log)


@pytest.fixture
def sleep() -> AsyncMock:
    """Replaces asyncio.sleep so backoff is recorded instead of waited."""
    return AsyncMock()


@pytest.fixture
def service(registry, settings_store, sync_log, sleep) -> CRMSyncService:
    return CRMSyncService(registry, settings_store, sync_log, sleep=sleep)


@pytest.fixture
def airtable_config() -> CRMConfiguration:
    return CRMConfiguration(
        provider=CRMProviderType.AIRTABLE,
        credentials=CRMCredentials(api_key="key_test", base_id="appTEST123"),
    )


@pytest_asyncio.fixture
async def active_connection(registry, airtable_config) -> CRMConnection:
    """An Airtable connection that passed its connectivity test."""
    return await registry.add_connection(airtable_config)


@pytest_asyncio.fixture
async def active_adapter(registry, active_connection) -> FakeAdapter:
    """The adapter bound to active_connection, with its call log cleared."""
    adapter = registry.get_adapter(active_connection)
    adapter.calls.clear()
    return adapter
