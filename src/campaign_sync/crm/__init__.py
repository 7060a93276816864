"""CRM integration layer -- pluggable adapter pattern for campaign sync.

Provides the abstract CRMAdapter interface with concrete implementations:
- AirtableAdapter: Full implementation over the Airtable REST API
- SalesforceAdapter: sObject CRUD over the Salesforce REST API
- UnsupportedAdapter: Placeholder for vendors not built yet (supported=False)
- create_adapter(): Factory keyed by provider tag
- ConnectionRegistry: Persisted connection list with adapter caching

Adapters never retry. The sync orchestrator in ``autosync`` owns retry policy.
"""

from src.campaign_sync.crm.adapter import (
    CRMAdapter,
    CRMAPIError,
    CRMError,
    ProviderNotSupportedError,
)
from src.campaign_sync.crm.airtable import AirtableAdapter
from src.campaign_sync.crm.factory import ADAPTER_CLASSES, AdapterFactory, create_adapter
from src.campaign_sync.crm.registry import ConnectionRegistry
from src.campaign_sync.crm.salesforce import SalesforceAdapter
from src.campaign_sync.crm.unsupported import UnsupportedAdapter

__all__ = [
    "CRMAdapter",
    "CRMAPIError",
    "CRMError",
    "ProviderNotSupportedError",
    "AirtableAdapter",
    "SalesforceAdapter",
    "UnsupportedAdapter",
    "ADAPTER_CLASSES",
    "AdapterFactory",
    "create_adapter",
    "ConnectionRegistry",
]
