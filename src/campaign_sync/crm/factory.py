"""Adapter factory keyed by provider tag."""

from __future__ import annotations

from collections.abc import Callable

from src.campaign_sync.crm.adapter import CRMAdapter
from src.campaign_sync.crm.airtable import AirtableAdapter
from src.campaign_sync.crm.salesforce import SalesforceAdapter
from src.campaign_sync.crm.schemas import CRMConnection, CRMProviderType
from src.campaign_sync.crm.unsupported import UnsupportedAdapter

AdapterFactory = Callable[[CRMConnection], CRMAdapter]

ADAPTER_CLASSES: dict[CRMProviderType, type[CRMAdapter]] = {
    CRMProviderType.AIRTABLE: AirtableAdapter,
    CRMProviderType.SALESFORCE: SalesforceAdapter,
}


def create_adapter(connection: CRMConnection) -> CRMAdapter:
    """Return the adapter for the connection's provider.

    Providers without an implementation get an UnsupportedAdapter rather
    than an exception, so registration can record the connection anyway.
    """
    adapter_cls = ADAPTER_CLASSES.get(connection.provider, UnsupportedAdapter)
    return adapter_cls(connection)
