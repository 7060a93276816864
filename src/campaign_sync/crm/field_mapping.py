"""Vendor field mappings for the canonical CRM entities.

Defines:
- AIRTABLE_*_MAP / SALESFORCE_*_MAP: internal field name -> vendor field name
  and value type, one map per entity kind.
- to_vendor_fields(): canonical entity -> vendor field dict (custom fields
  passed through unchanged).
- from_vendor_fields(): vendor record -> dict of canonical fields plus a
  ``custom_fields`` dict holding everything not in the standard map.
- extract_custom_fields(): the exclusion-list passthrough used above.
- content_asset_to_airtable_fields() / competitor_analysis_to_airtable_fields():
  rows for the two child tables hanging off a campaign.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

if TYPE_CHECKING:
    from src.campaign_sync.autosync.schemas import (
        CompetitorAnalysisRecord,
        ContentAssetRecord,
    )

# Value types: "text", "number", "date"
FieldMap = dict[str, dict[str, str]]


# ── Airtable ────────────────────────────────────────────────────────────────
# Table names within one Airtable base.

AIRTABLE_TABLES: dict[str, str] = {
    "campaign": "Campaigns",
    "contact": "Contacts",
    "company": "Companies",
    "deal": "Deals",
    "content_asset": "Content Assets",
    "competitor_analysis": "Competitor Analysis",
}

AIRTABLE_CONTACT_MAP: FieldMap = {
    "email": {"field": "Email", "type": "text"},
    "first_name": {"field": "First Name", "type": "text"},
    "last_name": {"field": "Last Name", "type": "text"},
    "company": {"field": "Company", "type": "text"},
    "phone": {"field": "Phone", "type": "text"},
}

AIRTABLE_DEAL_MAP: FieldMap = {
    "name": {"field": "Name", "type": "text"},
    "amount": {"field": "Amount", "type": "number"},
    "stage": {"field": "Stage", "type": "text"},
    "close_date": {"field": "Close Date", "type": "date"},
    "contact_id": {"field": "Contact ID", "type": "text"},
    "company_id": {"field": "Company ID", "type": "text"},
}

AIRTABLE_COMPANY_MAP: FieldMap = {
    "name": {"field": "Name", "type": "text"},
    "domain": {"field": "Website", "type": "text"},
    "industry": {"field": "Industry", "type": "text"},
    "size": {"field": "Size", "type": "text"},
}

AIRTABLE_CAMPAIGN_MAP: FieldMap = {
    "name": {"field": "Name", "type": "text"},
    "type": {"field": "Type", "type": "text"},
    "status": {"field": "Status", "type": "text"},
    "start_date": {"field": "Start Date", "type": "date"},
    "end_date": {"field": "End Date", "type": "date"},
    "budget": {"field": "Budget", "type": "number"},
}


# ── Salesforce ──────────────────────────────────────────────────────────────
# Maps internal names to sObject field API names.

SALESFORCE_CONTACT_MAP: FieldMap = {
    "email": {"field": "Email", "type": "text"},
    "first_name": {"field": "FirstName", "type": "text"},
    "last_name": {"field": "LastName", "type": "text"},
    "company": {"field": "Company", "type": "text"},
    "phone": {"field": "Phone", "type": "text"},
}

SALESFORCE_OPPORTUNITY_MAP: FieldMap = {
    "name": {"field": "Name", "type": "text"},
    "amount": {"field": "Amount", "type": "number"},
    "stage": {"field": "StageName", "type": "text"},
    "close_date": {"field": "CloseDate", "type": "date"},
    "contact_id": {"field": "ContactId", "type": "text"},
    "company_id": {"field": "AccountId", "type": "text"},
}

SALESFORCE_ACCOUNT_MAP: FieldMap = {
    "name": {"field": "Name", "type": "text"},
    "domain": {"field": "Website", "type": "text"},
    "industry": {"field": "Industry", "type": "text"},
    "size": {"field": "NumberOfEmployees", "type": "text"},
}

SALESFORCE_CAMPAIGN_MAP: FieldMap = {
    "name": {"field": "Name", "type": "text"},
    "type": {"field": "Type", "type": "text"},
    "status": {"field": "Status", "type": "text"},
    "start_date": {"field": "StartDate", "type": "date"},
    "end_date": {"field": "EndDate", "type": "date"},
    "budget": {"field": "BudgetedCost", "type": "number"},
}

# sObject metadata keys that are never custom fields.
SALESFORCE_SYSTEM_FIELDS = ["Id", "attributes"]


# ── Conversion Functions ───────────────────────────────────────────────────


def format_date(value: date | datetime | str) -> str:
    """Render a date as ISO YYYY-MM-DD."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)[:10]


def to_vendor_fields(entity: BaseModel, field_map: FieldMap) -> dict[str, Any]:
    """Convert a canonical entity to a vendor field dict.

    None values and the ``id`` field are skipped. ``custom_fields`` entries
    are merged in last, unchanged.
    """
    data = entity.model_dump(exclude={"id", "custom_fields"})
    fields: dict[str, Any] = {}

    for field_name, value in data.items():
        if field_name not in field_map or value is None:
            continue

        mapping = field_map[field_name]
        if mapping["type"] == "date":
            fields[mapping["field"]] = format_date(value)
        elif mapping["type"] == "number":
            fields[mapping["field"]] = float(value)
        else:
            fields[mapping["field"]] = value

    fields.update(getattr(entity, "custom_fields", {}) or {})
    return fields


def from_vendor_fields(
    record: dict[str, Any],
    field_map: FieldMap,
    exclude: list[str] | None = None,
) -> dict[str, Any]:
    """Convert a vendor field dict to canonical field names.

    Args:
        record: Vendor fields for one record.
        field_map: Map for the entity kind.
        exclude: Extra vendor keys that are neither standard nor custom.

    Returns:
        Dict of canonical fields with a ``custom_fields`` entry.
    """
    result: dict[str, Any] = {}
    standard_fields: list[str] = list(exclude or [])

    for internal_name, mapping in field_map.items():
        vendor_name = mapping["field"]
        standard_fields.append(vendor_name)
        value = record.get(vendor_name)
        if value is None:
            continue
        if mapping["type"] == "number" and not isinstance(value, (int, float)):
            try:
                value = float(value)
            except (TypeError, ValueError):
                continue
        if mapping["type"] == "text" and not isinstance(value, str):
            value = str(value)
        result[internal_name] = value

    result["custom_fields"] = extract_custom_fields(record, standard_fields)
    return result


def extract_custom_fields(record: dict[str, Any], standard_fields: list[str]) -> dict[str, Any]:
    """Return every key of record that is not in standard_fields."""
    return {key: value for key, value in record.items() if key not in standard_fields}


# ── Campaign children (Airtable) ───────────────────────────────────────────


def content_asset_to_airtable_fields(asset: ContentAssetRecord) -> dict[str, Any]:
    """Fields for one row of the Content Assets table."""
    return {
        "Campaign ID": asset.campaign_id,
        "Content Type": asset.type.value,
        "Platform": asset.platform or "general",
        "Content": asset.content,
        "Metadata": json.dumps(asset.metadata, default=str),
        "Created At": asset.created_at.isoformat(),
    }


def competitor_analysis_to_airtable_fields(analysis: CompetitorAnalysisRecord) -> dict[str, Any]:
    """Fields for one row of the Competitor Analysis table."""
    fields: dict[str, Any] = {
        "Campaign ID": analysis.campaign_id,
        "Competitor": analysis.competitor,
        "Strengths": "\n".join(analysis.strengths),
        "Weaknesses": "\n".join(analysis.weaknesses),
        "Strategy": analysis.strategy,
        "Analysis Date": analysis.analysis_date.isoformat(),
    }
    if analysis.strategy_examples:
        fields["Strategy Examples"] = "\n".join(analysis.strategy_examples)
    return fields
