"""Unit tests for vendor field mapping helpers."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone

from src.campaign_sync.autosync.schemas import (
    CompetitorAnalysisRecord,
    ContentAssetRecord,
    ContentAssetType,
)
from src.campaign_sync.crm.field_mapping import (
    AIRTABLE_CAMPAIGN_MAP,
    AIRTABLE_DEAL_MAP,
    SALESFORCE_OPPORTUNITY_MAP,
    SALESFORCE_SYSTEM_FIELDS,
    competitor_analysis_to_airtable_fields,
    content_asset_to_airtable_fields,
    extract_custom_fields,
    format_date,
    from_vendor_fields,
    to_vendor_fields,
)
from src.campaign_sync.crm.schemas import CRMCampaign, CRMDeal


class TestToVendorFields:
    def test_skips_none_and_id(self):
        deal = CRMDeal(id="rec1", name="Renewal", amount=1200, stage=None)

        fields = to_vendor_fields(deal, AIRTABLE_DEAL_MAP)

        assert fields == {"Name": "Renewal", "Amount": 1200.0}

    def test_dates_are_iso_and_custom_fields_pass_through(self):
        campaign = CRMCampaign(
            name="Launch",
            start_date=date(2026, 1, 15),
            custom_fields={"Language": "German"},
        )

        fields = to_vendor_fields(campaign, AIRTABLE_CAMPAIGN_MAP)

        assert fields["Start Date"] == "2026-01-15"
        assert fields["Language"] == "German"

    def test_salesforce_names(self):
        deal = CRMDeal(stage="Prospecting", close_date=date(2026, 9, 1), company_id="001A")

        fields = to_vendor_fields(deal, SALESFORCE_OPPORTUNITY_MAP)

        assert fields == {"StageName": "Prospecting", "CloseDate": "2026-09-01", "AccountId": "001A"}


class TestFromVendorFields:
    def test_unknown_fields_become_custom(self):
        record = {"Name": "Launch", "Budget": "2500", "Owner": "Sam"}

        data = from_vendor_fields(record, AIRTABLE_CAMPAIGN_MAP)

        assert data["name"] == "Launch"
        assert data["budget"] == 2500.0
        assert data["custom_fields"] == {"Owner": "Sam"}

    def test_unparseable_number_is_dropped(self):
        data = from_vendor_fields({"Amount": "n/a"}, AIRTABLE_DEAL_MAP)

        assert "amount" not in data
        assert data["custom_fields"] == {}

    def test_excluded_keys_are_neither_standard_nor_custom(self):
        record = {"Id": "006X", "attributes": {"type": "Opportunity"}, "Name": "Deal"}

        data = from_vendor_fields(record, SALESFORCE_OPPORTUNITY_MAP, exclude=SALESFORCE_SYSTEM_FIELDS)

        assert data == {"name": "Deal", "custom_fields": {}}


def test_extract_custom_fields():
    assert extract_custom_fields({"a": 1, "b": 2, "c": 3}, ["a", "c"]) == {"b": 2}


def test_format_date_accepts_datetime_and_string():
    assert format_date(datetime(2026, 4, 2, 18, 30, tzinfo=timezone.utc)) == "2026-04-02"
    assert format_date("2026-04-02T18:30:00Z") == "2026-04-02"


class TestCampaignChildFields:
    def test_content_asset_row(self):
        asset = ContentAssetRecord(
            campaign_id="recCAMP",
            type=ContentAssetType.SOCIAL_MEDIA,
            platform="LinkedIn",
            content="Post body",
            metadata={"platform": "LinkedIn"},
            created_at=datetime(2026, 4, 2, tzinfo=timezone.utc),
        )

        fields = content_asset_to_airtable_fields(asset)

        assert fields["Platform"] == "LinkedIn"
        assert fields["Content Type"] == "social_media"
        assert json.loads(fields["Metadata"]) == {"platform": "LinkedIn"}
        assert fields["Created At"].startswith("2026-04-02T00:00:00")

    def test_competitor_row_includes_examples_when_present(self):
        analysis = CompetitorAnalysisRecord(
            campaign_id="recCAMP",
            competitor="Initech",
            strengths=["Brand"],
            weaknesses=["Price", "Support"],
            strategy="Focus on service",
            strategy_examples=["Free onboarding", "24/7 chat"],
            analysis_date=datetime(2026, 4, 2, tzinfo=timezone.utc),
        )

        fields = competitor_analysis_to_airtable_fields(analysis)

        assert fields["Weaknesses"] == "Price\nSupport"
        assert fields["Strategy Examples"] == "Free onboarding\n24/7 chat"
