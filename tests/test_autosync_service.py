"""Tests for CRMSyncService orchestration.

Covers the gating rules, the active-connection lookup, retry with linear
backoff (sleep is an AsyncMock so waits are recorded, not taken), batched
content asset creation, per-record error collection, provider dispatch,
manual and update-triggered sync, config delegation, and the health check.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, call

import pytest

from src.campaign_sync.autosync.schemas import (
    AdCopy,
    CampaignResult,
    CampaignStatus,
    CompetitorAnalysis,
    ContentAssetType,
    GenerationSettings,
    LogLevel,
    MetaData,
    SavedCampaign,
    SocialMediaContent,
    SyncMetadata,
)
from src.campaign_sync.autosync.service import BATCH_PAUSE_SECONDS
from src.campaign_sync.autosync.settings_store import AutoSyncSettingsStore
from src.campaign_sync.crm.schemas import (
    ConnectionStatus,
    CRMConfiguration,
    CRMCredentials,
    CRMProviderType,
)


# ── Helpers ────────────────────────────────────────────────────────────────


def _campaign_result(**overrides) -> CampaignResult:
    data = {
        "target_audience": "Finance operations teams",
        "key_messaging": ["Close the books faster"],
        "social_media_content": [
            SocialMediaContent(platform="LinkedIn", content_example="Month-end, minus the pain."),
            SocialMediaContent(platform="X", content_example="Automate reconciliation today."),
        ],
        "ad_copy": [AdCopy(headline="Close faster", body="Try Acme free for 14 days")],
        "seo_keywords": ["reconciliation", "month-end close", "finance automation"],
    }
    data.update(overrides)
    return CampaignResult(**data)


def _settings() -> GenerationSettings:
    return GenerationSettings(company_name="Acme", company_website="https://acme.example")


async def _sync(service, **overrides):
    return await service.handle_automatic_crm_sync(
        _campaign_result(**overrides),
        "Reconciliation software for finance teams",
        _settings(),
    )


async def _add_connection(registry, provider: CRMProviderType):
    return await registry.add_connection(
        CRMConfiguration(provider=provider, credentials=CRMCredentials(access_token="tok"))
    )


# ── Gating ─────────────────────────────────────────────────────────────────


class TestGating:
    async def test_disabled_skips_without_adapter_calls(
        self, service, settings_store, active_adapter, sleep
    ):
        await settings_store.update(enabled=False)

        result = await _sync(service)

        assert result.success is True
        assert result.records_skipped == 1
        assert active_adapter.calls == []
        sleep.assert_not_awaited()

    async def test_generation_sync_off_skips(self, service, settings_store, active_adapter):
        await settings_store.update(sync_on_generation=False)

        result = await _sync(service)

        assert result.success is True
        assert result.records_skipped == 1
        assert active_adapter.calls == []

    async def test_no_active_connection_is_success_with_warning(self, service, sync_log):
        result = await _sync(service)

        assert result.success is True
        assert result.warnings == ["No active CRM connection found, skipping sync"]
        assert result.errors == []
        assert sync_log.get_logs(1)[0].level == LogLevel.WARN


# ── Airtable Sync ──────────────────────────────────────────────────────────


class TestAirtableSync:
    async def test_full_sync_creates_anchor_and_children(
        self, service, registry, active_connection, active_adapter, sleep
    ):
        result = await _sync(
            service,
            competitor_analysis=[CompetitorAnalysis(competitor="Globex", strengths=["Price"])],
        )

        assert result.success is True
        assert result.campaign_id == "rec_campaign_0"
        assert result.content_asset_ids == [
            "rec_asset_0",
            "rec_asset_1",
            "rec_asset_2",
            "rec_asset_3",
        ]
        assert result.competitor_analysis_ids == ["rec_competitor_1"]
        assert result.records_created == 6
        assert result.records_processed == 6
        assert result.retry_attempts == 0
        assert result.errors == []
        sleep.assert_not_awaited()

        anchor = active_adapter.campaigns[0]
        assert anchor.name == "Acme - Marketing Campaign"
        assert [a.type for a in active_adapter.assets] == [
            ContentAssetType.SOCIAL_MEDIA,
            ContentAssetType.SOCIAL_MEDIA,
            ContentAssetType.AD_COPY,
            ContentAssetType.SEO_KEYWORDS,
        ]
        assert all(a.campaign_id == "rec_campaign_0" for a in active_adapter.assets)

        connection = registry.get_connection(active_connection.id)
        assert connection.sync_status == ConnectionStatus.CONNECTED
        assert connection.last_sync is not None

    async def test_content_assets_excluded(self, service, settings_store, active_adapter):
        await settings_store.update(include_content_assets=False)

        result = await _sync(service)

        assert result.success is True
        assert result.content_asset_ids is None
        assert "create_content_asset" not in active_adapter.calls

    async def test_competitor_analysis_excluded(self, service, settings_store, active_adapter):
        await settings_store.update(include_competitor_analysis=False)

        result = await _sync(
            service, competitor_analysis=[CompetitorAnalysis(competitor="Globex")]
        )

        assert result.competitor_analysis_ids is None
        assert "create_competitor_analysis" not in active_adapter.calls

    async def test_batches_pause_between_batches_only(
        self, service, settings_store, active_adapter, sleep
    ):
        await settings_store.update(batch_size=2)

        result = await _sync(service, meta_data=MetaData(title="Acme", description="Close faster"))

        assert len(result.content_asset_ids) == 5
        assert sleep.await_args_list == [call(BATCH_PAUSE_SECONDS), call(BATCH_PAUSE_SECONDS)]

    async def test_asset_failure_is_collected_and_sync_succeeds(self, service, active_adapter):
        active_adapter.asset_failures = {1}

        result = await _sync(service)

        assert result.success is True
        assert result.content_asset_ids == ["rec_asset_0", "rec_asset_2", "rec_asset_3"]
        assert len(result.errors) == 1
        assert result.errors[0].record_id == "content_asset_1"
        assert result.errors[0].retryable is True
        assert result.records_processed == 5
        assert result.records_created == 4

    async def test_competitor_failure_is_collected(self, service, active_adapter):
        active_adapter.analysis_failures = {"Initech"}

        result = await _sync(
            service,
            competitor_analysis=[
                CompetitorAnalysis(competitor="Globex"),
                CompetitorAnalysis(competitor="Initech"),
            ],
        )

        assert result.success is True
        assert result.competitor_analysis_ids == ["rec_competitor_1"]
        assert [e.record_id for e in result.errors] == ["competitor_Initech"]

    async def test_session_id_recorded_in_anchor_metadata(self, service, active_adapter):
        await service.handle_automatic_crm_sync(
            _campaign_result(),
            "Reconciliation software",
            _settings(),
            SyncMetadata(user_id="u_7", session_id="sync_fixed"),
        )

        metadata = active_adapter.campaigns[0].custom_fields["Zenith Metadata"]
        assert '"session_id": "sync_fixed"' in metadata
        assert '"user_id": "u_7"' in metadata


# ── Retry ──────────────────────────────────────────────────────────────────


class TestRetry:
    async def test_always_failing_anchor_exhausts_retries(
        self, service, registry, active_connection, active_adapter, sleep
    ):
        active_adapter.campaign_failures = 10

        result = await _sync(service)

        assert result.success is False
        assert active_adapter.calls.count("create_campaign") == 4
        assert "create_content_asset" not in active_adapter.calls
        assert result.retry_attempts == 3
        assert [e.record_id for e in result.errors] == ["airtable_sync"]
        assert sleep.await_args_list == [call(1.0), call(2.0), call(3.0)]

        connection = registry.get_connection(active_connection.id)
        assert connection.sync_status == ConnectionStatus.CONNECTED
        assert "503" in connection.error_message
        assert connection.last_sync is not None

    async def test_failed_run_keeps_connection_for_next_sync(
        self, service, registry, active_connection, active_adapter
    ):
        active_adapter.campaign_failures = 4

        first = await _sync(service)
        second = await _sync(service)

        assert first.success is False
        assert second.success is True
        assert second.warnings == []
        assert second.campaign_id == "rec_campaign_0"
        assert active_adapter.calls.count("create_campaign") == 5
        assert registry.get_active_connection().id == active_connection.id
        assert registry.get_connection(active_connection.id).error_message is None

    async def test_success_on_last_attempt(self, service, settings_store, active_adapter, sleep):
        await settings_store.update(retry_attempts=2)
        active_adapter.campaign_failures = 2

        result = await _sync(service)

        assert result.success is True
        assert result.retry_attempts == 2
        assert active_adapter.calls.count("create_campaign") == 3
        assert sleep.await_args_list[:2] == [call(1.0), call(2.0)]

    async def test_retry_delay_scales_linearly(self, service, settings_store, active_adapter, sleep):
        await settings_store.update(retry_attempts=2, retry_delay=250)
        active_adapter.campaign_failures = 5

        await _sync(service)

        assert sleep.await_args_list == [call(0.25), call(0.5)]

    async def test_zero_retries_runs_once(self, service, settings_store, active_adapter, sleep):
        await settings_store.update(retry_attempts=0)
        active_adapter.campaign_failures = 5

        result = await _sync(service)

        assert result.success is False
        assert result.retry_attempts == 0
        assert active_adapter.calls.count("create_campaign") == 1
        sleep.assert_not_awaited()

    async def test_raised_exception_becomes_campaign_error(
        self, service, active_connection, sleep, monkeypatch
    ):
        perform_sync = AsyncMock(side_effect=RuntimeError("network down"))
        monkeypatch.setattr(service, "perform_sync", perform_sync)

        result = await _sync(service)

        assert result.success is False
        assert perform_sync.await_count == 4
        assert result.retry_attempts == 3
        assert result.errors[0].record_id == "campaign"
        assert result.errors[0].error == "network down"
        assert sleep.await_count == 3

    async def test_retries_are_logged(self, service, sync_log, active_adapter):
        active_adapter.campaign_failures = 1

        await _sync(service)

        messages = [e.message for e in sync_log.get_logs()]
        assert "Sync attempt 1 failed, retrying in 1000ms" in messages


# ── Provider Dispatch ──────────────────────────────────────────────────────


class TestProviderDispatch:
    async def test_salesforce_succeeds_with_warning(self, service, registry):
        await _add_connection(registry, CRMProviderType.SALESFORCE)

        result = await _sync(service)

        assert result.success is True
        assert result.warnings == ["Salesforce sync not yet implemented"]
        assert result.campaign_id is None

    async def test_unknown_provider_fails_with_config_error(self, service, registry, sleep):
        await _add_connection(registry, CRMProviderType.PIPEDRIVE)

        result = await _sync(service)

        assert result.success is False
        assert result.errors[0].record_id == "config"
        assert result.errors[0].error == "Unsupported CRM provider: pipedrive"
        assert result.errors[0].retryable is False

    async def test_unexpected_error_never_raises(self, service, registry, active_connection, monkeypatch):
        monkeypatch.setattr(
            registry, "update_sync_status", AsyncMock(side_effect=RuntimeError("store offline"))
        )

        result = await _sync(service)

        assert result.success is False
        assert result.errors[-1].record_id == "unknown"
        assert result.errors[-1].error == "Unexpected sync error: store offline"


# ── Manual Trigger ─────────────────────────────────────────────────────────


class TestManualTrigger:
    async def test_runs_when_generation_sync_off_and_restores(
        self, service, settings_store, active_adapter
    ):
        await settings_store.update(sync_on_generation=False)

        result = await service.trigger_manual_sync(_campaign_result(), "Product", _settings())

        assert result.success is True
        assert result.campaign_id == "rec_campaign_0"
        assert settings_store.current.sync_on_generation is False
        metadata = active_adapter.campaigns[0].custom_fields["Zenith Metadata"]
        assert '"user_id": "manual_trigger"' in metadata

    async def test_restores_flag_when_sync_raises(self, service, settings_store, monkeypatch):
        await settings_store.update(sync_on_generation=False)
        monkeypatch.setattr(
            service, "handle_automatic_crm_sync", AsyncMock(side_effect=RuntimeError("boom"))
        )

        with pytest.raises(RuntimeError):
            await service.trigger_manual_sync(_campaign_result(), "Product", _settings())

        assert settings_store.current.sync_on_generation is False

    async def test_config_update_mid_sync_does_not_persist_override(
        self, service, store, sync_log, settings_store, active_adapter, monkeypatch
    ):
        await settings_store.update(sync_on_generation=False)
        started = asyncio.Event()
        release = asyncio.Event()
        create_campaign = active_adapter.create_campaign

        async def held_create_campaign(campaign):
            started.set()
            await release.wait()
            return await create_campaign(campaign)

        monkeypatch.setattr(active_adapter, "create_campaign", held_create_campaign)

        task = asyncio.create_task(
            service.trigger_manual_sync(_campaign_result(), "Product", _settings())
        )
        await started.wait()
        await service.update_sync_config(batch_size=5)
        release.set()
        result = await task

        assert result.success is True
        assert settings_store.current.sync_on_generation is False
        reloaded = AutoSyncSettingsStore(store, sync_log)
        await reloaded.load()
        assert reloaded.current.sync_on_generation is False
        assert reloaded.current.batch_size == 5

    async def test_global_switch_still_applies(self, service, settings_store, active_adapter):
        await settings_store.update(enabled=False)

        result = await service.trigger_manual_sync(_campaign_result(), "Product", _settings())

        assert result.records_skipped == 1
        assert active_adapter.calls == []


# ── Campaign Update ────────────────────────────────────────────────────────


class TestCampaignUpdate:
    @pytest.fixture
    def saved(self) -> SavedCampaign:
        return SavedCampaign(
            id="camp_1",
            name="Spring Launch",
            status=CampaignStatus.ACTIVE,
            tags=["spring"],
        )

    async def test_skipped_unless_sync_on_update(self, service, active_adapter, saved):
        result = await service.handle_campaign_update(saved)

        assert result.success is True
        assert result.records_skipped == 1
        assert active_adapter.calls == []

    async def test_creates_when_no_crm_id(self, service, settings_store, active_adapter, saved):
        await settings_store.update(sync_on_update=True)

        result = await service.handle_campaign_update(saved)

        assert result.success is True
        assert result.campaign_id == "rec_campaign_0"
        assert result.records_created == 1
        assert active_adapter.campaigns[0].status == "Active"

    async def test_updates_existing_crm_record(self, service, settings_store, active_adapter, saved):
        await settings_store.update(sync_on_update=True)
        saved.crm_campaign_id = "recEXISTING"

        result = await service.handle_campaign_update(saved)

        assert result.success is True
        assert result.campaign_id == "recEXISTING"
        assert result.records_updated == 1
        assert active_adapter.calls == ["update_campaign"]

    async def test_failure_records_error_on_connection(
        self, service, settings_store, registry, active_connection, active_adapter, saved
    ):
        await settings_store.update(sync_on_update=True)
        active_adapter.campaign_failures = 1

        result = await service.handle_campaign_update(saved)

        assert result.success is False
        assert result.errors[0].record_id == "camp_1"
        connection = registry.get_connection(active_connection.id)
        assert connection.sync_status == ConnectionStatus.CONNECTED
        assert connection.error_message == "Airtable API error: 503 Service Unavailable"
        assert registry.get_active_connection() is not None


# ── Config, Logs, Health ───────────────────────────────────────────────────


class TestConfigAndHealth:
    async def test_update_and_reset_config(self, service):
        updated = await service.update_sync_config(retry_attempts=5)
        assert updated.retry_attempts == 5
        assert service.get_sync_config().retry_attempts == 5

        reset = await service.reset_sync_config()
        assert reset.retry_attempts == 3

    async def test_update_unknown_key_raises(self, service):
        with pytest.raises(ValueError):
            await service.update_sync_config(turbo=True)

    async def test_logs_newest_first_and_clear(self, service, active_adapter):
        await _sync(service)

        logs = service.get_logs(1)
        assert logs[0].message == "CRM sync completed successfully"

        await service.clear_logs()
        assert [e.message for e in service.get_logs()] == ["Sync logs cleared"]

    async def test_health_without_connection(self, service):
        report = await service.perform_health_check()

        assert report.config_valid is True
        assert report.crm_connection_active is False
        assert report.last_sync_status is None
        assert report.recommendations == [
            "Ensure CRM connection is active and properly configured"
        ]

    async def test_health_flags_errors_and_disabled(self, service, settings_store, active_adapter):
        active_adapter.campaign_failures = 10
        await _sync(service)
        await settings_store.update(enabled=False, retry_attempts=0)

        report = await service.perform_health_check()

        assert report.config_valid is False
        assert report.crm_connection_active is True
        assert report.recommendations == [
            "Review sync configuration settings",
            "Review recent error logs and resolve sync issues",
            "Auto-sync is currently disabled",
        ]

    async def test_health_with_active_connection(self, service, active_connection):
        report = await service.perform_health_check()

        assert report.crm_connection_active is True
        assert report.recommendations == []
