"""CRM auto-sync orchestrator.

Turns one campaign generation into CRM writes against the active connection:

1. Gate on AutoSyncConfig (``enabled`` and ``sync_on_generation``).
2. Resolve the active connection; none configured is not an error.
3. Run the provider sync with retries. Every attempt is a full sync; the
   wait before retry *n* is ``retry_delay * n`` milliseconds (linear).

Public entry points never raise. Every path ends in an AutoSyncResult, and
a failed sync never affects the generation result the caller already has.
"""

from __future__ import annotations

import asyncio
import secrets
import string
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_incrementing,
)

from src.campaign_sync.autosync.logs import SyncLog
from src.campaign_sync.autosync.mapping import (
    campaign_record_to_crm_campaign,
    map_to_campaign_record,
    map_to_competitor_analyses,
    map_to_content_assets,
    saved_campaign_to_crm_campaign,
)
from src.campaign_sync.autosync.schemas import (
    AutoSyncConfig,
    AutoSyncResult,
    CampaignResult,
    CompetitorAnalysisRecord,
    ContentAssetRecord,
    CRMSyncPayload,
    GenerationSettings,
    HealthReport,
    LogLevel,
    SavedCampaign,
    SyncLogEntry,
    SyncMetadata,
)
from src.campaign_sync.autosync.settings_store import AutoSyncSettingsStore
from src.campaign_sync.core.monitoring import record_sync_run
from src.campaign_sync.crm.adapter import CRMAdapter, ProviderNotSupportedError
from src.campaign_sync.crm.registry import ConnectionRegistry
from src.campaign_sync.crm.schemas import (
    ConnectionStatus,
    CRMConnection,
    CRMProviderType,
    CRMSyncError,
)

logger = structlog.get_logger(__name__)

# Pause between content asset batches, in seconds.
BATCH_PAUSE_SECONDS = 0.1

# Providers whose campaign sync path is not built. Syncing to them succeeds
# with a warning instead of failing.
PENDING_PROVIDERS: dict[CRMProviderType, str] = {
    CRMProviderType.SALESFORCE: "Salesforce",
    CRMProviderType.HUBSPOT: "HubSpot",
}

_SESSION_ALPHABET = string.ascii_lowercase + string.digits

SleepFunc = Callable[[float], Awaitable[None]]


def generate_session_id() -> str:
    suffix = "".join(secrets.choice(_SESSION_ALPHABET) for _ in range(9))
    return f"sync_{int(time.time() * 1000)}_{suffix}"


def _is_failed_result(result: AutoSyncResult | None) -> bool:
    return result is not None and not result.success


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class CRMSyncService:
    """Automatic and manual campaign sync to the active CRM connection.

    Args:
        registry: Connection registry used to find the active connection and
            its adapter.
        settings_store: Process-wide auto-sync configuration.
        sync_log: Audit log for sync events.
        sleep: Awaitable used for retry backoff and batch pauses. Tests pass
            a mock to avoid real delays.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        settings_store: AutoSyncSettingsStore,
        sync_log: SyncLog,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._registry = registry
        self._settings = settings_store
        self._sync_log = sync_log
        self._sleep = sleep

    # ── Entry points ────────────────────────────────────────────────────

    async def handle_automatic_crm_sync(
        self,
        campaign_result: CampaignResult,
        product_description: str,
        settings: GenerationSettings,
        metadata: SyncMetadata | None = None,
    ) -> AutoSyncResult:
        """Sync a freshly generated campaign to the active CRM.

        Returns success with ``records_skipped=1`` when auto-sync is off and
        success with a warning when no connection is active.
        """
        start = time.monotonic()
        config = self._settings.current
        result = AutoSyncResult()
        provider = "none"
        outcome = "skipped"

        await self._sync_log.log(
            LogLevel.INFO,
            "Starting automatic CRM sync",
            {
                "product_description": product_description[:100] + "...",
                "company_name": settings.company_name,
                "sync_enabled": config.enabled,
            },
        )

        try:
            if not config.enabled or not config.sync_on_generation:
                await self._sync_log.log(LogLevel.INFO, "Auto-sync disabled, skipping CRM sync")
                result.records_skipped = 1
                result.success = True
                return result

            connection = self._registry.get_active_connection()
            if connection is None:
                outcome = "no_connection"
                warning = "No active CRM connection found, skipping sync"
                await self._sync_log.log(LogLevel.WARN, warning)
                result.warnings.append(warning)
                result.success = True
                return result

            provider = connection.provider.value
            metadata = metadata or SyncMetadata()
            payload = CRMSyncPayload(
                campaign_result=campaign_result,
                product_description=product_description,
                settings=settings,
                metadata=SyncMetadata(
                    generated_at=datetime.now(timezone.utc),
                    user_id=metadata.user_id,
                    session_id=metadata.session_id or generate_session_id(),
                    source_ip=metadata.source_ip,
                    user_agent=metadata.user_agent,
                ),
            )

            sync_result = await self.perform_sync_with_retry(connection, payload)
            result = sync_result.model_copy(
                update={"warnings": result.warnings + sync_result.warnings}
            )
            outcome = "success" if result.success else "failure"

            await self._record_connection_outcome(connection, result)

            if result.success:
                await self._sync_log.log(
                    LogLevel.INFO,
                    "CRM sync completed successfully",
                    {
                        "campaign_id": result.campaign_id,
                        "records_created": result.records_created,
                        "retry_attempts": result.retry_attempts,
                    },
                )
            else:
                await self._sync_log.log(
                    LogLevel.ERROR,
                    "CRM sync failed",
                    {
                        "errors": [e.error for e in result.errors],
                        "retry_attempts": result.retry_attempts,
                    },
                )

        except Exception as exc:
            outcome = "failure"
            result.success = False
            result.errors.append(
                CRMSyncError(
                    record_id="unknown",
                    error=f"Unexpected sync error: {exc}",
                    retryable=False,
                )
            )
            await self._sync_log.log(
                LogLevel.ERROR, "Unexpected error during CRM sync", {"error": str(exc)}, exc
            )
        finally:
            result.duration = _elapsed_ms(start)
            record_sync_run(provider, outcome, result.duration, result.records_created)

        return result

    async def trigger_manual_sync(
        self,
        campaign_result: CampaignResult,
        product_description: str,
        settings: GenerationSettings,
    ) -> AutoSyncResult:
        """Sync even when generation-triggered sync is off.

        ``sync_on_generation`` is forced on for this call only and restored
        afterwards, whatever the outcome. The global ``enabled`` switch
        still applies.
        """
        await self._sync_log.log(LogLevel.INFO, "Manual sync triggered")
        with self._settings.temporary(sync_on_generation=True):
            return await self.handle_automatic_crm_sync(
                campaign_result,
                product_description,
                settings,
                SyncMetadata(user_id="manual_trigger"),
            )

    async def handle_campaign_update(self, campaign: SavedCampaign) -> AutoSyncResult:
        """Push an edited campaign to the CRM when ``sync_on_update`` is on.

        Updates the CRM campaign when the saved campaign already carries a
        ``crm_campaign_id``, otherwise creates it and reports the new id.
        """
        start = time.monotonic()
        config = self._settings.current
        result = AutoSyncResult()
        provider = "none"
        outcome = "skipped"

        try:
            if not config.enabled or not config.sync_on_update:
                result.records_skipped = 1
                result.success = True
                return result

            connection = self._registry.get_active_connection()
            if connection is None:
                outcome = "no_connection"
                warning = "No active CRM connection found, skipping sync"
                await self._sync_log.log(LogLevel.WARN, warning, {"campaign_id": campaign.id})
                result.warnings.append(warning)
                result.success = True
                return result

            provider = connection.provider.value
            adapter = self._registry.get_adapter(connection)
            crm_campaign = saved_campaign_to_crm_campaign(campaign)
            result.records_processed = 1

            try:
                if campaign.crm_campaign_id:
                    updated = await adapter.update_campaign(campaign.crm_campaign_id, crm_campaign)
                    result.campaign_id = updated.id or campaign.crm_campaign_id
                    result.records_updated = 1
                else:
                    created = await adapter.create_campaign(crm_campaign)
                    result.campaign_id = created.id
                    result.records_created = 1
                result.success = True
            except Exception as exc:
                result.errors.append(
                    CRMSyncError(
                        record_id=campaign.id,
                        error=str(exc),
                        retryable=not isinstance(exc, ProviderNotSupportedError),
                    )
                )
                await self._sync_log.log(
                    LogLevel.ERROR,
                    "Campaign update sync failed",
                    {"campaign_id": campaign.id, "provider": provider},
                    exc,
                )

            outcome = "success" if result.success else "failure"
            await self._record_connection_outcome(connection, result)

            if result.success:
                await self._sync_log.log(
                    LogLevel.INFO,
                    "Campaign update synced",
                    {"campaign_id": campaign.id, "crm_campaign_id": result.campaign_id},
                )

        except Exception as exc:
            outcome = "failure"
            result.success = False
            result.errors.append(
                CRMSyncError(
                    record_id="unknown",
                    error=f"Unexpected sync error: {exc}",
                    retryable=False,
                )
            )
            await self._sync_log.log(
                LogLevel.ERROR, "Unexpected error during campaign update sync", {"error": str(exc)}, exc
            )
        finally:
            result.duration = _elapsed_ms(start)
            record_sync_run(provider, outcome, result.duration, result.records_created)

        return result

    # ── Retry ───────────────────────────────────────────────────────────

    async def perform_sync_with_retry(
        self,
        connection: CRMConnection,
        payload: CRMSyncPayload,
    ) -> AutoSyncResult:
        """Run perform_sync up to ``retry_attempts + 1`` times.

        Raised exceptions and ``success=False`` results are both retried.
        On success ``retry_attempts`` is the number of retries used; when
        every attempt fails it equals the configured maximum.
        """
        config = self._settings.current
        max_retries = config.retry_attempts
        delay_seconds = config.retry_delay / 1000

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_retries + 1),
            wait=wait_incrementing(start=delay_seconds, increment=delay_seconds),
            retry=retry_if_exception_type(Exception) | retry_if_result(_is_failed_result),
            sleep=self._sleep,
            before_sleep=self._log_retry,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    result = await self.perform_sync(connection, payload)
                    result.retry_attempts = attempt.retry_state.attempt_number - 1
                if not attempt.retry_state.outcome.failed:
                    attempt.retry_state.set_result(result)
        except RetryError as exc:
            last_attempt = exc.last_attempt
            if not last_attempt.failed:
                exhausted = last_attempt.result()
                exhausted.retry_attempts = max_retries
                return exhausted

            error = last_attempt.exception()
            await self._sync_log.log(
                LogLevel.ERROR,
                f"Sync attempt {max_retries + 1} threw exception",
                {"error": str(error)},
                error,
            )
            return AutoSyncResult(
                success=False,
                errors=[
                    CRMSyncError(
                        record_id="campaign",
                        error=str(error) or "All retry attempts failed",
                        retryable=True,
                    )
                ],
                retry_attempts=max_retries,
            )

        return result

    async def _log_retry(self, retry_state: RetryCallState) -> None:
        attempt_number = retry_state.attempt_number
        wait_ms = int((retry_state.upcoming_sleep or 0) * 1000)
        outcome = retry_state.outcome

        if outcome is not None and outcome.failed:
            error = outcome.exception()
            await self._sync_log.log(
                LogLevel.ERROR,
                f"Sync attempt {attempt_number} threw exception",
                {"error": str(error), "retry_in_ms": wait_ms},
                error,
            )
        else:
            await self._sync_log.log(
                LogLevel.WARN,
                f"Sync attempt {attempt_number} failed, retrying in {wait_ms}ms",
            )

    # ── Provider dispatch ───────────────────────────────────────────────

    async def perform_sync(
        self,
        connection: CRMConnection,
        payload: CRMSyncPayload,
    ) -> AutoSyncResult:
        """One sync attempt, dispatched on the connection's provider tag."""
        result = AutoSyncResult()

        if connection.provider == CRMProviderType.AIRTABLE:
            return await self._sync_to_airtable(connection, payload, result)

        if connection.provider in PENDING_PROVIDERS:
            result.warnings.append(f"{PENDING_PROVIDERS[connection.provider]} sync not yet implemented")
            result.success = True
            return result

        result.errors.append(
            CRMSyncError(
                record_id="config",
                error=f"Unsupported CRM provider: {connection.provider.value}",
                retryable=False,
            )
        )
        return result

    async def _sync_to_airtable(
        self,
        connection: CRMConnection,
        payload: CRMSyncPayload,
        result: AutoSyncResult,
    ) -> AutoSyncResult:
        config = self._settings.current
        adapter = self._registry.get_adapter(connection)

        # Anchor record; nothing else is written without it
        try:
            campaign_record = map_to_campaign_record(payload)
            result.records_processed += 1
            campaign = await adapter.create_campaign(campaign_record_to_crm_campaign(campaign_record))
            if not campaign.id:
                raise ValueError("Airtable did not return a campaign record id")
        except Exception as exc:
            await self._sync_log.log(
                LogLevel.ERROR, "Airtable sync failed", {"error": str(exc)}, exc
            )
            result.errors.append(
                CRMSyncError(record_id="airtable_sync", error=str(exc), retryable=True)
            )
            return result

        result.campaign_id = campaign.id
        result.records_created += 1

        if config.include_content_assets:
            assets = map_to_content_assets(payload, campaign.id)
            result.content_asset_ids = await self._create_content_assets_in_batches(
                adapter, assets, result, config
            )

        if config.include_competitor_analysis and payload.campaign_result.competitor_analysis:
            analyses = map_to_competitor_analyses(payload, campaign.id)
            result.competitor_analysis_ids = await self._create_competitor_analyses(
                adapter, analyses, result
            )

        result.success = True
        return result

    async def _create_content_assets_in_batches(
        self,
        adapter: CRMAdapter,
        assets: list[ContentAssetRecord],
        result: AutoSyncResult,
        config: AutoSyncConfig,
    ) -> list[str]:
        """Create assets in order, pausing between batches of ``batch_size``."""
        created_ids: list[str] = []
        batch_size = max(config.batch_size, 1)

        for batch_start in range(0, len(assets), batch_size):
            batch = assets[batch_start:batch_start + batch_size]

            for offset, asset in enumerate(batch):
                index = batch_start + offset
                result.records_processed += 1
                try:
                    created_ids.append(await adapter.create_content_asset(asset))
                    result.records_created += 1
                except Exception as exc:
                    result.errors.append(
                        CRMSyncError(
                            record_id=f"content_asset_{index}",
                            error=str(exc),
                            retryable=True,
                        )
                    )
                    logger.warning(
                        "crm_sync.content_asset_failed",
                        index=index,
                        asset_type=asset.type.value,
                        error=str(exc),
                    )

            if batch_start + batch_size < len(assets):
                await self._sleep(BATCH_PAUSE_SECONDS)

        return created_ids

    async def _create_competitor_analyses(
        self,
        adapter: CRMAdapter,
        analyses: list[CompetitorAnalysisRecord],
        result: AutoSyncResult,
    ) -> list[str]:
        created_ids: list[str] = []

        for analysis in analyses:
            result.records_processed += 1
            try:
                created_ids.append(await adapter.create_competitor_analysis(analysis))
                result.records_created += 1
            except Exception as exc:
                result.errors.append(
                    CRMSyncError(
                        record_id=f"competitor_{analysis.competitor}",
                        error=str(exc),
                        retryable=True,
                    )
                )
                logger.warning(
                    "crm_sync.competitor_analysis_failed",
                    competitor=analysis.competitor,
                    error=str(exc),
                )

        return created_ids

    async def _record_connection_outcome(
        self,
        connection: CRMConnection,
        result: AutoSyncResult,
    ) -> None:
        """Stamp the run on the connection.

        A failed run records its errors but leaves ``sync_status`` alone, so
        the next generation event still reaches the vendor. Only a
        connection test moves a connection into ``error``.
        """
        if result.success:
            await self._registry.update_sync_status(connection.id, ConnectionStatus.CONNECTED)
        else:
            message = "; ".join(e.error for e in result.errors) or "Sync failed"
            await self._registry.update_sync_status(
                connection.id, connection.sync_status, message
            )

    # ── Configuration ───────────────────────────────────────────────────

    def get_sync_config(self) -> AutoSyncConfig:
        return self._settings.get()

    async def update_sync_config(self, **changes: Any) -> AutoSyncConfig:
        return await self._settings.update(**changes)

    async def reset_sync_config(self) -> AutoSyncConfig:
        return await self._settings.reset()

    # ── Logs ────────────────────────────────────────────────────────────

    def get_logs(self, limit: int | None = None) -> list[SyncLogEntry]:
        return self._sync_log.get_logs(limit)

    async def clear_logs(self) -> None:
        await self._sync_log.clear()

    # ── Health ──────────────────────────────────────────────────────────

    async def perform_health_check(self) -> HealthReport:
        """Read-only diagnostic summary of config, connection and recent logs."""
        config = self._settings.current
        recommendations: list[str] = []

        config_valid = config.retry_attempts > 0 and config.retry_delay > 0 and config.batch_size > 0
        if not config_valid:
            recommendations.append("Review sync configuration settings")

        connection = self._registry.get_active_connection()
        crm_connection_active = (
            connection is not None and connection.sync_status == ConnectionStatus.CONNECTED
        )
        if not crm_connection_active:
            recommendations.append("Ensure CRM connection is active and properly configured")

        recent_logs = self._sync_log.get_logs(10)
        if any(entry.level == LogLevel.ERROR for entry in recent_logs):
            recommendations.append("Review recent error logs and resolve sync issues")

        if not config.enabled:
            recommendations.append("Auto-sync is currently disabled")

        return HealthReport(
            config_valid=config_valid,
            crm_connection_active=crm_connection_active,
            last_sync_status=recent_logs[0].level if recent_logs else None,
            recommendations=recommendations,
        )
