"""Automatic campaign sync -- maps generated campaigns onto CRM records.

Provides:
- CRMSyncService: Gated entry points, retrying orchestration, health check
- AutoSyncSettingsStore: Persisted process-wide AutoSyncConfig
- SyncLog: Capped audit log with a persisted trailing slice
- mapping: CampaignResult -> campaign / content asset / competitor records
"""

from src.campaign_sync.autosync.logs import SyncLog
from src.campaign_sync.autosync.schemas import AutoSyncConfig, AutoSyncResult
from src.campaign_sync.autosync.service import CRMSyncService
from src.campaign_sync.autosync.settings_store import AutoSyncSettingsStore

__all__ = [
    "AutoSyncConfig",
    "AutoSyncResult",
    "AutoSyncSettingsStore",
    "CRMSyncService",
    "SyncLog",
]
