"""Pydantic schemas for automatic campaign sync.

Defines:
- Generation boundary (input): SocialMediaContent, AdCopy, MetaData,
  CompetitorAnalysis, CampaignResult, GenerationSettings, SyncMetadata,
  CRMSyncPayload
- CRM-bound projections: CampaignRecord, ContentAssetType, ContentAssetRecord,
  CompetitorAnalysisRecord
- Configuration and outcomes: AutoSyncConfig, AutoSyncResult, LogLevel,
  SyncLogEntry, HealthReport
- SavedCampaign: a stored campaign used by update-triggered sync

The projections are transient. They exist only while one sync run writes
them to the CRM.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from src.campaign_sync.crm.schemas import CRMSyncError, utc_now


# ── Generation Boundary ─────────────────────────────────────────────────────


class SocialMediaContent(BaseModel):
    platform: str
    content_example: str


class AdCopy(BaseModel):
    headline: str
    body: str


class MetaData(BaseModel):
    title: str
    description: str


class CompetitorAnalysis(BaseModel):
    competitor: str
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    strategy: str = ""
    strategy_examples: list[str] | None = None


class CampaignResult(BaseModel):
    """Output of one campaign generation, treated as opaque upstream data."""

    target_audience: str = ""
    key_messaging: list[str] = Field(default_factory=list)
    social_media_content: list[SocialMediaContent] = Field(default_factory=list)
    ad_copy: list[AdCopy] = Field(default_factory=list)
    seo_keywords: list[str] = Field(default_factory=list)
    backlink_strategy: list[str] | None = None
    meta_data: MetaData | None = None
    ai_image_prompts: list[str] | None = None
    competitor_analysis: list[CompetitorAnalysis] | None = None


class GenerationSettings(BaseModel):
    """Company and style settings the campaign was generated with."""

    company_name: str = ""
    company_website: str = ""
    national_language: str = "English"
    use_google_eat: bool = False
    use_hemingway_style: bool = False
    generate_backlinks: bool = False
    find_trending_topics: bool = False
    target_platforms: list[str] = Field(default_factory=list)
    default_creativity_level: int | None = None


class SyncMetadata(BaseModel):
    generated_at: datetime = Field(default_factory=utc_now)
    user_id: str | None = None
    session_id: str | None = None
    source_ip: str | None = None
    user_agent: str | None = None


class CRMSyncPayload(BaseModel):
    """Everything one sync run needs, assembled at the entry point."""

    campaign_result: CampaignResult
    product_description: str
    settings: GenerationSettings
    metadata: SyncMetadata


# ── CRM-bound Projections ───────────────────────────────────────────────────


class CampaignStatus(str, Enum):
    GENERATED = "generated"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class CampaignRecord(BaseModel):
    """Anchor record every other synced record references."""

    id: str | None = None
    name: str
    type: str = "marketing_campaign"
    status: CampaignStatus = CampaignStatus.GENERATED
    product_description: str
    target_audience: str
    key_messaging: str
    company_name: str
    company_website: str
    national_language: str
    generated_at: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)


class ContentAssetType(str, Enum):
    SOCIAL_MEDIA = "social_media"
    AD_COPY = "ad_copy"
    SEO_KEYWORDS = "seo_keywords"
    BACKLINK_STRATEGY = "backlink_strategy"
    META_DATA = "meta_data"
    AI_PROMPT = "ai_prompt"


class ContentAssetRecord(BaseModel):
    id: str | None = None
    campaign_id: str
    type: ContentAssetType
    platform: str | None = None
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class CompetitorAnalysisRecord(BaseModel):
    id: str | None = None
    campaign_id: str
    competitor: str
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    strategy: str = ""
    strategy_examples: list[str] | None = None
    analysis_date: datetime


# ── Configuration ───────────────────────────────────────────────────────────


class AutoSyncConfig(BaseModel):
    """Process-wide switches for automatic sync.

    retry_delay is in milliseconds. include_analytics is stored for the UI
    but no analytics records are written.
    """

    enabled: bool = True
    sync_on_generation: bool = True
    sync_on_update: bool = False
    include_content_assets: bool = True
    include_competitor_analysis: bool = True
    include_analytics: bool = False
    retry_attempts: int = 3
    retry_delay: int = 1000
    batch_size: int = 10


# ── Outcomes ────────────────────────────────────────────────────────────────


class AutoSyncResult(BaseModel):
    """Outcome of one orchestration run."""

    success: bool = False
    campaign_id: str | None = None
    content_asset_ids: list[str] | None = None
    competitor_analysis_ids: list[str] | None = None
    errors: list[CRMSyncError] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    duration: int = 0  # milliseconds
    records_processed: int = 0
    records_created: int = 0
    records_updated: int = 0
    records_skipped: int = 0
    retry_attempts: int = 0


class LogLevel(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    DEBUG = "debug"


class SyncLogEntry(BaseModel):
    timestamp: datetime = Field(default_factory=utc_now)
    level: LogLevel
    message: str
    context: dict[str, Any] | None = None
    error: str | None = None


class HealthReport(BaseModel):
    config_valid: bool
    crm_connection_active: bool
    last_sync_status: LogLevel | None = None
    recommendations: list[str] = Field(default_factory=list)


# ── Stored Campaigns ────────────────────────────────────────────────────────


class SavedCampaign(BaseModel):
    """A previously generated campaign kept by the application."""

    id: str
    name: str
    description: str = ""
    status: CampaignStatus = CampaignStatus.GENERATED
    product_description: str = ""
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    crm_campaign_id: str | None = None
