"""Projection of a generation result onto CRM-bound records.

Defines:
- map_to_campaign_record(): payload -> anchor CampaignRecord
- campaign_record_to_crm_campaign(): anchor -> canonical CRMCampaign with the
  campaign details carried as custom fields
- map_to_content_assets(): payload -> ordered ContentAssetRecords
- map_to_competitor_analyses(): payload -> CompetitorAnalysisRecords
- saved_campaign_to_crm_campaign(): stored campaign -> CRMCampaign for
  update-triggered sync

Content asset derivation, in order:
1. one social_media asset per social post
2. one ad_copy asset per ad copy unit
3. one seo_keywords aggregate if any keywords exist
4. one backlink_strategy aggregate if any strategies exist
5. one meta_data asset if meta title/description are present
6. one ai_prompt asset per AI image prompt
"""

from __future__ import annotations

import json

from src.campaign_sync.autosync.schemas import (
    CampaignRecord,
    CampaignStatus,
    CompetitorAnalysisRecord,
    ContentAssetRecord,
    ContentAssetType,
    CRMSyncPayload,
    SavedCampaign,
)
from src.campaign_sync.crm.schemas import CRMCampaign

CAMPAIGN_SOURCE = "Zenith Campaign Generator"


def map_to_campaign_record(payload: CRMSyncPayload) -> CampaignRecord:
    """Build the anchor record for one generation.

    The session id is kept in the metadata so that duplicate anchors
    written by retried attempts can be traced to the same run.
    """
    settings = payload.settings
    result = payload.campaign_result
    metadata = payload.metadata

    return CampaignRecord(
        name=f"{settings.company_name} - Marketing Campaign",
        product_description=payload.product_description,
        target_audience=result.target_audience,
        key_messaging=" | ".join(result.key_messaging),
        company_name=settings.company_name,
        company_website=settings.company_website,
        national_language=settings.national_language,
        generated_at=metadata.generated_at,
        metadata={
            "user_id": metadata.user_id,
            "session_id": metadata.session_id,
            "source_ip": metadata.source_ip,
            "user_agent": metadata.user_agent,
            "settings": {
                "use_google_eat": settings.use_google_eat,
                "use_hemingway_style": settings.use_hemingway_style,
                "generate_backlinks": settings.generate_backlinks,
                "find_trending_topics": settings.find_trending_topics,
                "target_platforms": settings.target_platforms,
                "creativity_level": settings.default_creativity_level,
            },
        },
    )


def campaign_record_to_crm_campaign(record: CampaignRecord) -> CRMCampaign:
    return CRMCampaign(
        name=record.name,
        type=record.type,
        status=record.status.value,
        custom_fields={
            "Product Description": record.product_description,
            "Target Audience": record.target_audience,
            "Key Messaging": record.key_messaging,
            "Company Name": record.company_name,
            "Company Website": record.company_website,
            "Language": record.national_language,
            "Generated At": record.generated_at.isoformat(),
            "Zenith Metadata": json.dumps(record.metadata, default=str),
            "Source": CAMPAIGN_SOURCE,
        },
    )


def map_to_content_assets(payload: CRMSyncPayload, campaign_id: str) -> list[ContentAssetRecord]:
    """Derive the content assets of one generation in creation order."""
    result = payload.campaign_result
    created_at = payload.metadata.generated_at
    assets: list[ContentAssetRecord] = []

    for index, social in enumerate(result.social_media_content):
        assets.append(
            ContentAssetRecord(
                campaign_id=campaign_id,
                type=ContentAssetType.SOCIAL_MEDIA,
                platform=social.platform,
                content=social.content_example,
                metadata={"order": index, "generated": True},
                created_at=created_at,
            )
        )

    for index, ad in enumerate(result.ad_copy):
        assets.append(
            ContentAssetRecord(
                campaign_id=campaign_id,
                type=ContentAssetType.AD_COPY,
                content=f"{ad.headline}\n\n{ad.body}",
                metadata={
                    "headline": ad.headline,
                    "body": ad.body,
                    "order": index,
                    "generated": True,
                },
                created_at=created_at,
            )
        )

    if result.seo_keywords:
        assets.append(
            ContentAssetRecord(
                campaign_id=campaign_id,
                type=ContentAssetType.SEO_KEYWORDS,
                content=", ".join(result.seo_keywords),
                metadata={
                    "keywords": result.seo_keywords,
                    "count": len(result.seo_keywords),
                    "generated": True,
                },
                created_at=created_at,
            )
        )

    if result.backlink_strategy:
        assets.append(
            ContentAssetRecord(
                campaign_id=campaign_id,
                type=ContentAssetType.BACKLINK_STRATEGY,
                content="\n".join(result.backlink_strategy),
                metadata={
                    "strategies": result.backlink_strategy,
                    "count": len(result.backlink_strategy),
                    "generated": True,
                },
                created_at=created_at,
            )
        )

    if result.meta_data:
        assets.append(
            ContentAssetRecord(
                campaign_id=campaign_id,
                type=ContentAssetType.META_DATA,
                content=f"{result.meta_data.title}\n{result.meta_data.description}",
                metadata={
                    "title": result.meta_data.title,
                    "description": result.meta_data.description,
                    "generated": True,
                },
                created_at=created_at,
            )
        )

    for index, prompt in enumerate(result.ai_image_prompts or []):
        assets.append(
            ContentAssetRecord(
                campaign_id=campaign_id,
                type=ContentAssetType.AI_PROMPT,
                content=prompt,
                metadata={"type": "image", "order": index, "generated": True},
                created_at=created_at,
            )
        )

    return assets


def map_to_competitor_analyses(
    payload: CRMSyncPayload, campaign_id: str
) -> list[CompetitorAnalysisRecord]:
    return [
        CompetitorAnalysisRecord(
            campaign_id=campaign_id,
            competitor=analysis.competitor,
            strengths=analysis.strengths,
            weaknesses=analysis.weaknesses,
            strategy=analysis.strategy,
            strategy_examples=analysis.strategy_examples,
            analysis_date=payload.metadata.generated_at,
        )
        for analysis in payload.campaign_result.competitor_analysis or []
    ]


def saved_campaign_to_crm_campaign(campaign: SavedCampaign) -> CRMCampaign:
    """Active campaigns map to CRM status "Active", everything else to "Planned"."""
    return CRMCampaign(
        name=campaign.name,
        type="Marketing Campaign",
        status="Active" if campaign.status == CampaignStatus.ACTIVE else "Planned",
        start_date=campaign.created_at.date(),
        custom_fields={
            "zenith_campaign_id": campaign.id,
            "zenith_description": campaign.description,
            "zenith_product_description": campaign.product_description,
            "zenith_tags": ",".join(campaign.tags),
        },
    )
