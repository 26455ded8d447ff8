"""WINQER — Meta Raw → Schema Transformer.

Converts raw Graph API rows into the `Ad`, `DailyAdInsight` and
`RegionInsight` schemas. Conversions are counted as landing page views.
"""

from typing import Any, Dict, List

from winqer.models.metrics_models import (
    PLACEHOLDER_IMAGE_URL,
    Ad,
    AdCreative,
    AdInsights,
    DailyAdInsight,
    RegionInsight,
)

LP_VIEW_ACTION = "landing_page_view"


def _safe_float(value: Any) -> float:
    """Safely convert a value to float."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def extract_lp_views(actions: List[Dict[str, Any]] | None) -> float:
    for action in actions or []:
        if action.get("action_type") == LP_VIEW_ACTION:
            return _safe_float(action.get("value", 0))
    return 0.0


def transform_ad(row: Dict[str, Any]) -> Ad:
    campaign = row.get("campaign") or {}
    creative = row.get("creative") or {}
    insight = ((row.get("insights") or {}).get("data") or [{}])[0]
    actions = insight.get("actions") or []

    lp_views = extract_lp_views(actions)
    spend = _safe_float(insight.get("spend"))

    return Ad(
        id=str(row.get("id", "")),
        name=row.get("name") or "",
        campaign_id=campaign.get("id"),
        campaign_name=campaign.get("name") or "Unknown Campaign",
        campaign_objective=campaign.get("objective") or "OUTCOME_TRAFFIC",
        creative=AdCreative(
            id=creative.get("id"),
            title=creative.get("title") or "No Title",
            body=creative.get("body") or "No Body",
            image_url=creative.get("image_url")
            or creative.get("thumbnail_url")
            or PLACEHOLDER_IMAGE_URL,
        ),
        insights=AdInsights(
            impressions=_safe_float(insight.get("impressions")),
            clicks=_safe_float(insight.get("clicks")),
            spend=spend,
            ctr=_safe_float(insight.get("ctr")),
            cpm=_safe_float(insight.get("cpm")),
            cpc=_safe_float(insight.get("cpc")),
            frequency=_safe_float(insight.get("frequency")),
            lp_views=lp_views,
            cost_per_lp_view=spend / lp_views if lp_views > 0 else 0,
            raw_actions=actions,
        ),
    )


def transform_daily_rows(rows: List[Dict[str, Any]]) -> List[DailyAdInsight]:
    return [
        DailyAdInsight(
            date=row.get("date_start", ""),
            spend=_safe_float(row.get("spend")),
            clicks=_safe_float(row.get("clicks")),
            impressions=_safe_float(row.get("impressions")),
            conversions=extract_lp_views(row.get("actions")),
        )
        for row in rows
    ]


def transform_region_rows(rows: List[Dict[str, Any]]) -> List[RegionInsight]:
    return [
        RegionInsight(
            region=row.get("region") or "Unknown",
            spend=_safe_float(row.get("spend")),
            clicks=_safe_float(row.get("clicks")),
            impressions=_safe_float(row.get("impressions")),
            conversions=extract_lp_views(row.get("actions")),
        )
        for row in rows
    ]
