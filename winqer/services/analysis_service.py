"""WINQER — AI Store and Campaign Analysis.

Gathers the store's Meta campaign totals and last-30-day GA4 figures,
hands them to the model with the operator's context, and returns the
narrative next to the headline numbers it was based on.
"""

import asyncio
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from winqer.ai.prompts import build_campaign_prompt, build_store_analysis_prompt
from winqer.ai.providers import select_provider
from winqer.analyzer.store_metrics import resolve_date_range, round_half_up
from winqer.core.errors import AIGenerationError
from winqer.core.logging import get_logger
from winqer.models.metrics_models import Ad, Ga4Report, StoreMetrics
from winqer.models.store_models import Store
from winqer.services.api_keys import KeyKind, get_user_key
from winqer.services.dashboard_service import DashboardService

logger = get_logger("services.analysis")

DEFAULT_CV_LABEL = "CV"
DEFAULT_GA4_CV_EVENT = "purchase"
SUGGESTION_PRIORITIES = ("High", "Medium", "Low")


class AnalysisContext(BaseModel):
    """What the operator tells the model about the store's advertising."""

    industry: Optional[str] = None
    region: Optional[str] = None
    ad_format: Optional[str] = None
    ad_objective: Optional[str] = None
    target_audience: Optional[str] = None
    remarks: Optional[str] = None
    cv_label: str = DEFAULT_CV_LABEL
    ga4_cv_event: str = DEFAULT_GA4_CV_EVENT


def _num(value: float) -> Any:
    """Whole numbers print without a trailing .0."""
    return int(value) if float(value).is_integer() else value


def sum_ads(ads: List[Ad]) -> Dict[str, float]:
    """Meta totals over ads; LP views stand in for Meta conversions."""
    return {
        "spend": sum(ad.insights.spend for ad in ads),
        "impressions": sum(ad.insights.impressions for ad in ads),
        "clicks": sum(ad.insights.clicks for ad in ads),
        "conversions": sum(ad.insights.lp_views or 0 for ad in ads),
    }


def derive_analysis_metrics(
    meta: Dict[str, float], report: Ga4Report, cv_count: int, cv_label: str
) -> Dict[str, Any]:
    """Prompt figures and the headline metrics returned with the analysis."""
    spend, clicks, impressions = meta["spend"], meta["clicks"], meta["impressions"]
    conversions = meta["conversions"]

    headline = StoreMetrics(
        spend=spend,
        impressions=impressions,
        clicks=clicks,
        cpa=round_half_up(spend / cv_count) if cv_count > 0 else 0,
        ctr=f"{clicks / impressions * 100:.2f}" if impressions > 0 else "0.00",
        cvr=f"{cv_count / clicks * 100:.2f}" if clicks > 0 else "0.00",
        cvCount=cv_count,
        cvEventName=cv_label,
    )
    prompt_meta = {
        "impressions": _num(impressions),
        "clicks": _num(clicks),
        "ctr": headline.ctr,
        "cpc": round_half_up(spend / clicks) if clicks > 0 else 0,
        "spend": _num(spend),
        "meta_cv": _num(conversions),
        "meta_cpa": round_half_up(spend / conversions) if conversions > 0 else 0,
    }
    prompt_ga4 = {
        "sessions": report.sessions,
        "active_users": report.activeUsers,
        "pageviews": report.screenPageViews,
        "engagement_rate": _num(report.engagementRate),
        "bounce_rate": _num(report.bounceRate),
        "cv_count": cv_count,
        "ga_cvr": f"{cv_count / report.sessions * 100:.2f}" if report.sessions > 0 else "0.00",
    }
    return {"headline": headline, "meta": prompt_meta, "ga4": prompt_ga4}


class AnalysisService(DashboardService):
    """AI analysis on top of the dashboard's Meta and GA4 reads."""

    def _ai_key(
        self, user_id: str, store: Store, api_key: Optional[str], provider: str
    ) -> Optional[str]:
        """Request key, then the store's key, then the user's saved key."""
        kind = KeyKind.GEMINI if provider == "gemini" else KeyKind.OPENAI
        for key in (api_key, getattr(store, kind.value)):
            if key and key.strip():
                return key.strip()
        return get_user_key(self.session, user_id, kind)

    async def _campaign_ads(self, user_id: str, store: Store) -> List[Ad]:
        meta = self._meta_client(user_id, store)
        async with meta:
            account_id = await self._soft(
                "Meta ad accounts", self._resolve_account(meta, store), None, store
            )
            if not account_id:
                return []
            ads = await self._soft("Meta ads", meta.get_ads(account_id), [], store)

        campaign_id = store.meta_campaign_id
        if campaign_id and campaign_id != "none":
            ads = [ad for ad in ads if ad.campaign_id == campaign_id]
        logger.info(f"Campaign ads: {len(ads)}", extra={"store_id": store.id})
        return ads

    async def _ga4_figures(
        self, store: Store, google_token: Optional[str], event: str
    ) -> tuple[Ga4Report, int]:
        if not google_token or not store.ga4_property_id:
            return Ga4Report(), 0
        start, end = resolve_date_range()
        async with self.google_client_cls(google_token) as google:
            report, cv_count = await asyncio.gather(
                self._soft(
                    "GA4 report",
                    google.get_ga4_report(store.ga4_property_id, start, end),
                    Ga4Report(),
                    store,
                ),
                self._soft(
                    "GA4 CV event count",
                    google.get_ga4_event_count(store.ga4_property_id, event, start, end),
                    0,
                    store,
                ),
            )
        return report, cv_count

    async def analyze_store(
        self,
        user_id: str,
        store: Store,
        google_token: Optional[str],
        context: AnalysisContext,
        api_key: Optional[str] = None,
        provider: str = "openai",
    ) -> Dict[str, Any]:
        """Run the store analysis and return `{success, analysis, metrics}`."""
        _, ai = select_provider(provider, self._ai_key(user_id, store, api_key, provider))

        ads, (report, cv_count) = await asyncio.gather(
            self._campaign_ads(user_id, store),
            self._ga4_figures(store, google_token, context.ga4_cv_event),
        )
        figures = derive_analysis_metrics(sum_ads(ads), report, cv_count, context.cv_label)
        prompt = build_store_analysis_prompt(
            context.model_dump(), figures["meta"], figures["ga4"]
        )

        analysis = await ai.generate_text(prompt)
        headline: StoreMetrics = figures["headline"]
        logger.info("Store analysis generated", extra={"store_id": store.id, "user_id": user_id})
        return {
            "success": True,
            "analysis": analysis,
            "metrics": {
                "spend": headline.spend,
                "cpa": headline.cpa,
                "ctr": headline.ctr,
                "cvr": headline.cvr,
                "cvCount": headline.cvCount,
                "cvEventName": headline.cvEventName,
            },
        }

    async def review_campaign(
        self,
        user_id: str,
        store: Store,
        objective: str,
        api_key: Optional[str] = None,
        provider: str = "openai",
    ) -> Dict[str, Any]:
        """Campaign review over the store's configured campaign ads."""
        ads = await self._campaign_ads(user_id, store)
        key = self._ai_key(user_id, store, api_key, provider)
        campaign_name = store.meta_campaign_name or store.name
        return await analyze_campaign(campaign_name, objective, ads, key, provider)


def campaign_data(campaign_name: str, objective: str, ads: List[Ad]) -> Dict[str, Any]:
    """Totals, averages and per-ad rows the campaign prompt is built on."""
    count = len(ads) or 1
    return {
        "campaignName": campaign_name,
        "objective": objective,
        "totalSpend": sum(ad.insights.spend for ad in ads),
        "totalImpressions": sum(ad.insights.impressions for ad in ads),
        "totalLpViews": sum(ad.insights.lp_views for ad in ads),
        "avgCtr": sum(ad.insights.ctr for ad in ads) / count,
        "avgFrequency": sum(ad.insights.frequency for ad in ads) / count,
        "ads": [
            {
                "name": ad.name,
                "spend": ad.insights.spend,
                "ctr": ad.insights.ctr,
                "cpm": ad.insights.cpm,
                "cpc": ad.insights.cpc,
                "lp_views": ad.insights.lp_views,
                "cost_per_lp_view": ad.insights.cost_per_lp_view,
                "frequency": ad.insights.frequency,
                "creativeTitle": ad.creative.title,
            }
            for ad in ads
        ],
    }


async def analyze_campaign(
    campaign_name: str,
    objective: str,
    ads: List[Ad],
    api_key: Optional[str] = None,
    provider: str = "openai",
) -> Dict[str, Any]:
    """Objective-aware campaign review: `{summary, suggestions}`."""
    _, ai = select_provider(provider, api_key)
    prompt = build_campaign_prompt(objective, campaign_data(campaign_name, objective, ads))
    parsed = await ai.generate_json(prompt)

    summary = parsed.get("summary")
    if not summary:
        raise AIGenerationError("No content from AI provider")

    suggestions = []
    for s in parsed.get("suggestions") or []:
        if not isinstance(s, dict):
            continue
        priority = s.get("priority", "Medium")
        suggestions.append(
            {
                "title": s.get("title", ""),
                "description": s.get("description", ""),
                "priority": priority if priority in SUGGESTION_PRIORITIES else "Medium",
            }
        )
    return {"summary": summary, "suggestions": suggestions}
