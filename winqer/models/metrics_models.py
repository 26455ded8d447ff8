"""WINQER — Metric and Dashboard Schemas."""

from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field


# ─────────────────────────────────────────────
# META ADS
# ─────────────────────────────────────────────

PLACEHOLDER_IMAGE_URL = "https://placehold.co/600x400?text=No+Image"


class AdCreative(BaseModel):
    id: Optional[str] = None
    title: str = "No Title"
    body: str = "No Body"
    image_url: str = PLACEHOLDER_IMAGE_URL


class AdInsights(BaseModel):
    """Last-90-day insight totals for one ad."""

    impressions: float = 0
    clicks: float = 0
    spend: float = 0
    ctr: float = 0
    cpm: float = 0
    cpc: float = 0
    frequency: float = 0
    lp_views: float = 0
    cost_per_lp_view: float = 0
    cpa: float = 0
    roas: float = 0
    raw_actions: List[Dict[str, Any]] = []


class Ad(BaseModel):
    id: str
    name: str = ""
    campaign_id: Optional[str] = None
    campaign_name: str = "Unknown Campaign"
    campaign_objective: str = "OUTCOME_TRAFFIC"
    creative: AdCreative = AdCreative()
    insights: AdInsights = AdInsights()


class DailyAdInsight(BaseModel):
    """One day of account or campaign delivery. Conversions are LP views."""

    date: str
    spend: float = 0
    clicks: float = 0
    impressions: float = 0
    conversions: float = 0


class RegionInsight(BaseModel):
    region: str
    spend: float = 0
    clicks: float = 0
    impressions: float = 0
    conversions: float = 0


class AdAnalysis(BaseModel):
    """Winner scoring for one ad."""

    is_winner: bool
    score: int
    reasons: List[str] = []


class ScoredAd(Ad):
    analysis: AdAnalysis


# ─────────────────────────────────────────────
# GOOGLE
# ─────────────────────────────────────────────


class DailyEventCount(BaseModel):
    date: str
    count: int = 0


class Ga4Report(BaseModel):
    sessions: int = 0
    activeUsers: int = 0
    conversions: int = 0
    engagementRate: float = 0.0
    averageSessionDuration: float = 0.0
    screenPageViews: int = 0
    bounceRate: float = 0.0


class Ga4Property(BaseModel):
    name: str
    displayName: str = ""
    account: str = ""


class GbpInsights(BaseModel):
    """Business Profile summary for a location."""

    rating: float = 0.0
    reviewCount: int = 0
    calls: int = 0
    directions: int = 0
    websiteClicks: int = 0
    views: int = 0


# ─────────────────────────────────────────────
# DASHBOARD
# ─────────────────────────────────────────────


class StoreMetrics(BaseModel):
    spend: float = 0
    impressions: float = 0
    clicks: float = 0
    cpa: int = 0
    ctr: str = "0.00"
    cvr: str = "0.00"
    cvCount: int = 0
    cvEventName: str = ""


class MergedDay(BaseModel):
    date: str
    spend: float = 0
    clicks: float = 0
    impressions: float = 0
    cpa: int = 0
    cvr: Union[str, int] = 0
    cv: int = 0


class PeriodTotals(BaseModel):
    spend: float = 0
    impressions: float = 0
    clicks: float = 0
    cv: float = 0
    cpa: int = 0
    ctr: float = 0
    cvr: float = 0


class KpiMoM(BaseModel):
    label: str
    current: float
    previous: float
    unit: str
    inverse: bool


class KpiTrendPoint(BaseModel):
    date: str
    ctr: Union[str, int]
    cpc: int
    cvr: Union[str, int]


class DailySpendPoint(BaseModel):
    date: str
    amount: float


class FunnelStage(BaseModel):
    label: str
    value: float
    fill: str


class CreativeRank(BaseModel):
    name: str
    impressions: float
    clicks: float
    ctr: float
    spend: float
    cv: float
    cpa: float
    thumbnail: str


class RegionPerformance(BaseModel):
    region: str
    cpa: int
    cvr: Union[str, int]
    spend: float


class SpendTrendPoint(BaseModel):
    month: str
    spend: float
    cv: float
    cpa: int


class ChartData(BaseModel):
    kpiMoM: List[KpiMoM] = []
    spendTrend: List[SpendTrendPoint] = []
    funnel: List[FunnelStage] = []
    kpiTrend: List[KpiTrendPoint] = []
    dailySpend: List[DailySpendPoint] = []
    creativeRanking: List[CreativeRank] = []
    regionPerformance: List[RegionPerformance] = []


class DateRange(BaseModel):
    """Inclusive reporting window, YYYY-MM-DD."""

    start_date: Optional[str] = Field(default=None, alias="from")
    end_date: Optional[str] = Field(default=None, alias="to")

    model_config = {"populate_by_name": True}
