"""WINQER — Dashboard Chart Series.

Builds the seven chart-ready series for a store dashboard from Meta daily,
region and ad rows plus GA4 daily event counts. Conversions prefer GA4
whenever GA4 returned any rows for the window in question, and fall back to
Meta landing page views otherwise.
"""

import calendar
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional

from winqer.analyzer.store_metrics import parse_date, report_today, round_half_up
from winqer.core.kpi_registry import MOM_KPIS
from winqer.models.metrics_models import (
    Ad,
    ChartData,
    CreativeRank,
    DailyAdInsight,
    DailyEventCount,
    DailySpendPoint,
    FunnelStage,
    KpiMoM,
    KpiTrendPoint,
    PeriodTotals,
    RegionInsight,
    RegionPerformance,
    SpendTrendPoint,
)

TOP_N = 5

FUNNEL_COLOURS = {
    "Impressions": "#3b82f6",
    "Clicks": "#22c55e",
    "Sessions": "#8b5cf6",
    "Conversions": "#eab308",
}


def shift_month(d: date, months: int) -> date:
    """Move by whole calendar months, clamping to the last day of the month."""
    index = d.year * 12 + (d.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def resolve_chart_periods(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    today: Optional[date] = None,
) -> tuple[tuple[str, str], tuple[str, str]]:
    """Current window (default month-to-date) and the same window a month back."""
    today = today or report_today()
    current_from = parse_date(start_date) if start_date else today.replace(day=1)
    current_to = parse_date(end_date) if end_date else today
    prev_from = shift_month(current_from, -1)
    prev_to = shift_month(current_to, -1)
    return (
        (current_from.isoformat(), current_to.isoformat()),
        (prev_from.isoformat(), prev_to.isoformat()),
    )


def calc_totals(
    meta_daily: List[DailyAdInsight], ga4_daily: List[DailyEventCount]
) -> PeriodTotals:
    spend = sum(d.spend for d in meta_daily)
    impressions = sum(d.impressions for d in meta_daily)
    clicks = sum(d.clicks for d in meta_daily)
    if ga4_daily:
        cv = sum(g.count for g in ga4_daily)
    else:
        cv = sum(d.conversions for d in meta_daily)

    return PeriodTotals(
        spend=spend,
        impressions=impressions,
        clicks=clicks,
        cv=cv,
        cpa=round_half_up(spend / cv) if cv > 0 else 0,
        ctr=clicks / impressions * 100 if impressions > 0 else 0,
        cvr=cv / clicks * 100 if clicks > 0 else 0,
    )


def build_kpi_mom(current: PeriodTotals, previous: PeriodTotals) -> List[KpiMoM]:
    cards = []
    for name, kpi in MOM_KPIS.items():
        if name == "roas":
            # No revenue source yet
            cur, prev = 0, 0
        else:
            cur, prev = getattr(current, name), getattr(previous, name)
        cards.append(
            KpiMoM(
                label=kpi.label,
                current=cur,
                previous=prev,
                unit=kpi.unit.value,
                inverse=kpi.inverse,
            )
        )
    return cards


def build_kpi_trend(
    meta_daily: List[DailyAdInsight], ga4_daily: List[DailyEventCount]
) -> List[KpiTrendPoint]:
    ga4_by_date = {g.date: g.count for g in ga4_daily}
    points = []
    for day in meta_daily:
        cv = ga4_by_date.get(day.date, day.conversions)
        points.append(
            KpiTrendPoint(
                date=day.date,
                ctr=f"{day.clicks / day.impressions * 100:.2f}" if day.impressions > 0 else 0,
                cpc=round_half_up(day.spend / day.clicks) if day.clicks > 0 else 0,
                cvr=f"{cv / day.clicks * 100:.2f}" if day.clicks > 0 else 0,
            )
        )
    return sorted(points, key=lambda p: p.date)


def build_daily_spend(meta_daily: List[DailyAdInsight]) -> List[DailySpendPoint]:
    return sorted(
        (DailySpendPoint(date=d.date, amount=d.spend) for d in meta_daily),
        key=lambda p: p.date,
    )


def build_funnel(current: PeriodTotals, sessions: int) -> List[FunnelStage]:
    values = {
        "Impressions": current.impressions,
        "Clicks": current.clicks,
        "Sessions": sessions,
        "Conversions": current.cv,
    }
    return [
        FunnelStage(label=label, value=values[label], fill=fill)
        for label, fill in FUNNEL_COLOURS.items()
    ]


def build_creative_ranking(ads: List[Ad]) -> List[CreativeRank]:
    top = sorted(ads, key=lambda ad: ad.insights.spend, reverse=True)[:TOP_N]
    return [
        CreativeRank(
            name=ad.name,
            impressions=ad.insights.impressions,
            clicks=ad.insights.clicks,
            ctr=ad.insights.ctr,
            spend=ad.insights.spend,
            # LP views stand in for ad-level conversions
            cv=ad.insights.lp_views,
            cpa=ad.insights.cost_per_lp_view,
            thumbnail=ad.creative.image_url,
        )
        for ad in top
    ]


def build_region_performance(regions: List[RegionInsight]) -> List[RegionPerformance]:
    top = sorted(regions, key=lambda r: r.spend, reverse=True)[:TOP_N]
    return [
        RegionPerformance(
            region=r.region,
            cpa=round_half_up(r.spend / r.conversions) if r.conversions > 0 else 0,
            cvr=f"{r.conversions / r.clicks * 100:.2f}" if r.clicks > 0 else 0,
            spend=r.spend,
        )
        for r in top
    ]


def build_spend_trend(
    meta_daily: List[DailyAdInsight], ga4_daily: List[DailyEventCount]
) -> List[SpendTrendPoint]:
    meta_by_month: Dict[str, List[DailyAdInsight]] = defaultdict(list)
    ga4_by_month: Dict[str, List[DailyEventCount]] = defaultdict(list)
    for d in meta_daily:
        meta_by_month[d.date[:7]].append(d)
    for g in ga4_daily:
        ga4_by_month[g.date[:7]].append(g)

    points = []
    for month in sorted(set(meta_by_month) | set(ga4_by_month)):
        spend = sum(d.spend for d in meta_by_month[month])
        if ga4_by_month[month]:
            cv = sum(g.count for g in ga4_by_month[month])
        else:
            cv = sum(d.conversions for d in meta_by_month[month])
        points.append(
            SpendTrendPoint(
                month=month,
                spend=spend,
                cv=cv,
                cpa=round_half_up(spend / cv) if cv > 0 else 0,
            )
        )
    return points


def build_chart_data(
    meta_daily: List[DailyAdInsight],
    prev_meta_daily: List[DailyAdInsight],
    ga4_daily: List[DailyEventCount],
    prev_ga4_daily: List[DailyEventCount],
    regions: List[RegionInsight],
    ads: List[Ad],
    sessions: int = 0,
) -> ChartData:
    """Assemble every dashboard series for one store."""
    current = calc_totals(meta_daily, ga4_daily)
    previous = calc_totals(prev_meta_daily, prev_ga4_daily)

    return ChartData(
        kpiMoM=build_kpi_mom(current, previous),
        spendTrend=build_spend_trend(meta_daily, ga4_daily),
        funnel=build_funnel(current, sessions),
        kpiTrend=build_kpi_trend(meta_daily, ga4_daily),
        dailySpend=build_daily_spend(meta_daily),
        creativeRanking=build_creative_ranking(ads),
        regionPerformance=build_region_performance(regions),
    )
