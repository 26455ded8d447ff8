"""WINQER — Store Metrics.

Headline numbers for a store: Meta delivery totals joined with GA4
reservation events, per day and for the whole range. Dates are reported
in the configured report timezone (JST).
"""

import math
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Union
from zoneinfo import ZoneInfo

from winqer.config import settings
from winqer.core.errors import ValidationError
from winqer.models.metrics_models import (
    DailyAdInsight,
    DailyEventCount,
    MergedDay,
    StoreMetrics,
)

DEFAULT_RANGE_DAYS = 30
RESERVATION_EVENT_SEARCH = "予約"
RESERVATION_EVENT_LABEL = "予約(合計)"


def round_half_up(value: float) -> int:
    """Round .5 upward, as currency figures are displayed."""
    return int(math.floor(value + 0.5))


def report_tz() -> ZoneInfo:
    return ZoneInfo(settings.report_timezone)


def report_today(now: Optional[datetime] = None) -> date:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(report_tz()).date()


def format_report_date(value: Union[date, datetime]) -> str:
    """YYYY-MM-DD in the report timezone."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(report_tz()).date()
    return value.isoformat()


def parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as e:
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD") from e


def resolve_date_range(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[str, str]:
    """Resolve an optional range into (start, end); default last 30 days."""
    now = now or datetime.now(timezone.utc)
    end = parse_date(end_date).isoformat() if end_date else format_report_date(now)
    if start_date:
        start = parse_date(start_date).isoformat()
    else:
        start = format_report_date(now - timedelta(days=DEFAULT_RANGE_DAYS))
    if start > end:
        raise ValidationError("Start date must not be after end date")
    return start, end


def sum_daily(daily: List[DailyAdInsight]) -> Dict[str, float]:
    return {
        "spend": sum(d.spend for d in daily),
        "impressions": sum(d.impressions for d in daily),
        "clicks": sum(d.clicks for d in daily),
        "conversions": sum(d.conversions for d in daily),
    }


def merge_daily(
    meta_daily: List[DailyAdInsight], ga4_daily: List[DailyEventCount]
) -> List[MergedDay]:
    """Join Meta days with GA4 event counts. Days without GA4 rows have cv 0."""
    ga4_by_date = {g.date: g.count for g in ga4_daily}
    merged = []
    for day in meta_daily:
        cv = ga4_by_date.get(day.date, 0)
        merged.append(
            MergedDay(
                date=day.date,
                spend=day.spend,
                clicks=day.clicks,
                impressions=day.impressions,
                cv=cv,
                cpa=round_half_up(day.spend / cv) if cv > 0 else 0,
                cvr=f"{cv / day.clicks * 100:.2f}" if day.clicks > 0 else 0,
            )
        )
    return sorted(merged, key=lambda m: m.date)


def compute_store_metrics(meta_totals: Dict[str, float], cv_count: int) -> StoreMetrics:
    spend = meta_totals.get("spend", 0)
    impressions = meta_totals.get("impressions", 0)
    clicks = meta_totals.get("clicks", 0)
    return StoreMetrics(
        spend=spend,
        impressions=impressions,
        clicks=clicks,
        cpa=round_half_up(spend / cv_count) if cv_count > 0 else 0,
        ctr=f"{clicks / impressions * 100:.2f}" if impressions > 0 else "0.00",
        cvr=f"{cv_count / clicks * 100:.2f}" if clicks > 0 else "0.00",
        cvCount=cv_count,
        cvEventName=RESERVATION_EVENT_LABEL,
    )
