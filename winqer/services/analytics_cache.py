"""WINQER — Daily Analytics Cache.

Per-day platform metrics stored in `daily_analytics_cache`. Rows inside the
volatile window (the last few days, which the platforms still revise) are
served only while fresh; older rows are final.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from winqer.analyzer.store_metrics import parse_date, report_today
from winqer.config import settings
from winqer.core.logging import get_logger
from winqer.models.cache_models import CachePlatform, DailyAnalyticsCache

logger = get_logger("services.analytics_cache")

CACHE_TTL_MINUTES = settings.cache_ttl_minutes
VOLATILE_WINDOW_DAYS = settings.volatile_window_days
SCOPE_KEY = "_scope"


def is_cache_valid(updated_at: datetime, now: Optional[datetime] = None) -> bool:
    """Fresh iff younger than the TTL."""
    now = now or datetime.now(timezone.utc)
    if updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=timezone.utc)
    return now - updated_at < timedelta(minutes=CACHE_TTL_MINUTES)


def is_day_servable(
    row: DailyAnalyticsCache,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
) -> bool:
    today = today or report_today(now)
    if parse_date(row.date) < today - timedelta(days=VOLATILE_WINDOW_DAYS):
        return True
    return is_cache_valid(row.updated_at, now)


def get_cached_analytics(
    session: Session,
    store_id: str,
    start_date: str,
    end_date: str,
    platform: CachePlatform,
) -> Dict[str, DailyAnalyticsCache]:
    """Map of date -> cached row. Read failures yield an empty map."""
    try:
        rows = session.exec(
            select(DailyAnalyticsCache).where(
                DailyAnalyticsCache.store_id == store_id,
                DailyAnalyticsCache.platform == platform,
                DailyAnalyticsCache.date >= start_date,
                DailyAnalyticsCache.date <= end_date,
            )
        ).all()
    except SQLAlchemyError as e:
        logger.error(f"Cache fetch error: {e}", extra={"store_id": store_id})
        return {}
    return {row.date: row for row in rows}


def upsert_analytics_cache(
    session: Session,
    store_id: str,
    platform: CachePlatform,
    metrics: List[Dict[str, Any]],
) -> int:
    """Insert or overwrite `[{date, data}]` rows; returns the number written."""
    if not metrics:
        return 0

    now = datetime.now(timezone.utc)
    try:
        for item in metrics:
            existing = session.exec(
                select(DailyAnalyticsCache).where(
                    DailyAnalyticsCache.store_id == store_id,
                    DailyAnalyticsCache.date == item["date"],
                    DailyAnalyticsCache.platform == platform,
                )
            ).first()
            if existing:
                existing.metrics = item["data"]
                existing.updated_at = now
                session.add(existing)
            else:
                session.add(
                    DailyAnalyticsCache(
                        store_id=store_id,
                        date=item["date"],
                        platform=platform,
                        metrics=item["data"],
                        updated_at=now,
                    )
                )
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(
            f"Cache upsert error: {e}",
            extra={"store_id": store_id, "platform": platform.value},
        )
        return 0

    logger.info(
        f"Cached {len(metrics)} day(s)",
        extra={"store_id": store_id, "platform": platform.value},
    )
    return len(metrics)


def _days(start_date: str, end_date: str) -> List[str]:
    start, end = parse_date(start_date), parse_date(end_date)
    return [(start + timedelta(days=i)).isoformat() for i in range((end - start).days + 1)]


async def read_through(
    session: Session,
    store_id: str,
    platform: CachePlatform,
    start_date: str,
    end_date: str,
    fetch: Callable[[], Awaitable[List[Dict[str, Any]]]],
    scope: str = "",
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Daily rows for the range, from cache when every day is servable.

    `fetch` returns dicts that each carry a `date` key; they are cached
    with `scope` (e.g. the campaign or event the numbers belong to) and
    returned in date order. Rows cached under another scope count as misses.
    """
    cached = get_cached_analytics(session, store_id, start_date, end_date, platform)
    today = report_today(now)
    days = _days(start_date, end_date)

    def _hit(day: str) -> bool:
        row = cached.get(day)
        return (
            row is not None
            and isinstance(row.metrics, dict)
            and row.metrics.get(SCOPE_KEY, "") == scope
            and is_day_servable(row, today, now)
        )

    if cached and all(_hit(day) for day in days):
        logger.info(
            f"Cache hit {start_date}..{end_date}",
            extra={"store_id": store_id, "platform": platform.value},
        )
        return [
            {k: v for k, v in cached[day].metrics.items() if k != SCOPE_KEY}
            for day in days
        ]

    rows = await fetch()
    upsert_analytics_cache(
        session,
        store_id,
        platform,
        [{"date": row["date"], "data": {**row, SCOPE_KEY: scope}} for row in rows],
    )
    return sorted(rows, key=lambda r: r["date"])
