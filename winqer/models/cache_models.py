"""WINQER — Daily Analytics Cache Model."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field, UniqueConstraint


class CachePlatform(str, Enum):
    GA4 = "ga4"
    META = "meta"


class DailyAnalyticsCache(SQLModel, table=True):
    """One day of platform metrics for a store.

    Unique on (store_id, date, platform); the last upsert wins.
    """

    __tablename__ = "daily_analytics_cache"
    __table_args__ = (
        UniqueConstraint(
            "store_id", "date", "platform", name="uq_daily_analytics_cache"
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    store_id: str = Field(index=True)
    date: str = Field(index=True, description="YYYY-MM-DD")
    platform: CachePlatform = Field(index=True)
    metrics: Any = Field(default=None, sa_column=Column(JSON))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
