"""WINQER — Store, Access and Settings Models.

Rows live in the managed Postgres database. Uniqueness constraints are the
only invariants; the database enforces them.
"""

import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field, UniqueConstraint


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, Enum):
    """Global role on a profile."""

    PROVIDER_ADMIN = "PROVIDER_ADMIN"
    CLIENT_ADMIN = "CLIENT_ADMIN"


class StoreRole(str, Enum):
    """Per-store role from an assignment row."""

    STORE_ADMIN = "STORE_ADMIN"
    STORE_VIEWER = "STORE_VIEWER"


class PlanType(str, Enum):
    FREE = "free"
    PRO = "pro"


class Store(SQLModel, table=True):
    """A business location and everything linked to it."""

    __tablename__ = "stores"

    id: str = Field(default_factory=_uuid, primary_key=True)
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    user_id: Optional[str] = Field(default=None, index=True, description="Owner")

    # ── Linked external IDs ──
    meta_campaign_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    meta_campaign_id: Optional[str] = None
    meta_campaign_name: Optional[str] = None
    meta_ad_account_id: Optional[str] = None
    meta_ad_account_name: Optional[str] = None
    ga4_property_id: Optional[str] = None
    ga4_property_name: Optional[str] = None
    gbp_location_id: Optional[str] = None
    gbp_location_name: Optional[str] = None

    # ── Tokens and per-store secrets (server-side only) ──
    meta_access_token: Optional[str] = None
    google_refresh_token: Optional[str] = None
    openai_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None

    # ── Analysis settings ──
    cv_event_name: Optional[str] = None
    target_audience: Optional[str] = None
    initial_budget: Optional[str] = None
    industry: Optional[str] = None

    # ── Plan / billing ──
    plan_type: PlanType = Field(default=PlanType.FREE, index=True)
    stripe_customer_id: Optional[str] = Field(default=None, index=True)
    stripe_subscription_id: Optional[str] = Field(default=None, index=True)
    usage_count: int = 0
    total_usage_count: int = 0
    last_usage_date: Optional[date] = None

    created_at: datetime = Field(default_factory=_now)


# Fields never returned to API callers.
STORE_SECRET_FIELDS = {
    "meta_access_token",
    "google_refresh_token",
    "openai_api_key",
    "gemini_api_key",
}


class UserProfile(SQLModel, table=True):
    """Mirror of an identity-provider user with a global role."""

    __tablename__ = "profiles"

    id: str = Field(primary_key=True, description="Auth user id")
    email: str = Field(index=True)
    role: UserRole = UserRole.CLIENT_ADMIN
    created_at: datetime = Field(default_factory=_now)


class StoreAssignment(SQLModel, table=True):
    """Grants a user a role on a store."""

    __tablename__ = "store_assignments"
    __table_args__ = (
        UniqueConstraint("user_id", "store_id", name="uq_store_assignment"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, foreign_key="profiles.id")
    store_id: str = Field(index=True, foreign_key="stores.id")
    role: StoreRole = StoreRole.STORE_ADMIN
    created_at: datetime = Field(default_factory=_now)


class UserSettings(SQLModel, table=True):
    """Per-user credentials entered on the settings page."""

    __tablename__ = "user_settings"

    user_id: str = Field(primary_key=True)
    meta_access_token: Optional[str] = None
    openai_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    updated_at: datetime = Field(default_factory=_now)


class Strategy(SQLModel, table=True):
    """Marketing strategy for a store: hearing input and generated output."""

    __tablename__ = "strategies"

    id: Optional[int] = Field(default=None, primary_key=True)
    store_id: str = Field(index=True, unique=True, foreign_key="stores.id")
    input_data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    output_data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
