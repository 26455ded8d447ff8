"""Pytest configuration for WINQER tests

Shared fixtures: an in-memory database per test, seeded users and stores,
and a TestClient whose auth and session dependencies are overridden.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("OPENAI_API_KEY", "")
os.environ.setdefault("GEMINI_API_KEY", "")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import winqer.models.cache_models  # noqa: F401
from winqer.auth.dependencies import get_current_user, get_identity
from winqer.auth.supabase_auth import CurrentUser
from winqer.database import get_session
from winqer.models.store_models import (
    Store,
    StoreAssignment,
    StoreRole,
    UserProfile,
    UserRole,
)

OWNER_ID = "user-owner"
VIEWER_ID = "user-viewer"
PROVIDER_ID = "user-provider"
STRANGER_ID = "user-stranger"


@pytest.fixture
def anyio_backend():
    return "asyncio"


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def profiles(session):
    """One user per global role, plus a store viewer and an outsider."""
    rows = [
        UserProfile(id=OWNER_ID, email="owner@example.com", role=UserRole.CLIENT_ADMIN),
        UserProfile(id=VIEWER_ID, email="viewer@example.com", role=UserRole.CLIENT_ADMIN),
        UserProfile(id=PROVIDER_ID, email="provider@example.com", role=UserRole.PROVIDER_ADMIN),
        UserProfile(id=STRANGER_ID, email="stranger@example.com", role=UserRole.CLIENT_ADMIN),
    ]
    for row in rows:
        session.add(row)
    session.commit()
    return rows


@pytest.fixture
def store(session, profiles):
    """A store owned by OWNER_ID with VIEWER_ID assigned as a viewer."""
    store = Store(
        name="渋谷店",
        user_id=OWNER_ID,
        industry="美容室",
        meta_ad_account_id="act_123",
        meta_campaign_id="cmp-1",
        meta_access_token="store-meta-token",
        openai_api_key="sk-store-key",
    )
    session.add(store)
    session.commit()
    session.refresh(store)
    session.add(
        StoreAssignment(user_id=VIEWER_ID, store_id=store.id, role=StoreRole.STORE_VIEWER)
    )
    session.commit()
    return store


# ============================================================================
# Application & Client Fixtures
# ============================================================================


class FakeIdentity:
    """Stands in for SupabaseIdentity; never reaches the network."""

    def get_user(self, token):
        return CurrentUser(id=token, email=f"{token}@example.com")

    def sign_out(self, token):
        return None


@pytest.fixture
def current_user():
    """Mutable holder so a test can switch the signed-in user."""
    return {"user": CurrentUser(id=OWNER_ID, email="owner@example.com")}


@pytest.fixture
def client(session, current_user):
    from winqer.main import app

    def _session():
        yield session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_current_user] = lambda: current_user["user"]
    app.dependency_overrides[get_identity] = lambda: FakeIdentity()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def act_as(current_user):
    """Switch the signed-in user: `act_as(PROVIDER_ID)`."""

    def _act_as(user_id):
        current_user["user"] = CurrentUser(id=user_id, email=f"{user_id}@example.com")

    return _act_as
