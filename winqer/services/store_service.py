"""WINQER — Store Management.

Owner-level CRUD for stores, provider-admin operations (create, delete,
assign users) and write-only secret updates.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import delete
from sqlmodel import Session, select

from winqer.core.errors import NotFoundError, ValidationError
from winqer.core.logging import get_logger
from winqer.models.cache_models import DailyAnalyticsCache
from winqer.models.store_models import (
    STORE_SECRET_FIELDS,
    Store,
    StoreAssignment,
    StoreRole,
    Strategy,
    UserProfile,
)
from winqer.services.rbac import (
    get_assigned_stores,
    get_profile,
    is_provider_admin,
    require_provider_admin,
    require_store_access,
)

logger = get_logger("services.store")

# Fields a store admin may edit through the regular settings form
EDITABLE_FIELDS = {
    "name",
    "address",
    "phone",
    "meta_campaign_ids",
    "meta_campaign_id",
    "meta_campaign_name",
    "meta_ad_account_id",
    "meta_ad_account_name",
    "ga4_property_id",
    "ga4_property_name",
    "gbp_location_id",
    "gbp_location_name",
    "cv_event_name",
    "target_audience",
    "initial_budget",
    "industry",
}

# Write-only: applied when present, never echoed back
SECRET_UPDATE_FIELDS = {
    "gemini_api_key",
    "openai_api_key",
    "meta_access_token",
    "meta_ad_account_id",
    "meta_campaign_id",
    "ga4_property_id",
    "gbp_location_id",
}


def store_to_public(store: Store) -> Dict[str, Any]:
    """Store as returned to API callers: secrets replaced by has_* flags."""
    data = store.model_dump(mode="json", exclude=STORE_SECRET_FIELDS)
    for field in sorted(STORE_SECRET_FIELDS):
        data[f"has_{field}"] = bool(getattr(store, field))
    return data


def _load(session: Session, store_id: str) -> Store:
    store = session.get(Store, store_id)
    if store is None:
        raise NotFoundError("Store not found")
    return store


def _apply(store: Store, updates: Dict[str, Any], allowed: set[str]) -> List[str]:
    unknown = set(updates) - allowed
    if unknown:
        raise ValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}")
    if "name" in updates and not (updates["name"] or "").strip():
        raise ValidationError("Store name is required")
    if "meta_campaign_ids" in updates and updates["meta_campaign_ids"] is None:
        raise ValidationError("meta_campaign_ids cannot be null")
    for key, value in updates.items():
        setattr(store, key, value)
    return sorted(updates)


# ── Owner / member operations ──


def get_store(session: Session, user_id: str, store_id: str) -> Store:
    store = _load(session, store_id)
    require_store_access(session, user_id, store_id)
    return store


def list_stores(session: Session, user_id: str) -> List[Store]:
    return get_assigned_stores(session, user_id)


def create_store(session: Session, user_id: str, data: Dict[str, Any]) -> Store:
    """Onboard a store owned by the caller."""
    if not data.get("name"):
        raise ValidationError("Store name is required")
    store = Store(user_id=user_id)
    _apply(store, data, EDITABLE_FIELDS | SECRET_UPDATE_FIELDS)
    session.add(store)
    session.commit()
    session.refresh(store)
    logger.info("Store created", extra={"store_id": store.id, "user_id": user_id})
    return store


def update_store(
    session: Session, user_id: str, store_id: str, data: Dict[str, Any]
) -> Store:
    store = _load(session, store_id)
    require_store_access(session, user_id, store_id, admin=True)
    fields = _apply(store, data, EDITABLE_FIELDS)
    session.add(store)
    session.commit()
    session.refresh(store)
    logger.info(
        f"Store updated: {', '.join(fields) or 'no fields'}",
        extra={"store_id": store_id, "user_id": user_id},
    )
    return store


def update_store_secrets(
    session: Session, user_id: str, store_id: str, secrets: Dict[str, Any]
) -> List[str]:
    """Write only the keys explicitly provided; an empty string clears."""
    store = _load(session, store_id)
    require_store_access(session, user_id, store_id, admin=True)

    updates = {k: (v or None) for k, v in secrets.items() if v is not None}
    fields = _apply(store, updates, SECRET_UPDATE_FIELDS)
    session.add(store)
    session.commit()
    logger.info(
        f"Store secrets updated: {', '.join(fields)}",
        extra={"store_id": store_id, "user_id": user_id},
    )
    return fields


# ── Provider admin operations ──


def check_admin_status(
    session: Session, user_id: str, email: Optional[str] = None
) -> Dict[str, Any]:
    profile = get_profile(session, user_id)
    return {
        "isAdmin": is_provider_admin(session, user_id),
        "email": (profile.email if profile else None) or email,
        "role": profile.role.value if profile else None,
    }


def admin_create_store(
    session: Session, user_id: str, name: str, industry: Optional[str] = None
) -> Store:
    require_provider_admin(session, user_id)
    if not name:
        raise ValidationError("Store name is required")
    store = Store(name=name, industry=industry)
    session.add(store)
    session.commit()
    session.refresh(store)
    logger.info("Store created by provider", extra={"store_id": store.id, "user_id": user_id})
    return store


def delete_store(session: Session, user_id: str, store_id: str) -> None:
    """Delete a store and every row that hangs off it."""
    require_provider_admin(session, user_id)
    store = _load(session, store_id)
    session.execute(delete(StoreAssignment).where(StoreAssignment.store_id == store_id))
    session.execute(delete(Strategy).where(Strategy.store_id == store_id))
    session.execute(delete(DailyAnalyticsCache).where(DailyAnalyticsCache.store_id == store_id))
    session.delete(store)
    session.commit()
    logger.info("Store deleted", extra={"store_id": store_id, "user_id": user_id})


def assign_user_to_store(
    session: Session,
    user_id: str,
    target_user_id: str,
    store_id: str,
    role: StoreRole = StoreRole.STORE_ADMIN,
) -> StoreAssignment:
    """Create or update the target user's role on the store."""
    require_provider_admin(session, user_id)
    _load(session, store_id)
    if get_profile(session, target_user_id) is None:
        raise NotFoundError("ユーザーが見つかりません (プロフィールが存在しません)")

    assignment = session.exec(
        select(StoreAssignment).where(
            StoreAssignment.user_id == target_user_id,
            StoreAssignment.store_id == store_id,
        )
    ).first()
    if assignment:
        assignment.role = role
    else:
        assignment = StoreAssignment(user_id=target_user_id, store_id=store_id, role=role)
    session.add(assignment)
    session.commit()
    session.refresh(assignment)
    logger.info(
        f"Assigned {target_user_id} as {role.value}",
        extra={"store_id": store_id, "user_id": user_id},
    )
    return assignment


def assign_user_by_email(
    session: Session,
    user_id: str,
    email: str,
    store_id: str,
    role: StoreRole = StoreRole.STORE_ADMIN,
) -> StoreAssignment:
    require_provider_admin(session, user_id)
    profile = session.exec(select(UserProfile).where(UserProfile.email == email)).first()
    if profile is None:
        raise NotFoundError("ユーザーが見つかりません (プロフィールが存在しません)")
    return assign_user_to_store(session, user_id, profile.id, store_id, role)


def remove_user_from_store(
    session: Session, user_id: str, target_user_id: str, store_id: str
) -> None:
    require_provider_admin(session, user_id)
    session.execute(
        delete(StoreAssignment).where(
            StoreAssignment.user_id == target_user_id,
            StoreAssignment.store_id == store_id,
        )
    )
    session.commit()


def get_store_assignments(
    session: Session, user_id: str, store_id: str
) -> List[Dict[str, Any]]:
    """Assignments for the store, flattened with the member's email."""
    require_provider_admin(session, user_id)
    rows = session.exec(
        select(StoreAssignment, UserProfile)
        .join(UserProfile, UserProfile.id == StoreAssignment.user_id, isouter=True)
        .where(StoreAssignment.store_id == store_id)
    ).all()
    return [
        {
            "user_id": assignment.user_id,
            "store_id": assignment.store_id,
            "role": assignment.role.value,
            "email": profile.email if profile else "Unknown",
        }
        for assignment, profile in rows
    ]
