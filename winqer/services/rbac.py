"""WINQER — Role Checks.

A provider admin sees every store as STORE_ADMIN. Anyone else reaches a
store by owning it or through a `store_assignments` row.
"""

from typing import List, Optional

from sqlmodel import Session, or_, select

from winqer.core.errors import ForbiddenError
from winqer.core.logging import get_logger
from winqer.models.store_models import (
    Store,
    StoreAssignment,
    StoreRole,
    UserProfile,
    UserRole,
)

logger = get_logger("services.rbac")

PROVIDER_REQUIRED = "Unauthorized: Provider Access Required"


def get_profile(session: Session, user_id: str) -> Optional[UserProfile]:
    return session.get(UserProfile, user_id)


def is_provider_admin(session: Session, user_id: str) -> bool:
    profile = get_profile(session, user_id)
    return profile is not None and profile.role == UserRole.PROVIDER_ADMIN


def verify_store_access(
    session: Session, user_id: str, store_id: str
) -> tuple[bool, Optional[StoreRole]]:
    """Return (has_access, role) for the user on the store."""
    if is_provider_admin(session, user_id):
        return True, StoreRole.STORE_ADMIN

    store = session.get(Store, store_id)
    if store is not None and store.user_id == user_id:
        return True, StoreRole.STORE_ADMIN

    assignment = session.exec(
        select(StoreAssignment).where(
            StoreAssignment.user_id == user_id,
            StoreAssignment.store_id == store_id,
        )
    ).first()
    if assignment is None:
        return False, None
    return True, assignment.role


def require_store_access(
    session: Session, user_id: str, store_id: str, admin: bool = False
) -> StoreRole:
    """Raise ForbiddenError unless the user can see (or administer) the store."""
    has_access, role = verify_store_access(session, user_id, store_id)
    if not has_access or (admin and role != StoreRole.STORE_ADMIN):
        logger.warning(
            "Store access denied",
            extra={"user_id": user_id, "store_id": store_id},
        )
        raise ForbiddenError()
    return role


def require_provider_admin(session: Session, user_id: str) -> None:
    if not is_provider_admin(session, user_id):
        raise ForbiddenError(PROVIDER_REQUIRED)


def get_assigned_stores(session: Session, user_id: str) -> List[Store]:
    """Stores visible to the user, newest first."""
    query = select(Store).order_by(Store.created_at.desc())
    if not is_provider_admin(session, user_id):
        assigned = select(StoreAssignment.store_id).where(
            StoreAssignment.user_id == user_id
        )
        query = query.where(or_(Store.user_id == user_id, Store.id.in_(assigned)))
    return list(session.exec(query).all())


def ensure_profile(session: Session, user_id: str, email: Optional[str]) -> UserProfile:
    """Profile for a signed-in user, created as CLIENT_ADMIN on first sight."""
    profile = get_profile(session, user_id)
    if profile is None:
        profile = UserProfile(id=user_id, email=email or "")
        session.add(profile)
        session.commit()
        session.refresh(profile)
        logger.info("Profile created", extra={"user_id": user_id})
    elif email and profile.email != email:
        profile.email = email
        session.add(profile)
        session.commit()
    return profile
