"""WINQER — Per-User API Keys and Token Resolution."""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from sqlmodel import Session

from winqer.connectors.google.client import GoogleAPIError, refresh_google_access_token
from winqer.core.errors import ConfigurationError, ValidationError
from winqer.core.logging import get_logger
from winqer.models.store_models import Store, UserSettings

logger = get_logger("services.api_keys")


class KeyKind(str, Enum):
    """Credential slots on the settings page, mapped to UserSettings columns."""

    GEMINI = "gemini_api_key"
    OPENAI = "openai_api_key"
    META = "meta_access_token"


def save_key(session: Session, user_id: str, kind: KeyKind, value: str) -> None:
    if not value or not value.strip():
        label = "Token" if kind == KeyKind.META else "API Key"
        raise ValidationError(f"{label} cannot be empty")

    row = session.get(UserSettings, user_id) or UserSettings(user_id=user_id)
    setattr(row, kind.value, value.strip())
    row.updated_at = datetime.now(timezone.utc)
    session.add(row)
    session.commit()
    logger.info(f"Saved {kind.value}", extra={"user_id": user_id})


def get_user_key(session: Session, user_id: str, kind: KeyKind) -> Optional[str]:
    row = session.get(UserSettings, user_id)
    if row is None:
        return None
    return getattr(row, kind.value) or None


def get_key_status(session: Session, user_id: str, kind: KeyKind) -> Dict[str, object]:
    """Whether a key is saved, and its last four characters."""
    value = get_user_key(session, user_id, kind)
    return {"has_api_key": bool(value), "last4": value[-4:] if value else None}


def resolve_meta_token(session: Session, user_id: str, store: Optional[Store] = None) -> Optional[str]:
    """Store token first, then the user's own setting."""
    if store is not None and store.meta_access_token:
        return store.meta_access_token
    return get_user_key(session, user_id, KeyKind.META)


async def resolve_google_access_token(
    store: Optional[Store], cookie_token: Optional[str] = None
) -> Optional[str]:
    """Refresh the store's Google token, falling back to the session cookie."""
    if store is not None and store.google_refresh_token:
        try:
            refreshed = await refresh_google_access_token(store.google_refresh_token)
        except (GoogleAPIError, ConfigurationError) as e:
            logger.warning(
                f"Google token refresh failed, using cookie token: {e.message}",
                extra={"store_id": store.id},
            )
        else:
            return refreshed["access_token"]
    return cookie_token
