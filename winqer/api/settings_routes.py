"""WINQER — Per-user API Key Settings Routes."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from winqer.auth.dependencies import get_current_user
from winqer.auth.supabase_auth import CurrentUser
from winqer.core.errors import NotFoundError
from winqer.database import get_session
from winqer.services import api_keys
from winqer.services.api_keys import KeyKind

router = APIRouter(prefix="/settings", tags=["Settings"])

KINDS = {
    "gemini": KeyKind.GEMINI,
    "openai": KeyKind.OPENAI,
    "meta": KeyKind.META,
}


class SaveKeyRequest(BaseModel):
    value: str


def _kind(name: str) -> KeyKind:
    if name not in KINDS:
        raise NotFoundError(f"Unknown key type: {name}")
    return KINDS[name]


@router.get("/keys")
async def key_statuses(
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Saved-or-not for every slot. Values are never returned."""
    return {
        "success": True,
        "keys": {
            name: api_keys.get_key_status(session, user.id, kind) for name, kind in KINDS.items()
        },
    }


@router.get("/keys/{name}")
async def key_status(
    name: str,
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return {"success": True, **api_keys.get_key_status(session, user.id, _kind(name))}


@router.put("/keys/{name}")
async def save_key(
    name: str,
    body: SaveKeyRequest,
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    api_keys.save_key(session, user.id, _kind(name), body.value)
    return {"success": True}
