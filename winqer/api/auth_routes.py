"""WINQER — Auth Routes (Supabase sign-in, OAuth callback, session)."""

from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel
from sqlmodel import Session

from winqer.auth.dependencies import (
    ACCESS_TOKEN_COOKIE,
    CODE_VERIFIER_COOKIE,
    clear_session_cookies,
    get_current_user,
    get_identity,
    set_cookie,
    set_session_cookies,
)
from winqer.auth.supabase_auth import CurrentUser, SupabaseIdentity
from winqer.config import settings
from winqer.core.errors import WinqerError
from winqer.core.logging import get_logger
from winqer.database import get_session
from winqer.models.store_models import UserRole
from winqer.services.rbac import ensure_profile
from winqer.services.store_service import check_admin_status

logger = get_logger("api.auth")

router = APIRouter(prefix="/auth", tags=["Auth"])

DEFAULT_NEXT = "/dashboard"
CLIENT_HOME = "/dashboard/stores"
AUTH_ERROR_PATH = "/auth/auth-code-error"
CODE_VERIFIER_MAX_AGE = 10 * 60


class Credentials(BaseModel):
    email: str
    password: str


def _safe_next(next_path: Optional[str]) -> str:
    """Only same-site relative paths are followed."""
    if not next_path or not next_path.startswith("/") or next_path.startswith("//"):
        return DEFAULT_NEXT
    return next_path


@router.get("/login/google")
async def login_with_google(
    next: Optional[str] = None,
    identity: SupabaseIdentity = Depends(get_identity),
):
    """Start Google sign-in with Business Profile and Analytics scopes."""
    redirect_to = f"{settings.app_base_url}/auth/callback?next={quote(_safe_next(next))}"
    result = identity.google_sign_in_url(redirect_to)
    response = RedirectResponse(result["url"], status_code=302)
    if result["code_verifier"]:
        set_cookie(response, CODE_VERIFIER_COOKIE, result["code_verifier"], CODE_VERIFIER_MAX_AGE)
    return response


@router.get("/callback")
async def auth_callback(
    request: Request,
    code: Optional[str] = None,
    next: Optional[str] = None,
    identity: SupabaseIdentity = Depends(get_identity),
    session: Session = Depends(get_session),
):
    """Exchange the OAuth code, keep the tokens in cookies and redirect by role."""
    origin = settings.app_base_url
    if code:
        try:
            auth = identity.exchange_code_for_session(
                code, request.cookies.get(CODE_VERIFIER_COOKIE)
            )
        except WinqerError as e:
            logger.error(f"Auth Callback Error: {e.message}")
        else:
            profile = ensure_profile(session, auth.user.id, auth.user.email)
            redirect_path = _safe_next(next)
            if profile.role != UserRole.PROVIDER_ADMIN:
                redirect_path = CLIENT_HOME
            response = RedirectResponse(f"{origin}{redirect_path}", status_code=302)
            set_session_cookies(response, auth)
            response.delete_cookie(CODE_VERIFIER_COOKIE, path="/")
            return response

    return RedirectResponse(f"{origin}{AUTH_ERROR_PATH}", status_code=302)


@router.post("/login")
async def login(
    body: Credentials,
    identity: SupabaseIdentity = Depends(get_identity),
    session: Session = Depends(get_session),
):
    auth = identity.sign_in_with_password(body.email, body.password)
    ensure_profile(session, auth.user.id, auth.user.email)
    response = JSONResponse({"success": True, "user": auth.user.model_dump()})
    set_session_cookies(response, auth)
    return response


@router.post("/signup")
async def signup(
    body: Credentials,
    identity: SupabaseIdentity = Depends(get_identity),
    session: Session = Depends(get_session),
):
    """Register with email; confirmation may be required before a session exists."""
    auth = identity.sign_up(body.email, body.password, f"{settings.app_base_url}/auth/callback")
    if auth is None:
        return {"success": True, "confirmation_required": True}
    ensure_profile(session, auth.user.id, auth.user.email)
    response = JSONResponse(
        {"success": True, "confirmation_required": False, "user": auth.user.model_dump()}
    )
    set_session_cookies(response, auth)
    return response


@router.post("/logout")
async def logout(request: Request, identity: SupabaseIdentity = Depends(get_identity)):
    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if token:
        identity.sign_out(token)
    response = JSONResponse({"success": True})
    clear_session_cookies(response)
    return response


@router.get("/me")
async def me(
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """The signed-in user and their global role."""
    ensure_profile(session, user.id, user.email)
    return {"success": True, "user": user.model_dump(), **check_admin_status(session, user.id, user.email)}
