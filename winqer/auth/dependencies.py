"""WINQER — Auth Dependencies and Session Cookies."""

from typing import Optional

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from winqer.auth.supabase_auth import AuthSession, CurrentUser, SupabaseIdentity
from winqer.config import settings
from winqer.core.errors import UnauthorizedError
from winqer.core.logging import get_logger

logger = get_logger("auth")

security = HTTPBearer(auto_error=False)

ACCESS_TOKEN_COOKIE = "sb-access-token"
CODE_VERIFIER_COOKIE = "sb-code-verifier"
GOOGLE_ACCESS_COOKIE = "google_access_token"
GOOGLE_REFRESH_COOKIE = "google_refresh_token"

GOOGLE_ACCESS_MAX_AGE = 60 * 60  # 1 hour
GOOGLE_REFRESH_MAX_AGE = 60 * 60 * 24 * 30  # 30 days


def get_identity() -> SupabaseIdentity:
    return SupabaseIdentity()


def _token_from(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(ACCESS_TOKEN_COOKIE)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    identity: SupabaseIdentity = Depends(get_identity),
) -> CurrentUser:
    """Bearer header or `sb-access-token` cookie, verified with Supabase."""
    token = _token_from(request, credentials)
    if not token:
        raise UnauthorizedError()
    return identity.get_user(token)


def get_google_token(request: Request) -> Optional[str]:
    """Google access token left by the OAuth callback, if any."""
    return request.cookies.get(GOOGLE_ACCESS_COOKIE)


def set_cookie(response: Response, name: str, value: str, max_age: int) -> None:
    response.set_cookie(
        name,
        value,
        max_age=max_age,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )


def set_session_cookies(response: Response, auth: AuthSession) -> None:
    """Store the app session and any Google provider tokens."""
    set_cookie(response, ACCESS_TOKEN_COOKIE, auth.access_token, auth.expires_in)
    if auth.provider_token:
        set_cookie(response, GOOGLE_ACCESS_COOKIE, auth.provider_token, GOOGLE_ACCESS_MAX_AGE)
    if auth.provider_refresh_token:
        logger.info("Saving Google Refresh Token to Cookie", extra={"user_id": auth.user.id})
        set_cookie(
            response, GOOGLE_REFRESH_COOKIE, auth.provider_refresh_token, GOOGLE_REFRESH_MAX_AGE
        )


def clear_session_cookies(response: Response) -> None:
    for name in (ACCESS_TOKEN_COOKIE, CODE_VERIFIER_COOKIE, GOOGLE_ACCESS_COOKIE, GOOGLE_REFRESH_COOKIE):
        response.delete_cookie(name, path="/")
