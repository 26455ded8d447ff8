"""WINQER — Supabase Auth Wrapper.

Thin layer over supabase-py's auth client. The service is stateless, so
each identity object owns a fresh client with in-memory storage; the PKCE
code verifier created by an OAuth sign-in is handed back to the caller
(who keeps it in a cookie) and passed in again on the code exchange.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel
from supabase import AuthError, Client, ClientOptions, create_client
from supabase_auth import SyncMemoryStorage

from winqer.config import settings
from winqer.core.errors import ConfigurationError, UnauthorizedError, ValidationError
from winqer.core.logging import get_logger

logger = get_logger("auth.supabase")

GOOGLE_SCOPES = (
    "https://www.googleapis.com/auth/business.manage "
    "https://www.googleapis.com/auth/analytics.readonly"
)
CODE_VERIFIER_SUFFIX = "-code-verifier"


class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None


class AuthSession(BaseModel):
    """Tokens produced by a successful sign-in or code exchange."""

    user: CurrentUser
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: int = 3600
    provider_token: Optional[str] = None
    provider_refresh_token: Optional[str] = None


def _to_session(response: Any) -> AuthSession:
    session, user = response.session, response.user
    if session is None or user is None:
        raise UnauthorizedError("No session returned")
    return AuthSession(
        user=CurrentUser(id=str(user.id), email=user.email),
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_in=session.expires_in or 3600,
        provider_token=session.provider_token,
        provider_refresh_token=session.provider_refresh_token,
    )


class SupabaseIdentity:
    """Supabase Auth operations used by the API."""

    def __init__(self, client: Optional[Client] = None):
        self.storage = SyncMemoryStorage()
        if client is None:
            if not settings.supabase_url or not settings.supabase_anon_key:
                raise ConfigurationError("Supabase URL or anon key is not configured")
            client = create_client(
                settings.supabase_url,
                settings.supabase_anon_key,
                options=ClientOptions(
                    storage=self.storage,
                    flow_type="pkce",
                    auto_refresh_token=False,
                    persist_session=False,
                ),
            )
        self.client = client

    def _code_verifier(self) -> Optional[str]:
        for key, value in self.storage.storage.items():
            if key.endswith(CODE_VERIFIER_SUFFIX):
                return value
        return None

    # ── OAuth ──

    def google_sign_in_url(self, redirect_to: str) -> Dict[str, Optional[str]]:
        """Google OAuth URL with offline access, plus the PKCE verifier."""
        response = self.client.auth.sign_in_with_oauth(
            {
                "provider": "google",
                "options": {
                    "redirect_to": redirect_to,
                    "scopes": GOOGLE_SCOPES,
                    "query_params": {"access_type": "offline", "prompt": "consent"},
                },
            }
        )
        return {"url": response.url, "code_verifier": self._code_verifier()}

    def exchange_code_for_session(
        self, code: str, code_verifier: Optional[str] = None
    ) -> AuthSession:
        params: Dict[str, Any] = {"auth_code": code}
        if code_verifier:
            params["code_verifier"] = code_verifier
        try:
            response = self.client.auth.exchange_code_for_session(params)
        except AuthError as e:
            logger.error(f"Auth Callback Error: {e.message}")
            raise UnauthorizedError(e.message) from e
        return _to_session(response)

    # ── Tokens ──

    def get_user(self, access_token: str) -> CurrentUser:
        try:
            response = self.client.auth.get_user(access_token)
        except AuthError as e:
            raise UnauthorizedError(e.message) from e
        if response is None or response.user is None:
            raise UnauthorizedError()
        return CurrentUser(id=str(response.user.id), email=response.user.email)

    # ── Email / password ──

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        try:
            response = self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except AuthError as e:
            raise UnauthorizedError(e.message) from e
        return _to_session(response)

    def sign_up(self, email: str, password: str, redirect_to: Optional[str] = None) -> Optional[AuthSession]:
        """Register a user. Returns None while email confirmation is pending."""
        credentials: Dict[str, Any] = {"email": email, "password": password}
        if redirect_to:
            credentials["options"] = {"email_redirect_to": redirect_to}
        try:
            response = self.client.auth.sign_up(credentials)
        except AuthError as e:
            raise ValidationError(e.message) from e
        if response.session is None:
            return None
        return _to_session(response)

    def sign_out(self, access_token: str) -> None:
        """Revoke the session server-side when a service role key is configured."""
        if not settings.supabase_service_role_key:
            return
        admin = create_client(settings.supabase_url, settings.supabase_service_role_key)
        try:
            admin.auth.admin.sign_out(access_token)
        except AuthError as e:
            logger.warning(f"Sign-out failed: {e.message}")
