"""WINQER — Meta API Routes."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from winqer.api.deps import get_accessible_store, get_dashboard_service
from winqer.auth.dependencies import get_current_user
from winqer.auth.supabase_auth import CurrentUser
from winqer.connectors.meta.client import MetaClient
from winqer.core.errors import ValidationError
from winqer.core.logging import get_logger
from winqer.database import get_session
from winqer.models.store_models import Store
from winqer.services.api_keys import resolve_meta_token
from winqer.services.dashboard_service import DashboardService

logger = get_logger("api.meta")

router = APIRouter(prefix="/meta", tags=["Meta"])

TOKEN_NOT_CONFIGURED = "Meta Access Token not configured"


def _user_client(session: Session, user: CurrentUser) -> MetaClient:
    token = resolve_meta_token(session, user.id)
    if not token:
        raise ValidationError(TOKEN_NOT_CONFIGURED)
    return MetaClient(token)


@router.get("/validate-token")
async def validate_token(
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Check the user's saved Meta token.

    Returns validity status, expiration, and granted scopes.
    """
    async with _user_client(session, user) as client:
        result = await client.validate_token()
    return {"success": True, **result}


@router.get("/ad-accounts")
async def ad_accounts(
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    async with _user_client(session, user) as client:
        accounts = await client.get_ad_accounts()
    return {"success": True, "accounts": accounts}


@router.get("/campaigns")
async def campaigns(
    ad_account_id: str,
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    async with _user_client(session, user) as client:
        result = await client.get_campaigns(ad_account_id)
    return {"success": True, "campaigns": result}


@router.get("/stores/{store_id}/ad-accounts")
async def store_ad_accounts(
    store: Store = Depends(get_accessible_store),
    service: DashboardService = Depends(get_dashboard_service),
):
    """Ad accounts reachable with the store's own token."""
    accounts = await service.get_store_meta_ad_accounts(store)
    return {"success": True, "accounts": accounts}


@router.get("/stores/{store_id}/campaigns")
async def store_campaigns(
    ad_account_id: str,
    store: Store = Depends(get_accessible_store),
    service: DashboardService = Depends(get_dashboard_service),
):
    result = await service.get_store_meta_campaigns(store, ad_account_id)
    return {"success": True, "campaigns": result}
