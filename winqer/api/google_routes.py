"""WINQER — Google Routes (Business Profile and GA4)."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from winqer.analyzer.store_metrics import parse_date, resolve_date_range
from winqer.api.deps import get_accessible_store, get_dashboard_service
from winqer.auth.dependencies import get_current_user, get_google_token
from winqer.auth.supabase_auth import CurrentUser
from winqer.connectors.google.client import GoogleApiClient
from winqer.core.errors import ValidationError
from winqer.database import get_session
from winqer.models.store_models import Store
from winqer.services.api_keys import resolve_google_access_token
from winqer.services.dashboard_service import DashboardService
from winqer.services.rbac import require_store_access
from winqer.services.store_service import get_store

router = APIRouter(prefix="/google", tags=["Google"])

GOOGLE_TOKEN_MISSING = "Google access token not found. Please sign in with Google."
LOCATION_MISSING = "Google Business Profile location is not set for this store"


class ReviewReply(BaseModel):
    review_name: str
    comment: str


async def _client_for(store: Optional[Store], cookie_token: Optional[str]) -> GoogleApiClient:
    token = await resolve_google_access_token(store, cookie_token)
    if not token:
        raise ValidationError(GOOGLE_TOKEN_MISSING)
    return GoogleApiClient(token)


@router.get("/locations")
async def locations(
    user: CurrentUser = Depends(get_current_user),
    google_cookie: Optional[str] = Depends(get_google_token),
):
    """Locations reachable with the signed-in user's Google token."""
    async with await _client_for(None, google_cookie) as google:
        result = await google.get_locations()
    return {"success": True, "locations": result}


@router.get("/properties")
async def properties(
    user: CurrentUser = Depends(get_current_user),
    google_cookie: Optional[str] = Depends(get_google_token),
):
    async with await _client_for(None, google_cookie) as google:
        result = await google.get_ga4_properties()
    return {"success": True, "properties": [p.model_dump() for p in result]}


@router.get("/stores/{store_id}/data")
async def store_google_data(
    store: Store = Depends(get_accessible_store),
    service: DashboardService = Depends(get_dashboard_service),
):
    """GBP locations and GA4 properties reachable with the store's refresh token."""
    return {"success": True, **await service.get_store_google_data(store)}


@router.get("/stores/{store_id}/insights")
async def store_gbp_insights(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    store: Store = Depends(get_accessible_store),
    google_cookie: Optional[str] = Depends(get_google_token),
):
    if not store.gbp_location_id:
        raise ValidationError(LOCATION_MISSING)
    start, end = resolve_date_range(start_date, end_date)
    async with await _client_for(store, google_cookie) as google:
        insights = await google.get_insights(
            store.gbp_location_id, parse_date(start), parse_date(end)
        )
    return {"success": True, "insights": insights.model_dump()}


@router.get("/stores/{store_id}/reviews")
async def store_reviews(
    store: Store = Depends(get_accessible_store),
    google_cookie: Optional[str] = Depends(get_google_token),
):
    if not store.gbp_location_id:
        raise ValidationError(LOCATION_MISSING)
    async with await _client_for(store, google_cookie) as google:
        result = await google.get_reviews(store.gbp_location_id)
    return {"success": True, **result}


@router.put("/stores/{store_id}/reviews/reply")
async def reply_to_review(
    store_id: str,
    body: ReviewReply,
    user: CurrentUser = Depends(get_current_user),
    session=Depends(get_session),
    google_cookie: Optional[str] = Depends(get_google_token),
):
    """Reply to a review as the business. Store admins only."""
    store = get_store(session, user.id, store_id)
    require_store_access(session, user.id, store_id, admin=True)
    async with await _client_for(store, google_cookie) as google:
        reply = await google.reply_to_review(body.review_name, body.comment)
    return {"success": True, "reply": reply}
