"""WINQER — Stripe Billing Routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel
from sqlmodel import Session

from winqer.auth.dependencies import get_current_user
from winqer.auth.supabase_auth import CurrentUser
from winqer.config import settings
from winqer.database import get_session
from winqer.services import billing
from winqer.services.store_service import get_store

router = APIRouter(prefix="/billing", tags=["Billing"])


class CheckoutRequest(BaseModel):
    store_id: str
    price_id: Optional[str] = None


@router.post("/checkout")
async def create_checkout(
    body: CheckoutRequest,
    origin: Optional[str] = Header(default=None),
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Start a Pro subscription checkout for a store the caller can see."""
    store = get_store(session, user.id, body.store_id)
    url = billing.create_checkout_session(store, body.price_id, origin or settings.app_base_url)
    return {"success": True, "url": url}


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None),
    session: Session = Depends(get_session),
):
    """Stripe event receiver. Authenticated by signature, not by session."""
    payload = await request.body()
    return billing.handle_webhook(session, payload, stripe_signature)
