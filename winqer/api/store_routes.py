"""WINQER — Store Routes (list, onboard, settings, secrets, usage)."""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from winqer.api.deps import get_accessible_store
from winqer.auth.dependencies import get_current_user
from winqer.auth.supabase_auth import CurrentUser
from winqer.database import get_session
from winqer.models.store_models import Store
from winqer.services import store_service
from winqer.services.billing import usage_status

router = APIRouter(prefix="/stores", tags=["Stores"])


class StoreFields(BaseModel):
    """Editable store settings. Unset fields are left alone."""

    name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    meta_campaign_ids: Optional[List[str]] = None
    meta_campaign_id: Optional[str] = None
    meta_campaign_name: Optional[str] = None
    meta_ad_account_id: Optional[str] = None
    meta_ad_account_name: Optional[str] = None
    ga4_property_id: Optional[str] = None
    ga4_property_name: Optional[str] = None
    gbp_location_id: Optional[str] = None
    gbp_location_name: Optional[str] = None
    cv_event_name: Optional[str] = None
    target_audience: Optional[str] = None
    initial_budget: Optional[str] = None
    industry: Optional[str] = None


class StoreCreate(StoreFields):
    name: str
    meta_access_token: Optional[str] = None
    openai_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None


class StoreSecrets(BaseModel):
    """Write-only credentials; null leaves a value, empty string clears it."""

    gemini_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    meta_access_token: Optional[str] = None
    meta_ad_account_id: Optional[str] = None
    meta_campaign_id: Optional[str] = None
    ga4_property_id: Optional[str] = None
    gbp_location_id: Optional[str] = None


@router.get("")
async def list_stores(
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    stores = store_service.list_stores(session, user.id)
    return {"success": True, "stores": [store_service.store_to_public(s) for s in stores]}


@router.post("")
async def create_store(
    body: StoreCreate,
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    store = store_service.create_store(session, user.id, body.model_dump(exclude_none=True))
    return {"success": True, "store": store_service.store_to_public(store)}


@router.get("/{store_id}")
async def get_store(store: Store = Depends(get_accessible_store)):
    return {"success": True, "store": store_service.store_to_public(store)}


@router.patch("/{store_id}")
async def update_store(
    store_id: str,
    body: StoreFields,
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    store = store_service.update_store(
        session, user.id, store_id, body.model_dump(exclude_unset=True)
    )
    return {"success": True, "store": store_service.store_to_public(store)}


@router.put("/{store_id}/secrets")
async def update_store_secrets(
    store_id: str,
    body: StoreSecrets,
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    updated = store_service.update_store_secrets(session, user.id, store_id, body.model_dump())
    return {"success": True, "updated": updated}


@router.get("/{store_id}/usage")
async def get_usage(store: Store = Depends(get_accessible_store)):
    return {"success": True, **usage_status(store)}
