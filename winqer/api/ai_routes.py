"""WINQER — AI Analysis & Creative Routes."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from winqer.api.deps import get_accessible_store, get_analysis_service
from winqer.auth.dependencies import get_current_user, get_google_token
from winqer.auth.supabase_auth import CurrentUser
from winqer.core.logging import get_logger
from winqer.database import get_session
from winqer.models.store_models import Store
from winqer.services import creative_service
from winqer.services.analysis_service import (
    DEFAULT_CV_LABEL,
    DEFAULT_GA4_CV_EVENT,
    AnalysisContext,
    AnalysisService,
)
from winqer.services.api_keys import resolve_google_access_token
from winqer.services.billing import consume_usage, require_usage_available

logger = get_logger("api.ai")

router = APIRouter(prefix="/stores/{store_id}/ai", tags=["AI"])


# ── Request Models ──


class StoreAnalysisRequest(BaseModel):
    """Operator context for the store analysis. Blank fields read as unset."""

    provider: str = "openai"
    api_key: Optional[str] = None
    industry: Optional[str] = None
    region: Optional[str] = None
    ad_format: Optional[str] = None
    ad_objective: Optional[str] = None
    target_audience: Optional[str] = None
    remarks: Optional[str] = None
    cv_label: Optional[str] = None
    ga4_cv_event: Optional[str] = None


class CampaignAnalysisRequest(BaseModel):
    objective: str = ""
    provider: str = "openai"
    api_key: Optional[str] = None


class CreativeRequest(BaseModel):
    analysis: str
    store_url: Optional[str] = None
    reference_image: Optional[str] = None
    api_key: Optional[str] = None


class InstagramPostRequest(BaseModel):
    topic: str
    tone: Optional[str] = None
    image: Optional[str] = None
    api_key: Optional[str] = None


# ── Endpoints ──


@router.post("/analysis")
async def analyze_store(
    body: StoreAnalysisRequest,
    store: Store = Depends(get_accessible_store),
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
    google_cookie: Optional[str] = Depends(get_google_token),
    service: AnalysisService = Depends(get_analysis_service),
):
    """Narrative analysis of the store's ads and site. Counts against the plan once it succeeds."""
    require_usage_available(store)
    context = AnalysisContext(
        industry=body.industry or store.industry,
        region=body.region,
        ad_format=body.ad_format,
        ad_objective=body.ad_objective,
        target_audience=body.target_audience or store.target_audience,
        remarks=body.remarks,
        cv_label=body.cv_label or DEFAULT_CV_LABEL,
        ga4_cv_event=body.ga4_cv_event or store.cv_event_name or DEFAULT_GA4_CV_EVENT,
    )
    google_token = await resolve_google_access_token(store, google_cookie)
    result = await service.analyze_store(
        user.id, store, google_token, context, body.api_key, body.provider
    )
    consume_usage(session, store)
    return result


@router.post("/campaign-analysis")
async def analyze_campaign(
    body: CampaignAnalysisRequest,
    store: Store = Depends(get_accessible_store),
    user: CurrentUser = Depends(get_current_user),
    service: AnalysisService = Depends(get_analysis_service),
):
    result = await service.review_campaign(
        user.id, store, body.objective, body.api_key, body.provider
    )
    return {"success": True, **result}


@router.post("/creative")
async def generate_creative(
    body: CreativeRequest,
    store: Store = Depends(get_accessible_store),
    session: Session = Depends(get_session),
):
    """New ad copy and a DALL-E image from an analysis. Counts against the plan once it succeeds."""
    require_usage_available(store)
    creative = await creative_service.generate_creative(
        body.analysis,
        body.store_url,
        body.reference_image,
        body.api_key or store.openai_api_key,
    )
    consume_usage(session, store)
    return {"success": True, "creative": creative}


@router.post("/banner-prompt")
async def generate_banner_prompt(
    body: CreativeRequest,
    store: Store = Depends(get_accessible_store),
):
    result = await creative_service.generate_banner_prompt(
        body.analysis,
        body.store_url,
        body.reference_image,
        body.api_key or store.gemini_api_key,
    )
    return {"success": True, **result}


@router.post("/instagram-post")
async def generate_instagram_post(
    body: InstagramPostRequest,
    store: Store = Depends(get_accessible_store),
    session: Session = Depends(get_session),
):
    captions = await creative_service.generate_instagram_post(
        session, store, body.topic, body.tone, body.image, body.api_key
    )
    return {"success": True, "captions": captions}
