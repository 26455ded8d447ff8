"""WINQER — Store Dashboard Routes."""

import time
from typing import Optional

from fastapi import APIRouter, Depends

from winqer.api.deps import get_accessible_store, get_dashboard_service
from winqer.auth.dependencies import get_current_user, get_google_token
from winqer.auth.supabase_auth import CurrentUser
from winqer.core.logging import get_logger
from winqer.models.store_models import Store
from winqer.services.api_keys import resolve_google_access_token
from winqer.services.dashboard_service import DashboardService

logger = get_logger("api.dashboard")

router = APIRouter(prefix="/stores/{store_id}", tags=["Dashboard"])


@router.get("/metrics")
async def store_metrics(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    store: Store = Depends(get_accessible_store),
    user: CurrentUser = Depends(get_current_user),
    google_cookie: Optional[str] = Depends(get_google_token),
    service: DashboardService = Depends(get_dashboard_service),
):
    """Headline metrics and the merged daily series for the range."""
    start = time.monotonic()
    google_token = await resolve_google_access_token(store, google_cookie)
    result = await service.get_store_metrics(user.id, store, google_token, start_date, end_date)
    logger.info(
        "Store metrics served",
        extra={
            "endpoint": "/metrics",
            "store_id": store.id,
            "duration_ms": round((time.monotonic() - start) * 1000),
        },
    )
    return {"success": True, **result}


@router.get("/chart-data")
async def store_chart_data(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    store: Store = Depends(get_accessible_store),
    user: CurrentUser = Depends(get_current_user),
    google_cookie: Optional[str] = Depends(get_google_token),
    service: DashboardService = Depends(get_dashboard_service),
):
    """Chart-ready series for the current period against the previous one."""
    google_token = await resolve_google_access_token(store, google_cookie)
    data = await service.get_store_chart_data(user.id, store, google_token, start_date, end_date)
    return {"success": True, "data": data.model_dump()}


@router.get("/ads")
async def scored_ads(
    store: Store = Depends(get_accessible_store),
    user: CurrentUser = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service),
):
    """The store's ads, each with its winner analysis."""
    ads = await service.score_store_ads(user.id, store)
    return {"success": True, "ads": [ad.model_dump() for ad in ads]}
