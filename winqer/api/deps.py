"""WINQER — Shared Route Dependencies."""

from fastapi import Depends
from sqlmodel import Session

from winqer.auth.dependencies import get_current_user
from winqer.auth.supabase_auth import CurrentUser
from winqer.database import get_session
from winqer.models.store_models import Store
from winqer.services.analysis_service import AnalysisService
from winqer.services.dashboard_service import DashboardService
from winqer.services.store_service import get_store


def get_dashboard_service(session: Session = Depends(get_session)) -> DashboardService:
    return DashboardService(session)


def get_analysis_service(session: Session = Depends(get_session)) -> AnalysisService:
    return AnalysisService(session)


def get_accessible_store(
    store_id: str,
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> Store:
    """The path's store, when the caller may see it."""
    return get_store(session, user.id, store_id)
