"""WINQER — Provider Admin Routes."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from winqer.auth.dependencies import get_current_user
from winqer.auth.supabase_auth import CurrentUser
from winqer.core.errors import ValidationError
from winqer.database import get_session
from winqer.models.store_models import StoreRole
from winqer.services import store_service

router = APIRouter(prefix="/admin", tags=["Admin"])


class AdminStoreCreate(BaseModel):
    name: str
    industry: Optional[str] = None


class AssignmentRequest(BaseModel):
    """Assign by user id or by profile email."""

    user_id: Optional[str] = None
    email: Optional[str] = None
    role: StoreRole = StoreRole.STORE_ADMIN


@router.get("/status")
async def admin_status(
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return {"success": True, **store_service.check_admin_status(session, user.id, user.email)}


@router.post("/stores")
async def create_store(
    body: AdminStoreCreate,
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    store = store_service.admin_create_store(session, user.id, body.name, body.industry)
    return {"success": True, "store": store_service.store_to_public(store)}


@router.delete("/stores/{store_id}")
async def delete_store(
    store_id: str,
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    store_service.delete_store(session, user.id, store_id)
    return {"success": True}


@router.get("/stores/{store_id}/assignments")
async def list_assignments(
    store_id: str,
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    assignments = store_service.get_store_assignments(session, user.id, store_id)
    return {"success": True, "assignments": assignments}


@router.post("/stores/{store_id}/assignments")
async def assign_user(
    store_id: str,
    body: AssignmentRequest,
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    if body.user_id:
        assignment = store_service.assign_user_to_store(
            session, user.id, body.user_id, store_id, body.role
        )
    elif body.email:
        assignment = store_service.assign_user_by_email(
            session, user.id, body.email, store_id, body.role
        )
    else:
        raise ValidationError("user_id or email is required")
    return {
        "success": True,
        "assignment": {
            "user_id": assignment.user_id,
            "store_id": assignment.store_id,
            "role": assignment.role.value,
        },
    }


@router.delete("/stores/{store_id}/assignments/{target_user_id}")
async def remove_assignment(
    store_id: str,
    target_user_id: str,
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    store_service.remove_user_from_store(session, user.id, target_user_id, store_id)
    return {"success": True}
