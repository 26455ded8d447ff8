"""WINQER — Marketing Strategy Routes."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from winqer.api.deps import get_accessible_store
from winqer.auth.dependencies import get_current_user
from winqer.auth.supabase_auth import CurrentUser
from winqer.database import get_session
from winqer.models.store_models import Store, Strategy
from winqer.services import strategy_service
from winqer.services.strategy_service import StrategyInput

router = APIRouter(prefix="/stores/{store_id}/strategy", tags=["Strategy"])


class GenerateStrategyRequest(StrategyInput):
    api_key: Optional[str] = None


class SaveStrategyRequest(BaseModel):
    input_data: Dict[str, Any]
    output_data: Dict[str, Any]


def _to_public(strategy: Strategy) -> Dict[str, Any]:
    return {
        "store_id": strategy.store_id,
        "input_data": strategy.input_data,
        "output_data": strategy.output_data,
        "updated_at": strategy.updated_at.isoformat() if strategy.updated_at else None,
    }


@router.post("/generate")
async def generate_strategy(
    body: GenerateStrategyRequest,
    store: Store = Depends(get_accessible_store),
):
    """Draft a strategy from the hearing sheet. Nothing is saved."""
    hearing = StrategyInput.model_validate(body.model_dump(exclude={"api_key"}))
    strategy = await strategy_service.generate_strategy(
        hearing, body.api_key or store.openai_api_key
    )
    return {"success": True, "strategy": strategy}


@router.get("")
async def get_strategy(
    store_id: str,
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    strategy = strategy_service.get_strategy(session, user.id, store_id)
    return {"success": True, "strategy": _to_public(strategy) if strategy else None}


@router.put("")
async def save_strategy(
    store_id: str,
    body: SaveStrategyRequest,
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    strategy = strategy_service.save_strategy(
        session, user.id, store_id, body.input_data, body.output_data
    )
    return {"success": True, "strategy": _to_public(strategy)}
