"""WINQER — Marketing Strategy (hearing sheet → AI strategy, persisted per store)."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from sqlmodel import Session, select

from winqer.ai.openai_provider import OpenAIProvider
from winqer.ai.prompts import STRATEGY_SYSTEM_PROMPT, build_strategy_prompt
from winqer.core.errors import ConfigurationError, NotFoundError
from winqer.core.logging import get_logger
from winqer.models.store_models import Store, Strategy
from winqer.services.rbac import require_store_access

logger = get_logger("services.strategy")


# ── Hearing sheet ──


class GoalInput(BaseModel):
    main_objective: str = ""
    monthly_new_customers: str = ""


class ProductInput(BaseModel):
    menu_name: str = ""
    price_first: str = ""
    price_normal: str = ""
    format: str = ""
    usage_type: str = ""


class ConstraintsInput(BaseModel):
    max_capacity: str = ""
    ng_conditions: List[str] = []
    unwanted_customer_types: str = ""


class CustomerVoiceInput(BaseModel):
    frequent_questions: str = ""
    pre_visit_anxieties: str = ""
    deciding_factors: str = ""
    refusal_reasons: str = ""


class ComparisonInput(BaseModel):
    competitors: List[str] = []
    differentiation_points: str = ""


class AssetsInput(BaseModel):
    available_assets: str = ""
    feasible_channels: List[str] = []
    writing_skill: str = ""


class BrandInput(BaseModel):
    ng_expressions: str = ""
    desired_image: str = ""


class StrategyInput(BaseModel):
    """The seven-part hearing sheet filled in by the store owner."""

    goal: GoalInput = GoalInput()
    product: ProductInput = ProductInput()
    constraints: ConstraintsInput = ConstraintsInput()
    customer_voice: CustomerVoiceInput = CustomerVoiceInput()
    comparison: ComparisonInput = ComparisonInput()
    assets: AssetsInput = AssetsInput()
    brand: BrandInput = BrandInput()


async def generate_strategy(
    hearing: StrategyInput, api_key: Optional[str] = None
) -> Dict[str, Any]:
    """Generate the strategy JSON (SWOT, STP, persona, media, funnel, posts)."""
    ai = OpenAIProvider(api_key)
    if not ai.is_available():
        raise ConfigurationError("OpenAI API Key is not configured.")
    result = await ai.generate_json(
        build_strategy_prompt(hearing.model_dump()), system=STRATEGY_SYSTEM_PROMPT
    )
    logger.info(f"Strategy generated with sections: {', '.join(sorted(result))}")
    return result


# ── Persistence ──


def load_strategy(session: Session, store_id: str) -> Optional[Strategy]:
    return session.exec(select(Strategy).where(Strategy.store_id == store_id)).first()


def get_strategy(session: Session, user_id: str, store_id: str) -> Optional[Strategy]:
    """The store's saved strategy, or None when none exists yet."""
    require_store_access(session, user_id, store_id)
    return load_strategy(session, store_id)


def save_strategy(
    session: Session,
    user_id: str,
    store_id: str,
    input_data: Dict[str, Any],
    output_data: Dict[str, Any],
) -> Strategy:
    """Upsert the store's strategy. Store admins only."""
    if session.get(Store, store_id) is None:
        raise NotFoundError("Store not found")
    require_store_access(session, user_id, store_id, admin=True)

    strategy = load_strategy(session, store_id) or Strategy(store_id=store_id)
    strategy.input_data = input_data
    strategy.output_data = output_data
    strategy.updated_at = datetime.now(timezone.utc)
    session.add(strategy)
    session.commit()
    session.refresh(strategy)
    logger.info("Strategy saved", extra={"store_id": store_id, "user_id": user_id})
    return strategy
