"""WINQER — Plans, Usage Limits and Stripe Billing.

Free stores get a lifetime allowance of AI generations; Pro stores get a
daily allowance that resets on the first use of a new (JST) day. Upgrades
and cancellations arrive through the Stripe webhook.
"""

from datetime import date
from typing import Any, Dict, Optional

import stripe
from sqlmodel import Session, select

from winqer.analyzer.store_metrics import report_today
from winqer.config import settings
from winqer.core.errors import ConfigurationError, QuotaExceededError, ValidationError, WinqerError
from winqer.core.logging import get_logger
from winqer.models.store_models import PlanType, Store

logger = get_logger("services.billing")

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"


# ── Usage ──


def _limit(store: Store) -> int:
    if store.plan_type == PlanType.PRO:
        return settings.pro_daily_usage_limit
    return settings.free_usage_limit


def _current_usage(store: Store, today: date) -> int:
    if store.plan_type == PlanType.PRO:
        return store.usage_count if store.last_usage_date == today else 0
    return store.total_usage_count


def usage_status(store: Store, today: Optional[date] = None) -> Dict[str, Any]:
    """Plan, usage against the limit, and whether another use is allowed."""
    today = today or report_today()
    used = _current_usage(store, today)
    limit = _limit(store)
    return {
        "plan_type": store.plan_type.value,
        "usage": used,
        "limit": limit,
        "period": "daily" if store.plan_type == PlanType.PRO else "lifetime",
        "remaining": max(limit - used, 0),
        "can_use": used < limit,
    }


def require_usage_available(store: Store, today: Optional[date] = None) -> Dict[str, Any]:
    """Raise QuotaExceededError when the store has no generation left."""
    status = usage_status(store, today)
    if not status["can_use"]:
        if store.plan_type == PlanType.PRO:
            message = f"本日の利用上限（{status['limit']}回）に達しました。明日また利用できます。"
        else:
            message = (
                f"無料プランの利用上限（{status['limit']}回）に達しました。"
                "Proプランにアップグレードしてください。"
            )
        logger.info("Usage limit reached", extra={"store_id": store.id})
        raise QuotaExceededError(message)
    return status


def consume_usage(session: Session, store: Store, today: Optional[date] = None) -> Dict[str, Any]:
    """Record one completed AI generation, or raise QuotaExceededError at the limit."""
    today = today or report_today()
    require_usage_available(store, today)

    if store.last_usage_date != today:
        store.usage_count = 0
    store.usage_count += 1
    store.total_usage_count += 1
    store.last_usage_date = today
    session.add(store)
    session.commit()
    session.refresh(store)
    return usage_status(store, today)


# ── Stripe ──


def _require_stripe_key() -> str:
    if not settings.stripe_secret_key:
        raise ConfigurationError("Stripe Secret Key is missing")
    return settings.stripe_secret_key


def create_checkout_session(store: Store, price_id: Optional[str], origin: str) -> str:
    """Subscription checkout for the store; returns the hosted page URL."""
    api_key = _require_stripe_key()
    price_id = price_id or settings.stripe_price_id
    if not price_id:
        raise ValidationError("Missing storeId or priceId")

    store_url = f"{origin.rstrip('/')}/dashboard/stores/{store.id}"
    try:
        checkout = stripe.checkout.Session.create(
            api_key=api_key,
            mode="subscription",
            payment_method_types=["card"],
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=f"{store_url}?upgrade=success",
            cancel_url=f"{store_url}?upgrade=cancel",
            client_reference_id=store.id,
            subscription_data={"metadata": {"storeId": store.id}},
            metadata={"storeId": store.id},
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe Checkout Error: {e}", extra={"store_id": store.id})
        raise WinqerError(str(e) or "Internal Server Error") from e
    return checkout["url"]


def _upgrade(session: Session, obj: Dict[str, Any]) -> None:
    store_id = obj.get("client_reference_id")
    if not store_id:
        return
    store = session.get(Store, store_id)
    if store is None:
        logger.warning("Checkout completed for unknown store", extra={"store_id": store_id})
        return
    store.plan_type = PlanType.PRO
    store.stripe_customer_id = obj.get("customer")
    store.stripe_subscription_id = obj.get("subscription")
    store.usage_count = 0
    store.last_usage_date = report_today()
    session.add(store)
    session.commit()
    logger.info("Store upgraded to PRO via checkout", extra={"store_id": store_id})


def _downgrade(session: Session, obj: Dict[str, Any]) -> None:
    subscription_id = obj.get("id")
    if not subscription_id:
        return
    stores = session.exec(
        select(Store).where(Store.stripe_subscription_id == subscription_id)
    ).all()
    for store in stores:
        store.plan_type = PlanType.FREE
        store.stripe_subscription_id = None
        session.add(store)
        logger.info("Store downgraded to FREE via subscription deletion", extra={"store_id": store.id})
    session.commit()


def handle_webhook(session: Session, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
    """Verify and apply a Stripe event. Unhandled event types are acknowledged."""
    if not settings.stripe_webhook_secret:
        raise ConfigurationError("Stripe webhook secret is missing")
    try:
        event = stripe.Webhook.construct_event(
            payload, signature or "", settings.stripe_webhook_secret
        )
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise ValidationError("Webhook Error") from e

    event_type = event["type"]
    obj = event["data"]["object"]
    if isinstance(obj, stripe.StripeObject):
        obj = obj.to_dict()
    if event_type == CHECKOUT_COMPLETED:
        _upgrade(session, obj)
    elif event_type == SUBSCRIPTION_DELETED:
        _downgrade(session, obj)
    else:
        logger.info(f"Ignoring Stripe event {event_type}")
    return {"received": True}
