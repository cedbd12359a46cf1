"""
Stripe billing endpoints: checkout, customer portal and webhooks.
"""
import logging
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import CurrentUser, get_current_user
from app.core import tiers
from app.core.errors import NotFound, ValidationFailed
from app.core.timeutils import from_unix
from app.crud import subscription as subscription_crud
from app.db.session import get_db
from app.schemas.billing import (
    CheckoutRequest,
    CheckoutResponse,
    CreditCheckoutRequest,
    PortalSessionResponse,
    SubscriptionOut,
    SubscriptionResponse,
    WebhookResponse,
)
from app.services.stripe_service import StripeService, get_stripe_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/stripe",
    tags=["billing"],
)


def _get(obj: Any, *path) -> Any:
    """Nested lookup that works on dicts and Stripe objects, None when absent."""
    for key in path:
        if obj is None:
            return None
        try:
            obj = obj[key]
        except (KeyError, IndexError, TypeError):
            return None
    return obj


def _as_uuid(value: Optional[str]) -> Optional[UUID]:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        logger.warning(f"[BILLING] Ignoring malformed userId metadata: {value}")
        return None


async def _customer_for(
    db: AsyncSession, stripe_service: StripeService, current_user: CurrentUser
) -> str:
    """Reuse the user's Stripe customer or create one and remember it."""
    subscription = await subscription_crud.get_subscription(db, current_user.id)
    if subscription_crud.has_stripe_customer(subscription):
        return subscription.stripe_customer_id

    customer_id = await stripe_service.create_customer(current_user.email, str(current_user.id))
    if subscription is not None:
        subscription.stripe_customer_id = customer_id
        await db.flush()
    await db.commit()
    return customer_id


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    request_data: CheckoutRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
):
    """
    Start a subscription checkout for one of the paid tiers.

    Raises:
        ValidationFailed 400: If the price does not belong to a known tier
    """
    tier = tiers.tier_for_price_id(request_data.priceId)
    if tier is None:
        raise ValidationFailed("Invalid price ID")

    customer_id = await _customer_for(db, stripe_service, current_user)
    session = await stripe_service.create_subscription_checkout(customer_id, request_data.priceId, str(current_user.id))
    logger.info(f"[BILLING] Checkout for tier {tier} started by user {current_user.id}")
    return CheckoutResponse(url=session["url"], sessionId=session["id"])


@router.post("/credits/checkout", response_model=CheckoutResponse)
async def create_credit_checkout(
    request_data: CreditCheckoutRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
):
    package = tiers.CREDIT_PACKAGES.get(request_data.packageId)
    if package is None:
        raise ValidationFailed("Invalid credit package")
    if not package.price_id:
        raise ValidationFailed("Credit package is not available")

    customer_id = await _customer_for(db, stripe_service, current_user)
    session = await stripe_service.create_credit_checkout(
        customer_id, package.price_id, str(current_user.id), package.package_id, package.credits
    )
    return CheckoutResponse(url=session["url"], sessionId=session["id"])


@router.post("/portal", response_model=PortalSessionResponse)
async def create_portal_session(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
):
    subscription = await subscription_crud.get_subscription(db, current_user.id)
    if not subscription_crud.has_stripe_customer(subscription):
        raise NotFound("No billing account found")
    url = await stripe_service.create_portal_session(subscription.stripe_customer_id)
    return PortalSessionResponse(url=url)


@router.get("/subscription", response_model=SubscriptionResponse)
async def get_subscription(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    subscription = await subscription_crud.get_subscription(db, current_user.id)
    if subscription is None:
        return SubscriptionResponse(subscription=None, message="No subscription")
    return SubscriptionResponse(subscription=SubscriptionOut.model_validate(subscription))


# --- Webhooks ---

async def _sync_subscription(db: AsyncSession, user_id: UUID, sub: Any) -> None:
    period_start = _get(sub, "current_period_start") or _get(sub, "items", "data", 0, "current_period_start")
    period_end = _get(sub, "current_period_end") or _get(sub, "items", "data", 0, "current_period_end")
    await subscription_crud.upsert_from_stripe(
        db,
        user_id=user_id,
        customer_id=_get(sub, "customer"),
        stripe_subscription_id=_get(sub, "id"),
        price_id=_get(sub, "items", "data", 0, "price", "id"),
        status=_get(sub, "status") or "active",
        period_start=from_unix(period_start),
        period_end=from_unix(period_end),
        cancel_at_period_end=bool(_get(sub, "cancel_at_period_end")),
    )


async def _user_for_customer(db: AsyncSession, customer_id: Optional[str]) -> Optional[UUID]:
    if not customer_id:
        return None
    subscription = await subscription_crud.get_subscription_by_customer(db, customer_id)
    return subscription.user_id if subscription else None


async def _handle_checkout_completed(db: AsyncSession, stripe_service: StripeService, session: Any) -> None:
    user_id = _as_uuid(_get(session, "metadata", "userId"))
    if user_id is None:
        logger.warning(f"[BILLING] Checkout session {_get(session, 'id')} has no userId")
        return

    if _get(session, "metadata", "type") == "credit_purchase":
        credits = int(_get(session, "metadata", "credits") or 0)
        updated = await subscription_crud.add_purchased_credits(db, user_id, credits)
        logger.info(f"[BILLING] Added {credits} purchased credits for user {user_id} ({updated} rows)")
        return

    subscription_id = _get(session, "subscription")
    if subscription_id:
        sub = await stripe_service.retrieve_subscription(subscription_id)
        await _sync_subscription(db, user_id, sub)
        logger.info(f"[BILLING] Subscription {subscription_id} activated for user {user_id}")


async def _handle_subscription_changed(db: AsyncSession, sub: Any) -> None:
    user_id = _as_uuid(_get(sub, "metadata", "userId"))
    if user_id is None:
        user_id = await _user_for_customer(db, _get(sub, "customer"))
    if user_id is None:
        logger.warning(f"[BILLING] No user for subscription {_get(sub, 'id')}")
        return
    await _sync_subscription(db, user_id, sub)


async def _handle_invoice_paid(db: AsyncSession, invoice: Any) -> None:
    subscription = await subscription_crud.get_subscription_by_customer(db, _get(invoice, "customer"))
    if subscription is None:
        logger.warning(f"[BILLING] Paid invoice {_get(invoice, 'id')} for unknown customer")
        return
    await subscription_crud.add_billing_record(
        db,
        user_id=subscription.user_id,
        subscription_id=subscription.id,
        invoice_id=_get(invoice, "id"),
        amount_cents=_get(invoice, "amount_paid") or 0,
        currency=_get(invoice, "currency") or "usd",
        status="paid",
        invoice_url=_get(invoice, "hosted_invoice_url"),
        invoice_pdf=_get(invoice, "invoice_pdf"),
    )


@router.post("/webhook", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    db: AsyncSession = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
):
    """
    Handle Stripe webhook events.

    Raises:
        ValidationFailed 400: If the signature is missing or invalid
    """
    payload = await request.body()
    event = stripe_service.construct_event(payload, stripe_signature)
    event_type = event.get("type")
    obj = _get(event, "data", "object") or {}
    logger.info(f"[BILLING] Webhook received: {event_type} ({event.get('id')})")

    if event_type == "checkout.session.completed":
        await _handle_checkout_completed(db, stripe_service, obj)
    elif event_type in ("customer.subscription.created", "customer.subscription.updated"):
        await _handle_subscription_changed(db, obj)
    elif event_type == "customer.subscription.deleted":
        await subscription_crud.set_status_by_stripe_subscription(db, _get(obj, "id"), "canceled")
    elif event_type == "invoice.paid":
        await _handle_invoice_paid(db, obj)
    elif event_type == "invoice.payment_failed":
        subscription_id = _get(obj, "subscription")
        if subscription_id:
            await subscription_crud.set_status_by_stripe_subscription(db, subscription_id, "past_due")
    elif event_type == "customer.subscription.trial_will_end":
        logger.info(f"[BILLING] Trial ending soon for subscription {_get(obj, 'id')}")
    else:
        logger.debug(f"[BILLING] Ignoring webhook {event_type}")

    await db.commit()
    return WebhookResponse(type=event_type)
