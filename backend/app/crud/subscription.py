"""
CRUD operations for subscriptions, usage counters and billing history.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import tiers
from app.core.errors import Forbidden
from app.core.timeutils import ensure_aware, utcnow
from app.db.models.billing import BillingHistory, Subscription

logger = logging.getLogger(__name__)

SELF_MANAGED_PREFIXES = ("trial_", "freemium_")


def has_stripe_customer(subscription: Optional[Subscription]) -> bool:
    """True when the row points at a real Stripe customer, not a placeholder."""
    if subscription is None or not subscription.stripe_customer_id:
        return False
    return not subscription.stripe_customer_id.startswith(SELF_MANAGED_PREFIXES)


def is_active(subscription: Optional[Subscription]) -> bool:
    return subscription is not None and subscription.subscription_status in tiers.ACTIVE_STATUSES


def ensure_active(subscription: Optional[Subscription]) -> Subscription:
    """
    Raises:
        Forbidden: If there is no subscription or it is not active or trialing
    """
    if subscription is None:
        raise Forbidden("No active subscription found")
    if not is_active(subscription):
        raise Forbidden(
            "Your subscription is not active",
            extra={"subscriptionStatus": subscription.subscription_status},
        )
    return subscription


def apply_tier_limits(subscription: Subscription, tier: str) -> None:
    limits = tiers.get_tier_limits(tier)
    subscription.subscription_tier = tier
    subscription.max_clients = limits.max_clients
    subscription.max_posts_per_month = limits.max_posts_per_month
    subscription.max_ai_credits_per_month = limits.max_ai_credits_per_month


async def get_subscription(db: AsyncSession, user_id: UUID) -> Optional[Subscription]:
    """
    Get a user's subscription.

    Args:
        db: Database session
        user_id: Supabase user id

    Returns:
        Optional[Subscription]: The subscription row, None if the user has none
    """
    result = await db.execute(
        select(Subscription)
        .where(Subscription.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_subscription_by_customer(db: AsyncSession, customer_id: str) -> Optional[Subscription]:
    result = await db.execute(select(Subscription).where(Subscription.stripe_customer_id == customer_id))
    return result.scalar_one_or_none()


async def create_self_managed(db: AsyncSession, user_id: UUID, tier: str) -> Subscription:
    """
    Create a subscription that has no Stripe objects behind it.

    ``tier`` is either ``trial`` (14 days, marked as a self-managed trial) or
    ``freemium`` (open ended).
    """
    now = utcnow()
    subscription = Subscription(
        user_id=user_id,
        current_period_start=now,
        usage_reset_date=now,
        clients_used=0,
        posts_used_this_month=0,
        ai_credits_used_this_month=0,
        ai_credits_purchased=0,
        cancel_at_period_end=False,
    )
    apply_tier_limits(subscription, tier)

    if tier == tiers.TRIAL:
        subscription.stripe_customer_id = f"trial_{user_id}"
        subscription.subscription_status = "trialing"
        subscription.current_period_end = now + timedelta(days=tiers.TRIAL_DAYS)
        subscription.is_self_managed_trial = True
        subscription.subscription_metadata = {
            "created_via": "trial_signup",
            "trial_type": "14_day_no_cc",
        }
    else:
        subscription.stripe_customer_id = f"freemium_{user_id}"
        subscription.subscription_status = "active"
        subscription.current_period_end = None
        subscription.is_self_managed_trial = False
        subscription.subscription_metadata = {"created_via": "freemium_signup"}

    db.add(subscription)
    await db.flush()
    await db.refresh(subscription)
    return subscription


async def upsert_from_stripe(
    db: AsyncSession,
    user_id: UUID,
    customer_id: Optional[str],
    stripe_subscription_id: Optional[str],
    price_id: Optional[str],
    status: str,
    period_start: Optional[datetime],
    period_end: Optional[datetime],
    cancel_at_period_end: bool = False,
) -> Subscription:
    """
    Create or update a user's subscription from Stripe data.

    A known price sets the tier and its limits. Converting a self-managed
    trial clears the trial flag.
    """
    subscription = await get_subscription(db, user_id)
    if subscription is None:
        subscription = Subscription(user_id=user_id, usage_reset_date=utcnow(), subscription_metadata={})
        apply_tier_limits(subscription, tiers.FREEMIUM)
        db.add(subscription)

    tier = tiers.tier_for_price_id(price_id)
    if tier is not None:
        apply_tier_limits(subscription, tier)
    elif price_id:
        logger.warning(f"[BILLING] Unknown Stripe price {price_id} for user {user_id}; keeping tier")

    if customer_id:
        subscription.stripe_customer_id = customer_id
    subscription.stripe_subscription_id = stripe_subscription_id
    subscription.stripe_price_id = price_id
    subscription.subscription_status = status
    subscription.current_period_start = period_start
    subscription.current_period_end = period_end
    subscription.cancel_at_period_end = cancel_at_period_end
    subscription.is_self_managed_trial = False

    await db.flush()
    await db.refresh(subscription)
    return subscription


async def set_status_by_stripe_subscription(
    db: AsyncSession, stripe_subscription_id: str, status: str
) -> int:
    """
    Set the status of the row behind a Stripe subscription.

    A canceled subscription has no pending cancellation left, so
    ``cancel_at_period_end`` is cleared with it.
    """
    values: Dict[str, Any] = {"subscription_status": status, "updated_at": utcnow()}
    if status == "canceled":
        values["cancel_at_period_end"] = False
    result = await db.execute(
        update(Subscription)
        .where(Subscription.stripe_subscription_id == stripe_subscription_id)
        .values(**values)
    )
    return result.rowcount


async def add_purchased_credits(db: AsyncSession, user_id: UUID, credits: int) -> int:
    """
    Add purchased AI credits in a single UPDATE.

    Returns:
        int: Number of subscription rows updated (0 if the user has none)
    """
    result = await db.execute(
        update(Subscription)
        .where(Subscription.user_id == user_id)
        .values(
            ai_credits_purchased=Subscription.ai_credits_purchased + credits,
            updated_at=utcnow(),
        )
    )
    return result.rowcount


async def add_billing_record(
    db: AsyncSession,
    user_id: UUID,
    subscription_id: Optional[UUID],
    invoice_id: str,
    amount_cents: int,
    currency: str,
    status: str,
    invoice_url: Optional[str] = None,
    invoice_pdf: Optional[str] = None,
) -> BillingHistory:
    existing = await db.execute(select(BillingHistory).where(BillingHistory.stripe_invoice_id == invoice_id))
    record = existing.scalar_one_or_none()
    if record is None:
        record = BillingHistory(user_id=user_id, subscription_id=subscription_id, stripe_invoice_id=invoice_id)
        db.add(record)
    record.amount = Decimal(amount_cents) / 100
    record.currency = (currency or "usd")[:3]
    record.status = status
    record.invoice_url = invoice_url
    record.invoice_pdf = invoice_pdf
    await db.flush()
    return record


async def increment_clients_used(db: AsyncSession, user_id: UUID, delta: int) -> None:
    """Adjust ``clients_used``, never going below zero."""
    subscription = await get_subscription(db, user_id)
    if subscription is None:
        return
    subscription.clients_used = max((subscription.clients_used or 0) + delta, 0)
    await db.flush()


async def consume_post_quota(db: AsyncSession, user_id: UUID) -> bool:
    """
    Count one scheduled post against the monthly quota.

    Single conditional UPDATE; unlimited plans always succeed.

    Returns:
        bool: False if the quota is exhausted, the subscription is not active
        or trialing, or the user has no subscription
    """
    result = await db.execute(
        update(Subscription)
        .where(
            Subscription.user_id == user_id,
            Subscription.subscription_status.in_(tiers.ACTIVE_STATUSES),
            (Subscription.max_posts_per_month == tiers.UNLIMITED)
            | (Subscription.posts_used_this_month < Subscription.max_posts_per_month),
        )
        .values(posts_used_this_month=Subscription.posts_used_this_month + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def find_expired_trials(db: AsyncSession, now: Optional[datetime] = None) -> List[Subscription]:
    """
    Self-managed trials whose period has ended.
    """
    now = now or utcnow()
    result = await db.execute(
        select(Subscription).where(
            Subscription.is_self_managed_trial.is_(True),
            Subscription.subscription_tier == tiers.TRIAL,
            Subscription.subscription_status == "trialing",
            Subscription.current_period_end < now,
        )
    )
    return list(result.scalars().all())


async def downgrade_trial(db: AsyncSession, subscription: Subscription, now: Optional[datetime] = None) -> None:
    """
    Downgrade an expired trial to freemium and record when it happened.
    """
    now = now or utcnow()
    previous_end = ensure_aware(subscription.current_period_end)
    metadata: Dict[str, Any] = dict(subscription.subscription_metadata or {})
    metadata.update({
        "trial_expired_at": now.isoformat(),
        "downgraded_from": tiers.TRIAL,
        "previous_trial_end": previous_end.isoformat() if previous_end else None,
    })

    apply_tier_limits(subscription, tiers.FREEMIUM)
    subscription.subscription_status = "active"
    subscription.is_self_managed_trial = False
    subscription.subscription_metadata = metadata
    await db.flush()


async def reset_monthly_usage(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """
    Zero the monthly counters of subscriptions whose last reset is over a month old.

    Returns:
        int: Number of subscriptions reset
    """
    now = now or utcnow()
    cutoff = now - timedelta(days=30)
    result = await db.execute(
        update(Subscription)
        .where((Subscription.usage_reset_date.is_(None)) | (Subscription.usage_reset_date < cutoff))
        .values(posts_used_this_month=0, ai_credits_used_this_month=0, usage_reset_date=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
