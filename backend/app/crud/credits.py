"""
AI credit accounting.

Credits come from the monthly allowance first and from purchased credits
once the allowance is used up. Each deduction is one conditional UPDATE, so
two concurrent requests cannot spend the same credit.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import tiers
from app.core.errors import Forbidden, InsufficientCredits
from app.core.timeutils import utcnow
from app.db.models.billing import AICreditUsage, Subscription

logger = logging.getLogger(__name__)


@dataclass
class CreditBalance:
    monthly_remaining: Optional[int]  # None when the allowance is unlimited
    purchased_remaining: int

    @property
    def total(self) -> Optional[int]:
        if self.monthly_remaining is None:
            return None
        return self.monthly_remaining + self.purchased_remaining


@dataclass
class DeductionResult:
    credit_type: str
    balance: CreditBalance


def balance_of(subscription: Optional[Subscription]) -> CreditBalance:
    if subscription is None:
        return CreditBalance(monthly_remaining=0, purchased_remaining=0)
    if subscription.max_ai_credits_per_month == tiers.UNLIMITED:
        monthly = None
    else:
        monthly = max(subscription.max_ai_credits_per_month - subscription.ai_credits_used_this_month, 0)
    return CreditBalance(monthly_remaining=monthly, purchased_remaining=max(subscription.ai_credits_purchased, 0))


async def get_balance(db: AsyncSession, user_id: UUID) -> CreditBalance:
    result = await db.execute(
        select(Subscription)
        .where(Subscription.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return balance_of(result.scalar_one_or_none())


async def deduct_credit(
    db: AsyncSession,
    user_id: UUID,
    action: str,
    client_id: Optional[UUID] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> DeductionResult:
    """
    Spend one AI credit for ``action``.

    Args:
        db: Database session
        user_id: User spending the credit
        action: What the credit was spent on (e.g. generate_captions)
        client_id: Optional client the action was for
        metadata: Extra details stored with the usage row

    Returns:
        DeductionResult: Which pool was used and the remaining balance

    Raises:
        Forbidden: If the subscription is not active or trialing
        InsufficientCredits: If neither pool has a credit left; nothing is changed
    """
    status = await db.execute(select(Subscription.subscription_status).where(Subscription.user_id == user_id))
    subscription_status = status.scalar_one_or_none()
    if subscription_status is not None and subscription_status not in tiers.ACTIVE_STATUSES:
        logger.info(f"[CREDITS] User {user_id} refused {action}: subscription is {subscription_status}")
        raise Forbidden("Your subscription is not active", extra={"subscriptionStatus": subscription_status})

    monthly = await db.execute(
        update(Subscription)
        .where(
            Subscription.user_id == user_id,
            Subscription.subscription_status.in_(tiers.ACTIVE_STATUSES),
            (Subscription.max_ai_credits_per_month == tiers.UNLIMITED)
            | (Subscription.ai_credits_used_this_month < Subscription.max_ai_credits_per_month),
        )
        .values(
            ai_credits_used_this_month=Subscription.ai_credits_used_this_month + 1,
            updated_at=utcnow(),
        )
        .returning(Subscription.id)
        .execution_options(synchronize_session=False)
    )
    credit_type = "monthly" if monthly.scalar_one_or_none() is not None else None

    if credit_type is None:
        purchased = await db.execute(
            update(Subscription)
            .where(
                Subscription.user_id == user_id,
                Subscription.subscription_status.in_(tiers.ACTIVE_STATUSES),
                Subscription.ai_credits_purchased > 0,
            )
            .values(
                ai_credits_purchased=Subscription.ai_credits_purchased - 1,
                updated_at=utcnow(),
            )
            .returning(Subscription.id)
            .execution_options(synchronize_session=False)
        )
        if purchased.scalar_one_or_none() is not None:
            credit_type = "purchased"

    if credit_type is None:
        logger.info(f"[CREDITS] User {user_id} has no credits left for {action}")
        raise InsufficientCredits(extra={"creditsRemaining": 0})

    db.add(AICreditUsage(
        user_id=user_id,
        credit_type=credit_type,
        action_type=action,
        credits_used=1,
        client_id=client_id,
        usage_metadata=metadata or {},
    ))
    await db.flush()

    balance = await get_balance(db, user_id)
    logger.info(f"[CREDITS] User {user_id} spent a {credit_type} credit on {action}")
    return DeductionResult(credit_type=credit_type, balance=balance)
