"""
Self-managed plans: the no-card trial and the free tier.
"""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import CurrentUser, get_current_user
from app.core import tiers
from app.core.errors import ValidationFailed
from app.crud import subscription as subscription_crud
from app.db.session import get_db
from app.schemas.billing import SubscriptionOut, SubscriptionResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/subscription",
    tags=["subscription"],
)


async def _start_plan(db: AsyncSession, current_user: CurrentUser, tier: str) -> SubscriptionResponse:
    existing = await subscription_crud.get_subscription(db, current_user.id)
    if existing is not None:
        raise ValidationFailed("User already has a subscription")

    subscription = await subscription_crud.create_self_managed(db, current_user.id, tier)
    await db.commit()
    logger.info(f"[SUBSCRIPTION] User {current_user.id} started {tier}")
    return SubscriptionResponse(subscription=SubscriptionOut.model_validate(subscription))


@router.post("/trial", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def start_trial(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Start a 14-day trial without a payment method.

    Raises:
        ValidationFailed 400: If the user already has a subscription
    """
    response = await _start_plan(db, current_user, tiers.TRIAL)
    response.message = f"Your {tiers.TRIAL_DAYS}-day trial has started"
    return response


@router.post("/freemium", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def start_freemium(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _start_plan(db, current_user, tiers.FREEMIUM)
