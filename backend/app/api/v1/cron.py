"""
Scheduled maintenance jobs, called by the platform scheduler.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import verify_cron_secret
from app.core.timeutils import utcnow
from app.crud import subscription as subscription_crud
from app.db.session import get_db
from app.schemas.billing import TrialExpiryResponse, UsageResetResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/cron",
    tags=["cron"],
    dependencies=[Depends(verify_cron_secret)],
)


@router.get("/check-trial-expiry", response_model=TrialExpiryResponse)
async def check_trial_expiry(db: AsyncSession = Depends(get_db)):
    """
    Downgrade every self-managed trial whose period has ended to freemium.

    Each trial is downgraded in its own savepoint; one failure does not stop
    the others and is reported in ``errors``.
    """
    now = utcnow()
    expired = await subscription_crud.find_expired_trials(db, now)
    logger.info(f"[CRON] Found {len(expired)} expired trials")

    errors = []
    for subscription in expired:
        user_id = subscription.user_id
        try:
            async with db.begin_nested():
                await subscription_crud.downgrade_trial(db, subscription, now)
        except SQLAlchemyError as e:
            logger.error(f"[CRON] Failed to downgrade trial for user {user_id}: {e}")
            errors.append({"userId": str(user_id), "error": str(e)})
    await db.commit()

    success_count = len(expired) - len(errors)
    logger.info(f"[CRON] Trial expiry done: {success_count} downgraded, {len(errors)} failed")
    return TrialExpiryResponse(
        processed=len(expired),
        successCount=success_count,
        errorCount=len(errors),
        errors=errors or None,
    )


@router.get("/reset-monthly-usage", response_model=UsageResetResponse)
async def reset_monthly_usage(db: AsyncSession = Depends(get_db)):
    count = await subscription_crud.reset_monthly_usage(db)
    await db.commit()
    logger.info(f"[CRON] Reset monthly usage for {count} subscriptions")
    return UsageResetResponse(reset=count)
