"""
AI credit balance and spending.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import require_client
from app.auth.dependencies import CurrentUser, get_current_user
from app.crud import credits as credits_crud
from app.db.session import get_db
from app.schemas.billing import CreditBalanceResponse, DeductCreditRequest, DeductCreditResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/credits",
    tags=["credits"],
)


@router.get("/balance", response_model=CreditBalanceResponse)
async def get_credit_balance(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    balance = await credits_crud.get_balance(db, current_user.id)
    return CreditBalanceResponse(
        monthlyRemaining=balance.monthly_remaining,
        purchasedRemaining=balance.purchased_remaining,
        creditsRemaining=balance.total,
    )


@router.post("/deduct", response_model=DeductCreditResponse)
async def deduct_credit(
    request_data: DeductCreditRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Spend one credit before an AI action runs.

    Raises:
        Forbidden 403: If the subscription is not active or trialing
        InsufficientCredits 402: If no monthly or purchased credit is left
    """
    if request_data.client_id is not None:
        await require_client(db, request_data.client_id, current_user)

    result = await credits_crud.deduct_credit(
        db,
        current_user.id,
        request_data.action,
        client_id=request_data.client_id,
        metadata=request_data.metadata,
    )
    await db.commit()
    return DeductCreditResponse(
        creditType=result.credit_type,
        monthlyRemaining=result.balance.monthly_remaining,
        purchasedRemaining=result.balance.purchased_remaining,
        creditsRemaining=result.balance.total,
    )
