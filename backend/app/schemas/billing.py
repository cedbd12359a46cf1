"""
Pydantic schemas for subscriptions, credits, Stripe and scheduled jobs.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.common import ORMModel, SuccessResponse


class SubscriptionOut(ORMModel):
    id: UUID
    user_id: UUID
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    subscription_tier: str
    subscription_status: str
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    is_self_managed_trial: bool = False
    max_clients: int
    max_posts_per_month: int
    max_ai_credits_per_month: int
    clients_used: int
    posts_used_this_month: int
    ai_credits_used_this_month: int
    ai_credits_purchased: int


class SubscriptionResponse(SuccessResponse):
    subscription: Optional[SubscriptionOut] = None
    message: Optional[str] = None


class CheckoutRequest(BaseModel):
    priceId: str = Field(..., min_length=1)


class CreditCheckoutRequest(BaseModel):
    packageId: str = Field(..., min_length=1, description="small, medium or large")


class CheckoutResponse(SuccessResponse):
    url: str
    sessionId: str


class PortalSessionResponse(SuccessResponse):
    url: str


class WebhookResponse(SuccessResponse):
    received: bool = True
    type: Optional[str] = None


class CreditBalanceResponse(SuccessResponse):
    monthlyRemaining: Optional[int] = Field(None, description="None when the monthly allowance is unlimited")
    purchasedRemaining: int
    creditsRemaining: Optional[int] = None


class DeductCreditRequest(BaseModel):
    action: str = Field(..., min_length=1, max_length=100)
    client_id: Optional[UUID] = None
    metadata: Optional[Dict[str, Any]] = None


class DeductCreditResponse(CreditBalanceResponse):
    creditType: str


class TrialExpiryResponse(SuccessResponse):
    processed: int
    successCount: int
    errorCount: int
    errors: Optional[List[Dict[str, Any]]] = None


class UsageResetResponse(SuccessResponse):
    reset: int
