"""
Billing models for subscription management.
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String

from ..base import Base, JSONType, TimestampMixin, UUIDMixin, UUIDType


class Subscription(Base, UUIDMixin, TimestampMixin):
    """
    One row per user.

    Self-managed trials and freemium rows have no Stripe objects; their
    ``stripe_customer_id`` is a placeholder and ``is_self_managed_trial``
    marks the trials the expiry job is allowed to downgrade.
    """
    __tablename__ = "subscriptions"

    user_id = Column(UUIDType(), nullable=False, unique=True, index=True)
    stripe_customer_id = Column(String(255), unique=True, index=True)
    stripe_subscription_id = Column(String(255), index=True)
    stripe_price_id = Column(String(255))

    subscription_tier = Column(String(20), nullable=False, default="freemium", index=True)
    subscription_status = Column(String(30), nullable=False, default="active", index=True)
    current_period_start = Column(DateTime(timezone=True))
    current_period_end = Column(DateTime(timezone=True), index=True)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    is_self_managed_trial = Column(Boolean, nullable=False, default=False, index=True)

    max_clients = Column(Integer, nullable=False, default=1)
    max_posts_per_month = Column(Integer, nullable=False, default=0)
    max_ai_credits_per_month = Column(Integer, nullable=False, default=10)

    clients_used = Column(Integer, nullable=False, default=0)
    posts_used_this_month = Column(Integer, nullable=False, default=0)
    ai_credits_used_this_month = Column(Integer, nullable=False, default=0)
    ai_credits_purchased = Column(Integer, nullable=False, default=0)
    usage_reset_date = Column(DateTime(timezone=True))

    subscription_metadata = Column("metadata", JSONType, default=dict)


class BillingHistory(Base, UUIDMixin, TimestampMixin):
    """
    Billing History model for tracking invoices.
    """
    __tablename__ = "billing_history"

    user_id = Column(UUIDType(), nullable=False, index=True)
    subscription_id = Column(UUIDType(), ForeignKey("subscriptions.id", ondelete="CASCADE"), index=True)
    stripe_invoice_id = Column(String(255), unique=True, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(50), nullable=False, index=True)
    invoice_url = Column(String)
    invoice_pdf = Column(String)


class AICreditUsage(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "ai_credit_usage"

    user_id = Column(UUIDType(), nullable=False, index=True)
    credit_type = Column(String(20), nullable=False)  # monthly | purchased
    action_type = Column(String(100), nullable=False, index=True)
    credits_used = Column(Integer, nullable=False, default=1)
    client_id = Column(UUIDType(), ForeignKey("clients.id", ondelete="SET NULL"))
    usage_metadata = Column("metadata", JSONType, default=dict)
