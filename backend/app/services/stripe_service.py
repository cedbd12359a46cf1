"""
Stripe billing operations: customers, checkout, customer portal and webhook
verification.
"""
import json
import logging
from typing import Any, Dict, Optional

import stripe
from fastapi.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.errors import NotConfigured, UpstreamError, ValidationFailed

logger = logging.getLogger(__name__)


class StripeService:
    """
    Handle all Stripe billing operations.

    The Stripe SDK blocks, so its API calls run in the threadpool.
    """

    def __init__(self, api_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        self.api_key = api_key or settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret or settings.STRIPE_WEBHOOK_SECRET

    def _require_key(self) -> None:
        if not self.api_key:
            raise NotConfigured("Stripe is not configured")
        stripe.api_key = self.api_key

    async def create_customer(self, email: Optional[str], user_id: str) -> str:
        """Create a Stripe customer for a user"""
        self._require_key()
        try:
            customer = await run_in_threadpool(stripe.Customer.create, email=email, metadata={"userId": user_id})
        except stripe.StripeError as e:
            logger.error(f"[BILLING] Stripe error creating customer: {e}")
            raise UpstreamError("Failed to create billing profile") from e
        logger.info(f"[BILLING] Created Stripe customer {customer.id} for user {user_id}")
        return customer.id

    async def create_subscription_checkout(self, customer_id: str, price_id: str, user_id: str) -> Dict[str, str]:
        """Create a hosted checkout session for a subscription"""
        self._require_key()
        base = settings.APP_BASE_URL.rstrip("/")
        try:
            session = await run_in_threadpool(
                stripe.checkout.Session.create,
                customer=customer_id,
                mode="subscription",
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=f"{base}/settings/billing?success=true&session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{base}/pricing?canceled=true",
                metadata={"userId": user_id},
                subscription_data={"metadata": {"userId": user_id}},
                allow_promotion_codes=True,
            )
        except stripe.StripeError as e:
            logger.error(f"[BILLING] Stripe error creating checkout session: {e}")
            raise UpstreamError("Failed to create checkout session") from e
        logger.info(f"[BILLING] Created checkout session {session.id} for user {user_id}")
        return {"url": session.url, "id": session.id}

    async def create_credit_checkout(
        self, customer_id: str, price_id: str, user_id: str, package_id: str, credits: int
    ) -> Dict[str, str]:
        """Create a one-time payment session for an AI credit package"""
        self._require_key()
        base = settings.APP_BASE_URL.rstrip("/")
        try:
            session = await run_in_threadpool(
                stripe.checkout.Session.create,
                customer=customer_id,
                mode="payment",
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=f"{base}/settings/billing?credits=success&session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{base}/settings/billing?credits=canceled",
                metadata={
                    "userId": user_id,
                    "type": "credit_purchase",
                    "packageId": package_id,
                    "credits": str(credits),
                },
            )
        except stripe.StripeError as e:
            logger.error(f"[BILLING] Stripe error creating credit checkout: {e}")
            raise UpstreamError("Failed to create checkout session") from e
        return {"url": session.url, "id": session.id}

    async def create_portal_session(self, customer_id: str) -> str:
        """Create customer portal session for subscription management"""
        self._require_key()
        try:
            session = await run_in_threadpool(
                stripe.billing_portal.Session.create,
                customer=customer_id,
                return_url=f"{settings.APP_BASE_URL.rstrip('/')}/settings/billing",
            )
        except stripe.StripeError as e:
            logger.error(f"[BILLING] Stripe error creating portal session: {e}")
            raise UpstreamError("Failed to create portal session") from e
        return session.url

    async def retrieve_subscription(self, subscription_id: str) -> Any:
        self._require_key()
        try:
            return await run_in_threadpool(stripe.Subscription.retrieve, subscription_id)
        except stripe.StripeError as e:
            logger.error(f"[BILLING] Stripe error retrieving subscription {subscription_id}: {e}")
            raise UpstreamError("Failed to retrieve subscription") from e

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify a webhook payload and return the event as a plain dict.

        Raises:
            NotConfigured: If no webhook secret is configured
            ValidationFailed: If the signature header is missing or does not match
        """
        if not self.webhook_secret:
            raise NotConfigured("Stripe webhook secret is not configured")
        if not signature:
            raise ValidationFailed("Missing stripe-signature header")
        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"), signature, self.webhook_secret, stripe.Webhook.DEFAULT_TOLERANCE
            )
        except stripe.SignatureVerificationError as e:
            logger.error(f"[BILLING] Invalid webhook signature: {e}")
            raise ValidationFailed("Invalid webhook signature") from e
        try:
            return json.loads(payload)
        except ValueError as e:
            raise ValidationFailed("Invalid webhook payload") from e


def get_stripe_service() -> StripeService:
    return StripeService()
