"""
Stripe payment service for the Pro subscription.

This module provides:
- Customer lookup/creation, linked to accounts through ``customer_ref``
- Checkout sessions for the Pro plan with a free trial
- Customer portal sessions for managing an existing subscription
- Webhook verification into typed billing events

Blocking Stripe SDK calls run in a worker thread. The API key is passed
per call instead of being set on the ``stripe`` module.
"""

import asyncio
import json
import logging
from functools import partial
from typing import Optional

import stripe
from pydantic import ValidationError as PydanticValidationError

from src.accounts.store import AccountStore
from src.config import StripeSettings
from src.types.accounts import Account
from src.types.billing import BillingEvent, parse_billing_event
from src.utils.logging import short_id

logger = logging.getLogger(__name__)


class PaymentsNotConfigured(Exception):
    """Stripe keys or price are missing from configuration."""


class NoBillingCustomer(Exception):
    """The account has never been linked to a Stripe customer."""


class WebhookVerificationError(Exception):
    """A webhook payload failed signature verification or could not be parsed."""


class StripeService:
    """
    Service class for Stripe payment operations.

    Handles customers, checkout and portal sessions, and webhook decoding.
    """

    def __init__(self, settings: StripeSettings, store: AccountStore):
        self._settings = settings
        self._store = store
        self._api_key = (
            settings.stripe_secret_key.get_secret_value() if settings.stripe_secret_key else None
        )
        self._webhook_secret = (
            settings.stripe_webhook_secret.get_secret_value()
            if settings.stripe_webhook_secret
            else None
        )

        if self._api_key:
            logger.info("Stripe service configured")
        else:
            logger.warning("STRIPE_SECRET_KEY not configured - payment features disabled")

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    @property
    def site_url(self) -> str:
        return self._settings.site_url.rstrip("/")

    def _ensure_configured(self) -> None:
        if not self.is_configured:
            raise PaymentsNotConfigured("Stripe is not configured. Set STRIPE_SECRET_KEY.")

    async def get_or_create_customer(self, account: Account) -> str:
        """
        Return the Stripe customer id for ``account``, creating one if needed.

        A newly created customer is stored on the account so webhook events
        can be routed back to it.
        """
        if account.customer_ref:
            return account.customer_ref

        self._ensure_configured()

        customer = await asyncio.to_thread(
            partial(
                stripe.Customer.create,
                email=account.email,
                metadata={"supabase_user_id": account.id},
                api_key=self._api_key,
            )
        )
        await self._store.update(account.id, customer_ref=customer.id)
        logger.info(f"Created Stripe customer {customer.id} for account {short_id(account.id)}")
        return customer.id

    async def create_checkout_session(self, account: Account) -> dict:
        """
        Create a subscription checkout session for the Pro plan.

        Returns:
            Dictionary with session_id and url
        """
        self._ensure_configured()
        if not self._settings.stripe_price_id:
            raise PaymentsNotConfigured("Stripe price is not configured. Set STRIPE_PRICE_ID.")

        customer_id = await self.get_or_create_customer(account)

        subscription_data = {"metadata": {"supabase_user_id": account.id}}
        if self._settings.stripe_trial_days:
            subscription_data["trial_period_days"] = self._settings.stripe_trial_days

        session = await asyncio.to_thread(
            partial(
                stripe.checkout.Session.create,
                customer=customer_id,
                mode="subscription",
                line_items=[{"price": self._settings.stripe_price_id, "quantity": 1}],
                subscription_data=subscription_data,
                allow_promotion_codes=True,
                success_url=f"{self.site_url}/?upgraded=true",
                cancel_url=f"{self.site_url}/?cancelled=true",
                metadata={"supabase_user_id": account.id},
                api_key=self._api_key,
            )
        )

        logger.info(f"Created checkout session {session.id} for account {short_id(account.id)}")
        return {"session_id": session.id, "url": session.url}

    async def create_portal_session(self, account: Account) -> str:
        """
        Create a billing portal session for an existing customer.

        Raises:
            NoBillingCustomer: if the account never went through checkout
        """
        if not account.customer_ref:
            raise NoBillingCustomer(account.id)
        self._ensure_configured()

        session = await asyncio.to_thread(
            partial(
                stripe.billing_portal.Session.create,
                customer=account.customer_ref,
                return_url=self.site_url,
                api_key=self._api_key,
            )
        )

        logger.info(f"Created portal session for customer {account.customer_ref}")
        return session.url

    def construct_event(self, payload: bytes, sig_header: Optional[str]) -> Optional[BillingEvent]:
        """
        Verify a webhook delivery and decode it.

        Args:
            payload: Raw request body bytes
            sig_header: Stripe-Signature header value

        Returns:
            Typed billing event, or None for event types that are not handled

        Raises:
            PaymentsNotConfigured: if no webhook secret is configured
            WebhookVerificationError: on a bad signature or malformed payload
        """
        if not self._webhook_secret:
            raise PaymentsNotConfigured("Webhook secret not configured. Set STRIPE_WEBHOOK_SECRET.")
        if not sig_header:
            raise WebhookVerificationError("Missing Stripe-Signature header")

        try:
            stripe.Webhook.construct_event(payload, sig_header, self._webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            raise WebhookVerificationError("Invalid webhook signature") from e
        except ValueError as e:
            raise WebhookVerificationError("Invalid webhook payload") from e

        try:
            event = parse_billing_event(json.loads(payload))
        except (ValueError, PydanticValidationError) as e:
            logger.warning(f"Malformed webhook event rejected: {e}")
            raise WebhookVerificationError("Malformed webhook event") from e

        if event is None:
            logger.debug("Ignoring unhandled webhook event type")
        return event
