"""
Tests for the Stripe service and billing event decoding.

Webhook payloads are signed with the test secret exactly as Stripe signs
them, and verified by the real stripe library. Outbound API calls are
patched.
"""

import json
import time
import unittest
from unittest.mock import MagicMock, patch

from pydantic import ValidationError

from conftest import WEBHOOK_SECRET, sign_payload, signed_event, stripe_event
from src.accounts import InMemoryAccountStore
from src.config import StripeSettings
from src.payments import (
    NoBillingCustomer,
    PaymentsNotConfigured,
    StripeService,
    WebhookVerificationError,
)
from src.types.accounts import Account
from src.types.billing import (
    InvoicePaymentFailed,
    SubscriptionCreated,
    SubscriptionDeleted,
    SubscriptionUpdated,
    parse_billing_event,
)


def configured_settings(**overrides) -> StripeSettings:
    values = {
        "stripe_secret_key": "sk_test_123",
        "stripe_webhook_secret": WEBHOOK_SECRET,
        "stripe_price_id": "price_pro_monthly",
    }
    values.update(overrides)
    return StripeSettings(**values)


class TestParseBillingEvent(unittest.TestCase):

    def test_subscription_created(self):
        event = parse_billing_event(stripe_event(
            "customer.subscription.created",
            {"id": "sub_1", "customer": "cus_1", "status": "trialing"},
        ))
        self.assertIsInstance(event, SubscriptionCreated)
        self.assertEqual(event.subscription_ref, "sub_1")
        self.assertEqual(event.customer_ref, "cus_1")
        self.assertTrue(event.is_active)

    def test_subscription_updated_inactive(self):
        event = parse_billing_event(stripe_event(
            "customer.subscription.updated",
            {"id": "sub_1", "customer": "cus_1", "status": "canceled"},
        ))
        self.assertIsInstance(event, SubscriptionUpdated)
        self.assertFalse(event.is_active)

    def test_subscription_deleted(self):
        event = parse_billing_event(stripe_event(
            "customer.subscription.deleted",
            {"id": "sub_1", "customer": "cus_1", "status": "canceled"},
        ))
        self.assertIsInstance(event, SubscriptionDeleted)

    def test_invoice_payment_failed_with_expanded_customer(self):
        event = parse_billing_event(stripe_event(
            "invoice.payment_failed",
            {"id": "in_1", "customer": {"id": "cus_1"}, "subscription": "sub_1", "attempt_count": 2},
        ))
        self.assertIsInstance(event, InvoicePaymentFailed)
        self.assertEqual(event.customer_ref, "cus_1")
        self.assertEqual(event.attempt_count, 2)

    def test_unhandled_type_returns_none(self):
        self.assertIsNone(parse_billing_event(stripe_event("charge.succeeded", {"id": "ch_1"})))

    def test_missing_customer_is_invalid(self):
        with self.assertRaises(ValidationError):
            parse_billing_event(stripe_event(
                "customer.subscription.created", {"id": "sub_1", "status": "active"}
            ))


class TestConstructEvent(unittest.TestCase):

    def setUp(self):
        self.service = StripeService(configured_settings(), InMemoryAccountStore())

    def test_valid_signature(self):
        payload, signature = signed_event(
            "customer.subscription.created",
            {"id": "sub_1", "customer": "cus_1", "status": "active"},
        )
        event = self.service.construct_event(payload.encode(), signature)
        self.assertIsInstance(event, SubscriptionCreated)
        self.assertEqual(event.event_id, "evt_test_1")

    def test_unhandled_type_verified_then_ignored(self):
        payload, signature = signed_event("charge.succeeded", {"id": "ch_1"})
        self.assertIsNone(self.service.construct_event(payload.encode(), signature))

    def test_bad_signature(self):
        payload, _ = signed_event(
            "customer.subscription.created",
            {"id": "sub_1", "customer": "cus_1", "status": "active"},
        )
        forged = sign_payload(payload, secret="whsec_wrong")
        with self.assertRaises(WebhookVerificationError):
            self.service.construct_event(payload.encode(), forged)

    def test_tampered_payload(self):
        payload, signature = signed_event(
            "customer.subscription.created",
            {"id": "sub_1", "customer": "cus_1", "status": "active"},
        )
        tampered = payload.replace("cus_1", "cus_2")
        with self.assertRaises(WebhookVerificationError):
            self.service.construct_event(tampered.encode(), signature)

    def test_stale_timestamp(self):
        payload = json.dumps(stripe_event("charge.succeeded", {"id": "ch_1"}))
        old = sign_payload(payload, timestamp=int(time.time()) - 3600)
        with self.assertRaises(WebhookVerificationError):
            self.service.construct_event(payload.encode(), old)

    def test_missing_signature_header(self):
        with self.assertRaises(WebhookVerificationError):
            self.service.construct_event(b"{}", None)

    def test_malformed_handled_event(self):
        payload, signature = signed_event(
            "customer.subscription.updated", {"id": "sub_1", "status": "active"}
        )
        with self.assertRaises(WebhookVerificationError):
            self.service.construct_event(payload.encode(), signature)

    def test_no_webhook_secret(self):
        service = StripeService(
            configured_settings(stripe_webhook_secret=None), InMemoryAccountStore()
        )
        with self.assertRaises(PaymentsNotConfigured):
            service.construct_event(b"{}", "t=1,v1=abc")


class TestCheckoutAndPortal(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.store = InMemoryAccountStore([
            Account(id="u1", email="u1@example.com", referral_code="CODE0001"),
        ])
        self.service = StripeService(configured_settings(), self.store)

    async def test_checkout_creates_and_stores_customer(self):
        with patch("stripe.Customer.create", return_value=MagicMock(id="cus_new")) as create, \
             patch("stripe.checkout.Session.create") as session_create:
            session_create.return_value = MagicMock(id="cs_1", url="https://checkout.stripe.com/c/cs_1")
            result = await self.service.create_checkout_session(await self.store.get("u1"))

        self.assertEqual(result, {"session_id": "cs_1", "url": "https://checkout.stripe.com/c/cs_1"})
        self.assertEqual(create.call_args.kwargs["metadata"], {"supabase_user_id": "u1"})
        self.assertEqual(create.call_args.kwargs["api_key"], "sk_test_123")
        self.assertEqual((await self.store.get("u1")).customer_ref, "cus_new")

        kwargs = session_create.call_args.kwargs
        self.assertEqual(kwargs["customer"], "cus_new")
        self.assertEqual(kwargs["mode"], "subscription")
        self.assertEqual(kwargs["line_items"], [{"price": "price_pro_monthly", "quantity": 1}])
        self.assertEqual(kwargs["subscription_data"]["trial_period_days"], 7)
        self.assertTrue(kwargs["allow_promotion_codes"])
        self.assertEqual(kwargs["success_url"], "https://rewritemessage.com/?upgraded=true")
        self.assertEqual(kwargs["cancel_url"], "https://rewritemessage.com/?cancelled=true")

    async def test_checkout_reuses_existing_customer(self):
        await self.store.update("u1", customer_ref="cus_existing")
        with patch("stripe.Customer.create") as create, \
             patch("stripe.checkout.Session.create") as session_create:
            session_create.return_value = MagicMock(id="cs_2", url="https://checkout.stripe.com/c/cs_2")
            await self.service.create_checkout_session(await self.store.get("u1"))

        create.assert_not_called()
        self.assertEqual(session_create.call_args.kwargs["customer"], "cus_existing")

    async def test_checkout_without_key(self):
        service = StripeService(StripeSettings(), self.store)
        with self.assertRaises(PaymentsNotConfigured):
            await service.create_checkout_session(await self.store.get("u1"))

    async def test_portal_requires_customer(self):
        with self.assertRaises(NoBillingCustomer):
            await self.service.create_portal_session(await self.store.get("u1"))

    async def test_portal_returns_to_site(self):
        await self.store.update("u1", customer_ref="cus_1")
        with patch("stripe.billing_portal.Session.create") as create:
            create.return_value = MagicMock(url="https://billing.stripe.com/p/session_1")
            url = await self.service.create_portal_session(await self.store.get("u1"))

        self.assertEqual(url, "https://billing.stripe.com/p/session_1")
        self.assertEqual(create.call_args.kwargs["customer"], "cus_1")
        self.assertEqual(create.call_args.kwargs["return_url"], "https://rewritemessage.com")


if __name__ == "__main__":
    unittest.main()
