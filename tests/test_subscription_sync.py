"""
Tests for the subscription state machine.

Billing events move an account between FREE and PRO. Every transition is
a full overwrite, so replaying an event leaves the same state.
"""

import unittest

from src.accounts import InMemoryAccountStore
from src.payments import SubscriptionSync
from src.types.accounts import Account, Tier
from src.types.billing import (
    InvoicePaymentFailed,
    SubscriptionCreated,
    SubscriptionDeleted,
    SubscriptionUpdated,
)


class SyncTestCase(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.store = InMemoryAccountStore([
            Account(id="u1", referral_code="CODE0001", customer_ref="cus_1", bonus_rewrites=6),
        ])
        self.sync = SubscriptionSync(self.store)

    async def account(self) -> Account:
        return await self.store.get("u1")


class TestActivation(SyncTestCase):

    async def test_created_active_upgrades(self):
        event = SubscriptionCreated(
            event_id="evt_1", customer_ref="cus_1", subscription_ref="sub_1", status="active"
        )
        result = await self.sync.apply(event)

        self.assertTrue(result["synced"])
        self.assertEqual(result["action"], "tier_activated")
        account = await self.account()
        self.assertEqual(account.tier, Tier.PRO)
        self.assertEqual(account.subscription_ref, "sub_1")

    async def test_trialing_counts_as_active(self):
        event = SubscriptionCreated(
            event_id="evt_1", customer_ref="cus_1", subscription_ref="sub_1", status="trialing"
        )
        await self.sync.apply(event)
        self.assertEqual((await self.account()).tier, Tier.PRO)

    async def test_bonus_is_kept_while_pro(self):
        event = SubscriptionCreated(
            event_id="evt_1", customer_ref="cus_1", subscription_ref="sub_1", status="active"
        )
        await self.sync.apply(event)
        self.assertEqual((await self.account()).bonus_rewrites, 6)

    async def test_replay_is_idempotent(self):
        event = SubscriptionUpdated(
            event_id="evt_1", customer_ref="cus_1", subscription_ref="sub_1", status="active"
        )
        await self.sync.apply(event)
        first = await self.account()
        await self.sync.apply(event)
        second = await self.account()
        self.assertEqual(first.model_dump(), second.model_dump())


class TestDowngrade(SyncTestCase):

    async def asyncSetUp(self):
        await super().asyncSetUp()
        await self.store.update("u1", tier=Tier.PRO, subscription_ref="sub_1")

    async def test_updated_past_due_downgrades(self):
        event = SubscriptionUpdated(
            event_id="evt_2", customer_ref="cus_1", subscription_ref="sub_1", status="past_due"
        )
        result = await self.sync.apply(event)

        self.assertEqual(result["action"], "downgraded_to_free")
        account = await self.account()
        self.assertEqual(account.tier, Tier.FREE)
        self.assertIsNone(account.subscription_ref)

    async def test_deleted_downgrades(self):
        event = SubscriptionDeleted(event_id="evt_3", customer_ref="cus_1", subscription_ref="sub_1")
        await self.sync.apply(event)
        account = await self.account()
        self.assertEqual(account.tier, Tier.FREE)
        self.assertIsNone(account.subscription_ref)

    async def test_downgrade_restores_bonus_limit(self):
        """Back on FREE the referral bonus applies again."""
        from src.usage.entitlements import resolve_entitlement
        from src.types.accounts import utc_now

        event = SubscriptionDeleted(event_id="evt_3", customer_ref="cus_1")
        await self.sync.apply(event)
        self.assertEqual(resolve_entitlement(await self.account(), utc_now()).limit, 9)

    async def test_payment_failed_changes_nothing(self):
        event = InvoicePaymentFailed(
            event_id="evt_4", customer_ref="cus_1", subscription_ref="sub_1", attempt_count=1
        )
        with self.assertLogs("src.payments.subscription_sync", level="WARNING"):
            result = await self.sync.apply(event)

        self.assertEqual(result["action"], "payment_failure_recorded")
        account = await self.account()
        self.assertEqual(account.tier, Tier.PRO)
        self.assertEqual(account.subscription_ref, "sub_1")


class TestNoOps(SyncTestCase):

    async def test_unhandled_event(self):
        result = await self.sync.apply(None)
        self.assertEqual(result, {"synced": False, "reason": "unhandled_event_type"})

    async def test_unknown_customer(self):
        event = SubscriptionCreated(
            event_id="evt_5", customer_ref="cus_missing", subscription_ref="sub_9", status="active"
        )
        result = await self.sync.apply(event)
        self.assertFalse(result["synced"])
        self.assertEqual(result["reason"], "no_account")
        self.assertEqual((await self.account()).tier, Tier.FREE)


if __name__ == "__main__":
    unittest.main()
