"""
Subscription state machine.

Maps verified billing events onto account tier:

- subscription created/updated, status active or trialing -> PRO, store subscription id
- subscription updated with any other status, or deleted   -> FREE, clear subscription id
- invoice payment failed                                   -> logged only

Events are keyed by Stripe customer id. Every transition overwrites both
``tier`` and ``subscription_ref``, so duplicate or replayed deliveries
leave the account unchanged. Events for unknown customers are no-ops.
"""

import logging
from typing import Optional

from src.accounts.store import AccountStore
from src.types.accounts import Tier
from src.types.billing import (
    BillingEvent,
    InvoicePaymentFailed,
    SubscriptionCreated,
    SubscriptionDeleted,
    SubscriptionUpdated,
)
from src.utils.logging import short_id

logger = logging.getLogger(__name__)


class SubscriptionSync:
    """Applies billing events to the account store."""

    def __init__(self, store: AccountStore):
        self._store = store

    async def apply(self, event: Optional[BillingEvent]) -> dict:
        """
        Apply a typed billing event.

        Args:
            event: Parsed event, or None for event types that are not handled

        Returns:
            Dict describing the outcome; ``synced`` is False for no-ops.
        """
        if event is None:
            return {"synced": False, "reason": "unhandled_event_type"}

        account = await self._store.get_by_customer_ref(event.customer_ref)
        if account is None:
            logger.warning(
                f"Billing event {event.event_type} ({event.event_id}) for unknown customer "
                f"{event.customer_ref}; ignoring"
            )
            return {
                "synced": False,
                "reason": "no_account",
                "event_type": event.event_type,
            }

        if isinstance(event, (SubscriptionCreated, SubscriptionUpdated)):
            if event.is_active:
                return await self._activate(account.id, event)
            return await self._downgrade(account.id, event)
        if isinstance(event, SubscriptionDeleted):
            return await self._downgrade(account.id, event)
        if isinstance(event, InvoicePaymentFailed):
            return self._record_payment_failure(account.id, event)

        raise TypeError(f"Unsupported billing event: {type(event).__name__}")

    async def _activate(self, account_id: str, event) -> dict:
        await self._store.update(
            account_id,
            tier=Tier.PRO,
            subscription_ref=event.subscription_ref,
        )
        logger.info(
            f"Subscription {event.subscription_ref} {event.status} for account "
            f"{short_id(account_id)}: tier=pro"
        )
        return {
            "synced": True,
            "event_type": event.event_type,
            "account_id": account_id,
            "tier": Tier.PRO.value,
            "action": "tier_activated",
        }

    async def _downgrade(self, account_id: str, event) -> dict:
        await self._store.update(account_id, tier=Tier.FREE, subscription_ref=None)
        status = getattr(event, "status", "deleted")
        logger.info(
            f"Subscription {event.subscription_ref} {status} for account "
            f"{short_id(account_id)}: downgraded to free"
        )
        return {
            "synced": True,
            "event_type": event.event_type,
            "account_id": account_id,
            "tier": Tier.FREE.value,
            "action": "downgraded_to_free",
        }

    def _record_payment_failure(self, account_id: str, event: InvoicePaymentFailed) -> dict:
        # No grace-period downgrade; Stripe's own dunning moves the
        # subscription status, which arrives as subscription.updated.
        logger.warning(
            f"Payment failed for account {short_id(account_id)} "
            f"(subscription {event.subscription_ref}, attempt {event.attempt_count})"
        )
        return {
            "synced": True,
            "event_type": event.event_type,
            "account_id": account_id,
            "action": "payment_failure_recorded",
        }
