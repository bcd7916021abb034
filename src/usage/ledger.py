"""
Usage ledger: per-day billable-action accounting.

Signed-in usage is server-tracked in the account store. The ledger checks
the allowance first, lets the caller run the billable action, and only
then records one unit of usage. A failed action consumes nothing.

The check and the increment are not locked together, so concurrent
requests from one account can overshoot the limit by the number of
requests in flight. Recording failures are logged and swallowed; the user
already has their result.

Anonymous usage is never written server-side.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from src.accounts.store import AccountStore
from src.types.accounts import Account, AnonymousSession, ConsumeResult, Entitlement
from src.utils.logging import short_id

from .entitlements import (
    anonymous_entitlement,
    next_reset_at,
    resolve_entitlement,
    utc_day,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return datetime.now(timezone.utc)


class QuotaExhausted(Exception):
    """Raised when a billable action is attempted with no allowance left."""

    def __init__(self, result: ConsumeResult, is_pro: bool, reset_at: datetime):
        self.result = result
        self.is_pro = is_pro
        self.reset_at = reset_at
        super().__init__(
            f"Daily limit of {result.limit} reached (usage {result.usage_after})"
        )


def _consume(entitlement: Entitlement) -> ConsumeResult:
    if not entitlement.allowed:
        return ConsumeResult(allowed=False, usage_after=entitlement.usage, limit=entitlement.limit)
    return ConsumeResult(allowed=True, usage_after=entitlement.usage + 1, limit=entitlement.limit)


class UsageLedger:
    """Check-then-record usage accounting over an account store."""

    def __init__(self, store: AccountStore, clock: Clock = system_clock):
        self._store = store
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def entitlement(self, account: Account) -> Entitlement:
        return resolve_entitlement(account, self._clock())

    def try_consume(self, account: Account) -> ConsumeResult:
        """
        Decide whether ``account`` may perform one billable action now.

        Never mutates state. ``usage_after`` is the count once the action
        is recorded, or the current count when refused.
        """
        return _consume(self.entitlement(account))

    def try_consume_anonymous(self, session: Optional[AnonymousSession]) -> ConsumeResult:
        return _consume(anonymous_entitlement(session, self._clock()))

    async def record_usage(self, account_id: str) -> Optional[int]:
        """
        Count one successful billable action against today.

        Returns the new daily count, or None if the store failed.
        """
        today = utc_day(self._clock())
        try:
            count = await self._store.increment_usage(account_id, today)
        except Exception as e:
            logger.error(
                f"Failed to record usage for account {short_id(account_id)}: {e}",
                exc_info=True,
            )
            return None

        logger.info(f"Usage recorded for account {short_id(account_id)}: {count} today")
        return count

    def track(self, account: Account) -> "UsageTracker":
        return UsageTracker(self, account)


class UsageTracker:
    """
    Async context manager around one billable action.

    Entering checks the allowance and raises QuotaExhausted when there is
    none. Leaving without an exception records the usage; leaving with one
    records nothing and lets the exception propagate.

        async with ledger.track(account) as tracker:
            text = await rewriter.rewrite(...)
        tracker.usage_after
    """

    def __init__(self, ledger: UsageLedger, account: Account):
        self._ledger = ledger
        self.account = account
        self.result: Optional[ConsumeResult] = None
        self.recorded: Optional[int] = None

    @property
    def usage_after(self) -> Optional[int]:
        return self.result.usage_after if self.result else None

    @property
    def limit(self) -> Optional[int]:
        return self.result.limit if self.result else None

    async def __aenter__(self) -> "UsageTracker":
        self.result = self._ledger.try_consume(self.account)
        if not self.result.allowed:
            raise QuotaExhausted(
                self.result,
                is_pro=self.account.is_pro,
                reset_at=next_reset_at(self._ledger.now()),
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is None:
            self.recorded = await self._ledger.record_usage(self.account.id)
        return False
