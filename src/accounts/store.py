"""
Account store contract and its in-memory implementation.

The store is the only shared mutable state in the service. Besides keyed
reads and partial updates it offers three single-account atomic operations
that the ledgers rely on:

- ``increment_usage``: +1 on today's usage partition, resetting the counter
  when the stored day is not today
- ``claim_referral``: set ``referred_by`` only if it is still unset
- ``add_bonus``: raise ``bonus_rewrites`` by an amount, clamped to a cap

Updates to independent fields are last-write-wins.
"""

import abc
import asyncio
import logging
from datetime import date
from typing import Dict, List, Optional

from src.types.accounts import Account, RewriteLogEntry

logger = logging.getLogger(__name__)

# Fields that ``update`` may overwrite. Usage fields move only through
# increment_usage, and id/referral_code are immutable.
UPDATABLE_FIELDS = frozenset({
    "email",
    "tier",
    "bonus_rewrites",
    "referred_by",
    "customer_ref",
    "subscription_ref",
})


class AccountStoreError(Exception):
    """Base class for account store failures."""


class AccountNotFound(AccountStoreError):
    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class DuplicateAccountError(AccountStoreError):
    """Raised when an id or referral code is already taken."""

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"Duplicate {field}: {value}")


def _check_update_fields(fields: Dict[str, object]) -> None:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")


class AccountStore(abc.ABC):
    """Durable per-user account records."""

    @abc.abstractmethod
    async def get(self, account_id: str) -> Optional[Account]:
        ...

    @abc.abstractmethod
    async def get_by_referral_code(self, code: str) -> Optional[Account]:
        ...

    @abc.abstractmethod
    async def get_by_customer_ref(self, customer_ref: str) -> Optional[Account]:
        ...

    @abc.abstractmethod
    async def create(self, account: Account) -> Account:
        """Insert a new account. Raises DuplicateAccountError on id or code clash."""

    @abc.abstractmethod
    async def update(self, account_id: str, **fields) -> Account:
        """Overwrite the named fields. Raises AccountNotFound."""

    @abc.abstractmethod
    async def increment_usage(self, account_id: str, today: date) -> int:
        """Atomically count one billable action for ``today``; returns the new count."""

    @abc.abstractmethod
    async def claim_referral(self, account_id: str, code: str, bonus_rewrites: int) -> bool:
        """
        Set ``referred_by`` and ``bonus_rewrites`` if ``referred_by`` is unset.

        Returns False, changing nothing, when the account was already referred.
        """

    @abc.abstractmethod
    async def add_bonus(self, account_id: str, amount: int, cap: int) -> int:
        """Atomically set bonus to min(bonus + amount, cap); returns the new bonus."""

    @abc.abstractmethod
    async def log_rewrite(self, entry: RewriteLogEntry) -> None:
        ...

    async def close(self) -> None:
        """Release any resources held by the store."""


class InMemoryAccountStore(AccountStore):
    """
    Process-local store for tests and local development.

    Every operation runs under one asyncio lock, which makes each of them
    atomic with respect to other coroutines on the same loop. Returned
    accounts are copies; mutating them does not touch stored state.
    """

    def __init__(self, accounts: Optional[List[Account]] = None):
        self._accounts: Dict[str, Account] = {}
        self._rewrites: List[RewriteLogEntry] = []
        self._lock = asyncio.Lock()
        for account in accounts or []:
            self._accounts[account.id] = account.model_copy(deep=True)

    @property
    def rewrites(self) -> List[RewriteLogEntry]:
        return list(self._rewrites)

    def _find(self, **criteria) -> Optional[Account]:
        for account in self._accounts.values():
            if all(getattr(account, k) == v for k, v in criteria.items()):
                return account.model_copy(deep=True)
        return None

    def _require(self, account_id: str) -> Account:
        account = self._accounts.get(account_id)
        if account is None:
            raise AccountNotFound(account_id)
        return account

    async def get(self, account_id: str) -> Optional[Account]:
        async with self._lock:
            account = self._accounts.get(account_id)
            return account.model_copy(deep=True) if account else None

    async def get_by_referral_code(self, code: str) -> Optional[Account]:
        async with self._lock:
            return self._find(referral_code=code)

    async def get_by_customer_ref(self, customer_ref: str) -> Optional[Account]:
        async with self._lock:
            return self._find(customer_ref=customer_ref)

    async def create(self, account: Account) -> Account:
        async with self._lock:
            if account.id in self._accounts:
                raise DuplicateAccountError("id", account.id)
            if self._find(referral_code=account.referral_code):
                raise DuplicateAccountError("referral_code", account.referral_code)
            self._accounts[account.id] = account.model_copy(deep=True)
            return account.model_copy(deep=True)

    async def update(self, account_id: str, **fields) -> Account:
        _check_update_fields(fields)
        async with self._lock:
            current = self._require(account_id)
            updated = Account.model_validate({**current.model_dump(), **fields})
            self._accounts[account_id] = updated
            return updated.model_copy(deep=True)

    async def increment_usage(self, account_id: str, today: date) -> int:
        async with self._lock:
            current = self._require(account_id)
            count = current.daily_usage_count + 1 if current.usage_day == today else 1
            self._accounts[account_id] = current.model_copy(
                update={"daily_usage_count": count, "usage_day": today}
            )
            return count

    async def claim_referral(self, account_id: str, code: str, bonus_rewrites: int) -> bool:
        async with self._lock:
            current = self._require(account_id)
            if current.referred_by is not None:
                return False
            self._accounts[account_id] = current.model_copy(
                update={"referred_by": code, "bonus_rewrites": bonus_rewrites}
            )
            return True

    async def add_bonus(self, account_id: str, amount: int, cap: int) -> int:
        async with self._lock:
            current = self._require(account_id)
            bonus = min(current.bonus_rewrites + amount, cap)
            self._accounts[account_id] = current.model_copy(update={"bonus_rewrites": bonus})
            return bonus

    async def log_rewrite(self, entry: RewriteLogEntry) -> None:
        async with self._lock:
            self._rewrites.append(entry)
