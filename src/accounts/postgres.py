"""
Postgres-backed account store.

Each contract operation is a single SQL statement, so the atomic
operations (usage increment, referral claim, bonus award) need no explicit
transaction.
"""

import logging
from datetime import date
from typing import Optional

import asyncpg

from src.db import Database
from src.types.accounts import Account, RewriteLogEntry, Tier
from src.utils.logging import short_id

from .store import (
    AccountNotFound,
    AccountStore,
    AccountStoreError,
    DuplicateAccountError,
    _check_update_fields,
)

logger = logging.getLogger(__name__)

# Failures any store can raise while serving a request.
STORE_ERRORS = (AccountStoreError, asyncpg.PostgresError, asyncpg.InterfaceError, OSError)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS accounts (
    id                text PRIMARY KEY,
    email             text,
    tier              text NOT NULL DEFAULT 'free' CHECK (tier IN ('free', 'pro')),
    bonus_rewrites    integer NOT NULL DEFAULT 0 CHECK (bonus_rewrites BETWEEN 0 AND 15),
    referral_code     text NOT NULL UNIQUE,
    referred_by       text,
    customer_ref      text UNIQUE,
    subscription_ref  text,
    daily_usage_count integer NOT NULL DEFAULT 0 CHECK (daily_usage_count >= 0),
    usage_day         date,
    created_at        timestamptz NOT NULL DEFAULT NOW(),
    updated_at        timestamptz NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS rewrites (
    id            bigserial PRIMARY KEY,
    account_id    text NOT NULL REFERENCES accounts (id) ON DELETE CASCADE,
    tone          text NOT NULL,
    input_length  integer NOT NULL,
    output_length integer NOT NULL,
    created_at    timestamptz NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS rewrites_account_id_idx ON rewrites (account_id);
"""

_COLUMNS = (
    "id, email, tier, bonus_rewrites, referral_code, referred_by, customer_ref, "
    "subscription_ref, daily_usage_count, usage_day, created_at"
)


def _row_to_account(row) -> Account:
    return Account(
        id=row["id"],
        email=row["email"],
        tier=Tier(row["tier"]),
        bonus_rewrites=row["bonus_rewrites"],
        referral_code=row["referral_code"],
        referred_by=row["referred_by"],
        customer_ref=row["customer_ref"],
        subscription_ref=row["subscription_ref"],
        daily_usage_count=row["daily_usage_count"],
        usage_day=row["usage_day"],
        created_at=row["created_at"],
    )


def _to_db(value):
    return value.value if isinstance(value, Tier) else value


class PostgresAccountStore(AccountStore):
    """Account store on the ``accounts`` and ``rewrites`` tables."""

    def __init__(self, db: Database):
        self._db = db

    async def create_schema(self) -> None:
        await self._db.execute(SCHEMA_SQL)
        logger.info("Account schema ensured")

    async def _fetch_account(self, where: str, value) -> Optional[Account]:
        row = await self._db.fetchrow(
            f"SELECT {_COLUMNS} FROM accounts WHERE {where} = $1 LIMIT 1",
            value,
        )
        return _row_to_account(row) if row else None

    async def get(self, account_id: str) -> Optional[Account]:
        return await self._fetch_account("id", account_id)

    async def get_by_referral_code(self, code: str) -> Optional[Account]:
        return await self._fetch_account("referral_code", code)

    async def get_by_customer_ref(self, customer_ref: str) -> Optional[Account]:
        return await self._fetch_account("customer_ref", customer_ref)

    async def create(self, account: Account) -> Account:
        try:
            row = await self._db.fetchrow(
                f"""
                INSERT INTO accounts (id, email, tier, bonus_rewrites, referral_code, referred_by,
                                      customer_ref, subscription_ref, daily_usage_count, usage_day,
                                      created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, NOW())
                RETURNING {_COLUMNS}
                """,
                account.id,
                account.email,
                account.tier.value,
                account.bonus_rewrites,
                account.referral_code,
                account.referred_by,
                account.customer_ref,
                account.subscription_ref,
                account.daily_usage_count,
                account.usage_day,
                account.created_at,
            )
        except asyncpg.UniqueViolationError as e:
            field = "referral_code" if "referral_code" in str(e.constraint_name or "") else "id"
            raise DuplicateAccountError(field, getattr(account, field)) from e
        return _row_to_account(row)

    async def update(self, account_id: str, **fields) -> Account:
        _check_update_fields(fields)
        if not fields:
            account = await self.get(account_id)
            if account is None:
                raise AccountNotFound(account_id)
            return account

        # Column names come from UPDATABLE_FIELDS, never from input
        names = sorted(fields)
        assignments = ", ".join(f"{name} = ${i + 2}" for i, name in enumerate(names))
        row = await self._db.fetchrow(
            f"""
            UPDATE accounts SET {assignments}, updated_at = NOW()
            WHERE id = $1
            RETURNING {_COLUMNS}
            """,
            account_id,
            *[_to_db(fields[name]) for name in names],
        )
        if row is None:
            raise AccountNotFound(account_id)
        return _row_to_account(row)

    async def increment_usage(self, account_id: str, today: date) -> int:
        count = await self._db.fetchval(
            """
            UPDATE accounts
            SET daily_usage_count = CASE WHEN usage_day = $2 THEN daily_usage_count + 1 ELSE 1 END,
                usage_day = $2,
                updated_at = NOW()
            WHERE id = $1
            RETURNING daily_usage_count
            """,
            account_id,
            today,
        )
        if count is None:
            raise AccountNotFound(account_id)
        return int(count)

    async def claim_referral(self, account_id: str, code: str, bonus_rewrites: int) -> bool:
        claimed = await self._db.fetchval(
            """
            UPDATE accounts
            SET referred_by = $2, bonus_rewrites = $3, updated_at = NOW()
            WHERE id = $1 AND referred_by IS NULL
            RETURNING id
            """,
            account_id,
            code,
            bonus_rewrites,
        )
        if claimed is None and await self.get(account_id) is None:
            raise AccountNotFound(account_id)
        return claimed is not None

    async def add_bonus(self, account_id: str, amount: int, cap: int) -> int:
        bonus = await self._db.fetchval(
            """
            UPDATE accounts
            SET bonus_rewrites = LEAST(bonus_rewrites + $2, $3), updated_at = NOW()
            WHERE id = $1
            RETURNING bonus_rewrites
            """,
            account_id,
            amount,
            cap,
        )
        if bonus is None:
            raise AccountNotFound(account_id)
        return int(bonus)

    async def log_rewrite(self, entry: RewriteLogEntry) -> None:
        await self._db.execute(
            """
            INSERT INTO rewrites (account_id, tone, input_length, output_length, created_at)
            VALUES ($1, $2, $3, $4, $5)
            """,
            entry.account_id,
            entry.tone,
            entry.input_length,
            entry.output_length,
            entry.created_at,
        )
        logger.debug(f"Rewrite logged for account {short_id(entry.account_id)}")

    async def close(self) -> None:
        await self._db.close()
