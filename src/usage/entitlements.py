"""
Entitlement resolution.

Pure functions that turn account state into a daily allowance:

- free tier:  limit = 3 + bonus_rewrites (bonus capped at 15)
- pro tier:   limit = 30, bonuses ignored
- anonymous:  limit = 3, counted against the client-held counter

Usage is partitioned by UTC day and reset on read: a count recorded on an
earlier day is worth zero today. Callers pass ``now`` explicitly so these
functions stay side-effect free.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

from src.types.accounts import (
    ANONYMOUS_DAILY_LIMIT,
    FREE_DAILY_LIMIT,
    MAX_BONUS_REWRITES,
    PRO_DAILY_LIMIT,
    Account,
    AnonymousSession,
    Entitlement,
    Tier,
)


def _as_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_day(moment: Union[date, datetime]) -> date:
    """UTC calendar date of ``moment``."""
    if isinstance(moment, datetime):
        return _as_utc(moment).date()
    return moment


def is_same_utc_day(last: Optional[Union[date, datetime]], now: datetime) -> bool:
    """
    Whether ``last`` falls on the same UTC calendar day as ``now``.

    A missing ``last`` means usage was never recorded, which never matches.
    """
    if last is None:
        return False
    return utc_day(last) == utc_day(now)


def next_reset_at(now: datetime) -> datetime:
    """Next UTC midnight after ``now``."""
    today = utc_day(now)
    return datetime(today.year, today.month, today.day, tzinfo=timezone.utc) + timedelta(days=1)


def seconds_until_reset(now: datetime) -> int:
    return max(1, int((next_reset_at(now) - _as_utc(now)).total_seconds()))


def daily_limit(tier: Tier, bonus_rewrites: int) -> int:
    if tier == Tier.PRO:
        return PRO_DAILY_LIMIT
    return FREE_DAILY_LIMIT + min(max(bonus_rewrites, 0), MAX_BONUS_REWRITES)


def effective_usage(count: int, last: Optional[Union[date, datetime]], now: datetime) -> int:
    """Usage that counts against today, after the day-boundary reset."""
    if not is_same_utc_day(last, now):
        return 0
    return max(count, 0)


def _entitlement(limit: int, usage: int) -> Entitlement:
    return Entitlement(limit=limit, usage=usage, remaining=max(0, limit - usage))


def resolve_entitlement(account: Account, now: datetime) -> Entitlement:
    """Daily limit and remaining allowance for a signed-in account."""
    usage = effective_usage(account.daily_usage_count, account.usage_day, now)
    return _entitlement(daily_limit(account.tier, account.bonus_rewrites), usage)


def anonymous_entitlement(session: Optional[AnonymousSession], now: datetime) -> Entitlement:
    """Daily allowance for a signed-out client, from the counter it reports."""
    if session is None:
        return _entitlement(ANONYMOUS_DAILY_LIMIT, 0)
    usage = effective_usage(session.count, session.day, now)
    return _entitlement(ANONYMOUS_DAILY_LIMIT, usage)
