"""
Daily quota resolution and usage accounting.
"""

from .entitlements import (
    anonymous_entitlement,
    daily_limit,
    effective_usage,
    is_same_utc_day,
    next_reset_at,
    resolve_entitlement,
    seconds_until_reset,
    utc_day,
)
from .ledger import Clock, QuotaExhausted, UsageLedger, UsageTracker, system_clock

__all__ = [
    "anonymous_entitlement",
    "daily_limit",
    "effective_usage",
    "is_same_utc_day",
    "next_reset_at",
    "resolve_entitlement",
    "seconds_until_reset",
    "utc_day",
    "Clock",
    "QuotaExhausted",
    "UsageLedger",
    "UsageTracker",
    "system_clock",
]
