"""
Type definitions for the rewrite service.
"""

from .accounts import (
    ANONYMOUS_DAILY_LIMIT,
    FREE_DAILY_LIMIT,
    MAX_BONUS_REWRITES,
    MAX_MESSAGE_LENGTH,
    PRO_DAILY_LIMIT,
    REFERRAL_BONUS,
    Account,
    AnonymousSession,
    ConsumeResult,
    Entitlement,
    ReferralRejection,
    ReferralResult,
    RewriteLogEntry,
    Tier,
)
from .billing import (
    ACTIVE_SUBSCRIPTION_STATUSES,
    BillingEvent,
    BillingEventType,
    InvoicePaymentFailed,
    SubscriptionCreated,
    SubscriptionDeleted,
    SubscriptionUpdated,
    parse_billing_event,
)

__all__ = [
    # Account types
    "Account",
    "AnonymousSession",
    "ConsumeResult",
    "Entitlement",
    "ReferralRejection",
    "ReferralResult",
    "RewriteLogEntry",
    "Tier",
    "ANONYMOUS_DAILY_LIMIT",
    "FREE_DAILY_LIMIT",
    "MAX_BONUS_REWRITES",
    "MAX_MESSAGE_LENGTH",
    "PRO_DAILY_LIMIT",
    "REFERRAL_BONUS",
    # Billing types
    "ACTIVE_SUBSCRIPTION_STATUSES",
    "BillingEvent",
    "BillingEventType",
    "InvoicePaymentFailed",
    "SubscriptionCreated",
    "SubscriptionDeleted",
    "SubscriptionUpdated",
    "parse_billing_event",
]
