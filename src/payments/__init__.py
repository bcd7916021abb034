"""
Stripe payment integration.
"""

from .stripe_service import (
    NoBillingCustomer,
    PaymentsNotConfigured,
    StripeService,
    WebhookVerificationError,
)
from .subscription_sync import SubscriptionSync

__all__ = [
    "NoBillingCustomer",
    "PaymentsNotConfigured",
    "StripeService",
    "WebhookVerificationError",
    # Subscription state machine
    "SubscriptionSync",
]
