"""API routes for the rewrite API."""

from .account import router as account_router
from .health import router as health_router
from .payments import router as payments_router
from .referral import router as referral_router
from .rewrite import router as rewrite_router

__all__ = [
    "account_router",
    "health_router",
    "payments_router",
    "referral_router",
    "rewrite_router",
]
