"""Pydantic models for the rewrite API."""

from .requests import CamelModel, ReferralRequest, RewriteRequest
from .responses import (
    AccountResponse,
    RedirectResponse,
    ReferralResponse,
    RewriteResponse,
    WebhookResponse,
)

__all__ = [
    "CamelModel",
    # Requests
    "RewriteRequest",
    "ReferralRequest",
    # Responses
    "AccountResponse",
    "RedirectResponse",
    "ReferralResponse",
    "RewriteResponse",
    "WebhookResponse",
]
