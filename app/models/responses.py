"""
Pydantic response models for API endpoints.

Field names are snake_case in Python and camelCase on the wire.
"""

from typing import Optional

from pydantic import Field

from .requests import CamelModel


class RewriteResponse(CamelModel):
    rewrite: str
    usage: Optional[int] = Field(
        default=None,
        description="Rewrites used today after this one; null for signed-out callers",
    )
    limit: int
    is_pro: bool


class AccountResponse(CamelModel):
    """The signed-in user's plan, allowance and referral details."""

    id: str
    email: Optional[str] = None
    is_pro: bool
    referral_code: str
    bonus_rewrites: int
    usage: int
    limit: int
    remaining: int
    has_subscription: bool
    referred: bool = False
    resets_at: str


class ReferralResponse(CamelModel):
    success: bool = True
    bonus_awarded: int
    message: str


class RedirectResponse(CamelModel):
    """A hosted Stripe page to send the browser to."""

    url: str


class WebhookResponse(CamelModel):
    received: bool = True
