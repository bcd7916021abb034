"""
Pydantic models for accounts, entitlements and the referral program.

This module defines the data models for:
- Account records owned by the account store
- Daily entitlements resolved from tier, bonus and usage
- Anonymous (client-held) usage sessions
- Referral outcomes and rejection reasons
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Product thresholds
FREE_DAILY_LIMIT = 3
PRO_DAILY_LIMIT = 30
ANONYMOUS_DAILY_LIMIT = 3
REFERRAL_BONUS = 3
MAX_BONUS_REWRITES = 15
MAX_MESSAGE_LENGTH = 3000


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Tier(str, Enum):
    """Entitlement class of an account."""

    FREE = "free"
    PRO = "pro"


class Account(BaseModel):
    """
    One record per user.

    ``tier`` and ``subscription_ref`` are written only by the subscription
    state machine, ``bonus_rewrites`` and ``referred_by`` only by the referral
    ledger, and ``daily_usage_count`` / ``usage_day`` only by the atomic
    usage increment.
    """

    id: str
    email: Optional[str] = None
    tier: Tier = Tier.FREE
    bonus_rewrites: int = Field(
        default=0,
        ge=0,
        le=MAX_BONUS_REWRITES,
        description="Extra daily rewrites earned through referrals (free tier only)",
    )
    referral_code: str = Field(..., min_length=1)
    referred_by: Optional[str] = Field(
        default=None,
        description="Referral code that onboarded this account; write-once",
    )
    customer_ref: Optional[str] = Field(
        default=None,
        description="Stripe customer id",
    )
    subscription_ref: Optional[str] = Field(
        default=None,
        description="Stripe subscription id, present only while PRO",
    )
    daily_usage_count: int = Field(default=0, ge=0)
    usage_day: Optional[date] = Field(
        default=None,
        description="UTC date that daily_usage_count belongs to",
    )
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def is_pro(self) -> bool:
        return self.tier == Tier.PRO

    @property
    def has_subscription(self) -> bool:
        return bool(self.subscription_ref)


class Entitlement(BaseModel):
    """Resolved daily allowance for an account or anonymous session."""

    model_config = ConfigDict(frozen=True)

    limit: int = Field(..., ge=0)
    usage: int = Field(..., ge=0, description="Usage counted against today")
    remaining: int = Field(..., ge=0)

    @property
    def allowed(self) -> bool:
        return self.remaining > 0


class ConsumeResult(BaseModel):
    """Outcome of asking the usage ledger for one billable action."""

    model_config = ConfigDict(frozen=True)

    allowed: bool
    usage_after: int = Field(
        ...,
        ge=0,
        description="Usage once this action is recorded (unchanged when refused)",
    )
    limit: int = Field(..., ge=0)


class AnonymousSession(BaseModel):
    """Usage counter held by a signed-out browser."""

    count: int = Field(default=0, ge=0)
    day: Optional[date] = None


class RewriteLogEntry(BaseModel):
    """One row of the rewrite history table."""

    account_id: str
    tone: str
    input_length: int = Field(..., ge=0)
    output_length: int = Field(..., ge=0)
    created_at: datetime = Field(default_factory=utc_now)


class ReferralRejection(str, Enum):
    """Reasons a referral application is refused, in check order."""

    MISSING_CODE = "MISSING_CODE"
    UNKNOWN_CODE = "UNKNOWN_CODE"
    SELF_REFERRAL = "SELF_REFERRAL"
    ALREADY_REFERRED = "ALREADY_REFERRED"


class ReferralResult(BaseModel):
    """Successful referral application."""

    bonus_awarded: int
    referrer_id: str
    referrer_bonus: int = Field(..., description="Referrer's bonus after the award")
