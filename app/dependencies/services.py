"""
Service container for the rewrite API.

Every collaborator a request handler needs is built once at startup and
stored on ``app.state.services``. Handlers reach it through the
``get_services`` dependency; tests build their own container with fakes.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Request

from src.accounts import AccountStore, InMemoryAccountStore, PostgresAccountStore
from src.config import Settings
from src.db import Database
from src.payments import StripeService, SubscriptionSync
from src.referrals import ReferralLedger
from src.rewrite import AnthropicRewriter, Rewriter, RewriteService, UnconfiguredRewriter
from src.usage import Clock, UsageLedger, system_clock

from ..auth import SupabaseTokenVerifier

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    store: AccountStore
    rewriter: Rewriter
    stripe: StripeService
    token_verifier: Optional[SupabaseTokenVerifier] = None
    clock: Clock = system_clock
    db: Optional[Database] = None

    usage_ledger: UsageLedger = field(init=False)
    referral_ledger: ReferralLedger = field(init=False)
    subscription_sync: SubscriptionSync = field(init=False)
    rewrite_service: RewriteService = field(init=False)

    def __post_init__(self):
        self.usage_ledger = UsageLedger(self.store, self.clock)
        self.referral_ledger = ReferralLedger(self.store)
        self.subscription_sync = SubscriptionSync(self.store)
        self.rewrite_service = RewriteService(self.rewriter, self.usage_ledger, self.store)

    async def startup(self) -> None:
        if isinstance(self.store, PostgresAccountStore):
            await self.store.create_schema()

    async def close(self) -> None:
        try:
            self.rewriter.close()
        finally:
            await self.store.close()
        logger.info("Services closed")


def build_services(settings: Settings, clock: Clock = system_clock) -> Services:
    """Wire the production collaborators from configuration."""
    db = Database.from_settings(settings.database)
    if db is not None:
        store: AccountStore = PostgresAccountStore(db)
    else:
        logger.warning("DATABASE_URL not configured - accounts are kept in memory")
        store = InMemoryAccountStore()

    rewriter = AnthropicRewriter.from_settings(settings.llm)
    if rewriter is None:
        logger.warning("ANTHROPIC_API_KEY not configured - rewrites will fail")
        rewriter = UnconfiguredRewriter()

    token_verifier = SupabaseTokenVerifier.from_settings(settings.auth)
    if token_verifier is None:
        logger.warning("SUPABASE_JWT_SECRET not configured - all requests are anonymous")

    return Services(
        settings=settings,
        store=store,
        rewriter=rewriter,
        stripe=StripeService(settings.stripe, store),
        token_verifier=token_verifier,
        clock=clock,
        db=db,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
