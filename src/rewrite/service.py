"""
Rewrite orchestration: validate, check quota, transform, record.
"""

import logging
from typing import Optional

from pydantic import BaseModel

from src.accounts.store import AccountStore
from src.types.accounts import MAX_MESSAGE_LENGTH, Account, AnonymousSession, RewriteLogEntry
from src.usage.entitlements import next_reset_at
from src.usage.ledger import QuotaExhausted, UsageLedger
from src.utils.logging import short_id

from .client import Rewriter
from .tones import Tone

logger = logging.getLogger(__name__)


class InvalidRewriteRequest(ValueError):
    """The message or tone cannot be sent to the rewrite model."""

    MISSING = "missing"
    TOO_LONG = "too_long"
    UNKNOWN_TONE = "unknown_tone"

    def __init__(self, message: str, field: str, reason: str = MISSING):
        self.field = field
        self.reason = reason
        super().__init__(message)


class RewriteResult(BaseModel):
    rewrite: str
    usage: Optional[int]
    limit: int
    is_pro: bool


def validate_request(message: Optional[str], tone: Optional[str]) -> Tone:
    """
    Check a rewrite request before any quota is looked at.

    Returns:
        The resolved tone

    Raises:
        InvalidRewriteRequest: for a missing message or tone, an unknown
            tone, or a message over the length limit
    """
    if not message or not message.strip() or not tone:
        raise InvalidRewriteRequest("Missing message or tone", "message" if tone else "tone")
    if len(message) > MAX_MESSAGE_LENGTH:
        raise InvalidRewriteRequest(
            f"Message too long (max {MAX_MESSAGE_LENGTH:,} chars)",
            "message",
            InvalidRewriteRequest.TOO_LONG,
        )
    resolved = Tone.parse(tone)
    if resolved is None:
        raise InvalidRewriteRequest(
            f"Unknown tone. Choose one of: {', '.join(t.value for t in Tone)}",
            "tone",
            InvalidRewriteRequest.UNKNOWN_TONE,
        )
    return resolved


class RewriteService:
    """Runs the quota-checked rewrite flow for signed-in and anonymous users."""

    def __init__(self, rewriter: Rewriter, ledger: UsageLedger, store: AccountStore):
        self._rewriter = rewriter
        self._ledger = ledger
        self._store = store

    async def rewrite_for_account(self, account: Account, message: str, tone: Tone) -> RewriteResult:
        """
        Rewrite on behalf of a signed-in account.

        Raises:
            QuotaExhausted: when no allowance is left; nothing is recorded
            RewriteUnavailable: when the model fails; nothing is recorded
        """
        async with self._ledger.track(account) as tracker:
            text = await self._rewriter.rewrite(message, tone.label, tone.description)

        await self._log_rewrite(account.id, tone, message, text)
        return RewriteResult(
            rewrite=text,
            usage=tracker.usage_after,
            limit=tracker.limit,
            is_pro=account.is_pro,
        )

    async def rewrite_anonymous(
        self,
        message: str,
        tone: Tone,
        session: Optional[AnonymousSession] = None,
    ) -> RewriteResult:
        """
        Rewrite for a signed-out client, checked against the counter it reports.

        The server keeps no record; the client counts the rewrite itself.
        """
        result = self._ledger.try_consume_anonymous(session)
        if not result.allowed:
            raise QuotaExhausted(result, is_pro=False, reset_at=next_reset_at(self._ledger.now()))

        text = await self._rewriter.rewrite(message, tone.label, tone.description)
        return RewriteResult(rewrite=text, usage=None, limit=result.limit, is_pro=False)

    async def _log_rewrite(self, account_id: str, tone: Tone, message: str, text: str) -> None:
        entry = RewriteLogEntry(
            account_id=account_id,
            tone=tone.value,
            input_length=len(message),
            output_length=len(text),
        )
        try:
            await self._store.log_rewrite(entry)
        except Exception as e:
            logger.error(f"Failed to log rewrite for account {short_id(account_id)}: {e}")
