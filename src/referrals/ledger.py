"""
Referral ledger.

Applies a referral code to an applicant account once. Preconditions are
checked in a fixed order and the first failure decides the rejection:

1. a code is present
2. the code belongs to an account        (UNKNOWN_CODE)
3. that account is not the applicant     (SELF_REFERRAL)
4. the applicant was never referred      (ALREADY_REFERRED)

On success the applicant is marked with the code and given a flat bonus,
then the referrer's bonus is raised and capped. The two writes are
separate single-account operations; a failure between them leaves the
applicant marked without the referrer award.
"""

import logging
from typing import Optional

from src.accounts.store import AccountStore
from src.types.accounts import (
    MAX_BONUS_REWRITES,
    REFERRAL_BONUS,
    ReferralRejection,
    ReferralResult,
)
from src.utils.logging import short_id

logger = logging.getLogger(__name__)


class ReferralRejected(Exception):
    """A referral application failed one of its preconditions."""

    def __init__(self, reason: ReferralRejection):
        self.reason = reason
        super().__init__(reason.value)


class ReferralLedger:
    def __init__(
        self,
        store: AccountStore,
        bonus: int = REFERRAL_BONUS,
        cap: int = MAX_BONUS_REWRITES,
    ):
        self._store = store
        self._bonus = bonus
        self._cap = cap

    async def apply_referral(self, code: Optional[str], applicant_id: str) -> ReferralResult:
        """
        Apply ``code`` on behalf of ``applicant_id``.

        Raises:
            ReferralRejected: with the first failing precondition
            AccountNotFound: if the applicant has no account
        """
        code = (code or "").strip()
        if not code:
            raise ReferralRejected(ReferralRejection.MISSING_CODE)

        referrer = await self._store.get_by_referral_code(code)
        if referrer is None:
            raise ReferralRejected(ReferralRejection.UNKNOWN_CODE)

        if referrer.id == applicant_id:
            raise ReferralRejected(ReferralRejection.SELF_REFERRAL)

        # Write-once guard: the claim fails if referred_by is already set,
        # including by a concurrent request that got there first.
        claimed = await self._store.claim_referral(applicant_id, code, self._bonus)
        if not claimed:
            raise ReferralRejected(ReferralRejection.ALREADY_REFERRED)

        referrer_bonus = await self._store.add_bonus(referrer.id, self._bonus, self._cap)

        logger.info(
            f"Referral applied: {short_id(applicant_id)} referred by {short_id(referrer.id)} "
            f"(referrer bonus now {referrer_bonus})"
        )
        return ReferralResult(
            bonus_awarded=self._bonus,
            referrer_id=referrer.id,
            referrer_bonus=referrer_bonus,
        )
