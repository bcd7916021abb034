"""
Tests for the referral ledger.

Rejections are checked in a fixed order, the applicant can be referred
only once, and the referrer's bonus is capped.
"""

import asyncio
import unittest

from src.accounts import InMemoryAccountStore
from src.referrals import ReferralLedger, ReferralRejected
from src.types.accounts import Account, ReferralRejection


class ReferralTestCase(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.store = InMemoryAccountStore([
            Account(id="referrer", referral_code="FRIEND01"),
            Account(id="applicant", referral_code="NEWBIE01"),
        ])
        self.ledger = ReferralLedger(self.store)

    async def assertRejected(self, code, applicant_id, reason):
        with self.assertRaises(ReferralRejected) as ctx:
            await self.ledger.apply_referral(code, applicant_id)
        self.assertEqual(ctx.exception.reason, reason)


class TestApplyReferral(ReferralTestCase):

    async def test_success_awards_both_sides(self):
        result = await self.ledger.apply_referral("FRIEND01", "applicant")

        self.assertEqual(result.bonus_awarded, 3)
        self.assertEqual(result.referrer_id, "referrer")
        self.assertEqual(result.referrer_bonus, 3)

        applicant = await self.store.get("applicant")
        self.assertEqual(applicant.referred_by, "FRIEND01")
        self.assertEqual(applicant.bonus_rewrites, 3)
        self.assertEqual((await self.store.get("referrer")).bonus_rewrites, 3)

    async def test_code_is_trimmed(self):
        result = await self.ledger.apply_referral("  FRIEND01 ", "applicant")
        self.assertEqual(result.referrer_id, "referrer")

    async def test_referrer_bonus_capped(self):
        await self.store.update("referrer", bonus_rewrites=14)
        result = await self.ledger.apply_referral("FRIEND01", "applicant")
        self.assertEqual(result.referrer_bonus, 15)

    async def test_referrer_at_cap_stays_at_cap(self):
        await self.store.update("referrer", bonus_rewrites=15)
        result = await self.ledger.apply_referral("FRIEND01", "applicant")
        self.assertEqual(result.referrer_bonus, 15)

    async def test_referrer_bonus_grows_by_three_up_to_cap(self):
        bonuses = []
        for i in range(6):
            applicant_id = f"friend-{i}"
            await self.store.create(Account(id=applicant_id, referral_code=f"FRND{i:04d}"))
            result = await self.ledger.apply_referral("FRIEND01", applicant_id)
            bonuses.append(result.referrer_bonus)

        self.assertEqual(bonuses, [3, 6, 9, 12, 15, 15])
        self.assertEqual((await self.store.get("referrer")).bonus_rewrites, 15)

    async def test_fourth_referral_caps_at_fifteen(self):
        await self.store.update("referrer", bonus_rewrites=12)
        result = await self.ledger.apply_referral("FRIEND01", "applicant")
        self.assertEqual(result.referrer_bonus, 15)


class TestRejections(ReferralTestCase):

    async def test_missing_code(self):
        await self.assertRejected(None, "applicant", ReferralRejection.MISSING_CODE)
        await self.assertRejected("   ", "applicant", ReferralRejection.MISSING_CODE)

    async def test_unknown_code(self):
        await self.assertRejected("NOPE0000", "applicant", ReferralRejection.UNKNOWN_CODE)

    async def test_self_referral(self):
        await self.assertRejected("NEWBIE01", "applicant", ReferralRejection.SELF_REFERRAL)

    async def test_already_referred(self):
        await self.ledger.apply_referral("FRIEND01", "applicant")
        await self.store.create(Account(id="other", referral_code="OTHER001"))
        await self.assertRejected("OTHER001", "applicant", ReferralRejection.ALREADY_REFERRED)

    async def test_self_referral_checked_before_already_referred(self):
        await self.ledger.apply_referral("FRIEND01", "applicant")
        await self.assertRejected("NEWBIE01", "applicant", ReferralRejection.SELF_REFERRAL)

    async def test_rejection_changes_nothing(self):
        await self.assertRejected("NEWBIE01", "applicant", ReferralRejection.SELF_REFERRAL)
        applicant = await self.store.get("applicant")
        self.assertIsNone(applicant.referred_by)
        self.assertEqual(applicant.bonus_rewrites, 0)

    async def test_second_application_does_not_award_referrer_again(self):
        await self.ledger.apply_referral("FRIEND01", "applicant")
        await self.assertRejected("FRIEND01", "applicant", ReferralRejection.ALREADY_REFERRED)
        self.assertEqual((await self.store.get("referrer")).bonus_rewrites, 3)


class TestConcurrentApplications(ReferralTestCase):

    async def test_only_one_concurrent_claim_succeeds(self):
        results = await asyncio.gather(
            self.ledger.apply_referral("FRIEND01", "applicant"),
            self.ledger.apply_referral("FRIEND01", "applicant"),
            return_exceptions=True,
        )
        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, ReferralRejected)]
        self.assertEqual(len(successes), 1)
        self.assertEqual(len(failures), 1)
        self.assertEqual(failures[0].reason, ReferralRejection.ALREADY_REFERRED)
        self.assertEqual((await self.store.get("referrer")).bonus_rewrites, 3)


if __name__ == "__main__":
    unittest.main()
