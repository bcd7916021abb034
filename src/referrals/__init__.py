"""Referral bonus program."""

from .ledger import ReferralLedger, ReferralRejected

__all__ = ["ReferralLedger", "ReferralRejected"]
