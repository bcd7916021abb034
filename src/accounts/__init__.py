"""Account store and provisioning."""

from .postgres import STORE_ERRORS, PostgresAccountStore
from .provisioning import ensure_account, generate_referral_code
from .store import (
    AccountNotFound,
    AccountStore,
    AccountStoreError,
    DuplicateAccountError,
    InMemoryAccountStore,
)

__all__ = [
    "AccountNotFound",
    "AccountStore",
    "AccountStoreError",
    "DuplicateAccountError",
    "InMemoryAccountStore",
    "PostgresAccountStore",
    "STORE_ERRORS",
    "ensure_account",
    "generate_referral_code",
]
