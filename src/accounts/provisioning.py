"""
Account provisioning.

Accounts are created the first time an authenticated user reaches the API,
standing in for a signup hook on the auth provider. This is the only place
a referral code is assigned.
"""

import logging
import secrets
import string
from typing import Callable, Optional

from src.types.accounts import Account
from src.utils.logging import short_id

from .store import AccountStore, DuplicateAccountError

logger = logging.getLogger(__name__)

REFERRAL_CODE_ALPHABET = string.ascii_uppercase + string.digits
REFERRAL_CODE_LENGTH = 8
MAX_CODE_ATTEMPTS = 5


def generate_referral_code(length: int = REFERRAL_CODE_LENGTH) -> str:
    return "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(length))


async def ensure_account(
    store: AccountStore,
    account_id: str,
    email: Optional[str] = None,
    code_factory: Callable[[], str] = generate_referral_code,
) -> Account:
    """
    Return the account for ``account_id``, creating a free one if needed.

    Referral-code collisions are retried with a fresh code. A concurrent
    request that created the same account first wins and its record is
    returned.

    Raises:
        DuplicateAccountError: if no unique referral code was found
    """
    account = await store.get(account_id)
    if account is not None:
        return account

    last_error: Optional[DuplicateAccountError] = None
    for _ in range(MAX_CODE_ATTEMPTS):
        try:
            account = await store.create(
                Account(id=account_id, email=email, referral_code=code_factory())
            )
            logger.info(f"Provisioned account {short_id(account_id)}")
            return account
        except DuplicateAccountError as e:
            if e.field == "id":
                existing = await store.get(account_id)
                if existing is not None:
                    return existing
            last_error = e
            logger.warning(f"Referral code collision while provisioning {short_id(account_id)}")

    raise last_error
