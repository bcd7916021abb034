"""
Referral code endpoint.
"""

import logging

from fastapi import APIRouter, Depends

from src.accounts import STORE_ERRORS
from src.referrals import ReferralRejected
from src.types.accounts import Account, ReferralRejection
from src.utils.logging import short_id

from ..dependencies import Services, current_account, get_services
from ..exceptions import (
    DatabaseError,
    ErrorCode,
    ResourceNotFoundError,
    RewriteAppException,
    ValidationError,
)
from ..models import ReferralRequest, ReferralResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["referral"])


def rejection_error(reason: ReferralRejection) -> RewriteAppException:
    if reason == ReferralRejection.UNKNOWN_CODE:
        return ResourceNotFoundError(
            "Invalid referral code",
            resource_type="referral_code",
            error_code=ErrorCode.UNKNOWN_REFERRAL_CODE,
        )
    if reason == ReferralRejection.SELF_REFERRAL:
        return ValidationError("Cannot refer yourself", error_code=ErrorCode.SELF_REFERRAL)
    if reason == ReferralRejection.ALREADY_REFERRED:
        return ValidationError("Referral already applied", error_code=ErrorCode.ALREADY_REFERRED)
    return ValidationError(
        "Missing referral code",
        field="code",
        error_code=ErrorCode.MISSING_REFERRAL_CODE,
    )


@router.post(
    "/referral",
    response_model=ReferralResponse,
    responses={
        400: {"description": "Missing code, own code, or a referral was already applied"},
        401: {"description": "Sign in required"},
        404: {"description": "No account has this referral code"},
        500: {"description": "Account store unavailable"},
    },
)
async def apply_referral(
    body: ReferralRequest,
    account: Account = Depends(current_account),
    services: Services = Depends(get_services),
):
    """
    Apply a friend's referral code to the caller's account.

    Both sides gain bonus daily rewrites; the referrer's bonus is capped.
    A code can be applied to an account only once.
    """
    try:
        result = await services.referral_ledger.apply_referral(body.referral_code, account.id)
    except ReferralRejected as e:
        raise rejection_error(e.reason)
    except STORE_ERRORS as e:
        raise DatabaseError(internal_message=f"Referral for {short_id(account.id)} failed: {e}")

    return ReferralResponse(
        bonus_awarded=result.bonus_awarded,
        message=f"+{result.bonus_awarded} bonus rewrites/day activated!",
    )
