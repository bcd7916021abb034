"""
Signed-in account endpoint.
"""

from fastapi import APIRouter, Depends

from src.types.accounts import Account
from src.usage import next_reset_at

from ..dependencies import Services, current_account, get_services
from ..models import AccountResponse

router = APIRouter(prefix="/api", tags=["account"])


@router.get(
    "/me",
    response_model=AccountResponse,
    responses={401: {"description": "Sign in required"}},
)
async def get_me(
    account: Account = Depends(current_account),
    services: Services = Depends(get_services),
):
    """Plan, today's allowance and referral code for the caller."""
    ledger = services.usage_ledger
    entitlement = ledger.entitlement(account)

    return AccountResponse(
        id=account.id,
        email=account.email,
        is_pro=account.is_pro,
        referral_code=account.referral_code,
        bonus_rewrites=account.bonus_rewrites,
        usage=entitlement.usage,
        limit=entitlement.limit,
        remaining=entitlement.remaining,
        has_subscription=account.has_subscription,
        referred=account.referred_by is not None,
        resets_at=next_reset_at(ledger.now()).isoformat(),
    )
