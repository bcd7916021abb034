"""
Message rewrite endpoint.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from src.rewrite import InvalidRewriteRequest, RewriteUnavailable, validate_request
from src.types.accounts import PRO_DAILY_LIMIT, Account
from src.usage import QuotaExhausted, seconds_until_reset

from ..dependencies import Services, get_services, optional_account
from ..exceptions import (
    AnthropicServiceError,
    ErrorCode,
    QuotaExceededError,
    ValidationError,
)
from ..models import RewriteRequest, RewriteResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["rewrite"])


VALIDATION_CODES = {
    InvalidRewriteRequest.MISSING: ErrorCode.MISSING_REQUIRED_FIELD,
    InvalidRewriteRequest.TOO_LONG: ErrorCode.MESSAGE_TOO_LONG,
    InvalidRewriteRequest.UNKNOWN_TONE: ErrorCode.INVALID_TONE,
}


def _validation_error(e: InvalidRewriteRequest) -> ValidationError:
    return ValidationError(str(e), field=e.field, error_code=VALIDATION_CODES[e.reason])


def quota_error(e: QuotaExhausted, signed_in: bool, services: Services) -> QuotaExceededError:
    if e.is_pro:
        message = f"Daily limit reached ({PRO_DAILY_LIMIT}). Resets at midnight UTC."
    elif signed_in:
        message = f"Free limit reached. Upgrade to Pro for {PRO_DAILY_LIMIT}/day."
    else:
        message = "Free limit reached. Sign in to keep rewriting."

    return QuotaExceededError(
        message,
        limit=e.result.limit,
        current_usage=e.result.usage_after,
        upgrade=not e.is_pro,
        reset_time=e.reset_at,
        retry_after=seconds_until_reset(services.usage_ledger.now()),
    )


@router.post(
    "/rewrite",
    response_model=RewriteResponse,
    summary="Rewrite a message in a chosen tone",
    responses={
        400: {"description": "Missing message or tone, unknown tone, or message too long"},
        401: {"description": "A bearer token was sent but is not valid"},
        429: {"description": "Daily allowance used up"},
        502: {"description": "Rewrite model unavailable"},
    },
)
async def rewrite_message(
    body: RewriteRequest,
    account: Optional[Account] = Depends(optional_account),
    services: Services = Depends(get_services),
):
    """
    Rewrite a message.

    Signed-in callers are counted against their server-side daily allowance;
    usage is only recorded when the rewrite succeeds. Signed-out callers may
    send the counter their browser keeps and are refused once it is used up.
    """
    try:
        tone = validate_request(body.message, body.tone)
    except InvalidRewriteRequest as e:
        raise _validation_error(e)

    try:
        if account is not None:
            result = await services.rewrite_service.rewrite_for_account(account, body.message, tone)
        else:
            result = await services.rewrite_service.rewrite_anonymous(
                body.message, tone, body.anonymous_usage
            )
    except QuotaExhausted as e:
        raise quota_error(e, signed_in=account is not None, services=services)
    except RewriteUnavailable as e:
        raise AnthropicServiceError(original_error=e)

    return RewriteResponse(
        rewrite=result.rewrite,
        usage=result.usage,
        limit=result.limit,
        is_pro=result.is_pro,
    )
