"""
Payment and subscription management endpoints.

Provides API endpoints for:
- Starting a Pro subscription checkout
- Opening the Stripe customer portal
- Handling Stripe webhooks
"""

import logging

import stripe
from fastapi import APIRouter, Depends, Header, Request

from src.payments import NoBillingCustomer, PaymentsNotConfigured, WebhookVerificationError
from src.types.accounts import Account
from src.utils.logging import short_id

from ..dependencies import Services, current_account, get_services
from ..exceptions import (
    ErrorCode,
    RewriteAppException,
    ServiceNotConfiguredError,
    StripeServiceError,
    ValidationError,
)
from ..models import RedirectResponse, WebhookResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["payments"])


def _not_configured(e: PaymentsNotConfigured) -> ServiceNotConfiguredError:
    return ServiceNotConfiguredError(
        "Payments are not available right now",
        service_name="stripe",
        internal_message=str(e),
    )


def _stripe_error(e: stripe.StripeError) -> StripeServiceError:
    return StripeServiceError(stripe_error_code=e.code, original_error=e)


@router.post(
    "/checkout",
    response_model=RedirectResponse,
    responses={
        401: {"description": "Sign in required"},
        502: {"description": "Stripe API error"},
        503: {"description": "Stripe not configured"},
    },
)
async def create_checkout(
    account: Account = Depends(current_account),
    services: Services = Depends(get_services),
):
    """
    Create a Stripe checkout session for the Pro subscription.

    The Stripe customer is created on first checkout and linked to the
    account, so later webhook events can find it.
    """
    try:
        session = await services.stripe.create_checkout_session(account)
    except PaymentsNotConfigured as e:
        raise _not_configured(e)
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating checkout for {short_id(account.id)}: {e}")
        raise _stripe_error(e)

    return RedirectResponse(url=session["url"])


@router.post(
    "/portal",
    response_model=RedirectResponse,
    responses={
        400: {"description": "The account has never subscribed"},
        401: {"description": "Sign in required"},
        502: {"description": "Stripe API error"},
    },
)
async def create_portal(
    account: Account = Depends(current_account),
    services: Services = Depends(get_services),
):
    """Create a customer portal session for managing an existing subscription."""
    try:
        url = await services.stripe.create_portal_session(account)
    except NoBillingCustomer:
        raise ValidationError("No subscription found", error_code=ErrorCode.NO_SUBSCRIPTION)
    except PaymentsNotConfigured as e:
        raise _not_configured(e)
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating portal for {short_id(account.id)}: {e}")
        raise _stripe_error(e)

    return RedirectResponse(url=url)


@router.post(
    "/webhook",
    response_model=WebhookResponse,
    responses={
        400: {"description": "Invalid webhook signature or payload"},
        500: {"description": "Event could not be applied"},
    },
)
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None, alias="Stripe-Signature"),
    services: Services = Depends(get_services),
):
    """
    Handle incoming Stripe webhook events.

    Note: This endpoint does not require a session token as it is called
    directly by Stripe. Security is ensured via webhook signature
    verification. Event types outside the subscription lifecycle and
    events for unknown customers are acknowledged without changes, so
    Stripe does not retry them.
    """
    payload = await request.body()

    try:
        event = services.stripe.construct_event(payload, stripe_signature)
    except PaymentsNotConfigured as e:
        raise _not_configured(e)
    except WebhookVerificationError as e:
        raise ValidationError(f"Webhook Error: {e}", error_code=ErrorCode.INVALID_WEBHOOK)

    try:
        result = await services.subscription_sync.apply(event)
    except Exception as e:
        logger.error(f"Error processing webhook: {e}", exc_info=True)
        raise RewriteAppException(
            "Webhook handler error",
            error_code=ErrorCode.WEBHOOK_PROCESSING_FAILED,
            internal_message=str(e),
        )

    if result.get("synced"):
        logger.info(
            f"Webhook synced: {result.get('action')} "
            f"(account: {short_id(result.get('account_id'))})"
        )
    else:
        logger.debug(f"Webhook not synced: {result.get('reason')}")

    return WebhookResponse(received=True)
