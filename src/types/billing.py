"""
Typed billing events delivered by Stripe webhooks.

Only the event types that move account state are modelled. They form a
closed union discriminated on ``event_type``; anything else is dropped by
``parse_billing_event`` before it reaches the subscription state machine.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

ACTIVE_SUBSCRIPTION_STATUSES = frozenset({"active", "trialing"})


class BillingEventType(str, Enum):
    """Stripe webhook event types handled by the service."""

    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"


class _BillingEventBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_id: str = Field(..., min_length=1)
    customer_ref: str = Field(..., min_length=1, description="Stripe customer id")


class SubscriptionCreated(_BillingEventBase):
    event_type: Literal["customer.subscription.created"] = "customer.subscription.created"
    subscription_ref: str
    status: str

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_SUBSCRIPTION_STATUSES


class SubscriptionUpdated(_BillingEventBase):
    event_type: Literal["customer.subscription.updated"] = "customer.subscription.updated"
    subscription_ref: str
    status: str

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_SUBSCRIPTION_STATUSES


class SubscriptionDeleted(_BillingEventBase):
    event_type: Literal["customer.subscription.deleted"] = "customer.subscription.deleted"
    subscription_ref: Optional[str] = None


class InvoicePaymentFailed(_BillingEventBase):
    event_type: Literal["invoice.payment_failed"] = "invoice.payment_failed"
    subscription_ref: Optional[str] = None
    attempt_count: Optional[int] = None


BillingEvent = Annotated[
    Union[SubscriptionCreated, SubscriptionUpdated, SubscriptionDeleted, InvoicePaymentFailed],
    Field(discriminator="event_type"),
]

_billing_event_adapter: TypeAdapter = TypeAdapter(BillingEvent)

HANDLED_EVENT_TYPES = frozenset(t.value for t in BillingEventType)


def _ref(value: Any) -> Optional[str]:
    # Stripe sends ids as strings unless the field was expanded into an object
    if isinstance(value, Mapping):
        value = value.get("id")
    return value or None


def parse_billing_event(event: Mapping[str, Any]) -> Optional[BillingEvent]:
    """
    Convert a verified Stripe event payload into a typed billing event.

    Returns None for event types outside the handled set.

    Raises:
        pydantic.ValidationError: if a handled event is missing required data
    """
    event_type = event.get("type")
    if event_type not in HANDLED_EVENT_TYPES:
        return None

    obj = (event.get("data") or {}).get("object") or {}
    payload = {
        "event_type": event_type,
        "event_id": event.get("id"),
        "customer_ref": _ref(obj.get("customer")),
    }

    if event_type == BillingEventType.INVOICE_PAYMENT_FAILED.value:
        payload["subscription_ref"] = _ref(obj.get("subscription"))
        payload["attempt_count"] = obj.get("attempt_count")
    else:
        payload["subscription_ref"] = obj.get("id")
        if event_type != BillingEventType.SUBSCRIPTION_DELETED.value:
            payload["status"] = obj.get("status")

    return _billing_event_adapter.validate_python(payload)
