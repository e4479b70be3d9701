"""Typed view of Razorpay webhook bodies.

Known event kinds parse into their own model; any other kind becomes an
`Unhandled` event so new gateway events are acknowledged instead of retried.
"""

import json
from datetime import datetime
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tutorhub.common.errors import MalformedPayload


class PaymentEntity(BaseModel):
    """Subset of the gateway payment entity the state machine reads."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    amount: int | None = None
    currency: str | None = None
    order_id: str | None = None
    status: str | None = None
    error_code: str | None = None
    error_reason: str | None = None
    error_description: str | None = None
    # Razorpay sends `[]` instead of `{}` when no notes were attached.
    notes: dict[str, Any] | list[Any] = Field(default_factory=dict)

    def failure_reason(self) -> str:
        return self.error_description or self.error_reason or self.error_code or "payment_failed"


class GatewayEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    kind: str
    created_at: datetime | None = None
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)


class PaymentCaptured(GatewayEvent):
    kind: Literal["payment.captured"] = "payment.captured"
    payment: PaymentEntity


class PaymentFailed(GatewayEvent):
    kind: Literal["payment.failed"] = "payment.failed"
    payment: PaymentEntity


class OrderPaid(GatewayEvent):
    kind: Literal["order.paid"] = "order.paid"
    payment: PaymentEntity
    order_id: str | None = None


class Unhandled(GatewayEvent):
    """Any event kind this service does not act on."""


WebhookEvent = Union[PaymentCaptured, PaymentFailed, OrderPaid, Unhandled]


def _dig(document: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(document, dict):
            return None
        document = document.get(key)
    return document


def _payment_event(document: dict[str, Any]) -> dict[str, Any]:
    return {"payment": _dig(document, "payload", "payment", "entity")}


def _order_event(document: dict[str, Any]) -> dict[str, Any]:
    return {
        "payment": _dig(document, "payload", "payment", "entity"),
        "order_id": _dig(document, "payload", "order", "entity", "id"),
    }


_EVENT_MODELS = {
    "payment.captured": (PaymentCaptured, _payment_event),
    "payment.failed": (PaymentFailed, _payment_event),
    "order.paid": (OrderPaid, _order_event),
}


def parse_event(body: bytes) -> WebhookEvent:
    """Parse a verified webhook body; raise `MalformedPayload` on any shape error."""

    try:
        document = json.loads(body)
    except ValueError as exc:
        raise MalformedPayload(f"body is not valid JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise MalformedPayload("body must be a JSON object")
    kind = document.get("event")
    if not isinstance(kind, str) or not kind:
        raise MalformedPayload("missing `event` field")

    fields = {"kind": kind, "created_at": document.get("created_at"), "raw": document}
    model, extract = _EVENT_MODELS.get(kind, (Unhandled, None))
    if extract is not None:
        fields.update(extract(document))
    try:
        return model.model_validate(fields)
    except ValidationError as exc:
        raise MalformedPayload(f"{kind} payload failed validation: {exc.error_count()} error(s)") from exc
