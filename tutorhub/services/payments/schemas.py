"""API response schemas for payments endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class WebhookAck(BaseModel):
    """Minimal acknowledgment returned to the gateway."""

    status: str = "ok"


class PaymentResponse(BaseModel):
    """Read model of one payment row."""

    model_config = ConfigDict(from_attributes=True)

    razorpay_payment_id: str
    razorpay_order_id: str | None = None
    amount: int
    currency: str
    status: str
    captured_at: datetime | None = None
    failure_reason: str | None = None
