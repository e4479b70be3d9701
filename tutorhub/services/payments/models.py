"""Payments database models.

`payments` rows are created when an order is placed and only mutated by the
webhook-driven state machine. `webhook_deliveries` is the inbox used to skip
re-delivered gateway events.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import CheckConstraint, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from tutorhub.common.db import Base


class Payment(Base):
    """Current state of one gateway payment."""

    __tablename__ = "payments"
    __table_args__ = (CheckConstraint("status IN ('created', 'captured', 'failed')", name="ck_payments_status"),)

    payment_id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    razorpay_payment_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    razorpay_order_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    enrollment_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    # Minor currency units (paise).
    amount: Mapped[int] = mapped_column(Integer)
    currency: Mapped[str] = mapped_column(String(3), default="INR")
    status: Mapped[str] = mapped_column(String, default="created", index=True)
    captured_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class WebhookDelivery(Base):
    """Deduplication table for gateway webhook deliveries."""

    __tablename__ = "webhook_deliveries"

    event_id: Mapped[str] = mapped_column(String, primary_key=True)
    event_kind: Mapped[str] = mapped_column(String)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
