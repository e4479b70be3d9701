"""Webhook-driven payment state machine.

The gateway delivers at-least-once, so every operation here must be safe to
repeat: a missing row is skipped, a terminal row is left untouched, and the
created -> captured/failed write is a single conditional row update.
"""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from tutorhub.common.errors import UpstreamStoreFailure
from tutorhub.common.logging import logger
from tutorhub.common.metrics import payment_transitions_total, store_failures_total
from tutorhub.common.state_machine import PAYMENT_TRANSITIONS, is_terminal, validate_transition
from tutorhub.common.timeutil import utcnow
from tutorhub.services.payments.models import Payment, WebhookDelivery


APPLIED = "applied"
ALREADY_TERMINAL = "already_terminal"
NOT_FOUND = "not_found"


class PaymentService:
    """Owns payment status transitions and the webhook delivery inbox."""

    def __init__(self, session_factory, service_name: str = "payments", clock=utcnow) -> None:
        self.session_factory = session_factory
        self.service_name = service_name
        self.clock = clock

    def _store_failure(self, operation: str, exc: SQLAlchemyError) -> UpstreamStoreFailure:
        store_failures_total.labels(service=self.service_name, operation=operation).inc()
        return UpstreamStoreFailure(operation, exc)

    def get_payment(self, gateway_payment_id: str) -> Payment | None:
        try:
            with self.session_factory() as db:
                return db.execute(
                    select(Payment).where(Payment.razorpay_payment_id == gateway_payment_id)
                ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise self._store_failure("get_payment", exc) from exc

    def _transition(self, gateway_payment_id: str, new_status: str, values: dict) -> str:
        """Move a `created` payment to `new_status`, or report why nothing changed.

        The write is guarded by `status = 'created'`, so two concurrent
        deliveries cannot both win and a terminal row is never rewritten.
        """

        validate_transition(PAYMENT_TRANSITIONS, "created", new_status)
        with self.session_factory() as db:
            result = db.execute(
                update(Payment)
                .where(
                    Payment.razorpay_payment_id == gateway_payment_id,
                    Payment.status == "created",
                )
                .values(status=new_status, updated_at=self.clock(), **values)
            )
            db.commit()
            if result.rowcount == 1:
                payment_transitions_total.labels(service=self.service_name, to_state=new_status).inc()
                logger.info("payment_transition payment=%s to=%s", gateway_payment_id, new_status)
                return APPLIED

            current = db.execute(
                select(Payment.status).where(Payment.razorpay_payment_id == gateway_payment_id)
            ).scalar_one_or_none()

        if current is None:
            logger.warning(
                "payment not found locally; skipping payment=%s target=%s", gateway_payment_id, new_status
            )
            return NOT_FOUND
        if is_terminal(PAYMENT_TRANSITIONS, current):
            logger.info(
                "payment already terminal; no-op payment=%s status=%s target=%s",
                gateway_payment_id,
                current,
                new_status,
            )
            return ALREADY_TERMINAL
        # Unknown status value written by something outside this service.
        logger.error("payment in unexpected status payment=%s status=%s", gateway_payment_id, current)
        return ALREADY_TERMINAL

    def apply_captured(self, gateway_payment_id: str, captured_at: datetime) -> str:
        """Mark a payment captured; idempotent under re-delivery."""

        try:
            return self._transition(gateway_payment_id, "captured", {"captured_at": captured_at})
        except SQLAlchemyError as exc:
            raise self._store_failure("apply_captured", exc) from exc

    def apply_failed(self, gateway_payment_id: str, reason: str) -> str:
        """Mark a payment failed with the gateway's reason; idempotent under re-delivery."""

        try:
            return self._transition(gateway_payment_id, "failed", {"failure_reason": reason})
        except SQLAlchemyError as exc:
            raise self._store_failure("apply_failed", exc) from exc

    def check_amount(self, gateway_payment_id: str, gateway_amount: int | None) -> None:
        """Warn when the gateway amount disagrees with the locally stored amount."""

        if gateway_amount is None:
            return
        payment = self.get_payment(gateway_payment_id)
        if payment is not None and payment.amount != gateway_amount:
            logger.warning(
                "payment amount mismatch payment=%s local=%s gateway=%s",
                gateway_payment_id,
                payment.amount,
                gateway_amount,
            )

    def delivery_seen(self, event_id: str) -> bool:
        try:
            with self.session_factory() as db:
                return db.get(WebhookDelivery, event_id) is not None
        except SQLAlchemyError as exc:
            raise self._store_failure("delivery_seen", exc) from exc

    def record_delivery(self, event_id: str, event_kind: str) -> None:
        """Remember a handled delivery; a concurrent duplicate insert is fine."""

        try:
            with self.session_factory() as db:
                db.add(WebhookDelivery(event_id=event_id, event_kind=event_kind, received_at=self.clock()))
                db.commit()
        except IntegrityError:
            logger.info("webhook delivery already recorded event_id=%s", event_id)
        except SQLAlchemyError as exc:
            raise self._store_failure("record_delivery", exc) from exc
