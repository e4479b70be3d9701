"""Webhook dispatch: verify, parse, deduplicate, route.

Order matters. The signature is checked before the body is parsed, and the
body is fully parsed before any handler runs, so a rejected delivery never
has side effects. After verification every outcome is acknowledged to the
gateway, including store failures, which are logged for reconciliation
instead of triggering gateway retries.
"""

from dataclasses import dataclass

from tutorhub.common.errors import AuthenticationFailure, UpstreamStoreFailure
from tutorhub.common.logging import log_context, logger
from tutorhub.common.metrics import (
    duplicate_webhooks_skipped_total,
    webhook_deliveries_total,
    webhook_signature_rejections_total,
)
from tutorhub.common.timeutil import utcnow
from tutorhub.common.tracing import tag_current_span
from tutorhub.services.payments.events import (
    OrderPaid,
    PaymentCaptured,
    PaymentFailed,
    WebhookEvent,
    parse_event,
)
from tutorhub.services.payments.service import ALREADY_TERMINAL, APPLIED, PaymentService
from tutorhub.services.payments.signature import verify_signature


UNHANDLED = "unhandled"
DUPLICATE = "duplicate"
STORE_FAILURE = "store_failure"


@dataclass
class DispatchResult:
    """What happened to one acknowledged delivery."""

    event_kind: str
    outcome: str


class WebhookDispatcher:
    """Routes verified gateway events to payment state machine operations."""

    def __init__(self, payments: PaymentService, secret: str, service_name: str = "payments") -> None:
        self.payments = payments
        self.secret = secret
        self.service_name = service_name
        self._handlers = {
            "payment.captured": self._on_payment_captured,
            "payment.failed": self._on_payment_failed,
            "order.paid": self._on_order_paid,
        }

    def _captured_at(self, event: WebhookEvent):
        return event.created_at or utcnow()

    def _on_payment_captured(self, event: PaymentCaptured) -> str:
        self.payments.check_amount(event.payment.id, event.payment.amount)
        return self.payments.apply_captured(event.payment.id, self._captured_at(event))

    def _on_payment_failed(self, event: PaymentFailed) -> str:
        return self.payments.apply_failed(event.payment.id, event.payment.failure_reason())

    def _on_order_paid(self, event: OrderPaid) -> str:
        # order.paid and payment.captured arrive for the same payment in either
        # order; both converge on the same captured row.
        return self.payments.apply_captured(event.payment.id, self._captured_at(event))

    def handle(self, body: bytes, signature: str | None, event_id: str | None = None) -> DispatchResult:
        """Process one delivery; raise only for rejections the gateway must see."""

        if not verify_signature(body, signature, self.secret):
            webhook_signature_rejections_total.labels(service=self.service_name).inc()
            logger.warning("webhook signature rejected event_id=%s", event_id or "")
            raise AuthenticationFailure("webhook signature verification failed")

        event = parse_event(body)
        payment = getattr(event, "payment", None)
        with log_context(event_id=event_id, entity_id=payment.id if payment is not None else None):
            tag_current_span(webhook_event=event.kind, webhook_event_id=event_id)
            outcome = self._dispatch(event, event_id)
        webhook_deliveries_total.labels(service=self.service_name, event=event.kind, outcome=outcome).inc()
        return DispatchResult(event_kind=event.kind, outcome=outcome)

    def _dispatch(self, event: WebhookEvent, event_id: str | None) -> str:
        handler = self._handlers.get(event.kind)
        if handler is None:
            logger.info("webhook event not handled; acknowledging event=%s", event.kind)
            return UNHANDLED

        try:
            if event_id and self.payments.delivery_seen(event_id):
                logger.info("duplicate webhook skipped event=%s event_id=%s", event.kind, event_id)
                duplicate_webhooks_skipped_total.labels(service=self.service_name, event=event.kind).inc()
                return DUPLICATE

            outcome = handler(event)
            # A not_found skip stays retryable: the row may be stored later.
            if event_id and outcome in (APPLIED, ALREADY_TERMINAL):
                self.payments.record_delivery(event_id, event.kind)
            return outcome
        except UpstreamStoreFailure as exc:
            logger.exception(
                "webhook store failure acknowledged event=%s event_id=%s operation=%s error=%s",
                event.kind,
                event_id or "",
                exc.operation,
                exc.cause,
            )
            return STORE_FAILURE
