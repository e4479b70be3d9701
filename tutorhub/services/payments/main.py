"""HTTP surface for the Razorpay webhook and payment reads."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Header, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from tutorhub.common.config import settings
from tutorhub.common.db import make_engine, make_session_factory
from tutorhub.common.errors import AuthenticationFailure, MalformedPayload, UpstreamStoreFailure
from tutorhub.common.http import install_request_middleware, to_http_exception
from tutorhub.common.logging import configure_logging, logger
from tutorhub.common.metrics import metrics_response
from tutorhub.common.startup import log_startup_config
from tutorhub.common.tracing import setup_tracing
from tutorhub.services.payments.dispatcher import WebhookDispatcher
from tutorhub.services.payments.schemas import PaymentResponse, WebhookAck
from tutorhub.services.payments.service import PaymentService


SERVICE_NAME = "payments"


def create_app(session_factory=None, webhook_secret: str | None = None) -> FastAPI:
    """Build the payments app around an explicit store handle.

    When no `session_factory` is passed, the lifespan opens an engine from
    `POSTGRES_DSN` and disposes it on shutdown.
    """

    configure_logging()
    log_startup_config(
        settings,
        ["service_name", "postgres_dsn", "razorpay_webhook_secret", "tracing_enabled"],
    )
    secret = settings.razorpay_webhook_secret if webhook_secret is None else webhook_secret

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = None
        factory = session_factory
        if factory is None:
            engine = make_engine(settings.postgres_dsn)
            factory = make_session_factory(engine)
        payments = PaymentService(factory, service_name=SERVICE_NAME)
        app.state.payments = payments
        app.state.dispatcher = WebhookDispatcher(payments, secret, service_name=SERVICE_NAME)
        yield
        if engine is not None:
            engine.dispose()

    app = FastAPI(title="TutorHub Payments", lifespan=lifespan)
    install_request_middleware(app, SERVICE_NAME)
    setup_tracing(app, SERVICE_NAME)

    @app.post("/webhooks/razorpay", response_model=WebhookAck)
    async def razorpay_webhook(
        request: Request,
        x_razorpay_signature: str | None = Header(default=None),
        x_razorpay_event_id: str | None = Header(default=None),
    ):
        """Verify and apply one gateway delivery; 200 for everything past verification."""

        body = await request.body()
        try:
            await run_in_threadpool(
                request.app.state.dispatcher.handle, body, x_razorpay_signature, x_razorpay_event_id
            )
        except (AuthenticationFailure, MalformedPayload) as exc:
            raise to_http_exception(exc) from exc
        return WebhookAck()

    @app.get("/payments/{razorpay_payment_id}", response_model=PaymentResponse)
    def get_payment(razorpay_payment_id: str, request: Request):
        """Fetch current status for one payment."""

        try:
            payment = request.app.state.payments.get_payment(razorpay_payment_id)
        except UpstreamStoreFailure as exc:
            logger.exception("payment read failed payment=%s", razorpay_payment_id)
            raise to_http_exception(exc) from exc
        if not payment:
            raise HTTPException(status_code=404, detail={"error": "not_found", "message": "payment not found"})
        return PaymentResponse.model_validate(payment)

    @app.get("/metrics")
    def metrics():
        """Prometheus scrape endpoint."""

        return metrics_response()

    @app.get("/health")
    def health():
        """Container health probe endpoint."""

        return {"ok": True}

    return app


app = create_app()
