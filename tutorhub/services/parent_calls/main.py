"""HTTP surface for parent-call requests and the monthly quota."""

from contextlib import asynccontextmanager

from fastapi import Body, FastAPI, HTTPException, Request

from tutorhub.common.config import settings
from tutorhub.common.db import make_engine, make_session_factory
from tutorhub.common.errors import TutorHubError, UpstreamStoreFailure
from tutorhub.common.http import install_request_middleware, to_http_exception
from tutorhub.common.logging import configure_logging, logger
from tutorhub.common.metrics import metrics_response
from tutorhub.common.startup import log_startup_config
from tutorhub.common.tracing import setup_tracing
from tutorhub.services.parent_calls.quota import QuotaEngine
from tutorhub.services.parent_calls.schemas import (
    ParentCallCancelRequest,
    ParentCallCompleteRequest,
    ParentCallCreateRequest,
    ParentCallListResponse,
    ParentCallResponse,
)
from tutorhub.services.parent_calls.service import ParentCallService


SERVICE_NAME = "parent-calls"


def _http_error(exc: TutorHubError) -> HTTPException:
    if isinstance(exc, UpstreamStoreFailure):
        logger.exception("parent call store failure operation=%s error=%s", exc.operation, exc.cause)
    return to_http_exception(exc)


def create_app(session_factory=None, clock=None) -> FastAPI:
    """Build the parent-calls app around an explicit store handle."""

    configure_logging()
    log_startup_config(
        settings,
        ["service_name", "postgres_dsn", "quota_tz_offset_minutes", "parent_call_default_max", "tracing_enabled"],
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = None
        factory = session_factory
        if factory is None:
            engine = make_engine(settings.postgres_dsn)
            factory = make_session_factory(engine)
        clock_kwargs = {"clock": clock} if clock is not None else {}
        quota = QuotaEngine(
            factory,
            offset_minutes=settings.quota_tz_offset_minutes,
            default_max=settings.parent_call_default_max,
            service_name=SERVICE_NAME,
            **clock_kwargs,
        )
        app.state.calls = ParentCallService(factory, quota, service_name=SERVICE_NAME, **clock_kwargs)
        yield
        if engine is not None:
            engine.dispose()

    app = FastAPI(title="TutorHub Parent Calls", lifespan=lifespan)
    install_request_middleware(app, SERVICE_NAME)
    setup_tracing(app, SERVICE_NAME)

    @app.get("/parent-calls/{enrollment_id}", response_model=ParentCallListResponse)
    def list_calls(enrollment_id: str, request: Request):
        """Calls for an enrollment plus `{used, max, remaining}`."""

        try:
            calls, quota = request.app.state.calls.list(enrollment_id)
        except TutorHubError as exc:
            raise _http_error(exc) from exc
        return ParentCallListResponse(
            calls=[ParentCallResponse.model_validate(call) for call in calls],
            quota=quota,
        )

    @app.post("/parent-calls/request", response_model=ParentCallResponse, status_code=201)
    def request_call(req: ParentCallCreateRequest, request: Request):
        """Create a scheduled call; 429 with the quota snapshot when it is used up."""

        try:
            call = request.app.state.calls.create(req.enrollment_id, initiated_by=req.initiated_by, notes=req.notes)
        except TutorHubError as exc:
            raise _http_error(exc) from exc
        return ParentCallResponse.model_validate(call)

    @app.post("/parent-calls/{call_id}/complete", response_model=ParentCallResponse)
    def complete_call(call_id: str, request: Request, req: ParentCallCompleteRequest | None = Body(default=None)):
        notes = req.notes if req is not None else None
        try:
            call = request.app.state.calls.complete(call_id, notes=notes)
        except TutorHubError as exc:
            raise _http_error(exc) from exc
        return ParentCallResponse.model_validate(call)

    @app.post("/parent-calls/{call_id}/cancel", response_model=ParentCallResponse)
    def cancel_call(call_id: str, request: Request, req: ParentCallCancelRequest | None = Body(default=None)):
        reason = req.reason if req is not None else None
        try:
            call = request.app.state.calls.cancel(call_id, reason=reason)
        except TutorHubError as exc:
            raise _http_error(exc) from exc
        return ParentCallResponse.model_validate(call)

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
