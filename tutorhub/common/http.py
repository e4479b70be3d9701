"""HTTP plumbing shared by the FastAPI services.

Request metrics middleware, request-id binding, and the translation of
domain errors into `HTTPException` details.
"""

from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request

from tutorhub.common.errors import (
    AuthenticationFailure,
    InvalidStateTransition,
    MalformedPayload,
    NotFound,
    QuotaExceeded,
    TutorHubError,
)
from tutorhub.common.logging import request_id_ctx
from tutorhub.common.metrics import http_request_duration_seconds, http_requests_total


_STATUS_BY_ERROR: list[tuple[type[TutorHubError], int]] = [
    (AuthenticationFailure, 400),
    (MalformedPayload, 400),
    (NotFound, 404),
    (InvalidStateTransition, 409),
    (QuotaExceeded, 429),
]


def install_request_middleware(app: FastAPI, service_name: str) -> None:
    """Record request count/latency and bind a request id for every HTTP call."""

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start = perf_counter()
        route = request.url.path
        method = request.method
        status_code = 500
        token = request_id_ctx.set(request.headers.get("x-request-id") or str(uuid4()))
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            return response
        finally:
            request_id_ctx.reset(token)
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()


def to_http_exception(exc: TutorHubError) -> HTTPException:
    """Map a domain error onto a status code and a `{error, message}` detail."""

    status_code = 500
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status_code = code
            break
    detail = {"error": exc.code, "message": str(exc) if status_code != 500 else "internal error"}
    if isinstance(exc, QuotaExceeded):
        detail["quota"] = exc.quota.model_dump()
    return HTTPException(status_code=status_code, detail=detail)
