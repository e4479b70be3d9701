"""JSON logs for the TutorHub services.

Every record carries the service name plus whichever correlation ids are bound
in the current context: the HTTP request id, the gateway's webhook event id,
and the entity (payment or enrollment) being worked on.
"""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from tutorhub.common.config import settings


request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")
event_id_ctx: ContextVar[str] = ContextVar("event_id", default="")
entity_id_ctx: ContextVar[str] = ContextVar("entity_id", default="")

CORRELATION_FIELDS: dict[str, ContextVar[str]] = {
    "request_id": request_id_ctx,
    "event_id": event_id_ctx,
    "entity_id": entity_id_ctx,
}


class ContextFilter(logging.Filter):
    def __init__(self, service_name: str) -> None:
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = self.service_name
        for field, var in CORRELATION_FIELDS.items():
            setattr(record, field, var.get())
        return True


def configure_logging(level: str | None = None) -> None:
    """Send JSON records to stdout, replacing any handlers already on the root logger."""

    context_filter = ContextFilter(settings.service_name)
    fields = " ".join(f"%({name})s" for name in ("service_name", *CORRELATION_FIELDS))
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(context_filter)
    handler.setFormatter(JsonFormatter(f"%(asctime)s %(levelname)s {fields} %(message)s"))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level or settings.log_level)


@contextmanager
def log_context(**ids: str | None):
    """Bind correlation ids for records emitted inside the block; None leaves a field as is."""

    tokens = []
    for name, value in ids.items():
        if value is not None:
            var = CORRELATION_FIELDS[name]
            tokens.append((var, var.set(value)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


logger = logging.getLogger("tutorhub")
