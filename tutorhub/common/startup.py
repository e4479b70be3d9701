"""Startup-time helpers for safe config logging."""

from pydantic_settings import BaseSettings

from tutorhub.common.logging import logger


_SECRET_MARKERS = ("key", "secret", "password", "token", "dsn")


def _safe_value(name: str, value: object) -> object:
    """Redact values of secret-like settings; report empty secrets as unset."""

    if any(marker in name for marker in _SECRET_MARKERS):
        return "<redacted>" if value else "<unset>"
    return value


def log_startup_config(config: BaseSettings, fields: list[str]) -> None:
    """Log selected settings fields for quick troubleshooting."""

    snapshot = {name: _safe_value(name, getattr(config, name, None)) for name in fields}
    logger.info("startup_config=%s", snapshot)
