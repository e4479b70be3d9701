"""Central environment-driven settings shared by all services.

Each service process loads this once at startup. Service-specific behavior is
controlled by environment variables (see `.env.example`).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "unknown-service"
    log_level: str = "INFO"
    postgres_dsn: str
    razorpay_webhook_secret: str = ""
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"
    tracing_enabled: bool = True
    # IST is UTC+5:30; quota months roll over at local midnight.
    quota_tz_offset_minutes: int = 330
    parent_call_default_max: int = 1
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = CommonSettings()
