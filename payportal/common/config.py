"""Central environment-driven settings shared by both portal services.

Each service process loads this once at startup. Service-specific behavior is
controlled by environment variables (see `.env.example`).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "unknown-service"
    log_level: str = "INFO"
    database_dsn: str
    db_connect_retries: int = 5
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = 24 * 60
    redis_url: str = "redis://redis:6379/0"
    rate_limit_backend: str = "memory"
    auth_rate_limit_max: int = 5
    auth_rate_limit_window_seconds: int = 15 * 60
    payment_rate_limit_max: int = 10
    payment_rate_limit_window_seconds: int = 60 * 60
    general_rate_limit_max: int = 100
    general_rate_limit_window_seconds: int = 15 * 60
    max_payment_amount: int = 1_000_000
    queue_at_risk_hours: int = 24
    queue_stale_hours: int = 48
    tracing_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = CommonSettings()
