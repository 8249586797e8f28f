# removals/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal
from urllib.parse import quote


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: Literal["dev", "staging", "prod"] = "dev"
    log_level: str = "INFO"

    # Database
    expected_schema_version: str = "001_quote_sessions.sql"  # Update on deploy when new migrations are added
    database_url: str | None = None
    pghost: str = "localhost"
    pgport: int = 5432
    pguser: str = "postgres"
    pgpassword: str = ""
    pgdatabase: str = "postgres"
    pg_pool_min: int = 2
    pg_pool_max: int = 10
    pg_connect_timeout: int = 5
    pg_statement_timeout_ms: int = 30000

    # Quote sessions
    state_ttl_seconds: int = 604800  # 7 days
    use_memory_store: bool = False  # dev only: keep sessions in process memory instead of Postgres

    # Routing / mileage (Nominatim + OSRM)
    routing_enabled: bool = True
    depot_postcode: str = "BS10 5PN"
    nominatim_search_url: str = "https://nominatim.openstreetmap.org/search"
    osrm_route_url: str = "https://router.project-osrm.org/route/v1/driving"
    routing_timeout_seconds: float = 5.0
    route_user_agent: str = "PainlessRemovalsQuote/1.0"

    # Operator Notifications (callback requests)
    operator_notifications_enabled: bool = True  # Master switch to disable all notifications
    operator_notification_channel: Literal["whatsapp", "telegram", "email"] = "telegram"

    # Telegram notifications (if notification channel = "telegram")
    telegram_bot_token: str | None = None  # Bot token from @BotFather
    telegram_chat_id: str | None = None  # Chat/group ID to send notifications to

    # WhatsApp via Twilio (if notification channel = "whatsapp")
    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = None
    twilio_phone_number: str | None = None
    operator_whatsapp: str | None = None  # e.g. +447700900123

    # Email notifications (if notification channel = "email")
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    operator_email: str | None = None

    # HTTP
    allowed_origins: list[str] = ["*"]
    enable_request_logging: bool = True
    enable_metrics: bool = True
    metrics_token: str | None = None  # If set, /metrics requires "Authorization: Bearer <token>"

    @property
    def is_production(self) -> bool:
        return self.app_env == "prod"

    @property
    def database_dsn(self) -> str:
        if self.database_url:
            return self.database_url

        return (
            f"postgresql://{quote(self.pguser, safe='')}:{quote(self.pgpassword, safe='')}"
            f"@{self.pghost}:{self.pgport}/{self.pgdatabase}"
        )

    def validate_required_for_production(self) -> list[str]:
        """Names of settings that must be present in production but are not."""
        if not self.is_production:
            return []

        required_fields: list[tuple[str, object]] = []
        if not self.use_memory_store:
            required_fields.append(("database_url", self.database_url))

        if self.operator_notifications_enabled:
            if self.operator_notification_channel == "telegram":
                required_fields.extend([
                    ("telegram_bot_token", self.telegram_bot_token),
                    ("telegram_chat_id", self.telegram_chat_id),
                ])
            elif self.operator_notification_channel == "whatsapp":
                required_fields.extend([
                    ("twilio_account_sid", self.twilio_account_sid),
                    ("twilio_auth_token", self.twilio_auth_token),
                    ("twilio_phone_number", self.twilio_phone_number),
                    ("operator_whatsapp", self.operator_whatsapp),
                ])
            elif self.operator_notification_channel == "email":
                required_fields.extend([
                    ("smtp_host", self.smtp_host),
                    ("operator_email", self.operator_email),
                ])

        return [name for name, value in required_fields if not value]


def warn_on_risky_config(s: "Settings") -> list[str]:
    warnings: list[str] = []

    if s.is_production and s.allowed_origins == ["*"]:
        warnings.append("prod: allowed_origins=['*'] (CORS is wide open).")

    if s.is_production and s.use_memory_store:
        warnings.append("prod: use_memory_store=True (sessions are lost on restart).")

    if s.enable_metrics and not s.metrics_token:
        warnings.append("enable_metrics=True but metrics_token is not set: /metrics is public.")

    if not s.operator_notifications_enabled:
        warnings.append("operator notifications are disabled (callback requests will not reach anyone).")

    if not s.routing_enabled:
        warnings.append("routing is disabled (quotes will carry zero mileage).")
    elif "openstreetmap.org" in s.nominatim_search_url and "example" in s.route_user_agent.lower():
        warnings.append("route_user_agent looks like a placeholder; public Nominatim requires a real contact.")

    if s.state_ttl_seconds < 3600:
        warnings.append(f"state_ttl_seconds={s.state_ttl_seconds} is under an hour.")

    return warnings


def validate_or_warn(s: "Settings") -> None:
    """
    In prod: enforce required settings (hard fail).
    In non-prod: warn only.
    """
    missing = s.validate_required_for_production()
    if missing:
        raise RuntimeError(f"Missing required settings for production: {', '.join(missing)}")

    for msg in warn_on_risky_config(s):
        print(f"[WARN][config] {msg}")


settings = Settings()
validate_or_warn(settings)
