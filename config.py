"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file) once at
startup into frozen models. The app factory receives the resulting
AppSettings explicitly; handlers read it from app.state.

Required values (STRIPE_WEBHOOK_SECRET, WHOP_API_KEY, WHOP_PRODUCT_ID) must be
non-blank. load_settings() turns a missing value into a logged, fatal exit.
"""

from __future__ import annotations

import sys
from typing import Optional

from pydantic import Field
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.logging import get_logger

log = get_logger(__name__)

_SETTINGS_CONFIG = SettingsConfigDict(
    env_file=".env",
    extra="ignore",
    frozen=True,
    str_strip_whitespace=True,
)


class StripeSettings(BaseSettings):
    model_config = _SETTINGS_CONFIG

    stripe_webhook_secret: str = Field(min_length=1)
    # Seconds a signed timestamp stays valid (Stripe's own default)
    stripe_signature_tolerance: int = 300
    # Not needed to verify signatures; accepted so existing deployments keep working
    stripe_key: str = ""


class WhopSettings(BaseSettings):
    model_config = _SETTINGS_CONFIG

    whop_api_key: str = Field(min_length=1)
    whop_product_id: str = Field(min_length=1)
    whop_api_base_url: str = "https://api.whop.com/api/v1"
    whop_timeout_seconds: float = 10.0


class LoggingSettings(BaseSettings):
    model_config = _SETTINGS_CONFIG

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = _SETTINGS_CONFIG

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.0


class AppSettings(BaseSettings):
    model_config = _SETTINGS_CONFIG

    env: str = "development"
    app_name: str = "whop-relay"

    host: str = "0.0.0.0"
    port: int = 10000
    webhook_path: str = "/stripe-webhook"

    # OpenAPI docs are off by default; the relay has no human-facing API
    docs_url: Optional[str] = None

    # Sub-configs, each read from the same env/dotenv source
    stripe: StripeSettings = Field(default_factory=StripeSettings)
    whop: WhopSettings = Field(default_factory=WhopSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    sentry: SentrySettings = Field(default_factory=SentrySettings)

    @property
    def is_production(self) -> bool:
        return self.env == "production"


_SECTIONS = {
    "stripe": StripeSettings,
    "whop": WhopSettings,
    "logging": LoggingSettings,
    "sentry": SentrySettings,
}


def missing_settings(exc: PydanticValidationError) -> list[str]:
    """Env var names behind each failed field of a settings ValidationError."""
    names = []
    for error in exc.errors():
        field = str(error["loc"][-1]) if error["loc"] else "unknown"
        names.append(field.upper())
    return sorted(set(names))


def load_settings() -> AppSettings:
    """Build AppSettings or terminate the process if configuration is invalid.

    Sub-configs are built one by one so that a single start-up reports every
    missing variable, not just those of the first section that fails.
    """
    sections = {}
    missing: list[str] = []
    for name, section_cls in _SECTIONS.items():
        try:
            sections[name] = section_cls()
        except PydanticValidationError as e:
            missing.extend(missing_settings(e))

    if not missing:
        try:
            return AppSettings(**sections)
        except PydanticValidationError as e:
            missing.extend(missing_settings(e))

    log.critical(
        "configuration_invalid",
        missing=sorted(set(missing)),
        hint="set STRIPE_WEBHOOK_SECRET, WHOP_API_KEY and WHOP_PRODUCT_ID",
    )
    sys.exit(1)
