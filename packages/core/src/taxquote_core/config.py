"""Configuration for the tax quote engine.

Pydantic Settings-based configuration with environment variable support
and sensible defaults.

Usage:
    from taxquote_core.config import TaxQuoteSettings, load_active_schedule

    settings = TaxQuoteSettings()
    schedule = load_active_schedule(settings)

    if settings.delivery.enabled:
        print(settings.delivery.lead_destination)
"""

import sys
from functools import lru_cache
from typing import Optional

import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .delivery import DEFAULT_RELAY_URL_TEMPLATE, DEFAULT_TIMEOUT
from .fee_schedules import FeeScheduleConfig, get_fee_schedule, load_fee_schedule

_LOG_LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}


class DeliveryConfig(BaseSettings):
    """Lead delivery settings.

    Environment Variables:
        TAXQUOTE_DELIVERY_ENABLED: Forward computed quotes to the relay/webhook
        TAXQUOTE_DELIVERY_LEAD_DESTINATION: Relay destination (e.g. leads mailbox)
        TAXQUOTE_DELIVERY_RELAY_URL_TEMPLATE: Relay URL with a {destination} placeholder
        TAXQUOTE_DELIVERY_WEBHOOK_URL: Optional webhook receiving name, email and total
        TAXQUOTE_DELIVERY_TIMEOUT: Request timeout in seconds
    """

    model_config = SettingsConfigDict(
        env_prefix="TAXQUOTE_DELIVERY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    enabled: bool = Field(
        default=False,
        description="Forward computed quotes to the configured targets",
    )
    lead_destination: Optional[str] = Field(
        default=None,
        description="Destination identifier interpolated into the relay URL",
    )
    relay_url_template: str = Field(
        default=DEFAULT_RELAY_URL_TEMPLATE,
        description="Form relay URL, must contain {destination}",
    )
    webhook_url: Optional[str] = Field(
        default=None,
        description="Webhook receiving a short summary of each quote",
    )
    timeout: float = Field(
        default=DEFAULT_TIMEOUT,
        gt=0,
        description="Request timeout in seconds",
    )

    @field_validator("relay_url_template")
    @classmethod
    def validate_relay_template(cls, v: str) -> str:
        """Ensure the relay URL can take a destination."""
        if "{destination}" not in v:
            raise ValueError("relay_url_template must contain {destination}")
        try:
            v.format(destination="leads")
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(f"relay_url_template has an unusable placeholder: {e}") from e
        return v


class TaxQuoteSettings(BaseSettings):
    """Root configuration for the tax quote engine.

    Environment Variables:
        TAXQUOTE_ENV: Environment name (development, staging, production, test)
        TAXQUOTE_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        TAXQUOTE_FEE_SCHEDULE: Built-in fee schedule name
        TAXQUOTE_FEE_SCHEDULE_PATH: JSON fee schedule document, overrides the name
        TAXQUOTE_BOOKING_URL: Page opened when a client accepts a quote
    """

    model_config = SettingsConfigDict(
        env_prefix="TAXQUOTE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: str = Field(
        default="development",
        description="Environment name (development, staging, production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    fee_schedule: str = Field(
        default="schedule_linear",
        description="Name of the built-in fee schedule to quote with",
    )
    fee_schedule_path: Optional[str] = Field(
        default=None,
        description="Path to a JSON fee schedule document",
    )
    booking_url: Optional[str] = Field(
        default=None,
        description="Booking page opened when a quote is accepted",
    )

    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)

    @field_validator("env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment name."""
        valid_envs = {"development", "staging", "production", "test"}
        v_lower = v.lower().strip()
        if v_lower not in valid_envs:
            raise ValueError(f"Invalid environment: {v}. Must be one of: {valid_envs}")
        return v_lower

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        v_upper = v.upper().strip()
        if v_upper not in _LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of: {set(_LOG_LEVELS)}")
        return v_upper

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.env == "production"

    @property
    def is_debug(self) -> bool:
        return self.log_level == "DEBUG"


def _stderr_logger(*args) -> structlog.PrintLogger:
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(level: str = "INFO") -> None:
    """Send structlog events to stderr, dropping those below the given level."""
    min_level = _LOG_LEVELS.get(level.upper(), _LOG_LEVELS["INFO"])
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        logger_factory=_stderr_logger,
    )


@lru_cache(maxsize=None)
def _load_schedule(name: str, path: Optional[str]) -> FeeScheduleConfig:
    if path:
        return load_fee_schedule(path)
    return get_fee_schedule(name)


def load_active_schedule(settings: Optional[TaxQuoteSettings] = None) -> FeeScheduleConfig:
    """Return the configured fee schedule, loading it at most once per process.

    Raises:
        FeeScheduleError: If the schedule name is unknown or the document is invalid.
    """
    settings = settings or TaxQuoteSettings()
    return _load_schedule(settings.fee_schedule, settings.fee_schedule_path)
