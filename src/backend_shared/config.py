"""Service configuration loaded from the environment."""

import logging
import re
from datetime import timedelta
from functools import lru_cache
from typing import Any

from pydantic import Field, ValidationError, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

ENV_PRODUCTION = "production"
ENV_DEVELOPMENT = "development"
ENV_TEST = "test"

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_PART = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_DURATION = re.compile(r"[-+]?(?:(?:\d+\.?\d*|\.\d+)(?:ns|us|µs|μs|ms|s|m|h))+")


class ConfigError(Exception):
    """Settings could not be loaded. The service should not start."""


def parse_duration(value: str, fallback: timedelta) -> timedelta:
    """
    Parse a duration such as "15m", "1h30m" or "1.5s".

    Returns fallback for an empty, malformed or out of range value.
    """
    value = value.strip()
    if not value:
        return fallback

    if value in ("0", "+0", "-0"):
        return timedelta(0)

    if not _DURATION.fullmatch(value):
        return fallback

    try:
        seconds = sum(
            float(amount) * _DURATION_UNITS[unit]
            for amount, unit in _DURATION_PART.findall(value)
        )
        total = timedelta(seconds=seconds)
    except (OverflowError, ValueError):
        return fallback

    return -total if value.startswith("-") else total


class Settings(BaseSettings):
    """Service settings loaded from environment and .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Domain
    host: str = "localhost"
    port: str = "8000"
    protocol: str = "http"

    # Database
    database_url: str = ""

    # Auth tokens
    jwt_secret: str = Field(min_length=1)
    access_token_expiry: timedelta = timedelta(minutes=15)
    refresh_token_expiry: timedelta = timedelta(days=7)
    refresh_token_grace_period: timedelta = timedelta(seconds=10)

    env: str = ENV_PRODUCTION

    @field_validator("host", "port", "protocol", "env", mode="before")
    @classmethod
    def _default_when_empty(cls, value: Any, info: ValidationInfo) -> Any:
        if value == "":
            return cls.model_fields[info.field_name].default
        return value

    @field_validator(
        "access_token_expiry",
        "refresh_token_expiry",
        "refresh_token_grace_period",
        mode="before",
    )
    @classmethod
    def _parse_duration(cls, value: Any, info: ValidationInfo) -> Any:
        if not isinstance(value, str):
            return value

        fallback = cls.model_fields[info.field_name].default
        duration = parse_duration(value, fallback)
        if duration is fallback and value.strip():
            logger.warning(
                f"Invalid duration {value!r} for {info.field_name}, using {fallback}"
            )
        return duration

    @property
    def base_url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"

    @property
    def is_production(self) -> bool:
        return self.env == ENV_PRODUCTION

    @property
    def is_development(self) -> bool:
        return self.env == ENV_DEVELOPMENT

    @property
    def is_test(self) -> bool:
        return self.env == ENV_TEST


def load_settings(**overrides: Any) -> Settings:
    """
    Load settings once at startup.

    Raises ConfigError when a required value is missing or invalid.
    Exiting the process is left to the caller.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        logger.error(f"Invalid configuration: {fields}")
        raise ConfigError(f"invalid configuration: {fields}") from e


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return load_settings()
