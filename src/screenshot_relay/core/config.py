"""Process-wide settings, read once from the environment at start-up."""

import os
from typing import Any, Mapping, Optional

from pydantic import BaseModel, field_validator

from .models import DEFAULT_PADDING, DEFAULT_TRIM_THRESHOLD, coerce_number, parse_flag

DEFAULT_API_BASE = "https://api.telegram.org"
DEFAULT_FETCH_TIMEOUT = 45.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 0.3
DEFAULT_POOL_SIZE = 10
DEFAULT_MAX_REDIRECTS = 5
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("structured", "simple")

# Environment variable -> settings field
ENV_VARS = {
    "TELEGRAM_BOT_TOKEN": "bot_token",
    "TELEGRAM_CHAT_ID": "chat_id",
    "TELEGRAM_API_BASE": "api_base",
    "FETCH_TIMEOUT_SECONDS": "fetch_timeout",
    "FETCH_MAX_ATTEMPTS": "max_attempts",
    "FETCH_BACKOFF_SECONDS": "backoff_seconds",
    "HTTP_POOL_SIZE": "pool_size",
    "HTTP_MAX_REDIRECTS": "max_redirects",
    "PREFER_IPV4": "prefer_ipv4",
    "DEFAULT_PADDING": "default_padding",
    "TRIM_THRESHOLD": "trim_threshold",
    "LOG_LEVEL": "log_level",
    "LOG_FORMAT": "log_format",
}


class RelaySettings(BaseModel):
    """Configuration for the relay process.

    Numeric fields that cannot be parsed fall back to their defaults.
    """

    bot_token: Optional[str] = None
    chat_id: Optional[str] = None
    api_base: str = DEFAULT_API_BASE
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    backoff_seconds: float = DEFAULT_BACKOFF_SECONDS
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    pool_size: int = DEFAULT_POOL_SIZE
    prefer_ipv4: bool = True
    default_padding: int = DEFAULT_PADDING
    trim_threshold: int = DEFAULT_TRIM_THRESHOLD
    log_level: str = "INFO"
    log_format: str = "structured"

    @field_validator("bot_token", "chat_id", mode="before")
    @classmethod
    def _blank_is_missing(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("api_base", mode="before")
    @classmethod
    def _strip_slash(cls, value: Any) -> str:
        value = str(value or "").strip().rstrip("/")
        return value or DEFAULT_API_BASE

    @field_validator("log_level", mode="before")
    @classmethod
    def _known_level(cls, value: Any) -> str:
        value = str(value or "").strip().upper()
        return value if value in LOG_LEVELS else "INFO"

    @field_validator("log_format", mode="before")
    @classmethod
    def _known_format(cls, value: Any) -> str:
        value = str(value or "").strip().lower()
        return value if value in LOG_FORMATS else "structured"

    @field_validator("prefer_ipv4", mode="before")
    @classmethod
    def _flag(cls, value: Any) -> bool:
        return parse_flag(value)

    @field_validator(
        "fetch_timeout",
        "max_attempts",
        "backoff_seconds",
        "max_redirects",
        "pool_size",
        "default_padding",
        "trim_threshold",
        mode="before",
    )
    @classmethod
    def _number_or_default(cls, value: Any, info: Any) -> Any:
        number = coerce_number(value)
        default = cls.model_fields[info.field_name].default
        if number is None or number < 0:
            return default
        if info.field_name in ("max_attempts", "pool_size") and number < 1:
            return default
        return number if isinstance(default, float) else int(number)

    @property
    def relay_configured(self) -> bool:
        """True when both the bot token and the recipient are set."""
        return bool(self.bot_token and self.chat_id)

    def masked(self) -> dict:
        """Settings safe to log: the bot token is never shown."""
        data = self.model_dump()
        if data.get("bot_token"):
            data["bot_token"] = "***"
        return data


def load_settings(environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> RelaySettings:
    """
    Build settings from environment variables plus explicit overrides.

    Args:
        environ: Mapping to read instead of ``os.environ``
        **overrides: Field values that win over the environment

    Returns:
        A ``RelaySettings`` instance, to be created once and passed around.
    """
    environ = os.environ if environ is None else environ
    values = {
        field: environ[name] for name, field in ENV_VARS.items() if name in environ
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return RelaySettings(**values)
