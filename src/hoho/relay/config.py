"""Service configuration from environment variables."""

from __future__ import annotations

import os

import httpx

from hoho.protocol.crypto import load_verify_key
from hoho.protocol.errors import ConfigurationError

# Required variables -- the service refuses to start without them
REQUIRED_VARIABLES: tuple[str, ...] = ("HOHO_PUBLIC_KEY", "HOHO_AI_BRIDGE_URL")


def _split(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _number(name: str, default: str, kind: type) -> float | int:
    """Parse a numeric variable; malformed values are configuration errors."""
    raw = os.getenv(name, default)
    try:
        return kind(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def _check_http_url(name: str, value: str) -> None:
    """Raise :class:`ConfigurationError` unless *value* is an absolute http(s) URL."""
    try:
        url = httpx.URL(value)
    except (httpx.InvalidURL, TypeError) as exc:
        raise ConfigurationError(f"{name} is not a valid URL: {exc}") from exc
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(f"{name} must be an absolute http(s) URL, got {value!r}")


class Settings:
    """Service settings, read from environment variables with defaults.

    Created once by the app factory and passed to each component;
    call :meth:`validate` before accepting traffic.
    """

    def __init__(self) -> None:
        self.public_key: str = os.getenv("HOHO_PUBLIC_KEY", "")
        self.ai_bridge_url: str = os.getenv("HOHO_AI_BRIDGE_URL", "")
        self.ai_bridge_secret: str | None = os.getenv("HOHO_AI_BRIDGE_SECRET") or None
        self.application_id: str | None = os.getenv("HOHO_APPLICATION_ID") or None
        self.discord_api_url: str = os.getenv(
            "HOHO_DISCORD_API_URL", "https://discord.com/api/v10"
        ).rstrip("/")
        self.webhook_url: str | None = os.getenv("HOHO_WEBHOOK_URL") or None
        self.host: str = os.getenv("HOHO_HOST", "0.0.0.0")
        self.port: int = _number("HOHO_PORT", "3000", int)
        self.log_level: str = os.getenv("HOHO_LOG_LEVEL", "INFO").upper()
        self.debug: bool = os.getenv("HOHO_DEBUG", "").lower() in ("1", "true", "yes")
        self.commands: tuple[str, ...] = _split(os.getenv("HOHO_COMMANDS", "ask"))
        # Answer backend
        self.ai_bridge_timeout: float = _number("HOHO_AI_BRIDGE_TIMEOUT", "15.0", float)
        self.ai_bridge_max_retries: int = _number("HOHO_AI_BRIDGE_MAX_RETRIES", "2", int)
        self.ai_bridge_retry_delay: float = _number("HOHO_AI_BRIDGE_RETRY_DELAY", "1.0", float)
        self.promo_markers: tuple[str, ...] = _split(
            os.getenv("HOHO_PROMO_MARKERS", "Sponsored,[AD]")
        )
        # Follow-up delivery
        self.followup_timeout: float = _number("HOHO_FOLLOWUP_TIMEOUT", "10.0", float)
        self.followup_mode: str = os.getenv("HOHO_FOLLOWUP_MODE", "edit").lower()

    def missing(self) -> list[str]:
        """Return the names of required variables that are unset."""
        values = {
            "HOHO_PUBLIC_KEY": self.public_key,
            "HOHO_AI_BRIDGE_URL": self.ai_bridge_url,
        }
        return [name for name in REQUIRED_VARIABLES if not values[name]]

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` if the settings cannot be served.

        Reports every missing required variable at once.
        """
        missing = self.missing()
        if missing:
            raise ConfigurationError(
                "Missing required environment variables: " + ", ".join(missing)
            )
        load_verify_key(self.public_key)
        _check_http_url("HOHO_AI_BRIDGE_URL", self.ai_bridge_url)
        _check_http_url("HOHO_DISCORD_API_URL", self.discord_api_url)
        if self.webhook_url:
            _check_http_url("HOHO_WEBHOOK_URL", self.webhook_url)
        if self.followup_mode not in ("edit", "create"):
            raise ConfigurationError(
                f"HOHO_FOLLOWUP_MODE must be 'edit' or 'create', got {self.followup_mode!r}"
            )
        if not self.commands:
            raise ConfigurationError("HOHO_COMMANDS must name at least one command")
