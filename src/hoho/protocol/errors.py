"""Hoho exception hierarchy.

All service-specific exceptions inherit from :class:`HohoError`.
"""

from __future__ import annotations


class HohoError(Exception):
    """Base exception for all hoho errors."""


class ConfigurationError(HohoError):
    """Raised at startup when required configuration is missing or malformed."""


class AuthenticationError(HohoError):
    """Raised when an inbound request carries a bad or missing signature."""


class ClientInputError(HohoError):
    """Raised when an interaction is malformed or names an unknown command."""


class BackendError(HohoError):
    """Raised when the answer backend fails (non-2xx, bad payload, network).

    ``permanent`` marks failures that no retry can fix, such as an
    unusable URL.
    """

    def __init__(
        self,
        detail: str,
        status_code: int | None = None,
        *,
        permanent: bool = False,
    ) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code
        self.permanent = permanent


class BackendTimeout(BackendError):
    """Raised when a backend attempt exceeds its timeout."""

    def __init__(self, detail: str = "backend request timed out") -> None:
        super().__init__(detail)


class DeliveryError(HohoError):
    """Raised when a follow-up or relayed webhook is not accepted."""

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code
