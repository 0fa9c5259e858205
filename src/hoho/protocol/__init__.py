"""Hoho protocol -- interaction types, verification and errors.

Public API re-exports for ``hoho.protocol``.
"""

from hoho.protocol.types import (
    MAX_MESSAGE_LENGTH,
    FOLLOWUP_WINDOW_SECONDS,
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    InteractionKind,
    InteractionRequest,
    InteractionType,
    ResponseType,
)

from hoho.protocol.errors import (
    HohoError,
    ConfigurationError,
    AuthenticationError,
    ClientInputError,
    BackendError,
    BackendTimeout,
    DeliveryError,
)

from hoho.protocol.crypto import (
    SignatureVerifier,
    interaction_message,
    load_verify_key,
    sign_interaction,
    verify,
)

__all__ = [
    # types
    "MAX_MESSAGE_LENGTH",
    "FOLLOWUP_WINDOW_SECONDS",
    "SIGNATURE_HEADER",
    "TIMESTAMP_HEADER",
    "InteractionKind",
    "InteractionRequest",
    "InteractionType",
    "ResponseType",
    # errors
    "HohoError",
    "ConfigurationError",
    "AuthenticationError",
    "ClientInputError",
    "BackendError",
    "BackendTimeout",
    "DeliveryError",
    # crypto
    "SignatureVerifier",
    "interaction_message",
    "load_verify_key",
    "sign_interaction",
    "verify",
]
