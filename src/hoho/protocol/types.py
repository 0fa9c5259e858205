"""Interaction payload types and constants for the chat platform protocol."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any

from hoho.protocol.errors import ClientInputError


# Platform limits
MAX_MESSAGE_LENGTH = 2000
FOLLOWUP_WINDOW_SECONDS = 15 * 60

# Inbound signature headers
SIGNATURE_HEADER = "X-Signature-Ed25519"
TIMESTAMP_HEADER = "X-Signature-Timestamp"

# Name of the option carrying the query text
QUERY_OPTION = "query"


class InteractionType(IntEnum):
    """Raw interaction type codes sent by the platform."""

    PING = 1
    APPLICATION_COMMAND = 2
    MESSAGE_COMPONENT = 3
    APPLICATION_COMMAND_AUTOCOMPLETE = 4
    MODAL_SUBMIT = 5


class InteractionKind(str, Enum):
    """How the router classifies an inbound interaction."""

    HANDSHAKE = "handshake"
    COMMAND = "command"
    OTHER = "other"


class ResponseType(IntEnum):
    """Interaction callback types used in synchronous replies."""

    PONG = 1
    CHANNEL_MESSAGE_WITH_SOURCE = 4
    DEFERRED_CHANNEL_MESSAGE_WITH_SOURCE = 5


def _classify(raw_type: Any) -> InteractionKind:
    if raw_type == InteractionType.PING:
        return InteractionKind.HANDSHAKE
    if raw_type == InteractionType.APPLICATION_COMMAND:
        return InteractionKind.COMMAND
    return InteractionKind.OTHER


@dataclass(frozen=True)
class InteractionRequest:
    """A verified inbound interaction.

    ``raw_body`` is kept exactly as received; the parsed fields are a
    read-only view over it.
    """

    protocol_version: int | None
    kind: InteractionKind
    raw_type: Any
    command_name: str | None
    command_args: tuple[tuple[str, Any], ...]
    origin_token: str | None
    application_id: str | None
    raw_body: bytes
    signature: str
    timestamp: str
    interaction_id: str | None = None

    @classmethod
    def from_raw(
        cls, raw_body: bytes, signature: str, timestamp: str
    ) -> InteractionRequest:
        """Parse *raw_body* into an :class:`InteractionRequest`.

        Raises:
            ClientInputError: If the body is not a JSON object.
        """
        try:
            data = json.loads(raw_body)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ClientInputError(f"Interaction body is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ClientInputError("Interaction body must be a JSON object")

        command = data.get("data") or {}
        if not isinstance(command, dict):
            command = {}
        options = command.get("options") or []
        args = tuple(
            (str(opt.get("name")), opt.get("value"))
            for opt in options
            if isinstance(opt, dict) and "name" in opt
        )
        app_id = data.get("application_id")

        return cls(
            protocol_version=data.get("version"),
            kind=_classify(data.get("type")),
            raw_type=data.get("type"),
            command_name=command.get("name"),
            command_args=args,
            origin_token=data.get("token"),
            application_id=str(app_id) if app_id is not None else None,
            raw_body=raw_body,
            signature=signature,
            timestamp=timestamp,
            interaction_id=data.get("id"),
        )

    def argument(self, name: str) -> Any:
        """Return the value of the first argument called *name*, or ``None``."""
        for arg_name, value in self.command_args:
            if arg_name == name:
                return value
        return None

    @property
    def query(self) -> str | None:
        """The primary argument: the ``query`` option, else the first option.

        Whitespace-only values count as missing.
        """
        value = self.argument(QUERY_OPTION)
        if value is None and self.command_args:
            value = self.command_args[0][1]
        if not isinstance(value, str):
            return None
        value = value.strip()
        return value or None
