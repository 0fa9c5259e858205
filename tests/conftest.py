"""Shared test fixtures for hoho protocol and relay tests."""

from __future__ import annotations

import json

import pytest
from nacl.signing import SigningKey

from hoho.protocol.crypto import sign_interaction

TIMESTAMP = "1700000000"
APPLICATION_ID = "123456789012345678"
INTERACTION_TOKEN = "aW50ZXJhY3Rpb24tdG9rZW4"


@pytest.fixture()
def keypair():
    """Return an Ed25519 (signing_key, verify_key) tuple."""
    sk = SigningKey.generate()
    return sk, sk.verify_key


@pytest.fixture()
def public_key_hex(keypair) -> str:
    _, vk = keypair
    return vk.encode().hex()


def _command_payload(
    query: str | None = "best routes",
    name: str = "ask",
    option_name: str = "query",
) -> dict:
    options = [] if query is None else [{"name": option_name, "type": 3, "value": query}]
    return {
        "id": "1100000000000000001",
        "application_id": APPLICATION_ID,
        "type": 2,
        "token": INTERACTION_TOKEN,
        "version": 1,
        "data": {"id": "1", "name": name, "type": 1, "options": options},
    }


@pytest.fixture()
def command_payload():
    """Fixture that returns the command payload builder."""
    return _command_payload


@pytest.fixture()
def signed(keypair):
    """Return a helper ``signed(payload) -> (raw_body, headers)``.

    The body is serialized once; the signature covers those exact bytes.
    """
    sk, _ = keypair

    def _sign(payload: dict | bytes, timestamp: str = TIMESTAMP) -> tuple[bytes, dict]:
        raw = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
        return raw, {
            "X-Signature-Ed25519": sign_interaction(raw, timestamp, sk),
            "X-Signature-Timestamp": timestamp,
            "Content-Type": "application/json",
        }

    return _sign
