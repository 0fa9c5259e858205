"""Shared fixtures for hoho relay tests."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from hoho.relay.app import create_app
from hoho.relay.config import Settings

# Bound at import: some test modules patch asyncio.sleep.
_real_sleep = asyncio.sleep


@pytest.fixture()
def env(monkeypatch, public_key_hex):
    """Set the required environment and fast retry timings."""
    monkeypatch.setenv("HOHO_PUBLIC_KEY", public_key_hex)
    monkeypatch.setenv("HOHO_AI_BRIDGE_URL", "https://bridge.test/ask")
    monkeypatch.setenv("HOHO_AI_BRIDGE_SECRET", "bridge-secret")
    monkeypatch.setenv("HOHO_DISCORD_API_URL", "https://discord.test/api/v10")
    monkeypatch.setenv("HOHO_AI_BRIDGE_RETRY_DELAY", "0")
    return monkeypatch


@pytest.fixture()
def settings(env) -> Settings:
    return Settings()


@pytest.fixture()
def app(settings):
    return create_app(settings)


@pytest.fixture()
def client(app):
    """Return a TestClient for the app with lifespan triggered."""
    with TestClient(app) as c:
        yield c


def mock_response(status_code: int = 200, json_data=None, text: str = ""):
    """Build a MagicMock shaped like an ``httpx.Response``."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    if json_data is None:
        resp.content = text.encode()
        resp.json.side_effect = ValueError("no json")
    else:
        resp.content = b"{...}"
        resp.json.return_value = json_data
    return resp


@pytest.fixture()
def make_response():
    """Fixture that returns the mock_response helper function."""
    return mock_response


@pytest.fixture()
def trickle_server():
    """Return a factory for a local HTTP server that never finishes its body.

    It sends response headers announcing a large body, then one byte
    every *interval* seconds.  Usage::

        async with trickle_server() as url:
            ...
    """
    from contextlib import asynccontextmanager

    @asynccontextmanager
    async def _serve(interval: float = 0.2):
        writers: list[asyncio.StreamWriter] = []

        async def _handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            writers.append(writer)
            await reader.read(65536)
            writer.write(
                b"HTTP/1.1 200 OK\r\n"
                b"Content-Type: application/json\r\n"
                b"Content-Length: 100000\r\n\r\n"
            )
            try:
                for _ in range(100):
                    if writer.is_closing():
                        break
                    writer.write(b" ")
                    await writer.drain()
                    await _real_sleep(interval)
            except ConnectionError:
                pass
            finally:
                writer.close()

        server = await asyncio.start_server(_handle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        try:
            yield f"http://127.0.0.1:{port}"
        finally:
            for writer in writers:
                writer.close()
            server.close()

    return _serve
