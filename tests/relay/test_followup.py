"""Tests for FollowUpDispatcher and PendingCompletion."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import httpx
import pytest

from hoho.relay.config import Settings
from hoho.relay.followup import FollowUpDispatcher, PendingCompletion
from hoho.relay.formatter import GENERIC_FAILURE_MESSAGE, FormattedMessage

PENDING = PendingCompletion(origin_token="tok", application_id="app", query="best routes")
MESSAGE = FormattedMessage(text="Here are your routes")


def _dispatcher(settings, responses):
    http = AsyncMock()
    http.request = AsyncMock(side_effect=responses)
    return FollowUpDispatcher(http, settings), http


class TestPendingCompletion:
    def test_deadline_is_fifteen_minutes(self):
        created = datetime(2026, 1, 1, tzinfo=timezone.utc)
        pending = PendingCompletion("t", "a", "q", created_at=created)
        assert pending.deadline == created + timedelta(minutes=15)

    def test_expiry(self):
        created = datetime(2026, 1, 1, tzinfo=timezone.utc)
        pending = PendingCompletion("t", "a", "q", created_at=created)
        assert not pending.is_expired(created + timedelta(minutes=14))
        assert pending.is_expired(created + timedelta(minutes=15))


class TestEndpoint:
    def test_edit_mode(self, settings):
        dispatcher, _ = _dispatcher(settings, [])
        assert (
            dispatcher.endpoint(PENDING)
            == "https://discord.test/api/v10/webhooks/app/tok/messages/@original"
        )

    def test_create_mode(self, env):
        env.setenv("HOHO_FOLLOWUP_MODE", "create")
        dispatcher, _ = _dispatcher(Settings(), [])
        assert dispatcher.endpoint(PENDING) == "https://discord.test/api/v10/webhooks/app/tok"


class TestDeliver:
    @pytest.mark.asyncio
    async def test_primary_success(self, settings, make_response):
        dispatcher, http = _dispatcher(settings, [make_response(200)])
        result = await dispatcher.deliver(PENDING, MESSAGE)

        assert result.delivered is True
        assert result.attempts == 1
        assert result.used_fallback is False
        method, url = http.request.call_args.args
        assert method == "PATCH"
        assert url.endswith("/messages/@original")
        assert http.request.call_args.kwargs["json"] == {"content": "Here are your routes"}
        assert http.request.call_args.kwargs["timeout"] == 10.0

    @pytest.mark.asyncio
    async def test_create_mode_posts(self, env, make_response):
        env.setenv("HOHO_FOLLOWUP_MODE", "create")
        dispatcher, http = _dispatcher(Settings(), [make_response(204)])
        result = await dispatcher.deliver(PENDING, MESSAGE)
        assert result.delivered is True
        assert http.request.call_args.args[0] == "POST"

    @pytest.mark.asyncio
    async def test_fallback_after_rejection(self, settings, make_response):
        dispatcher, http = _dispatcher(settings, [make_response(400), make_response(200)])
        result = await dispatcher.deliver(PENDING, MESSAGE)

        assert result.delivered is True
        assert result.used_fallback is True
        assert result.attempts == 2
        contents = [c.kwargs["json"]["content"] for c in http.request.call_args_list]
        assert contents == ["Here are your routes", GENERIC_FAILURE_MESSAGE]

    @pytest.mark.asyncio
    async def test_fallback_after_network_error(self, settings, make_response):
        dispatcher, http = _dispatcher(
            settings, [httpx.ConnectError("reset"), make_response(200)]
        )
        result = await dispatcher.deliver(PENDING, MESSAGE)
        assert result.used_fallback is True
        assert http.request.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_fallback(self, settings, make_response):
        dispatcher, http = _dispatcher(settings, [make_response(404), make_response(404)])
        result = await dispatcher.deliver(PENDING, MESSAGE)

        assert result.delivered is False
        assert result.attempts == 2
        assert result.status_code == 404
        assert http.request.await_count == 2

    @pytest.mark.asyncio
    async def test_expired_window_still_attempted(self, settings, make_response):
        old = PendingCompletion(
            "tok", "app", "q", created_at=datetime.now(timezone.utc) - timedelta(hours=1)
        )
        dispatcher, http = _dispatcher(settings, [make_response(200)])
        result = await dispatcher.deliver(old, MESSAGE)
        assert result.delivered is True
        http.request.assert_awaited_once()


class TestUnusableRequests:
    @pytest.mark.asyncio
    async def test_stalled_endpoint_is_bounded(self, env):
        env.setenv("HOHO_FOLLOWUP_TIMEOUT", "0.05")

        async def _stall(*args, **kwargs):
            await asyncio.Event().wait()

        http = AsyncMock()
        http.request = AsyncMock(side_effect=_stall)
        dispatcher = FollowUpDispatcher(http, Settings())

        result = await dispatcher.deliver(PENDING, MESSAGE)
        assert result.delivered is False
        assert result.used_fallback is True
        assert "no response within" in result.error
        assert http.request.await_count == 2

    @pytest.mark.asyncio
    async def test_invalid_url_is_a_failed_delivery(self, settings):
        dispatcher, http = _dispatcher(
            settings, [httpx.InvalidURL("bad"), httpx.InvalidURL("bad")]
        )
        result = await dispatcher.deliver(PENDING, MESSAGE)
        assert result.delivered is False
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_control_character_token_with_real_client(self, settings):
        pending = PendingCompletion("tok\n", "app", "q")
        async with httpx.AsyncClient() as http:
            result = await FollowUpDispatcher(http, settings).deliver(pending, MESSAGE)
        assert result.delivered is False
        assert "InvalidURL" in result.error
