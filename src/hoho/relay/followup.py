"""Deferred-result delivery through the platform's follow-up webhook.

After a deferred acknowledgment, the real answer is sent against the
interaction token while the follow-up window is open.  A failed primary
send gets exactly one fallback carrying a generic failure notice; after
that the delivery is logged and dropped, since the window is bounded
and further retries cannot succeed once it closes.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import httpx

from hoho.protocol.errors import DeliveryError
from hoho.protocol.types import FOLLOWUP_WINDOW_SECONDS
from hoho.relay.config import Settings
from hoho.relay.formatter import GENERIC_FAILURE_MESSAGE, FormattedMessage

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PendingCompletion:
    """An accepted command awaiting its follow-up.

    Local to the request that created it; never shared across requests.
    """

    origin_token: str
    application_id: str
    query: str
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def deadline(self) -> datetime:
        return self.created_at + timedelta(seconds=FOLLOWUP_WINDOW_SECONDS)

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or _utcnow()) >= self.deadline


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one delivery sequence (primary plus optional fallback).

    ``delivered`` means the origin received *some* terminal message;
    ``used_fallback`` tells whether it was the generic notice.
    """

    delivered: bool
    attempts: int
    used_fallback: bool = False
    status_code: int | None = None
    error: str | None = None


class FollowUpDispatcher:
    """Sends formatted messages to the origin's follow-up endpoint.

    In ``edit`` mode the deferred placeholder is edited in place
    (``PATCH .../messages/@original``); in ``create`` mode a new
    follow-up message is posted.  Both sends are idempotent best-effort.
    """

    def __init__(self, http_client: httpx.AsyncClient, settings: Settings) -> None:
        self._http = http_client
        self._api_url = settings.discord_api_url
        self._timeout = settings.followup_timeout
        self._mode = settings.followup_mode

    def endpoint(self, pending: PendingCompletion) -> str:
        """Follow-up URL for *pending*, derived from application id and token."""
        base = f"{self._api_url}/webhooks/{pending.application_id}/{pending.origin_token}"
        if self._mode == "edit":
            return f"{base}/messages/@original"
        return base

    async def _send(self, pending: PendingCompletion, content: str) -> int:
        """One HTTP round trip.  Returns the 2xx status.

        Raises:
            DeliveryError: On network failure, timeout, an unusable URL
                or a non-2xx status.
        """
        method = "PATCH" if self._mode == "edit" else "POST"
        try:
            resp = await asyncio.wait_for(
                self._http.request(
                    method,
                    self.endpoint(pending),
                    json={"content": content},
                    timeout=self._timeout,
                ),
                self._timeout,
            )
        except asyncio.TimeoutError as exc:
            raise DeliveryError(f"no response within {self._timeout}s") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise DeliveryError(f"{type(exc).__name__}: {exc}") from exc
        if not 200 <= resp.status_code < 300:
            raise DeliveryError(
                f"follow-up rejected with HTTP {resp.status_code}",
                status_code=resp.status_code,
            )
        return resp.status_code

    async def deliver(
        self, pending: PendingCompletion, message: FormattedMessage
    ) -> DeliveryResult:
        """Deliver *message*; fall back once to a generic notice on failure."""
        if pending.is_expired():
            logger.warning(
                "Follow-up window for interaction token already elapsed; sending anyway"
            )

        try:
            status = await self._send(pending, message.text)
        except DeliveryError as exc:
            logger.warning(
                "Follow-up delivery failed (%s), sending fallback notice", exc.detail
            )
            primary_error = exc
        else:
            logger.info("Follow-up delivered (%d)", status)
            return DeliveryResult(delivered=True, attempts=1, status_code=status)

        try:
            status = await self._send(pending, GENERIC_FAILURE_MESSAGE)
        except DeliveryError as exc:
            logger.error(
                "Fallback follow-up also failed (%s); giving up", exc.detail
            )
            return DeliveryResult(
                delivered=False,
                attempts=2,
                used_fallback=True,
                status_code=exc.status_code,
                error=exc.detail,
            )

        return DeliveryResult(
            delivered=True,
            attempts=2,
            used_fallback=True,
            status_code=status,
            error=primary_error.detail,
        )
