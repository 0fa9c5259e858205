"""Client for the external answer-generation backend.

``AiBridgeClient.ask()`` never raises: timeouts, HTTP failures and
application-level errors are all encoded in ``AiAnswer.error_kind`` so
the deferred completion always reaches a terminal answer.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx

from hoho.protocol.errors import BackendError, BackendTimeout
from hoho.relay.config import Settings
from hoho.relay.retry import RetryPolicy, is_transient

logger = logging.getLogger(__name__)

# Longest backend error text carried into an answer
_ERROR_EXCERPT_CHARS = 200


class ErrorKind(str, Enum):
    """Why an answer could not be produced."""

    TIMEOUT = "timeout"
    BACKEND_ERROR = "backend_error"
    APPLICATION_ERROR = "application_error"


@dataclass(frozen=True)
class AiResult:
    """One search hit returned by the backend."""

    title: str
    description: str | None = None
    url: str | None = None
    score: float = 0.0
    source_type: str | None = None


@dataclass(frozen=True)
class AiAnswer:
    """The outcome of one ``ask()`` call."""

    results: tuple[AiResult, ...] = ()
    elapsed_ms: float = 0.0
    error_kind: ErrorKind | None = None
    error_detail: str | None = None
    status_code: int | None = None
    reply: str | None = None
    attempts: int = 1
    dropped: int = field(default=0, compare=False)

    @property
    def ok(self) -> bool:
        return self.error_kind is None


def _excerpt(text: str) -> str:
    text = text.strip()
    if len(text) > _ERROR_EXCERPT_CHARS:
        return text[: _ERROR_EXCERPT_CHARS - 3] + "..."
    return text


def _parse_result(item: Any) -> AiResult | None:
    if not isinstance(item, dict):
        return None
    payload = item.get("payload")
    if not isinstance(payload, dict):
        payload = {}
    try:
        score = float(item.get("score") or 0.0)
    except (TypeError, ValueError):
        score = 0.0
    return AiResult(
        title=str(payload.get("title") or "Untitled"),
        description=payload.get("description"),
        url=payload.get("url"),
        score=score,
        source_type=payload.get("type"),
    )


def is_promotional(result: AiResult, markers: tuple[str, ...]) -> bool:
    """Return ``True`` if the result's description carries a promo marker.

    Results without a description are never promotional.
    """
    description = result.description
    if not isinstance(description, str) or not description:
        return False
    lowered = description.lower()
    return any(marker.lower() in lowered for marker in markers)


class AiBridgeClient:
    """Calls the answer backend with a bounded timeout and retries.

    The ``httpx.AsyncClient`` is owned by the application and shared
    with other outbound callers so connections are pooled.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        settings: Settings,
        policy: RetryPolicy | None = None,
    ) -> None:
        self._http = http_client
        self._url = settings.ai_bridge_url
        self._secret = settings.ai_bridge_secret
        self._timeout = settings.ai_bridge_timeout
        self._markers = settings.promo_markers
        self._policy = policy or RetryPolicy(
            max_retries=settings.ai_bridge_max_retries,
            base_delay=settings.ai_bridge_retry_delay,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "User-Agent": "Hoho-Relay/0.1.0"}
        if self._secret:
            headers["Authorization"] = f"Bearer {self._secret}"
        return headers

    async def _attempt(self, query: str) -> dict:
        """One HTTP round trip.  Returns the decoded JSON object.

        Raises:
            BackendTimeout: The attempt exceeded the timeout.
            BackendError: Network failure, non-2xx status or malformed body.
        """
        try:
            # Wall-clock bound: httpx timeouts only limit each read or write
            resp = await asyncio.wait_for(
                self._http.post(
                    self._url,
                    json={"query": query},
                    headers=self._headers(),
                    timeout=self._timeout,
                ),
                self._timeout,
            )
        except asyncio.TimeoutError as exc:
            raise BackendTimeout(f"no response within {self._timeout}s") from exc
        except httpx.TimeoutException as exc:
            raise BackendTimeout(f"{type(exc).__name__}: {exc}") from exc
        except httpx.InvalidURL as exc:
            raise BackendError(f"InvalidURL: {exc}", permanent=True) from exc
        except httpx.HTTPError as exc:
            raise BackendError(f"{type(exc).__name__}: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            raise BackendError(_excerpt(resp.text or ""), status_code=resp.status_code)

        if not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError as exc:
            raise BackendError(
                "malformed response from backend", status_code=resp.status_code
            ) from exc
        if not isinstance(data, dict):
            raise BackendError(
                "malformed response from backend", status_code=resp.status_code
            )
        return data

    async def ask(self, query: str) -> AiAnswer:
        """Ask the backend about *query*.  Never raises."""
        started = time.monotonic()
        attempts = 0

        async def _counted() -> dict:
            nonlocal attempts
            attempts += 1
            return await self._attempt(query)

        try:
            data = await self._policy.run(
                _counted, is_retryable=is_transient, name="AI bridge call"
            )
        except BackendTimeout as exc:
            logger.warning("AI bridge timed out after %d attempt(s)", attempts)
            return AiAnswer(
                elapsed_ms=(time.monotonic() - started) * 1000,
                error_kind=ErrorKind.TIMEOUT,
                error_detail=exc.detail,
                attempts=attempts,
            )
        except BackendError as exc:
            logger.warning(
                "AI bridge failed after %d attempt(s): status=%s",
                attempts,
                exc.status_code,
            )
            return AiAnswer(
                elapsed_ms=(time.monotonic() - started) * 1000,
                error_kind=ErrorKind.BACKEND_ERROR,
                error_detail=exc.detail,
                status_code=exc.status_code,
                attempts=attempts,
            )

        elapsed_ms = (time.monotonic() - started) * 1000
        reported = data.get("elapsed_ms")
        if isinstance(reported, (int, float)):
            elapsed_ms = float(reported)

        if data.get("status") == "error":
            message = data.get("message")
            return AiAnswer(
                elapsed_ms=elapsed_ms,
                error_kind=ErrorKind.APPLICATION_ERROR,
                error_detail=_excerpt(str(message)) if message else None,
                attempts=attempts,
            )

        raw_results = data.get("results") or []
        if not isinstance(raw_results, list):
            raw_results = []
        parsed = [r for r in (_parse_result(item) for item in raw_results) if r]
        kept = [r for r in parsed if not is_promotional(r, self._markers)]
        if len(kept) != len(parsed):
            logger.debug("Dropped %d promotional result(s)", len(parsed) - len(kept))

        reply = data.get("reply")
        return AiAnswer(
            results=tuple(kept),
            elapsed_ms=elapsed_ms,
            reply=reply if isinstance(reply, str) and reply.strip() else None,
            attempts=attempts,
            dropped=len(parsed) - len(kept),
        )
