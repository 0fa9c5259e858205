"""Plain webhook relay: forward a JSON payload to a URL as-is."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import httpx

from hoho.protocol.errors import BackendError, BackendTimeout
from hoho.relay.retry import RetryPolicy, is_transient

logger = logging.getLogger(__name__)


class WebhookForwarder:
    """Delivers arbitrary JSON payloads and reports success or failure."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        policy: RetryPolicy | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._http = http_client
        self._policy = policy or RetryPolicy(max_retries=2, base_delay=1.0)
        self._timeout = timeout

    async def _post(self, url: str, body: bytes) -> int:
        try:
            resp = await asyncio.wait_for(
                self._http.post(
                    url,
                    content=body,
                    headers={"Content-Type": "application/json"},
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
            raise BackendError(
                f"webhook returned HTTP {resp.status_code}", status_code=resp.status_code
            )
        return resp.status_code

    async def forward(self, url: str, payload: Any) -> bool:
        """POST *payload* to *url*.  Returns ``True`` on a 2xx response."""
        body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        try:
            status = await self._policy.run(
                lambda: self._post(url, body),
                is_retryable=is_transient,
                name="Webhook relay",
            )
        except BackendError as exc:
            logger.error("Error forwarding webhook: %s", exc.detail)
            return False
        logger.info("Webhook forwarded (%d)", status)
        return True
