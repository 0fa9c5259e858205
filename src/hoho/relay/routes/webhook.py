"""POST /webhook -- forward an arbitrary JSON payload to the configured URL."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, HTTPException, Request
from starlette.responses import PlainTextResponse

router = APIRouter()


@router.post("/webhook", response_class=PlainTextResponse)
async def relay_webhook(request: Request, payload: Any = Body(...)) -> str:
    settings = request.app.state.settings
    if not settings.webhook_url:
        raise HTTPException(status_code=503, detail="Webhook relay is not configured")

    forwarded = await request.app.state.forwarder.forward(settings.webhook_url, payload)
    if not forwarded:
        raise HTTPException(status_code=502, detail="Error forwarding webhook")
    return "Message forwarded"
