"""Liveness endpoints.

- ``GET /`` -- plain-text banner.
- ``GET /health`` -- JSON status with the number of in-flight completions.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from starlette.responses import PlainTextResponse

from hoho import __version__
from hoho.relay.models import HealthResponse

router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
async def home() -> str:
    return "Hoho bot is alive!"


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Return service status. No authentication required."""
    return HealthResponse(
        status="ok",
        version=__version__,
        pending_completions=request.app.state.completions.active,
    )
