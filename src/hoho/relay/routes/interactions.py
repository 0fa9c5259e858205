"""POST /interactions -- signed platform interactions."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Request
from starlette.responses import JSONResponse

from hoho.protocol.types import SIGNATURE_HEADER, TIMESTAMP_HEADER

router = APIRouter()


@router.post("/interactions")
async def interactions(request: Request, background_tasks: BackgroundTasks) -> JSONResponse:
    """Verify, classify and answer one interaction synchronously.

    The body is read as raw bytes: verification covers the exact bytes
    sent.  Accepted commands are handed to the completion scheduler
    only after the deferred acknowledgment has been sent.
    """
    raw_body = await request.body()
    outcome = request.app.state.interaction_router.handle(
        raw_body,
        request.headers.get(SIGNATURE_HEADER),
        request.headers.get(TIMESTAMP_HEADER),
    )
    if outcome.pending is not None:
        background_tasks.add_task(request.app.state.completions.submit, outcome.pending)
    return JSONResponse(outcome.payload)
