"""FastAPI application factory for the hoho interaction relay."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI
from fastapi.exceptions import HTTPException, RequestValidationError
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse

from hoho import __version__
from hoho.protocol.crypto import SignatureVerifier
from hoho.protocol.errors import AuthenticationError, ClientInputError
from hoho.relay.ai_bridge import AiBridgeClient
from hoho.relay.config import Settings
from hoho.relay.followup import FollowUpDispatcher
from hoho.relay.formatter import ResultFormatter
from hoho.relay.forwarder import WebhookForwarder
from hoho.relay.interactions import CompletionScheduler, InteractionRouter

logger = logging.getLogger(__name__)

# Seconds in-flight completions get to finish at shutdown
_SHUTDOWN_GRACE_SECONDS: float = 5.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Own the shared HTTP client and the completion tasks across app lifetime."""
    settings: Settings = app.state.settings

    # One pooled client for the backend, the follow-up API and the relay
    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(30.0, connect=10.0),
        follow_redirects=False,
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
        transport=app.state.http_transport,
    )
    app.state.http_client = http_client

    app.state.completions = CompletionScheduler(
        AiBridgeClient(http_client, settings),
        ResultFormatter(),
        FollowUpDispatcher(http_client, settings),
    )
    app.state.forwarder = WebhookForwarder(http_client)
    logger.info("Hoho relay started")

    yield

    await app.state.completions.stop(_SHUTDOWN_GRACE_SECONDS)
    await http_client.aclose()
    logger.info("Hoho relay stopped")


def create_app(
    settings: Settings | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the hoho FastAPI application.

    Raises:
        ConfigurationError: If required settings are missing, so the
            process stops before it accepts traffic.
    """
    settings = settings or Settings()
    settings.validate()

    # Configure logging from settings
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if settings.debug:
        logging.getLogger("hoho").setLevel(logging.DEBUG)

    app = FastAPI(
        title="Hoho Relay",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.http_transport = http_transport
    app.state.interaction_router = InteractionRouter(
        SignatureVerifier(settings.public_key), settings
    )

    # Consistent JSON error shape: {"error": "<code>", "detail": "<message>"}
    _STATUS_TO_ERROR = {
        400: "bad_request",
        401: "unauthorized",
        404: "not_found",
        422: "validation_error",
        502: "bad_gateway",
        503: "service_unavailable",
    }

    @app.exception_handler(AuthenticationError)
    async def authentication_error_handler(
        request: Request, exc: AuthenticationError
    ) -> PlainTextResponse:
        return PlainTextResponse(str(exc), status_code=401)

    @app.exception_handler(ClientInputError)
    async def client_input_error_handler(
        request: Request, exc: ClientInputError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "bad_request", "detail": str(exc)},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": _STATUS_TO_ERROR.get(exc.status_code, "error"),
                "detail": exc.detail,
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "error": "validation_error",
                "detail": str(exc),
            },
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from hoho.relay.routes.health import router as health_router
    from hoho.relay.routes.interactions import router as interactions_router
    from hoho.relay.routes.webhook import router as webhook_router

    app.include_router(health_router)
    app.include_router(interactions_router)
    app.include_router(webhook_router)

    return app
