"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, auth middleware, request-id middleware, and routes.

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- This ensures all requests (including auth failures) get X-Request-ID

Actual execution order per request:
1. RequestIDMiddleware (sets request_id, starts timer)
2. CORSMiddleware (answers preflights, when origins are configured)
3. AuthMiddleware (verifies auth, bootstraps the user row, sets viewer)
4. Route handler

Shared client lifecycle:
- One httpx.AsyncClient is created at startup and stored in app.state
- ProviderGateway and WebSearchClient both wrap it for connection pooling
- The client is closed at shutdown
"""

import json
from contextlib import asynccontextmanager
from uuid import UUID

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from c3chat.api.routes import create_api_router
from c3chat.auth.middleware import AuthMiddleware
from c3chat.auth.verifier import JwksVerifier, TokenVerifier
from c3chat.config import get_settings
from c3chat.db.session import get_session_factory
from c3chat.errors import ApiError, ApiErrorCode
from c3chat.logging import configure_logging, get_logger
from c3chat.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware
from c3chat.responses import (
    api_error_handler,
    error_response,
    http_exception_handler,
    unhandled_exception_handler,
)
from c3chat.services.bootstrap import ensure_user
from c3chat.services.llm import ProviderGateway
from c3chat.services.search import WebSearchClient

# Configure structured logging at import time
configure_logging()

logger = get_logger(__name__)


def create_bootstrap_callback():
    """Create a bootstrap callback that creates its own database session.

    The callback is called by the auth middleware for each authenticated request.
    """
    session_factory = get_session_factory()

    def bootstrap(user_id: UUID, email: str | None) -> None:
        with session_factory() as db:
            ensure_user(db, user_id, email)

    return bootstrap


def create_token_verifier() -> JwksVerifier:
    """Create the JWKS token verifier from settings.

    Only the configuration values (JWKS URL, issuer, audiences) change
    between environments.
    """
    settings = get_settings()

    return JwksVerifier(
        jwks_url=settings.auth_jwks_url,  # type: ignore[arg-type]
        issuer=settings.normalized_issuer,  # type: ignore[arg-type]
        audiences=settings.audience_list,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the shared httpx client, provider gateway and search client."""
    settings = get_settings()

    app.state.httpx_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.llm_timeout_s, connect=10.0),
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
    )
    app.state.provider_gateway = ProviderGateway.from_settings(app.state.httpx_client, settings)
    app.state.search_client = WebSearchClient.from_settings(app.state.httpx_client, settings)

    logger.info(
        "provider_gateway_initialized",
        enabled_providers=app.state.provider_gateway.enabled_providers,
        search_configured=settings.search_configured,
    )

    yield

    await app.state.httpx_client.aclose()
    logger.info("httpx_client_closed")


def create_app(
    skip_auth_middleware: bool = False,
    token_verifier: TokenVerifier | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        skip_auth_middleware: If True, skip adding auth middleware (for testing).
        token_verifier: Optional custom token verifier (for testing).

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="c3chat API",
        description="Backend API for c3chat - multi-provider AI chat",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors (including malformed JSON)."""
        return JSONResponse(
            status_code=400,
            content=error_response(ApiErrorCode.E_INVALID_REQUEST, "Invalid request body"),
        )

    @app.middleware("http")
    async def catch_json_decode_errors(request: Request, call_next):
        """Reject malformed JSON bodies before they reach route handlers."""
        if request.method in ("POST", "PUT", "PATCH"):
            content_type = request.headers.get("content-type", "")
            if "application/json" in content_type:
                body = await request.body()
                if body:
                    try:
                        json.loads(body)
                    except json.JSONDecodeError:
                        return JSONResponse(
                            status_code=400,
                            content=error_response(
                                ApiErrorCode.E_INVALID_REQUEST, "Malformed JSON body"
                            ),
                        )
        return await call_next(request)

    app.include_router(create_api_router())

    if not skip_auth_middleware:
        verifier = token_verifier or create_token_verifier()
        app.add_middleware(
            AuthMiddleware,
            verifier=verifier,
            bootstrap_callback=create_bootstrap_callback(),
        )
        logger.info("auth_middleware_enabled", env=settings.c3chat_env.value)

    # Added after auth so preflight requests are answered before auth runs
    cors_origins = settings.cors_origin_list
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type", REQUEST_ID_HEADER],
            expose_headers=[REQUEST_ID_HEADER],
        )
        logger.info("cors_middleware_enabled", origins=cors_origins)

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    This should be called AFTER all other middleware is added, so it runs FIRST.
    This ensures every response includes X-Request-ID, including auth failures.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
