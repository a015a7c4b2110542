"""FastAPI application — entry point, middleware, and health endpoint.

Creates the SchoolHub backend API with:
- API versioning via router prefix (/api/v1/)
- CORS middleware (origins from settings)
- Request logging middleware (raw ASGI, no response body buffering)
- Global exception handlers (engine errors, HTTPException, validation,
  catch-all)
- Health endpoint

Run with: uvicorn schoolhub.main:app --reload

Tier 3 orchestration module: imports from config (Tier 2), deps (Tier 2),
errors and schemas (Tier 1).
"""

from __future__ import annotations

import logging
import time
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from schoolhub.config import Settings, get_settings
from schoolhub.errors import EngineError, PartialFailure
from schoolhub.schemas import ApiError, ApiResponse

logger = logging.getLogger("schoolhub")

# Engine error code → HTTP status. Unlisted codes fall back to 400.
ERROR_STATUS: dict[str, int] = {
    "NOT_FOUND": 404,
    "NOT_ATTEMPTED": 404,
    "BOARD_UNRESOLVED": 409,
    "DUPLICATE_KEY": 409,
    "CROSS_BOARD_VIOLATION": 400,
    "VALIDATION_ERROR": 422,
    "PARTIAL_FAILURE": 500,
}


# ---------------------------------------------------------------------------
# Request logging middleware (raw ASGI)
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware:
    """Logs method, path, status code, and duration for every request.

    Does NOT log request/response bodies, query params or auth headers:
    student emails and passwords travel in bodies.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Wraps the ASGI call to measure timing and capture status code."""
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "?")
        path = scope.get("path", "?")
        start = time.monotonic()
        status_code = 0

        async def logging_send(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
            await send(message)

        try:
            await self.app(scope, receive, logging_send)
        finally:
            duration_ms = (time.monotonic() - start) * 1000
            logger.info(
                "%s %s %d %.1fms", method, path, status_code, duration_ms
            )


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


def _engine_error_response(request: Request, exc: EngineError) -> JSONResponse:
    """Maps an engine rejection to its status code and ApiResponse envelope.

    PARTIAL_FAILURE carries what did complete in ``data`` and lists the
    failed steps in the message.
    """
    status_code = ERROR_STATUS.get(exc.code, 400)
    data = None
    message = exc.message
    if isinstance(exc, PartialFailure):
        logger.error("Partial failure on %s %s: %s", request.method, request.url.path, exc)
        failed = "; ".join(f"{f.step}: {f.reason}" for f in exc.failures)
        message = f"{exc.message} ({failed})" if failed else exc.message
        succeeded = exc.succeeded
        data = succeeded.to_dict() if hasattr(succeeded, "to_dict") else succeeded

    return JSONResponse(
        status_code=status_code,
        content=ApiResponse(
            ok=False,
            data=data,
            error=ApiError(code=exc.code, message=message),
        ).model_dump(),
    )


def _http_exception_response(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wraps HTTPException in ApiResponse envelope.

    If the detail is already an ApiResponse dict (from deps.py auth),
    returns it directly. Otherwise wraps in a generic error.
    """
    if isinstance(exc.detail, dict) and "ok" in exc.detail:
        return JSONResponse(status_code=exc.status_code, content=exc.detail)

    return JSONResponse(
        status_code=exc.status_code,
        content=ApiResponse(
            ok=False,
            error=ApiError(code="HTTP_ERROR", message=str(exc.detail)),
        ).model_dump(),
    )


def _validation_error_response(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Wraps Pydantic validation errors in ApiResponse envelope.

    Returns a human-readable summary of the first error only.
    """
    errors = exc.errors()
    if errors:
        first = errors[0]
        loc = " -> ".join(str(part) for part in first.get("loc", []))
        msg = first.get("msg", "Validation error")
        detail = f"{loc}: {msg}" if loc else msg
    else:
        detail = "Request validation failed."

    return JSONResponse(
        status_code=422,
        content=ApiResponse(
            ok=False,
            error=ApiError(code="VALIDATION_ERROR", message=detail),
        ).model_dump(),
    )


def _unhandled_exception_response(request: Request, exc: Exception) -> JSONResponse:
    """Catches all unhandled exceptions and returns a generic 500.

    Logs the full traceback server-side; the client never sees internals.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    return JSONResponse(
        status_code=500,
        content=ApiResponse(
            ok=False,
            error=ApiError(
                code="INTERNAL_ERROR",
                message="An unexpected error occurred.",
            ),
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# App creation
# ---------------------------------------------------------------------------


def _init_ai_services() -> None:
    """Initializes the insights service singleton during app startup.

    Resolves the configured insights tier and creates its provider. When AI
    is disabled or the provider can't be created (usually a missing API
    key), insights still work with static narratives.

    Uses local imports to avoid circular imports during module loading.
    """
    from schoolhub.ai.insights import PerformanceInsights
    from schoolhub.api import deps
    from schoolhub.models import TIER_MAP

    settings = get_settings()
    model_config = TIER_MAP[settings.insights_tier]

    provider = None
    if settings.ai_enabled:
        _check_api_keys(settings, TIER_MAP)
        try:
            provider = deps.create_provider(model_config, settings)
        except Exception:
            logger.warning(
                "Failed to create AI provider for '%s' tier (%s). "
                "Insights will use static text.",
                settings.insights_tier,
                model_config.provider,
            )

    deps._insights = PerformanceInsights(deps.get_store(), provider, model_config)

    if provider is not None:
        logger.info(
            "AI services initialized: provider=%s, model=%s",
            model_config.provider,
            model_config.model_id,
        )


def _check_api_keys(settings: Settings, tier_map: dict) -> None:
    """Warns about providers referenced by TIER_MAP that have no API key.

    Args:
        settings: The application Settings instance.
        tier_map: The TIER_MAP dict mapping tiers to ModelConfig.
    """
    providers_seen = {config.provider for config in tier_map.values()}

    key_map = {
        "gemini": ("GOOGLE_API_KEY", settings.google_api_key),
        "anthropic": ("ANTHROPIC_API_KEY", settings.anthropic_api_key),
    }

    for provider_name in sorted(providers_seen):
        if provider_name in key_map:
            env_var, key_value = key_map[provider_name]
            if not key_value:
                logger.warning(
                    "Missing %s for provider '%s'. "
                    "AI features using this provider will fail at runtime.",
                    env_var,
                    provider_name,
                )


def create_app() -> FastAPI:
    """Creates and configures the FastAPI application."""
    settings = get_settings()

    # Configure logging level
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

    application = FastAPI(
        title="SchoolHub",
        description="Multi-tenant school platform: tenants, boards, visibility, rankings",
        version="0.1.0",
    )

    # -- Middleware (order matters: last added = first executed) --

    # CORS must be outermost to handle preflight before auth
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.add_middleware(RequestLoggingMiddleware)

    # -- Exception handlers --
    application.add_exception_handler(EngineError, _engine_error_response)
    application.add_exception_handler(StarletteHTTPException, _http_exception_response)
    application.add_exception_handler(RequestValidationError, _validation_error_response)
    application.add_exception_handler(Exception, _unhandled_exception_response)

    # -- Routers --
    _register_routes(application)

    # -- AI services --
    _init_ai_services()

    return application


def _register_routes(application: FastAPI) -> None:
    """Registers all API routers on the application."""
    from fastapi import APIRouter

    v1 = APIRouter(prefix="/api/v1")

    @v1.get("/health")
    async def health() -> dict[str, Any]:
        return ApiResponse(ok=True, data={"status": "healthy"}).model_dump()

    # Sub-routers (BEFORE including v1 into the app):
    from schoolhub.api.super_admin import router as super_admin_router

    v1.include_router(super_admin_router, prefix="/super-admin", tags=["super-admin"])

    from schoolhub.api.admin import router as admin_router

    v1.include_router(admin_router, prefix="/admin", tags=["admin"])

    from schoolhub.api.student import router as student_router

    v1.include_router(student_router, prefix="/student", tags=["student"])

    application.include_router(v1)


app = create_app()
