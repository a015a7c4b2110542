"""Shared FastAPI dependencies — auth, engine and insights injection.

Module-level singletons for each service. Route handlers access them via
FastAPI's Depends() system — never by importing stubs directly. When the
team swaps a stub for a real implementation, they change the class here and
every downstream handler picks it up automatically.

TEAM: To wire your real services, replace the stub class on the right side
of each singleton assignment below. The get_* functions and all route
handlers stay unchanged.

Tier 2 service module: imports from hooks/*, engine/*, ai/*, schemas,
models, config.

Usage:
    from schoolhub.api.deps import get_current_user, get_engine

    @router.get("/something")
    async def do_thing(
        user: User = Depends(get_current_user),
        engine: Engine = Depends(get_engine),
    ): ...
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Query

from schoolhub.ai.insights import PerformanceInsights
from schoolhub.ai.providers.base import AIProvider
from schoolhub.config import Settings, get_settings
from schoolhub.engine.container import Engine, build_engine
from schoolhub.engine.graph import Scope
from schoolhub.hooks.auth import FakeAuthService
from schoolhub.hooks.credentials import BcryptCredentialService
from schoolhub.hooks.database import InMemoryEntityStore
from schoolhub.hooks.interfaces import AuthService, CredentialService, EntityStore
from schoolhub.models import ModelConfig
from schoolhub.schemas import ApiError, ApiResponse, User

logger = logging.getLogger("schoolhub")

# ---------------------------------------------------------------------------
# Service singletons — the swap point
# ---------------------------------------------------------------------------

# TEAM: Replace with your real implementations here.
_auth_service: AuthService = FakeAuthService()
_store: EntityStore = InMemoryEntityStore()
_credentials: CredentialService = BcryptCredentialService(get_settings().bcrypt_rounds)
_engine: Engine | None = None

# Set by _init_ai_services() in main.py at startup
_insights: PerformanceInsights | None = None


# ---------------------------------------------------------------------------
# Dependency providers
# ---------------------------------------------------------------------------


def get_auth_service() -> AuthService:
    """Returns the auth service singleton."""
    return _auth_service


def get_store() -> EntityStore:
    """Returns the entity store singleton."""
    return _store


def get_engine() -> Engine:
    """Returns the engine, built over the store singleton on first use."""
    global _engine
    if _engine is None:
        _engine = build_engine(_store, _credentials, get_settings())
    return _engine


def get_insights() -> PerformanceInsights:
    """Returns the insights service singleton.

    Raises HTTPException(503) if startup hasn't initialized it yet.
    """
    if _insights is None:
        raise HTTPException(
            status_code=503,
            detail=ApiResponse(
                ok=False,
                error=ApiError(
                    code="SERVICE_UNAVAILABLE",
                    message="Insights are not yet available. Server is starting up.",
                ),
            ).model_dump(),
        )
    return _insights


# ---------------------------------------------------------------------------
# AI provider factory
# ---------------------------------------------------------------------------


def create_provider(model_config: ModelConfig, settings: Settings) -> AIProvider:
    """Routes a ModelConfig to the correct concrete provider instance.

    Raises:
        ValueError: If the provider name is not recognized, or its API key
            is not configured.
    """
    # Local imports keep SDK imports out of module load.
    if model_config.provider == "gemini":
        if not settings.google_api_key:
            raise ValueError("GOOGLE_API_KEY is not set")
        from schoolhub.ai.providers.gemini import GeminiProvider

        return GeminiProvider(api_key=settings.google_api_key)

    if model_config.provider == "anthropic":
        if not settings.anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY is not set")
        from schoolhub.ai.providers.anthropic import AnthropicProvider

        return AnthropicProvider(api_key=settings.anthropic_api_key)

    raise ValueError(
        f"Unknown provider: {model_config.provider!r}. "
        f"Expected 'gemini' or 'anthropic'."
    )


# ---------------------------------------------------------------------------
# Auth dependencies — used by route handlers
# ---------------------------------------------------------------------------


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=ApiResponse(
            ok=False,
            error=ApiError(code="UNAUTHORIZED", message=message),
        ).model_dump(),
    )


async def get_current_user(
    authorization: str | None = Header(default=None),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """Extracts and validates a Bearer token from the Authorization header.

    Raises:
        HTTPException: 401 with ApiResponse envelope on auth failure.
    """
    if not authorization:
        raise _unauthorized("Missing authorization header.")

    parts = authorization.split(" ", maxsplit=1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise _unauthorized("Invalid authorization header format.")

    user = await auth_service.validate_token(parts[1].strip())
    if user is None:
        raise _unauthorized("Invalid or expired token.")
    return user


def require_role(*roles: str) -> Callable:
    """Builds a dependency that admits only the given roles (403 otherwise)."""

    async def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=403,
                detail=ApiResponse(
                    ok=False,
                    error=ApiError(
                        code="FORBIDDEN",
                        message=f"Role {' or '.join(roles)} required.",
                    ),
                ).model_dump(),
            )
        return user

    return dependency


@dataclass(frozen=True)
class TenantContext:
    """The tenant an admin request acts on, and the caller's scope."""

    user: User
    scope: Scope
    tenant_id: str


async def get_tenant_context(
    tenant_id: str | None = Query(default=None),
    user: User = Depends(require_role("admin", "super-admin")),
) -> TenantContext:
    """Admins act on their own tenant. The super-admin names one per request."""
    if user.role == "super-admin":
        if not tenant_id:
            raise HTTPException(
                status_code=400,
                detail=ApiResponse(
                    ok=False,
                    error=ApiError(
                        code="TENANT_REQUIRED",
                        message="Super-admin requests must pass tenant_id.",
                    ),
                ).model_dump(),
            )
        return TenantContext(user=user, scope=Scope.super_tenant(), tenant_id=tenant_id)

    if not user.tenant_id:
        raise _unauthorized("Admin account is not linked to a tenant.")
    return TenantContext(
        user=user, scope=Scope.for_tenant(user.tenant_id), tenant_id=user.tenant_id
    )
