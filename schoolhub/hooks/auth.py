"""Fake auth service — development stub for AuthService.

Accepts any non-empty token and returns a configurable test user. Empty
tokens return None (simulates a missing/invalid Authorization header).

TEAM: Replace this with your real auth provider (JWT, etc.). Subclass
AuthService from schoolhub.hooks.interfaces and implement validate_token.
The platform never touches tokens directly — it gets a User back.

Tier 2 service module: imports from schoolhub.hooks.interfaces (Tier 1)
and schoolhub.schemas (Tier 1).

Usage:
    from schoolhub.hooks.auth import FakeAuthService

    auth = FakeAuthService()                                   # super-admin
    auth = FakeAuthService(default_role="admin", tenant_id=t)  # tenant admin
"""

from schoolhub.hooks.interfaces import AuthService
from schoolhub.schemas import User

_ROLE_NAMES: dict[str, str] = {
    "student": "Test Student",
    "teacher": "Test Teacher",
    "admin": "Test Admin",
    "super-admin": "Test Super Admin",
}


class FakeAuthService(AuthService):
    """STUB — returns a test user for any non-empty token.

    Does not perform real authentication. The returned user's role, id and
    tenant are fixed at construction time.
    """

    def __init__(
        self,
        default_role: str = "super-admin",
        user_id: str = "fake-user-1",
        tenant_id: str | None = None,
    ) -> None:
        """Initialises the fake auth service.

        Args:
            default_role: The role assigned to all returned users.
            user_id: The id returned for every token.
            tenant_id: The tenant the user belongs to (None for super-admin).
        """
        self._default_role = default_role
        self._user_id = user_id
        self._tenant_id = tenant_id

    async def validate_token(self, token: str) -> User | None:
        if not token:
            return None
        return User(
            id=self._user_id,
            role=self._default_role,  # type: ignore[arg-type]
            name=_ROLE_NAMES.get(self._default_role, "Test User"),
            tenant_id=self._tenant_id,
        )
