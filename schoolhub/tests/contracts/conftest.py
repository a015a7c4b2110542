"""Fixtures for contract tests — one parameterized fixture per hook interface.

Each fixture yields a fresh implementation instance. Today there's only the
stub ("stub" param). When the team adds a real implementation (e.g. MongoDB,
Postgres JSONB), they add a second param value and an elif branch.

TEAM: To test your implementation against the contracts:
    1. Add your param string (e.g., "mongo") to the params list.
    2. Add an elif branch that yields your implementation instance.
    3. Run: python -m pytest schoolhub/tests/contracts/ -v
    All tests should pass. If any fail, your implementation doesn't satisfy
    the contract; read the failing test's docstring for what's expected.

Uses @pytest_asyncio.fixture (not @pytest.fixture) for async fixture support
in strict mode.
"""

import pytest_asyncio

from schoolhub.hooks.auth import FakeAuthService
from schoolhub.hooks.credentials import BcryptCredentialService
from schoolhub.hooks.database import InMemoryEntityStore


@pytest_asyncio.fixture(params=["stub"])
async def auth_service(request):
    """Yields an AuthService implementation."""
    if request.param == "stub":
        yield FakeAuthService(default_role="admin", tenant_id="tenant-contract-1")


@pytest_asyncio.fixture(params=["stub"])
async def entity_store(request):
    """Yields an EntityStore implementation with no indexes declared.

    TEAM: Add your database here:
        @pytest_asyncio.fixture(params=["stub", "mongo"])
        async def entity_store(request):
            if request.param == "stub":
                yield InMemoryEntityStore(unique_indexes={})
            elif request.param == "mongo":
                store = YourMongoStore(test_uri)
                yield store
                await store.drop_all()  # if needed
    """
    if request.param == "stub":
        yield InMemoryEntityStore(unique_indexes={})


@pytest_asyncio.fixture(params=["bcrypt"])
async def credential_service(request):
    """Yields a CredentialService at the cheapest cost factor."""
    if request.param == "bcrypt":
        yield BcryptCredentialService(rounds=4)
