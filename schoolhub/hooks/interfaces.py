"""Hook interfaces — abstract base classes for all swappable services.

These ABCs define the contracts between the engine and the infrastructure
layer. Each one has a development implementation that lets the platform run
end-to-end without real infrastructure, and a production implementation the
team wires in when ready.

Tier 1 leaf module: imports only from abc, typing (stdlib) and
schoolhub.schemas (also Tier 1). No engine services, no orchestration.

TEAM: To implement a real service, subclass the relevant ABC and implement
every abstract method. Python will raise TypeError at instantiation if
any method is missing — you'll know immediately what's left to do.

Usage:
    from schoolhub.hooks.interfaces import AuthService, CredentialService
    from schoolhub.hooks.interfaces import EntityStore
"""

from abc import ABC, abstractmethod
from typing import Any

from schoolhub.schemas import Collection, User

# A filter is a dict of field -> condition. Conditions are either a plain
# value (equality; for list fields, membership) or an operator dict using
# "$in" / "$ne". The top-level key "$or" takes a list of sub-filters.
# This is the whole filter vocabulary the engine issues.
Query = dict[str, Any]
Sort = list[tuple[str, int]]


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class AuthService(ABC):
    """Validates auth tokens and resolves users.

    The auth provider (JWT, session cookie — team's choice) lives behind this
    interface. The platform never touches tokens directly; it asks the
    AuthService and gets a User back.
    """

    @abstractmethod
    async def validate_token(self, token: str) -> User | None:
        """Validates an auth token and returns the associated user.

        Args:
            token: Auth token from the request.

        Returns:
            The User if the token is valid and not expired, None otherwise.
        """
        ...


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class CredentialService(ABC):
    """Hashes and verifies secrets (passwords).

    The engine only ever stores the returned hash. It never compares
    plaintext itself.
    """

    @abstractmethod
    async def hash_secret(self, secret: str) -> str:
        """Returns a verifiable hash of the plaintext secret."""
        ...

    @abstractmethod
    async def verify_secret(self, secret: str, secret_hash: str) -> bool:
        """Returns True if the plaintext matches the stored hash."""
        ...


# ---------------------------------------------------------------------------
# Entity store
# ---------------------------------------------------------------------------


class EntityStore(ABC):
    """Document storage for every entity collection.

    Documents are plain dicts with a string ``id`` field. Patches passed to
    update_one/update_many replace the named top-level fields only.

    Unique and compound-unique indexes are declared with
    ensure_unique_index(). A write that would violate one raises
    schoolhub.errors.DuplicateKey. The engine relies on that error being
    distinguishable to treat "someone else created it first" as a reread.

    Multi-tenancy is NOT enforced here. Tenant scoping is part of every
    query the engine issues; the store just evaluates filters.

    TEAM: Replace the stub (InMemoryEntityStore) with your database. The
    contract tests in tests/contracts/ describe the behaviour you need.
    """

    @abstractmethod
    async def ensure_unique_index(
        self, collection: Collection, fields: tuple[str, ...]
    ) -> None:
        """Declares a unique index. Idempotent.

        Documents where any indexed field is None are not constrained
        (sparse semantics).
        """
        ...

    @abstractmethod
    async def find(
        self,
        collection: Collection,
        query: Query | None = None,
        *,
        sort: Sort | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Returns all matching documents.

        Args:
            collection: Target collection.
            query: Filter dict. None or {} matches everything.
            sort: List of (field, direction) pairs, direction 1 or -1.
                Ordering between documents equal on every sort key is the
                store's insertion order.
            limit: Maximum number of documents to return.

        Returns:
            Copies of the matching documents. Mutating them does not touch
            the store.
        """
        ...

    @abstractmethod
    async def find_one(
        self, collection: Collection, query: Query
    ) -> dict[str, Any] | None:
        """Returns the first matching document, or None."""
        ...

    @abstractmethod
    async def insert(
        self, collection: Collection, document: dict[str, Any]
    ) -> dict[str, Any]:
        """Inserts a document and returns the stored copy.

        Raises:
            DuplicateKey: If a unique index (or the id) collides.
        """
        ...

    @abstractmethod
    async def update_one(
        self, collection: Collection, query: Query, patch: dict[str, Any]
    ) -> int:
        """Applies patch to the first matching document.

        Returns:
            Number of documents modified (0 or 1).

        Raises:
            DuplicateKey: If the patched document would violate an index.
        """
        ...

    @abstractmethod
    async def update_many(
        self, collection: Collection, query: Query, patch: dict[str, Any]
    ) -> int:
        """Applies patch to every matching document. Returns the count."""
        ...

    @abstractmethod
    async def delete_one(self, collection: Collection, query: Query) -> int:
        """Deletes the first matching document. Returns 0 or 1."""
        ...

    @abstractmethod
    async def delete_many(self, collection: Collection, query: Query) -> int:
        """Deletes every matching document. Returns the count."""
        ...

    @abstractmethod
    async def count_documents(
        self, collection: Collection, query: Query | None = None
    ) -> int:
        """Counts matching documents."""
        ...
