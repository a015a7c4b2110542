"""Bcrypt credential service — CredentialService backed by the bcrypt library.

bcrypt is CPU-bound, so hashing and verification run in a worker thread to
keep the event loop responsive during bulk imports.

Tier 2 service module: imports from schoolhub.hooks.interfaces (Tier 1).

Usage:
    from schoolhub.hooks.credentials import BcryptCredentialService

    credentials = BcryptCredentialService(rounds=12)
    digest = await credentials.hash_secret("Password123")
    await credentials.verify_secret("Password123", digest)  # True
"""

import asyncio
import logging

import bcrypt

from schoolhub.hooks.interfaces import CredentialService

logger = logging.getLogger(__name__)


class BcryptCredentialService(CredentialService):
    """Secret hashing with bcrypt and an embedded per-hash salt.

    Args:
        rounds: bcrypt cost factor. 12 in production; tests use the
            minimum (4) to stay fast.
    """

    def __init__(self, rounds: int = 12) -> None:
        self._rounds = rounds

    def _hash(self, secret: str) -> str:
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(secret.encode("utf-8"), salt).decode("utf-8")

    def _verify(self, secret: str, secret_hash: str) -> bool:
        try:
            return bcrypt.checkpw(secret.encode("utf-8"), secret_hash.encode("utf-8"))
        except ValueError:
            logger.warning("Stored credential hash is malformed")
            return False

    async def hash_secret(self, secret: str) -> str:
        """Hashes a secret.

        Raises:
            ValueError: If the secret is empty.
        """
        if not secret:
            raise ValueError("Secret cannot be empty")
        return await asyncio.to_thread(self._hash, secret)

    async def verify_secret(self, secret: str, secret_hash: str) -> bool:
        """Returns False for empty inputs or a malformed hash."""
        if not secret or not secret_hash:
            return False
        return await asyncio.to_thread(self._verify, secret, secret_hash)
