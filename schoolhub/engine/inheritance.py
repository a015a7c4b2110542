"""Inheritance resolver — effective board and school for students and teachers.

An entity's own board wins. If it has none, the tenant's board is used and
written back onto the entity (lazy backfill), so the next resolution is a
plain field read with no tenant lookup and no write.

Backfill policy: frozen at backfill. Once a student carries a board, later
changes to the tenant's board do not flow down automatically. That is an
explicit operation (TenantService.update_tenant(propagate_board=True)).

The backfill write is conditional on the entity's board still being empty,
so a concurrent explicit assignment is never overwritten.

Tier 2 service: imports from hooks.interfaces, schemas, errors.
"""

from __future__ import annotations

import logging

from schoolhub.errors import BoardUnresolved, NotFound
from schoolhub.hooks.interfaces import EntityStore
from schoolhub.schemas import Board, Collection, Student, Teacher, Tenant

logger = logging.getLogger(__name__)

Inheritor = Student | Teacher


class InheritanceResolver:
    """Resolves inherited attributes from an entity's tenant.

    Args:
        store: The entity store to read tenants from and backfill into.
    """

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    async def get_tenant(self, tenant_id: str | None) -> Tenant:
        """Loads a tenant by id.

        Raises:
            NotFound: If tenant_id is empty or no such tenant exists.
        """
        if not tenant_id:
            raise NotFound("Entity is not assigned to any tenant")
        doc = await self._store.find_one(Collection.TENANTS, {"id": tenant_id})
        if doc is None:
            raise NotFound(f"Tenant {tenant_id} not found")
        return Tenant.model_validate(doc)

    async def require_tenant_board(self, tenant_id: str) -> Tenant:
        """Precondition for creating classes and students under a tenant.

        Returns:
            The tenant, guaranteed to have a board.

        Raises:
            NotFound: If the tenant doesn't exist.
            BoardUnresolved: If the tenant has no board yet.
        """
        tenant = await self.get_tenant(tenant_id)
        if tenant.board is None:
            raise BoardUnresolved(
                f"Tenant {tenant.email} has no board assigned. "
                "Set a board before creating classes or students."
            )
        return tenant

    async def resolve_board(self, entity: Inheritor) -> Board:
        """Returns the entity's effective board, backfilling if inherited.

        Mutates ``entity.board`` in place when the value is inherited so the
        caller's copy agrees with the store.

        Raises:
            BoardUnresolved: If neither the entity nor its tenant has a board.
        """
        if entity.board is not None:
            return Board.parse(entity.board)

        if not entity.tenant_id:
            raise BoardUnresolved(
                f"{type(entity).__name__} {entity.id} has no board and no tenant"
            )
        try:
            tenant = await self.get_tenant(entity.tenant_id)
        except NotFound as exc:
            raise BoardUnresolved(
                f"{type(entity).__name__} {entity.id} has no board and its "
                f"tenant could not be loaded: {exc.message}"
            ) from exc
        if tenant.board is None:
            raise BoardUnresolved(
                f"Neither {type(entity).__name__} {entity.id} nor tenant "
                f"{tenant.email} has a board"
            )

        modified = await self._store.update_one(
            _collection_for(entity),
            {"id": entity.id, "board": None},
            {"board": tenant.board},
        )
        if modified:
            logger.info(
                "Backfilled board %s onto %s %s",
                tenant.board.value,
                type(entity).__name__,
                entity.id,
            )
        entity.board = tenant.board
        return tenant.board

    async def resolve_school(self, entity: Inheritor) -> str:
        """Returns the entity's effective school name, backfilling if inherited.

        Unlike boards, an empty school name is allowed: returns "" when
        neither the entity nor the tenant has one.
        """
        if entity.school_name:
            return entity.school_name
        if not entity.tenant_id:
            return ""
        tenant = await self.get_tenant(entity.tenant_id)
        if not tenant.school_name:
            return ""
        await self._store.update_one(
            _collection_for(entity),
            {"id": entity.id, "school_name": ""},
            {"school_name": tenant.school_name},
        )
        entity.school_name = tenant.school_name
        return tenant.school_name


def _collection_for(entity: Inheritor) -> Collection:
    if isinstance(entity, Teacher):
        return Collection.TEACHERS
    return Collection.STUDENTS
