"""In-memory entity store — development stub for EntityStore.

Dict-backed document storage. Data lives only in memory and is lost on
restart. Evaluates the small filter vocabulary the engine issues (equality,
list membership, "$in", "$ne", "$or") and enforces declared unique indexes
with DuplicateKey, which is all the engine asks of a datastore.

Every read and write copies documents, so callers can never mutate stored
state through a returned dict.

TEAM: Replace this with your real database (MongoDB, Postgres JSONB, etc.).
Subclass EntityStore from schoolhub.hooks.interfaces and run the contract
tests in tests/contracts/ against it.

Tier 2 service module: imports from schoolhub.hooks.interfaces (Tier 1),
schoolhub.errors and schoolhub.schemas (Tier 1).

Usage:
    from schoolhub.hooks.database import InMemoryEntityStore

    store = InMemoryEntityStore()
    await store.insert(Collection.TENANTS, tenant.model_dump())
    await store.find(Collection.STUDENTS, {"tenant_id": tenant.id})
"""

import copy
from typing import Any

from schoolhub.errors import DuplicateKey
from schoolhub.hooks.interfaces import EntityStore, Query, Sort
from schoolhub.schemas import Collection

# Indexes every deployment needs. Mirrors what the production database
# declares at migration time.
DEFAULT_UNIQUE_INDEXES: dict[Collection, list[tuple[str, ...]]] = {
    Collection.TENANTS: [("email",)],
    Collection.TEACHERS: [("email",)],
    Collection.STUDENTS: [("email",)],
    Collection.SUBJECTS: [("name", "board"), ("code",)],
    Collection.CLASSES: [("class_number", "section", "tenant_id")],
    Collection.EXAM_RESULTS: [("exam_id", "student_id")],
}


def _matches_condition(value: Any, condition: Any) -> bool:
    """Evaluates one field condition against a document value."""
    if isinstance(condition, dict) and condition and all(
        key.startswith("$") for key in condition
    ):
        for op, operand in condition.items():
            if op == "$in":
                candidates = list(operand)
                if isinstance(value, list):
                    if not any(item in candidates for item in value):
                        return False
                elif value not in candidates:
                    return False
            elif op == "$ne":
                if isinstance(value, list):
                    if operand in value:
                        return False
                elif value == operand:
                    return False
            else:
                raise ValueError(f"Unsupported query operator: {op}")
        return True

    if isinstance(value, list) and not isinstance(condition, list):
        return condition in value
    return value == condition


def matches(document: dict[str, Any], query: Query | None) -> bool:
    """Returns True if the document satisfies every clause of the query."""
    if not query:
        return True
    for key, condition in query.items():
        if key == "$or":
            if not any(matches(document, sub) for sub in condition):
                return False
            continue
        if not _matches_condition(document.get(key), condition):
            return False
    return True


def _sort_documents(documents: list[dict[str, Any]], sort: Sort) -> list[dict[str, Any]]:
    """Stable multi-key sort. None values order before everything else."""
    ordered = list(documents)
    for field, direction in reversed(sort):
        ordered.sort(
            key=lambda doc: (0,) if doc.get(field) is None else (1, doc.get(field)),
            reverse=direction < 0,
        )
    return ordered


class InMemoryEntityStore(EntityStore):
    """STUB — dict-backed storage, loses data on restart.

    Collections are insertion-ordered dicts keyed by document id. Unique
    indexes are checked by scanning the collection on every write, which is
    fine at development scale.

    Args:
        unique_indexes: Index declarations to start with. Defaults to
            DEFAULT_UNIQUE_INDEXES. Pass {} to start unconstrained.
    """

    def __init__(
        self,
        unique_indexes: dict[Collection, list[tuple[str, ...]]] | None = None,
    ) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._indexes: dict[str, list[tuple[str, ...]]] = {}
        source = DEFAULT_UNIQUE_INDEXES if unique_indexes is None else unique_indexes
        for collection, index_list in source.items():
            for fields in index_list:
                self._declare(collection, fields)

    # -- internals ---------------------------------------------------------

    def _declare(self, collection: Collection, fields: tuple[str, ...]) -> None:
        declared = self._indexes.setdefault(Collection(collection).value, [])
        if tuple(fields) not in declared:
            declared.append(tuple(fields))

    def _docs(self, collection: Collection) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(Collection(collection).value, {})

    def _check_unique(
        self, collection: Collection, candidate: dict[str, Any]
    ) -> None:
        name = Collection(collection).value
        for fields in self._indexes.get(name, []):
            key = tuple(candidate.get(field) for field in fields)
            if any(part is None for part in key):
                continue
            for doc_id, existing in self._docs(collection).items():
                if doc_id == candidate.get("id"):
                    continue
                if tuple(existing.get(field) for field in fields) == key:
                    raise DuplicateKey(name, fields)

    # -- EntityStore -------------------------------------------------------

    async def ensure_unique_index(
        self, collection: Collection, fields: tuple[str, ...]
    ) -> None:
        self._declare(collection, fields)

    async def find(
        self,
        collection: Collection,
        query: Query | None = None,
        *,
        sort: Sort | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        results = [
            doc for doc in self._docs(collection).values() if matches(doc, query)
        ]
        if sort:
            results = _sort_documents(results, sort)
        if limit is not None:
            results = results[:limit]
        return [copy.deepcopy(doc) for doc in results]

    async def find_one(
        self, collection: Collection, query: Query
    ) -> dict[str, Any] | None:
        for doc in self._docs(collection).values():
            if matches(doc, query):
                return copy.deepcopy(doc)
        return None

    async def insert(
        self, collection: Collection, document: dict[str, Any]
    ) -> dict[str, Any]:
        if "id" not in document:
            raise ValueError("Documents must carry an 'id' field")
        docs = self._docs(collection)
        if document["id"] in docs:
            raise DuplicateKey(Collection(collection).value, ("id",))
        self._check_unique(collection, document)
        stored = copy.deepcopy(document)
        docs[stored["id"]] = stored
        return copy.deepcopy(stored)

    async def update_one(
        self, collection: Collection, query: Query, patch: dict[str, Any]
    ) -> int:
        for doc_id, doc in self._docs(collection).items():
            if matches(doc, query):
                updated = {**doc, **copy.deepcopy(patch)}
                self._check_unique(collection, updated)
                self._docs(collection)[doc_id] = updated
                return 1
        return 0

    async def update_many(
        self, collection: Collection, query: Query, patch: dict[str, Any]
    ) -> int:
        docs = self._docs(collection)
        targets = [doc_id for doc_id, doc in docs.items() if matches(doc, query)]
        updated_docs = {
            doc_id: {**docs[doc_id], **copy.deepcopy(patch)} for doc_id in targets
        }
        # Validate every patched doc before applying any of them.
        for updated in updated_docs.values():
            self._check_unique(collection, updated)
        docs.update(updated_docs)
        return len(targets)

    async def delete_one(self, collection: Collection, query: Query) -> int:
        docs = self._docs(collection)
        for doc_id, doc in docs.items():
            if matches(doc, query):
                del docs[doc_id]
                return 1
        return 0

    async def delete_many(self, collection: Collection, query: Query) -> int:
        docs = self._docs(collection)
        targets = [doc_id for doc_id, doc in docs.items() if matches(doc, query)]
        for doc_id in targets:
            del docs[doc_id]
        return len(targets)

    async def count_documents(
        self, collection: Collection, query: Query | None = None
    ) -> int:
        return sum(1 for doc in self._docs(collection).values() if matches(doc, query))
