"""Board catalog — subjects and exclusive content, shared across tenants.

Subjects and exclusive content belong to a board, not a tenant. Both are
created by the super-tenant. Content must reference a subject on its own
board.

Tier 2 service: imports from hooks.interfaces, schemas, errors.
"""

from __future__ import annotations

import logging

from schoolhub.errors import CrossBoardViolation, DuplicateKey, NotFound, ValidationFailed
from schoolhub.hooks.interfaces import EntityStore
from schoolhub.schemas import Board, Collection, Content, Subject

logger = logging.getLogger(__name__)

CONTENT_TYPES = ("video", "pdf", "ppt", "note", "other")


def parse_board(value: str | Board) -> Board:
    """Board.parse, reported as a validation failure."""
    try:
        return Board.parse(value)
    except ValueError as exc:
        raise ValidationFailed(str(exc)) from exc


class CatalogService:
    def __init__(self, store: EntityStore) -> None:
        self._store = store

    # -- subjects ----------------------------------------------------------

    async def create_subject(
        self,
        name: str,
        board: str | Board,
        *,
        class_number: str | None = None,
        code: str | None = None,
        description: str = "",
    ) -> Subject:
        """Adds a subject to a board's catalog.

        Raises:
            ValidationFailed: Empty name or unknown board.
            DuplicateKey: The board already has a subject with this name.
        """
        if not name.strip():
            raise ValidationFailed("Subject name is required")
        subject = Subject(
            name=name.strip(),
            board=parse_board(board),
            class_number=class_number,
            code=code.strip().upper() if code else None,
            description=description,
        )
        try:
            await self._store.insert(Collection.SUBJECTS, subject.model_dump())
        except DuplicateKey as exc:
            raise DuplicateKey(
                exc.collection,
                exc.fields,
                f"Subject {subject.name} already exists on board {subject.board.value}",
            ) from exc
        logger.info("Created subject %s on %s", subject.name, subject.board.value)
        return subject

    async def get_subject(self, subject_id: str) -> Subject:
        doc = await self._store.find_one(Collection.SUBJECTS, {"id": subject_id})
        if doc is None:
            raise NotFound(f"Subject {subject_id} not found")
        return Subject.model_validate(doc)

    async def subjects_for_board(
        self, board: str | Board, *, include_inactive: bool = False
    ) -> list[Subject]:
        query: dict = {"board": parse_board(board)}
        if not include_inactive:
            query["is_active"] = True
        docs = await self._store.find(Collection.SUBJECTS, query, sort=[("name", 1)])
        return [Subject.model_validate(doc) for doc in docs]

    async def deactivate_subject(self, subject_id: str) -> Subject:
        """Soft-deletes a subject. Teacher and class assignments are kept."""
        subject = await self.get_subject(subject_id)
        await self._store.update_one(
            Collection.SUBJECTS, {"id": subject.id}, {"is_active": False}
        )
        subject.is_active = False
        return subject

    # -- exclusive content -------------------------------------------------

    async def upload_content(
        self,
        *,
        title: str,
        board: str | Board,
        subject_id: str,
        content_type: str,
        file_url: str,
        description: str = "",
        topic: str = "",
        thumbnail_url: str = "",
        duration: int = 0,
    ) -> Content:
        """Publishes board-wide exclusive content.

        Raises:
            ValidationFailed: Missing title/url, unknown board or type.
            NotFound: Unknown subject.
            CrossBoardViolation: The subject is on a different board.
        """
        if not title.strip() or not file_url.strip():
            raise ValidationFailed("Content needs a title and a file URL")
        if content_type not in CONTENT_TYPES:
            raise ValidationFailed(
                f"Invalid content type {content_type!r}. "
                f"Valid options: {', '.join(CONTENT_TYPES)}"
            )
        target_board = parse_board(board)
        subject = await self.get_subject(subject_id)
        if Board.parse(subject.board) != target_board:
            raise CrossBoardViolation(
                f"Subject {subject.name} is on board {subject.board.value}, "
                f"not {target_board.value}"
            )
        content = Content(
            title=title.strip(),
            board=target_board,
            subject_id=subject.id,
            content_type=content_type,
            file_url=file_url.strip(),
            description=description,
            topic=topic,
            thumbnail_url=thumbnail_url,
            duration=duration,
        )
        await self._store.insert(Collection.CONTENTS, content.model_dump())
        return content

    async def content_for_board(
        self, board: str | Board, subject_id: str | None = None
    ) -> list[Content]:
        query: dict = {"board": parse_board(board), "is_active": True}
        if subject_id is not None:
            query["subject_id"] = subject_id
        docs = await self._store.find(
            Collection.CONTENTS, query, sort=[("created_at", -1)]
        )
        return [Content.model_validate(doc) for doc in docs]
