"""Tests for schoolhub.engine.catalog — subjects and exclusive content."""

import pytest

from schoolhub.errors import CrossBoardViolation, DuplicateKey, NotFound, ValidationFailed
from schoolhub.schemas import Board


class TestSubjects:
    @pytest.mark.asyncio
    async def test_create_and_list_by_board(self, engine) -> None:
        await engine.catalog.create_subject("Physics", "cbse_ap", code=" phy ")
        await engine.catalog.create_subject("Biology", Board.CBSE_AP)
        await engine.catalog.create_subject("Physics", Board.STATE_TS)

        subjects = await engine.catalog.subjects_for_board("CBSE_AP")

        assert [s.name for s in subjects] == ["Biology", "Physics"]
        assert subjects[1].code == "PHY"

    @pytest.mark.asyncio
    async def test_same_name_twice_on_one_board(self, engine) -> None:
        await engine.catalog.create_subject("Physics", Board.CBSE_AP)
        with pytest.raises(DuplicateKey, match="already exists"):
            await engine.catalog.create_subject("Physics", Board.CBSE_AP)

    @pytest.mark.asyncio
    async def test_invalid_board(self, engine) -> None:
        with pytest.raises(ValidationFailed):
            await engine.catalog.create_subject("Physics", "IB")

    @pytest.mark.asyncio
    async def test_empty_name(self, engine) -> None:
        with pytest.raises(ValidationFailed):
            await engine.catalog.create_subject("  ", Board.CBSE_AP)

    @pytest.mark.asyncio
    async def test_deactivated_subject_leaves_catalog(self, engine) -> None:
        subject = await engine.catalog.create_subject("Physics", Board.CBSE_AP)
        await engine.catalog.deactivate_subject(subject.id)

        assert await engine.catalog.subjects_for_board(Board.CBSE_AP) == []
        everything = await engine.catalog.subjects_for_board(
            Board.CBSE_AP, include_inactive=True
        )
        assert [s.id for s in everything] == [subject.id]

    @pytest.mark.asyncio
    async def test_get_unknown_subject(self, engine) -> None:
        with pytest.raises(NotFound):
            await engine.catalog.get_subject("missing")


class TestExclusiveContent:
    @pytest.mark.asyncio
    async def test_upload_on_subject_board(self, engine, make_subject) -> None:
        subject = await make_subject(board=Board.STATE_AP)
        content = await engine.catalog.upload_content(
            title=" Chapter 1 ",
            board="state_ap",
            subject_id=subject.id,
            content_type="pdf",
            file_url="https://cdn.test/ch1.pdf",
        )
        assert content.title == "Chapter 1"
        assert content.board == Board.STATE_AP

        listed = await engine.catalog.content_for_board(Board.STATE_AP, subject.id)
        assert [c.id for c in listed] == [content.id]

    @pytest.mark.asyncio
    async def test_cross_board_subject_rejected(self, engine, make_subject) -> None:
        subject = await make_subject(board=Board.CBSE_AP)
        with pytest.raises(CrossBoardViolation):
            await engine.catalog.upload_content(
                title="Notes",
                board=Board.STATE_TS,
                subject_id=subject.id,
                content_type="note",
                file_url="https://cdn.test/n.pdf",
            )

    @pytest.mark.asyncio
    async def test_invalid_content_type(self, engine, make_subject) -> None:
        subject = await make_subject()
        with pytest.raises(ValidationFailed, match="content type"):
            await engine.catalog.upload_content(
                title="Notes",
                board=Board.CBSE_AP,
                subject_id=subject.id,
                content_type="gif",
                file_url="https://cdn.test/n.gif",
            )

    @pytest.mark.asyncio
    async def test_unknown_subject(self, engine) -> None:
        with pytest.raises(NotFound):
            await engine.catalog.upload_content(
                title="Notes",
                board=Board.CBSE_AP,
                subject_id="missing",
                content_type="pdf",
                file_url="https://cdn.test/n.pdf",
            )

    @pytest.mark.asyncio
    async def test_missing_url(self, engine, make_subject) -> None:
        subject = await make_subject()
        with pytest.raises(ValidationFailed):
            await engine.catalog.upload_content(
                title="Notes",
                board=Board.CBSE_AP,
                subject_id=subject.id,
                content_type="pdf",
                file_url=" ",
            )
