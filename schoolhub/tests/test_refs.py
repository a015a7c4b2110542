"""Tests for schoolhub.engine.refs — class refs and raw subject refs."""

import pytest

from schoolhub.engine.refs import (
    ById,
    ByNumber,
    normalize_class_number,
    parse_class_ref,
    parse_class_refs,
    resolve_subject_ref,
    teacher_covers_class,
)
from schoolhub.schemas import Board, SchoolClass, Subject


def _class(number: str = "10", section: str = "A", class_id: str = "cls-1") -> SchoolClass:
    return SchoolClass(id=class_id, class_number=number, section=section, tenant_id="t1")


class TestNormalizeClassNumber:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("10", "10"),
            ("Class 10", "10"),
            ("class-9", "9"),
            ("CLASS_12", "12"),
            ("  07 ", "7"),
        ],
    )
    def test_accepted_forms(self, raw: str, expected: str) -> None:
        assert normalize_class_number(raw) == expected

    @pytest.mark.parametrize("raw", ["", "Class", "10A", "abc123", "100"])
    def test_rejected_forms(self, raw: str) -> None:
        assert normalize_class_number(raw) is None


class TestParseClassRef:
    def test_number_forms_become_by_number(self) -> None:
        assert parse_class_ref("10") == ByNumber("10")
        assert parse_class_ref("Class 10") == ByNumber("10")

    def test_other_strings_become_by_id(self) -> None:
        assert parse_class_ref("64b7f0c2a1") == ById("64b7f0c2a1")

    def test_encoded_forms_round_trip(self) -> None:
        for ref in (ById("abc"), ByNumber("9")):
            assert parse_class_ref(ref.encode()) == ref

    def test_variants_pass_through(self) -> None:
        ref = ById("abc")
        assert parse_class_ref(ref) is ref

    def test_empty_ref_rejected(self) -> None:
        with pytest.raises(ValueError):
            parse_class_ref("   ")

    def test_parse_refs_drops_empty_legacy_entries(self) -> None:
        assert parse_class_refs(["", "10", " "]) == [ByNumber("10")]


class TestTeacherCoversClass:
    def test_by_number_covers_every_section(self) -> None:
        assert teacher_covers_class(["10"], _class(section="A"))
        assert teacher_covers_class(["Class 10"], _class(section="C", class_id="cls-3"))

    def test_by_id_covers_only_that_section(self) -> None:
        refs = ["id:cls-1"]
        assert teacher_covers_class(refs, _class(class_id="cls-1"))
        assert not teacher_covers_class(refs, _class(class_id="cls-2"))

    def test_legacy_bare_id_is_matched(self) -> None:
        assert teacher_covers_class(["cls-1"], _class(class_id="cls-1"))

    def test_other_grade_not_covered(self) -> None:
        assert not teacher_covers_class(["9"], _class(number="10"))


class TestResolveSubjectRef:
    @pytest.fixture
    def catalog(self) -> list[Subject]:
        return [
            Subject(id="AbC123", name="Mathematics", board=Board.CBSE_AP),
            Subject(id="def456", name="Physics", board=Board.CBSE_AP),
        ]

    def test_exact_id(self, catalog) -> None:
        assert resolve_subject_ref("def456", catalog).name == "Physics"

    def test_stringified_id(self, catalog) -> None:
        assert resolve_subject_ref(" abc123 ", catalog).name == "Mathematics"

    def test_name(self, catalog) -> None:
        assert resolve_subject_ref("mathematics", catalog).id == "AbC123"

    def test_unknown(self, catalog) -> None:
        assert resolve_subject_ref("Chemistry", catalog) is None
        assert resolve_subject_ref("", catalog) is None
