"""Polymorphic references — class refs and raw subject refs.

Two fields in the data model are historically polymorphic:

- Teacher.assigned_class_ids may hold a class document id OR a class
  number ("10", "Class 10"). Modelled here as the tagged variant
  ``ClassRef = ById | ByNumber``. parse_class_ref() is the one
  normalization point; nothing else compares raw class strings.
- Video.subject_ref / Assessment.subject_refs may hold the subject id, a
  re-cased/padded copy of it, or the subject's name. resolve_subject_ref()
  tries all three forms in that order.

Tier 1 leaf — imports only stdlib and schoolhub.schemas.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from schoolhub.schemas import SchoolClass, Subject

_ID_PREFIX = "id:"
_NUMBER_PREFIX = "num:"

# "10", "Class 10", "class-9", "CLASS_12"
_CLASS_NUMBER_RE = re.compile(r"^(?:class)?[\s\-_]*(\d{1,2})$", re.IGNORECASE)


@dataclass(frozen=True)
class ById:
    """Reference to one specific class section by document id."""

    class_id: str

    def encode(self) -> str:
        return f"{_ID_PREFIX}{self.class_id}"

    def matches(self, school_class: SchoolClass) -> bool:
        return school_class.id == self.class_id


@dataclass(frozen=True)
class ByNumber:
    """Reference to every section of a grade by class number."""

    class_number: str

    def encode(self) -> str:
        return f"{_NUMBER_PREFIX}{self.class_number}"

    def matches(self, school_class: SchoolClass) -> bool:
        return school_class.class_number == self.class_number


ClassRef = ById | ByNumber


def normalize_class_number(raw: str) -> str | None:
    """Strips a leading "Class" token and returns the bare number, or None."""
    match = _CLASS_NUMBER_RE.match(raw.strip())
    if match is None:
        return None
    return str(int(match.group(1)))


def parse_class_ref(raw: str | ClassRef) -> ClassRef:
    """Normalizes any stored or submitted class reference.

    Accepts the encoded forms written by this module ("id:…", "num:…") and
    the legacy bare forms: a class-number string ("10", "Class 10") or a
    document id (anything else).

    Raises:
        ValueError: If the reference is empty.
    """
    if isinstance(raw, (ById, ByNumber)):
        return raw
    value = str(raw).strip()
    if not value:
        raise ValueError("Class reference cannot be empty")
    if value.startswith(_ID_PREFIX):
        return ById(value[len(_ID_PREFIX):])
    if value.startswith(_NUMBER_PREFIX):
        number = normalize_class_number(value[len(_NUMBER_PREFIX):])
        return ByNumber(number or value[len(_NUMBER_PREFIX):])
    number = normalize_class_number(value)
    if number is not None:
        return ByNumber(number)
    return ById(value)


def parse_class_refs(raw_refs: Iterable[str]) -> list[ClassRef]:
    """Parses a stored list, silently dropping empty legacy entries."""
    refs: list[ClassRef] = []
    for raw in raw_refs:
        if not str(raw).strip():
            continue
        refs.append(parse_class_ref(raw))
    return refs


def teacher_covers_class(raw_refs: Iterable[str], school_class: SchoolClass) -> bool:
    """True if any of a teacher's stored refs points at this class."""
    return any(ref.matches(school_class) for ref in parse_class_refs(raw_refs))


# ---------------------------------------------------------------------------
# Subject refs
# ---------------------------------------------------------------------------


def _canonical_id(value: str) -> str:
    return value.strip().lower()


def resolve_subject_ref(raw: str, catalog: Iterable[Subject]) -> Subject | None:
    """Resolves a raw subject reference against a subject catalog.

    Forms tried, in order:
      1. exact id match
      2. stringified id match (whitespace/case-insensitive)
      3. subject name match (case-insensitive)

    Returns:
        The matching Subject, or None if no form matches.
    """
    subjects = list(catalog)
    if not raw:
        return None
    for subject in subjects:
        if subject.id == raw:
            return subject
    canonical = _canonical_id(raw)
    for subject in subjects:
        if _canonical_id(subject.id) == canonical:
            return subject
    for subject in subjects:
        if subject.name.strip().lower() == canonical:
            return subject
    return None
