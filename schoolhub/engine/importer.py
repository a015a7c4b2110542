"""Bulk import engine — CSV/tabular student upsert with implicit classes.

Reads a batch of student rows for one tenant, normalizes each row's free-form
class label into (class_number, section), gets-or-creates the Class for it,
and inserts the Student with the tenant's board and school inherited.

Failure model:
  - The tenant precondition (exists, has a board) is checked once, before
    any row is touched. Failing it fails the whole call.
  - Every row failure (wrong column count, malformed or taken email,
    unparseable class label, class creation failure) becomes a RowError with
    the 1-indexed data-row number. Processing always continues.

Classes are memoized per batch by (class_number, section). Across batches
and concurrent imports, the (class_number, section, tenant_id) unique index
is the arbiter: DuplicateKey on insert means someone else created the
class first, and the winner is re-read.

Tier 2 service: imports from hooks.interfaces, schemas, errors, config,
engine.inheritance.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from pydantic import ValidationError

from schoolhub.config import Settings
from schoolhub.engine.inheritance import InheritanceResolver
from schoolhub.errors import DuplicateKey, EngineError, ValidationFailed
from schoolhub.hooks.interfaces import CredentialService, EntityStore
from schoolhub.schemas import Collection, SchoolClass, Student, Tenant

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("name", "email", "phone")
CLASS_COLUMNS = ("classnumber", "class", "class_label")
DEFAULT_SECTION = "A"
UNASSIGNED = "Unassigned"

# "10", "10A", "10-A", "10 a", "Class 10-A", "class-9 B", "CLASS_12"
_CLASS_LABEL_RE = re.compile(
    r"^(?:class)?[\s\-_]*(\d{1,2})(?:[\s\-_]*([a-z]))?$", re.IGNORECASE
)

# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RowError:
    """One rejected row.

    Attributes:
        row: 1-indexed data-row number (the header is not counted).
        reason: Human-readable rejection reason.
        email: The row's email, when it had one.
    """

    row: int
    reason: str
    email: str | None = None

    def to_dict(self) -> dict:
        return {"row": self.row, "reason": self.reason, "email": self.email}


@dataclass
class ImportReport:
    """Outcome of one import batch: what was created and what was rejected."""

    created_count: int = 0
    classes_created_count: int = 0
    per_row_errors: list[RowError] = field(default_factory=list)
    created: list[Student] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "created_count": self.created_count,
            "classes_created_count": self.classes_created_count,
            "per_row_errors": [error.to_dict() for error in self.per_row_errors],
            "created": [
                {
                    "id": student.id,
                    "name": student.full_name,
                    "email": student.email,
                    "class_number": student.class_number,
                    "section": student.section,
                }
                for student in self.created
            ],
        }


@dataclass
class CsvBatch:
    """A parsed CSV file.

    Attributes:
        header: Lower-cased column names.
        rows: (row number, values keyed by column) for well-formed rows.
        errors: Rows rejected during parsing (column count mismatch).
    """

    header: list[str]
    rows: list[tuple[int, dict[str, str]]]
    errors: list[RowError]


class _RowRejected(Exception):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_class_label(label: str) -> tuple[str, str]:
    """Splits a free-form class label into (class_number, section).

    Strips a leading "Class"/"Class-" token and takes a trailing section
    letter if present. The section defaults to "A".

    Raises:
        ValueError: If the label has no recognizable class number.
    """
    match = _CLASS_LABEL_RE.match(label.strip())
    if match is None:
        raise ValueError(f"Unrecognized class label: {label!r}")
    number = str(int(match.group(1)))
    section = (match.group(2) or DEFAULT_SECTION).upper()
    return number, section


def _class_label(row: Mapping[str, str]) -> str:
    for column in CLASS_COLUMNS:
        value = row.get(column)
        if value is not None:
            return value.strip()
    return ""


def parse_csv(text: str) -> CsvBatch:
    """Parses CSV text into a header and numbered rows.

    Blank lines are skipped. Header names are trimmed and lower-cased.

    Raises:
        ValidationFailed: Empty file, no data rows, or missing columns.
    """
    lines = [row for row in csv.reader(io.StringIO(text.lstrip("\ufeff"))) if any(
        cell.strip() for cell in row
    )]
    if len(lines) < 2:
        raise ValidationFailed("CSV file must have at least a header and one data row")

    header = [column.strip().lower() for column in lines[0]]
    missing = [column for column in REQUIRED_COLUMNS if column not in header]
    if missing:
        raise ValidationFailed(f"Missing required headers: {', '.join(missing)}")
    if not any(column in header for column in CLASS_COLUMNS):
        raise ValidationFailed(
            f"Missing class header. Include one of: {', '.join(CLASS_COLUMNS)}"
        )

    rows: list[tuple[int, dict[str, str]]] = []
    errors: list[RowError] = []
    for number, values in enumerate(lines[1:], start=1):
        if len(values) != len(header):
            errors.append(
                RowError(
                    row=number,
                    reason=(
                        f"Column count mismatch: expected {len(header)}, "
                        f"got {len(values)}"
                    ),
                )
            )
            continue
        rows.append((number, {h: v.strip() for h, v in zip(header, values)}))
    return CsvBatch(header=header, rows=rows, errors=errors)


# ---------------------------------------------------------------------------
# Importer
# ---------------------------------------------------------------------------


class BulkImporter:
    """Imports student batches into one tenant.

    Args:
        store: The entity store.
        resolver: Inheritance resolver, for the tenant board precondition.
        credentials: Hashes the default password once per batch.
        settings: Supplies the default student password.
    """

    def __init__(
        self,
        store: EntityStore,
        resolver: InheritanceResolver,
        credentials: CredentialService,
        settings: Settings,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._credentials = credentials
        self._settings = settings

    async def import_csv(self, tenant_id: str, text: str) -> ImportReport:
        """Parses CSV text and imports every well-formed row.

        Raises:
            ValidationFailed: The file itself is unusable (see parse_csv).
            NotFound / BoardUnresolved: Tenant precondition failed.
        """
        batch = parse_csv(text)
        return await self._run(tenant_id, batch.rows, batch.errors)

    async def import_students(
        self, tenant_id: str, rows: Sequence[Mapping[str, str]]
    ) -> ImportReport:
        """Imports already-parsed rows, numbered from 1 in the given order.

        Each row needs "name", "email", "phone" and a class label under one
        of CLASS_COLUMNS.
        """
        numbered = [(number, dict(row)) for number, row in enumerate(rows, start=1)]
        return await self._run(tenant_id, numbered, [])

    async def _run(
        self,
        tenant_id: str,
        rows: list[tuple[int, dict[str, str]]],
        parse_errors: list[RowError],
    ) -> ImportReport:
        tenant = await self._resolver.require_tenant_board(tenant_id)
        report = ImportReport(per_row_errors=list(parse_errors))
        if not rows:
            return report

        password_hash = await self._credentials.hash_secret(
            self._settings.default_student_password
        )
        classes: dict[tuple[str, str], SchoolClass] = {}

        for number, row in rows:
            email = (row.get("email") or "").strip().lower() or None
            try:
                student = await self._import_row(
                    tenant, row, password_hash, classes, report
                )
            except _RowRejected as exc:
                report.per_row_errors.append(
                    RowError(row=number, reason=exc.reason, email=email)
                )
                continue
            except EngineError as exc:
                report.per_row_errors.append(
                    RowError(row=number, reason=exc.message, email=email)
                )
                continue
            report.created.append(student)
            report.created_count += 1

        report.per_row_errors.sort(key=lambda error: error.row)
        logger.info(
            "Import for tenant %s: %d students created, %d classes created, %d row errors",
            tenant.id,
            report.created_count,
            report.classes_created_count,
            len(report.per_row_errors),
        )
        return report

    async def _import_row(
        self,
        tenant: Tenant,
        row: dict[str, str],
        password_hash: str,
        classes: dict[tuple[str, str], SchoolClass],
        report: ImportReport,
    ) -> Student:
        name = (row.get("name") or "").strip()
        email = (row.get("email") or "").strip().lower()
        phone = (row.get("phone") or "").strip()
        if not name:
            raise _RowRejected("Name is required")
        try:
            student = Student(
                email=email,
                full_name=name,
                phone=phone,
                tenant_id=tenant.id,
                board=tenant.board,
                school_name=tenant.school_name,
                password_hash=password_hash,
                must_reset_password=True,
            )
        except ValidationError as exc:
            raise _RowRejected(f"Malformed email: {email or '(empty)'}") from exc
        if await self._store.find_one(Collection.STUDENTS, {"email": student.email}):
            raise _RowRejected(f"Student with email {email} already exists")

        label = _class_label(row)
        if label and label.lower() != UNASSIGNED.lower():
            try:
                key = parse_class_label(label)
            except ValueError as exc:
                raise _RowRejected(str(exc)) from exc
            school_class = classes.get(key)
            if school_class is None:
                school_class = await self._get_or_create_class(tenant, *key, report)
                classes[key] = school_class
            student.class_id = school_class.id
            student.class_number = school_class.class_number
            student.section = school_class.section

        try:
            await self._store.insert(Collection.STUDENTS, student.model_dump())
        except DuplicateKey as exc:
            raise _RowRejected(f"Student with email {email} already exists") from exc
        return student

    async def _get_or_create_class(
        self,
        tenant: Tenant,
        class_number: str,
        section: str,
        report: ImportReport,
    ) -> SchoolClass:
        key_query = {
            "tenant_id": tenant.id,
            "class_number": class_number,
            "section": section,
        }
        doc = await self._store.find_one(Collection.CLASSES, key_query)
        if doc is not None:
            return SchoolClass.model_validate(doc)

        sibling = await self._store.find_one(
            Collection.CLASSES, {"tenant_id": tenant.id, "class_number": class_number}
        )
        school_class = SchoolClass(
            class_number=class_number,
            section=section,
            tenant_id=tenant.id,
            board=tenant.board,
            school=tenant.school_name,
            name=f"Class {class_number}-{section}",
            assigned_subjects=list(sibling.get("assigned_subjects", [])) if sibling else [],
        )
        try:
            await self._store.insert(Collection.CLASSES, school_class.model_dump())
        except DuplicateKey:
            logger.warning(
                "Class %s-%s for tenant %s was created concurrently, re-reading",
                class_number,
                section,
                tenant.id,
            )
            doc = await self._store.find_one(Collection.CLASSES, key_query)
            if doc is None:
                raise _RowRejected(
                    f"Class {class_number}-{section} could not be created"
                ) from None
            return SchoolClass.model_validate(doc)

        report.classes_created_count += 1
        return school_class
