"""
Declarative form rules and upload constraints for the onboarding wizards.

Rules are evaluated against a whole form snapshot (values, files and the
reference date) so cross-field requirements live next to the plain ones
instead of being scattered through page code.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import PurePath
from typing import Any, Callable, Optional

from countries import COUNTRY_NAMES
from models import Student, StudentAddress, StudentExamDocument, StudentPhone

IMAGE_EXTENSIONS = ("jpg", "jpeg", "png")
DOCUMENT_EXTENSIONS = ("pdf", "jpg", "jpeg", "png")
OTHER_EXTENSIONS = ("pdf", "jpg", "jpeg", "png", "doc", "docx")

EXAM_TYPES = ["SAT", "TOEFL", "IELTS", "GRE", "GMAT", "ACT", "YDS", "YÖKDİL", "Other"]

# A second nationality with this code requires the civil registry extract.
REGISTRY_DOCUMENT_NATIONALITY = "TR"
REGISTRY_DOCUMENT_TYPE = "Nüfus Kayıt Örneği"

DOB_FLOOR = date(1900, 1, 1)
GRADUATION_FLOOR = date(1950, 1, 1)
EXAM_FLOOR = date(2000, 1, 1)
MIN_AGE = 16
MAX_AGE = 100

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
DIAL_CODE_PATTERN = re.compile(r"^\+\d{1,4}$")
PHONE_PATTERN = re.compile(r"^[\d\s\-()]{4,20}$")


@dataclass(frozen=True)
class UploadedFile:
    name: str
    data: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        return PurePath(self.name).suffix.lstrip(".").lower()

    @classmethod
    def from_upload(cls, upload: Any) -> Optional["UploadedFile"]:
        """Adapt a Streamlit ``UploadedFile`` (or None) to the portal's own type."""
        if upload is None:
            return None
        return cls(name=upload.name, data=upload.getvalue(), content_type=getattr(upload, "type", None))


@dataclass(frozen=True)
class UploadSlot:
    key: str
    label: str
    document_type: Optional[str]
    accept: tuple[str, ...]
    max_mb: int
    required: bool = False
    multiple: bool = False

    @property
    def max_bytes(self) -> int:
        return self.max_mb * 1024 * 1024

    def check(self, upload: UploadedFile) -> Optional[str]:
        if upload.extension not in self.accept:
            allowed = ", ".join(f".{ext}" for ext in self.accept)
            return f"{self.label} must be one of: {allowed}"
        if upload.size > self.max_bytes:
            return f"{self.label} must be {self.max_mb} MB or smaller"
        if upload.size == 0:
            return f"{self.label} is empty"
        return None


PROFILE_PICTURE_SLOT = UploadSlot("profile", "Profile picture", None, IMAGE_EXTENSIONS, 5)
REGISTRY_DOCUMENT_SLOT = UploadSlot("nufus", REGISTRY_DOCUMENT_TYPE, REGISTRY_DOCUMENT_TYPE, DOCUMENT_EXTENSIONS, 10)
EXAM_DOCUMENT_SLOT = UploadSlot("exam", "Exam score report", None, DOCUMENT_EXTENSIONS, 10)
PASSPORT_PHOTO_SLOT = UploadSlot("passport_photo", "Passport Photo", "Passport Photo", IMAGE_EXTENSIONS, 10, required=True)
TRANSCRIPT_SLOT = UploadSlot("transcript", "Academic Transcript", "Academic Transcript", DOCUMENT_EXTENSIONS, 10, required=True)
DIPLOMA_SLOT = UploadSlot("diploma", "Diploma/Certificate", "Diploma/Certificate", DOCUMENT_EXTENSIONS, 10, required=True)
DEGREE_GRADE_SLOT = UploadSlot("degree_grade", "Degree Grade Certificate", "Degree Grade Certificate", DOCUMENT_EXTENSIONS, 10)
OTHER_DOCUMENTS_SLOT = UploadSlot("additional", "Additional Documents", "Other", OTHER_EXTENSIONS, 10, multiple=True)

ACADEMIC_DOCUMENT_SLOTS = (PASSPORT_PHOTO_SLOT, TRANSCRIPT_SLOT, DIPLOMA_SLOT, DEGREE_GRADE_SLOT)


@dataclass(frozen=True)
class FormSnapshot:
    values: dict[str, Any]
    files: dict[str, Any]
    today: date

    def value(self, name: str) -> Any:
        return self.values.get(name)

    def text(self, name: str) -> str:
        return str(self.values.get(name) or "").strip()


@dataclass(frozen=True)
class FieldRule:
    field: str
    message: str
    check: Callable[[FormSnapshot], bool]
    step: int
    when: Optional[Callable[[FormSnapshot], bool]] = None


def as_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        return None


def age_on(birth: date, today: date) -> int:
    years = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        years -= 1
    return years


def validate(rules: list[FieldRule], values: dict[str, Any], files: dict[str, Any] | None = None, today: date | None = None) -> dict[str, str]:
    snapshot = FormSnapshot(values=values, files=files or {}, today=today or date.today())
    errors: dict[str, str] = {}
    for rule in rules:
        if rule.field in errors:
            continue
        if rule.when is not None and not rule.when(snapshot):
            continue
        if not rule.check(snapshot):
            errors[rule.field] = rule.message
    return errors


def first_error_step(rules: list[FieldRule], errors: dict[str, str]) -> Optional[int]:
    steps = [rule.step for rule in rules if rule.field in errors]
    return min(steps) if steps else None


# ---- rule builders ------------------------------------------------------


def _required(name: str, message: str, step: int) -> FieldRule:
    return FieldRule(name, message, lambda s: bool(s.text(name)), step)


def _required_date(name: str, message: str, step: int) -> FieldRule:
    return FieldRule(name, message, lambda s: as_date(s.value(name)) is not None, step)


def _date_not_future(name: str, message: str, step: int) -> FieldRule:
    return FieldRule(name, message, lambda s: as_date(s.value(name)) <= s.today, step, when=lambda s: as_date(s.value(name)) is not None)


def _date_not_before(name: str, floor: date, message: str, step: int) -> FieldRule:
    return FieldRule(name, message, lambda s: as_date(s.value(name)) >= floor, step, when=lambda s: as_date(s.value(name)) is not None)


def _pattern(name: str, pattern: re.Pattern, message: str, step: int) -> FieldRule:
    return FieldRule(name, message, lambda s: bool(pattern.match(s.text(name))), step, when=lambda s: bool(s.text(name)))


def _max_length(name: str, column: Any, label: str, step: int) -> FieldRule:
    limit = column.type.length
    return FieldRule(name, f"{label} must be at most {limit} characters", lambda s: len(s.text(name)) <= limit, step)


def _file_present(slot: UploadSlot, message: str, step: int, when: Optional[Callable[[FormSnapshot], bool]] = None) -> FieldRule:
    return FieldRule(slot.key, message, lambda s: s.files.get(slot.key) is not None, step, when=when)


def _file_constraints(slot: UploadSlot, step: int) -> FieldRule:
    def check(snapshot: FormSnapshot) -> bool:
        return _slot_error(slot, snapshot.files.get(slot.key)) is None

    return FieldRule(slot.key, f"{slot.label} must be a {'/'.join(slot.accept)} file of at most {slot.max_mb} MB", check, step)


def _slot_error(slot: UploadSlot, upload: Any) -> Optional[str]:
    if upload is None:
        return None
    uploads = upload if isinstance(upload, list) else [upload]
    for item in uploads:
        problem = slot.check(item)
        if problem:
            return problem
    return None


def _is_dual(snapshot: FormSnapshot) -> bool:
    return bool(snapshot.value("has_dual_nationality"))


def _needs_registry_document(snapshot: FormSnapshot) -> bool:
    return _is_dual(snapshot) and snapshot.text("second_nationality").upper() == REGISTRY_DOCUMENT_NATIONALITY


def _age_in_range(snapshot: FormSnapshot) -> bool:
    age = age_on(as_date(snapshot.value("date_of_birth")), snapshot.today)
    return MIN_AGE <= age <= MAX_AGE


PERSONAL_RULES: list[FieldRule] = [
    _required_date("date_of_birth", "Date of birth is required", 1),
    _date_not_future("date_of_birth", "Date of birth cannot be in the future", 1),
    _date_not_before("date_of_birth", DOB_FLOOR, "Date of birth cannot be before 1900-01-01", 1),
    FieldRule(
        "date_of_birth",
        f"Age must be between {MIN_AGE} and {MAX_AGE} years",
        _age_in_range,
        1,
        when=lambda s: as_date(s.value("date_of_birth")) is not None,
    ),
    _required("nationality", "Nationality is required", 1),
    FieldRule("nationality", "Select a nationality from the list", lambda s: s.text("nationality").upper() in COUNTRY_NAMES, 1),
    FieldRule(
        "second_nationality",
        "Second nationality is required when dual nationality is selected",
        lambda s: bool(s.text("second_nationality")),
        1,
        when=_is_dual,
    ),
    FieldRule(
        "second_nationality",
        "Second nationality must differ from your nationality",
        lambda s: s.text("second_nationality").upper() != s.text("nationality").upper(),
        1,
        when=_is_dual,
    ),
    _file_present(
        REGISTRY_DOCUMENT_SLOT,
        f"{REGISTRY_DOCUMENT_TYPE} document is required for Turkish nationality",
        1,
        when=_needs_registry_document,
    ),
    _file_constraints(REGISTRY_DOCUMENT_SLOT, 1),
    _file_constraints(PROFILE_PICTURE_SLOT, 1),
    _required("email", "Email is required", 2),
    _pattern("email", EMAIL_PATTERN, "Invalid email address", 2),
    _required("country_code", "Country code is required", 2),
    _pattern("country_code", DIAL_CODE_PATTERN, "Country code must look like +90", 2),
    _required("phone_number", "Phone number is required", 2),
    _pattern("phone_number", PHONE_PATTERN, "Phone number may only contain digits, spaces, dashes and parentheses", 2),
    _max_length("phone_number", StudentPhone.__table__.c.phone_number, "Phone number", 2),
    _required("passport_number", "Passport number is required", 2),
    _max_length("passport_number", Student.__table__.c.passport_number, "Passport number", 2),
    _required("street", "Street address is required", 3),
    _max_length("street", StudentAddress.__table__.c.street, "Street address", 3),
    _required("city", "City is required", 3),
    _max_length("city", StudentAddress.__table__.c.city, "City", 3),
    _required("state", "State/Province is required", 3),
    _max_length("state", StudentAddress.__table__.c.state, "State/Province", 3),
    _required("postal_code", "Postal code is required", 3),
    _max_length("postal_code", StudentAddress.__table__.c.postal_code, "Postal code", 3),
    _required("country", "Country is required", 3),
]


ACADEMIC_RULES: list[FieldRule] = [
    _required("graduated_school_name", "School name is required", 1),
    _max_length("graduated_school_name", Student.__table__.c.graduated_school_name, "School name", 1),
    _required_date("graduation_date", "Graduation date is required", 1),
    _date_not_future("graduation_date", "Graduation date cannot be in the future", 1),
    _date_not_before("graduation_date", GRADUATION_FLOOR, "Graduation date cannot be before 1950-01-01", 1),
    _required("graduation_grade", "Graduation grade is required", 1),
    _max_length("graduation_grade", Student.__table__.c.degree_grade, "Graduation grade", 1),
    _file_present(PASSPORT_PHOTO_SLOT, "Passport Photo is required", 3),
    _file_present(TRANSCRIPT_SLOT, "Academic Transcript is required", 3),
    _file_present(DIPLOMA_SLOT, "Diploma/Certificate is required", 3),
    *(_file_constraints(slot, 3) for slot in ACADEMIC_DOCUMENT_SLOTS),
    _file_constraints(OTHER_DOCUMENTS_SLOT, 3),
]


EXAM_NAME_LENGTH = StudentExamDocument.__table__.c.exam_name.type.length
EXAM_SCORE_LENGTH = StudentExamDocument.__table__.c.exam_score.type.length


def exam_name(exam: dict[str, Any]) -> str:
    exam_type = str(exam.get("exam_type") or "").strip()
    if exam_type == "Other":
        return str(exam.get("custom_name") or "").strip()
    return exam_type


def _exam_rules(index: int) -> list[FieldRule]:
    prefix = f"exams.{index}"

    def exam(snapshot: FormSnapshot) -> dict[str, Any]:
        exams = snapshot.value("exams") or []
        return exams[index] if index < len(exams) else {}

    def exam_date(snapshot: FormSnapshot) -> Optional[date]:
        return as_date(exam(snapshot).get("exam_date"))

    return [
        FieldRule(f"{prefix}.exam_type", "Choose an exam type", lambda s: exam(s).get("exam_type") in EXAM_TYPES, 2),
        FieldRule(
            f"{prefix}.exam_type",
            "Exam name is required",
            lambda s: bool(exam_name(exam(s))),
            2,
            when=lambda s: exam(s).get("exam_type") == "Other",
        ),
        FieldRule(
            f"{prefix}.exam_type",
            f"Exam name must be at most {EXAM_NAME_LENGTH} characters",
            lambda s: len(exam_name(exam(s))) <= EXAM_NAME_LENGTH,
            2,
        ),
        FieldRule(f"{prefix}.score", "Score is required", lambda s: bool(str(exam(s).get("score") or "").strip()), 2),
        FieldRule(
            f"{prefix}.score",
            f"Score must be at most {EXAM_SCORE_LENGTH} characters",
            lambda s: len(str(exam(s).get("score") or "").strip()) <= EXAM_SCORE_LENGTH,
            2,
        ),
        FieldRule(f"{prefix}.exam_date", "Exam date is required", lambda s: exam_date(s) is not None, 2),
        FieldRule(
            f"{prefix}.exam_date",
            "Exam date cannot be in the future",
            lambda s: exam_date(s) <= s.today,
            2,
            when=lambda s: exam_date(s) is not None,
        ),
        FieldRule(
            f"{prefix}.exam_date",
            "Exam date cannot be before 2000-01-01",
            lambda s: exam_date(s) >= EXAM_FLOOR,
            2,
            when=lambda s: exam_date(s) is not None,
        ),
        FieldRule(
            f"{prefix}.document",
            f"{EXAM_DOCUMENT_SLOT.label} must be a {'/'.join(EXAM_DOCUMENT_SLOT.accept)} file of at most {EXAM_DOCUMENT_SLOT.max_mb} MB",
            lambda s: _slot_error(EXAM_DOCUMENT_SLOT, exam(s).get("document")) is None,
            2,
        ),
    ]


def academic_rules(values: dict[str, Any]) -> list[FieldRule]:
    rules = list(ACADEMIC_RULES)
    for index in range(len(values.get("exams") or [])):
        rules.extend(_exam_rules(index))
    return rules


def personal_rules(values: dict[str, Any]) -> list[FieldRule]:
    return list(PERSONAL_RULES)


def normalize_personal_values(values: dict[str, Any]) -> dict[str, Any]:
    """Drop the second nationality when the dual-nationality flag is off."""
    normalized = dict(values)
    normalized["has_dual_nationality"] = bool(values.get("has_dual_nationality"))
    if not normalized["has_dual_nationality"]:
        normalized["second_nationality"] = None
    for key in ("nationality", "second_nationality", "country"):
        if normalized.get(key):
            normalized[key] = str(normalized[key]).strip().upper()
    return normalized
