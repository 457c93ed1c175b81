from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

REQUIRED_PROFILE_FIELDS: tuple[str, ...] = (
    "date_of_birth",
    "passport_number",
    "country_of_origin",
    "graduated_school_name",
    "graduation_date",
    "degree_grade",
)

# Fields the personal-info wizard must have persisted before academic onboarding opens.
PERSONAL_PREREQUISITES: tuple[str, ...] = ("date_of_birth", "passport_number", "country_of_origin")


@dataclass
class ProfileCompletion:
    is_complete: bool
    completion_percentage: int
    missing_fields: list[str] = field(default_factory=list)


def _field(student: Any, name: str, default: Any = None) -> Any:
    if isinstance(student, dict):
        return student.get(name, default)
    return getattr(student, name, default)


def _is_filled(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def missing_fields(student: Any, fields: tuple[str, ...]) -> list[str]:
    if student is None:
        return list(fields)
    return [name for name in fields if not _is_filled(_field(student, name))]


def evaluate_profile_completion(student: Any) -> ProfileCompletion:
    """Score a student record against the required profile fields.

    Accepts an ORM row, a plain mapping or None. The percentage is floored
    so that only a fully populated record reaches 100.
    """
    missing = missing_fields(student, REQUIRED_PROFILE_FIELDS)
    total = len(REQUIRED_PROFILE_FIELDS)
    filled = total - len(missing)
    percentage = filled * 100 // total
    return ProfileCompletion(is_complete=not missing, completion_percentage=percentage, missing_fields=missing)


def needs_completion_prompt(completion: ProfileCompletion, dismissed: bool = False) -> bool:
    return not completion.is_complete and not dismissed
