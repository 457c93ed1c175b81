from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from auth import UserSession
from completion import ProfileCompletion, evaluate_profile_completion
from countries import COUNTRY_NAMES
from errors import GatewayError, ValidationError
from gateway import Gateway
from logging_config import get_logger, log_with_context
from models import Document, DocumentType, Student, StudentAddress, StudentExamDocument, StudentPhone, User

LANGUAGES = {"en": "English", "tr": "Turkish", "ar": "Arabic"}
STUDY_LEVELS = {
    "high_school": "High School",
    "bachelor": "Bachelor's Degree",
    "master": "Master's Degree",
    "doctorate": "Doctorate",
}

logger = get_logger("portal")


@dataclass
class ProfileView:
    user: User
    student: Optional[Student]
    address: Optional[StudentAddress]
    phone: Optional[StudentPhone]
    exams: list[StudentExamDocument] = field(default_factory=list)
    documents: list[tuple[Document, str]] = field(default_factory=list)
    completion: ProfileCompletion = field(default_factory=lambda: evaluate_profile_completion(None))

    @property
    def display_name(self) -> str:
        name = " ".join(part for part in [self.user.first_name, self.user.last_name] if part)
        return name or self.user.email


def load_profile(gateway: Gateway, session: UserSession) -> ProfileView:
    user = gateway.fetch_one(User, id=session.user_id)
    if user is None:
        raise GatewayError("Account not found", code="not_found")
    student = gateway.fetch_one(Student, user_id=session.user_id)
    if student is None:
        return ProfileView(user=user, student=None, address=None, phone=None)

    type_names = {t.id: t.name for t in gateway.fetch_all(DocumentType)}
    documents = gateway.fetch_all(Document, order_by="uploaded_at", student_id=student.id)
    return ProfileView(
        user=user,
        student=student,
        address=gateway.fetch_one(StudentAddress, student_id=student.id),
        phone=gateway.fetch_one(StudentPhone, student_id=student.id),
        exams=gateway.fetch_all(StudentExamDocument, order_by="exam_date", descending=True, student_id=student.id),
        documents=[(doc, type_names.get(doc.doc_type_id, "Other")) for doc in documents],
        completion=evaluate_profile_completion(student),
    )


def _optional_country(value: Any, name: str, errors: dict[str, str]) -> Optional[str]:
    code = str(value or "").strip().upper()
    if not code:
        return None
    if code not in COUNTRY_NAMES:
        errors[name] = "Select a country from the list"
    return code


def save_profile(gateway: Gateway, session: UserSession, values: dict[str, Any]) -> None:
    """Persist the editable profile fields from the dashboard profile page."""
    errors: dict[str, str] = {}
    language = values.get("language_preference") or "en"
    if language not in LANGUAGES:
        errors["language_preference"] = "Unsupported language"
    study_level = values.get("current_study_level") or None
    if study_level is not None and study_level not in STUDY_LEVELS:
        errors["current_study_level"] = "Unknown study level"

    average_grade = values.get("average_grade")
    if average_grade in ("", None):
        average_grade = None
    else:
        try:
            average_grade = float(average_grade)
        except (TypeError, ValueError):
            errors["average_grade"] = "Average grade must be a number"
        else:
            if average_grade < 0:
                errors["average_grade"] = "Average grade cannot be negative"

    country_of_origin = _optional_country(values.get("country_of_origin"), "country_of_origin", errors)
    current_country = _optional_country(values.get("current_country"), "current_country", errors)
    dual = bool(values.get("has_dual_citizenship"))
    second = _optional_country(values.get("second_nationality"), "second_nationality", errors) if dual else None
    if dual and not second:
        errors["second_nationality"] = "Second nationality is required when dual nationality is selected"
    if errors:
        raise ValidationError(errors)

    gateway.update(
        User,
        {
            "first_name": (values.get("first_name") or "").strip() or None,
            "last_name": (values.get("last_name") or "").strip() or None,
            "language_preference": language,
        },
        id=session.user_id,
    )
    gateway.update(
        Student,
        {
            "current_study_level": study_level,
            "country_of_origin": country_of_origin,
            "current_country": current_country,
            "has_dual_citizenship": dual,
            "second_nationality": second,
            "average_grade": average_grade,
        },
        user_id=session.user_id,
    )
    log_with_context(logger, "INFO", "Profile updated", context={"user_id": str(session.user_id)})
