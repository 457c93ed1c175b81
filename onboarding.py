"""
Entry guards and persistence for the personal and academic onboarding wizards.

Submissions run their writes one gateway call at a time. The first failure
stops the sequence and is reported as a single OnboardingError; whatever was
written before it stays written.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Optional

from auth import UserSession
from completion import PERSONAL_PREREQUISITES, missing_fields
from errors import GatewayError, OnboardingError, ValidationError
from forms import (
    ACADEMIC_DOCUMENT_SLOTS,
    EXAM_DOCUMENT_SLOT,
    OTHER_DOCUMENTS_SLOT,
    PROFILE_PICTURE_SLOT,
    REGISTRY_DOCUMENT_NATIONALITY,
    REGISTRY_DOCUMENT_SLOT,
    UploadedFile,
    UploadSlot,
    academic_rules,
    as_date,
    exam_name,
    normalize_personal_values,
    personal_rules,
    validate,
)
from gateway import Gateway
from logging_config import get_logger, log_with_context
from models import (
    CompletionStatus,
    Document,
    DocumentType,
    Student,
    StudentAddress,
    StudentExamDocument,
    StudentPhone,
    User,
)
from routing import ACADEMIC_ONBOARDING, DASHBOARD, LOGIN, ONBOARDING
from wizard import WizardState

PROFILE_BUCKET = "profiles"
DOCUMENT_BUCKET = "documents"

PERSONAL_FAILURE = "An error occurred while saving your profile. Please try again."
ACADEMIC_FAILURE = "An error occurred while saving your academic information. Please try again."

logger = get_logger("onboarding")


def object_name(user_id: uuid.UUID | str, slot: UploadSlot, upload: UploadedFile, index: int | None = None) -> str:
    stem = f"{user_id}_{slot.key}" if index is None else f"{user_id}_{slot.key}_{index}"
    return f"{stem}.{upload.extension}" if upload.extension else stem


def _load_student(gateway: Gateway, session: UserSession) -> Optional[Student]:
    return gateway.fetch_one(Student, user_id=session.user_id)


# ---- entry guards -------------------------------------------------------


def guard_personal_onboarding(gateway: Gateway, session: Optional[UserSession]) -> Optional[str]:
    """Return the route to leave for, or None to stay on the personal wizard."""
    if session is None:
        return LOGIN
    try:
        student = _load_student(gateway, session)
    except GatewayError as exc:
        log_with_context(logger, "WARNING", "Personal guard could not read profile", context={"user_id": str(session.user_id)}, extra_data={"error": str(exc)})
        return None
    if student is not None and student.profile_completion_status == CompletionStatus.COMPLETE.value:
        return DASHBOARD
    return None


def guard_academic_onboarding(gateway: Gateway, session: Optional[UserSession]) -> Optional[str]:
    if session is None:
        return LOGIN
    try:
        student = _load_student(gateway, session)
    except GatewayError as exc:
        log_with_context(logger, "WARNING", "Academic guard could not read profile", context={"user_id": str(session.user_id)}, extra_data={"error": str(exc)})
        return ONBOARDING
    if missing_fields(student, PERSONAL_PREREQUISITES):
        return ONBOARDING
    return None


# ---- helpers ------------------------------------------------------------


def _upload_public(gateway: Gateway, bucket: str, name: str, upload: UploadedFile) -> str:
    gateway.upload(bucket, name, upload.data, upsert=True)
    return gateway.public_url(bucket, name)


def _document_type_ids(gateway: Gateway) -> dict[str, uuid.UUID]:
    return {row.name: row.id for row in gateway.fetch_all(DocumentType)}


def _require_type(type_ids: dict[str, uuid.UUID], name: str) -> uuid.UUID:
    if name not in type_ids:
        raise GatewayError(f"Document type '{name}' is not configured", code="missing_document_type")
    return type_ids[name]


def _insert_document(gateway: Gateway, student_id: uuid.UUID, doc_type_id: uuid.UUID, upload: UploadedFile, file_url: str) -> Document:
    return gateway.insert(
        Document,
        student_id=student_id,
        doc_type_id=doc_type_id,
        file_name=upload.name,
        file_url=file_url,
        application_id=None,
    )


def _fail(session: UserSession, step: str, message: str, exc: GatewayError) -> OnboardingError:
    log_with_context(
        logger,
        "ERROR",
        "Onboarding submission failed",
        context={"user_id": str(session.user_id), "step": step},
        extra_data={"error": str(exc), "code": exc.code},
    )
    return OnboardingError(message)


# ---- personal information ----------------------------------------------


def submit_personal_info(gateway: Gateway, session: UserSession, state: WizardState, today: date | None = None) -> str:
    values = normalize_personal_values(state.values)
    errors = validate(personal_rules(values), values, state.files, today)
    if errors:
        raise ValidationError(errors)

    user_id = session.user_id
    step = "profile_picture"
    try:
        picture = state.files.get(PROFILE_PICTURE_SLOT.key)
        if picture is not None:
            name = object_name(user_id, PROFILE_PICTURE_SLOT, picture)
            url = _upload_public(gateway, PROFILE_BUCKET, name, picture)
            gateway.update(User, {"profile_picture_url": url}, id=user_id)

        step = "student"
        student = gateway.upsert(
            Student,
            "user_id",
            user_id=user_id,
            date_of_birth=as_date(values["date_of_birth"]),
            passport_number=values["passport_number"].strip(),
            country_of_origin=values["nationality"],
            has_dual_citizenship=values["has_dual_nationality"],
            second_nationality=values["second_nationality"],
            profile_completion_status=CompletionStatus.PARTIAL.value,
        )

        step = "address"
        gateway.upsert(
            StudentAddress,
            "student_id",
            student_id=student.id,
            street=values["street"].strip(),
            city=values["city"].strip(),
            state=values["state"].strip(),
            postal_code=values["postal_code"].strip(),
            country=values["country"],
        )

        step = "phone"
        gateway.upsert(
            StudentPhone,
            "student_id",
            student_id=student.id,
            country_code=values["country_code"].strip(),
            phone_number=values["phone_number"].strip(),
            phone_type="mobile",
        )

        registry = state.files.get(REGISTRY_DOCUMENT_SLOT.key)
        if registry is not None and values["second_nationality"] == REGISTRY_DOCUMENT_NATIONALITY:
            step = "registry_document"
            doc_type_id = _require_type(_document_type_ids(gateway), REGISTRY_DOCUMENT_SLOT.document_type)
            name = object_name(user_id, REGISTRY_DOCUMENT_SLOT, registry)
            url = _upload_public(gateway, DOCUMENT_BUCKET, name, registry)
            _insert_document(gateway, student.id, doc_type_id, registry, url)
    except GatewayError as exc:
        raise _fail(session, step, PERSONAL_FAILURE, exc) from exc

    log_with_context(logger, "INFO", "Personal information saved", context={"user_id": str(user_id)})
    return ACADEMIC_ONBOARDING


# ---- academic information ----------------------------------------------


def submit_academic_info(gateway: Gateway, session: UserSession, state: WizardState, today: date | None = None) -> str:
    errors = validate(academic_rules(state.values), state.values, state.files, today)
    if errors:
        raise ValidationError(errors)

    user_id = session.user_id
    values = state.values
    step = "student"
    try:
        updated = gateway.update(
            Student,
            {
                "graduated_school_name": values["graduated_school_name"].strip(),
                "graduation_date": as_date(values["graduation_date"]),
                "degree_grade": str(values["graduation_grade"]).strip(),
                "profile_completion_status": CompletionStatus.COMPLETE.value,
            },
            user_id=user_id,
        )
        if not updated:
            raise GatewayError("Student profile not found", code="not_found")
        student = _load_student(gateway, session)

        for index, exam in enumerate(values.get("exams") or []):
            step = f"exam_{index}"
            file_url = None
            document = exam.get("document")
            if document is not None:
                name = object_name(user_id, EXAM_DOCUMENT_SLOT, document, index)
                file_url = _upload_public(gateway, DOCUMENT_BUCKET, name, document)
            gateway.insert(
                StudentExamDocument,
                student_id=student.id,
                exam_name=exam_name(exam),
                exam_score=str(exam["score"]).strip(),
                exam_date=as_date(exam["exam_date"]),
                file_url=file_url,
            )

        step = "document_types"
        type_ids = _document_type_ids(gateway)

        for slot in ACADEMIC_DOCUMENT_SLOTS:
            upload = state.files.get(slot.key)
            if upload is None:
                continue
            step = slot.key
            doc_type_id = _require_type(type_ids, slot.document_type)
            url = _upload_public(gateway, DOCUMENT_BUCKET, object_name(user_id, slot, upload), upload)
            _insert_document(gateway, student.id, doc_type_id, upload, url)

        others = state.files.get(OTHER_DOCUMENTS_SLOT.key) or []
        for index, upload in enumerate(others):
            step = f"{OTHER_DOCUMENTS_SLOT.key}_{index}"
            doc_type_id = _require_type(type_ids, OTHER_DOCUMENTS_SLOT.document_type)
            url = _upload_public(gateway, DOCUMENT_BUCKET, object_name(user_id, OTHER_DOCUMENTS_SLOT, upload, index), upload)
            _insert_document(gateway, student.id, doc_type_id, upload, url)
    except GatewayError as exc:
        raise _fail(session, step, ACADEMIC_FAILURE, exc) from exc

    log_with_context(
        logger,
        "INFO",
        "Academic information saved",
        context={"user_id": str(user_id)},
        extra_data={"exams": len(values.get("exams") or []), "additional_documents": len(others)},
    )
    return DASHBOARD


# ---- skip ---------------------------------------------------------------


def _write_status(gateway: Gateway, session: Optional[UserSession], status: CompletionStatus) -> None:
    if session is None:
        return
    try:
        gateway.update(Student, {"profile_completion_status": status.value}, user_id=session.user_id)
    except GatewayError as exc:
        log_with_context(
            logger,
            "WARNING",
            "Could not record skipped onboarding",
            context={"user_id": str(session.user_id)},
            extra_data={"status": status.value, "error": str(exc)},
        )
        return
    log_with_context(logger, "INFO", "Onboarding skipped", context={"user_id": str(session.user_id)}, extra_data={"status": status.value})


def skip_personal_onboarding(gateway: Gateway, session: Optional[UserSession]) -> str:
    _write_status(gateway, session, CompletionStatus.INCOMPLETE)
    return DASHBOARD


def skip_academic_onboarding(gateway: Gateway, session: Optional[UserSession]) -> str:
    _write_status(gateway, session, CompletionStatus.PARTIAL)
    return DASHBOARD
