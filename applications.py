from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from auth import UserSession
from completion import evaluate_profile_completion
from errors import ApplicationError, GatewayError, ProfileIncompleteError
from forms import OTHER_EXTENSIONS, UploadedFile, UploadSlot
from gateway import Gateway
from logging_config import get_logger, log_with_context
from models import Application, ApplicationStatus, Document, DocumentType, Program, Student, University, utcnow

STATUS_TABS = ["all"] + [status.value for status in ApplicationStatus]

# Documents every application is expected to carry before review.
APPLICATION_CHECKLIST = (
    "Academic Transcript",
    "Statement of Purpose",
    "Recommendation Letter",
    "English Test Result",
)

APPLICATION_DOCUMENT_SLOT = UploadSlot("application", "Application document", None, OTHER_EXTENSIONS, 10)

logger = get_logger("portal")


@dataclass
class ApplicationView:
    application: Application
    program: Optional[Program]
    university: Optional[University]
    document_names: list[str] = field(default_factory=list)

    @property
    def missing_documents(self) -> list[str]:
        return [name for name in APPLICATION_CHECKLIST if name not in self.document_names]

    @property
    def progress(self) -> int:
        if self.application.status == ApplicationStatus.ACCEPTED.value:
            return 100
        present = len(APPLICATION_CHECKLIST) - len(self.missing_documents)
        return present * 100 // len(APPLICATION_CHECKLIST)


def _student_for(gateway: Gateway, session: UserSession) -> Student:
    student = gateway.fetch_one(Student, user_id=session.user_id)
    if student is None:
        raise ApplicationError("No student profile exists for this account")
    return student


def list_applications(gateway: Gateway, session: UserSession) -> list[ApplicationView]:
    student = gateway.fetch_one(Student, user_id=session.user_id)
    if student is None:
        return []
    applications = gateway.fetch_all(Application, order_by="submitted_at", descending=True, student_id=student.id)
    # Drafts have no submission time; keep them after submitted applications on every backend
    applications.sort(key=lambda app: app.submitted_at is None)

    programs = {p.id: p for p in gateway.fetch_in(Program, "id", list({a.program_id for a in applications}))}
    universities = {
        u.id: u for u in gateway.fetch_in(University, "id", list({p.university_id for p in programs.values()}))
    }
    type_names = {t.id: t.name for t in gateway.fetch_all(DocumentType)}
    documents = gateway.fetch_in(Document, "application_id", [a.id for a in applications])

    names_by_application: dict[uuid.UUID, list[str]] = {}
    for doc in documents:
        names_by_application.setdefault(doc.application_id, []).append(type_names.get(doc.doc_type_id, "Other"))

    views = []
    for app in applications:
        program = programs.get(app.program_id)
        university = universities.get(program.university_id) if program else None
        views.append(ApplicationView(app, program, university, names_by_application.get(app.id, [])))
    return views


def filter_by_status(views: list[ApplicationView], tab: str) -> list[ApplicationView]:
    if tab == "all":
        return list(views)
    return [view for view in views if view.application.status == tab]


def status_counts(views: list[ApplicationView]) -> dict[str, int]:
    counts = {tab: 0 for tab in STATUS_TABS}
    counts["all"] = len(views)
    for view in views:
        counts[view.application.status] = counts.get(view.application.status, 0) + 1
    return counts


def _profile_snapshot(student: Student) -> dict[str, Any]:
    return {
        "date_of_birth": student.date_of_birth.isoformat() if student.date_of_birth else None,
        "passport_number": student.passport_number,
        "country_of_origin": student.country_of_origin,
        "second_nationality": student.second_nationality,
        "graduated_school_name": student.graduated_school_name,
        "graduation_date": student.graduation_date.isoformat() if student.graduation_date else None,
        "degree_grade": student.degree_grade,
        "average_grade": student.average_grade,
    }


def apply_to_program(gateway: Gateway, session: UserSession, program_id: uuid.UUID, today: date | None = None) -> Application:
    """Open a draft application for a program.

    Raises ProfileIncompleteError while onboarding is unfinished so the page
    can show the completion prompt instead.
    """
    student = _student_for(gateway, session)
    completion = evaluate_profile_completion(student)
    if not completion.is_complete:
        raise ProfileIncompleteError(completion.completion_percentage)

    program = gateway.fetch_one(Program, id=program_id)
    if program is None or not program.is_active:
        raise ApplicationError("This program is not accepting applications")
    today = today or date.today()
    if program.application_deadline and program.application_deadline < today:
        raise ApplicationError(f"The application deadline for {program.name} has passed")
    if gateway.fetch_all(Application, student_id=student.id, program_id=program.id, limit=1):
        raise ApplicationError(f"You have already applied to {program.name}")

    application = gateway.insert(
        Application,
        student_id=student.id,
        program_id=program.id,
        status=ApplicationStatus.DRAFT.value,
        application_data={"program_name": program.name, "profile": _profile_snapshot(student)},
    )
    log_with_context(
        logger,
        "INFO",
        "Application opened",
        context={"user_id": str(session.user_id)},
        extra_data={"application_id": str(application.id), "program_id": str(program.id)},
    )
    return application


def _owned_application(gateway: Gateway, session: UserSession, application_id: uuid.UUID) -> tuple[Student, Application]:
    student = _student_for(gateway, session)
    application = gateway.fetch_one(Application, id=application_id)
    if application is None or application.student_id != student.id:
        raise ApplicationError("Application not found")
    return student, application


def submit_application(gateway: Gateway, session: UserSession, application_id: uuid.UUID) -> None:
    _, application = _owned_application(gateway, session, application_id)
    if application.status != ApplicationStatus.DRAFT.value:
        raise ApplicationError("Only draft applications can be submitted")
    gateway.update(
        Application,
        {"status": ApplicationStatus.SUBMITTED.value, "submitted_at": utcnow()},
        id=application.id,
    )
    log_with_context(logger, "INFO", "Application submitted", context={"user_id": str(session.user_id)}, extra_data={"application_id": str(application.id)})


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", value.lower()).strip("_")


def attach_document(
    gateway: Gateway,
    session: UserSession,
    application_id: uuid.UUID,
    document_type: str,
    upload: UploadedFile,
) -> Document:
    problem = APPLICATION_DOCUMENT_SLOT.check(upload)
    if problem:
        raise ApplicationError(problem)
    student, application = _owned_application(gateway, session, application_id)
    doc_type = gateway.fetch_one(DocumentType, name=document_type)
    if doc_type is None:
        raise ApplicationError(f"Unknown document type '{document_type}'")

    name = f"{session.user_id}_{application.id}_{_slug(document_type)}.{upload.extension}"
    try:
        gateway.upload("documents", name, upload.data, upsert=True)
        return gateway.insert(
            Document,
            student_id=student.id,
            doc_type_id=doc_type.id,
            application_id=application.id,
            file_name=upload.name,
            file_url=gateway.public_url("documents", name),
        )
    except GatewayError as exc:
        raise ApplicationError("The document could not be uploaded. Please try again.") from exc
