from datetime import date, datetime, timezone

import pytest

from applications import (
    APPLICATION_CHECKLIST,
    apply_to_program,
    attach_document,
    filter_by_status,
    list_applications,
    status_counts,
    submit_application,
)
from conftest import TODAY, FailingStorage, pdf
from errors import ApplicationError, ProfileIncompleteError
from forms import UploadedFile
from gateway import Gateway
from models import Application, ApplicationStatus, Document, Program, Student


def complete_profile(gateway, session) -> None:
    gateway.update(
        Student,
        {
            "date_of_birth": date(2000, 1, 1),
            "passport_number": "X1234567",
            "country_of_origin": "US",
            "graduated_school_name": "Springfield High",
            "graduation_date": date(2018, 6, 1),
            "degree_grade": "3.75",
            "profile_completion_status": "complete",
        },
        user_id=session.user_id,
    )


def program_named(gateway, name: str) -> Program:
    return gateway.fetch_one(Program, name=name)


def test_incomplete_profile_cannot_apply(gateway, seeded, user_session) -> None:
    gateway.update(Student, {"passport_number": "X1234567", "country_of_origin": "US"}, user_id=user_session.user_id)

    with pytest.raises(ProfileIncompleteError) as exc:
        apply_to_program(gateway, user_session, program_named(gateway, "Economics").id, today=TODAY)

    assert exc.value.completion_percentage == 33
    assert gateway.fetch_all(Application) == []


def test_apply_creates_draft_with_profile_snapshot(gateway, seeded, user_session) -> None:
    complete_profile(gateway, user_session)
    program = program_named(gateway, "Data Science")

    application = apply_to_program(gateway, user_session, program.id, today=TODAY)

    assert application.status == ApplicationStatus.DRAFT.value
    assert application.submitted_at is None
    assert application.application_data["program_name"] == "Data Science"
    assert application.application_data["profile"]["graduation_date"] == "2018-06-01"
    assert application.application_data["profile"]["degree_grade"] == "3.75"


def test_apply_rejects_duplicates_and_closed_programs(gateway, seeded, user_session) -> None:
    complete_profile(gateway, user_session)
    economics = program_named(gateway, "Economics")
    apply_to_program(gateway, user_session, economics.id, today=TODAY)

    with pytest.raises(ApplicationError, match="already applied"):
        apply_to_program(gateway, user_session, economics.id, today=TODAY)

    with pytest.raises(ApplicationError, match="deadline"):
        apply_to_program(gateway, user_session, economics.id, today=date(2027, 1, 11))

    gateway.update(Program, {"is_active": False}, name="Data Science")
    with pytest.raises(ApplicationError, match="not accepting"):
        apply_to_program(gateway, user_session, program_named(gateway, "Data Science").id, today=TODAY)


def test_submit_moves_draft_to_submitted_once(gateway, seeded, user_session) -> None:
    complete_profile(gateway, user_session)
    application = apply_to_program(gateway, user_session, program_named(gateway, "Computer Science").id, today=TODAY)

    submit_application(gateway, user_session, application.id)

    saved = gateway.fetch_one(Application, id=application.id)
    assert saved.status == ApplicationStatus.SUBMITTED.value
    assert saved.submitted_at is not None
    with pytest.raises(ApplicationError, match="Only draft"):
        submit_application(gateway, user_session, application.id)


def test_other_students_applications_are_hidden(gateway, seeded, user_session) -> None:
    complete_profile(gateway, user_session)
    application = apply_to_program(gateway, user_session, program_named(gateway, "Economics").id, today=TODAY)
    intruder = gateway.sign_up("intruder@example.com", "another-horse")

    with pytest.raises(ApplicationError, match="not found"):
        submit_application(gateway, intruder, application.id)
    assert list_applications(gateway, intruder) == []


def test_attach_document_tracks_checklist(gateway, storage, seeded, user_session) -> None:
    complete_profile(gateway, user_session)
    application = apply_to_program(gateway, user_session, program_named(gateway, "Economics").id, today=TODAY)

    document = attach_document(gateway, user_session, application.id, "Statement of Purpose", pdf("sop.pdf"))

    name = f"{user_session.user_id}_{application.id}_statement_of_purpose.pdf"
    assert document.file_url == f"/app/static/uploads/documents/{name}"
    assert document.application_id == application.id
    assert storage.exists("documents", name)

    (view,) = list_applications(gateway, user_session)
    assert view.document_names == ["Statement of Purpose"]
    assert view.progress == 25
    assert view.missing_documents == [n for n in APPLICATION_CHECKLIST if n != "Statement of Purpose"]


def test_attach_document_rejects_bad_input(gateway, seeded, user_session) -> None:
    complete_profile(gateway, user_session)
    application = apply_to_program(gateway, user_session, program_named(gateway, "Economics").id, today=TODAY)

    with pytest.raises(ApplicationError):
        attach_document(gateway, user_session, application.id, "Statement of Purpose", UploadedFile("sop.exe", b"MZ", None))
    with pytest.raises(ApplicationError, match="Unknown document type"):
        attach_document(gateway, user_session, application.id, "Visa", pdf())
    assert gateway.fetch_all(Document) == []


def test_attach_document_wraps_storage_failures(session_factory, tmp_path, gateway, seeded, user_session) -> None:
    complete_profile(gateway, user_session)
    application = apply_to_program(gateway, user_session, program_named(gateway, "Economics").id, today=TODAY)
    failing = Gateway(session_factory, FailingStorage(tmp_path / "failing", "/files", fail_on=1))

    with pytest.raises(ApplicationError, match="could not be uploaded"):
        attach_document(failing, user_session, application.id, "English Test Result", pdf())


def test_listing_orders_submitted_first_and_counts_tabs(gateway, seeded, user_session) -> None:
    complete_profile(gateway, user_session)
    ids = {
        name: apply_to_program(gateway, user_session, program_named(gateway, name).id, today=TODAY).id
        for name in ("Economics", "Data Science", "Computer Science")
    }
    gateway.update(
        Application,
        {"status": "submitted", "submitted_at": datetime(2026, 5, 1, tzinfo=timezone.utc)},
        id=ids["Economics"],
    )
    gateway.update(
        Application,
        {"status": "accepted", "submitted_at": datetime(2026, 6, 1, tzinfo=timezone.utc)},
        id=ids["Data Science"],
    )

    views = list_applications(gateway, user_session)

    assert [v.program.name for v in views] == ["Data Science", "Economics", "Computer Science"]
    assert views[0].university.name == "University of Toronto"
    assert views[0].progress == 100
    assert views[2].progress == 0

    counts = status_counts(views)
    assert counts["all"] == 3
    assert (counts["draft"], counts["submitted"], counts["accepted"], counts["rejected"]) == (1, 1, 1, 0)
    assert [v.program.name for v in filter_by_status(views, "draft")] == ["Computer Science"]
    assert len(filter_by_status(views, "all")) == 3
