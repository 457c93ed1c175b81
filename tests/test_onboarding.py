import uuid
from datetime import date, datetime, timezone

import pytest

from auth import UserSession
from conftest import (
    TODAY,
    FailingStorage,
    academic_files,
    academic_state,
    academic_values,
    pdf,
    personal_state,
    personal_values,
    png,
)
from errors import GatewayError, OnboardingError, ValidationError
from forms import PASSPORT_PHOTO_SLOT
from gateway import Gateway
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
from onboarding import (
    ACADEMIC_FAILURE,
    PERSONAL_FAILURE,
    guard_academic_onboarding,
    guard_personal_onboarding,
    object_name,
    skip_academic_onboarding,
    skip_personal_onboarding,
    submit_academic_info,
    submit_personal_info,
)
from routing import ACADEMIC_ONBOARDING, DASHBOARD, LOGIN, ONBOARDING


class BrokenReadGateway(Gateway):
    def fetch_one(self, model, **filters):
        raise GatewayError("database unavailable", code="database")


def student_of(gateway, session) -> Student:
    return gateway.fetch_one(Student, user_id=session.user_id)


def document_types_of(gateway, student) -> list[str]:
    names = {t.id: t.name for t in gateway.fetch_all(DocumentType)}
    return sorted(names[d.doc_type_id] for d in gateway.fetch_all(Document, student_id=student.id))


def complete_personal(gateway, session) -> None:
    submit_personal_info(gateway, session, personal_state(), today=TODAY)


def test_object_name_uses_user_slot_and_extension() -> None:
    upload = png("Passport Scan.PNG")

    assert object_name("u1", PASSPORT_PHOTO_SLOT, upload) == "u1_passport_photo.png"
    assert object_name("u1", PASSPORT_PHOTO_SLOT, upload, index=2) == "u1_passport_photo_2.png"


def test_personal_submit_writes_profile_and_moves_to_academic(gateway, seeded, user_session) -> None:
    route = submit_personal_info(gateway, user_session, personal_state(), today=TODAY)

    assert route == ACADEMIC_ONBOARDING
    student = student_of(gateway, user_session)
    assert student.profile_completion_status == CompletionStatus.PARTIAL.value
    assert student.date_of_birth == date(2000, 1, 1)
    assert student.country_of_origin == "US"
    assert student.has_dual_citizenship is False
    assert student.second_nationality is None
    address = gateway.fetch_one(StudentAddress, student_id=student.id)
    assert (address.city, address.country) == ("Boston", "US")
    phone = gateway.fetch_one(StudentPhone, student_id=student.id)
    assert (phone.country_code, phone.phone_number, phone.phone_type) == ("+1", "555 123 4567", "mobile")
    assert gateway.fetch_all(Document, student_id=student.id) == []


def test_personal_resubmit_updates_existing_rows(gateway, seeded, user_session) -> None:
    complete_personal(gateway, user_session)
    submit_personal_info(gateway, user_session, personal_state(personal_values(city="Cambridge")), today=TODAY)

    student = student_of(gateway, user_session)
    assert len(gateway.fetch_all(Student, user_id=user_session.user_id)) == 1
    assert len(gateway.fetch_all(StudentAddress, student_id=student.id)) == 1
    assert gateway.fetch_one(StudentAddress, student_id=student.id).city == "Cambridge"


def test_turkish_dual_national_uploads_registry_document_and_picture(gateway, storage, seeded, user_session) -> None:
    values = personal_values(has_dual_nationality=True, second_nationality="TR")
    files = {"nufus": pdf("nufus.pdf"), "profile": png("me.png")}

    submit_personal_info(gateway, user_session, personal_state(values, files), today=TODAY)

    uid = user_session.user_id
    user = gateway.fetch_one(User, id=uid)
    assert user.profile_picture_url == f"/app/static/uploads/profiles/{uid}_profile.png"
    assert storage.exists("profiles", f"{uid}_profile.png")
    assert storage.exists("documents", f"{uid}_nufus.pdf")

    student = student_of(gateway, user_session)
    assert student.has_dual_citizenship is True
    assert student.second_nationality == "TR"
    docs = gateway.fetch_all(Document, student_id=student.id)
    assert [d.file_name for d in docs] == ["nufus.pdf"]
    assert docs[0].file_url == f"/app/static/uploads/documents/{uid}_nufus.pdf"
    assert docs[0].application_id is None
    assert document_types_of(gateway, student) == ["Nüfus Kayıt Örneği"]


def test_second_nationality_is_dropped_when_not_dual(gateway, seeded, user_session) -> None:
    values = personal_values(has_dual_nationality=False, second_nationality="TR")

    submit_personal_info(gateway, user_session, personal_state(values, {"nufus": pdf()}), today=TODAY)

    student = student_of(gateway, user_session)
    assert student.second_nationality is None
    assert gateway.fetch_all(Document, student_id=student.id) == []


def test_invalid_personal_form_writes_nothing(gateway, seeded, user_session) -> None:
    state = personal_state(personal_values(date_of_birth=date(2012, 1, 1)))

    with pytest.raises(ValidationError) as exc:
        submit_personal_info(gateway, user_session, state, today=TODAY)

    assert "date_of_birth" in exc.value.errors
    assert student_of(gateway, user_session).profile_completion_status == CompletionStatus.INCOMPLETE.value


def test_picture_upload_failure_stops_personal_submit(session_factory, tmp_path, seeded, user_session) -> None:
    gateway = Gateway(session_factory, FailingStorage(tmp_path, "/files", fail_on=1))

    with pytest.raises(OnboardingError) as exc:
        submit_personal_info(gateway, user_session, personal_state(files={"profile": png()}), today=TODAY)

    assert str(exc.value) == PERSONAL_FAILURE
    assert student_of(gateway, user_session).profile_completion_status == CompletionStatus.INCOMPLETE.value


def test_missing_registry_type_fails_after_profile_rows(gateway, user_session) -> None:
    values = personal_values(has_dual_nationality=True, second_nationality="TR")

    with pytest.raises(OnboardingError):
        submit_personal_info(gateway, user_session, personal_state(values, {"nufus": pdf()}), today=TODAY)

    # Earlier writes stay in place
    student = student_of(gateway, user_session)
    assert student.profile_completion_status == CompletionStatus.PARTIAL.value
    assert gateway.fetch_one(StudentPhone, student_id=student.id) is not None


def test_academic_submit_completes_profile(gateway, storage, seeded, user_session) -> None:
    complete_personal(gateway, user_session)
    exams = [
        {"exam_type": "IELTS", "custom_name": "", "score": "7.5", "exam_date": date(2024, 3, 1), "document": pdf("ielts.pdf")},
        {"exam_type": "Other", "custom_name": "Goethe B2", "score": "Pass", "exam_date": date(2023, 9, 1), "document": None},
    ]
    files = academic_files(degree_grade=pdf("grade.pdf"), additional=[pdf("cv.pdf"), pdf("letter.pdf")])

    route = submit_academic_info(gateway, user_session, academic_state(academic_values(exams=exams), files), today=TODAY)

    assert route == DASHBOARD
    uid = user_session.user_id
    student = student_of(gateway, user_session)
    assert student.profile_completion_status == CompletionStatus.COMPLETE.value
    assert student.graduated_school_name == "Springfield High"
    assert student.degree_grade == "3.75"

    saved_exams = gateway.fetch_all(StudentExamDocument, order_by="exam_date", student_id=student.id)
    assert [(e.exam_name, e.exam_score) for e in saved_exams] == [("Goethe B2", "Pass"), ("IELTS", "7.5")]
    assert saved_exams[1].file_url == f"/app/static/uploads/documents/{uid}_exam_0.pdf"
    assert saved_exams[0].file_url is None

    assert document_types_of(gateway, student) == [
        "Academic Transcript",
        "Degree Grade Certificate",
        "Diploma/Certificate",
        "Other",
        "Other",
        "Passport Photo",
    ]
    assert storage.exists("documents", f"{uid}_passport_photo.png")
    assert storage.exists("documents", f"{uid}_additional_1.pdf")


def test_academic_failure_on_second_document_keeps_earlier_writes(session_factory, tmp_path, seeded, gateway, user_session) -> None:
    complete_personal(gateway, user_session)
    failing = Gateway(session_factory, FailingStorage(tmp_path / "failing", "/files", fail_on=2))

    with pytest.raises(OnboardingError) as exc:
        submit_academic_info(failing, user_session, academic_state(), today=TODAY)

    assert str(exc.value) == ACADEMIC_FAILURE
    student = student_of(gateway, user_session)
    assert student.profile_completion_status == CompletionStatus.COMPLETE.value
    assert document_types_of(gateway, student) == ["Passport Photo"]


def test_academic_submit_without_student_row_fails(gateway, seeded) -> None:
    user = gateway.insert(User, email="orphan@example.com", password_hash="x")
    session = UserSession(user.id, user.email, "token", datetime.now(timezone.utc))

    with pytest.raises(OnboardingError):
        submit_academic_info(gateway, session, academic_state(), today=TODAY)


def test_invalid_academic_form_raises_validation_error(gateway, seeded, user_session) -> None:
    state = academic_state(files={"additional": []})

    with pytest.raises(ValidationError) as exc:
        submit_academic_info(gateway, user_session, state, today=TODAY)

    assert set(exc.value.errors) == {"passport_photo", "transcript", "diploma"}


def test_personal_guard(gateway, seeded, user_session) -> None:
    assert guard_personal_onboarding(gateway, None) == LOGIN
    assert guard_personal_onboarding(gateway, user_session) is None

    gateway.update(Student, {"profile_completion_status": "complete"}, user_id=user_session.user_id)
    assert guard_personal_onboarding(gateway, user_session) == DASHBOARD


def test_academic_guard_requires_personal_information(gateway, seeded, user_session) -> None:
    assert guard_academic_onboarding(gateway, None) == LOGIN
    assert guard_academic_onboarding(gateway, user_session) == ONBOARDING

    complete_personal(gateway, user_session)
    assert guard_academic_onboarding(gateway, user_session) is None


def test_guards_when_profile_cannot_be_read(session_factory, storage, user_session) -> None:
    broken = BrokenReadGateway(session_factory, storage)

    assert guard_personal_onboarding(broken, user_session) is None
    assert guard_academic_onboarding(broken, user_session) == ONBOARDING


def test_skips_record_status_and_go_to_dashboard(gateway, user_session) -> None:
    assert skip_academic_onboarding(gateway, user_session) == DASHBOARD
    assert student_of(gateway, user_session).profile_completion_status == CompletionStatus.PARTIAL.value

    assert skip_personal_onboarding(gateway, user_session) == DASHBOARD
    assert student_of(gateway, user_session).profile_completion_status == CompletionStatus.INCOMPLETE.value


def test_skip_without_session_still_leaves(gateway) -> None:
    assert skip_personal_onboarding(gateway, None) == DASHBOARD
    assert skip_academic_onboarding(gateway, None) == DASHBOARD


def test_skip_survives_write_failure(session_factory, storage) -> None:
    class BrokenWriteGateway(Gateway):
        def update(self, model, values, **filters):
            raise GatewayError("database unavailable", code="database")

    session = UserSession(uuid.uuid4(), "ghost@example.com", "token", datetime.now(timezone.utc))

    assert skip_personal_onboarding(BrokenWriteGateway(session_factory, storage), session) == DASHBOARD


def test_personal_submit_creates_missing_student_row(gateway, seeded) -> None:
    user = gateway.insert(User, email="fresh@example.com", password_hash="x")
    session = UserSession(user.id, user.email, "token", datetime.now(timezone.utc))
    assert gateway.fetch_one(Student, user_id=user.id) is None

    route = submit_personal_info(gateway, session, personal_state(personal_values(email="fresh@example.com")), today=TODAY)

    assert route == ACADEMIC_ONBOARDING
    student = student_of(gateway, session)
    assert student.profile_completion_status == CompletionStatus.PARTIAL.value
    assert gateway.fetch_one(StudentAddress, student_id=student.id) is not None
    assert gateway.fetch_one(StudentPhone, student_id=student.id) is not None
    assert gateway.fetch_all(Document, student_id=student.id) == []


def test_skip_only_changes_the_status(gateway, seeded, user_session) -> None:
    complete_personal(gateway, user_session)

    skip_personal_onboarding(gateway, user_session)

    student = student_of(gateway, user_session)
    assert student.profile_completion_status == CompletionStatus.INCOMPLETE.value
    assert student.date_of_birth == date(2000, 1, 1)
    assert student.passport_number == "X1234567"
    assert gateway.fetch_one(StudentAddress, student_id=student.id).city == "Boston"

    skip_academic_onboarding(gateway, user_session)
    assert student_of(gateway, user_session).passport_number == "X1234567"
    assert student_of(gateway, user_session).profile_completion_status == CompletionStatus.PARTIAL.value
