import json
from datetime import date

from applications import apply_to_program, attach_document, list_applications
from conftest import TODAY, academic_state, academic_values, pdf, personal_state, personal_values
from export import build_application_summary, build_json_summary, build_pdf_summary
from models import Program
from onboarding import submit_academic_info, submit_personal_info
from student_profile import load_profile


def onboarded_application(gateway, session):
    submit_personal_info(gateway, session, personal_state(personal_values(nationality="TR")), today=TODAY)
    exams = [{"exam_type": "IELTS", "custom_name": "", "score": "7.5", "exam_date": date(2024, 3, 1), "document": None}]
    values = academic_values(graduated_school_name="Boğaziçi Lisesi", exams=exams)
    submit_academic_info(gateway, session, academic_state(values), today=TODAY)

    program = gateway.fetch_one(Program, name="Mechanical Engineering")
    application = apply_to_program(gateway, session, program.id, today=TODAY)
    attach_document(gateway, session, application.id, "Academic Transcript", pdf("transcript.pdf"))
    (view,) = list_applications(gateway, session)
    return view, load_profile(gateway, session)


def test_summary_collects_program_student_and_documents(gateway, seeded, user_session) -> None:
    view, profile = onboarded_application(gateway, user_session)

    summary = build_application_summary(view, profile)

    assert summary["status"] == "draft"
    assert summary["submitted_at"] is None
    assert summary["progress"] == 25
    assert summary["program"]["tuition"] == "CHF 1,200"
    assert summary["program"]["deadline"] == "2027-04-30"
    assert summary["university"] == {"name": "ETH Zurich", "country": "Switzerland"}
    assert summary["student"]["name"] == "Ada Lovelace"
    assert summary["student"]["nationality"] == "Turkey"
    assert summary["documents"] == ["Academic Transcript"]
    assert "Statement of Purpose" in summary["missing_documents"]
    assert summary["exams"] == [{"exam": "IELTS", "score": "7.5", "date": "2024-03-01"}]


def test_pdf_summary_is_a_pdf(gateway, seeded, user_session) -> None:
    view, profile = onboarded_application(gateway, user_session)

    data = build_pdf_summary(build_application_summary(view, profile))

    assert data.startswith(b"%PDF")
    assert len(data) > 500


def test_pdf_summary_tolerates_sparse_data() -> None:
    assert build_pdf_summary({"status": None}).startswith(b"%PDF")


def test_json_summary_keeps_unicode(gateway, seeded, user_session) -> None:
    view, profile = onboarded_application(gateway, user_session)

    data = build_json_summary(build_application_summary(view, profile))

    assert "Boğaziçi Lisesi".encode("utf-8") in data
    assert json.loads(data.decode("utf-8"))["student"]["graduated_school_name"] == "Boğaziçi Lisesi"
