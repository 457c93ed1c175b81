from __future__ import annotations

import io
import json
from datetime import datetime, timezone
from typing import Any

from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

from applications import ApplicationView
from catalog import format_tuition
from countries import country_name
from student_profile import ProfileView


def _safe_text(value: Any) -> str:
    if value is None or value == "":
        return "-"
    return str(value)


def _iso(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


def build_application_summary(view: ApplicationView, profile: ProfileView) -> dict[str, Any]:
    application = view.application
    program = view.program
    student = profile.student
    return {
        "application_id": str(application.id),
        "status": application.status,
        "submitted_at": _iso(application.submitted_at),
        "progress": view.progress,
        "program": {
            "name": program.name if program else None,
            "study_level": program.study_level if program else None,
            "duration": program.duration_text if program else None,
            "tuition": format_tuition(program.tuition_fee, program.currency) if program else None,
            "deadline": _iso(program.application_deadline) if program else None,
        },
        "university": {
            "name": view.university.name if view.university else None,
            "country": view.university.country if view.university else None,
        },
        "student": {
            "name": profile.display_name,
            "email": profile.user.email,
            "nationality": country_name(student.country_of_origin) if student else None,
            "graduated_school_name": student.graduated_school_name if student else None,
            "degree_grade": student.degree_grade if student else None,
        },
        "documents": sorted(view.document_names),
        "missing_documents": view.missing_documents,
        "exams": [
            {"exam": exam.exam_name, "score": exam.exam_score, "date": _iso(exam.exam_date)} for exam in profile.exams
        ],
    }


def build_pdf_summary(summary: dict[str, Any]) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title="Application Summary")
    styles = getSampleStyleSheet()
    normal = styles["BodyText"]
    heading = styles["Heading2"]

    program = summary.get("program", {})
    university = summary.get("university", {})
    student = summary.get("student", {})

    story = []
    story.append(Paragraph("Application Summary", styles["Title"]))
    story.append(Paragraph(f"Generated: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M')} UTC", normal))
    story.append(Spacer(1, 12))

    story.append(Paragraph("Program", heading))
    story.append(Paragraph(f"{_safe_text(program.get('name'))} @ {_safe_text(university.get('name'))} ({_safe_text(university.get('country'))})", normal))
    story.append(Paragraph(f"Level: {_safe_text(program.get('study_level'))}", normal))
    story.append(Paragraph(f"Duration: {_safe_text(program.get('duration'))}", normal))
    story.append(Paragraph(f"Tuition: {_safe_text(program.get('tuition'))} per year", normal))
    story.append(Paragraph(f"Application deadline: {_safe_text(program.get('deadline'))}", normal))
    story.append(Spacer(1, 8))

    story.append(Paragraph("Status", heading))
    story.append(Paragraph(f"Status: {_safe_text(summary.get('status')).replace('_', ' ').title()}", normal))
    story.append(Paragraph(f"Submitted: {_safe_text(summary.get('submitted_at'))}", normal))
    story.append(Paragraph(f"Checklist progress: {_safe_text(summary.get('progress'))}%", normal))
    story.append(Spacer(1, 8))

    story.append(Paragraph("Applicant", heading))
    for label, key in [
        ("Name", "name"),
        ("Email", "email"),
        ("Nationality", "nationality"),
        ("Graduated from", "graduated_school_name"),
        ("Graduation grade", "degree_grade"),
    ]:
        story.append(Paragraph(f"{label}: {_safe_text(student.get(key))}", normal))
    story.append(Spacer(1, 8))

    exams = summary.get("exams", [])
    if exams:
        story.append(Paragraph("Exam Results", heading))
        for exam in exams:
            story.append(Paragraph(f"- {_safe_text(exam.get('exam'))}: {_safe_text(exam.get('score'))} ({_safe_text(exam.get('date'))})", normal))
        story.append(Spacer(1, 8))

    story.append(Paragraph("Documents", heading))
    for name in summary.get("documents", []):
        story.append(Paragraph(f"- {name}", normal))
    missing = summary.get("missing_documents", [])
    if missing:
        story.append(Paragraph(f"Still missing: {', '.join(missing)}", normal))

    doc.build(story)
    buffer.seek(0)
    return buffer.read()


def build_json_summary(summary: dict[str, Any]) -> bytes:
    return json.dumps(summary, indent=2, ensure_ascii=False).encode("utf-8")
