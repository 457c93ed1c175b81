from __future__ import annotations

import os
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from auth import hash_password, normalize_email
from models import ChatMessage, CompletionStatus, Conversation, DocumentType, Program, Student, University, User

DOCUMENT_TYPES = [
    ("Passport Photo", "Recent passport-style photograph."),
    ("Academic Transcript", "Official transcript of records from the last institution attended."),
    ("Diploma/Certificate", "Graduation diploma or certificate."),
    ("Degree Grade Certificate", "Certificate stating the final degree grade or GPA."),
    ("Other", "Any additional supporting document."),
    ("Nüfus Kayıt Örneği", "Turkish civil registry extract, required for Turkish dual nationals."),
    ("Statement of Purpose", "Personal statement for a program application."),
    ("Recommendation Letter", "Letter of recommendation from a teacher or employer."),
    ("English Test Result", "IELTS, TOEFL or equivalent score report."),
]

UNIVERSITIES = [
    {
        "name": "Harvard University",
        "country": "United States",
        "city": "Cambridge, MA",
        "website_url": "https://harvard.edu",
        "description": "Leading research university with world-class programs across all disciplines.",
    },
    {
        "name": "University of Oxford",
        "country": "United Kingdom",
        "city": "Oxford",
        "website_url": "https://ox.ac.uk",
        "description": "One of the oldest and most prestigious universities in the English-speaking world.",
    },
    {
        "name": "MIT",
        "country": "United States",
        "city": "Cambridge, MA",
        "website_url": "https://mit.edu",
        "description": "Leading institution for technology, engineering, and scientific research.",
    },
    {
        "name": "London Business School",
        "country": "United Kingdom",
        "city": "London",
        "website_url": "https://london.edu",
        "description": "Graduate business school known for its MBA and finance programs.",
    },
    {
        "name": "ETH Zurich",
        "country": "Switzerland",
        "city": "Zurich",
        "website_url": "https://ethz.ch",
        "description": "Public research university focused on science, technology and engineering.",
    },
    {
        "name": "Sciences Po",
        "country": "France",
        "city": "Paris",
        "website_url": "https://sciencespo.fr",
        "description": "Research university specialising in the social and political sciences.",
    },
    {
        "name": "University of Toronto",
        "country": "Canada",
        "city": "Toronto",
        "website_url": "https://utoronto.ca",
        "description": "Canada's largest research university with a broad range of programs.",
    },
]

PROGRAMS = [
    {
        "university": "MIT",
        "name": "Computer Science",
        "study_level": "Bachelor",
        "duration_text": "4 years",
        "tuition_fee": 55000,
        "currency": "USD",
        "application_deadline": date(2027, 12, 1),
        "languages": ["English"],
        "intake_dates": ["Fall", "Spring"],
        "description": "Comprehensive program covering algorithms, software engineering, and AI.",
    },
    {
        "university": "London Business School",
        "name": "Business Administration",
        "study_level": "Master",
        "duration_text": "2 years",
        "tuition_fee": 45000,
        "currency": "GBP",
        "application_deadline": date(2027, 11, 15),
        "languages": ["English"],
        "intake_dates": ["September"],
        "description": "MBA program focused on global business leadership and innovation.",
    },
    {
        "university": "ETH Zurich",
        "name": "Mechanical Engineering",
        "study_level": "Bachelor",
        "duration_text": "3 years",
        "tuition_fee": 1200,
        "currency": "CHF",
        "application_deadline": date(2027, 4, 30),
        "languages": ["German", "English"],
        "intake_dates": ["Autumn"],
        "description": "World-class engineering program with strong industry connections.",
    },
    {
        "university": "Sciences Po",
        "name": "International Relations",
        "study_level": "Bachelor",
        "duration_text": "3 years",
        "tuition_fee": 13000,
        "currency": "EUR",
        "application_deadline": date(2027, 6, 1),
        "languages": ["French", "English"],
        "intake_dates": ["September"],
        "description": "Interdisciplinary program in politics, economics, and international affairs.",
    },
    {
        "university": "University of Toronto",
        "name": "Data Science",
        "study_level": "Master",
        "duration_text": "16 months",
        "tuition_fee": 42000,
        "currency": "USD",
        "application_deadline": date(2027, 4, 1),
        "languages": ["English"],
        "intake_dates": ["September", "January"],
        "description": "Applied statistics, machine learning and data engineering with an industry capstone.",
    },
    {
        "university": "University of Oxford",
        "name": "Economics",
        "study_level": "PhD",
        "duration_text": "4 years",
        "tuition_fee": 31000,
        "currency": "GBP",
        "application_deadline": date(2027, 1, 10),
        "languages": ["English"],
        "intake_dates": ["October"],
        "description": "Doctoral research training in micro, macro and econometrics.",
    },
]

DEMO_CONVERSATIONS = [
    {
        "title": "MIT Admissions Office",
        "counterpart_type": "university",
        "messages": [
            (None, "MIT Admissions Office", "Hello! We have received your application for the Computer Science program."),
            ("student", "You", "Thank you! When can I expect to hear back about the status?"),
            (None, "MIT Admissions Office", "We will review your application within the next 4-6 weeks. We may contact you if we need any additional documents."),
        ],
    },
    {
        "title": "Education Agent - Sarah Wilson",
        "counterpart_type": "agent",
        "messages": [
            (None, "Sarah Wilson", "Hi! I'm here to help with your university applications. Do you have any questions?"),
            ("student", "You", "Yes, I need help with my visa application for studying in the US."),
        ],
    },
]


def seed_document_types(db: Session) -> None:
    for name, description in DOCUMENT_TYPES:
        existing = db.scalar(select(DocumentType).where(DocumentType.name == name))
        if existing:
            existing.description = description
        else:
            db.add(DocumentType(name=name, description=description))


def seed_catalog(db: Session) -> None:
    count = db.scalar(select(func.count()).select_from(University)) or 0
    if count > 0:
        return

    by_name: dict[str, University] = {}
    for row in UNIVERSITIES:
        uni = University(is_active=True, **row)
        db.add(uni)
        by_name[uni.name] = uni
    db.flush()

    for row in PROGRAMS:
        data = dict(row)
        university = by_name[data.pop("university")]
        db.add(Program(university_id=university.id, is_active=True, **data))


def seed_demo_student(db: Session) -> None:
    email = normalize_email(os.getenv("STUDENT_PORTAL_DEMO_EMAIL", "demo@student.local"))
    password = os.getenv("STUDENT_PORTAL_DEMO_PASSWORD", "Student123!")

    user = db.scalar(select(User).where(User.email == email))
    if user:
        return
    user = User(email=email, password_hash=hash_password(password), first_name="Demo", last_name="Student")
    db.add(user)
    db.flush()
    db.add(Student(user_id=user.id, profile_completion_status=CompletionStatus.INCOMPLETE.value))

    stamp = datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc)
    for spec in DEMO_CONVERSATIONS:
        conversation = Conversation(student_user_id=user.id, title=spec["title"], counterpart_type=spec["counterpart_type"])
        db.add(conversation)
        db.flush()
        for sender, sender_name, content in spec["messages"]:
            db.add(
                ChatMessage(
                    conversation_id=conversation.id,
                    sender_user_id=user.id if sender == "student" else None,
                    sender_name=sender_name,
                    content=content,
                    is_read=sender == "student",
                    sent_at=stamp,
                )
            )
            conversation.last_message = content
            conversation.last_message_time = stamp
            stamp += timedelta(minutes=5)


def seed_all(db: Session) -> None:
    seed_document_types(db)
    seed_catalog(db)
    seed_demo_student(db)
