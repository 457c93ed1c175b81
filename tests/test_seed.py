from sqlalchemy import func, select

from db import session_scope
from models import ChatMessage, Conversation, DocumentType, Program, Student, University, User
from seed import DOCUMENT_TYPES, seed_all


def count(db, model) -> int:
    return db.scalar(select(func.count()).select_from(model))


def test_seed_all_is_idempotent(session_factory, db) -> None:
    for _ in range(2):
        with session_scope(session_factory) as session:
            seed_all(session)

    assert count(db, DocumentType) == len(DOCUMENT_TYPES)
    assert count(db, University) == 7
    assert count(db, Program) == 6
    assert count(db, User) == 1
    assert count(db, Student) == 1
    assert count(db, Conversation) == 2
    assert count(db, ChatMessage) == 5


def test_demo_student_can_sign_in(gateway, session_factory) -> None:
    with session_scope(session_factory) as session:
        seed_all(session)

    session = gateway.sign_in("demo@student.local", "Student123!")

    assert session.email == "demo@student.local"
