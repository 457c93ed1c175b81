from datetime import datetime, timedelta, timezone

import pytest

from auth import resolve_session, verify_password
from errors import AuthError, GatewayError, StorageError
from gateway import SIGNED_IN, SIGNED_OUT, Gateway
from models import AuthSession, CompletionStatus, Student, StudentAddress, User


def test_sign_up_creates_user_student_and_session(gateway) -> None:
    session = gateway.sign_up("  New@Example.com ", "long-enough", "New", "Student")

    assert session.email == "new@example.com"
    user = gateway.fetch_one(User, id=session.user_id)
    assert user.first_name == "New"
    assert verify_password("long-enough", user.password_hash)
    student = gateway.fetch_one(Student, user_id=session.user_id)
    assert student.profile_completion_status == CompletionStatus.INCOMPLETE.value
    restored = gateway.get_session(session.access_token)
    assert (restored.user_id, restored.email) == (session.user_id, session.email)


def test_sign_up_rejects_duplicate_email_and_short_password(gateway, user_session) -> None:
    with pytest.raises(AuthError) as duplicate:
        gateway.sign_up("STUDENT@example.com", "another-password")
    assert duplicate.value.code == "user_exists"

    with pytest.raises(AuthError) as weak:
        gateway.sign_up("other@example.com", "short")
    assert weak.value.code == "weak_credentials"


def test_sign_in_with_wrong_password_fails(gateway, user_session) -> None:
    with pytest.raises(AuthError) as exc:
        gateway.sign_in("student@example.com", "wrong-password")
    assert exc.value.code == "invalid_credentials"

    session = gateway.sign_in("Student@Example.com", "correct-horse")
    assert session.user_id == user_session.user_id
    assert session.access_token != user_session.access_token


def test_get_session_handles_missing_and_unknown_tokens(gateway) -> None:
    assert gateway.get_session(None) is None
    assert gateway.get_session("") is None
    assert gateway.get_session("not-a-token") is None


def test_expired_session_is_removed(gateway, user_session, db) -> None:
    later = datetime.now(timezone.utc) + timedelta(days=2)
    with pytest.raises(AuthError) as exc:
        resolve_session(db, user_session.access_token, now=later)
    assert exc.value.code == "session_expired"
    db.close()

    assert gateway.fetch_one(AuthSession, access_token=user_session.access_token) is None


def test_short_ttl_gateway_reports_expired_session(session_factory, storage) -> None:
    gateway = Gateway(session_factory, storage, session_ttl=timedelta(seconds=-1))
    session = gateway.sign_up("ttl@example.com", "long-enough")

    with pytest.raises(AuthError):
        gateway.get_session(session.access_token)
    assert gateway.get_session(session.access_token) is None


def test_sign_out_revokes_session_and_notifies(gateway, user_session) -> None:
    events = []
    gateway.on_auth_state_change(lambda event, session: events.append((event, session)))

    gateway.sign_out(user_session.access_token)

    assert gateway.get_session(user_session.access_token) is None
    assert events == [(SIGNED_OUT, None)]


def test_listeners_receive_sign_in_until_unsubscribed(gateway, user_session) -> None:
    events = []
    subscription = gateway.on_auth_state_change(lambda event, session: events.append(event))

    gateway.sign_in("student@example.com", "correct-horse")
    subscription.unsubscribe()
    subscription.unsubscribe()
    gateway.sign_in("student@example.com", "correct-horse")

    assert events == [SIGNED_IN]
    assert subscription.active is False


def test_fetch_one_rejects_ambiguous_filters(gateway) -> None:
    gateway.sign_up("one@example.com", "long-enough")
    gateway.sign_up("two@example.com", "long-enough")

    with pytest.raises(GatewayError) as exc:
        gateway.fetch_one(User, language_preference="en")
    assert exc.value.code == "multiple_rows"


def test_fetch_all_orders_and_limits(gateway) -> None:
    for email in ["c@example.com", "a@example.com", "b@example.com"]:
        gateway.sign_up(email, "long-enough")

    emails = [u.email for u in gateway.fetch_all(User, order_by="email", descending=True, limit=2)]

    assert emails == ["c@example.com", "b@example.com"]


def test_update_requires_a_filter_and_returns_rowcount(gateway, user_session) -> None:
    with pytest.raises(GatewayError) as exc:
        gateway.update(User, {"language_preference": "tr"})
    assert exc.value.code == "missing_filter"

    assert gateway.update(User, {"language_preference": "tr"}, id=user_session.user_id) == 1
    assert gateway.fetch_one(User, id=user_session.user_id).language_preference == "tr"


def test_upsert_inserts_then_updates_by_key(gateway, user_session) -> None:
    student = gateway.fetch_one(Student, user_id=user_session.user_id)
    address = dict(student_id=student.id, street="1 Main St", city="Boston", state="MA", postal_code="02110", country="US")

    first = gateway.upsert(StudentAddress, "student_id", **address)
    second = gateway.upsert(StudentAddress, "student_id", **{**address, "city": "Cambridge"})

    assert first.id == second.id
    assert second.city == "Cambridge"
    assert len(gateway.fetch_all(StudentAddress, student_id=student.id)) == 1

    with pytest.raises(GatewayError) as exc:
        gateway.upsert(StudentAddress, "student_id", street="x")
    assert exc.value.code == "missing_key"


def test_constraint_violation_becomes_gateway_error(gateway, user_session) -> None:
    with pytest.raises(GatewayError) as exc:
        gateway.insert(Student, user_id=user_session.user_id)
    assert exc.value.code == "constraint"


def test_upload_and_public_url(gateway, storage) -> None:
    name = gateway.upload("documents", "abc_transcript.pdf", b"%PDF")

    assert storage.exists("documents", name)
    assert gateway.public_url("documents", name) == "/app/static/uploads/documents/abc_transcript.pdf"

    with pytest.raises(StorageError) as exc:
        gateway.upload("documents", "abc_transcript.pdf", b"%PDF")
    assert exc.value.code == "duplicate"
