import pytest

from errors import MessagingError, ValidationError
from messaging import (
    MAX_MESSAGE_LENGTH,
    SUPPORT_GREETING,
    ensure_support_conversation,
    list_conversations,
    read_messages,
    send_message,
    start_conversation,
    submit_contact_form,
)
from models import ChatMessage, Conversation


def test_support_conversation_is_created_once(gateway, user_session) -> None:
    first = ensure_support_conversation(gateway, user_session)
    second = ensure_support_conversation(gateway, user_session)

    assert first.id == second.id
    assert len(gateway.fetch_all(Conversation, student_user_id=user_session.user_id)) == 1
    (summary,) = list_conversations(gateway, user_session)
    assert summary.conversation.last_message == SUPPORT_GREETING
    assert summary.unread_count == 1


def test_reading_a_thread_marks_counterpart_messages_read(gateway, user_session) -> None:
    conversation = ensure_support_conversation(gateway, user_session)

    messages = read_messages(gateway, user_session, conversation.id)

    assert [m.content for m in messages] == [SUPPORT_GREETING]
    assert list_conversations(gateway, user_session)[0].unread_count == 0
    assert all(m.is_read for m in gateway.fetch_all(ChatMessage, conversation_id=conversation.id))


def test_send_message_updates_conversation(gateway, user_session) -> None:
    conversation = ensure_support_conversation(gateway, user_session)

    message = send_message(gateway, user_session, conversation.id, "  Where do I upload my diploma?  ", "Ada Lovelace")

    assert message.content == "Where do I upload my diploma?"
    assert message.sender_user_id == user_session.user_id
    assert message.is_read is True
    assert gateway.fetch_one(Conversation, id=conversation.id).last_message == "Where do I upload my diploma?"
    assert len(read_messages(gateway, user_session, conversation.id)) == 2


def test_send_message_rejects_blank_and_oversized_text(gateway, user_session) -> None:
    conversation = ensure_support_conversation(gateway, user_session)

    with pytest.raises(MessagingError, match="empty"):
        send_message(gateway, user_session, conversation.id, "   ", "Ada")
    with pytest.raises(MessagingError, match="limited"):
        send_message(gateway, user_session, conversation.id, "x" * (MAX_MESSAGE_LENGTH + 1), "Ada")


def test_conversations_belong_to_their_student(gateway, user_session) -> None:
    conversation = ensure_support_conversation(gateway, user_session)
    intruder = gateway.sign_up("intruder@example.com", "another-horse")

    with pytest.raises(MessagingError, match="not found"):
        read_messages(gateway, intruder, conversation.id)
    with pytest.raises(MessagingError):
        send_message(gateway, intruder, conversation.id, "hello", "Intruder")
    assert list_conversations(gateway, intruder) == []


def test_start_conversation_validates_input(gateway, user_session) -> None:
    with pytest.raises(MessagingError, match="Unknown conversation type"):
        start_conversation(gateway, user_session, "Visa help", "embassy")
    with pytest.raises(MessagingError):
        start_conversation(gateway, user_session, "  ", "agent")


def test_list_conversations_search_and_order(gateway, user_session) -> None:
    ensure_support_conversation(gateway, user_session)
    start_conversation(gateway, user_session, " MIT Admissions Office ", "university")

    titles = [s.conversation.title for s in list_conversations(gateway, user_session)]
    assert titles == ["Support Team", "MIT Admissions Office"]

    assert [s.conversation.title for s in list_conversations(gateway, user_session, "admissions")] == ["MIT Admissions Office"]
    assert [s.conversation.title for s in list_conversations(gateway, user_session, "documents")] == ["Support Team"]


def test_contact_form(gateway) -> None:
    with pytest.raises(ValidationError) as exc:
        submit_contact_form(gateway, "", "nope")
    assert exc.value.errors == {"full_name": "Name is required", "email": "Invalid email address"}

    row = submit_contact_form(gateway, " Grace Hopper ", "Grace@Example.com ", "  ", "Computer Science")

    assert (row.full_name, row.email) == ("Grace Hopper", "grace@example.com")
    assert row.phone_number is None
    assert row.interested_program == "Computer Science"
