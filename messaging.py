from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from auth import UserSession
from errors import MessagingError, ValidationError
from forms import EMAIL_PATTERN
from gateway import Gateway
from logging_config import get_logger, log_with_context
from models import ChatMessage, ContactForm, Conversation, utcnow

COUNTERPART_TYPES = ("university", "agent", "support")
SUPPORT_TITLE = "Support Team"
SUPPORT_GREETING = "Hi! This is the support team. Ask us anything about your profile, documents or applications."
MAX_MESSAGE_LENGTH = 4000

logger = get_logger("portal")


@dataclass
class ConversationSummary:
    conversation: Conversation
    unread_count: int


def _owned_conversation(gateway: Gateway, session: UserSession, conversation_id: uuid.UUID) -> Conversation:
    conversation = gateway.fetch_one(Conversation, id=conversation_id)
    if conversation is None or conversation.student_user_id != session.user_id:
        raise MessagingError("Conversation not found")
    return conversation


def list_conversations(gateway: Gateway, session: UserSession, query: str = "") -> list[ConversationSummary]:
    conversations = gateway.fetch_all(Conversation, order_by="last_message_time", descending=True, student_user_id=session.user_id)
    conversations.sort(key=lambda c: c.last_message_time is None)
    needle = query.strip().lower()
    if needle:
        conversations = [
            c for c in conversations if needle in c.title.lower() or needle in (c.last_message or "").lower()
        ]

    unread: dict[uuid.UUID, int] = {}
    for message in gateway.fetch_in(ChatMessage, "conversation_id", [c.id for c in conversations]):
        if not message.is_read and message.sender_user_id != session.user_id:
            unread[message.conversation_id] = unread.get(message.conversation_id, 0) + 1
    return [ConversationSummary(c, unread.get(c.id, 0)) for c in conversations]


def read_messages(gateway: Gateway, session: UserSession, conversation_id: uuid.UUID) -> list[ChatMessage]:
    """Return the thread oldest first and mark the counterpart's messages as read."""
    conversation = _owned_conversation(gateway, session, conversation_id)
    messages = gateway.fetch_all(ChatMessage, order_by="sent_at", conversation_id=conversation.id)
    if any(not m.is_read and m.sender_user_id is None for m in messages):
        gateway.update(ChatMessage, {"is_read": True}, conversation_id=conversation.id, sender_user_id=None, is_read=False)
    return messages


def start_conversation(
    gateway: Gateway,
    session: UserSession,
    title: str,
    counterpart_type: str,
    application_id: Optional[uuid.UUID] = None,
) -> Conversation:
    if counterpart_type not in COUNTERPART_TYPES:
        raise MessagingError(f"Unknown conversation type '{counterpart_type}'")
    if not title.strip():
        raise MessagingError("A conversation needs a title")
    return gateway.insert(
        Conversation,
        student_user_id=session.user_id,
        title=title.strip(),
        counterpart_type=counterpart_type,
        application_id=application_id,
    )


def ensure_support_conversation(gateway: Gateway, session: UserSession) -> Conversation:
    existing = gateway.fetch_all(Conversation, student_user_id=session.user_id, counterpart_type="support", limit=1)
    if existing:
        return existing[0]
    conversation = start_conversation(gateway, session, SUPPORT_TITLE, "support")
    now = utcnow()
    gateway.insert(
        ChatMessage,
        conversation_id=conversation.id,
        sender_user_id=None,
        sender_name=SUPPORT_TITLE,
        content=SUPPORT_GREETING,
        sent_at=now,
    )
    gateway.update(Conversation, {"last_message": SUPPORT_GREETING, "last_message_time": now}, id=conversation.id)
    conversation.last_message = SUPPORT_GREETING
    conversation.last_message_time = now
    return conversation


def send_message(gateway: Gateway, session: UserSession, conversation_id: uuid.UUID, content: str, sender_name: str) -> ChatMessage:
    text = (content or "").strip()
    if not text:
        raise MessagingError("Message cannot be empty")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise MessagingError(f"Messages are limited to {MAX_MESSAGE_LENGTH} characters")
    conversation = _owned_conversation(gateway, session, conversation_id)
    message = gateway.insert(
        ChatMessage,
        conversation_id=conversation.id,
        sender_user_id=session.user_id,
        sender_name=sender_name,
        content=text,
        is_read=True,
    )
    gateway.update(Conversation, {"last_message": text, "last_message_time": message.sent_at}, id=conversation.id)
    log_with_context(logger, "INFO", "Message sent", context={"user_id": str(session.user_id)}, extra_data={"conversation_id": str(conversation.id)})
    return message


def submit_contact_form(
    gateway: Gateway,
    full_name: str,
    email: str,
    phone_number: str | None = None,
    interested_program: str | None = None,
) -> ContactForm:
    errors: dict[str, str] = {}
    if not (full_name or "").strip():
        errors["full_name"] = "Name is required"
    if not (email or "").strip():
        errors["email"] = "Email is required"
    elif not EMAIL_PATTERN.match(email.strip()):
        errors["email"] = "Invalid email address"
    if errors:
        raise ValidationError(errors)

    row = gateway.insert(
        ContactForm,
        full_name=full_name.strip(),
        email=email.strip().lower(),
        phone_number=(phone_number or "").strip() or None,
        interested_program=(interested_program or "").strip() or None,
    )
    log_with_context(logger, "INFO", "Contact form received", extra_data={"contact_id": str(row.id)})
    return row
