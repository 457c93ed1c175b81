from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from errors import AuthError
from models import AuthSession, User, utcnow


@dataclass(frozen=True)
class UserSession:
    """The authenticated context handed to every handler that needs the current account."""

    user_id: uuid.UUID
    email: str
    access_token: str
    expires_at: datetime


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    user = db.scalar(select(User).where(User.email == normalize_email(email)))
    if not user or not user.password_hash:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def issue_session(db: Session, user: User, ttl: timedelta) -> UserSession:
    token = secrets.token_urlsafe(32)
    expires_at = utcnow() + ttl
    db.add(AuthSession(access_token=token, user_id=user.id, expires_at=expires_at))
    return UserSession(user_id=user.id, email=user.email, access_token=token, expires_at=expires_at)


def resolve_session(db: Session, access_token: str, now: datetime | None = None) -> Optional[UserSession]:
    row = db.get(AuthSession, access_token)
    if row is None:
        return None
    user = db.get(User, row.user_id)
    if user is None:
        return None
    expires_at = _as_utc(row.expires_at)
    if expires_at <= (now or utcnow()):
        db.delete(row)
        # Commit the cleanup before the caller's scope rolls back on the raise
        db.commit()
        raise AuthError("Session expired, please sign in again", code="session_expired")
    return UserSession(user_id=user.id, email=user.email, access_token=row.access_token, expires_at=expires_at)


def revoke_session(db: Session, access_token: str) -> None:
    db.execute(delete(AuthSession).where(AuthSession.access_token == access_token))
