"""
Data, auth and storage gateway.

Every page handler talks to persistence through a Gateway. Each call opens
its own database session and commits on its own: a sequence of gateway
calls is never atomic, and a failure midway leaves earlier writes in
place. Database and filesystem failures surface as GatewayError
subclasses.
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Callable, Iterator, Optional, TypeVar

from sqlalchemy import select, update as sql_update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from auth import UserSession, authenticate_user, hash_password, issue_session, normalize_email, resolve_session, revoke_session
from db import session_scope
from errors import AuthError, GatewayError, StorageError
from logging_config import get_logger, log_with_context
from models import Base, CompletionStatus, Student, User
from storage import LocalStorage

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

ModelT = TypeVar("ModelT", bound=Base)
AuthListener = Callable[[str, Optional[UserSession]], None]

db_logger = get_logger("db")
auth_logger = get_logger("auth")
storage_logger = get_logger("storage")


class Subscription:
    def __init__(self, gateway: "Gateway", listener: AuthListener) -> None:
        self._gateway = gateway
        self._listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._gateway._listeners.remove(self._listener)
            self.active = False


class Gateway:
    def __init__(self, session_factory: sessionmaker, storage: LocalStorage, session_ttl: timedelta = timedelta(hours=24)) -> None:
        self._session_factory = session_factory
        self._storage = storage
        self._session_ttl = session_ttl
        self._listeners: list[AuthListener] = []

    @contextmanager
    def _db(self, operation: str, table: str) -> Iterator[Session]:
        try:
            with session_scope(self._session_factory) as db:
                yield db
        except GatewayError:
            raise
        except IntegrityError as exc:
            log_with_context(db_logger, "ERROR", f"{operation} violated a constraint", context={"table": table}, extra_data={"error": str(exc.orig)})
            raise GatewayError(f"Could not {operation} {table}: conflicting or missing data", code="constraint") from exc
        except SQLAlchemyError as exc:
            log_with_context(db_logger, "ERROR", f"{operation} failed", context={"table": table}, extra_data={"error": str(exc)})
            raise GatewayError(f"Could not {operation} {table}", code="database") from exc

    # ---- auth -----------------------------------------------------------

    def on_auth_state_change(self, listener: AuthListener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self, listener)

    def _emit(self, event: str, session: Optional[UserSession]) -> None:
        for listener in list(self._listeners):
            listener(event, session)

    def sign_up(self, email: str, password: str, first_name: str | None = None, last_name: str | None = None) -> UserSession:
        email = normalize_email(email)
        if not email or len(password or "") < 8:
            raise AuthError("A valid email and a password of at least 8 characters are required", code="weak_credentials")
        with self._db("sign up", "users") as db:
            if db.scalar(select(User).where(User.email == email)):
                raise AuthError("An account with this email already exists", code="user_exists")
            user = User(email=email, password_hash=hash_password(password), first_name=first_name, last_name=last_name)
            db.add(user)
            db.flush()
            # Every account owns exactly one student profile from registration on
            db.add(Student(user_id=user.id, profile_completion_status=CompletionStatus.INCOMPLETE.value))
            session = issue_session(db, user, self._session_ttl)
        log_with_context(auth_logger, "INFO", "Account registered", context={"user_id": str(session.user_id)})
        self._emit(SIGNED_IN, session)
        return session

    def sign_in(self, email: str, password: str) -> UserSession:
        with self._db("sign in", "users") as db:
            user = authenticate_user(db, email, password)
            if user is None:
                raise AuthError("Invalid email or password", code="invalid_credentials")
            session = issue_session(db, user, self._session_ttl)
        log_with_context(auth_logger, "INFO", "Signed in", context={"user_id": str(session.user_id)})
        self._emit(SIGNED_IN, session)
        return session

    def get_session(self, access_token: str | None) -> Optional[UserSession]:
        if not access_token:
            return None
        with self._db("resolve session", "auth_sessions") as db:
            return resolve_session(db, access_token)

    def sign_out(self, access_token: str) -> None:
        with self._db("sign out", "auth_sessions") as db:
            revoke_session(db, access_token)
        log_with_context(auth_logger, "INFO", "Signed out")
        self._emit(SIGNED_OUT, None)

    # ---- tables ---------------------------------------------------------

    def fetch_one(self, model: type[ModelT], **filters: Any) -> Optional[ModelT]:
        with self._db("read", model.__tablename__) as db:
            stmt = select(model).filter_by(**filters).limit(2)
            rows = db.scalars(stmt).all()
            if len(rows) > 1:
                raise GatewayError(f"Expected at most one {model.__tablename__} row", code="multiple_rows")
            return rows[0] if rows else None

    def fetch_all(
        self,
        model: type[ModelT],
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        **filters: Any,
    ) -> list[ModelT]:
        with self._db("read", model.__tablename__) as db:
            stmt = select(model).filter_by(**filters)
            if order_by:
                column = getattr(model, order_by)
                stmt = stmt.order_by(column.desc() if descending else column.asc())
            if limit:
                stmt = stmt.limit(limit)
            return list(db.scalars(stmt).all())

    def fetch_in(self, model: type[ModelT], column: str, values: list[Any]) -> list[ModelT]:
        if not values:
            return []
        with self._db("read", model.__tablename__) as db:
            return list(db.scalars(select(model).where(getattr(model, column).in_(values))).all())

    def insert(self, model: type[ModelT], **values: Any) -> ModelT:
        with self._db("insert into", model.__tablename__) as db:
            row = model(**values)
            db.add(row)
            db.flush()
            db.refresh(row)
            return row

    def update(self, model: type[ModelT], values: dict[str, Any], **filters: Any) -> int:
        if not filters:
            raise GatewayError(f"Refusing to update every {model.__tablename__} row", code="missing_filter")
        with self._db("update", model.__tablename__) as db:
            stmt = sql_update(model).filter_by(**filters).values(**values).execution_options(synchronize_session=False)
            return db.execute(stmt).rowcount

    def upsert(self, model: type[ModelT], key: str, **values: Any) -> ModelT:
        if key not in values:
            raise GatewayError(f"Upsert on {model.__tablename__} needs a value for '{key}'", code="missing_key")
        with self._db("upsert", model.__tablename__) as db:
            row = db.scalar(select(model).where(getattr(model, key) == values[key]))
            if row is None:
                row = model(**values)
                db.add(row)
            else:
                for name, value in values.items():
                    setattr(row, name, value)
            db.flush()
            db.refresh(row)
            return row

    # ---- storage --------------------------------------------------------

    def upload(self, bucket: str, name: str, data: bytes, upsert: bool = False) -> str:
        try:
            stored = self._storage.upload(bucket, name, data, upsert=upsert)
        except StorageError as exc:
            log_with_context(storage_logger, "ERROR", "Upload failed", context={"bucket": bucket}, extra_data={"name": name, "error": str(exc)})
            raise
        log_with_context(storage_logger, "INFO", "Object stored", context={"bucket": bucket}, extra_data={"name": name, "bytes": len(data)})
        return stored

    def public_url(self, bucket: str, name: str) -> str:
        return self._storage.public_url(bucket, name)


def as_uuid(value: str | uuid.UUID) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
