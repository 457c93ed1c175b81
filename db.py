from contextlib import contextmanager
from typing import Iterator

import streamlit as st
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from config import get_settings
from models import Base


def build_engine(database_url: str, **kwargs) -> Engine:
    engine_kwargs = dict(kwargs)
    if database_url.startswith("sqlite"):
        engine_kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        engine_kwargs.setdefault("pool_pre_ping", True)
    engine = create_engine(database_url, **engine_kwargs)

    if database_url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    # Rows leave the session scope as plain detached objects; keep their
    # loaded attributes readable after commit.
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@st.cache_resource
def get_engine() -> Engine:
    return build_engine(get_settings().database_url)


@st.cache_resource
def get_session_factory() -> sessionmaker:
    return build_session_factory(get_engine())


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
    session: Session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def db_session() -> Iterator[Session]:
    with session_scope(get_session_factory()) as session:
        yield session


def init_schema(engine: Engine | None = None) -> None:
    Base.metadata.create_all(bind=engine or get_engine())
