from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from db import build_engine, build_session_factory, session_scope
from errors import StorageError
from forms import UploadedFile
from gateway import Gateway
from models import Base
from seed import seed_catalog, seed_document_types
from storage import LocalStorage
from wizard import ACADEMIC_WIZARD, PERSONAL_WIZARD, WizardState

TODAY = date(2026, 6, 15)


class FailingStorage(LocalStorage):
    """Local storage whose ``fail_on``-th upload (1-based) raises."""

    def __init__(self, root, public_base_url: str, fail_on: int) -> None:
        super().__init__(root, public_base_url)
        self.fail_on = fail_on
        self.calls: list[str] = []

    def upload(self, bucket: str, name: str, data: bytes, upsert: bool = False) -> str:
        self.calls.append(name)
        if len(self.calls) == self.fail_on:
            raise StorageError(f"Simulated outage storing '{name}'", code="io_error")
        return super().upload(bucket, name, data, upsert=upsert)


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(tmp_path / "uploads", "/app/static/uploads")


@pytest.fixture
def gateway(session_factory, storage) -> Gateway:
    return Gateway(session_factory, storage)


@pytest.fixture
def seeded(session_factory) -> None:
    with session_scope(session_factory) as db:
        seed_document_types(db)
        seed_catalog(db)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def user_session(gateway):
    return gateway.sign_up("student@example.com", "correct-horse", "Ada", "Lovelace")


def pdf(name: str = "scan.pdf", size: int = 128) -> UploadedFile:
    return UploadedFile(name, b"%" * size, "application/pdf")


def png(name: str = "photo.png", size: int = 128) -> UploadedFile:
    return UploadedFile(name, b"\x89" * size, "image/png")


def personal_values(**overrides) -> dict:
    values = {
        "date_of_birth": date(2000, 1, 1),
        "nationality": "US",
        "has_dual_nationality": False,
        "second_nationality": None,
        "email": "student@example.com",
        "country_code": "+1",
        "phone_number": "555 123 4567",
        "passport_number": "X1234567",
        "street": "1 Main St",
        "city": "Boston",
        "state": "MA",
        "postal_code": "02110",
        "country": "US",
    }
    values.update(overrides)
    return values


def academic_values(**overrides) -> dict:
    values = {
        "graduated_school_name": "Springfield High",
        "graduation_date": date(2018, 6, 1),
        "graduation_grade": "3.75",
        "exams": [],
    }
    values.update(overrides)
    return values


def academic_files(**overrides) -> dict:
    files = {
        "passport_photo": png("passport.png"),
        "transcript": pdf("transcript.pdf"),
        "diploma": pdf("diploma.pdf"),
        "additional": [],
    }
    files.update(overrides)
    return files


def personal_state(values: dict | None = None, files: dict | None = None) -> WizardState:
    return WizardState(name=PERSONAL_WIZARD, total_steps=4, step=4, values=values or personal_values(), files=files or {})


def academic_state(values: dict | None = None, files: dict | None = None) -> WizardState:
    return WizardState(name=ACADEMIC_WIZARD, total_steps=3, step=3, values=values or academic_values(), files=files or academic_files())
