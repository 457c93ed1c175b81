import pytest

from errors import StorageError
from storage import LocalStorage


def test_upload_writes_bucketed_object(tmp_path) -> None:
    storage = LocalStorage(tmp_path, "/app/static/uploads/")

    storage.upload("profiles", "u1_profile.png", b"png-bytes")

    assert (tmp_path / "profiles" / "u1_profile.png").read_bytes() == b"png-bytes"
    assert storage.public_url("profiles", "u1_profile.png") == "/app/static/uploads/profiles/u1_profile.png"


def test_upsert_replaces_existing_object(tmp_path) -> None:
    storage = LocalStorage(tmp_path, "/files")
    storage.upload("documents", "u1_diploma.pdf", b"old")

    with pytest.raises(StorageError) as exc:
        storage.upload("documents", "u1_diploma.pdf", b"new")
    assert exc.value.code == "duplicate"

    storage.upload("documents", "u1_diploma.pdf", b"new", upsert=True)
    assert (tmp_path / "documents" / "u1_diploma.pdf").read_bytes() == b"new"


def test_unknown_bucket_and_unsafe_names_are_rejected(tmp_path) -> None:
    storage = LocalStorage(tmp_path, "/files")

    with pytest.raises(StorageError) as bucket:
        storage.upload("avatars", "x.png", b"x")
    assert bucket.value.code == "bucket_not_found"

    for name in ["", "../escape.pdf", "nested/name.pdf"]:
        with pytest.raises(StorageError) as bad:
            storage.upload("documents", name, b"x")
        assert bad.value.code == "invalid_name"


def test_public_url_quotes_names(tmp_path) -> None:
    storage = LocalStorage(tmp_path, "/files")

    assert storage.public_url("documents", "u1 diploma.pdf") == "/files/documents/u1%20diploma.pdf"
    assert storage.exists("documents", "u1 diploma.pdf") is False
