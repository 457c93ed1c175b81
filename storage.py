from __future__ import annotations

from pathlib import Path
from urllib.parse import quote

from errors import StorageError

BUCKETS = {"profiles", "documents"}


class LocalStorage:
    """Bucketed object store on the local filesystem.

    Objects live at ``<root>/<bucket>/<name>`` and are published under
    ``<public_base_url>/<bucket>/<name>``. Names are flat: no path
    separators and no parent references.
    """

    def __init__(self, root: Path, public_base_url: str) -> None:
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def _object_path(self, bucket: str, name: str) -> Path:
        if bucket not in BUCKETS:
            raise StorageError(f"Unknown bucket '{bucket}'", code="bucket_not_found")
        if not name or "/" in name or "\\" in name or ".." in name:
            raise StorageError(f"Invalid object name '{name}'", code="invalid_name")
        return self.root / bucket / name

    def upload(self, bucket: str, name: str, data: bytes, upsert: bool = False) -> str:
        path = self._object_path(bucket, name)
        if path.exists() and not upsert:
            raise StorageError(f"Object '{name}' already exists in '{bucket}'", code="duplicate")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Could not store '{name}': {exc.strerror or exc}", code="io_error") from exc
        return name

    def exists(self, bucket: str, name: str) -> bool:
        return self._object_path(bucket, name).exists()

    def public_url(self, bucket: str, name: str) -> str:
        self._object_path(bucket, name)
        return f"{self.public_base_url}/{bucket}/{quote(name)}"
