from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import streamlit as st
from dotenv import load_dotenv

load_dotenv()

DEFAULT_DATABASE_URL = "sqlite:///./student_portal.db"


@dataclass(frozen=True)
class Settings:
    database_url: str
    storage_dir: Path
    public_storage_url: str
    session_ttl_hours: int
    log_level: str


def _secret(name: str) -> str | None:
    try:
        if name in st.secrets:
            value = str(st.secrets[name]).strip()
            if value:
                return value
        lowered = name.lower()
        if lowered in st.secrets:
            value = str(st.secrets[lowered]).strip()
            if value:
                return value
    except Exception:
        # st.secrets raises when no secrets.toml exists
        return None
    return None


def _setting(name: str, default: str) -> str:
    return os.getenv(name) or _secret(name) or default


def normalize_database_url(database_url: str) -> str:
    value = database_url.strip().strip('"').strip("'")
    if value.startswith("postgres://"):
        value = value.replace("postgres://", "postgresql://", 1)
    if value.startswith("postgresql://"):
        value = value.replace("postgresql://", "postgresql+psycopg2://", 1)
    if not value.startswith("postgresql"):
        return value

    # Hosted Postgres providers expect TLS; local databases usually do not.
    parsed = urlparse(value)
    hostname = (parsed.hostname or "").lower()
    is_local = hostname in {"localhost", "127.0.0.1", ""}
    query = dict(parse_qsl(parsed.query, keep_blank_values=True))
    if not is_local and "sslmode" not in query:
        query["sslmode"] = "require"
        value = urlunparse(parsed._replace(query=urlencode(query)))
    return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    ttl_raw = _setting("SESSION_TTL_HOURS", "24")
    try:
        ttl = int(ttl_raw)
    except ValueError:
        raise RuntimeError(f"SESSION_TTL_HOURS must be an integer, got {ttl_raw!r}") from None

    return Settings(
        database_url=normalize_database_url(_setting("DATABASE_URL", DEFAULT_DATABASE_URL)),
        storage_dir=Path(_setting("STORAGE_DIR", "static/uploads")),
        public_storage_url=_setting("PUBLIC_STORAGE_URL", "/app/static/uploads").rstrip("/"),
        session_ttl_hours=ttl,
        log_level=_setting("LOG_LEVEL", "INFO").upper(),
    )
