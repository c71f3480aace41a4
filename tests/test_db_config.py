from __future__ import annotations

import pytest

from db.config import get_database_settings, normalize_database_url, resolve_database_url
from db.session import create_db_engine

_URL_VARS = (
    "VENDOR_INGEST_DATABASE_URL",
    "DATABASE_URL",
    "CLOUD_DATABASE_URL",
    "LOCAL_DATABASE_URL",
    "ENVIRONMENT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("db.config.load_env_files", lambda: None)
    for name in _URL_VARS:
        monkeypatch.delenv(name, raising=False)


def test_normalize_database_url() -> None:
    assert normalize_database_url(" postgres://u:p@h/db ") == "postgresql+psycopg://u:p@h/db"
    assert normalize_database_url("postgresql://u:p@h/db") == "postgresql+psycopg://u:p@h/db"
    assert normalize_database_url("sqlite:///mappings.db") == "sqlite:///mappings.db"


def test_service_specific_url_wins(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql://shared/db")
    monkeypatch.setenv("VENDOR_INGEST_DATABASE_URL", "postgresql://ingest/db")

    assert resolve_database_url() == "postgresql+psycopg://ingest/db"


def test_cloud_url_requires_cloud_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLOUD_DATABASE_URL", "postgresql://cloud/db")
    monkeypatch.setenv("LOCAL_DATABASE_URL", "postgresql://local/db")

    assert resolve_database_url() == "postgresql+psycopg://local/db"

    monkeypatch.setenv("ENVIRONMENT", "Production")
    assert resolve_database_url() == "postgresql+psycopg://cloud/db"


def test_missing_url_raises() -> None:
    with pytest.raises(RuntimeError, match="No database URL configured"):
        resolve_database_url()


def test_database_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql://shared/db")
    monkeypatch.setenv("SQL_ECHO", "yes")
    monkeypatch.setenv("DB_POOL_SIZE", "12")
    monkeypatch.setenv("DB_MAX_OVERFLOW", "not-a-number")

    settings = get_database_settings()

    assert settings.url == "postgresql+psycopg://shared/db"
    assert settings.echo is True
    assert settings.pool_size == 12
    assert settings.max_overflow == 10


def test_engine_rejects_non_postgres_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite:///mappings.db")

    with pytest.raises(RuntimeError, match="only supports PostgreSQL"):
        create_db_engine()
