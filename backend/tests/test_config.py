from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.core.config import Settings, _ensure_sqlalchemy_postgres_scheme


def test_backoff_accepts_comma_separated_string():
    """Verify that backoff delays can be supplied as a comma-separated string."""
    settings = Settings(sync_retry_backoff_seconds="0.5, 1, 3")
    assert settings.retry_backoff_schedule == (0.5, 1.0, 3.0)


def test_backoff_defaults_when_blank():
    settings = Settings(sync_retry_backoff_seconds="")
    assert settings.retry_backoff_schedule == (1.0, 2.0, 4.0, 8.0, 16.0, 30.0)


@pytest.mark.parametrize("value", ["1,-2", "1,abc", [0]])
def test_backoff_rejects_invalid_entries(value):
    with pytest.raises(ValidationError):
        Settings(sync_retry_backoff_seconds=value)


def test_postgres_url_is_rewritten_for_psycopg():
    settings = Settings(database_url="postgres://user:pw@localhost:5432/sightbet")
    assert settings.resolved_database_url == "postgresql+psycopg://user:pw@localhost:5432/sightbet"


def test_sslmode_is_appended_only_when_configured():
    url = _ensure_sqlalchemy_postgres_scheme("postgresql://u:p@db/x", "require")
    assert url == "postgresql+psycopg://u:p@db/x?sslmode=require"
    assert _ensure_sqlalchemy_postgres_scheme("sqlite:///./x.db", "require") == "sqlite:///./x.db"


def test_event_name_must_not_be_blank():
    with pytest.raises(ValidationError):
        Settings(finality_event_name="   ")


def test_chunk_size_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(block_chunk_size=0)
