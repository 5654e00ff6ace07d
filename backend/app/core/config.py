from functools import lru_cache
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import AnyUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_DEFAULT_BACKOFF = [1.0, 2.0, 4.0, 8.0, 16.0, 30.0]
_PSYCOPG_SCHEMES = {"postgres", "postgresql"}


def _ensure_sqlalchemy_postgres_scheme(value: str, sslmode: str | None = None) -> str:
    """Route bare Postgres URLs through psycopg 3 and attach ``sslmode`` if configured."""

    parts = urlsplit(value)
    scheme = parts.scheme.lower()
    if not scheme.startswith("postgres"):
        return value
    if scheme in _PSYCOPG_SCHEMES:
        scheme = "postgresql+psycopg"

    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    if sslmode:
        query.setdefault("sslmode", sslmode)
    return urlunsplit(parts._replace(scheme=scheme, query=urlencode(query)))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Echo SQL and enable FastAPI debug mode")
    environment: str = Field(
        default="development",
        description="Runtime environment (development|staging|production)",
    )
    log_level: str = Field(default="INFO", description="Minimum level written to stderr")
    database_url: str = Field(
        default="sqlite:///./data/trunks.db",
        description="SQLAlchemy compatible database URL",
    )
    database_sslmode: str | None = Field(
        default=None,
        description="Optional sslmode appended to Postgres connection strings",
    )
    database_pool_size: int = Field(
        default=5,
        description="Maximum pooled connections for Postgres backends",
        ge=1,
    )
    rpc_endpoint: AnyUrl | str | None = Field(
        default=None,
        description="Starknet JSON-RPC endpoint polled for finality events",
    )
    rpc_timeout_seconds: float = Field(
        default=10.0,
        description="HTTP timeout applied to each RPC request",
        gt=0,
    )
    poll_interval_seconds: float = Field(
        default=10.0,
        description="Delay between sync cycles once the checkpoint reaches the chain tip",
        ge=0,
    )
    block_chunk_size: int = Field(
        default=100,
        description="Maximum number of blocks scanned per sub-range",
        ge=1,
    )
    events_page_size: int = Field(
        default=100,
        description="chunk_size requested from starknet_getEvents per page",
        ge=1,
    )
    finality_event_name: str = Field(
        default="EventTimeout",
        description="Cairo event name whose selector marks a finished event",
    )
    start_block: int = Field(
        default=0,
        description="Checkpoint value written when no checkpoint row exists yet",
        ge=0,
    )
    checkpoint_override: int | None = Field(
        default=None,
        description="Force last_processed_block to this value at startup (skips historical replay)",
        ge=0,
    )
    sync_retry_backoff_seconds: list[float] | tuple[float, ...] | str = Field(
        default_factory=lambda: list(_DEFAULT_BACKOFF),
        description=(
            "Comma-separated list or array of backoff delays (seconds) between retries of a "
            "failed sync cycle; the last delay repeats indefinitely"
        ),
    )

    @field_validator("finality_event_name")
    @classmethod
    def _require_event_name(cls, value: str) -> str:
        candidate = value.strip()
        if not candidate:
            raise ValueError("FINALITY_EVENT_NAME must not be empty")
        if not candidate.isascii():
            raise ValueError("FINALITY_EVENT_NAME must be ASCII")
        return candidate

    @field_validator("sync_retry_backoff_seconds", mode="before")
    @classmethod
    def _parse_retry_backoff(cls, value: Any) -> list[float]:
        if value in (None, "", []):
            return list(_DEFAULT_BACKOFF)
        if isinstance(value, str):
            tokens = [token.strip() for token in value.split(",") if token.strip()]
            if not tokens:
                raise ValueError("SYNC_RETRY_BACKOFF_SECONDS must contain at least one value")
            value = tokens
        if isinstance(value, (list, tuple)):
            backoff: list[float] = []
            for item in value:
                try:
                    delay = float(item)
                except (TypeError, ValueError) as exc:
                    raise ValueError("SYNC_RETRY_BACKOFF_SECONDS entries must be numeric") from exc
                if delay <= 0:
                    raise ValueError("SYNC_RETRY_BACKOFF_SECONDS entries must be positive")
                backoff.append(delay)
            if not backoff:
                raise ValueError("SYNC_RETRY_BACKOFF_SECONDS must contain at least one value")
            return backoff
        raise ValueError(
            "SYNC_RETRY_BACKOFF_SECONDS must be provided as a comma-separated string or list of numbers"
        )

    @property
    def resolved_database_url(self) -> str:
        return _ensure_sqlalchemy_postgres_scheme(str(self.database_url), self.database_sslmode)

    @property
    def retry_backoff_schedule(self) -> tuple[float, ...]:
        sequence = tuple(float(value) for value in self.sync_retry_backoff_seconds)
        if not sequence:
            return (1.0,)
        return sequence


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
