from collections.abc import Generator
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .core.config import settings

# TCP keepalives for the Postgres connection held open between poll cycles.
_PG_KEEPALIVES = {
    "keepalives": 1,
    "keepalives_idle": 120,
    "keepalives_interval": 30,
    "keepalives_count": 5,
}


def _prepare_sqlite_file(url: URL) -> None:
    if url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


def build_engine(database_url: str, *, pool_size: int = 5, echo: bool = False) -> Engine:
    """Create the engine; the pool size caps concurrent store connections."""

    url = make_url(database_url)
    backend = url.get_backend_name()

    if backend == "sqlite":
        _prepare_sqlite_file(url)
        return create_engine(
            url,
            echo=echo,
            future=True,
            connect_args={"check_same_thread": False},
        )

    return create_engine(
        url,
        echo=echo,
        future=True,
        pool_pre_ping=True,
        pool_recycle=300,
        pool_size=pool_size,
        max_overflow=0,
        connect_args=dict(_PG_KEEPALIVES) if backend.startswith("postgresql") else {},
    )


engine = build_engine(
    settings.resolved_database_url,
    pool_size=settings.database_pool_size,
    echo=settings.debug,
)
# Objects expire on commit, so every cycle re-reads rows from the store.
SessionLocal = sessionmaker(bind=engine, autoflush=True, autocommit=False, future=True)
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def init_db(bind: Engine | None = None) -> None:
    """Create missing tables; existing ``events``/``bets`` tables are left untouched."""

    from . import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
