from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db import SessionLocal
from app.errors import PersistenceError

SessionFactory = Callable[[], Session]


def _rollback(session: Session) -> None:
    try:
        session.rollback()
    except SQLAlchemyError as exc:
        # The connection is already gone; the server discards the transaction.
        logger.warning("Rollback failed: {}", exc)


@contextmanager
def session_scope(session_factory: SessionFactory | None = None) -> Iterator[Session]:
    """Yield a session whose work is committed on exit or rolled back on error.

    Database failures surface as :class:`PersistenceError` so the sync loop can
    treat them like any other transient outage.
    """
    session = (session_factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        _rollback(session)
        logger.warning("Transaction rolled back: {}", exc)
        raise PersistenceError(str(exc)) from exc
    except Exception:
        _rollback(session)
        raise
    finally:
        session.close()
