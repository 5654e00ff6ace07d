from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.db import Base
from app.models import Bet, BlockState, CHECKPOINT_ROW_ID, Event, Outcome


@pytest.fixture
def test_settings(monkeypatch) -> Settings:
    settings = Settings(
        database_url="sqlite://",
        rpc_endpoint="http://rpc.test/rpc/v0_7",
        poll_interval_seconds=0,
        block_chunk_size=100,
        events_page_size=10,
        start_block=0,
        checkpoint_override=None,
        finality_event_name="EventTimeout",
        sync_retry_backoff_seconds=[1.0, 2.0, 5.0],
    )
    monkeypatch.setattr("app.core.config.get_settings", lambda: settings)
    monkeypatch.setattr("app.core.config.settings", settings)
    return settings


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=True, future=True)


@pytest.fixture
def seed_event(session_factory):
    """Insert an event row with bets; returns the created bet ids in order."""

    def _seed(
        address: str,
        *,
        bets: tuple[Outcome, ...] = (),
        is_active: bool = True,
        outcome: Outcome | None = None,
    ) -> list[int]:
        with session_factory() as session:
            session.add(
                Event(
                    address=address,
                    is_active=is_active,
                    outcome=int(outcome) if outcome is not None else None,
                )
            )
            records = [
                Bet(event_address=address, chosen_outcome=int(choice), is_claimable=False)
                for choice in bets
            ]
            session.add_all(records)
            session.commit()
            return [record.id for record in records]

    return _seed


@pytest.fixture
def seed_checkpoint(session_factory):
    def _seed(block_number: int) -> None:
        with session_factory() as session:
            session.merge(BlockState(id=CHECKPOINT_ROW_ID, last_processed_block=block_number))
            session.commit()

    return _seed


@pytest.fixture
def read_checkpoint(session_factory):
    def _read() -> int | None:
        with session_factory() as session:
            record = session.get(BlockState, CHECKPOINT_ROW_ID)
            return record.last_processed_block if record else None

    return _read


@pytest.fixture
def load_event(session_factory):
    """Return a plain snapshot of an event and its bets keyed by bet id."""

    def _load(address: str) -> dict[str, object] | None:
        with session_factory() as session:
            record = session.get(Event, address)
            if record is None:
                return None
            return {
                "is_active": record.is_active,
                "outcome": record.outcome,
                "bets": {bet.id: bet.is_claimable for bet in record.bets},
            }

    return _load
