from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from app.errors import PersistenceError
from app.models import Bet, Event, Outcome
from app.repositories import CheckpointRepository, ResolutionRepository
from ingestion.felt import format_address
from ingestion.watchlist import list_active
from pipelines.checkpoint import CheckpointStore

ADDRESS_A1 = format_address("0xa1")
ADDRESS_B2 = format_address("0xb2")


def test_checkpoint_store_initializes_to_start_block(session_factory, read_checkpoint):
    store = CheckpointStore(session_factory, start_block=42)

    assert store.initialize() == 42
    assert read_checkpoint() == 42
    assert store.read() == 42


def test_checkpoint_initialize_keeps_existing_value(session_factory, seed_checkpoint):
    seed_checkpoint(500)
    store = CheckpointStore(session_factory, start_block=0)

    assert store.initialize() == 500


def test_checkpoint_advance_is_monotonic(session_factory, seed_checkpoint, read_checkpoint):
    seed_checkpoint(100)
    store = CheckpointStore(session_factory)

    assert store.advance(105) is True
    assert store.advance(103) is False
    assert store.advance(105) is False
    assert read_checkpoint() == 105


def test_checkpoint_override_may_move_backwards(session_factory, seed_checkpoint, read_checkpoint):
    seed_checkpoint(900)
    store = CheckpointStore(session_factory)

    store.override(10)

    assert read_checkpoint() == 10


def test_checkpoint_override_creates_missing_row(session_factory, read_checkpoint):
    CheckpointStore(session_factory).override(77)
    assert read_checkpoint() == 77


def test_checkpoint_read_without_row_is_a_persistence_error(session_factory):
    with pytest.raises(PersistenceError):
        CheckpointStore(session_factory).read()


def test_advance_without_row_is_a_persistence_error(session_factory):
    with session_factory() as session:
        with pytest.raises(PersistenceError):
            CheckpointRepository(session).advance(5)


def test_store_wraps_database_failures():
    session = MagicMock()
    session.execute.side_effect = OperationalError("SELECT 1", {}, Exception("db down"))
    store = CheckpointStore(lambda: session)

    with pytest.raises(PersistenceError):
        store.read()

    session.rollback.assert_called_once()
    session.close.assert_called_once()
    session.commit.assert_not_called()


def test_list_active_returns_only_active_canonical_addresses(session_factory, seed_event):
    seed_event(ADDRESS_A1)
    seed_event(ADDRESS_B2, is_active=False, outcome=Outcome.WIN)
    with session_factory() as session:
        session.add(Event(address="not-an-address", is_active=True))
        session.commit()

    with session_factory() as session:
        addresses = list_active(session)

    assert addresses == {ADDRESS_A1}


def test_list_active_sees_new_rows_on_next_call(session_factory, seed_event):
    with session_factory() as session:
        assert list_active(session) == set()

    seed_event(ADDRESS_A1)

    with session_factory() as session:
        assert list_active(session) == {ADDRESS_A1}


def test_mark_winning_bets_only_touches_matching_outcome(session_factory, seed_event, load_event):
    win_bet, lose_bet, second_win = seed_event(
        ADDRESS_A1, bets=(Outcome.WIN, Outcome.LOSE, Outcome.WIN)
    )

    with session_factory() as session:
        updated = ResolutionRepository(session).mark_winning_bets(ADDRESS_A1, Outcome.WIN)
        session.commit()

    assert updated == 2
    snapshot = load_event(ADDRESS_A1)
    assert snapshot["bets"] == {win_bet: True, lose_bet: False, second_win: True}


def test_count_active(session_factory, seed_event):
    seed_event(ADDRESS_A1)
    seed_event(ADDRESS_B2, is_active=False)

    with session_factory() as session:
        assert ResolutionRepository(session).count_active() == 1


def test_mark_winning_bets_matches_on_event_and_choice_only(session_factory, seed_event, load_event):
    preset, pending, losing = seed_event(ADDRESS_A1, bets=(Outcome.WIN, Outcome.WIN, Outcome.LOSE))
    with session_factory() as session:
        session.get(Bet, preset).is_claimable = True
        session.commit()

    with session_factory() as session:
        updated = ResolutionRepository(session).mark_winning_bets(ADDRESS_A1, Outcome.WIN)
        session.commit()

    assert updated == 2
    assert load_event(ADDRESS_A1)["bets"] == {preset: True, pending: True, losing: False}
