"""Event and bet persistence touched by finality events."""

from __future__ import annotations

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from app.models import Bet, Event, Outcome


class ResolutionRepository:
    """Encapsulate reads and writes against the ``events`` and ``bets`` tables."""

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Queries

    def list_active_addresses(self) -> list[str]:
        query = (
            select(Event.address)
            .where(Event.is_active.is_(True))
            .distinct()
            .order_by(Event.address)
        )
        return list(self._session.execute(query).scalars().all())

    def count_active(self) -> int:
        query = select(func.count()).select_from(Event).where(Event.is_active.is_(True))
        return int(self._session.execute(query).scalar_one())

    def get_event(self, address: str, *, for_update: bool = False) -> Event | None:
        query = select(Event).where(Event.address == address)
        if for_update:
            query = query.with_for_update()
        return self._session.execute(query).scalar_one_or_none()

    def get_event_with_bets(self, address: str) -> Event | None:
        query = (
            select(Event)
            .options(selectinload(Event.bets))
            .where(Event.address == address)
        )
        return self._session.execute(query).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Mutations

    def resolve_event(self, record: Event, outcome: Outcome) -> Event:
        record.is_active = False
        record.outcome = int(outcome)
        self._session.flush()
        return record

    def mark_winning_bets(self, address: str, outcome: Outcome) -> int:
        statement = (
            update(Bet)
            .where(
                Bet.event_address == address,
                Bet.chosen_outcome == int(outcome),
            )
            .values(is_claimable=True)
            .execution_options(synchronize_session="fetch")
        )
        result = self._session.execute(statement)
        return int(result.rowcount or 0)
