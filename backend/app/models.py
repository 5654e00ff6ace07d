from __future__ import annotations

from enum import IntEnum

from sqlalchemy import BigInteger, Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


CHECKPOINT_ROW_ID = 1


class Outcome(IntEnum):
    """Resolved side of a binary event, as emitted on-chain and stored in the database."""

    LOSE = 0
    WIN = 1


class Event(Base):
    """A tracked prediction event; rows are created by the betting backend."""

    __tablename__ = "events"

    address: Mapped[str] = mapped_column(String(66), primary_key=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    outcome: Mapped[int | None] = mapped_column(Integer, nullable=True)

    bets: Mapped[list["Bet"]] = relationship(
        "Bet", back_populates="event", order_by="Bet.id"
    )


class Bet(Base):
    __tablename__ = "bets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_address: Mapped[str] = mapped_column(
        String(66), ForeignKey("events.address"), nullable=False, index=True
    )
    chosen_outcome: Mapped[int] = mapped_column("bet", Integer, nullable=False)
    is_claimable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    event: Mapped[Event] = relationship("Event", back_populates="bets")


class BlockState(Base):
    """Single-row checkpoint holding the last fully processed block."""

    __tablename__ = "block_state_trunks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    last_processed_block: Mapped[int] = mapped_column(BigInteger, nullable=False)
