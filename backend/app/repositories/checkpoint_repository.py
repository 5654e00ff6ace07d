"""Persistence for the single-row block checkpoint."""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.errors import PersistenceError
from app.models import CHECKPOINT_ROW_ID, BlockState


class CheckpointRepository:
    """Read and move ``last_processed_block`` inside the caller's transaction."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def ensure(self, start_block: int) -> BlockState:
        record = self._session.get(BlockState, CHECKPOINT_ROW_ID)
        if record is None:
            record = BlockState(id=CHECKPOINT_ROW_ID, last_processed_block=start_block)
            self._session.add(record)
            self._session.flush()
        return record

    def read(self) -> int | None:
        query = select(BlockState.last_processed_block).where(BlockState.id == CHECKPOINT_ROW_ID)
        return self._session.execute(query).scalar_one_or_none()

    def advance(self, block_number: int) -> bool:
        """Raise the checkpoint to ``block_number``; never lowers it.

        Returns True when the stored value changed.
        """
        statement = (
            update(BlockState)
            .where(
                BlockState.id == CHECKPOINT_ROW_ID,
                BlockState.last_processed_block < block_number,
            )
            .values(last_processed_block=block_number)
        )
        result = self._session.execute(statement)
        if result.rowcount:
            return True
        if self.read() is None:
            raise PersistenceError("Checkpoint row is missing; run initialization first")
        return False

    def override(self, block_number: int) -> BlockState:
        record = self.ensure(block_number)
        record.last_processed_block = block_number
        self._session.flush()
        return record
