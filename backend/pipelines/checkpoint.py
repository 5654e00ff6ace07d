from __future__ import annotations

from loguru import logger

from app.errors import PersistenceError
from app.repositories import CheckpointRepository
from ingestion.service import SessionFactory, session_scope


class CheckpointStore:
    """Transactional access to ``last_processed_block``; every call hits the store."""

    def __init__(
        self, session_factory: SessionFactory | None = None, *, start_block: int = 0
    ) -> None:
        self._session_factory = session_factory
        self.start_block = start_block

    def initialize(self) -> int:
        with session_scope(self._session_factory) as session:
            record = CheckpointRepository(session).ensure(self.start_block)
            value = record.last_processed_block
        logger.info("Checkpoint initialized at block {}", value)
        return value

    def read(self) -> int:
        with session_scope(self._session_factory) as session:
            value = CheckpointRepository(session).read()
        if value is None:
            raise PersistenceError("Checkpoint row is missing; run initialization first")
        return value

    def advance(self, block_number: int) -> bool:
        with session_scope(self._session_factory) as session:
            moved = CheckpointRepository(session).advance(block_number)
        if moved:
            logger.info("Checkpoint advanced to block {}", block_number)
        return moved

    def override(self, block_number: int) -> int:
        with session_scope(self._session_factory) as session:
            CheckpointRepository(session).override(block_number)
        logger.warning("Checkpoint manually set to block {}", block_number)
        return block_number
