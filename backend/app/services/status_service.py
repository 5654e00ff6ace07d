"""Read-only views over indexer progress used by the status API."""

from __future__ import annotations

from sqlalchemy.orm import Session

from app.repositories import CheckpointRepository, ResolutionRepository
from app.schemas import EventRecord, SyncStatus


class StatusService:
    """Facade over checkpoint and resolution reads; never writes."""

    def __init__(self, session: Session):
        self._checkpoints = CheckpointRepository(session)
        self._resolutions = ResolutionRepository(session)

    def sync_status(self) -> SyncStatus:
        return SyncStatus(
            last_processed_block=self._checkpoints.read(),
            active_contracts=self._resolutions.count_active(),
        )

    def get_event(self, address: str) -> EventRecord | None:
        record = self._resolutions.get_event_with_bets(address)
        if record is None:
            return None
        return EventRecord.model_validate(record)
