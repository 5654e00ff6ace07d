"""Apply decoded finality events to the events and bets tables."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from app.domain import DecodedFinalityEvent
from app.errors import ReferentialInconsistency
from app.models import Event
from app.repositories import CheckpointRepository, ResolutionRepository
from ingestion.service import SessionFactory, session_scope


class ApplyStatus(str, Enum):
    APPLIED = "applied"
    ALREADY_RESOLVED = "already_resolved"
    MISSING = "missing"


@dataclass(slots=True)
class ApplyResult:
    event: DecodedFinalityEvent
    status: ApplyStatus
    claimable_bets: int = 0


def _locate(repo: ResolutionRepository, address: str) -> Event:
    record = repo.get_event(address, for_update=True)
    if record is None:
        raise ReferentialInconsistency(address)
    return record


class OutcomeApplier:
    """Resolve events, unlock winning bets and move the checkpoint in one transaction."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def apply(self, event: DecodedFinalityEvent) -> ApplyResult:
        return self.apply_block(event.block_number, [event])[0]

    def apply_block(
        self, block_number: int, events: Sequence[DecodedFinalityEvent]
    ) -> list[ApplyResult]:
        """Apply every event of ``block_number`` in emission order, then checkpoint the block.

        Either all row updates and the checkpoint move are committed, or none are.
        """
        for event in events:
            if event.block_number != block_number:
                raise ValueError(
                    f"Event from block {event.block_number} passed with block {block_number}"
                )

        with session_scope(self._session_factory) as session:
            resolutions = ResolutionRepository(session)
            results = [self._apply_one(resolutions, event) for event in events]
            CheckpointRepository(session).advance(block_number)

        for result in results:
            self._log_result(result)
        return results

    def _apply_one(self, repo: ResolutionRepository, event: DecodedFinalityEvent) -> ApplyResult:
        try:
            record = _locate(repo, event.contract_address)
        except ReferentialInconsistency as exc:
            logger.warning(
                "{}; finality event at block {} (tx {}) treated as a no-op",
                exc,
                event.block_number,
                event.transaction_hash,
            )
            return ApplyResult(event=event, status=ApplyStatus.MISSING)

        if not record.is_active:
            return ApplyResult(event=event, status=ApplyStatus.ALREADY_RESOLVED)

        repo.resolve_event(record, event.resolved_outcome)
        claimable = repo.mark_winning_bets(event.contract_address, event.resolved_outcome)
        return ApplyResult(event=event, status=ApplyStatus.APPLIED, claimable_bets=claimable)

    @staticmethod
    def _log_result(result: ApplyResult) -> None:
        event = result.event
        if result.status is ApplyStatus.APPLIED:
            logger.info(
                "Event {} finished with outcome {} at block {} ({}); {} bets now claimable",
                event.contract_address,
                event.resolved_outcome.name,
                event.block_number,
                event.finished_at,
                result.claimable_bets,
            )
        elif result.status is ApplyStatus.ALREADY_RESOLVED:
            logger.warning(
                "Event {} already resolved; duplicate finality event at block {} ignored",
                event.contract_address,
                event.block_number,
            )
