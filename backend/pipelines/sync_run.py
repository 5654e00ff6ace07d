"""Long-running job that mirrors on-chain finality events into the database."""

from __future__ import annotations

import argparse
import json
import signal
import sys
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import Settings, get_settings
from app.db import SessionLocal, init_db
from app.errors import ConfigurationError, TransientIoError, TrunksError
from ingestion.blocks import BlockRange, chunk_range, next_range
from ingestion.client import StarknetRpcClient
from ingestion.felt import get_selector_from_name
from ingestion.fetcher import EventFetcher, FetchResult, LedgerClient
from ingestion.service import SessionFactory, session_scope
from ingestion.watchlist import list_active

from .checkpoint import CheckpointStore
from .outcomes import ApplyStatus, OutcomeApplier


class SyncState(str, Enum):
    STARTING = "starting"
    SYNCING = "syncing"
    IDLE = "idle"
    STOPPED = "stopped"


@dataclass(slots=True)
class CycleSummary:
    started_at: datetime
    block_range: BlockRange | None = None
    watched_contracts: int = 0
    blocks_scanned: int = 0
    events_seen: int = 0
    events_applied: int = 0
    already_resolved: int = 0
    missing_records: int = 0
    decode_failures: int = 0
    skipped_events: int = 0
    checkpoint: int | None = None
    failures: list[dict[str, Any]] = field(default_factory=list)

    def record_fetch(self, fetched: FetchResult) -> None:
        self.events_seen += fetched.seen
        self.skipped_events += fetched.skipped
        self.decode_failures += len(fetched.decode_failures)
        for failure in fetched.decode_failures:
            raw = failure.raw_event
            self.failures.append(
                {
                    "reason": str(failure),
                    "block_number": raw.block_number if raw else None,
                    "transaction_hash": raw.transaction_hash if raw else None,
                }
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "block_range": str(self.block_range) if self.block_range else None,
            "watched_contracts": self.watched_contracts,
            "blocks_scanned": self.blocks_scanned,
            "events_seen": self.events_seen,
            "events_applied": self.events_applied,
            "already_resolved": self.already_resolved,
            "missing_records": self.missing_records,
            "decode_failures": self.decode_failures,
            "skipped_events": self.skipped_events,
            "checkpoint": self.checkpoint,
            "failures": self.failures,
        }


class SyncPipeline:
    """Poll the chain, apply finality events and checkpoint progress.

    The loop is an explicit state machine (``STARTING -> SYNCING -> IDLE ->
    SYNCING ...``); :meth:`step` performs exactly one transition so tests can
    drive it deterministically. Transient failures keep the pipeline in
    ``SYNCING`` and retry from the last committed checkpoint after a backoff.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client: LedgerClient | None = None,
        session_factory: SessionFactory | None = None,
        init_db_fn: Callable[[], None] = init_db,
        sleep: Callable[[float], Any] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._session_factory = session_factory or SessionLocal
        self._client = client or StarknetRpcClient(
            endpoint=str(self.settings.rpc_endpoint) if self.settings.rpc_endpoint else None,
            page_size=self.settings.events_page_size,
            timeout=self.settings.rpc_timeout_seconds,
        )
        self._init_db_fn = init_db_fn
        self._stop = threading.Event()
        self._sleep = sleep or self._stop.wait

        self.selector = get_selector_from_name(self.settings.finality_event_name)
        self.checkpoints = CheckpointStore(
            self._session_factory, start_block=self.settings.start_block
        )
        self.applier = OutcomeApplier(self._session_factory)
        self.fetcher = EventFetcher(self._client, self.selector)

        self.state = SyncState.STARTING
        self.consecutive_failures = 0
        self.last_summary: CycleSummary | None = None

    # ------------------------------------------------------------------
    # Lifecycle

    def start(self) -> int:
        """Prepare the store and probe the RPC; failures here are unrecoverable."""

        self._init_db_fn()
        checkpoint = self.checkpoints.initialize()
        if self.settings.checkpoint_override is not None:
            checkpoint = self.checkpoints.override(self.settings.checkpoint_override)
        latest = self._client.block_number()
        logger.info(
            "Starting sync ({}): event={} selector={} checkpoint={} latest={}",
            self.settings.environment,
            self.settings.finality_event_name,
            hex(self.selector),
            checkpoint,
            latest,
        )
        self.state = SyncState.SYNCING
        return checkpoint

    def stop(self) -> None:
        self._stop.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # State machine

    def step(self) -> SyncState:
        if self.state is SyncState.STOPPED:
            return self.state
        if self.stop_requested:
            self.state = SyncState.STOPPED
            return self.state

        if self.state is SyncState.STARTING:
            self.start()
        elif self.state is SyncState.IDLE:
            self._sleep(self.settings.poll_interval_seconds)
            self.state = SyncState.SYNCING
        else:
            self._sync_once()

        if self.stop_requested:
            self.state = SyncState.STOPPED
        return self.state

    def run_forever(self) -> None:
        while self.state is not SyncState.STOPPED:
            self.step()
        logger.info("Sync loop stopped")

    def _sync_once(self) -> None:
        try:
            self.last_summary = self.run_cycle()
        except TransientIoError as exc:
            delay = self._backoff_delay()
            self.consecutive_failures += 1
            logger.warning(
                "Sync cycle failed (attempt {}): {}; retrying in {:.1f}s",
                self.consecutive_failures,
                exc,
                delay,
            )
            self._sleep(delay)
            return

        self.consecutive_failures = 0
        self.state = SyncState.IDLE

    def _backoff_delay(self) -> float:
        schedule = self.settings.retry_backoff_schedule
        return schedule[min(self.consecutive_failures, len(schedule) - 1)]

    # ------------------------------------------------------------------
    # Syncing

    def run_cycle(self) -> CycleSummary:
        summary = CycleSummary(started_at=datetime.now(timezone.utc))

        with session_scope(self._session_factory) as session:
            addresses = list_active(session)
        summary.watched_contracts = len(addresses)

        last_processed = self.checkpoints.read()
        latest = self._client.block_number()
        logger.info("Last processed block: {}, latest block: {}", last_processed, latest)

        block_range = next_range(last_processed, latest)
        if block_range is None:
            logger.info("No new blocks to process")
            summary.checkpoint = last_processed
            return summary

        summary.block_range = block_range
        logger.info(
            "Processing blocks {} for {} active contracts", block_range, len(addresses)
        )
        for chunk in chunk_range(block_range, self.settings.block_chunk_size):
            if self.stop_requested:
                logger.info("Stop requested; blocks from {} left for the next run", chunk.start)
                break
            self._sync_chunk(chunk, addresses, summary)

        summary.checkpoint = self.checkpoints.read()
        logger.info(
            "Cycle finished: blocks={}, applied={}, duplicates={}, missing={}, undecodable={}, checkpoint={}",
            summary.blocks_scanned,
            summary.events_applied,
            summary.already_resolved,
            summary.missing_records,
            summary.decode_failures,
            summary.checkpoint,
        )
        return summary

    def _sync_chunk(self, chunk: BlockRange, addresses: set[str], summary: CycleSummary) -> None:
        # All RPC traffic for the chunk completes before any transaction opens.
        fetched = self.fetcher.collect(addresses, chunk) if addresses else FetchResult()
        summary.record_fetch(fetched)

        for block_number, events in fetched.by_block():
            for result in self.applier.apply_block(block_number, events):
                if result.status is ApplyStatus.APPLIED:
                    summary.events_applied += 1
                elif result.status is ApplyStatus.ALREADY_RESOLVED:
                    summary.already_resolved += 1
                else:
                    summary.missing_records += 1

        self.checkpoints.advance(chunk.end)
        summary.blocks_scanned += len(chunk)


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def _install_signal_handlers(pipeline: SyncPipeline) -> None:
    def _handle(signum, _frame) -> None:
        logger.info("Received signal {}; stopping after the current step", signum)
        pipeline.stop()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Mirror on-chain finality events into the events and bets tables",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single sync cycle and exit instead of polling forever",
    )
    parser.add_argument(
        "--summary-path",
        type=Path,
        default=None,
        help="Optional path where a JSON summary of the last cycle will be written",
    )
    return parser.parse_args(argv)


def _write_summary(summary: CycleSummary, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(summary.to_dict(), default=str, indent=2))
    logger.info("Sync summary written to {}", path)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    _configure_logging(settings.log_level)

    try:
        pipeline = SyncPipeline(settings)
    except ConfigurationError as exc:
        logger.error("Invalid configuration: {}", exc)
        return 1

    try:
        try:
            pipeline.start()
        except (TrunksError, SQLAlchemyError):
            logger.exception("Startup failed; cannot reach the database or the RPC endpoint")
            return 1

        if args.once:
            try:
                summary = pipeline.run_cycle()
            except TransientIoError:
                logger.exception("Sync cycle failed")
                return 1
            if args.summary_path:
                _write_summary(summary, args.summary_path)
            return 0

        _install_signal_handlers(pipeline)
        pipeline.run_forever()
        if args.summary_path and pipeline.last_summary:
            _write_summary(pipeline.last_summary, args.summary_path)
        return 0
    finally:
        pipeline.close()


if __name__ == "__main__":
    raise SystemExit(main())
