from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from loguru import logger

from app.domain import DecodedFinalityEvent, RawEvent
from app.errors import DecodeError, LedgerRpcError

from .blocks import BlockRange
from .decoder import decode_finality_event


class LedgerClient(Protocol):
    def block_number(self) -> int: ...

    def iter_events(
        self,
        address: str | int,
        keys: Sequence[int],
        from_block: int,
        to_block: int,
    ) -> Iterator[RawEvent]: ...

    def close(self) -> None: ...


@dataclass(slots=True)
class FetchResult:
    events: list[DecodedFinalityEvent] = field(default_factory=list)
    decode_failures: list[DecodeError] = field(default_factory=list)
    seen: int = 0
    skipped: int = 0

    def by_block(self) -> list[tuple[int, list[DecodedFinalityEvent]]]:
        """Group events per block, ascending, keeping emission order within a block."""

        grouped: list[tuple[int, list[DecodedFinalityEvent]]] = []
        for event in self.events:
            if grouped and grouped[-1][0] == event.block_number:
                grouped[-1][1].append(event)
            else:
                grouped.append((event.block_number, [event]))
        return grouped


class EventFetcher:
    """Retrieve and decode finality events for watched contracts."""

    def __init__(self, client: LedgerClient, selector: int) -> None:
        self._client = client
        self.selector = selector

    def fetch(self, address: str, block_range: BlockRange) -> Iterator[RawEvent]:
        return self._client.iter_events(
            address, [self.selector], block_range.start, block_range.end
        )

    def collect(self, addresses: Iterable[str], block_range: BlockRange) -> FetchResult:
        result = FetchResult()
        for address in sorted(addresses):
            for raw in self.fetch(address, block_range):
                result.seen += 1
                try:
                    decoded = decode_finality_event(raw, self.selector)
                except DecodeError as exc:
                    logger.error(
                        "Failed to decode finality event from {} at block {} (tx {}): {}",
                        raw.from_address,
                        raw.block_number,
                        raw.transaction_hash,
                        exc,
                    )
                    result.decode_failures.append(exc)
                    continue
                if decoded is None:
                    result.skipped += 1
                    continue
                if not block_range.start <= decoded.block_number <= block_range.end:
                    raise LedgerRpcError(
                        f"Node returned a finality event for block {decoded.block_number} "
                        f"outside the requested range {block_range}",
                        method="starknet_getEvents",
                    )
                result.events.append(decoded)

        # sort is stable: per-contract emission order survives within a block
        result.events.sort(key=lambda event: event.block_number)
        logger.info(
            "Blocks {}: {} raw events, {} finality events, {} skipped, {} undecodable",
            block_range,
            result.seen,
            len(result.events),
            result.skipped,
            len(result.decode_failures),
        )
        return result
