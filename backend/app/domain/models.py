"""Typed records passed between the ledger client, the decoder and the applier."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from app.models import Outcome


@dataclass(frozen=True, slots=True)
class RawEvent:
    """Event exactly as returned by ``starknet_getEvents``; felts kept as hex strings."""

    from_address: str
    keys: tuple[str, ...]
    data: tuple[str, ...]
    block_number: int | None
    transaction_hash: str | None = None


@dataclass(frozen=True, slots=True)
class DecodedFinalityEvent:
    """A finished event decoded from a matching raw event."""

    contract_address: str
    block_number: int
    resolved_outcome: Outcome
    timestamp: int
    transaction_hash: str | None = None

    @property
    def finished_at(self) -> datetime | None:
        """On-chain finish time, or None when the timestamp is beyond what datetime holds."""

        try:
            return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
