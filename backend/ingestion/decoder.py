from __future__ import annotations

from loguru import logger

from app.domain import DecodedFinalityEvent, RawEvent
from app.errors import DecodeError
from app.models import Outcome

from .felt import format_address, parse_felt

# data[0] event address, data[1] outcome, data[2] unix timestamp
FINALITY_DATA_WORDS = 3


def _word(raw: RawEvent, index: int, label: str) -> int:
    try:
        return parse_felt(raw.data[index])
    except ValueError as exc:
        raise DecodeError(f"{label} is not a valid felt: {raw.data[index]!r}", raw) from exc


def matches_selector(raw: RawEvent, selector: int) -> bool:
    if not raw.keys:
        return False
    try:
        return parse_felt(raw.keys[0]) == selector
    except ValueError:
        return False


def decode_finality_event(raw: RawEvent, selector: int) -> DecodedFinalityEvent | None:
    """Decode a finality event, or return None when the event has another selector.

    Raises :class:`DecodeError` when the selector matches but the payload does not
    have the finality layout.
    """
    if not matches_selector(raw, selector):
        logger.debug(
            "Skipping event from {} at block {} with keys {}",
            raw.from_address,
            raw.block_number,
            raw.keys,
        )
        return None

    if raw.block_number is None:
        raise DecodeError("Finality event has no block number (pending block?)", raw)

    if len(raw.data) < FINALITY_DATA_WORDS:
        raise DecodeError(
            f"Finality event carries {len(raw.data)} data words, expected {FINALITY_DATA_WORDS}",
            raw,
        )

    address = format_address(_word(raw, 0, "event address"))
    outcome_value = _word(raw, 1, "outcome")
    timestamp = _word(raw, 2, "timestamp")

    try:
        outcome = Outcome(outcome_value)
    except ValueError as exc:
        raise DecodeError(f"Unknown outcome value {outcome_value}", raw) from exc

    if timestamp >= 1 << 64:
        logger.warning(
            "Finality event at block {} (tx {}) has out-of-range timestamp {}; using 0",
            raw.block_number,
            raw.transaction_hash,
            timestamp,
        )
        timestamp = 0

    return DecodedFinalityEvent(
        contract_address=address,
        block_number=raw.block_number,
        resolved_outcome=outcome,
        timestamp=timestamp,
        transaction_hash=raw.transaction_hash,
    )
